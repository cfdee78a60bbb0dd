"""
Simulation module.
Runs documents locally against pluggable environments.
"""

from .environment import CommandOutcome, Environment, LocalEnvironment, MockEnvironment, RecordedScript
from .table import OutputTable
from .driver import RunStatus, Simulation, SimulationResult, StepRecord, StepState

__all__ = [
    "CommandOutcome",
    "Environment",
    "LocalEnvironment",
    "MockEnvironment",
    "RecordedScript",
    "OutputTable",
    "RunStatus",
    "Simulation",
    "SimulationResult",
    "StepRecord",
    "StepState",
]

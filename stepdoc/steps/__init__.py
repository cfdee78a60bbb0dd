"""
Step kinds.

Every kind shares the invocation envelope and serialization contract in
``base``; the registry dispatches on the action discriminator.
"""

from .base import InvocationResult, OnFailure, ResponseCode, Step, StepProperty
from .execute_script import ExecuteScriptStep
from .run_command import RunCommandStep
from .run_script import RunScriptStep
from .sleep import SleepStep
from .registry import StepRegistry


__all__ = [
    "InvocationResult",
    "OnFailure",
    "ResponseCode",
    "Step",
    "StepProperty",
    "ExecuteScriptStep",
    "RunCommandStep",
    "RunScriptStep",
    "SleepStep",
    "StepRegistry",
]

"""
stepdoc: declare command/automation documents, print them, and simulate
them locally against a mock or local environment.
"""

from .document import Document, DocumentBuilder, DocumentInput, DocumentType
from .outputs import OutputDescriptor
from .simulation import LocalEnvironment, MockEnvironment, Simulation
from .steps import ExecuteScriptStep, RunCommandStep, RunScriptStep, SleepStep
from .variables import (
    DataType,
    HardCodedBoolean,
    HardCodedMapList,
    HardCodedNumber,
    HardCodedString,
    HardCodedStringList,
    HardCodedStringMap,
    NumberVariable,
    StringFormat,
    StringListVariable,
    StringVariable,
)

__version__ = "0.1.0"

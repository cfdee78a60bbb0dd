"""
Data types shared by variables, document inputs and output descriptors.

Type names match the ones the document format uses for parameters and
outputs, so ``DataType.STRING.value`` can be written straight into a document.
"""

import re
from enum import Enum
from typing import Any, NamedTuple, Optional

from ..exceptions import InvalidNameError, TypeCoercionError


NAME_PATTERN = re.compile(r'^[A-Za-z0-9_\-]+$')


class DataType(str, Enum):
    """Value types understood by the document format."""
    STRING = "String"
    INTEGER = "Integer"
    BOOLEAN = "Boolean"
    STRING_LIST = "StringList"
    MAP = "StringMap"
    MAP_LIST = "MapList"


def validate_name(name: Any, kind: str) -> str:
    """Check that a step/output/parameter name can appear in a placeholder."""
    if not isinstance(name, str) or not NAME_PATTERN.match(name):
        raise InvalidNameError(kind, name)
    return name


def matches_type(value: Any, data_type: DataType) -> bool:
    """
    Strict type check used when a document is declared.

    Args:
        value: Literal value supplied by the author
        data_type: Expected type

    Returns:
        True if the value is an instance of the data type
    """
    if data_type == DataType.STRING:
        return isinstance(value, str)
    if data_type == DataType.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool)
    if data_type == DataType.BOOLEAN:
        return isinstance(value, bool)
    if data_type == DataType.STRING_LIST:
        return isinstance(value, list) and all(isinstance(item, str) for item in value)
    if data_type == DataType.MAP:
        return isinstance(value, dict) and all(isinstance(k, str) for k in value)
    if data_type == DataType.MAP_LIST:
        return isinstance(value, list) and all(isinstance(item, dict) for item in value)
    return False


def coerce(value: Any, data_type: DataType) -> Any:
    """
    Lenient conversion used at simulation time.

    Values read back from invocation results or supplied on the command line
    are often strings; numeric strings become Integer and "true"/"false"
    become Boolean. Anything else that does not already match raises.

    Args:
        value: Value to convert
        data_type: Target type

    Returns:
        The converted value

    Raises:
        TypeCoercionError: If the value cannot represent the data type
    """
    if matches_type(value, data_type):
        return value

    if data_type == DataType.STRING:
        if isinstance(value, bool):
            return 'true' if value else 'false'
        if isinstance(value, (int, float)):
            return str(value)
    elif data_type == DataType.INTEGER:
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
    elif data_type == DataType.BOOLEAN:
        if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
            return value.strip().lower() == 'true'
    elif data_type == DataType.STRING_LIST:
        if isinstance(value, list) and all(
            isinstance(item, (str, int, float)) and not isinstance(item, bool) for item in value
        ):
            return [str(item) for item in value]

    raise TypeCoercionError(value, data_type.value)


def type_name(value: Any) -> str:
    """Best matching document type name for a Python value, for error messages."""
    for data_type in DataType:
        if matches_type(value, data_type):
            return data_type.value
    return type(value).__name__


class ReferenceKey(NamedTuple):
    """
    Identifies one value a reference can point at.

    Attributes:
        step: Producing step name, or None for a document input
        output: Output name (or input name when step is None)
    """
    step: Optional[str]
    output: str

    def __str__(self) -> str:
        if self.step is None:
            return self.output
        return f"{self.step}.{self.output}"

    @classmethod
    def parse(cls, text: str) -> "ReferenceKey":
        """Parse ``Step.Output`` or ``Input`` into a key."""
        if not isinstance(text, str) or not text:
            raise InvalidNameError("reference", text)
        if '.' in text:
            step, output = text.split('.', 1)
            return cls(validate_name(step, "step"), validate_name(output, "output"))
        return cls(None, validate_name(text, "input"))

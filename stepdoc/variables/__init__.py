"""
Typed variable model.
Literals, format templates and references to document inputs or step outputs.
"""

from .types import DataType, ReferenceKey, coerce, matches_type, validate_name
from .variable import (
    Variable,
    HardCodedValue,
    HardCodedString,
    HardCodedNumber,
    HardCodedBoolean,
    HardCodedStringList,
    HardCodedStringMap,
    HardCodedMapList,
    Reference,
    StringVariable,
    NumberVariable,
    BooleanVariable,
    StringListVariable,
    StringMapVariable,
    MapListVariable,
    StringFormat,
)

__all__ = [
    'DataType',
    'ReferenceKey',
    'coerce',
    'matches_type',
    'validate_name',
    'Variable',
    'HardCodedValue',
    'HardCodedString',
    'HardCodedNumber',
    'HardCodedBoolean',
    'HardCodedStringList',
    'HardCodedStringMap',
    'HardCodedMapList',
    'Reference',
    'StringVariable',
    'NumberVariable',
    'BooleanVariable',
    'StringListVariable',
    'StringMapVariable',
    'MapListVariable',
    'StringFormat',
]

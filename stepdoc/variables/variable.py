"""
Typed variables: literals, format templates and references.

Every value a step property holds is a Variable. A variable can be printed
(the form written into the serialized document), can report which other
outputs it depends on, and can be resolved against the values produced so
far during a simulation.
"""

import copy
import json
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from ..exceptions import TemplateError, UnresolvedReferenceError, VariableTypeError
from .types import DataType, ReferenceKey, coerce, matches_type, type_name


class Variable:
    """Base class for all variables. Instances are immutable."""

    data_type: DataType = DataType.STRING

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, '_frozen', False):
            raise AttributeError(f"{type(self).__name__} is immutable")
        object.__setattr__(self, name, value)

    def _freeze(self) -> None:
        object.__setattr__(self, '_frozen', True)

    def print(self) -> Any:
        """Return the form written into the serialized document."""
        raise NotImplementedError

    def required_inputs(self) -> Set[ReferenceKey]:
        """Return every reference key this variable depends on."""
        raise NotImplementedError

    def resolve(self, inputs: Mapping[Any, Any]) -> Any:
        """Return the concrete value given the outputs produced so far."""
        raise NotImplementedError


class HardCodedValue(Variable):
    """A literal known when the document is declared."""

    def __init__(self, value: Any, data_type: DataType):
        if not matches_type(value, data_type):
            raise VariableTypeError("value", data_type.value, type_name(value))
        # Stored and handed out as copies
        self.value = copy.deepcopy(value)
        self.data_type = data_type
        self._freeze()

    def print(self) -> Any:
        return copy.deepcopy(self.value)

    def required_inputs(self) -> Set[ReferenceKey]:
        return set()

    def resolve(self, inputs: Mapping[Any, Any]) -> Any:
        return copy.deepcopy(self.value)

    def __eq__(self, other: Any) -> bool:
        return (isinstance(other, HardCodedValue)
                and other.data_type == self.data_type and other.value == self.value)

    def __hash__(self) -> int:
        return hash((self.data_type, json.dumps(self.value, sort_keys=True, default=str)))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value!r})"


class HardCodedString(HardCodedValue):
    def __init__(self, value: str):
        super().__init__(value, DataType.STRING)


class HardCodedNumber(HardCodedValue):
    def __init__(self, value: int):
        super().__init__(value, DataType.INTEGER)


class HardCodedBoolean(HardCodedValue):
    def __init__(self, value: bool):
        super().__init__(value, DataType.BOOLEAN)


class HardCodedStringList(HardCodedValue):
    def __init__(self, value: List[str]):
        super().__init__(list(value) if isinstance(value, tuple) else value, DataType.STRING_LIST)


class HardCodedStringMap(HardCodedValue):
    def __init__(self, value: Dict[str, Any]):
        super().__init__(value, DataType.MAP)


class HardCodedMapList(HardCodedValue):
    def __init__(self, value: List[Dict[str, Any]]):
        super().__init__(value, DataType.MAP_LIST)


class Reference(Variable):
    """
    A reference to a document input or to another step's output.

    Printed as ``{{Step.Output}}`` (or ``{{Input}}``); resolved by looking the
    key up in the simulation's output table.
    """

    def __init__(self, name: str, data_type: DataType = DataType.STRING):
        self.key = ReferenceKey.parse(name)
        self.data_type = DataType(data_type)
        self._freeze()

    @classmethod
    def to_output(cls, step_name: str, output_name: str,
                  data_type: DataType = DataType.STRING) -> "Reference":
        return cls(f"{step_name}.{output_name}", data_type)

    @property
    def name(self) -> str:
        return str(self.key)

    def print(self) -> str:
        return "{{" + self.name + "}}"

    def required_inputs(self) -> Set[ReferenceKey]:
        return {self.key}

    def resolve(self, inputs: Mapping[Any, Any]) -> Any:
        if self.key in inputs:
            value = inputs[self.key]
        elif self.name in inputs:
            # Plain dicts keyed by name are accepted for convenience
            value = inputs[self.name]
        else:
            raise UnresolvedReferenceError(self.name)
        return coerce(value, self.data_type)

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Reference) and other.key == self.key and other.data_type == self.data_type

    def __hash__(self) -> int:
        return hash((self.key, self.data_type))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class StringVariable(Reference):
    def __init__(self, name: str):
        super().__init__(name, DataType.STRING)


class NumberVariable(Reference):
    def __init__(self, name: str):
        super().__init__(name, DataType.INTEGER)


class BooleanVariable(Reference):
    def __init__(self, name: str):
        super().__init__(name, DataType.BOOLEAN)


class StringListVariable(Reference):
    def __init__(self, name: str):
        super().__init__(name, DataType.STRING_LIST)


class StringMapVariable(Reference):
    def __init__(self, name: str):
        super().__init__(name, DataType.MAP)


class MapListVariable(Reference):
    def __init__(self, name: str):
        super().__init__(name, DataType.MAP_LIST)


def _to_text(value: Any) -> str:
    """Render a resolved value for interpolation into a string."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    elif isinstance(value, (int, float)):
        return str(value)
    elif isinstance(value, str):
        return value
    else:
        # Complex types get JSON representation
        return json.dumps(value)


class StringFormat(Variable):
    """
    A format string with positional ``%s`` slots filled by nested variables.

    ``%%`` stands for a literal percent sign. The printed form interpolates
    the nested printed forms, so references show up as placeholders.
    """

    SLOT_PATTERN = re.compile(r'%(.)', re.DOTALL)

    def __init__(self, fmt: str, variables: Optional[Sequence[Variable]] = None):
        variables = list(variables or [])
        if not isinstance(fmt, str):
            raise VariableTypeError("format", DataType.STRING.value, type_name(fmt))
        for variable in variables:
            if not isinstance(variable, Variable):
                raise TemplateError(f"Format variables must be Variable instances, got {type(variable).__name__}")

        slots = 0
        for match in self.SLOT_PATTERN.finditer(fmt):
            if match.group(1) == 's':
                slots += 1
            elif match.group(1) != '%':
                raise TemplateError(f"Unsupported format directive '%{match.group(1)}' in {fmt!r}")
        if fmt.replace('%%', '').endswith('%'):
            raise TemplateError(f"Dangling '%' in {fmt!r}")
        if slots != len(variables):
            raise TemplateError(
                f"Format {fmt!r} has {slots} slot(s) but {len(variables)} variable(s) were given"
            )

        self.fmt = fmt
        self.variables = tuple(variables)
        self.data_type = DataType.STRING
        self._freeze()

    def print(self) -> str:
        return self.fmt % tuple(_to_text(v.print()) for v in self.variables)

    def required_inputs(self) -> Set[ReferenceKey]:
        keys: Set[ReferenceKey] = set()
        for variable in self.variables:
            keys |= variable.required_inputs()
        return keys

    def resolve(self, inputs: Mapping[Any, Any]) -> str:
        return self.fmt % tuple(_to_text(v.resolve(inputs)) for v in self.variables)

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, StringFormat) and other.fmt == self.fmt and other.variables == self.variables

    def __hash__(self) -> int:
        return hash((self.fmt, self.variables))

    def __repr__(self) -> str:
        return f"StringFormat({self.fmt!r}, {list(self.variables)!r})"

"""
Step base class and property declarations.

A step is a named unit of work with typed inputs and declared outputs. Each
concrete kind declares its action discriminator, its properties and how its
resolved inputs map onto Environment calls; everything else (validation,
serialization, resolution and output extraction) is shared here.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

from ..exceptions import (
    DefinitionError,
    MissingRequiredPropertyError,
    SimulationError,
    TypeCoercionError,
    UnknownPropertyError,
    VariableTypeError,
)
from ..outputs.descriptor import OutputDescriptor
from ..variables.types import DataType, ReferenceKey, type_name, validate_name
from ..variables.variable import HardCodedValue, Reference, Variable


logger = logging.getLogger(__name__)

PropertyValue = Union[Variable, Tuple[Variable, ...]]


class ResponseCode(str, Enum):
    """Outcome of one step invocation."""
    SUCCESS = "Success"
    FAILURE = "Failed"


class OnFailure(str, Enum):
    """What a run does after a step reports FAILURE."""
    ABORT = "Abort"
    CONTINUE = "Continue"


@dataclass
class InvocationResult:
    """Envelope shared by every step kind."""
    response_code: ResponseCode
    raw_result: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.response_code == ResponseCode.SUCCESS

    @classmethod
    def success(cls, raw_result: Optional[Dict[str, Any]] = None) -> "InvocationResult":
        return cls(ResponseCode.SUCCESS, raw_result or {})

    @classmethod
    def failure(cls, error: Dict[str, Any], raw_result: Optional[Dict[str, Any]] = None) -> "InvocationResult":
        return cls(ResponseCode.FAILURE, raw_result or {}, error)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "responseCode": self.response_code.value,
            "rawResult": self.raw_result,
        }
        if self.error:
            result["error"] = self.error
        return result


@dataclass(frozen=True)
class StepProperty:
    """
    Declaration of one step input.

    Attributes:
        name: Keyword used when constructing the step
        key: Key written under ``inputs`` in the serialized entry
        types: Accepted variable types
        required: Construction fails when the property is absent
        many: Value is a list of variables, each of one of ``types``
        allowed_values: Closed set of acceptable values, if any
        alias_types: Alternative entry keys used for particular types
    """
    name: str
    key: str
    types: Tuple[DataType, ...]
    required: bool = False
    many: bool = False
    allowed_values: Optional[Tuple[Any, ...]] = None
    alias_types: Tuple[Tuple[str, DataType], ...] = ()

    @property
    def expected(self) -> str:
        names = " or ".join(t.value for t in self.types)
        return f"list of {names}" if self.many else names

    def keys(self) -> List[str]:
        return [self.key] + [alias for alias, _ in self.alias_types]

    def type_for_key(self, key: str) -> DataType:
        for alias, data_type in self.alias_types:
            if alias == key:
                return data_type
        return self.types[0]

    def key_for(self, value: PropertyValue) -> str:
        if isinstance(value, Variable):
            for alias, data_type in self.alias_types:
                if value.data_type == data_type:
                    return alias
        return self.key

    def validate(self, step_name: str, value: Any) -> PropertyValue:
        """
        Check a value supplied for this property.

        Returns:
            The value to store (lists become tuples)

        Raises:
            VariableTypeError: If the value is not an accepted variable type
            MissingRequiredPropertyError: If a required list is empty
        """
        if self.many:
            if isinstance(value, Variable) and value.data_type == DataType.STRING_LIST \
                    and DataType.STRING in self.types:
                # A single list-valued variable may stand in for the whole list
                return value
            if not isinstance(value, (list, tuple)):
                raise VariableTypeError(self.key, self.expected, type_name(value), step_name)
            if not value and self.required:
                raise MissingRequiredPropertyError(step_name, self.key)
            for item in value:
                self._check_variable(step_name, item)
            return tuple(value)

        self._check_variable(step_name, value)
        return value

    def _check_variable(self, step_name: str, value: Any) -> None:
        if not isinstance(value, Variable):
            raise VariableTypeError(self.key, self.expected, f"plain {type(value).__name__}", step_name)
        if value.data_type not in self.types:
            raise VariableTypeError(self.key, self.expected, value.data_type.value, step_name)
        if self.allowed_values is not None and isinstance(value, HardCodedValue) \
                and value.value not in self.allowed_values:
            raise VariableTypeError(
                self.key, f"one of {list(self.allowed_values)}", repr(value.value), step_name
            )

    def print(self, value: PropertyValue) -> Any:
        if isinstance(value, tuple):
            return [item.print() for item in value]
        return value.print()

    def required_inputs(self, value: PropertyValue) -> Set[ReferenceKey]:
        keys: Set[ReferenceKey] = set()
        for item in (value if isinstance(value, tuple) else [value]):
            keys |= item.required_inputs()
        return keys

    def resolve(self, value: PropertyValue, inputs: Mapping[Any, Any]) -> Any:
        if isinstance(value, tuple):
            return [item.resolve(inputs) for item in value]
        resolved = value.resolve(inputs)
        if self.allowed_values is not None and resolved not in self.allowed_values:
            raise TypeCoercionError(resolved, f"one of {list(self.allowed_values)}")
        return resolved


class Step:
    """
    Base class for all step kinds.

    Subclasses set ``action`` and ``properties`` and implement ``execute``.
    Steps are immutable once constructed.
    """

    action: str = ""
    properties: Tuple[StepProperty, ...] = ()
    outputs: Tuple[OutputDescriptor, ...] = ()
    # True when outputs are supplied by the author rather than fixed per kind
    declares_outputs: bool = False

    def __init__(self, name: str, on_failure: Optional[Union[str, OnFailure]] = None, **kwargs: Any):
        """
        Initialize a step.

        Args:
            name: Step name, unique within its document
            on_failure: "Abort" (default) or "Continue"
            **kwargs: Property values keyed by property name

        Raises:
            DefinitionError: On invalid names, unknown or missing properties
                and type mismatches
        """
        self.name = validate_name(name, "step")

        if on_failure is None:
            self.on_failure: Optional[OnFailure] = None
        else:
            try:
                self.on_failure = OnFailure(on_failure)
            except ValueError:
                raise DefinitionError(
                    f"Step '{name}': onFailure must be one of {[o.value for o in OnFailure]}, got {on_failure!r}"
                )

        known = {prop.name for prop in self.properties}
        for key in kwargs:
            if key not in known:
                raise UnknownPropertyError(name, key)

        inputs: Dict[str, PropertyValue] = {}
        for prop in self.properties:
            value = kwargs.get(prop.name)
            if value is None:
                if prop.required:
                    raise MissingRequiredPropertyError(name, prop.key)
                continue
            inputs[prop.name] = prop.validate(name, value)
        self.inputs = MappingProxyType(inputs)

        names = [output.name for output in self.list_outputs()]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise DefinitionError(f"Step '{name}': duplicate output names {duplicates}")

        self._freeze()

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, '_frozen', False):
            raise AttributeError(f"Step '{self.name}' is immutable")
        object.__setattr__(self, name, value)

    def _freeze(self) -> None:
        object.__setattr__(self, '_frozen', True)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"

    @classmethod
    def property_for_key(cls, key: str) -> Optional[StepProperty]:
        """Look up a property by its serialized key (or one of its aliases)."""
        for prop in cls.properties:
            if key in prop.keys():
                return prop
        return None

    def _entries(self):
        for prop in self.properties:
            if prop.name in self.inputs:
                value = self.inputs[prop.name]
                yield prop, prop.key_for(value), value

    def to_entry(self) -> Dict[str, Any]:
        """
        Serializable form of the step.

        Properties that were not supplied are omitted, never written as null.
        """
        entry: Dict[str, Any] = {
            "name": self.name,
            "action": self.action,
        }
        if self.on_failure is not None:
            entry["onFailure"] = self.on_failure.value
        entry["inputs"] = {key: prop.print(value) for prop, key, value in self._entries()}

        declared = self.entry_outputs()
        if declared:
            entry["outputs"] = declared
        return entry

    def entry_outputs(self) -> List[Dict[str, Any]]:
        """Outputs written into the entry; only author-declared outputs are."""
        return []

    def list_required_inputs(self) -> Set[ReferenceKey]:
        keys: Set[ReferenceKey] = set()
        for prop, _, value in self._entries():
            keys |= prop.required_inputs(value)
        return keys

    def list_outputs(self) -> List[OutputDescriptor]:
        return list(self.outputs)

    def output(self, output_name: str) -> Reference:
        """Return a reference to one of this step's outputs, typed as declared."""
        for descriptor in self.list_outputs():
            if descriptor.name == output_name:
                return Reference.to_output(self.name, output_name, descriptor.output_type)
        raise DefinitionError(f"Step '{self.name}' declares no output '{output_name}'")

    def resolve_inputs(self, inputs: Mapping[Any, Any]) -> Dict[str, Any]:
        """
        Resolve every supplied property against the values produced so far.

        Returns:
            Resolved values keyed by serialized input key

        Raises:
            SimulationError: Attributed to this step and the failing property
        """
        resolved: Dict[str, Any] = {}
        for prop, key, value in self._entries():
            try:
                resolved[key] = prop.resolve(value, inputs)
            except SimulationError as e:
                raise e.attribute(self.name, key)
        return resolved

    def invoke(self, resolved_inputs: Dict[str, Any], environment) -> InvocationResult:
        """
        Perform the step against an environment.

        Failures reported by the environment come back as a FAILURE
        InvocationResult, not as exceptions.
        """
        logger.debug(f"Invoking {self.action} step '{self.name}'")
        result = self.execute(resolved_inputs, environment)
        if not result.ok:
            logger.info(f"Step '{self.name}' reported failure: {(result.error or {}).get('message')}")
        return result

    def execute(self, resolved_inputs: Dict[str, Any], environment) -> InvocationResult:
        raise NotImplementedError

    def extract_outputs(self, raw_result: Any) -> Dict[str, Any]:
        """
        Apply every output descriptor to a raw invocation result.

        Raises:
            SelectorNotFoundError: If a selector matches nothing
            TypeCoercionError: If a match has the wrong type
        """
        values: Dict[str, Any] = {}
        for descriptor in self.list_outputs():
            try:
                values[descriptor.name] = descriptor.extract(raw_result)
            except SimulationError as e:
                raise e.attribute(self.name, descriptor.name)
        return values

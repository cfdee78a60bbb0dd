"""
Documents: an ordered list of steps plus the metadata the execution
service needs (description, schema version, parameters, outputs).
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ..exceptions import DefinitionError, VariableTypeError
from ..steps.base import Step
from ..variables.types import DataType, matches_type, type_name, validate_name
from ..variables.variable import Variable


class DocumentType(str, Enum):
    """Document kinds and the schema version each is written with."""
    COMMAND = "Command"
    AUTOMATION = "Automation"

    @property
    def default_schema_version(self) -> str:
        return SCHEMA_VERSIONS[self]


SCHEMA_VERSIONS = {
    DocumentType.COMMAND: "2.2",
    DocumentType.AUTOMATION: "0.3",
}


@dataclass(frozen=True)
class DocumentInput:
    """
    A top-level document parameter.

    Attributes:
        name: Parameter name, referenced as ``{{name}}``
        input_type: Declared type
        description: Shown to whoever runs the document
        default_value: Used when no value is supplied
        allowed_values: Closed set of acceptable values
        min_items: Lower bound on list length (StringList/MapList)
        max_items: Upper bound on list length (StringList/MapList)
    """
    name: str
    input_type: DataType
    description: Optional[str] = None
    default_value: Any = None
    allowed_values: Optional[Tuple[Any, ...]] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None

    def __post_init__(self):
        validate_name(self.name, "input")
        object.__setattr__(self, 'input_type', DataType(self.input_type))
        if self.allowed_values is not None:
            object.__setattr__(self, 'allowed_values', tuple(self.allowed_values))

        if self.default_value is not None:
            if not matches_type(self.default_value, self.input_type):
                raise VariableTypeError(self.name, self.input_type.value, type_name(self.default_value))
            if self.allowed_values is not None and self.default_value not in self.allowed_values:
                raise DefinitionError(
                    f"Input '{self.name}': default {self.default_value!r} is not one of {list(self.allowed_values)}"
                )

        if (self.min_items is not None or self.max_items is not None) and \
                self.input_type not in (DataType.STRING_LIST, DataType.MAP_LIST):
            raise DefinitionError(f"Input '{self.name}': minItems/maxItems only apply to list types")

    @property
    def required(self) -> bool:
        return self.default_value is None

    def to_entry(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"type": self.input_type.value}
        if self.description is not None:
            entry["description"] = self.description
        if self.default_value is not None:
            entry["default"] = self.default_value
        if self.allowed_values is not None:
            entry["allowedValues"] = list(self.allowed_values)
        if self.min_items is not None:
            entry["minItems"] = self.min_items
        if self.max_items is not None:
            entry["maxItems"] = self.max_items
        return entry


@dataclass(frozen=True)
class Document:
    """
    A validated, immutable document. Build one with DocumentBuilder.

    Step order is execution order.
    """
    description: str
    document_type: DocumentType
    schema_version: str
    steps: Tuple[Step, ...]
    inputs: Tuple[DocumentInput, ...] = ()
    outputs: Tuple[str, ...] = ()
    assume_role: Optional[Variable] = None

    def get_step(self, name: str) -> Step:
        for step in self.steps:
            if step.name == name:
                return step
        raise KeyError(name)

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self.steps]

    def to_dict(self) -> Dict[str, Any]:
        """Serialized document, in the shape the execution service reads."""
        root: Dict[str, Any] = {
            "description": self.description,
            "schemaVersion": self.schema_version,
        }
        if self.assume_role is not None:
            root["assumeRole"] = self.assume_role.print()
        root["parameters"] = {document_input.name: document_input.to_entry() for document_input in self.inputs}
        if self.outputs:
            root["outputs"] = list(self.outputs)
        root["mainSteps"] = [step.to_entry() for step in self.steps]
        return root

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, default_flow_style=False)

    def simulate(self, environment, inputs: Optional[Dict[str, Any]] = None):
        """Run a simulation of this document; see ``Simulation.run``."""
        from ..simulation.driver import Simulation
        return Simulation(self, environment).run(inputs)

"""Output descriptors: named, typed extraction rules over invocation results."""

from dataclasses import dataclass, field
from typing import Any, Dict

from ..variables.types import DataType, coerce, validate_name
from .selector import Selector, compile_selector


@dataclass(frozen=True)
class OutputDescriptor:
    """
    A value a step promises to expose after it executes.

    Attributes:
        name: Output name, unique within its step
        output_type: Declared type the extracted value is coerced to
        selector: Path into the step's raw invocation result
    """
    name: str
    output_type: DataType
    selector: str
    compiled: Selector = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        validate_name(self.name, "output")
        object.__setattr__(self, 'output_type', DataType(self.output_type))
        object.__setattr__(self, 'compiled', compile_selector(self.selector))

    def extract(self, raw_result: Any) -> Any:
        """
        Apply the selector and coerce the match to the declared type.

        Raises:
            SelectorNotFoundError: If the selector matches nothing
            TypeCoercionError: If the match cannot be coerced
        """
        return coerce(self.compiled.evaluate(raw_result), self.output_type)

    def to_entry(self) -> Dict[str, Any]:
        """Serialized form used by steps whose outputs are author declared."""
        return {
            "Name": self.name,
            "Selector": self.selector,
            "Type": self.output_type.value,
        }

"""stepdoc exceptions."""

from typing import Any, List, Optional
from dataclasses import dataclass


@dataclass
class ValidationError:
    """Single validation error."""
    message: str
    path: str = ""
    exit_code: int = 2


class StepDocError(Exception):
    """Base class for every error raised by stepdoc."""


class DefinitionError(StepDocError):
    """Raised while a document is being declared.

    Definition errors are always fatal at construction time and are never
    deferred to serialization or simulation.
    """
    exit_code = 2


class InvalidNameError(DefinitionError):
    """Raised when a step, output or parameter name is not a valid identifier."""

    def __init__(self, kind: str, name: Any):
        self.kind = kind
        self.name = name
        super().__init__(f"Invalid {kind} name {name!r}: use letters, digits, '_' or '-'")


class DuplicateStepNameError(DefinitionError):
    """Raised when a step name is registered twice in one document."""

    def __init__(self, step_name: str):
        self.step_name = step_name
        super().__init__(f"Duplicate step name '{step_name}'")


class EmptyDocumentError(DefinitionError):
    """Raised when a document is built without any steps."""

    def __init__(self):
        super().__init__("Document has no steps; add at least one step before building")


class MissingRequiredPropertyError(DefinitionError):
    """Raised when a step is constructed without one of its required properties."""

    def __init__(self, step_name: str, property_name: str):
        self.step_name = step_name
        self.property_name = property_name
        super().__init__(f"Step '{step_name}': missing required property '{property_name}'")


class UnknownPropertyError(DefinitionError):
    """Raised when a step is given a property its action does not declare."""

    def __init__(self, step_name: str, property_name: str):
        self.step_name = step_name
        self.property_name = property_name
        super().__init__(f"Step '{step_name}': unknown property '{property_name}'")


class VariableTypeError(DefinitionError):
    """Raised when a variable's type does not match what a property expects."""

    def __init__(self, property_name: str, expected: Any, actual: Any, step_name: Optional[str] = None):
        self.step_name = step_name
        self.property_name = property_name
        self.expected = expected
        self.actual = actual
        prefix = f"Step '{step_name}': " if step_name else ""
        super().__init__(f"{prefix}property '{property_name}' expects {expected}, got {actual}")


class TemplateError(DefinitionError):
    """Raised when a format string does not match its variables."""


class InvalidSelectorError(DefinitionError):
    """Raised when an output selector cannot be parsed."""

    def __init__(self, selector: str, reason: str):
        self.selector = selector
        self.reason = reason
        super().__init__(f"Invalid selector {selector!r}: {reason}")


class DocumentValidationError(DefinitionError):
    """Raised when document validation fails.

    Carries every problem found so callers (the CLI in particular) can
    report them together and map them to an exit code.
    """

    def __init__(self, errors: List[ValidationError]):
        self.errors = errors

        messages = []
        for error in errors:
            if error.path:
                messages.append(f"Validation error at {error.path}: {error.message}")
            else:
                messages.append(f"Validation error: {error.message}")

        super().__init__("\n".join(messages))


class SimulationError(StepDocError):
    """Raised when a simulation run faults.

    Attributed to the step (and property, when known) that caused it.
    """
    exit_code = 3

    def __init__(self, message: str, step_name: Optional[str] = None, property_name: Optional[str] = None):
        self.step_name = step_name
        self.property_name = property_name
        self.detail = message
        super().__init__(self._format(message))

    def _format(self, message: str) -> str:
        if self.step_name and self.property_name:
            return f"Step '{self.step_name}' property '{self.property_name}': {message}"
        if self.step_name:
            return f"Step '{self.step_name}': {message}"
        return message

    def attribute(self, step_name: str, property_name: Optional[str] = None) -> "SimulationError":
        """Attach step and property names if they are not set yet."""
        if self.step_name is None:
            self.step_name = step_name
        if self.property_name is None:
            self.property_name = property_name
        self.args = (self._format(self.detail),)
        return self


class UnresolvedReferenceError(SimulationError):
    """Raised when a reference names an output that has not been produced."""

    def __init__(self, key: Any, step_name: Optional[str] = None, property_name: Optional[str] = None):
        self.key = key
        super().__init__(f"unresolved reference '{{{{{key}}}}}'", step_name, property_name)


class SelectorNotFoundError(SimulationError):
    """Raised when a selector matches nothing in an invocation result."""

    def __init__(self, selector: str, reason: str, step_name: Optional[str] = None,
                 property_name: Optional[str] = None):
        self.selector = selector
        super().__init__(f"selector {selector!r} matched nothing ({reason})", step_name, property_name)


class TypeCoercionError(SimulationError):
    """Raised when a value cannot be coerced to its declared data type."""

    def __init__(self, value: Any, expected: Any, step_name: Optional[str] = None,
                 property_name: Optional[str] = None):
        self.value = value
        self.expected = expected
        super().__init__(f"cannot coerce {value!r} to {expected}", step_name, property_name)


class MissingRequiredInputError(SimulationError):
    """Raised when a declared document input has neither a value nor a default."""

    def __init__(self, input_name: str):
        self.input_name = input_name
        super().__init__(f"missing required input '{input_name}'")


class DuplicateOutputError(SimulationError):
    """Raised when an output table key would be written twice."""

    def __init__(self, key: Any):
        self.key = key
        super().__init__(f"output '{key}' has already been recorded")


class EnvironmentBusyError(SimulationError):
    """Raised when an environment is claimed by two overlapping runs."""

    def __init__(self):
        super().__init__("environment is already in use by another simulation run")


class TransportError(StepDocError):
    """Raised when the external script bridge cannot produce a result.

    Transport problems (process launch, timeout, unreadable output) are kept
    distinct from a script that ran and reported failure.
    """

    def __init__(self, message: str, context: Optional[dict] = None):
        self.context = context or {}
        super().__init__(message)

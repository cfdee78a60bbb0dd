"""Append-only document builder with reference ordering validation."""

import logging
import weakref
from typing import Dict, List, Optional, Set, Union

from ..exceptions import (
    DefinitionError,
    DocumentValidationError,
    DuplicateStepNameError,
    EmptyDocumentError,
    ValidationError,
)
from ..steps.base import Step
from ..variables.types import ReferenceKey
from ..variables.variable import HardCodedString, Variable
from .document import Document, DocumentInput, DocumentType


logger = logging.getLogger(__name__)

# A step belongs to at most one builder
_STEP_OWNERS: "weakref.WeakKeyDictionary[Step, DocumentBuilder]" = weakref.WeakKeyDictionary()


class DocumentBuilder:
    """
    Collects steps in declaration order and builds a Document.

    Steps are append-only: there is no removal or reordering. ``build``
    checks that the document is non-empty and that every reference points
    at a declared input or at an output of a strictly earlier step.
    """

    def __init__(
        self,
        description: str = "",
        document_type: Union[str, DocumentType] = DocumentType.COMMAND,
        assume_role: Optional[Union[str, Variable]] = None,
        schema_version: Optional[str] = None,
    ):
        """
        Initialize builder.

        Args:
            description: Document description
            document_type: Command or Automation
            assume_role: Role for Automation documents (string or variable)
            schema_version: Override of the document type's schema version
        """
        try:
            self.document_type = DocumentType(document_type)
        except ValueError:
            raise DefinitionError(
                f"Unknown document type {document_type!r}; expected one of {[t.value for t in DocumentType]}"
            )

        if assume_role is not None and self.document_type != DocumentType.AUTOMATION:
            raise DefinitionError("assumeRole is only supported by Automation documents")
        if isinstance(assume_role, str):
            assume_role = HardCodedString(assume_role)

        self.description = description
        self.assume_role = assume_role
        self.schema_version = schema_version or self.document_type.default_schema_version
        self._steps: List[Step] = []
        self._step_names: Set[str] = set()
        self._inputs: Dict[str, DocumentInput] = {}
        self._outputs: List[str] = []

    @property
    def steps(self) -> List[Step]:
        return list(self._steps)

    @property
    def inputs(self) -> List[DocumentInput]:
        return list(self._inputs.values())

    def add_input(self, document_input: DocumentInput) -> DocumentInput:
        if document_input.name in self._inputs:
            raise DefinitionError(f"Duplicate input name '{document_input.name}'")
        self._inputs[document_input.name] = document_input
        return document_input

    def add_output(self, output: str) -> None:
        """Declare a document output as ``Step.Output``."""
        key = ReferenceKey.parse(output)
        if key.step is None:
            raise DefinitionError(f"Document output '{output}' must be written as 'Step.Output'")
        self._outputs.append(str(key))

    def add_step(self, step: Step) -> Step:
        """
        Append a step.

        Raises:
            DuplicateStepNameError: If a step with the same name exists
            DefinitionError: If the step already belongs to another document
        """
        if not isinstance(step, Step):
            raise DefinitionError(f"Expected a Step, got {type(step).__name__}")
        if step.name in self._step_names:
            raise DuplicateStepNameError(step.name)
        owner = _STEP_OWNERS.get(step)
        if owner is not None and owner is not self:
            raise DefinitionError(f"Step '{step.name}' already belongs to another document")

        _STEP_OWNERS[step] = self
        self._steps.append(step)
        self._step_names.add(step.name)
        logger.debug(f"Added {step.action} step '{step.name}'")
        return step

    def build(self) -> Document:
        """
        Validate and freeze the document.

        Raises:
            EmptyDocumentError: If no steps were added
            DocumentValidationError: If any reference cannot be satisfied
        """
        if not self._steps:
            raise EmptyDocumentError()

        errors = self._validate_references()
        if errors:
            raise DocumentValidationError(errors)

        return Document(
            description=self.description,
            document_type=self.document_type,
            schema_version=self.schema_version,
            steps=tuple(self._steps),
            inputs=tuple(self._inputs.values()),
            outputs=tuple(self._outputs),
            assume_role=self.assume_role,
        )

    def _validate_references(self) -> List[ValidationError]:
        errors: List[ValidationError] = []
        declared_later = {step.name for step in self._steps}
        earlier: Dict[str, Step] = {}

        if self.assume_role is not None:
            for key in sorted(self.assume_role.required_inputs(), key=str):
                self._check_key(key, earlier, declared_later, "assumeRole", errors)

        for index, step in enumerate(self._steps):
            path = f"mainSteps[{index}] ({step.name})"
            for key in sorted(step.list_required_inputs(), key=str):
                self._check_key(key, earlier, declared_later, path, errors)
            earlier[step.name] = step

        for output in self._outputs:
            self._check_key(ReferenceKey.parse(output), earlier, declared_later, "outputs", errors)

        return errors

    def _check_key(
        self,
        key: ReferenceKey,
        earlier: Dict[str, Step],
        all_names: Set[str],
        path: str,
        errors: List[ValidationError],
    ) -> None:
        if key.step is None:
            if key.output not in self._inputs:
                errors.append(ValidationError(f"reference to undeclared input '{key.output}'", path))
            return

        step = earlier.get(key.step)
        if step is None:
            if key.step in all_names:
                errors.append(ValidationError(
                    f"reference '{key}' points at step '{key.step}', which is not declared earlier", path
                ))
            else:
                errors.append(ValidationError(f"reference '{key}' points at unknown step '{key.step}'", path))
            return

        if key.output not in {descriptor.name for descriptor in step.list_outputs()}:
            errors.append(ValidationError(f"step '{key.step}' declares no output '{key.output}'", path))

"""Document definition loader with strict validation.

Definitions are YAML files in the same shape as the serialized document.
Placeholder strings become references: a string that is exactly
``{{Name}}`` or ``{{Step.Output}}`` is a reference typed by the property it
is assigned to, and a string with placeholders among other text becomes a
format template. Everything else is a literal.
"""

import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import yaml

from stepdoc.document.builder import DocumentBuilder
from stepdoc.document.document import SCHEMA_VERSIONS, Document, DocumentInput, DocumentType
from stepdoc.exceptions import DefinitionError, DocumentValidationError, ValidationError
from stepdoc.outputs.descriptor import OutputDescriptor
from stepdoc.steps.base import Step, StepProperty
from stepdoc.steps.registry import StepRegistry
from stepdoc.variables.types import DataType, matches_type
from stepdoc.variables.variable import HardCodedValue, Reference, StringFormat, Variable


class PreservingLoader(yaml.SafeLoader):
    """YAML loader that keeps 'on', 'off', 'yes' and 'no' as strings."""
    pass


# Only true/false resolve to booleans; 'yes', 'no', 'on', 'off' stay literal strings
PreservingLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != 'tag:yaml.org,2002:bool']
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
PreservingLoader.add_implicit_resolver(
    'tag:yaml.org,2002:bool',
    re.compile(r'^(?:true|True|TRUE|false|False|FALSE)$'),
    list('tTfF'),
)


PLACEHOLDER_PATTERN = re.compile(r'\{\{\s*([A-Za-z0-9_\-]+(?:\.[A-Za-z0-9_\-]+)?)\s*\}\}')


def parse_variable(value: Any, data_type: DataType) -> Variable:
    """
    Turn a raw definition value into a variable.

    Args:
        value: Value read from the definition file
        data_type: Type the receiving property expects

    Returns:
        Reference, StringFormat or literal variable

    Raises:
        DefinitionError: If the literal cannot be represented
    """
    if isinstance(value, str):
        matches = list(PLACEHOLDER_PATTERN.finditer(value))
        if not matches:
            return HardCodedValue(value, DataType.STRING)
        if len(matches) == 1 and matches[0].group(0) == value:
            return Reference(matches[0].group(1), data_type)

        # Mixed text and placeholders: build a %s template
        fmt_parts: List[str] = []
        variables: List[Variable] = []
        last = 0
        for match in matches:
            fmt_parts.append(value[last:match.start()].replace('%', '%%'))
            fmt_parts.append('%s')
            variables.append(Reference(match.group(1), DataType.STRING))
            last = match.end()
        fmt_parts.append(value[last:].replace('%', '%%'))
        return StringFormat(''.join(fmt_parts), variables)

    if matches_type(value, data_type):
        return HardCodedValue(value, data_type)
    for candidate in DataType:
        if matches_type(value, candidate):
            return HardCodedValue(value, candidate)
    raise DefinitionError(f"Unsupported literal value {value!r}")


class DocumentLoader:
    """Loads and validates document definitions."""

    KNOWN_FIELDS = {
        'description', 'schemaVersion', 'documentType', 'assumeRole',
        'parameters', 'outputs', 'mainSteps',
    }
    STEP_FIELDS = {'name', 'action', 'inputs', 'outputs', 'onFailure'}
    INPUT_FIELDS = {'type', 'description', 'default', 'allowedValues', 'minItems', 'maxItems'}

    def __init__(self, registry: Optional[StepRegistry] = None):
        """Initialize loader with a step registry (built-ins by default)."""
        self.registry = registry or StepRegistry()
        self.errors: List[ValidationError] = []

    def load(self, document_path: Union[str, Path]) -> Document:
        """Load and validate a definition file."""
        try:
            with open(document_path, 'r') as f:
                definition = yaml.load(f, Loader=PreservingLoader)
        except (OSError, yaml.YAMLError) as e:
            self.errors = []
            self._add_error(f"Failed to load document: {e}")
            self._raise_validation_errors()
        return self.load_definition(definition)

    def load_string(self, text: str) -> Document:
        try:
            definition = yaml.load(text, Loader=PreservingLoader)
        except yaml.YAMLError as e:
            self.errors = []
            self._add_error(f"Failed to parse document: {e}")
            self._raise_validation_errors()
        return self.load_definition(definition)

    def load_definition(self, definition: Any) -> Document:
        """
        Validate an already parsed definition and build the document.

        Raises:
            DocumentValidationError: With every problem found
        """
        self.errors = []

        if definition is None or not isinstance(definition, dict):
            self._add_error("Document must be a YAML object/dictionary")
            self._raise_validation_errors()

        for key in definition.keys():
            if key not in self.KNOWN_FIELDS:
                self._add_error(f"Unknown field '{key}'")

        builder = self._create_builder(definition)
        if builder is None:
            self._raise_validation_errors()

        self._load_parameters(definition.get('parameters'), builder)

        steps = definition.get('mainSteps')
        if not steps:
            self._add_error("'mainSteps' field is required and must not be empty")
        elif not isinstance(steps, list):
            self._add_error("'mainSteps' must be a list")
        else:
            for index, step_def in enumerate(steps):
                self._load_step(index, step_def, builder)

        self._load_outputs(definition.get('outputs'), builder)

        if self.errors:
            self._raise_validation_errors()

        try:
            return builder.build()
        except DocumentValidationError as e:
            self.errors.extend(e.errors)
            self._raise_validation_errors()

    def _create_builder(self, definition: Dict[str, Any]) -> Optional[DocumentBuilder]:
        description = definition.get('description', '')
        if not isinstance(description, str):
            self._add_error(f"'description' must be a string, got {type(description).__name__}")
            description = ''

        schema_version = definition.get('schemaVersion')
        if schema_version is not None and not isinstance(schema_version, str):
            self._add_error(f"'schemaVersion' must be a string, got {type(schema_version).__name__}")
            schema_version = None

        document_type = definition.get('documentType')
        if document_type is None:
            # Printed documents carry no documentType; the schema version implies it
            document_type = DocumentType.COMMAND
            for candidate, version in SCHEMA_VERSIONS.items():
                if version == schema_version:
                    document_type = candidate
        assume_role = definition.get('assumeRole')
        if assume_role is not None:
            if not isinstance(assume_role, str):
                self._add_error("'assumeRole' must be a string")
                assume_role = None
            else:
                assume_role = parse_variable(assume_role, DataType.STRING)

        try:
            return DocumentBuilder(
                description=description,
                document_type=document_type,
                assume_role=assume_role,
                schema_version=schema_version,
            )
        except DefinitionError as e:
            self._add_error(str(e))
            return None

    def _load_parameters(self, parameters: Any, builder: DocumentBuilder):
        if parameters is None:
            return
        if not isinstance(parameters, dict):
            self._add_error("'parameters' must be a dictionary")
            return

        for name, config in parameters.items():
            path = f"parameters.{name}"
            if not isinstance(config, dict):
                self._add_error("parameter must be a dictionary", path)
                continue
            for key in config:
                if key not in self.INPUT_FIELDS:
                    self._add_error(f"unknown parameter field '{key}'", path)

            try:
                input_type = DataType(config.get('type'))
            except ValueError:
                self._add_error(
                    f"'type' must be one of {[t.value for t in DataType]}, got {config.get('type')!r}", path
                )
                continue

            allowed = config.get('allowedValues')
            if allowed is not None and not isinstance(allowed, list):
                self._add_error("'allowedValues' must be a list", path)
                continue
            try:
                builder.add_input(DocumentInput(
                    name=name,
                    input_type=input_type,
                    description=config.get('description'),
                    default_value=config.get('default'),
                    allowed_values=tuple(allowed) if allowed is not None else None,
                    min_items=config.get('minItems'),
                    max_items=config.get('maxItems'),
                ))
            except DefinitionError as e:
                self._add_error(str(e), path)

    def _load_step(self, index: int, step_def: Any, builder: DocumentBuilder):
        """Validate one step definition and add it to the builder."""
        path = f"mainSteps[{index}]"
        if not isinstance(step_def, dict):
            self._add_error("step must be a dictionary", path)
            return

        for key in step_def:
            if key not in self.STEP_FIELDS:
                self._add_error(f"unknown step field '{key}'", path)

        name = step_def.get('name')
        if not name:
            self._add_error("missing required 'name' field", path)
            return
        path = f"{path} ({name})"

        action = step_def.get('action')
        step_class = self.registry.get(action) if isinstance(action, str) else None
        if step_class is None:
            self._add_error(f"unknown action {action!r}; known: {self.registry.list_actions()}", path)
            return

        inputs = step_def.get('inputs') or {}
        if not isinstance(inputs, dict):
            self._add_error("'inputs' must be a dictionary", path)
            return

        kwargs: Dict[str, Any] = {}
        for key, raw in inputs.items():
            prop = step_class.property_for_key(key)
            if prop is None:
                self._add_error(f"unknown input '{key}' for action '{action}'", path)
                continue
            try:
                kwargs[prop.name] = self._parse_property(prop, key, raw)
            except DefinitionError as e:
                self._add_error(f"input '{key}': {e}", path)

        if 'outputs' in step_def:
            if not step_class.declares_outputs:
                self._add_error(f"action '{action}' does not accept declared outputs", path)
            else:
                kwargs['outputs'] = self._parse_step_outputs(step_def['outputs'], path)

        if 'onFailure' in step_def:
            kwargs['on_failure'] = step_def['onFailure']

        try:
            builder.add_step(step_class(name, **kwargs))
        except DefinitionError as e:
            self._add_error(str(e), path)

    def _parse_property(self, prop: StepProperty, key: str, raw: Any) -> Any:
        data_type = prop.type_for_key(key)
        if prop.many:
            if isinstance(raw, str):
                match = PLACEHOLDER_PATTERN.fullmatch(raw)
                if match:
                    return Reference(match.group(1), DataType.STRING_LIST)
                return [parse_variable(raw, data_type)]
            if isinstance(raw, list):
                return [parse_variable(item, data_type) for item in raw]
        return parse_variable(raw, data_type)

    def _parse_step_outputs(self, outputs: Any, path: str) -> List[OutputDescriptor]:
        if not isinstance(outputs, list):
            self._add_error("'outputs' must be a list", path)
            return []

        descriptors = []
        for i, output in enumerate(outputs):
            if not isinstance(output, dict) or not {'Name', 'Selector', 'Type'} <= set(output):
                self._add_error(f"outputs[{i}] must have 'Name', 'Selector' and 'Type'", path)
                continue
            try:
                descriptors.append(OutputDescriptor(output['Name'], DataType(output['Type']), output['Selector']))
            except ValueError:
                self._add_error(f"outputs[{i}]: unknown type {output['Type']!r}", path)
            except DefinitionError as e:
                self._add_error(f"outputs[{i}]: {e}", path)
        return descriptors

    def _load_outputs(self, outputs: Any, builder: DocumentBuilder):
        if outputs is None:
            return
        if not isinstance(outputs, list):
            self._add_error("'outputs' must be a list of 'Step.Output' strings")
            return
        for output in outputs:
            try:
                builder.add_output(output)
            except DefinitionError as e:
                self._add_error(str(e), "outputs")

    def _add_error(self, message: str, path: str = "", exit_code: int = 2):
        """Add validation error."""
        self.errors.append(ValidationError(message, path, exit_code))

    def _raise_validation_errors(self):
        """Raise DocumentValidationError with accumulated errors."""
        raise DocumentValidationError(self.errors)

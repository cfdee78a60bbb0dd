"""
Execute-script step: calls a handler function in an inline Python script.

The script's return value becomes ``$.Payload`` of the raw result, so every
author-declared output selector must start with ``$.Payload``.
"""

from typing import Any, Dict, List, Optional, Sequence

from ..exceptions import DefinitionError, TransportError
from ..outputs.descriptor import OutputDescriptor
from ..variables.types import DataType
from .base import InvocationResult, Step, StepProperty


PAYLOAD_SELECTOR_PREFIX = "$.Payload"


class ExecuteScriptStep(Step):
    """Runs ``Handler`` from ``Script`` with ``InputPayload`` as its argument."""

    action = "executeScript"
    declares_outputs = True
    properties = (
        StepProperty("runtime", "Runtime", (DataType.STRING,), required=True),
        StepProperty("handler", "Handler", (DataType.STRING,), required=True),
        StepProperty("script", "Script", (DataType.STRING,), required=True),
        StepProperty("input_payload", "InputPayload", (DataType.MAP,)),
    )

    def __init__(self, name: str, outputs: Optional[Sequence[OutputDescriptor]] = None, **kwargs: Any):
        declared = tuple(outputs or ())
        for descriptor in declared:
            if not isinstance(descriptor, OutputDescriptor):
                raise DefinitionError(f"Step '{name}': outputs must be OutputDescriptor instances")
            if not descriptor.selector.startswith(PAYLOAD_SELECTOR_PREFIX):
                raise DefinitionError(
                    f"Step '{name}': output '{descriptor.name}' selector must start with "
                    f"'{PAYLOAD_SELECTOR_PREFIX}', got {descriptor.selector!r}"
                )
        self.outputs = declared
        super().__init__(name, **kwargs)

    def entry_outputs(self) -> List[Dict[str, Any]]:
        return [descriptor.to_entry() for descriptor in self.outputs]

    def execute(self, resolved_inputs: Dict[str, Any], environment) -> InvocationResult:
        handler = resolved_inputs["Handler"]
        payload = resolved_inputs.get("InputPayload", {})

        try:
            result = environment.execute_script(resolved_inputs["Script"], handler, payload)
        except TransportError as e:
            return InvocationResult.failure({
                "type": "transport_error",
                "message": str(e),
                "context": e.context,
            })

        if not result.ok:
            return InvocationResult.failure(
                {
                    "type": "script_failure",
                    "message": f"Handler '{handler}' failed",
                    "context": {"payload": result.payload},
                },
                {"Payload": result.payload},
            )
        return InvocationResult.success({"Payload": result.payload})

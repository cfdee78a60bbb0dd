"""Sleep step."""

from typing import Any, Dict

from ..variables.types import DataType
from .base import InvocationResult, Step, StepProperty


class SleepStep(Step):
    """Pauses for ``durationSeconds``; the mock environment only records it."""

    action = "sleep"
    properties = (
        StepProperty("duration_seconds", "durationSeconds", (DataType.INTEGER,), required=True),
    )

    def execute(self, resolved_inputs: Dict[str, Any], environment) -> InvocationResult:
        seconds = resolved_inputs["durationSeconds"]
        if seconds < 0:
            return InvocationResult.failure({
                "type": "invalid_duration",
                "message": f"Sleep duration must not be negative, got {seconds}",
                "context": {"durationSeconds": seconds},
            })
        environment.sleep(seconds)
        return InvocationResult.success({"durationSeconds": seconds})

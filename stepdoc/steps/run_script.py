"""Shell script step: runs each command line in order."""

from typing import Any, Dict, List

from ..outputs.descriptor import OutputDescriptor
from ..variables.types import DataType
from .base import InvocationResult, Step, StepProperty


class RunScriptStep(Step):
    """
    Runs a list of shell command lines through the environment.

    The first command with a non-zero exit code stops the step and reports
    FAILURE; later commands are not run.
    """

    action = "runScript"
    properties = (
        StepProperty("run_command", "runCommand", (DataType.STRING,), required=True, many=True),
        StepProperty("working_directory", "workingDirectory", (DataType.STRING,)),
        StepProperty("timeout_seconds", "timeoutSeconds", (DataType.INTEGER,)),
    )
    outputs = (
        OutputDescriptor("Output", DataType.STRING, "$.Output"),
        OutputDescriptor("ExitCode", DataType.INTEGER, "$.ExitCode"),
    )

    def execute(self, resolved_inputs: Dict[str, Any], environment) -> InvocationResult:
        commands: List[str] = resolved_inputs["runCommand"]
        working_directory = resolved_inputs.get("workingDirectory")
        timeout_seconds = resolved_inputs.get("timeoutSeconds")

        output_parts: List[str] = []
        exit_code = 0
        for index, command in enumerate(commands):
            outcome = environment.run_command(command, working_directory, timeout_seconds)
            output_parts.append(outcome.output)
            exit_code = outcome.exit_code
            if not outcome.ok:
                raw = {"Output": "".join(output_parts), "ExitCode": exit_code}
                error = dict(outcome.error or {})
                error.setdefault("type", "exit_code")
                error.setdefault("message", f"Command exited with code {exit_code}")
                error.setdefault("context", {})
                error["context"] = {**error["context"], "command": command, "command_index": index}
                return InvocationResult.failure(error, raw)

        return InvocationResult.success({"Output": "".join(output_parts), "ExitCode": exit_code})

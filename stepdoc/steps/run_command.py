"""Run-command step: sends a command document to a set of targets."""

from typing import Any, Dict

from ..outputs.descriptor import OutputDescriptor
from ..variables.types import DataType
from .base import InvocationResult, Step, StepProperty


DOCUMENT_HASH_TYPES = ("Sha256", "Sha1")


class RunCommandStep(Step):
    """
    Sends a command document to instances or tag-based targets.

    ``targets`` is written as ``InstanceIds`` when it is a StringList and as
    ``Targets`` when it is a MapList. The environment's response must carry
    ``Status``; anything other than ``Success`` is reported as FAILURE.
    """

    action = "runCommand"
    properties = (
        StepProperty("document_name", "DocumentName", (DataType.STRING,), required=True),
        StepProperty("targets", "Targets", (DataType.MAP_LIST, DataType.STRING_LIST), required=True,
                     alias_types=(("InstanceIds", DataType.STRING_LIST),)),
        StepProperty("parameters", "Parameters", (DataType.MAP,)),
        StepProperty("cloud_watch_output_config", "CloudWatchOutputConfig", (DataType.MAP,)),
        StepProperty("comment", "Comment", (DataType.STRING,)),
        StepProperty("document_hash", "DocumentHash", (DataType.STRING,)),
        StepProperty("document_hash_type", "DocumentHashType", (DataType.STRING,),
                     allowed_values=DOCUMENT_HASH_TYPES),
        StepProperty("notification_config", "NotificationConfig", (DataType.MAP,)),
        StepProperty("output_s3_bucket_name", "OutputS3BucketName", (DataType.STRING,)),
        StepProperty("output_s3_key_prefix", "OutputS3KeyPrefix", (DataType.STRING,)),
        StepProperty("service_role_arn", "ServiceRoleArn", (DataType.STRING,)),
        StepProperty("command_timeout_seconds", "TimeoutSeconds", (DataType.INTEGER,)),
        StepProperty("max_concurrency", "MaxConcurrency", (DataType.INTEGER,)),
        StepProperty("max_errors", "MaxErrors", (DataType.INTEGER,)),
    )
    outputs = (
        OutputDescriptor("CommandId", DataType.STRING, "$.CommandId"),
        OutputDescriptor("Status", DataType.STRING, "$.Status"),
        OutputDescriptor("ResponseCode", DataType.INTEGER, "$.ResponseCode"),
        OutputDescriptor("Output", DataType.STRING, "$.Output"),
    )

    def execute(self, resolved_inputs: Dict[str, Any], environment) -> InvocationResult:
        response = environment.send_command(dict(resolved_inputs))
        status = response.get("Status")
        if status != "Success":
            return InvocationResult.failure(
                {
                    "type": "command_failed",
                    "message": f"Command finished with status {status!r}",
                    "context": {
                        "DocumentName": resolved_inputs.get("DocumentName"),
                        "ResponseCode": response.get("ResponseCode"),
                    },
                },
                response,
            )
        return InvocationResult.success(response)

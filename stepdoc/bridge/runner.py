"""
Synchronous bridge to Python functions running in a separate interpreter.

The child process runs ``entry.py``, which imports the target script, calls
the named function with the JSON decoded payload and prints one JSON line:
``{"status": "SUCCESS"|"FAILURE", "Payload": ...}``. Only the last non-empty
line of stdout is the result; everything printed before it is diagnostic.
"""

import json
import logging
import subprocess
import sys
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..exceptions import TransportError


logger = logging.getLogger(__name__)

ENTRY_SCRIPT = Path(__file__).with_name("entry.py")


class ScriptStatus(str, Enum):
    """Outcome reported by the script itself."""
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


@dataclass(frozen=True)
class ScriptResult:
    """Tagged result of a bridged call: the function's value or its error."""
    status: ScriptStatus
    payload: Any = None

    @property
    def ok(self) -> bool:
        return self.status == ScriptStatus.SUCCESS

    @classmethod
    def success(cls, payload: Any) -> "ScriptResult":
        return cls(ScriptStatus.SUCCESS, payload)

    @classmethod
    def failure(cls, payload: Any) -> "ScriptResult":
        return cls(ScriptStatus.FAILURE, payload)

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "Payload": self.payload}


def parse_result(stdout: str) -> ScriptResult:
    """
    Turn a child's stdout into a ScriptResult.

    Args:
        stdout: Decoded standard output of the child process

    Returns:
        Parsed ScriptResult

    Raises:
        TransportError: If there is no result line or it is not a valid envelope
    """
    lines = [line for line in stdout.replace('\r\n', '\n').split('\n') if line.strip()]
    if not lines:
        raise TransportError("Script produced no result line")

    for line in lines[:-1]:
        logger.debug(f"script output: {line}")

    last = lines[-1]
    try:
        envelope = json.loads(last)
    except (json.JSONDecodeError, ValueError) as e:
        raise TransportError(f"Result line is not valid JSON: {e}", {"line": last})

    if not isinstance(envelope, dict) or "status" not in envelope:
        raise TransportError("Result line is missing 'status'", {"line": last})
    try:
        status = ScriptStatus(envelope["status"])
    except ValueError:
        raise TransportError(f"Unknown result status {envelope['status']!r}", {"line": last})

    return ScriptResult(status, envelope.get("Payload"))


class PythonScriptRunner:
    """
    Calls a function in a Python script through a child interpreter.

    ``submit`` returns a future; ``run`` blocks on it. Process-level problems
    raise TransportError, a function that raised comes back as a FAILURE
    ScriptResult.
    """

    def __init__(
        self,
        interpreter: Optional[str] = None,
        timeout_sec: Optional[float] = None,
        max_workers: int = 1,
    ):
        """
        Initialize the runner.

        Args:
            interpreter: Python executable (default: the current interpreter)
            timeout_sec: Per-call timeout; None waits indefinitely
            max_workers: Worker threads backing ``submit``
        """
        self.interpreter = interpreter or sys.executable
        self.timeout_sec = timeout_sec
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="stepdoc-bridge")

    def build_command(self, script: Union[str, Path], function_name: str, payload: Any) -> List[str]:
        return [
            self.interpreter,
            "-u",
            str(ENTRY_SCRIPT),
            str(script),
            function_name,
            json.dumps(payload),
        ]

    def submit(self, script: Union[str, Path], function_name: str, payload: Any = None) -> "Future[ScriptResult]":
        """Start a call and return a future for its result."""
        return self._pool.submit(self._call, script, function_name, payload)

    def run(self, script: Union[str, Path], function_name: str, payload: Any = None) -> ScriptResult:
        """Call the function and wait for its result."""
        return self.submit(script, function_name, payload).result()

    def shutdown(self) -> None:
        self._pool.shutdown(wait=True)

    def _call(self, script: Union[str, Path], function_name: str, payload: Any) -> ScriptResult:
        command = self.build_command(script, function_name, payload)
        logger.debug(f"Calling {function_name} in {script}")

        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                timeout=self.timeout_sec,
            )
        except subprocess.TimeoutExpired:
            raise TransportError(
                f"Script call timed out after {self.timeout_sec} seconds",
                {"script": str(script), "function": function_name, "timeout_sec": self.timeout_sec},
            )
        except OSError as e:
            raise TransportError(
                f"Failed to start interpreter: {e}",
                {"interpreter": self.interpreter},
            )

        stdout = completed.stdout.decode('utf-8', errors='replace')
        if completed.returncode != 0:
            stderr = completed.stderr.decode('utf-8', errors='replace')
            raise TransportError(
                f"Interpreter exited with code {completed.returncode}",
                {"exit_code": completed.returncode, "stderr": stderr[-2000:]},
            )

        return parse_result(stdout)

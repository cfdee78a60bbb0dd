"""
Execution environments steps delegate their side effects to.

An Environment exposes one operation per supported step action. The
LocalEnvironment performs real local side effects; the MockEnvironment
records every call and answers with canned results, for tests and dry runs.
"""

import logging
import subprocess
import tempfile
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..bridge.runner import PythonScriptRunner, ScriptResult, ScriptStatus
from ..exceptions import EnvironmentBusyError


logger = logging.getLogger(__name__)


@dataclass
class CommandOutcome:
    """Result of running one command line."""
    exit_code: int = 0
    output: str = ""
    error: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class Environment:
    """
    Contract every environment implements.

    An environment is owned by one simulation run at a time; ``claim`` and
    ``release`` enforce that.
    """

    def __init__(self):
        self._lock = threading.Lock()

    def claim(self) -> None:
        if not self._lock.acquire(blocking=False):
            raise EnvironmentBusyError()

    def release(self) -> None:
        if self._lock.locked():
            self._lock.release()

    def close(self) -> None:
        """Free resources held by the environment."""
        pass

    def __enter__(self) -> "Environment":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def run_command(
        self,
        command: str,
        working_directory: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
    ) -> CommandOutcome:
        """Run one shell command line."""
        raise NotImplementedError

    def send_command(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """Send a command document to remote targets; returns the raw response."""
        raise NotImplementedError

    def sleep(self, seconds: int) -> None:
        raise NotImplementedError

    def execute_script(self, script: str, handler: str, payload: Dict[str, Any]) -> ScriptResult:
        """Call ``handler`` in ``script`` with ``payload``."""
        raise NotImplementedError


class LocalEnvironment(Environment):
    """
    Runs commands and scripts on the local machine.

    Remote command dispatch is not available locally: ``send_command``
    answers with a failed response instead of contacting any service.
    """

    def __init__(self, shell: str = "bash", script_runner: Optional[PythonScriptRunner] = None,
                 cwd: Optional[Path] = None):
        super().__init__()
        self.shell = shell
        self.script_runner = script_runner or PythonScriptRunner()
        self.cwd = cwd

    def run_command(
        self,
        command: str,
        working_directory: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
    ) -> CommandOutcome:
        working_dir = working_directory or (str(self.cwd) if self.cwd else None)
        logger.info(f"Running: {command}")

        try:
            result = subprocess.run(
                [self.shell, "-c", command],
                cwd=working_dir,
                capture_output=True,
                timeout=timeout_seconds,
            )
        except subprocess.TimeoutExpired as e:
            # Timeout: exit code 124, reported as a failed outcome
            return CommandOutcome(
                exit_code=124,
                output=(e.stdout or b"").decode('utf-8', errors='replace'),
                error={
                    "type": "timeout",
                    "message": f"Command timed out after {timeout_seconds} seconds",
                    "context": {"timeout_sec": timeout_seconds},
                },
            )
        except OSError as e:
            return CommandOutcome(
                exit_code=1,
                error={"type": "execution_error", "message": str(e), "context": {}},
            )

        output = result.stdout.decode('utf-8', errors='replace')
        error = None
        if result.returncode != 0:
            error = {
                "type": "exit_code",
                "message": f"Command exited with code {result.returncode}",
                "context": {"stderr": result.stderr.decode('utf-8', errors='replace')},
            }
        return CommandOutcome(exit_code=result.returncode, output=output, error=error)

    def send_command(self, request: Dict[str, Any]) -> Dict[str, Any]:
        logger.warning(f"Cannot send command document '{request.get('DocumentName')}' from a local environment")
        return {
            "Status": "Failed",
            "ResponseCode": 1,
            "Output": "Remote command dispatch is not available in a local environment",
        }

    def sleep(self, seconds: int) -> None:
        time.sleep(seconds)

    def execute_script(self, script: str, handler: str, payload: Dict[str, Any]) -> ScriptResult:
        # The bridge imports from a file, so inline source is written out first
        with tempfile.TemporaryDirectory(prefix="stepdoc-") as tmpdir:
            script_path = Path(tmpdir) / "script.py"
            script_path.write_text(script)
            return self.script_runner.run(script_path, handler, payload)

    def close(self) -> None:
        self.script_runner.shutdown()


@dataclass
class RecordedScript:
    """One execute_script call seen by a MockEnvironment."""
    script: str
    handler: str
    payload: Dict[str, Any] = field(default_factory=dict)


class MockEnvironment(Environment):
    """
    Recording environment for tests and dry runs.

    Every call is recorded; results come from canned tables, falling back to
    success. Canned values for ``send_command`` and ``execute_script`` may be
    callables receiving the request.
    """

    def __init__(
        self,
        command_outcomes: Optional[Dict[str, CommandOutcome]] = None,
        send_command_responses: Optional[Dict[str, Any]] = None,
        script_results: Optional[Dict[str, Any]] = None,
    ):
        super().__init__()
        self.command_outcomes = dict(command_outcomes or {})
        self.send_command_responses = dict(send_command_responses or {})
        self.script_results = dict(script_results or {})

        self.previous_commands: List[str] = []
        self.sent_commands: List[Dict[str, Any]] = []
        self.sleeps: List[int] = []
        self.executed_scripts: List[RecordedScript] = []

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "MockEnvironment":
        """
        Load canned responses from YAML.

        Recognized keys: ``commands`` (command line -> exit_code/output),
        ``sendCommand`` (document name -> response map) and ``scripts``
        (handler -> {status, Payload}).
        """
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Mock responses file must contain a mapping, got {type(data).__name__}")

        for key in ('commands', 'sendCommand', 'scripts'):
            section = data.get(key)
            if section is not None and not isinstance(section, dict):
                raise ValueError(f"'{key}' must be a mapping, got {type(section).__name__}")

        outcomes = {}
        for command, entry in (data.get('commands') or {}).items():
            entry = entry or {}
            if not isinstance(entry, dict):
                raise ValueError(f"Mock command '{command}' must be a mapping, got {type(entry).__name__}")
            outcomes[command] = CommandOutcome(
                exit_code=int(entry.get('exit_code', 0)),
                output=str(entry.get('output', '')),
            )

        scripts = {}
        for handler, entry in (data.get('scripts') or {}).items():
            if isinstance(entry, dict) and 'status' in entry:
                scripts[handler] = ScriptResult(ScriptStatus(entry['status']), entry.get('Payload'))
            else:
                scripts[handler] = ScriptResult.success(entry)

        responses = data.get('sendCommand') or {}
        for document_name, response in responses.items():
            if not isinstance(response, dict):
                raise ValueError(
                    f"Mock sendCommand response for '{document_name}' must be a mapping, "
                    f"got {type(response).__name__}"
                )

        return cls(
            command_outcomes=outcomes,
            send_command_responses=responses,
            script_results=scripts,
        )

    def run_command(
        self,
        command: str,
        working_directory: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
    ) -> CommandOutcome:
        self.previous_commands.append(command)
        return self.command_outcomes.get(command, CommandOutcome())

    def send_command(self, request: Dict[str, Any]) -> Dict[str, Any]:
        self.sent_commands.append(request)
        canned = self.send_command_responses.get(request.get('DocumentName'))
        if callable(canned):
            return canned(request)
        if canned is not None:
            return dict(canned)
        return {
            "CommandId": f"command-{len(self.sent_commands)}",
            "Status": "Success",
            "ResponseCode": 0,
            "Output": "",
        }

    def sleep(self, seconds: int) -> None:
        self.sleeps.append(seconds)

    def execute_script(self, script: str, handler: str, payload: Dict[str, Any]) -> ScriptResult:
        self.executed_scripts.append(RecordedScript(script, handler, dict(payload or {})))
        canned = self.script_results.get(handler)
        if callable(canned):
            canned = canned(payload)
        if isinstance(canned, Exception):
            raise canned
        if isinstance(canned, ScriptResult):
            return canned
        return ScriptResult.success(canned)

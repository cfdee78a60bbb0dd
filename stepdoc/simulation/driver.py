"""
Simulation driver.

Runs a document's steps strictly in declaration order against an
environment, threading each step's extracted outputs into later steps'
inputs through a write-once output table.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..document.document import Document
from ..exceptions import MissingRequiredInputError, SimulationError, TypeCoercionError
from ..steps.base import InvocationResult, OnFailure, ResponseCode, Step
from ..variables.types import coerce
from .environment import Environment
from .table import OutputTable


logger = logging.getLogger(__name__)


class StepState(str, Enum):
    """Per-step state within one run."""
    PENDING = "pending"
    RESOLVING = "resolving"
    EXECUTED = "executed"


class RunStatus(str, Enum):
    """Terminal state of a run."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass
class StepRecord:
    """What happened to one step during a run."""
    name: str
    action: str
    state: StepState = StepState.PENDING
    response_code: Optional[ResponseCode] = None
    resolved_inputs: Optional[Dict[str, Any]] = None
    outputs: Optional[Dict[str, Any]] = None
    raw_result: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, omitting None values."""
        result: Dict[str, Any] = {
            "name": self.name,
            "action": self.action,
            "state": self.state.value,
        }
        if self.response_code is not None:
            result["responseCode"] = self.response_code.value
        if self.resolved_inputs is not None:
            result["inputs"] = self.resolved_inputs
        if self.outputs is not None:
            result["outputs"] = self.outputs
        if self.raw_result is not None:
            result["rawResult"] = self.raw_result
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class SimulationResult:
    """
    Outcome of a simulation run.

    Attributes:
        status: COMPLETED, FAILED (a step reported failure and the run
            stopped) or ABORTED (a fault was raised)
        response_code: FAILURE if any step reported failure
        steps: Step records in declaration order
        outputs: Values of the document's declared outputs
        output_table: Everything recorded, keyed ``Step.Output`` / ``Input``
        failed_step: Name of the step that stopped the run, if any
    """
    status: RunStatus = RunStatus.RUNNING
    response_code: ResponseCode = ResponseCode.SUCCESS
    steps: Dict[str, StepRecord] = field(default_factory=dict)
    outputs: Dict[str, Any] = field(default_factory=dict)
    output_table: Dict[str, Any] = field(default_factory=dict)
    failed_step: Optional[str] = None

    @property
    def executed_steps(self) -> List[str]:
        return [name for name, record in self.steps.items() if record.state == StepState.EXECUTED]

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "status": self.status.value,
            "responseCode": self.response_code.value,
            "steps": [record.to_dict() for record in self.steps.values()],
            "outputs": self.outputs,
        }
        if self.failed_step is not None:
            result["failedStep"] = self.failed_step
        return result


class Simulation:
    """
    Sequential simulation of one document against one environment.

    Each step goes Pending -> Resolving -> Executed. Faults (unresolvable
    references, selectors that match nothing, values of the wrong type)
    abort the run and propagate; failures reported by the environment are
    recorded as data. No step is retried.
    """

    def __init__(self, document: Document, environment: Environment):
        """
        Initialize simulation.

        Args:
            document: Built document to simulate
            environment: Execution surface, exclusively owned for each run
        """
        self.document = document
        self.environment = environment
        self.last_result: Optional[SimulationResult] = None

    def run(self, inputs: Optional[Dict[str, Any]] = None) -> SimulationResult:
        """
        Execute every step in declaration order.

        Args:
            inputs: Values for the document's declared inputs

        Returns:
            SimulationResult (status COMPLETED or FAILED)

        Raises:
            SimulationError: On any fault; the partial result is kept on
                ``last_result`` with status ABORTED
        """
        result = SimulationResult()
        for step in self.document.steps:
            result.steps[step.name] = StepRecord(name=step.name, action=step.action)
        self.last_result = result

        self.environment.claim()
        try:
            table = self._initial_table(inputs or {})
            result.output_table = table.to_dict()
            self._run_steps(table, result)
        except SimulationError as e:
            result.status = RunStatus.ABORTED
            if e.step_name and result.failed_step is None:
                result.failed_step = e.step_name
            logger.error(f"Simulation aborted: {e}")
            raise
        finally:
            self.environment.release()

        if result.status == RunStatus.RUNNING:
            result.status = RunStatus.COMPLETED
        result.outputs = {
            name: result.output_table[name] for name in self.document.outputs if name in result.output_table
        }
        logger.info(f"Simulation {result.status.value}: {len(result.executed_steps)}/{len(result.steps)} steps executed")
        return result

    def _initial_table(self, inputs: Dict[str, Any]) -> OutputTable:
        values: Dict[str, Any] = {}
        declared = {document_input.name: document_input for document_input in self.document.inputs}

        for name, document_input in declared.items():
            if name in inputs:
                value = inputs[name]
                try:
                    value = coerce(value, document_input.input_type)
                except TypeCoercionError as e:
                    raise e.attribute("<inputs>", name)
                if document_input.allowed_values is not None and value not in document_input.allowed_values:
                    raise TypeCoercionError(value, f"one of {list(document_input.allowed_values)}",
                                            "<inputs>", name)
                values[name] = value
            elif document_input.default_value is not None:
                values[name] = document_input.default_value
            else:
                raise MissingRequiredInputError(name)

        for name in inputs:
            if name not in declared:
                logger.warning(f"Ignoring undeclared input '{name}'")

        return OutputTable.from_inputs(values)

    def _run_steps(self, table: OutputTable, result: SimulationResult) -> None:
        for step in self.document.steps:
            record = result.steps[step.name]
            invocation = self._run_step(step, record, table, result)

            if not invocation.ok:
                result.response_code = ResponseCode.FAILURE
                if step.on_failure == OnFailure.CONTINUE:
                    logger.info(f"Step '{step.name}' failed; continuing (onFailure: Continue)")
                    continue
                result.status = RunStatus.FAILED
                result.failed_step = step.name
                logger.info(f"Step '{step.name}' failed; stopping run")
                return

    def _run_step(self, step: Step, record: StepRecord, table: OutputTable,
                  result: SimulationResult) -> InvocationResult:
        record.state = StepState.RESOLVING
        logger.debug(f"Resolving step '{step.name}'")
        try:
            resolved = step.resolve_inputs(table)
        except SimulationError as e:
            record.error = {"type": type(e).__name__, "message": str(e)}
            raise
        record.resolved_inputs = resolved

        invocation = step.invoke(resolved, self.environment)
        record.state = StepState.EXECUTED
        record.response_code = invocation.response_code
        record.raw_result = invocation.raw_result
        record.error = invocation.error

        if invocation.ok:
            try:
                outputs = step.extract_outputs(invocation.raw_result)
            except SimulationError as e:
                record.error = {"type": type(e).__name__, "message": str(e)}
                raise
            record.outputs = outputs
            table.record_outputs(step.name, outputs)
            result.output_table = table.to_dict()

        logger.info(f"Step '{step.name}' executed: {invocation.response_code.value}")
        return invocation

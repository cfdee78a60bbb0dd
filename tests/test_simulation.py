"""Tests for the simulation driver, output table and environments."""

import sys
import threading

import pytest

from stepdoc.bridge import ScriptResult
from stepdoc.document import DocumentBuilder, DocumentInput
from stepdoc.exceptions import (
    DuplicateOutputError,
    EnvironmentBusyError,
    MissingRequiredInputError,
    SelectorNotFoundError,
    TypeCoercionError,
    UnresolvedReferenceError,
)
from stepdoc.outputs import OutputDescriptor
from stepdoc.simulation import (
    CommandOutcome,
    LocalEnvironment,
    MockEnvironment,
    OutputTable,
    RunStatus,
    Simulation,
    StepState,
)
from stepdoc.steps import ExecuteScriptStep, ResponseCode, RunCommandStep, RunScriptStep, SleepStep
from stepdoc.variables import (
    DataType,
    HardCodedNumber,
    HardCodedString,
    HardCodedStringList,
    NumberVariable,
    ReferenceKey,
    StringFormat,
    StringVariable,
)


def shell_document():
    builder = DocumentBuilder("Make a directory")
    builder.add_input(DocumentInput("MyVar", DataType.STRING))
    builder.add_step(RunScriptStep(
        "MyShellScript",
        run_command=[
            HardCodedString("mkdir asdf"),
            StringFormat("some %s string", [StringVariable("MyVar")]),
        ],
    ))
    return builder.build()


def chained_document():
    builder = DocumentBuilder("Send then report")
    send = builder.add_step(RunCommandStep(
        "A", document_name=HardCodedString("AWS-RunShellScript"), targets=HardCodedStringList(["i-1"])
    ))
    builder.add_step(RunScriptStep("B", run_command=[StringFormat("echo %s", [send.output("CommandId")])]))
    builder.add_output("A.CommandId")
    return builder.build()


def script_step(name, selector="$.Payload.total", **kwargs):
    return ExecuteScriptStep(
        name,
        outputs=[OutputDescriptor("Total", DataType.INTEGER, selector)],
        runtime=HardCodedString("python3.11"),
        handler=HardCodedString("handler"),
        script=HardCodedString("def handler(event):\n    return event\n"),
        **kwargs,
    )


class TestSimulation:
    """Sequential execution against the recording environment."""

    def test_shell_script_commands_recorded(self):
        environment = MockEnvironment()

        result = Simulation(shell_document(), environment).run({"MyVar": "amazing"})

        assert environment.previous_commands == ["mkdir asdf", "some amazing string"]
        assert result.status == RunStatus.COMPLETED
        assert result.response_code == ResponseCode.SUCCESS
        assert result.steps["MyShellScript"].state == StepState.EXECUTED
        assert result.output_table["MyShellScript.ExitCode"] == 0

    def test_output_threads_into_later_step(self):
        environment = MockEnvironment()

        result = chained_document().simulate(environment)

        assert environment.previous_commands == ["echo command-1"]
        assert result.outputs == {"A.CommandId": "command-1"}
        assert result.executed_steps == ["A", "B"]
        assert result.steps["B"].resolved_inputs == {"runCommand": ["echo command-1"]}

    def test_input_defaults_and_coercion(self):
        builder = DocumentBuilder()
        builder.add_input(DocumentInput("Seconds", DataType.INTEGER))
        builder.add_input(DocumentInput("Greeting", DataType.STRING, default_value="hi"))
        builder.add_step(SleepStep("Nap", duration_seconds=NumberVariable("Seconds")))
        builder.add_step(RunScriptStep("Say", run_command=[StringFormat("echo %s", [StringVariable("Greeting")])]))
        environment = MockEnvironment()

        result = Simulation(builder.build(), environment).run({"Seconds": "3"})

        assert environment.sleeps == [3]
        assert environment.previous_commands == ["echo hi"]
        assert result.output_table["Seconds"] == 3

    def test_missing_required_input(self):
        simulation = Simulation(shell_document(), MockEnvironment())

        with pytest.raises(MissingRequiredInputError) as exc_info:
            simulation.run({})

        assert exc_info.value.input_name == "MyVar"
        assert simulation.last_result.status == RunStatus.ABORTED

    def test_input_outside_allowed_values(self):
        builder = DocumentBuilder()
        builder.add_input(DocumentInput("Env", DataType.STRING, allowed_values=["dev", "prod"]))
        builder.add_step(RunScriptStep("Deploy", run_command=[StringFormat("deploy %s", [StringVariable("Env")])]))

        with pytest.raises(TypeCoercionError):
            Simulation(builder.build(), MockEnvironment()).run({"Env": "qa"})

    def test_failure_aborts_by_default(self):
        builder = DocumentBuilder()
        builder.add_step(RunScriptStep("Broken", run_command=[HardCodedString("false")]))
        builder.add_step(RunScriptStep("After", run_command=[HardCodedString("echo after")]))
        environment = MockEnvironment(command_outcomes={"false": CommandOutcome(exit_code=1)})

        result = Simulation(builder.build(), environment).run()

        assert result.status == RunStatus.FAILED
        assert result.response_code == ResponseCode.FAILURE
        assert result.failed_step == "Broken"
        assert environment.previous_commands == ["false"]
        assert result.steps["After"].state == StepState.PENDING
        assert result.steps["Broken"].outputs is None

    def test_failure_continue(self):
        builder = DocumentBuilder()
        builder.add_step(RunScriptStep("Broken", on_failure="Continue", run_command=[HardCodedString("false")]))
        builder.add_step(RunScriptStep("After", run_command=[HardCodedString("echo after")]))
        environment = MockEnvironment(command_outcomes={"false": CommandOutcome(exit_code=1)})

        result = Simulation(builder.build(), environment).run()

        assert result.status == RunStatus.COMPLETED
        assert result.response_code == ResponseCode.FAILURE
        assert environment.previous_commands == ["false", "echo after"]
        assert result.to_dict()["steps"][0]["error"]["type"] == "exit_code"

    def test_reference_to_failed_step_output_aborts(self):
        builder = DocumentBuilder()
        broken = builder.add_step(RunScriptStep("Broken", on_failure="Continue",
                                                run_command=[HardCodedString("false")]))
        builder.add_step(RunScriptStep("Uses", run_command=[StringFormat("echo %s", [broken.output("Output")])]))
        environment = MockEnvironment(command_outcomes={"false": CommandOutcome(exit_code=1)})
        simulation = Simulation(builder.build(), environment)

        with pytest.raises(UnresolvedReferenceError) as exc_info:
            simulation.run()

        assert exc_info.value.step_name == "Uses"
        assert environment.previous_commands == ["false"]
        assert simulation.last_result.status == RunStatus.ABORTED
        assert simulation.last_result.failed_step == "Uses"

    def test_selector_miss_aborts_with_partial_result(self):
        builder = DocumentBuilder()
        builder.add_step(SleepStep("First", duration_seconds=HardCodedNumber(0)))
        builder.add_step(script_step("Compute"))
        environment = MockEnvironment(script_results={"handler": {"other": 1}})
        simulation = Simulation(builder.build(), environment)

        with pytest.raises(SelectorNotFoundError) as exc_info:
            simulation.run()

        assert exc_info.value.step_name == "Compute"
        assert exc_info.value.property_name == "Total"
        partial = simulation.last_result
        assert partial.status == RunStatus.ABORTED
        assert partial.executed_steps == ["First", "Compute"]
        assert partial.to_dict()["failedStep"] == "Compute"

    def test_output_type_mismatch_aborts(self):
        builder = DocumentBuilder()
        builder.add_step(script_step("Compute"))
        environment = MockEnvironment(script_results={"handler": {"total": "lots"}})

        with pytest.raises(TypeCoercionError):
            Simulation(builder.build(), environment).run()

    def test_script_failure_is_data(self):
        builder = DocumentBuilder()
        builder.add_step(script_step("Compute"))
        environment = MockEnvironment(script_results={
            "handler": ScriptResult.failure({"errorType": "KeyError", "errorMessage": "'total'"}),
        })

        result = Simulation(builder.build(), environment).run()

        assert result.status == RunStatus.FAILED
        assert result.steps["Compute"].error["type"] == "script_failure"

    def test_environment_exclusive_per_run(self):
        environment = MockEnvironment()
        environment.claim()
        try:
            with pytest.raises(EnvironmentBusyError):
                Simulation(shell_document(), environment).run({"MyVar": "x"})
        finally:
            environment.release()

        # Released after a run, so it can be reused
        Simulation(shell_document(), environment).run({"MyVar": "x"})
        Simulation(shell_document(), environment).run({"MyVar": "y"})
        assert environment.previous_commands[-1] == "some y string"

    def test_concurrent_runs_share_nothing(self):
        document = shell_document()
        environments = [MockEnvironment() for _ in range(4)]
        results = {}

        def run(index):
            results[index] = Simulation(document, environments[index]).run({"MyVar": str(index)})

        threads = [threading.Thread(target=run, args=(i,)) for i in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        for index, environment in enumerate(environments):
            assert environment.previous_commands == ["mkdir asdf", f"some {index} string"]
            assert results[index].status == RunStatus.COMPLETED

    def test_result_to_dict(self):
        result = Simulation(shell_document(), MockEnvironment()).run({"MyVar": "x"})
        data = result.to_dict()

        assert data["status"] == "completed"
        assert data["responseCode"] == "Success"
        assert data["steps"][0]["name"] == "MyShellScript"
        assert data["steps"][0]["inputs"] == {"runCommand": ["mkdir asdf", "some x string"]}
        assert "failedStep" not in data


class TestOutputTable:
    """Write-once table of produced values."""

    def test_string_and_tuple_keys(self):
        table = OutputTable.from_inputs({"Param": "v"})
        table.record_outputs("Step", {"Out": 1})

        assert table["Param"] == "v"
        assert table[ReferenceKey("Step", "Out")] == 1
        assert ("Step", "Out") in table
        assert "not a key!" not in table
        assert table.to_dict() == {"Param": "v", "Step.Out": 1}

    def test_write_once(self):
        table = OutputTable()
        table.record("Step.Out", 1)
        with pytest.raises(DuplicateOutputError):
            table.record(("Step", "Out"), 2)


class TestMockEnvironment:
    """Canned responses loaded from YAML."""

    def test_from_file(self, tmp_path):
        responses = tmp_path / "responses.yaml"
        responses.write_text("""
commands:
  "false":
    exit_code: 1
    output: nope
sendCommand:
  Doc:
    CommandId: fixed-id
    Status: Success
    ResponseCode: 0
    Output: done
scripts:
  handler:
    status: FAILURE
    Payload:
      errorType: ValueError
""")
        environment = MockEnvironment.from_file(responses)

        assert environment.run_command("false").exit_code == 1
        assert environment.send_command({"DocumentName": "Doc"})["CommandId"] == "fixed-id"
        assert not environment.execute_script("", "handler", {}).ok
        assert environment.execute_script("", "other", {}).payload is None

    def test_from_file_rejects_scalar_command_entry(self, tmp_path):
        responses = tmp_path / "responses.yaml"
        responses.write_text("commands:\n  mkdir asdf: 1\n")

        with pytest.raises(ValueError) as exc_info:
            MockEnvironment.from_file(responses)

        assert "mkdir asdf" in str(exc_info.value)

    def test_from_file_rejects_malformed_sections(self, tmp_path):
        responses = tmp_path / "responses.yaml"

        responses.write_text("commands: [echo]\n")
        with pytest.raises(ValueError):
            MockEnvironment.from_file(responses)

        responses.write_text("sendCommand:\n  Doc: done\n")
        with pytest.raises(ValueError):
            MockEnvironment.from_file(responses)


class TestLocalEnvironment:
    """Real subprocess execution."""

    def test_run_command(self, tmp_path):
        environment = LocalEnvironment(cwd=tmp_path)

        outcome = environment.run_command("echo hello > out.txt && cat out.txt")

        assert outcome.ok
        assert outcome.output == "hello\n"
        assert (tmp_path / "out.txt").exists()

    def test_non_zero_exit(self, tmp_path):
        outcome = LocalEnvironment(cwd=tmp_path).run_command("echo oops >&2; exit 3")

        assert outcome.exit_code == 3
        assert outcome.error["type"] == "exit_code"
        assert "oops" in outcome.error["context"]["stderr"]

    def test_timeout(self, tmp_path):
        outcome = LocalEnvironment(cwd=tmp_path).run_command("sleep 5", timeout_seconds=1)

        assert outcome.exit_code == 124
        assert outcome.error["type"] == "timeout"

    def test_send_command_not_available(self):
        response = LocalEnvironment().send_command({"DocumentName": "Doc"})
        assert response["Status"] == "Failed"

    def test_execute_script(self):
        environment = LocalEnvironment()
        script = "def handler(event):\n    return {'total': event['a'] + 1}\n"

        result = environment.execute_script(script, "handler", {"a": 1})

        assert result.ok
        assert result.payload == {"total": 2}

    def test_close_shuts_down_script_runner(self):
        script = "def handler(event):\n    return event\n"
        with LocalEnvironment() as environment:
            assert environment.execute_script(script, "handler", {"a": 1}).ok

        with pytest.raises(RuntimeError):
            environment.execute_script(script, "handler", {"a": 1})

    def test_document_against_local_environment(self, tmp_path):
        builder = DocumentBuilder()
        builder.add_step(RunScriptStep("Make", run_command=[
            HardCodedString("mkdir made"),
            HardCodedString(f"{sys.executable} -c \"print(6 * 7)\""),
        ]))

        result = Simulation(builder.build(), LocalEnvironment(cwd=tmp_path)).run()

        assert (tmp_path / "made").is_dir()
        assert result.output_table["Make.Output"] == "42\n"

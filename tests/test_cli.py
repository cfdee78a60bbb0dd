"""Tests for the stepdoc command line."""

import json
from argparse import Namespace

import pytest
import yaml

from stepdoc.cli.commands.simulate import parse_inputs
from stepdoc.cli.main import create_parser, main


SHELL_DOCUMENT = """
description: Make a directory
parameters:
  MyVar:
    type: String
mainSteps:
  - name: MyShellScript
    action: runScript
    inputs:
      runCommand:
        - mkdir asdf
        - some {{MyVar}} string
"""


@pytest.fixture
def document_path(tmp_path):
    path = tmp_path / "document.yaml"
    path.write_text(SHELL_DOCUMENT)
    return path


class TestPrintCommand:
    """stepdoc print."""

    def test_print_yaml(self, document_path, capsys):
        assert main(["print", str(document_path)]) == 0

        printed = yaml.safe_load(capsys.readouterr().out)
        assert printed["schemaVersion"] == "2.2"
        assert printed["mainSteps"][0]["inputs"]["runCommand"] == ["mkdir asdf", "some {{MyVar}} string"]

    def test_print_json_to_file(self, document_path, tmp_path):
        output = tmp_path / "out" / "document.json"

        assert main(["print", str(document_path), "--format", "json", "--output", str(output)]) == 0

        assert json.loads(output.read_text())["description"] == "Make a directory"

    def test_missing_file(self, tmp_path):
        assert main(["print", str(tmp_path / "missing.yaml")]) == 1

    def test_invalid_document(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("mainSteps: []\n")

        assert main(["print", str(path)]) == 2


class TestSimulateCommand:
    """stepdoc simulate."""

    def test_simulate_with_mock(self, document_path, capsys):
        assert main(["simulate", str(document_path), "--mock", "--input", "MyVar=amazing"]) == 0

        result = json.loads(capsys.readouterr().out)
        assert result["status"] == "completed"
        assert result["steps"][0]["inputs"]["runCommand"] == ["mkdir asdf", "some amazing string"]

    def test_missing_input_aborts(self, document_path, capsys):
        assert main(["simulate", str(document_path), "--mock"]) == 3

        result = json.loads(capsys.readouterr().out)
        assert result["status"] == "aborted"

    def test_failed_step_with_mock_responses(self, document_path, tmp_path, capsys):
        responses = tmp_path / "responses.yaml"
        responses.write_text("commands:\n  mkdir asdf:\n    exit_code: 1\n")

        code = main(["simulate", str(document_path), "--mock-responses", str(responses),
                     "--input", "MyVar=x"])

        assert code == 1
        result = json.loads(capsys.readouterr().out)
        assert result["status"] == "failed"
        assert result["failedStep"] == "MyShellScript"

    def test_malformed_mock_responses(self, document_path, tmp_path):
        responses = tmp_path / "responses.yaml"
        responses.write_text("commands:\n  mkdir asdf: 1\n")

        code = main(["simulate", str(document_path), "--mock-responses", str(responses),
                     "--input", "MyVar=x"])

        assert code == 2

    def test_local_environment(self, tmp_path, capsys, monkeypatch):
        path = tmp_path / "local.yaml"
        path.write_text("""
mainSteps:
  - name: Touch
    action: runScript
    inputs:
      runCommand: [touch created.txt]
""")
        monkeypatch.chdir(tmp_path)

        assert main(["simulate", str(path)]) == 0
        assert (tmp_path / "created.txt").exists()

    def test_invalid_input_format(self, document_path):
        assert main(["simulate", str(document_path), "--mock", "--input", "novalue"]) == 2

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1


class TestParseInputs:
    """Inputs from a JSON file and KEY=VALUE flags."""

    def test_flags_override_file(self, tmp_path):
        input_file = tmp_path / "inputs.json"
        input_file.write_text(json.dumps({"A": "file", "B": 2}))

        inputs = parse_inputs(Namespace(input_file=str(input_file), input=["A=flag", "C=x=y"]))

        assert inputs == {"A": "flag", "B": 2, "C": "x=y"}

    def test_missing_input_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            parse_inputs(Namespace(input_file=str(tmp_path / "nope.json"), input=None))

    def test_parser_defaults(self):
        args = create_parser().parse_args(["simulate", "doc.yaml"])
        assert args.mock is False
        assert args.log_level == "warn"

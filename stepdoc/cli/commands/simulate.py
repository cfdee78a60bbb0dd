"""Simulate command implementation."""

import json
import logging
import sys
from argparse import Namespace
from pathlib import Path
from typing import Any, Dict

import yaml

from stepdoc.exceptions import DefinitionError, DocumentValidationError, SimulationError
from stepdoc.loader import DocumentLoader
from stepdoc.simulation.driver import RunStatus, Simulation
from stepdoc.simulation.environment import Environment, LocalEnvironment, MockEnvironment
from stepdoc.steps.base import ResponseCode


logger = logging.getLogger(__name__)


def parse_inputs(args: Namespace) -> Dict[str, Any]:
    """Parse document inputs from command line arguments."""
    inputs: Dict[str, Any] = {}

    # Parse inputs from JSON file
    if args.input_file:
        input_file = Path(args.input_file)
        if not input_file.exists():
            raise FileNotFoundError(f"Input file not found: {input_file}")

        with open(input_file, 'r') as f:
            file_inputs = json.load(f)
        if not isinstance(file_inputs, dict):
            raise ValueError(f"Input file must contain a JSON object, got {type(file_inputs).__name__}")
        inputs.update({str(key): value for key, value in file_inputs.items()})

    # KEY=VALUE pairs win over the file
    if args.input:
        for item in args.input:
            if '=' not in item:
                raise ValueError(f"Invalid input format: {item}. Expected KEY=VALUE")
            key, value = item.split('=', 1)
            inputs[key] = value

    return inputs


def create_environment(args: Namespace) -> Environment:
    if args.mock_responses:
        return MockEnvironment.from_file(args.mock_responses)
    if args.mock:
        return MockEnvironment()
    return LocalEnvironment(cwd=Path.cwd())


def simulate_document(args: Namespace) -> int:
    """
    Simulate a document and print the run result as JSON.

    Returns:
        0 when every step succeeded, 1 on file errors or a failed step,
        2 on validation errors, 3 when the run aborted on a fault
    """
    document_path = Path(args.document).resolve()
    if not document_path.exists():
        logger.error(f"Document file not found: {document_path}")
        return 1

    try:
        document = DocumentLoader().load(document_path)
    except DocumentValidationError as e:
        for error in e.errors:
            location = f" ({error.path})" if error.path else ""
            logger.error(f"Validation error{location}: {error.message}")
        return e.exit_code
    except DefinitionError as e:
        logger.error(f"Definition error: {e}")
        return e.exit_code

    try:
        inputs = parse_inputs(args)
        environment = create_environment(args)
    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except (ValueError, yaml.YAMLError) as e:
        logger.error(f"Invalid inputs: {e}")
        return 2

    simulation = Simulation(document, environment)
    try:
        result = simulation.run(inputs)
    except SimulationError as e:
        logger.error(f"Simulation aborted: {e}")
        if simulation.last_result is not None:
            sys.stdout.write(json.dumps(simulation.last_result.to_dict(), indent=2) + "\n")
        return e.exit_code
    finally:
        environment.close()

    sys.stdout.write(json.dumps(result.to_dict(), indent=2) + "\n")
    if result.status == RunStatus.COMPLETED and result.response_code == ResponseCode.SUCCESS:
        return 0
    return 1

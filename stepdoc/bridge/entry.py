#!/usr/bin/env python3
"""
Child-process entry point for the script bridge.

Usage:
  python3 -u entry.py <script path> <function name> <json payload>

Imports the script, calls the function with the decoded payload and prints
the result envelope as the final line of stdout. Anything the function
prints earlier is treated as diagnostics by the caller. A function that
raises is reported as FAILURE; the process itself still exits 0.
"""

import importlib.util
import json
import sys
import traceback
from pathlib import Path


def load_function(script_path: str, function_name: str):
    path = Path(script_path)
    spec = importlib.util.spec_from_file_location(path.stem, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot import script: {script_path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    function = getattr(module, function_name, None)
    if not callable(function):
        raise AttributeError(f"Function '{function_name}' not found in {script_path}")
    return function


def main(argv: list) -> int:
    if len(argv) != 3:
        print("usage: entry.py <script> <function> <json payload>", file=sys.stderr)
        return 2

    script_path, function_name, raw_payload = argv
    try:
        payload = json.loads(raw_payload)
        function = load_function(script_path, function_name)
        result = function(payload)
        envelope = {"status": "SUCCESS", "Payload": result}
        line = json.dumps(envelope)
    except Exception as e:
        envelope = {
            "status": "FAILURE",
            "Payload": {
                "errorType": type(e).__name__,
                "errorMessage": str(e),
                "stackTrace": traceback.format_exc(),
            },
        }
        line = json.dumps(envelope, default=str)

    print(line)
    return 0


if __name__ == '__main__':
    sys.exit(main(sys.argv[1:]))

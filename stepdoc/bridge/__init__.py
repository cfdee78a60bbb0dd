"""
Script bridge module.
Calls Python functions in a child interpreter and returns tagged results.
"""

from .runner import PythonScriptRunner, ScriptResult, ScriptStatus, parse_result

__all__ = ['PythonScriptRunner', 'ScriptResult', 'ScriptStatus', 'parse_result']

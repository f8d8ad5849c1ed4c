"""Script execution backends.

Executors: DryRunExecutor, ScriptExecutor.
"""

from credscript.runner.executor import DryRunExecutor, Executor
from credscript.runner.script_executor import ScriptExecutor, build_script_env

__all__ = [
    "DryRunExecutor",
    "Executor",
    "ScriptExecutor",
    "build_script_env",
]

"""Executor protocol and built-in DryRunExecutor.

The Executor protocol defines the interface for script backends.
Any object with an ``execute()`` method of this shape satisfies the
protocol — no inheritance required.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from credscript.models import ScriptResult


@runtime_checkable
class Executor(Protocol):
    """Protocol for script executors."""

    def execute(
        self,
        script: str,
        env: Mapping[str, str] | None = None,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> ScriptResult:
        """Run a fully rendered script and return its combined output.

        Raises:
            ScriptExecutionError: Non-zero exit or launch failure.
            ScriptTimeoutError: The script outlived its timeout.
            ScriptCancelledError: *cancel_event* was set mid-run.
        """
        ...


class DryRunExecutor:
    """Executor that records scripts without running them.

    Useful for testing and for previewing what a lifecycle call would do.
    Every execution succeeds with exit status 0.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.scripts: list[str] = []
        self.environments: list[dict[str, str]] = []

    def execute(
        self,
        script: str,
        env: Mapping[str, str] | None = None,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> ScriptResult:
        with self._lock:
            self.scripts.append(script)
            self.environments.append(dict(env or {}))
        return ScriptResult(
            exit_status=0,
            output=f"[dry-run] Would execute:\n{script}",
            duration_ms=0.0,
            executor_type="dry-run",
        )

    @property
    def last_script(self) -> str | None:
        with self._lock:
            return self.scripts[-1] if self.scripts else None

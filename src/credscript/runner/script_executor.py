"""ScriptExecutor — runs rendered scripts via an external interpreter.

The whole rendered script is passed to the interpreter as one argument
(``/bin/bash -c <script>`` by default). Standard output and standard
error are captured as a single combined stream, decoded as UTF-8 with
undecodable bytes replaced.

Parameters can also be exported to the child's environment as
``CREDSCRIPT_<KEY>`` variables. Scripts that read ``"$CREDSCRIPT_PASSWORD"``
instead of inlining ``{{password}}`` avoid shell-quoting problems with
substituted values.

Execution blocks the calling thread. A timeout (20 s by default) and an
optional cancel event both kill the child; partial side effects of a
killed script are not rolled back.
"""

from __future__ import annotations

import contextlib
import logging
import os
import re
import signal
import subprocess
import threading
import time
from collections.abc import Mapping, Sequence

from credscript.errors import ScriptCancelledError, ScriptExecutionError, ScriptTimeoutError
from credscript.models import ScriptResult

logger = logging.getLogger(__name__)

DEFAULT_INTERPRETER: tuple[str, ...] = ("/bin/bash", "-c")
DEFAULT_TIMEOUT = 20.0
ENV_PREFIX = "CREDSCRIPT_"

# How often a running child is checked for cancellation.
_POLL_INTERVAL = 0.1

_POSIX = os.name == "posix"

_ENV_KEY_INVALID = re.compile(r"[^A-Z0-9_]")


def build_script_env(
    params: Mapping[str, str],
    prefix: str = ENV_PREFIX,
) -> dict[str, str]:
    """Map parameters to ``CREDSCRIPT_<KEY>`` environment variables.

    Keys are uppercased and any character outside ``[A-Z0-9_]`` becomes
    ``_``: ``root_password`` -> ``CREDSCRIPT_ROOT_PASSWORD``.
    """
    return {
        f"{prefix}{_ENV_KEY_INVALID.sub('_', key.upper())}": value
        for key, value in params.items()
    }


class ScriptExecutor:
    """Executor that runs scripts through a command interpreter.

    Each ``execute()`` call is one interpreter invocation.
    """

    def __init__(
        self,
        interpreter: Sequence[str] = DEFAULT_INTERPRETER,
        timeout: float | None = DEFAULT_TIMEOUT,
        inherit_env: bool = True,
    ) -> None:
        if not interpreter:
            raise ValueError("interpreter must name at least one program")
        self._interpreter = tuple(interpreter)
        self._timeout = timeout
        self._inherit_env = inherit_env

    @property
    def interpreter(self) -> tuple[str, ...]:
        return self._interpreter

    @property
    def timeout(self) -> float | None:
        return self._timeout

    def execute(
        self,
        script: str,
        env: Mapping[str, str] | None = None,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> ScriptResult:
        timeout = timeout if timeout is not None else self._timeout
        args = [*self._interpreter, script]
        start = time.monotonic()

        try:
            proc = subprocess.Popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                encoding="utf-8",
                errors="replace",
                env=self._build_env(env),
                start_new_session=_POSIX,
            )
        except OSError as exc:
            raise ScriptExecutionError(
                f"Failed to start interpreter {self._interpreter[0]}: {exc}",
                exit_status=None,
                output=str(exc),
                script=script,
            ) from exc

        output = self._wait(proc, script, timeout, cancel_event, start)
        elapsed = (time.monotonic() - start) * 1000

        if proc.returncode != 0:
            raise ScriptExecutionError(
                f"Script exited with status {proc.returncode}: {output.strip()}",
                exit_status=proc.returncode,
                output=output,
                script=script,
            )

        return ScriptResult(
            exit_status=proc.returncode,
            output=output,
            duration_ms=elapsed,
            executor_type="script",
        )

    def _wait(
        self,
        proc: subprocess.Popen[str],
        script: str,
        timeout: float | None,
        cancel_event: threading.Event | None,
        start: float,
    ) -> str:
        """Collect output until exit, killing the child on timeout or cancel."""
        deadline = start + timeout if timeout is not None else None
        while True:
            wait_for = _POLL_INTERVAL if cancel_event is not None else None
            if deadline is not None:
                remaining = max(deadline - time.monotonic(), 0.0)
                wait_for = remaining if wait_for is None else min(wait_for, remaining)
            try:
                output, _ = proc.communicate(timeout=wait_for)
                return output or ""
            except subprocess.TimeoutExpired:
                pass

            if cancel_event is not None and cancel_event.is_set():
                partial = self._kill(proc)
                logger.warning("Script cancelled, child process %d killed", proc.pid)
                raise ScriptCancelledError(
                    "Script execution cancelled; external side effects are indeterminate",
                    output=partial,
                    script=script,
                )
            if deadline is not None and time.monotonic() >= deadline:
                partial = self._kill(proc)
                logger.warning(
                    "Script timed out after %ss, child process %d killed", timeout, proc.pid,
                )
                raise ScriptTimeoutError(
                    f"Script timed out after {timeout}s; "
                    f"external side effects are indeterminate",
                    timeout=timeout,
                    output=partial,
                    script=script,
                )

    @staticmethod
    def _kill(proc: subprocess.Popen[str]) -> str:
        """Kill the child and its process group, returning any partial output."""
        if _POSIX:
            with contextlib.suppress(ProcessLookupError):
                os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
        output, _ = proc.communicate()
        return output or ""

    def _build_env(self, extra: Mapping[str, str] | None) -> dict[str, str] | None:
        """Build the child environment, or ``None`` to inherit unchanged."""
        if not extra and self._inherit_env:
            return None
        env = os.environ.copy() if self._inherit_env else {}
        env.update(extra or {})
        return env

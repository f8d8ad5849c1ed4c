"""Error types raised by the credscript engine.

Every error carries enough context for diagnostics (the rendered script,
captured process output) and knows how to produce a redacted copy of
itself, so ``SecretRedactor`` can scrub live secrets before an error
crosses the engine boundary.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def redact_text(text: str, secrets: Mapping[str, str]) -> str:
    """Replace every occurrence of each secret value with its placeholder.

    Longer secrets are replaced first so a secret that contains another
    secret as a substring is scrubbed as a whole.
    """
    if not text:
        return text
    for value in sorted(secrets, key=len, reverse=True):
        if value:
            text = text.replace(value, secrets[value])
    return text


class CredScriptError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def _fields(self) -> dict[str, Any]:
        return {}

    def redacted(self, secrets: Mapping[str, str]) -> CredScriptError:
        """Return a copy of this error with secret values replaced."""
        fields = {
            key: redact_text(value, secrets) if isinstance(value, str) else value
            for key, value in self._fields().items()
        }
        return type(self)(redact_text(self.message, secrets), **fields)


class ConfigDecodeError(CredScriptError):
    """Raised when the root configuration cannot be coerced to its schema."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key

    def _fields(self) -> dict[str, Any]:
        return {"key": self.key}


class UnsupportedCredentialTypeError(CredScriptError):
    """Raised when a request asks for a credential type other than password."""


class CredentialValidationError(CredScriptError):
    """Raised when a request is missing required fields."""


class UsernameGenerationError(CredScriptError):
    """Raised when a compliant username cannot be produced."""


class EngineNotInitializedError(CredScriptError):
    """Raised when a lifecycle call arrives before ``initialize``."""


class ScriptExecutionError(CredScriptError):
    """Raised when a script exits non-zero or cannot be started.

    ``exit_status`` is ``None`` when the interpreter could not be launched.
    """

    def __init__(
        self,
        message: str,
        exit_status: int | None = None,
        output: str = "",
        script: str = "",
    ) -> None:
        super().__init__(message)
        self.exit_status = exit_status
        self.output = output
        self.script = script

    def _fields(self) -> dict[str, Any]:
        return {
            "exit_status": self.exit_status,
            "output": self.output,
            "script": self.script,
        }


class ScriptTimeoutError(CredScriptError):
    """Raised when a script outlives its timeout. Outcome is indeterminate."""

    def __init__(
        self,
        message: str,
        timeout: float | None = None,
        output: str = "",
        script: str = "",
    ) -> None:
        super().__init__(message)
        self.timeout = timeout
        self.output = output
        self.script = script

    def _fields(self) -> dict[str, Any]:
        return {"timeout": self.timeout, "output": self.output, "script": self.script}


class ScriptCancelledError(CredScriptError):
    """Raised when the caller cancels a running script. Outcome is indeterminate."""

    def __init__(self, message: str, output: str = "", script: str = "") -> None:
        super().__init__(message)
        self.output = output
        self.script = script

    def _fields(self) -> dict[str, Any]:
        return {"output": self.output, "script": self.script}

"""SecretRedactor — scrubs live secrets from everything leaving the engine.

Wraps a CredentialLifecycleManager and exposes the same operations. Any
``CredScriptError`` raised underneath is re-raised as a redacted copy of
the same class: message, rendered script and captured output all have
every live secret value replaced with its placeholder. The original
exception is not chained, since its traceback would carry the secrets.

Live secrets for a call are the manager's current root password plus
the passwords carried by the request itself.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from typing import Any, TypeVar

from credscript.engine import PASSWORD_PLACEHOLDER, CredentialLifecycleManager
from credscript.errors import CredScriptError, redact_text
from credscript.models import (
    DeleteUserRequest,
    DeleteUserResponse,
    InitializeResponse,
    NewUserRequest,
    NewUserResponse,
    UpdateUserRequest,
    UpdateUserResponse,
)

T = TypeVar("T")

# Logical secret fields and the placeholder each is replaced with.
SECRET_FIELDS: dict[str, str] = {
    "password": PASSWORD_PLACEHOLDER,
}


class SecretRedactor:
    """Error-sanitizing wrapper around a CredentialLifecycleManager."""

    def __init__(
        self,
        manager: CredentialLifecycleManager,
        secret_fields: Mapping[str, str] | None = None,
    ) -> None:
        self._manager = manager
        self._fields = dict(secret_fields or SECRET_FIELDS)

    @property
    def manager(self) -> CredentialLifecycleManager:
        return self._manager

    def secret_mapping(self, extra: Iterable[str] = ()) -> dict[str, str]:
        """Current secret values mapped to placeholders, plus *extra* passwords."""
        placeholder = self._fields["password"]
        mapping = {value: placeholder for value in self._manager.secret_values()}
        for value in extra:
            if value:
                mapping[value] = placeholder
        return mapping

    def redact(self, text: str, extra: Iterable[str] = ()) -> str:
        """Replace every known secret in *text*."""
        return redact_text(text, self.secret_mapping(extra))

    def initialize(self, raw_config: Mapping[str, Any] | None) -> InitializeResponse:
        extra = _config_secrets(raw_config)
        return self._guard(lambda: self._manager.initialize(raw_config), extra)

    def create_credential(
        self,
        request: NewUserRequest,
        cancel_event: threading.Event | None = None,
    ) -> NewUserResponse:
        return self._guard(
            lambda: self._manager.create_credential(request, cancel_event=cancel_event),
            [request.password],
        )

    def update_credential(
        self,
        request: UpdateUserRequest,
        cancel_event: threading.Event | None = None,
    ) -> UpdateUserResponse:
        extra = [request.password.new_password] if request.password else []
        return self._guard(
            lambda: self._manager.update_credential(request, cancel_event=cancel_event),
            extra,
        )

    def delete_credential(
        self,
        request: DeleteUserRequest,
        cancel_event: threading.Event | None = None,
    ) -> DeleteUserResponse:
        return self._guard(
            lambda: self._manager.delete_credential(request, cancel_event=cancel_event),
        )

    def type(self) -> str:
        return self._manager.type()

    def close(self) -> None:
        self._manager.close()

    def _guard(self, call: Callable[[], T], extra: Iterable[str] = ()) -> T:
        # Snapshot before the call: a root rotation replaces the stored
        # password, and both the old and new value must stay redacted.
        mapping = self.secret_mapping(extra)
        try:
            return call()
        except CredScriptError as exc:
            mapping.update(self.secret_mapping())
            error = exc.redacted(mapping)
        # Raised outside the handler so the original is not kept as __context__.
        raise error from None


class RedactingFilter(logging.Filter):
    """Logging filter that scrubs secrets known to a SecretRedactor."""

    def __init__(self, redactor: SecretRedactor, name: str = "") -> None:
        super().__init__(name)
        self._redactor = redactor

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = self._redactor.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _config_secrets(raw_config: Mapping[str, Any] | None) -> list[str]:
    """Password values in a raw configuration, for redacting decode errors."""
    if not isinstance(raw_config, Mapping):
        return []
    value = raw_config.get("password")
    return [value] if isinstance(value, str) and value else []

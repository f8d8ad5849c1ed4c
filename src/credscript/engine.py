"""CredentialLifecycleManager — orchestrates scripted credential lifecycle calls.

Every lifecycle call follows the same path:

  1. Validate the request (credential type, required fields)
  2. Build per-call parameters (``name``, ``username``, ``password``)
  3. Merge in a snapshot of the root parameters (per-call values win)
  4. Join the statements and render the script
  5. Execute it
  6. Update rotation state (update calls on the root identity only)

The manager holds no credential records: the executed script is the
system of record. The only cross-call state is the root password kept
by the ParameterStore.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any

from credscript.errors import (
    CredentialValidationError,
    EngineNotInitializedError,
    UnsupportedCredentialTypeError,
    redact_text,
)
from credscript.models import (
    CredentialType,
    DeleteUserRequest,
    DeleteUserResponse,
    EngineState,
    InitializeResponse,
    NewUserRequest,
    NewUserResponse,
    ScriptResult,
    UpdateUserRequest,
    UpdateUserResponse,
)
from credscript.parameters import ParameterStore
from credscript.runner.executor import Executor
from credscript.runner.script_executor import ScriptExecutor, build_script_env
from credscript.templates import join_statements, render, unresolved_placeholders
from credscript.usernames import MAX_USERNAME_LENGTH, UsernameGenerator

logger = logging.getLogger(__name__)

ENGINE_TYPE = "cmd"
PASSWORD_PLACEHOLDER = "[password]"
SUPPORTED_CREDENTIAL_TYPES = (CredentialType.PASSWORD,)


def merge_parameters(
    root: Mapping[str, str],
    per_call: Mapping[str, str],
) -> dict[str, str]:
    """Merge root and per-call parameters. Per-call values win on collision."""
    return {**root, **per_call}


class CredentialLifecycleManager:
    """Runs create, update and delete scripts for a single root configuration.

    Safe to call from several threads at once: the only shared mutable
    state lives in the ParameterStore, which serializes access itself.
    """

    def __init__(
        self,
        store: ParameterStore | None = None,
        executor: Executor | None = None,
        username_generator: UsernameGenerator | None = None,
        username_max_length: int = MAX_USERNAME_LENGTH,
        export_env: bool = True,
    ) -> None:
        self._store = store or ParameterStore()
        self._executor = executor or ScriptExecutor()
        self._usernames = username_generator or UsernameGenerator()
        self._username_max_length = username_max_length
        self._export_env = export_env
        self._state = EngineState.UNINITIALIZED
        self._closed = False

    @property
    def store(self) -> ParameterStore:
        return self._store

    @property
    def executor(self) -> Executor:
        return self._executor

    @property
    def state(self) -> EngineState:
        return self._state

    def secret_values(self) -> dict[str, str]:
        """Live secret values mapped to their placeholders."""
        return {value: PASSWORD_PLACEHOLDER for value in self._store.secret_values()}

    # --- Lifecycle ---

    def initialize(self, raw_config: Mapping[str, Any] | None) -> InitializeResponse:
        """Decode the root configuration and declare supported credential types.

        Raises:
            ConfigDecodeError: If *raw_config* cannot be decoded.
        """
        raw = dict(raw_config or {})
        config = self._store.load(raw)
        self._state = EngineState.INITIALIZED
        logger.info(
            "Initialized engine (root username %r, %d custom field(s))",
            config.username, len(config.custom),
        )
        return InitializeResponse(
            config=raw,
            supported_credential_types=list(SUPPORTED_CREDENTIAL_TYPES),
        )

    def create_credential(
        self,
        request: NewUserRequest,
        cancel_event: threading.Event | None = None,
    ) -> NewUserResponse:
        """Generate a username and run the creation statements.

        The password is the caller's; it is never generated here.
        """
        self._require_initialized()
        _require_password_type(request.credential_type)

        if request.rollback_statements.commands:
            # Rollback statements are part of the host's retry protocol.
            # They are accepted and logged, never executed here.
            logger.debug(
                "Ignoring %d rollback statement(s)",
                len(request.rollback_statements.commands),
            )

        username = self._usernames.generate(
            request.username_config.display_name,
            request.username_config.role_name,
            max_length=self._username_max_length,
        )
        logger.info("Creating credential %s", username)

        per_call = {
            "name": username,
            "username": username,
            "password": request.password,
        }
        self._run(
            "creation", request.statements.commands, per_call,
            secrets=[request.password], cancel_event=cancel_event,
        )
        return NewUserResponse(username=username)

    def update_credential(
        self,
        request: UpdateUserRequest,
        cancel_event: threading.Event | None = None,
    ) -> UpdateUserResponse:
        """Run the password change statements for an existing username.

        If the username is the root username, the stored root password is
        updated after the script succeeds.
        """
        self._require_initialized()
        _require_password_type(request.credential_type)

        if not request.username:
            raise CredentialValidationError("Update request is missing a username")
        if request.password is None or not request.password.new_password:
            raise CredentialValidationError(
                f"Update request for {request.username} is missing a new password"
            )

        if request.expiration is not None and request.expiration.statements.commands:
            # Expiration statements are accepted for host compatibility only.
            logger.debug(
                "Ignoring %d expiration statement(s) for %s",
                len(request.expiration.statements.commands), request.username,
            )

        new_password = request.password.new_password
        logger.info("Updating credential %s", request.username)

        per_call = {
            "name": request.username,
            "username": request.username,
            "password": new_password,
        }
        self._run(
            "password change", request.password.statements.commands, per_call,
            secrets=[new_password], cancel_event=cancel_event,
        )

        if request.username == self._store.root_username:
            self._store.update_root_password(new_password)
            logger.info("Root credential %s rotated", request.username)

        return UpdateUserResponse()

    def delete_credential(
        self,
        request: DeleteUserRequest,
        cancel_event: threading.Event | None = None,
    ) -> DeleteUserResponse:
        """Run the deletion statements for *request.username*."""
        self._require_initialized()
        if not request.username:
            raise CredentialValidationError("Delete request is missing a username")

        logger.info("Deleting credential %s", request.username)
        per_call = {
            "name": request.username,
            "username": request.username,
        }
        self._run(
            "delete", request.statements.commands, per_call,
            cancel_event=cancel_event,
        )
        return DeleteUserResponse()

    def type(self) -> str:
        return ENGINE_TYPE

    def close(self) -> None:
        """Release engine resources. Idempotent."""
        if not self._closed:
            logger.info("Closing %s engine", ENGINE_TYPE)
            self._closed = True

    # --- Internals ---

    def render_script(
        self,
        commands: list[str],
        per_call: Mapping[str, str],
    ) -> tuple[str, dict[str, str]]:
        """Render *commands* against per-call and root parameters.

        Returns the rendered script and the merged parameter mapping.
        """
        params = merge_parameters(self._store.derive_parameters(), per_call)
        template = join_statements(commands)
        return render(template, params), params

    def _run(
        self,
        purpose: str,
        commands: list[str],
        per_call: Mapping[str, str],
        secrets: list[str] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ScriptResult | None:
        if not commands:
            logger.info("No %s statements supplied, nothing to execute", purpose)
            return None

        script, params = self.render_script(commands, per_call)
        redact = self._log_redactor(secrets)

        missing = unresolved_placeholders(script, params)
        if missing:
            logger.debug("Unresolved placeholders in %s script: %s", purpose, missing)

        logger.info("Executing %s script: %s", purpose, redact(script))
        env = build_script_env(params) if self._export_env else None
        result = self._executor.execute(script, env=env, cancel_event=cancel_event)
        logger.info("Executed %s script, output: %s", purpose, redact(result.output))
        return result

    def _log_redactor(self, secrets: list[str] | None) -> Callable[[str], str]:
        mapping = self.secret_values()
        for value in secrets or []:
            if value:
                mapping[value] = PASSWORD_PLACEHOLDER
        return lambda text: redact_text(text, mapping)

    def _require_initialized(self) -> None:
        if self._state is not EngineState.INITIALIZED:
            raise EngineNotInitializedError(
                "Engine is not initialized; call initialize() first"
            )


def _require_password_type(credential_type: CredentialType) -> None:
    if credential_type != CredentialType.PASSWORD:
        raise UnsupportedCredentialTypeError(
            f"Only 'password' credential type is supported, got '{credential_type}'"
        )

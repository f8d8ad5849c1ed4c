"""Core data models for credscript.

Defines the schemas for:
- Root configuration (the administrative identity)
- Lifecycle requests and responses (create, update, delete)
- Script execution results
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

# --- Enums ---


class CredentialType(enum.StrEnum):
    PASSWORD = "password"
    RSA_PRIVATE_KEY = "rsa_private_key"
    CLIENT_CERTIFICATE = "client_certificate"


class EngineState(enum.StrEnum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"


# --- Root Configuration ---


class RootConfiguration(BaseModel):
    """The administrative identity supplied once at initialization.

    ``custom`` holds every other key of the raw mapping, coerced to
    strings. ``raw`` is the mapping exactly as received.
    """

    username: str = ""
    password: str = ""
    certificate: str = ""
    custom: dict[str, str] = Field(default_factory=dict)
    raw: dict[str, Any] = Field(default_factory=dict)


# --- Requests ---


class Statements(BaseModel):
    """An ordered list of script fragments, joined with newlines before rendering."""

    commands: list[str] = Field(default_factory=list)


class UsernameMetadata(BaseModel):
    display_name: str = ""
    role_name: str = ""


class ChangePassword(BaseModel):
    new_password: str
    statements: Statements = Field(default_factory=Statements)


class ChangeExpiration(BaseModel):
    """Expiration change. Accepted for host compatibility; its statements are never run."""

    new_expiration: datetime | None = None
    statements: Statements = Field(default_factory=Statements)


class NewUserRequest(BaseModel):
    """Request to create a credential.

    ``rollback_statements`` exist only for the calling host's retry
    protocol. They are logged and intentionally never executed.
    """

    username_config: UsernameMetadata = Field(default_factory=UsernameMetadata)
    password: str = ""
    credential_type: CredentialType = CredentialType.PASSWORD
    statements: Statements = Field(default_factory=Statements)
    rollback_statements: Statements = Field(default_factory=Statements)
    expiration: datetime | None = None


class UpdateUserRequest(BaseModel):
    """Request to rotate a credential.

    Only ``password`` changes are executed. ``expiration`` is accepted
    and logged; its statements are intentionally never executed.
    """

    username: str
    credential_type: CredentialType = CredentialType.PASSWORD
    password: ChangePassword | None = None
    expiration: ChangeExpiration | None = None


class DeleteUserRequest(BaseModel):
    username: str
    statements: Statements = Field(default_factory=Statements)


# --- Responses ---


class InitializeResponse(BaseModel):
    config: dict[str, Any] = Field(default_factory=dict)
    supported_credential_types: list[CredentialType] = Field(default_factory=list)


class NewUserResponse(BaseModel):
    username: str


class UpdateUserResponse(BaseModel):
    pass


class DeleteUserResponse(BaseModel):
    pass


# --- Execution ---


class ScriptResult(BaseModel):
    """Outcome of a successful script run (exit status 0)."""

    exit_status: int = 0
    output: str = ""
    duration_ms: float | None = None
    executor_type: str = ""

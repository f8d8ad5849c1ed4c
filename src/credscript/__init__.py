"""credscript: a scripted credential lifecycle engine."""

__version__ = "0.1.0"

from credscript.config import EngineConfig, build_engine, find_config, load_config
from credscript.engine import CredentialLifecycleManager, merge_parameters
from credscript.errors import (
    ConfigDecodeError,
    CredentialValidationError,
    CredScriptError,
    EngineNotInitializedError,
    ScriptCancelledError,
    ScriptExecutionError,
    ScriptTimeoutError,
    UnsupportedCredentialTypeError,
    UsernameGenerationError,
)
from credscript.models import (
    ChangeExpiration,
    ChangePassword,
    CredentialType,
    DeleteUserRequest,
    DeleteUserResponse,
    InitializeResponse,
    NewUserRequest,
    NewUserResponse,
    RootConfiguration,
    ScriptResult,
    Statements,
    UpdateUserRequest,
    UpdateUserResponse,
    UsernameMetadata,
)
from credscript.parameters import ParameterStore
from credscript.redaction import RedactingFilter, SecretRedactor
from credscript.runner.executor import DryRunExecutor, Executor
from credscript.runner.script_executor import ScriptExecutor
from credscript.templates import join_statements, render
from credscript.usernames import UsernameGenerator

__all__ = [
    "ChangeExpiration",
    "ChangePassword",
    "ConfigDecodeError",
    "CredentialLifecycleManager",
    "CredentialType",
    "CredentialValidationError",
    "CredScriptError",
    "DeleteUserRequest",
    "DeleteUserResponse",
    "DryRunExecutor",
    "EngineConfig",
    "EngineNotInitializedError",
    "Executor",
    "InitializeResponse",
    "NewUserRequest",
    "NewUserResponse",
    "ParameterStore",
    "RedactingFilter",
    "RootConfiguration",
    "ScriptCancelledError",
    "ScriptExecutionError",
    "ScriptExecutor",
    "ScriptResult",
    "ScriptTimeoutError",
    "SecretRedactor",
    "Statements",
    "UnsupportedCredentialTypeError",
    "UpdateUserRequest",
    "UpdateUserResponse",
    "UsernameGenerationError",
    "UsernameGenerator",
    "UsernameMetadata",
    "build_engine",
    "find_config",
    "join_statements",
    "load_config",
    "merge_parameters",
    "render",
    "__version__",
]

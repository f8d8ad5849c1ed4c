"""Config file loading and auto-discovery for credscript.

Searches for ``credscript.yaml`` in the current directory and parent
directories, parses it, and builds a wired engine from it::

    interpreter: ["/bin/bash", "-c"]
    timeout: 20
    root_prefix: root_
    username_max_length: 64
    export_env: true
    root:
      username: admin
      password: s3cret
      certificate: ./root.pem
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

import yaml

from credscript.engine import CredentialLifecycleManager
from credscript.parameters import DEFAULT_ROOT_PREFIX, ParameterStore
from credscript.redaction import SecretRedactor
from credscript.runner.executor import DryRunExecutor, Executor
from credscript.runner.script_executor import (
    DEFAULT_INTERPRETER,
    DEFAULT_TIMEOUT,
    ScriptExecutor,
)
from credscript.usernames import (
    MAX_USERNAME_LENGTH,
    MIN_USERNAME_LENGTH,
    UsernameGenerator,
)

CONFIG_FILENAME = "credscript.yaml"

T = TypeVar("T")


class ConfigError(ValueError):
    """Raised when a config file is malformed."""


@dataclass(frozen=True)
class EngineConfig:
    """Parsed credscript project configuration."""

    config_path: Path | None = None
    interpreter: tuple[str, ...] = DEFAULT_INTERPRETER
    timeout: float | None = DEFAULT_TIMEOUT
    root_prefix: str = DEFAULT_ROOT_PREFIX
    username_max_length: int = MAX_USERNAME_LENGTH
    export_env: bool = True
    root: dict[str, Any] = field(default_factory=dict)


def find_config(start: Path | None = None) -> Path | None:
    """Return the nearest ``credscript.yaml`` at or above *start*.

    *start* defaults to the working directory.
    """
    origin = (start or Path.cwd()).resolve()
    for directory in (origin, *origin.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_config(
    path: str | Path | None = None,
    *,
    auto_discover: bool = True,
) -> EngineConfig:
    """Load the engine config.

    An explicit *path* must exist. Without one, the nearest
    ``credscript.yaml`` is used when *auto_discover* is set; if none is
    found the defaults apply.
    """
    if path is None:
        discovered = find_config() if auto_discover else None
        return _parse_config(discovered) if discovered else EngineConfig()

    config_path = Path(path).resolve()
    if not config_path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    return _parse_config(config_path)


def _number(data: dict[str, Any], key: str, convert: Callable[[Any], T], default: T) -> T:
    value = data.get(key, default)
    if isinstance(value, bool):
        raise ConfigError(f"'{key}' must be a number, got {value!r}")
    try:
        return convert(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{key}' must be a number, got {value!r}") from None


def _parse_config(config_path: Path) -> EngineConfig:
    """Read and parse a YAML config file."""
    text = config_path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        msg = f"Invalid YAML in {config_path}: {exc}"
        raise ConfigError(msg) from exc

    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        raise ConfigError(msg)

    interpreter = data.get("interpreter", list(DEFAULT_INTERPRETER))
    if isinstance(interpreter, str):
        interpreter = [interpreter]
    if not isinstance(interpreter, list) or not interpreter:
        msg = f"'interpreter' must be a non-empty list in {config_path}"
        raise ConfigError(msg)

    root = data.get("root") or {}
    if not isinstance(root, dict):
        msg = f"'root' must be a mapping in {config_path}, got {type(root).__name__}"
        raise ConfigError(msg)

    timeout = None
    if data.get("timeout", DEFAULT_TIMEOUT) is not None:
        timeout = _number(data, "timeout", float, DEFAULT_TIMEOUT)
        if timeout < 0:
            raise ConfigError(f"'timeout' must not be negative in {config_path}")

    max_length = _number(data, "username_max_length", int, MAX_USERNAME_LENGTH)
    if max_length < MIN_USERNAME_LENGTH:
        msg = (
            f"'username_max_length' must be at least {MIN_USERNAME_LENGTH} "
            f"in {config_path}, got {max_length}"
        )
        raise ConfigError(msg)

    return EngineConfig(
        config_path=config_path,
        interpreter=tuple(str(part) for part in interpreter),
        timeout=timeout,
        root_prefix=str(data.get("root_prefix", DEFAULT_ROOT_PREFIX) or ""),
        username_max_length=max_length,
        export_env=bool(data.get("export_env", True)),
        root=root,
    )


def build_engine(
    config: EngineConfig,
    *,
    dry_run: bool = False,
    executor: Executor | None = None,
) -> SecretRedactor:
    """Wire an uninitialized engine from *config*, wrapped in a redactor.

    Call ``initialize(config.root)`` on the result before lifecycle calls.
    """
    if executor is None:
        if dry_run:
            executor = DryRunExecutor()
        else:
            executor = ScriptExecutor(
                interpreter=config.interpreter,
                timeout=config.timeout,
            )
    manager = CredentialLifecycleManager(
        store=ParameterStore(root_prefix=config.root_prefix),
        executor=executor,
        username_generator=UsernameGenerator(),
        username_max_length=config.username_max_length,
        export_env=config.export_env,
    )
    return SecretRedactor(manager)

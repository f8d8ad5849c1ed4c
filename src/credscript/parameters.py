"""ParameterStore — root configuration and the root parameter namespace.

The store decodes the untyped configuration handed to ``initialize`` and
derives the flat mapping of root parameters that every rendered script
can reference. Root parameters are exposed under a single prefix
(``root_`` by default)::

    {"username": "admin", "password": "pw", "region": "eu"}
    -> {"root_username": "admin", "root_password": "pw", "root_region": "eu"}

An empty prefix exposes the raw field names instead. Exactly one policy
applies per store.

The root password is the only field that changes after load (when the
root identity itself is rotated). All reads and writes go through a
single lock so a derive never observes a half-applied rotation.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from credscript.errors import ConfigDecodeError
from credscript.models import RootConfiguration

DEFAULT_ROOT_PREFIX = "root_"

# Typed fields of RootConfiguration, in the order they are derived.
ROOT_FIELDS = ("username", "password", "certificate")


def coerce_string(key: str, value: Any) -> str:
    """Coerce a scalar config value to ``str``.

    Accepts ``str``, ``bool``, ``int``, ``float``, ``Decimal``, ``bytes``
    (UTF-8) and ``None`` (empty string). Anything else raises
    ``ConfigDecodeError`` naming *key*.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float | Decimal):
        return str(value)
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ConfigDecodeError(
                f"Config field '{key}': bytes value is not valid UTF-8",
                key=key,
            ) from exc
    raise ConfigDecodeError(
        f"Config field '{key}': cannot coerce {type(value).__name__} to string",
        key=key,
    )


def decode_root_config(raw: Mapping[str, Any] | None) -> RootConfiguration:
    """Convert an untyped mapping into a ``RootConfiguration``, field by field."""
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ConfigDecodeError(
            f"Expected a mapping for the root configuration, got {type(raw).__name__}"
        )

    typed: dict[str, str] = {}
    custom: dict[str, str] = {}
    for key, value in raw.items():
        if not isinstance(key, str):
            raise ConfigDecodeError(
                f"Config keys must be strings, got {type(key).__name__}: {key!r}",
                key=str(key),
            )
        if key in ROOT_FIELDS:
            typed[key] = coerce_string(key, value)
        else:
            custom[key] = coerce_string(key, value)

    return RootConfiguration(**typed, custom=custom, raw=dict(raw))


class ParameterStore:
    """Owns the root configuration and derives root parameters from it.

    Thread-safe via a lock on all state reads and mutations.
    """

    def __init__(self, root_prefix: str = DEFAULT_ROOT_PREFIX) -> None:
        self._prefix = root_prefix
        self._lock = threading.Lock()
        self._config = RootConfiguration()

    @property
    def root_prefix(self) -> str:
        return self._prefix

    @property
    def config(self) -> RootConfiguration:
        """A copy of the current root configuration."""
        with self._lock:
            return self._config.model_copy(deep=True)

    @property
    def root_username(self) -> str:
        with self._lock:
            return self._config.username

    def load(self, raw_config: Mapping[str, Any] | None) -> RootConfiguration:
        """Decode and store *raw_config*. Replaces any previous configuration."""
        config = decode_root_config(raw_config)
        with self._lock:
            self._config = config
            return config.model_copy(deep=True)

    def derive_parameters(self) -> dict[str, str]:
        """Return a snapshot of the root parameter mapping."""
        with self._lock:
            config = self._config
            params = {f"{self._prefix}{key}": value for key, value in config.custom.items()}
            for name in ROOT_FIELDS:
                params[f"{self._prefix}{name}"] = getattr(config, name)
            return params

    def update_root_password(self, new_password: str) -> None:
        """Overwrite the stored root password in place."""
        with self._lock:
            self._config = self._config.model_copy(update={"password": new_password})

    def secret_values(self) -> list[str]:
        """Live secret values held by the store (currently the root password)."""
        with self._lock:
            return [self._config.password] if self._config.password else []

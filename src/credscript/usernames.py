"""Username generation for newly created credentials.

Usernames follow ``v-<display>-<role>-<random>-<unix time>``:

- display and role names are lowercased, reduced to ``[a-z0-9_]`` and
  truncated to 8 characters each
- the random segment is 20 alphanumerics from ``secrets``
- the whole name is truncated to ``max_length`` (64 by default); under a
  tight limit the display and role segments shrink first, so at least 8
  random characters always remain
"""

from __future__ import annotations

import re
import secrets
import string
import time
from collections.abc import Callable

from credscript.errors import UsernameGenerationError

MAX_USERNAME_LENGTH = 64
MIN_USERNAME_LENGTH = 16
SEGMENT_LENGTH = 8
RANDOM_LENGTH = 20
MIN_RANDOM_LENGTH = 8

_ALPHABET = string.ascii_lowercase + string.digits
_DISALLOWED = re.compile(r"[^a-z0-9_]")


def sanitize_segment(value: str, length: int = SEGMENT_LENGTH) -> str:
    """Lowercase, strip characters outside ``[a-z0-9_]`` and truncate."""
    return _DISALLOWED.sub("", value.lower())[:length]


class UsernameGenerator:
    """Produces bounded-length usernames from display and role names."""

    def __init__(
        self,
        prefix: str = "v",
        random_length: int = RANDOM_LENGTH,
        _clock: Callable[[], float] | None = None,
    ) -> None:
        self._prefix = prefix
        self._random_length = random_length
        self._clock = _clock or time.time

    def generate(
        self,
        display_name: str,
        role_name: str,
        max_length: int = MAX_USERNAME_LENGTH,
    ) -> str:
        """Build a username for *display_name* / *role_name*.

        When *max_length* is tight, the display and role segments are
        shortened so that at least ``MIN_RANDOM_LENGTH`` random characters
        survive truncation.

        Raises:
            UsernameGenerationError: If both names are empty after
                sanitizing, or *max_length* is too small to keep part of
                the random suffix.
        """
        if max_length < MIN_USERNAME_LENGTH:
            raise UsernameGenerationError(
                f"max_length must be at least {MIN_USERNAME_LENGTH}, got {max_length}"
            )

        display = sanitize_segment(display_name or "")
        role = sanitize_segment(role_name or "")
        if not display and not role:
            raise UsernameGenerationError(
                "Cannot generate a username: display name and role name are both empty"
            )

        keep = min(self._random_length, MIN_RANDOM_LENGTH)
        head = self._head([display, role], max_length - keep - 1)
        suffix = "".join(secrets.choice(_ALPHABET) for _ in range(self._random_length))
        parts = [head, suffix, str(int(self._clock()))]
        username = "-".join(part for part in parts if part)
        return username[:max_length]

    def _head(self, segments: list[str], budget: int) -> str:
        """Join prefix and segments, trimming the longest segment to fit *budget*."""
        segments = [s for s in segments if s]
        while True:
            head = "-".join(part for part in [self._prefix, *segments] if part)
            if len(head) <= budget:
                return head
            if not segments:
                raise UsernameGenerationError(
                    f"Prefix {self._prefix!r} leaves no room for the random suffix"
                )
            longest = max(range(len(segments)), key=lambda i: len(segments[i]))
            segments[longest] = segments[longest][:-1]
            segments = [s for s in segments if s]

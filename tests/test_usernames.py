"""Tests for username generation."""

from __future__ import annotations

import re

import pytest

from credscript.errors import UsernameGenerationError
from credscript.usernames import (
    MAX_USERNAME_LENGTH,
    MIN_USERNAME_LENGTH,
    MIN_RANDOM_LENGTH,
    UsernameGenerator,
    sanitize_segment,
)

_FIXED_TIME = 1_700_000_000.0


def _generator() -> UsernameGenerator:
    return UsernameGenerator(_clock=lambda: _FIXED_TIME)


class TestSanitizeSegment:
    def test_lowercases_and_truncates(self):
        assert sanitize_segment("MyApplication") == "myapplic"

    def test_strips_disallowed_characters(self):
        assert sanitize_segment("a b;c'd$e") == "abcde"

    def test_keeps_underscore(self):
        assert sanitize_segment("svc_ro") == "svc_ro"


class TestUsernameGenerator:
    def test_format(self):
        username = _generator().generate("app", "svc")
        assert re.fullmatch(r"v-app-svc-[a-z0-9]{20}-1700000000", username)

    def test_long_inputs_bounded(self):
        username = _generator().generate("d" * 500, "r" * 500)
        assert len(username) <= MAX_USERNAME_LENGTH
        assert username.startswith("v-dddddddd-rrrrrrrr-")

    @pytest.mark.parametrize("max_length", [MIN_USERNAME_LENGTH, 20, 32, 64])
    def test_respects_max_length(self, max_length):
        username = _generator().generate("display" * 20, "role" * 20, max_length=max_length)
        assert len(username) <= max_length

    def test_unique_at_minimum_length(self):
        gen = _generator()
        names = {
            gen.generate("application", "services", max_length=MIN_USERNAME_LENGTH)
            for _ in range(20)
        }
        assert len(names) == 20

    @pytest.mark.parametrize("max_length", [MIN_USERNAME_LENGTH, 18, 24])
    def test_tight_limit_shrinks_segments(self, max_length):
        username = _generator().generate("application", "services", max_length=max_length)
        assert len(username) <= max_length
        head, _, random_part = username.rpartition("-")
        assert head.startswith("v-a")
        assert re.fullmatch(r"[a-z0-9]+", random_part)
        assert len(random_part) >= MIN_RANDOM_LENGTH

    def test_long_prefix_without_room_rejected(self):
        gen = UsernameGenerator(prefix="p" * 10, _clock=lambda: _FIXED_TIME)
        with pytest.raises(UsernameGenerationError, match="no room"):
            gen.generate("app", "svc", max_length=MIN_USERNAME_LENGTH)

    def test_unique_across_calls(self):
        gen = _generator()
        names = {gen.generate("app", "svc") for _ in range(50)}
        assert len(names) == 50

    def test_role_only(self):
        assert _generator().generate("", "svc").startswith("v-svc-")

    def test_display_only(self):
        assert _generator().generate("app", "").startswith("v-app-")

    def test_empty_inputs_rejected(self):
        with pytest.raises(UsernameGenerationError, match="both empty"):
            _generator().generate("", "")

    def test_inputs_empty_after_sanitizing_rejected(self):
        with pytest.raises(UsernameGenerationError):
            _generator().generate("!!!", "$$$")

    def test_max_length_too_small(self):
        with pytest.raises(UsernameGenerationError, match="at least"):
            _generator().generate("app", "svc", max_length=MIN_USERNAME_LENGTH - 1)

    def test_shell_safe_characters_only(self):
        username = _generator().generate("a'; rm -rf /", "r`x`")
        assert re.fullmatch(r"[a-z0-9_-]+", username)

    def test_custom_prefix(self):
        gen = UsernameGenerator(prefix="cs", _clock=lambda: _FIXED_TIME)
        assert gen.generate("app", "svc").startswith("cs-app-svc-")

"""Placeholder substitution for script templates.

Placeholders use literal double braces: ``{{key}}``. There is no escaping
and no nesting. Substitution is a single left-to-right pass, so a value
that itself contains ``{{...}}`` is never expanded again and the order of
keys in the mapping cannot change the result.

Placeholders with no matching parameter are left in the output as-is.
A missing parameter does not abort rendering; the literal placeholder
usually makes the script fail visibly downstream instead.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

_PLACEHOLDER_PATTERN = re.compile(r"\{\{([^{}]+?)\}\}")


def render(template: str, parameters: Mapping[str, str] | None) -> str:
    """Replace ``{{key}}`` with ``parameters[key]`` wherever the key exists."""
    if not parameters:
        return template
    return _PLACEHOLDER_PATTERN.sub(
        lambda m: str(parameters.get(m.group(1), m.group(0))),
        template,
    )


def join_statements(commands: Iterable[str]) -> str:
    """Join statements with newlines, keeping the caller's order."""
    return "\n".join(commands)


def find_placeholders(template: str) -> list[str]:
    """Return the placeholder names in *template*, in order of appearance."""
    return [m.group(1) for m in _PLACEHOLDER_PATTERN.finditer(template)]


def unresolved_placeholders(template: str, parameters: Mapping[str, str]) -> list[str]:
    """Return placeholder names in *template* that *parameters* does not define."""
    seen: list[str] = []
    for name in find_placeholders(template):
        if name not in parameters and name not in seen:
            seen.append(name)
    return seen

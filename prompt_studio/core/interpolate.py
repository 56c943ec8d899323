"""Double-curly-brace template interpolation."""

from __future__ import annotations

import re
from collections.abc import Mapping

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


def interpolate(template: str, values: Mapping[str, object]) -> str:
    """Replace ``{{key}}`` placeholders with ``values[key]``.

    Placeholders with no matching key are left untouched.
    """

    def _sub(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in values and values[key] is not None:
            return str(values[key])
        return match.group(0)

    return _PLACEHOLDER.sub(_sub, template)


def placeholders(template: str) -> list[str]:
    """Distinct placeholder names in order of first appearance."""
    seen: dict[str, None] = {}
    for name in _PLACEHOLDER.findall(template):
        seen.setdefault(name, None)
    return list(seen)

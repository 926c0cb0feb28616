"""``{{key}}`` placeholder rendering for action configuration."""

from __future__ import annotations

import re
from typing import Any, Mapping

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def render_template(template: str, context: Mapping[str, Any]) -> Any:
    """Substitute ``{{key}}`` placeholders with values from ``context``.

    A string that is a single placeholder yields the raw context value, so
    numbers and mappings keep their type. Unknown keys are left untouched.
    """
    whole = _PLACEHOLDER.fullmatch(template.strip())
    if whole and whole.group(1) in context:
        return context[whole.group(1)]

    def _replace(match: re.Match) -> str:
        key = match.group(1)
        return str(context[key]) if key in context else match.group(0)

    return _PLACEHOLDER.sub(_replace, template)


def render_config(value: Any, context: Mapping[str, Any]) -> Any:
    """Recursively render every string inside ``value``."""
    if isinstance(value, str):
        return render_template(value, context)
    if isinstance(value, Mapping):
        return {k: render_config(v, context) for k, v in value.items()}
    if isinstance(value, list):
        return [render_config(v, context) for v in value]
    return value

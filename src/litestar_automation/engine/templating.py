"""``{{dotted.path}}`` substitution for action configs.

Rendering is a pure function of the run context and the template string. The
placeholder grammar is deliberately narrow: an identifier followed by any
number of ``.identifier`` or ``.index`` segments. Nothing is ever evaluated.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from litestar_automation.core.context import UNDEFINED, resolve_path

if TYPE_CHECKING:
    from litestar_automation.core.types import Context

__all__ = ["PLACEHOLDER_PATTERN", "render_config", "render_template"]

PLACEHOLDER_PATTERN = re.compile(
    r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*(?:\.(?:[A-Za-z_][A-Za-z0-9_]*|\d+))*)\s*\}\}"
)
"""Compiled placeholder grammar. Group 1 is the dotted path."""


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


def render_template(context: Context, template: str) -> str:
    """Substitute every resolvable placeholder in ``template``.

    Placeholders whose path does not resolve, and anything that does not match
    the placeholder grammar, are left in the output verbatim.

    Args:
        context: The run context to resolve paths against.
        template: The string to render.

    Returns:
        The rendered string.

    Example:
        >>> render_template({"candidate": {"name": "Ada"}}, "Hi {{ candidate.name }}")
        'Hi Ada'
        >>> render_template({}, "Hi {{candidate.name}}")
        'Hi {{candidate.name}}'
    """

    def _replace(match: re.Match[str]) -> str:
        value = resolve_path(context, match.group(1))
        if value is UNDEFINED:
            return match.group(0)
        return _stringify(value)

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def render_config(context: Context, config: Any) -> Any:
    """Render every string inside an action config.

    Nested maps and lists are walked recursively; keys and non-string values
    are returned unchanged. The input is never mutated.

    Args:
        context: The run context to resolve paths against.
        config: An action config, or any value nested inside one.

    Returns:
        A rendered copy of ``config``.
    """
    if isinstance(config, str):
        return render_template(context, config)
    if isinstance(config, Mapping):
        return {key: render_config(context, value) for key, value in config.items()}
    if isinstance(config, (list, tuple)):
        return [render_config(context, item) for item in config]
    return config

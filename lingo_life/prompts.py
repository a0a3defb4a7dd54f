"""Handlebars prompt rendering for the collaborator passes.

Templates live in ``lingo_life/templates/<name>.hbs``. Use triple-stash
(``{{{value}}}``) for free text; double-stash HTML-escapes.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pybars

TEMPLATES_DIR = Path(__file__).parent / "templates"

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to load, compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_last(this, options, items, count):
    """{{#last array N}}...{{/last}}: iterate over the last N items."""
    result = []
    for item in list(items or [])[-int(count):]:
        result.extend(options["fn"](item))
    return result


def _helper_join(this, items, separator=", "):
    """{{join array}}: comma-separated list, or "(none)" when empty."""
    items = list(items or [])
    if not items:
        return "(none)"
    return separator.join(str(i) for i in items)


_HELPERS: dict[str, Callable] = {
    "last": _helper_last,
    "join": _helper_join,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Compiled templates are cached by source string.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def load_template(name: str, templates_dir: Path | None = None) -> str:
    path = (templates_dir or TEMPLATES_DIR) / f"{name}.hbs"
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise PromptError(f"Cannot read template {name!r}: {e}") from e


def render_template(
    name: str, context: dict[str, Any], templates_dir: Path | None = None
) -> str:
    return render_prompt(load_template(name, templates_dir), context)

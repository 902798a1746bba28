"""Static prompt assets for Emil, the Gutshof assistant.

The instruction texts are maintained as Markdown files under ``src/assets``
and read once at import time:

* ``system_prompt.md``: business rules, contact data and formatting
  directives; the fixed head of every chat context.
* ``search_prompt.md``: the ki-search instructions, a ``string.Template``
  with ``$listings`` and ``$query`` placeholders.
"""

from __future__ import annotations

import logging
from pathlib import Path
from string import Template

logger = logging.getLogger(__name__)

_ASSETS_DIR = Path(__file__).resolve().parent / "assets"


def _load_asset(name: str) -> str:
    """Read an asset file; an empty string (and an error log) if it is missing."""
    path = _ASSETS_DIR / name
    try:
        return path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        logger.error("Prompt asset %s not found at %s", name, path)
        return ""


SYSTEM_PROMPT: str = _load_asset("system_prompt.md")
SEARCH_PROMPT_TEMPLATE: Template = Template(_load_asset("search_prompt.md"))


def get_system_prompt() -> str:
    """Return the static instruction template."""
    return SYSTEM_PROMPT


def render_search_prompt(listings: str, query: str) -> str:
    """Fill the ki-search template with the listing summary and the query."""
    return SEARCH_PROMPT_TEMPLATE.safe_substitute(listings=listings, query=query)

"""Content-format detection for assistant messages.

``classify`` picks a rendering strategy, it does not validate. False
positives are fine because every renderer degrades to Markdown.

Decision order (first match wins):

1. ``json``  — trimmed text is ``{...}`` and parses as JSON.
2. tag-like  — trimmed text starts with ``<`` and contains a closing tag
   ``</``. Documents opening with ``<html`` or ``<!DOCTYPE`` are ``html``,
   any other tag-like text is ``xml``.
3. ``markdown`` — everything else, whether or not Markdown markers are
   present. ``text`` is never returned here; it is reserved for the
   renderer's own last-resort fallback.
"""
from __future__ import annotations

import json
import re
from enum import Enum


class FormatTag(Enum):
    JSON = "json"
    XML = "xml"
    HTML = "html"
    MARKDOWN = "markdown"
    TEXT = "text"


_HTML_PREFIXES = ("<html", "<!doctype")

_WHOLE_FENCE_RE = re.compile(r"^```([a-zA-Z0-9_+-]*)\n([\s\S]*?)\n```$")


def _is_json_object(trimmed: str) -> bool:
    if not (trimmed.startswith("{") and trimmed.endswith("}")):
        return False
    try:
        json.loads(trimmed)
    except (ValueError, RecursionError):
        return False
    return True


def _tag_like_format(trimmed: str) -> FormatTag | None:
    if not trimmed.startswith("<") or "</" not in trimmed:
        return None
    if trimmed[:9].lower().startswith(_HTML_PREFIXES):
        return FormatTag.HTML
    return FormatTag.XML


def classify(text: str) -> FormatTag:
    """Return the rendering strategy for *text*. Total and side-effect free."""
    trimmed = text.strip()

    if _is_json_object(trimmed):
        return FormatTag.JSON

    tag_format = _tag_like_format(trimmed)
    if tag_format is not None:
        return tag_format

    # Plain prose still goes through the Markdown renderer so a rich path
    # is always attempted first.
    return FormatTag.MARKDOWN


def fence_language(text: str) -> str | None:
    """Language tag of a message that is one whole fenced block, else None."""
    match = _WHOLE_FENCE_RE.match(text.strip())
    if match is None:
        return None
    return match.group(1) or None


def unwrap_fenced_block(text: str) -> str:
    """Strip the outer fence from a message that is one whole fenced block."""
    match = _WHOLE_FENCE_RE.match(text.strip())
    if match is None:
        return text
    return match.group(2)


def pretty_json(text: str) -> str:
    """Re-indent JSON text with two spaces; raises ValueError if invalid."""
    return json.dumps(json.loads(text.strip()), indent=2, ensure_ascii=False)

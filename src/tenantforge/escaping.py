"""String escaping for embedding tenant data in JSON documents."""

from __future__ import annotations

import re

# Control characters other than \b \t \n \f \r, plus DEL and the C1 range.
_STRIP_CONTROL = re.compile(r"[\x00-\x07\x0b\x0e-\x1f\x7f-\x9f]")

# Backslash first so later replacements are not escaped again.
_ESCAPES = (
    ("\\", "\\\\"),
    ('"', '\\"'),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
    ("\b", "\\b"),
    ("\f", "\\f"),
)

_NAME_DISALLOWED = re.compile(r"[^A-Za-z0-9 _\-]+")
_WHITESPACE = re.compile(r"\s+")


def escape(raw: object) -> str:
    """Escape a raw value for insertion inside a JSON string literal.

    None yields an empty string. Call exactly once per value, at the
    point the value enters a placeholder map.
    """
    if raw is None:
        return ""
    text = _STRIP_CONTROL.sub("", str(raw))
    for char, replacement in _ESCAPES:
        text = text.replace(char, replacement)
    return text


def sanitize_workflow_name(raw: str | None, max_length: int = 80) -> str:
    """Reduce a business name to a safe workflow identifier.

    Keeps letters, digits, spaces, hyphens and underscores; collapses
    whitespace. Returns "Workflow" when nothing usable remains.
    """
    if not raw:
        return "Workflow"
    text = _STRIP_CONTROL.sub("", raw)
    text = text.replace("&", " and ")
    text = _NAME_DISALLOWED.sub(" ", text)
    text = _WHITESPACE.sub(" ", text).strip()
    text = text[:max_length].rstrip()
    return text or "Workflow"

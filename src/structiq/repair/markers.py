"""
Section markers of the marker protocol.

A field header is the literal line ``[[ ## name ## ]]``; the field value
follows on the next line(s) up to the next header.
"""

from __future__ import annotations

import re
from typing import List

MARKER_TEMPLATE = "[[ ## {name} ## ]]"

#: A complete marker with any spacing.
MARKER_RE = re.compile(r"\[\[\s*##\s*(\w+)\s*##\s*\]\]")

_LEADING_FRAGMENT_RE = re.compile(r"^(?:##\s*\]\]|\]\])\s*")
_TRAILING_FRAGMENT_RE = re.compile(r"(?:##\s*\]\]|(?:^|\n)[ \t]*\]\])\s*$")


def format_marker(name: str) -> str:
    return MARKER_TEMPLATE.format(name=name)


def marker_variants(name: str) -> List[str]:
    """Spellings of a field header seen in model output, most canonical first.

    The last two are incomplete forms (missing ``]]`` or one ``]``).
    """
    escaped = re.escape(name)
    return [
        rf"\[\[ ## {escaped} ## \]\]",
        rf"\[\[\s*##\s*{escaped}\s*##\s*\]\]",
        rf"\[\[\s*##\s*{escaped}\s*##\s*\](?!\])",
        rf"\[\[\s*##\s*{escaped}\s*##(?!\s*\])",
    ]


def strip_markers(text: str, *, preserve_json: bool = False) -> str:
    """Remove marker tokens and stray marker fragments from *text*.

    A trailing ``]]`` is debris only after ``##`` or alone on its line;
    with ``preserve_json`` it is always kept, since it may close a nested
    JSON array.
    """
    cleaned = MARKER_RE.sub("", text)
    cleaned = _LEADING_FRAGMENT_RE.sub("", cleaned.lstrip())
    if not preserve_json:
        cleaned = cleaned.strip()
        match = _TRAILING_FRAGMENT_RE.search(cleaned)
        while match:
            cleaned = cleaned[: match.start()].rstrip()
            match = _TRAILING_FRAGMENT_RE.search(cleaned)
    return cleaned.strip()

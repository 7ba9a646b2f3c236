"""
JSON extraction and repair for model output.

Handles:
- JSON in ```json (or bare ```) code blocks
- JSON objects embedded in prose, found by string-aware brace matching
- Several objects in one reply (the one with the most keys wins)
- Raw newlines inside string literals and trailing commas
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

from structiq.errors import ParseError

_FENCE_RE = re.compile(r"```([A-Za-z0-9_+-]*)[ \t]*\n?([\s\S]*?)```")
_CONTROL_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}


# ============================================================================
# EXTRACTION
# ============================================================================

def find_closing_brace(text: str, start: int) -> int:
    """Index of the ``}`` closing the ``{`` at *start*, or -1.

    Braces inside string literals are ignored.
    """
    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if escape:
            escape = False
            continue
        if ch == "\\":
            escape = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return -1


def find_json_candidates(text: str) -> List[str]:
    """All top-level balanced ``{...}`` spans in *text*, in order."""
    candidates: List[str] = []
    pos = 0
    while True:
        start = text.find("{", pos)
        if start < 0:
            break
        end = find_closing_brace(text, start)
        if end > start:
            candidates.append(text[start : end + 1])
            pos = end + 1
        else:
            pos = start + 1
    return candidates


def _search_regions(text: str) -> List[str]:
    """Fenced blocks that may hold JSON (``json`` fences first), then the text."""
    json_blocks: List[str] = []
    other_blocks: List[str] = []
    for lang, body in _FENCE_RE.findall(text):
        lang = lang.lower()
        if lang == "json":
            json_blocks.append(body)
        elif lang == "" and "{" in body:
            other_blocks.append(body)
    return json_blocks + other_blocks + [text]


def _decode_object(candidate: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def extract_json(text: str) -> str:
    """
    Extract the most complete JSON object from *text*.

    Valid candidates are preferred, and among them the one with the most
    keys (first wins on ties). If no candidate decodes, the first
    balanced span is returned so the caller can try ``repair_json``.

    Raises:
        ParseError: if *text* holds no balanced ``{...}`` at all.
    """
    first_invalid: Optional[str] = None
    for region in _search_regions(text.strip()):
        candidates = find_json_candidates(region)
        best: Optional[str] = None
        best_keys = -1
        for candidate in candidates:
            decoded = _decode_object(candidate)
            if decoded is None:
                if first_invalid is None:
                    first_invalid = candidate
                continue
            if len(decoded) > best_keys:
                best, best_keys = candidate, len(decoded)
        if best is not None:
            return best.strip()

    if first_invalid is not None:
        return first_invalid.strip()
    raise ParseError("no JSON object found in content", raw_output=text[:500])


# ============================================================================
# REPAIR
# ============================================================================

def strip_code_fences(text: str) -> str:
    """Return the body of the first code fence, or *text* unchanged."""
    match = _FENCE_RE.search(text)
    if match is None:
        return text
    return match.group(2)


def _is_trailing_comma(text: str, i: int) -> bool:
    j = i + 1
    while j < len(text) and (text[j].isspace() or text[j] == ","):
        j += 1
    return j < len(text) and text[j] in "}]"


def repair_json(text: str) -> str:
    """
    Best-effort normalisation of near-valid JSON.

    Strips code fences, escapes raw control characters inside string
    literals and removes trailing commas before ``}`` or ``]``. This is
    not a parser: anything else is left as-is.

    Idempotent: ``repair_json(repair_json(x)) == repair_json(x)``.
    """
    source = strip_code_fences(text).strip()
    out: List[str] = []
    in_string = False
    escape = False

    for i, ch in enumerate(source):
        if in_string:
            if escape:
                escape = False
                out.append({"\n": "n", "\r": "r"}.get(ch, ch))
                continue
            if ch == "\\":
                escape = True
                out.append(ch)
            elif ch == '"':
                in_string = False
                out.append(ch)
            elif ch in _CONTROL_ESCAPES:
                out.append(_CONTROL_ESCAPES[ch])
            else:
                out.append(ch)
            continue

        if ch == '"':
            in_string = True
            out.append(ch)
        elif ch == "," and _is_trailing_comma(source, i):
            continue
        else:
            out.append(ch)

    return "".join(out).strip()


def loads_lenient(text: str) -> Any:
    """``json.loads`` with one ``repair_json`` retry.

    Raises:
        json.JSONDecodeError: if the repaired text still does not decode.
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return json.loads(repair_json(text))

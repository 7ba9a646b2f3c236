"""
Type coercion and key normalisation for parsed outputs.

Coercion is purely representational: it turns ``"5 years"`` into ``5`` for
an int field or ``"Yes"`` into ``True`` for a bool field, but never
invents a value that is not in the text. Values it cannot convert are
left untouched for validation to report.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Mapping, Optional

from structiq.repair.json_repair import repair_json
from structiq.signatures.field import FieldType
from structiq.signatures.signature import Signature

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?")
_INT_RE = re.compile(r"-?\d+")

_QUALITATIVE_NUMBERS: Dict[str, float] = {
    "very high": 0.95,
    "high": 0.9,
    "medium": 0.7,
    "moderate": 0.7,
    "low": 0.3,
    "very low": 0.1,
}

_TRUE_WORDS = {"true", "yes", "1"}
_FALSE_WORDS = {"false", "no", "0"}

_ANSWER_SYNONYMS = ("final", "finalanswer", "finalresult", "result", "response")


def extract_numeric_value(text: str) -> Optional[float]:
    """First number embedded in *text*, or a qualitative confidence word.

    >>> extract_numeric_value("High (0.95)")
    0.95
    >>> extract_numeric_value("medium")
    0.7
    """
    match = _NUMBER_RE.search(text)
    if match:
        return float(match.group())
    return _QUALITATIVE_NUMBERS.get(text.strip().lower())


def _to_int(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        match = _INT_RE.search(value)
        if match:
            return int(match.group())
    return value


def _to_float(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return float(value)
    if isinstance(value, str):
        number = extract_numeric_value(value)
        if number is not None:
            return number
    return value


def _to_bool(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    return value


def _to_json(value: Any) -> Any:
    if not isinstance(value, str) or not value.strip():
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        pass
    repaired = repair_json(value)
    if repaired != value:
        try:
            return json.loads(repaired)
        except json.JSONDecodeError:
            pass
    return value


def _to_string(value: Any) -> Any:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return "\n".join(str(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


_COERCERS = {
    FieldType.INT: _to_int,
    FieldType.FLOAT: _to_float,
    FieldType.BOOL: _to_bool,
    FieldType.JSON: _to_json,
    FieldType.STRING: _to_string,
    FieldType.CLASS: _to_string,
}


def coerce_outputs(signature: Signature, values: Mapping[str, Any]) -> Dict[str, Any]:
    """Map each declared output value onto its field type.

    Undeclared keys pass through unchanged and ``None`` stays ``None``.
    Returns a new dict.
    """
    result: Dict[str, Any] = {}
    for key, value in values.items():
        field = signature.get_output_field(key)
        if field is None or value is None:
            result[key] = value
            continue
        result[key] = _COERCERS[field.type](value)
    return result


def _normalize_key(key: str) -> str:
    return re.sub(r"[\s_-]", "", key.strip().lower())


def normalize_output_keys(signature: Signature, values: Mapping[str, Any]) -> Dict[str, Any]:
    """Rename keys to the Signature's spelling.

    Matching ignores case, spaces, ``_`` and ``-``. When the Signature has
    an ``answer`` field, ``final_answer``/``result``/``response`` map to
    it. The first non-null value for a field wins; unknown keys are kept
    and declared string values are trimmed.
    """
    canonical: Dict[str, str] = {_normalize_key(f.name): f.name for f in signature.output_fields}
    if "answer" in canonical:
        for synonym in _ANSWER_SYNONYMS:
            canonical.setdefault(synonym, canonical["answer"])

    out: Dict[str, Any] = {}
    for key, value in values.items():
        name = canonical.get(_normalize_key(str(key)))
        if name is None:
            out[key] = value
        elif out.get(name) is None:
            out[name] = value

    for field in signature.output_fields:
        if isinstance(out.get(field.name), str):
            out[field.name] = out[field.name].strip()
    return out

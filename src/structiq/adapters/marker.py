"""
MarkerAdapter - fields delimited by ``[[ ## name ## ]]`` section headers.

More robust than JSON for models that struggle to emit valid JSON::

    [[ ## sentiment ## ]]
    positive

    [[ ## confidence ## ]]
    0.95
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from structiq.adapters.base import REASONING_FIELD, AdapterKind, BaseAdapter, render_value
from structiq.errors import ParseError
from structiq.repair.coercion import coerce_outputs, normalize_output_keys
from structiq.repair.json_repair import loads_lenient
from structiq.repair.markers import format_marker, marker_variants, strip_markers
from structiq.signatures.field import Field, FieldType
from structiq.signatures.signature import Signature

logger = logging.getLogger(__name__)

_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "answer": ("final answer", "final_answer", "answer", "result", "output", "solution", "conclusion", "response"),
    "title": ("title", "heading", "name"),
    "summary": ("summary", "synopsis", "overview"),
    "explanation": ("explanation", "reasoning", "rationale"),
    "sources": ("sources", "source", "references", "citations"),
}


class MarkerAdapter(BaseAdapter):
    """Formats and parses the marker protocol."""

    kind = AdapterKind.MARKER

    def format_instructions(self, signature: Signature) -> str:
        lines = [
            "--- Required Output Format ---",
            "Respond using the following format with field markers:",
            "",
        ]
        if self.include_reasoning:
            lines += [format_marker(REASONING_FIELD), "Your step-by-step thought process", ""]
        for field in signature.output_fields:
            hints = []
            if field.type == FieldType.CLASS and field.classes:
                hints.append("one of: " + ", ".join(field.classes))
            elif field.type_hint():
                hints.append(field.type_hint())
            if field.description:
                hints.append(field.description)
            if field.optional:
                hints.append("optional")
            hint_text = f" ({', '.join(hints)})" if hints else ""
            lines += [format_marker(field.name) + hint_text, ""]
        lines.append(
            "IMPORTANT: Use the exact field marker format shown above. "
            "Start each field with [[ ## field_name ## ]]."
        )
        return "\n".join(lines)

    def format_outputs(self, signature: Signature, values: Mapping[str, Any]) -> str:
        blocks = []
        for name in self._field_names(signature):
            if name in values and values[name] is not None:
                blocks.append(f"{format_marker(name)}\n{render_value(values[name])}")
        return "\n\n".join(blocks)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self, signature: Signature, text: str) -> Dict[str, Any]:
        names = self._field_names(signature)
        located = self._locate_markers(text, names)
        starts = sorted(start for start, _ in located.values())

        outputs: Dict[str, Any] = {}
        for name in names:
            field = signature.get_output_field(name)
            if name not in located:
                if field is None or field.optional:
                    continue
                value = self._heuristic_extract(text, name)
                if value is None:
                    raise ParseError(
                        f"required field '{name}' not found in response "
                        f"(expected marker: {format_marker(name)})",
                        raw_output=text,
                    )
                logger.debug("Marker for '%s' missing, recovered from '%s:' line", name, name)
                outputs[name] = value
                continue

            start, value_start = located[name]
            value_end = next((s for s in starts if s > start), len(text))
            raw = text[value_start:value_end].strip()
            if raw.startswith("]"):
                raw = raw[1:].strip()
            outputs[name] = self._clean_value(field, raw)

        if not any(name in outputs for name in signature.output_names):
            raise ParseError("no output field markers found in response", raw_output=text)

        outputs = normalize_output_keys(signature, outputs)
        return coerce_outputs(signature, outputs)

    @staticmethod
    def _locate_markers(text: str, names: List[str]) -> Dict[str, Tuple[int, int]]:
        """Map each field with a header in *text* to ``(marker_start, value_start)``."""
        located: Dict[str, Tuple[int, int]] = {}
        for name in names:
            for pattern in marker_variants(name):
                match = re.search(pattern, text)
                if match:
                    located[name] = (match.start(), match.end())
                    break
        return located

    @staticmethod
    def _clean_value(field: Optional[Field], raw: str) -> Any:
        if field is None:
            return strip_markers(raw)

        if field.type == FieldType.JSON:
            value = strip_markers(raw, preserve_json=True)
            try:
                return loads_lenient(value)
            except ValueError:
                return value

        value = strip_markers(raw)
        if field.type == FieldType.CLASS and value:
            first_line = value.splitlines()[0].strip()
            if field.normalize_class_value(first_line) is not None:
                return first_line
            words = first_line.split()
            return words[0].strip(".,;:!\"'").lower() if words else first_line
        return value

    @staticmethod
    def _heuristic_extract(text: str, name: str) -> Optional[str]:
        """Find a ``name: value`` line for a field whose marker is missing."""
        terms = (name,) + _SYNONYMS.get(name.lower(), ())
        for term in terms:
            match = re.search(rf"(?i)\b{re.escape(term)}\s*:[ \t]*(.+)", text)
            if match:
                value = match.group(1).strip()
                if value:
                    return value
        return None

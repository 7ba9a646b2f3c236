"""
JSONAdapter - fields are keys of a single JSON object.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional

from structiq.adapters.base import REASONING_FIELD, AdapterKind, BaseAdapter
from structiq.config import get_settings
from structiq.errors import ParseError
from structiq.repair.coercion import coerce_outputs, normalize_output_keys
from structiq.repair.json_repair import extract_json, repair_json
from structiq.signatures.field import FieldType
from structiq.signatures.signature import Signature

logger = logging.getLogger(__name__)


class JSONAdapter(BaseAdapter):
    """Asks for one JSON object and extracts it from the reply.

    When the model supports JSON mode, ``response_schema()`` gives the
    schema to attach to the request so generation is constrained.
    """

    kind = AdapterKind.JSON

    def format_instructions(self, signature: Signature) -> str:
        lines = ["--- Required Output Format ---", "Respond with a JSON object containing:"]
        if self.include_reasoning:
            lines.append(f"- {REASONING_FIELD} (string): Your step-by-step thought process")
        for field in signature.output_fields:
            line = f"- {field.name} ({field.type.value})"
            if field.optional:
                line += " (optional)"
            if field.type == FieldType.CLASS and field.classes:
                line += f" [one of: {', '.join(field.classes)}]"
            if field.description:
                line += f": {field.description}"
            lines.append(line)
        lines.append("")
        lines.append(
            "IMPORTANT: Return ONLY valid JSON in your response. Do not include "
            "any markdown formatting, code blocks, or explanatory text."
        )
        return "\n".join(lines)

    def format_outputs(self, signature: Signature, values: Mapping[str, Any]) -> str:
        ordered = {
            name: values[name] for name in self._field_names(signature) if name in values
        }
        return json.dumps(ordered, indent=2, ensure_ascii=False)

    def response_schema(self, signature: Signature) -> Optional[Dict[str, Any]]:
        schema = signature.to_json_schema()
        if self.include_reasoning:
            schema["properties"] = {
                REASONING_FIELD: {
                    "type": "string",
                    "description": "Your step-by-step thought process",
                },
                **schema["properties"],
            }
        return schema

    def parse(self, signature: Signature, text: str) -> Dict[str, Any]:
        candidate = extract_json(text)
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            repaired = repair_json(candidate)
            try:
                data = json.loads(repaired)
            except json.JSONDecodeError as exc:
                if get_settings().debug_parse:
                    logger.debug("JSON repair failed: %s\n%s", exc, candidate[:500])
                raise ParseError(
                    f"failed to parse JSON output: {exc.msg}",
                    cause=exc,
                    raw_output=text,
                ) from exc
            logger.debug("Decoded JSON output after repair")

        if not isinstance(data, dict):
            raise ParseError("JSON output is not an object", raw_output=text)

        data = normalize_output_keys(signature, data)
        if not any(name in data for name in signature.output_names):
            raise ParseError(
                "JSON object contains none of the output fields "
                f"{signature.output_names}",
                raw_output=text,
            )
        return coerce_outputs(signature, data)

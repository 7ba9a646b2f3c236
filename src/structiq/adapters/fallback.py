"""
FallbackAdapter - a fixed chain of parse strategies.

Stages, always in this order:

    0  marker     -> MarkerAdapter.parse
    1  json       -> JSONAdapter.parse
    2  heuristic  -> whole reply into the single required string field

The chain is closed: stages cannot be added or reordered at runtime, so
``ParseOutcome.stage`` always identifies exactly which strategy fired.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field

from structiq.adapters.base import AdapterKind, BaseAdapter
from structiq.adapters.json_adapter import JSONAdapter
from structiq.adapters.marker import MarkerAdapter
from structiq.config import get_settings
from structiq.errors import ParseError
from structiq.repair.markers import strip_markers
from structiq.signatures.field import FieldType
from structiq.signatures.signature import Signature

logger = logging.getLogger(__name__)

STAGE_NAMES: Tuple[str, ...] = ("marker", "json", "heuristic")


class ParseOutcome(BaseModel):
    """Parsed values plus which stage produced them."""

    values: Dict[str, Any] = Field(default_factory=dict)
    stage: int
    attempts: int
    adapter_name: str

    @property
    def fallback_used(self) -> bool:
        return self.stage > 0


class FallbackAdapter(BaseAdapter):
    """Formats with the marker protocol; parses with marker → JSON → heuristic."""

    kind = AdapterKind.FALLBACK

    def __init__(self, *, include_reasoning: bool = False):
        super().__init__(include_reasoning=include_reasoning)
        self.last_stage = -1
        self._build_stages()

    def _build_stages(self) -> None:
        self._marker = MarkerAdapter(include_reasoning=self.include_reasoning)
        self._json = JSONAdapter(include_reasoning=self.include_reasoning)

    def with_reasoning(self, include: bool = True) -> "FallbackAdapter":
        return FallbackAdapter(include_reasoning=include)

    @property
    def last_adapter_name(self) -> Optional[str]:
        return STAGE_NAMES[self.last_stage] if self.last_stage >= 0 else None

    # ------------------------------------------------------------------
    # Formatting (marker protocol)
    # ------------------------------------------------------------------

    def format_instructions(self, signature: Signature) -> str:
        return self._marker.format_instructions(signature)

    def format_outputs(self, signature: Signature, values: Mapping[str, Any]) -> str:
        return self._marker.format_outputs(signature, values)

    def response_schema(self, signature: Signature) -> Optional[Dict[str, Any]]:
        return self._json.response_schema(signature)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def _stages(self) -> List[Tuple[str, Callable[[Signature, str], Dict[str, Any]]]]:
        return [
            (STAGE_NAMES[0], self._marker.parse),
            (STAGE_NAMES[1], self._json.parse),
            (STAGE_NAMES[2], self._parse_heuristic),
        ]

    def parse(self, signature: Signature, text: str) -> Dict[str, Any]:
        return self.parse_with_outcome(signature, text).values

    def parse_with_outcome(self, signature: Signature, text: str) -> ParseOutcome:
        """Try every stage in order and report which one succeeded.

        Raises:
            ParseError: listing each stage's failure, when all stages fail.
        """
        stage_errors: List[Tuple[str, str]] = []
        for stage, (name, parse) in enumerate(self._stages()):
            try:
                values = parse(signature, text)
            except ParseError as exc:
                stage_errors.append((name, exc.message))
                if get_settings().debug_parse:
                    logger.debug("Stage %d (%s) failed: %s", stage, name, exc.message)
                continue

            self.last_stage = stage
            if stage > 0:
                logger.info("Parsed with fallback stage %d (%s)", stage, name)
            return ParseOutcome(
                values=values,
                stage=stage,
                attempts=stage + 1,
                adapter_name=name,
            )

        summary = "; ".join(f"{name}: {message}" for name, message in stage_errors)
        raise ParseError(
            f"all adapters failed to parse response ({summary})",
            stage_errors=stage_errors,
            raw_output=text,
        )

    @staticmethod
    def _parse_heuristic(signature: Signature, text: str) -> Dict[str, Any]:
        required = signature.required_outputs
        if len(required) != 1 or required[0].type != FieldType.STRING:
            raise ParseError(
                "heuristic needs exactly one required string output field",
                raw_output=text,
            )
        value = strip_markers(text)
        if not value:
            raise ParseError("response is empty", raw_output=text)
        return {required[0].name: value}

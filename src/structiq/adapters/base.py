"""
BaseAdapter - abstract interface for prompt formatting / output parsing.

An adapter turns ``(Signature, input values, demonstrations)`` into a
message list and turns raw model text back into ``{field: value}``. The
set of strategies is closed (``AdapterKind``); ``FallbackAdapter``
composes the others in a fixed order.

    MarkerAdapter    -> ``[[ ## field ## ]]`` section headers
    JSONAdapter      -> one JSON object, optionally schema-constrained
    FallbackAdapter  -> marker, then JSON, then a one-field heuristic
"""

from __future__ import annotations

import copy
import json
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence

from structiq.chat_models import ChatMessage
from structiq.errors import FormatError
from structiq.signatures.signature import Signature

if TYPE_CHECKING:
    from structiq.memory.base import BaseMemory
    from structiq.modules.example import Example

REASONING_FIELD = "reasoning"
REASONING_INSTRUCTION = "Think through this step-by-step before providing your final answer."


class AdapterKind(str, Enum):
    """Closed set of adapter strategies."""

    MARKER = "marker"
    JSON = "json"
    FALLBACK = "fallback"


def render_value(value: Any) -> str:
    """Render a field value as prompt text."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


class BaseAdapter(ABC):
    """Abstract base for all adapters.

    Subclass contract:
        - MUST set ``kind`` and implement ``format_outputs``,
          ``format_instructions`` and ``parse``
        - MAY override ``response_schema`` when the model can be
          constrained at generation time
    """

    kind: AdapterKind

    def __init__(self, *, include_reasoning: bool = False):
        self.include_reasoning = include_reasoning

    @property
    def name(self) -> str:
        return self.kind.value

    def with_reasoning(self, include: bool = True) -> "BaseAdapter":
        """Copy of this adapter with the synthetic ``reasoning`` field toggled."""
        clone = copy.copy(self)
        clone.include_reasoning = include
        return clone

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    def format(
        self,
        signature: Signature,
        inputs: Mapping[str, Any],
        demos: Optional[Sequence["Example"]] = None,
    ) -> List[ChatMessage]:
        """Render the prompt for one call as a single user message.

        Raises:
            FormatError: if a required input is missing.
        """
        sections: List[str] = []
        if signature.description:
            sections.append(signature.description)
        if self.include_reasoning:
            sections.append(REASONING_INSTRUCTION)
        if demos:
            sections.append(self._format_demos(signature, demos))
        if signature.input_fields:
            sections.append(self._format_inputs(signature, inputs))
        if signature.output_fields:
            sections.append(self.format_instructions(signature))
        return [ChatMessage.user("\n\n".join(sections))]

    def format_history(self, history: Optional["BaseMemory"]) -> List[ChatMessage]:
        """Replay prior turns verbatim."""
        if history is None or history.is_empty():
            return []
        return history.get_messages()

    @abstractmethod
    def format_outputs(self, signature: Signature, values: Mapping[str, Any]) -> str:
        """Render output values the way this adapter expects the model to."""

    @abstractmethod
    def format_instructions(self, signature: Signature) -> str:
        """The ``--- Required Output Format ---`` section."""

    def response_schema(self, signature: Signature) -> Optional[Dict[str, Any]]:
        """JSON Schema to attach to the request, if this adapter uses one."""
        return None

    def _format_inputs(self, signature: Signature, inputs: Mapping[str, Any]) -> str:
        lines = ["--- Inputs ---"]
        for field in signature.input_fields:
            if field.name not in inputs or inputs[field.name] is None:
                if field.optional:
                    continue
                raise FormatError(f"missing required input field: {field.name}")
            value = render_value(inputs[field.name])
            if field.description:
                lines.append(f"{field.name} ({field.description}): {value}")
            else:
                lines.append(f"{field.name}: {value}")
        return "\n".join(lines)

    def _format_demos(self, signature: Signature, demos: Sequence["Example"]) -> str:
        blocks = ["--- Examples ---"]
        for i, demo in enumerate(demos, start=1):
            lines = [f"Example {i}:", "Inputs:"]
            lines.extend(f"  {k}: {render_value(v)}" for k, v in demo.inputs.items())
            if demo.outputs:
                lines.append("Expected Output:")
                lines.append(self.format_outputs(signature, demo.outputs))
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @abstractmethod
    def parse(self, signature: Signature, text: str) -> Dict[str, Any]:
        """Recover ``{field: value}`` from *text*.

        Raises:
            ParseError: if no field can be recovered.
        """

    def _field_names(self, signature: Signature) -> List[str]:
        names = signature.output_names
        if self.include_reasoning and REASONING_FIELD not in names:
            return [REASONING_FIELD] + names
        return names

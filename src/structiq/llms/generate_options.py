"""
Per-call model options.

Every ``BaseLLM.generate()`` / ``BaseLLM.stream()`` call receives a
``GenerateOptions``. Modules work on a ``copy()`` when they switch on JSON
mode or attach tool specs, so the options held in a config are shared
safely between calls. Unknown option names are rejected.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class GenerateOptions(BaseModel):
    """
    Options for one model exchange.

    Usage::

        opts = GenerateOptions(temperature=0.0, max_tokens=512)
        json_opts = opts.copy(update={"response_format": "json"})
    """

    model_config = ConfigDict(extra="forbid")

    temperature: float = Field(
        0.7, ge=0.0, le=2.0,
        description="Sampling temperature; 0 is the most repeatable.",
    )
    max_tokens: int = Field(
        2048, ge=1,
        description="Upper bound on generated tokens. Hitting it yields finish_reason='length'.",
    )
    top_p: float = Field(
        1.0, ge=0.0, le=1.0,
        description="Probability mass considered when sampling.",
    )
    stop: Optional[List[str]] = Field(
        None,
        description="Sequences that end generation when produced.",
    )

    response_format: Literal["text", "json"] = Field(
        "text",
        description="'json' asks a JSON-capable model for a single JSON object.",
    )
    response_schema: Optional[Dict[str, Any]] = Field(
        None,
        description="JSON Schema constraining the reply when response_format is 'json'.",
    )

    tools: Optional[List[Dict[str, Any]]] = Field(
        None,
        description="Tool specs offered to the model.",
    )
    tool_choice: Optional[str] = Field(
        "auto",
        description="'auto', 'none', 'required' or a tool name.",
    )

    def copy(self, *, update: Optional[Dict[str, Any]] = None) -> "GenerateOptions":  # type: ignore[override]
        """Deep copy, optionally overriding fields."""
        return self.model_copy(update=update, deep=True)

    def to_call_kwargs(self) -> Dict[str, Any]:
        """Options that are set, as keyword arguments for a provider SDK."""
        return self.model_dump(exclude_none=True)

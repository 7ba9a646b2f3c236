"""
Typed models for chat messages, tool calls and token usage.

    ChatMessage  - one role-tagged entry of a transcript
    ToolCall     - a model's request to run a named tool
    Usage        - token counts, addable across calls
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant", "tool"]


class ToolCall(BaseModel):
    """Normalized tool call with already-decoded arguments.

    Whatever the provider wire format (OpenAI nests the call under
    ``function`` and sends arguments as a JSON string), a ToolCall is a
    flat ``(id, name, arguments)`` triple.
    """

    id: str = ""
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_raw(cls, tc: Any) -> ToolCall:
        """Parse from an OpenAI-style tool call (dict or SDK object)."""
        if isinstance(tc, cls):
            return tc
        if isinstance(tc, dict):
            tc_id = tc.get("id") or ""
            fn_info = tc.get("function", tc)
            fn_name = fn_info.get("name", "") if isinstance(fn_info, dict) else ""
            fn_args = fn_info.get("arguments", {}) if isinstance(fn_info, dict) else {}
        else:
            tc_id = getattr(tc, "id", None) or ""
            fn_info = getattr(tc, "function", None)
            fn_name = getattr(fn_info, "name", "") if fn_info else ""
            fn_args = getattr(fn_info, "arguments", {}) if fn_info else {}
        return cls(id=tc_id, name=fn_name, arguments=_decode_arguments(fn_args))

    def to_openai_dict(self) -> Dict[str, Any]:
        """OpenAI-style ``tool_calls`` entry, with the arguments JSON-encoded."""
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": json.dumps(self.arguments)},
        }


def _decode_arguments(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, str) and raw.strip():
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError:
            return {"input": raw}
        return decoded if isinstance(decoded, dict) else {"input": decoded}
    return {}


class ChatMessage(BaseModel):
    """Type-safe representation of one transcript message.

    ``tool_calls`` is only meaningful on assistant messages and
    ``tool_call_id`` only on tool messages.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    role: Role
    content: str = ""
    tool_calls: Optional[List[ToolCall]] = None
    tool_call_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Role/content dict, plus tool fields only when set."""
        d: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            d["tool_calls"] = [tc.to_openai_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            d["tool_call_id"] = self.tool_call_id
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> ChatMessage:
        raw_tc = d.get("tool_calls")
        return cls(
            role=d.get("role", "user"),
            content=d.get("content") or "",
            tool_calls=[ToolCall.from_raw(tc) for tc in raw_tc] if raw_tc else None,
            tool_call_id=d.get("tool_call_id"),
        )

    @classmethod
    def system(cls, content: str) -> ChatMessage:
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> ChatMessage:
        return cls(role="user", content=content)

    @classmethod
    def assistant(
        cls, content: str = "", tool_calls: Optional[List[ToolCall]] = None
    ) -> ChatMessage:
        return cls(role="assistant", content=content, tool_calls=tool_calls or None)

    @classmethod
    def tool(cls, content: str, tool_call_id: str) -> ChatMessage:
        return cls(role="tool", content=content, tool_call_id=tool_call_id)


class Usage(BaseModel):
    """Token counts for one or more model calls."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: Usage) -> Usage:
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

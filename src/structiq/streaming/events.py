"""Events produced by ``BaseLLM.stream()``.

A provider emits one ``TOKEN`` event per text delta and ends with a
``COMPLETE`` event carrying the finish reason, any tool calls and token
usage. An ``ERROR`` event reports a provider failure mid-stream.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from structiq.chat_models import ToolCall, Usage


class StreamEventType(str, Enum):
    TOKEN = "token"
    COMPLETE = "complete"
    ERROR = "error"


class StreamEvent(BaseModel):
    """One item of a model stream; fields unrelated to ``type`` stay ``None``."""

    model_config = ConfigDict(use_enum_values=True)

    type: StreamEventType

    token: Optional[str] = None

    content: Optional[str] = None
    finish_reason: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None
    usage: Optional[Usage] = None

    message: Optional[str] = None

    def to_sse(self) -> str:
        """Render as a Server-Sent Events frame with a JSON payload."""
        payload = self.model_dump_json(exclude_none=True)
        return f"data: {payload}\n\n"

    @classmethod
    def token_event(cls, token: str) -> StreamEvent:
        return cls(type=StreamEventType.TOKEN, token=token)

    @classmethod
    def complete_event(
        cls,
        content: str = "",
        *,
        finish_reason: str = "stop",
        tool_calls: Optional[List[ToolCall]] = None,
        usage: Optional[Usage] = None,
    ) -> StreamEvent:
        return cls(
            type=StreamEventType.COMPLETE,
            content=content,
            finish_reason=finish_reason,
            tool_calls=tool_calls,
            usage=usage,
        )

    @classmethod
    def error_event(cls, message: str) -> StreamEvent:
        return cls(type=StreamEventType.ERROR, message=message)

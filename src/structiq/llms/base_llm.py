# File: src/structiq/llms/base_llm.py
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from typing import Any

from pydantic import BaseModel, Field

from structiq.chat_models import ChatMessage, ToolCall, Usage
from structiq.llms.generate_options import GenerateOptions
from structiq.streaming.events import StreamEvent


class GenerateResult(BaseModel):
    """One complete model reply.

    ``finish_reason`` is ``"stop"`` for a normal reply, ``"length"`` when
    the output was truncated and ``"tool_calls"`` when the model asked
    for tools.
    """

    content: str = ""
    finish_reason: str = "stop"
    tool_calls: list[ToolCall] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)


class BaseLLM(ABC):
    """Abstract base class for model-calling adapters.

    ``generate()`` is required. ``stream()`` may be overridden for real
    token streaming; by default it calls ``generate()`` and yields the
    whole reply as one ``TOKEN`` event followed by ``COMPLETE``.

    Network concerns (retries, caching, rate limits) belong to the
    concrete provider, not to this interface.
    """

    model_name: str = "base"
    supports_json: bool = False
    supports_tools: bool = False

    def convert_tool_specs(self, tools: list[Any]) -> list[dict[str, Any]]:
        """Tool specs in this provider's format; plain dicts pass through."""
        converted = []
        for tool in tools:
            if hasattr(tool, "get_spec"):
                converted.append(self._convert_tool_spec(tool.get_spec()))
            else:
                converted.append(tool)
        return converted

    def _convert_tool_spec(self, spec: dict[str, Any]) -> dict[str, Any]:
        """Default implementation returns *spec* unchanged."""
        return spec

    @abstractmethod
    async def generate(
        self,
        messages: list[ChatMessage],
        options: GenerateOptions | None = None,
    ) -> GenerateResult:
        """Send *messages* to the model and return the complete reply."""
        raise NotImplementedError

    async def stream(
        self,
        messages: list[ChatMessage],
        options: GenerateOptions | None = None,
    ) -> AsyncGenerator[StreamEvent, None]:
        """Yield the reply as ``StreamEvent`` objects."""
        result = await self.generate(messages, options)
        if result.content:
            yield StreamEvent.token_event(result.content)
        yield StreamEvent.complete_event(
            result.content,
            finish_reason=result.finish_reason,
            tool_calls=result.tool_calls or None,
            usage=result.usage,
        )

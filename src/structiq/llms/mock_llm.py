# File: src/structiq/llms/mock_llm.py
from collections.abc import AsyncGenerator, Callable, Sequence
from typing import Any, Union

from typing_extensions import override

from structiq.chat_models import ChatMessage, ToolCall, Usage
from structiq.llms.base_llm import BaseLLM, GenerateResult
from structiq.llms.generate_options import GenerateOptions
from structiq.streaming.events import StreamEvent

Scripted = Union[
    str,
    GenerateResult,
    BaseException,
    Callable[[list[ChatMessage], GenerateOptions], GenerateResult],
]


class MockLLM(BaseLLM):
    """Scripted language model for testing.

    * Each ``generate()`` call consumes the next scripted item: a string
      (plain reply), a ``GenerateResult``, an exception (raised) or a
      callable ``(messages, options) -> GenerateResult``.
    * Once the script is exhausted it echoes the last user message.
    * ``stream()`` yields the reply ``stream_chunk_size`` characters at a
      time for testing consumer streaming logic.
    * Every call is recorded in ``calls`` as ``(messages, options)``.
    """

    model_name: str = "mock-model"

    def __init__(
        self,
        responses: Sequence[Scripted] = (),
        *,
        model_name: str = "mock-model",
        supports_json: bool = False,
        supports_tools: bool = True,
        stream_chunk_size: int = 1,
    ):
        self.model_name = model_name
        self.supports_json = supports_json
        self.supports_tools = supports_tools
        self.stream_chunk_size = stream_chunk_size
        self._responses = list(responses)
        self.calls: list[tuple[list[ChatMessage], GenerateOptions]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    # ------------------------------------------------------------------ #
    # Response builders                                                   #
    # ------------------------------------------------------------------ #

    @staticmethod
    def reply(content: str, *, finish_reason: str = "stop") -> GenerateResult:
        words = len(content.split())
        return GenerateResult(
            content=content,
            finish_reason=finish_reason,
            usage=Usage(prompt_tokens=10, completion_tokens=words, total_tokens=10 + words),
        )

    @staticmethod
    def tool_call(
        name: str,
        arguments: dict[str, Any] | None = None,
        *,
        call_id: str | None = None,
        content: str = "",
    ) -> GenerateResult:
        return GenerateResult(
            content=content,
            finish_reason="tool_calls",
            tool_calls=[
                ToolCall(id=call_id or f"call_{name}", name=name, arguments=arguments or {})
            ],
        )

    # ------------------------------------------------------------------ #
    # Non-streaming call                                                  #
    # ------------------------------------------------------------------ #

    @override
    async def generate(
        self,
        messages: list[ChatMessage],
        options: GenerateOptions | None = None,
    ) -> GenerateResult:
        opts = options.copy() if options is not None else GenerateOptions()
        index = len(self.calls)
        self.calls.append((list(messages), opts))

        if index >= len(self._responses):
            return self._echo(messages)

        item = self._responses[index]
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, GenerateResult):
            return item
        if isinstance(item, str):
            return self.reply(item)
        return item(messages, opts)

    # ------------------------------------------------------------------ #
    # Streaming call                                                      #
    # ------------------------------------------------------------------ #

    @override
    async def stream(
        self,
        messages: list[ChatMessage],
        options: GenerateOptions | None = None,
    ) -> AsyncGenerator[StreamEvent, None]:
        """Yield mock token events, then a complete event."""
        result = await self.generate(messages, options)
        text = result.content
        size = self.stream_chunk_size
        for i in range(0, len(text), size):
            yield StreamEvent.token_event(text[i : i + size])
        yield StreamEvent.complete_event(
            text,
            finish_reason=result.finish_reason,
            tool_calls=result.tool_calls or None,
            usage=result.usage,
        )

    # ------------------------------------------------------------------ #
    # Private helpers                                                     #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _echo(messages: list[ChatMessage]) -> GenerateResult:
        last_user = next((m.content for m in reversed(messages) if m.role == "user"), "")
        return GenerateResult(content=f"Echo: {last_user}")

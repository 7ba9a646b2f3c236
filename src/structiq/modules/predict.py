"""
Single-call modules.

    Predict         -> format, one model call, parse, strict validation
    ChainOfThought  -> Predict with a leading ``reasoning`` output that is
                       moved into ``Prediction.rationale``

Neither module runs tools: a ``tool_calls`` reply is an error here (use
``ReAct`` for tool loops).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any, Dict, List, Mapping, Optional, Sequence

from structiq.adapters.base import REASONING_FIELD, BaseAdapter
from structiq.adapters.fallback import FallbackAdapter
from structiq.chat_models import ChatMessage, Usage
from structiq.config import get_settings
from structiq.errors import GenerationError
from structiq.llms.base_llm import BaseLLM
from structiq.llms.generate_options import GenerateOptions
from structiq.memory.base import BaseMemory
from structiq.modules.base import BaseModule
from structiq.modules.config import PredictConfig
from structiq.modules.example import Example
from structiq.modules.prediction import Prediction
from structiq.signatures.signature import Signature
from structiq.streaming.buffer import StreamingBuffer
from structiq.streaming.events import StreamEventType
from structiq.streaming.marker_filter import StreamingMarkerFilter
from structiq.streaming.pipeline import pipe

logger = logging.getLogger(__name__)


class Predict(BaseModule):
    """
    The basic prediction module.

    Example:
        ```python
        sig = (
            Signature("Answer the question.")
            .add_input("question")
            .add_output("answer")
        )
        pred = await Predict(sig, llm).forward({"question": "2 + 2?"})
        pred.get_string("answer")
        ```
    """

    def __init__(
        self,
        signature: Signature,
        llm: BaseLLM,
        *,
        adapter: Optional[BaseAdapter] = None,
        history: Optional[BaseMemory] = None,
        demos: Optional[Sequence[Example]] = None,
        config: Optional[PredictConfig] = None,
    ):
        super().__init__(signature, llm, adapter=adapter, history=history, demos=demos)
        self.config = config or PredictConfig()
        self.prediction: Optional[Prediction] = None

    # ------------------------------------------------------------------ #
    # Non-streaming                                                       #
    # ------------------------------------------------------------------ #

    async def forward(self, inputs: Mapping[str, Any]) -> Prediction:
        """
        Run one model call and return the validated Prediction.

        Raises:
            InputValidationError: a required input is missing
            FormatError: the adapter could not render the prompt
            GenerationError: the call failed, was truncated, asked for tools
                or returned nothing
            ParseError: no adapter stage could read the reply
            OutputValidationError: the reply does not satisfy the Signature
        """
        new_messages, messages, options = self._prepare(inputs)
        result = await self._generate(messages, options, timeout=self.config.llm_call_timeout)
        self._check_finish_reason(result.finish_reason, result.content)
        return self._complete(inputs, new_messages, result.content, result.usage)

    # ------------------------------------------------------------------ #
    # Streaming                                                           #
    # ------------------------------------------------------------------ #

    async def stream(
        self,
        inputs: Mapping[str, Any],
        on_chunk: Optional[Callable[[str], Any]] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[str]:
        """
        Yield the reply as display text with field markers removed.

        The raw text is buffered and parsed once the stream ends; the
        result is then available as ``self.prediction``.
        """
        self.prediction = None
        new_messages, messages, options = self._prepare(inputs)

        marker_filter = StreamingMarkerFilter()
        buffer = StreamingBuffer()
        finish_reason = "stop"
        usage = Usage()

        source = self.llm.stream(messages, options)
        async for event in pipe(
            source,
            maxsize=get_settings().stream_queue_size,
            cancel_event=cancel_event,
        ):
            if event.type == StreamEventType.TOKEN and event.token:
                buffer.write(event.token)
                text = marker_filter.process(event.token)
                if text:
                    if on_chunk is not None:
                        on_chunk(text)
                    yield text
            elif event.type == StreamEventType.COMPLETE:
                finish_reason = event.finish_reason or "stop"
                if event.usage is not None:
                    usage = event.usage
                if not len(buffer) and event.content:
                    buffer.write(event.content)
            elif event.type == StreamEventType.ERROR:
                raise GenerationError(f"stream failed: {event.message}")

        tail = marker_filter.flush()
        if tail:
            if on_chunk is not None:
                on_chunk(tail)
            yield tail

        incomplete = buffer.detect_incomplete_marker()
        if incomplete:
            logger.debug("Stream ended inside marker for field '%s'", incomplete)
        content = buffer.finalize()
        self._check_finish_reason(finish_reason, content)
        self.prediction = self._complete(inputs, new_messages, content, usage)

    # ------------------------------------------------------------------ #
    # Internals                                                           #
    # ------------------------------------------------------------------ #

    def _prepare(self, inputs: Mapping[str, Any]):
        self.signature.validate_inputs(inputs)
        demos = self.demos
        if self.config.max_demos is not None:
            demos = demos[: self.config.max_demos]
        new_messages = self.adapter.format(self.signature, inputs, demos)
        messages: List[ChatMessage] = self._history_messages() + new_messages

        options: GenerateOptions = self.config.options.copy()
        if self.config.request_json:
            options = self._apply_json_mode(options)
        return new_messages, messages, options

    @staticmethod
    def _check_finish_reason(finish_reason: str, content: str) -> None:
        if finish_reason == "length":
            raise GenerationError(
                "model output truncated (finish_reason=length); increase max_tokens",
                finish_reason=finish_reason,
                raw_output=content,
            )
        if finish_reason == "tool_calls":
            raise GenerationError(
                "model requested tool execution (finish_reason=tool_calls), which is "
                "unsupported here; use ReAct for tool loops",
                finish_reason=finish_reason,
                raw_output=content,
            )
        if not content.strip() and finish_reason == "stop":
            raise GenerationError(
                "model returned empty content despite finish_reason=stop",
                finish_reason=finish_reason,
            )

    def _complete(
        self,
        inputs: Mapping[str, Any],
        new_messages: List[ChatMessage],
        content: str,
        usage: Usage,
    ) -> Prediction:
        values, adapter_name, attempts, fallback_used = self._parse(content)
        outputs: Dict[str, Any] = self.signature.validate_outputs(values)

        rationale = ""
        if REASONING_FIELD in outputs:
            rationale = str(outputs[REASONING_FIELD] or "")
            if self.signature.get_output_field(REASONING_FIELD) is None:
                outputs.pop(REASONING_FIELD)

        self._record_turn(new_messages, content)
        return Prediction(
            outputs=outputs,
            rationale=rationale,
            usage=usage,
            adapter_used=adapter_name,
            parse_attempts=attempts,
            fallback_used=fallback_used,
            module_name=self.name,
            inputs=dict(inputs),
        )


class ChainOfThought(Predict):
    """Predict with step-by-step reasoning captured in ``Prediction.rationale``."""

    def __init__(
        self,
        signature: Signature,
        llm: BaseLLM,
        *,
        adapter: Optional[BaseAdapter] = None,
        history: Optional[BaseMemory] = None,
        demos: Optional[Sequence[Example]] = None,
        config: Optional[PredictConfig] = None,
    ):
        adapter = (adapter or FallbackAdapter()).with_reasoning(True)
        super().__init__(
            signature, llm, adapter=adapter, history=history, demos=demos, config=config
        )

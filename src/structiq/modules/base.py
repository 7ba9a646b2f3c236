"""
BaseModule - shared plumbing for Predict, ChainOfThought and ReAct.

A module owns a Signature, a model, an adapter and optionally a History
and a set of demonstrations. Subclasses implement ``forward()``; this
base provides prompt assembly, the timed model call and the atomic
history update.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence

from structiq.adapters.base import BaseAdapter
from structiq.adapters.fallback import FallbackAdapter
from structiq.adapters.json_adapter import JSONAdapter
from structiq.chat_models import ChatMessage
from structiq.errors import GenerationError, StructIQError
from structiq.llms.base_llm import BaseLLM, GenerateResult
from structiq.llms.generate_options import GenerateOptions
from structiq.memory.base import BaseMemory
from structiq.modules.example import Example
from structiq.modules.prediction import Prediction
from structiq.signatures.signature import Signature

logger = logging.getLogger(__name__)


class BaseModule(ABC):
    """Abstract base for all modules."""

    def __init__(
        self,
        signature: Signature,
        llm: BaseLLM,
        *,
        adapter: Optional[BaseAdapter] = None,
        history: Optional[BaseMemory] = None,
        demos: Optional[Sequence[Example]] = None,
    ):
        self.signature = signature
        self.llm = llm
        self.adapter = adapter if adapter is not None else FallbackAdapter()
        self.history = history
        self.demos: List[Example] = list(demos or [])

    @property
    def name(self) -> str:
        return type(self).__name__

    # ------------------------------------------------------------------ #
    # Fluent setters                                                      #
    # ------------------------------------------------------------------ #

    def with_adapter(self, adapter: BaseAdapter) -> "BaseModule":
        self.adapter = adapter
        return self

    def with_history(self, history: Optional[BaseMemory]) -> "BaseModule":
        self.history = history
        return self

    def with_demos(self, demos: Sequence[Example]) -> "BaseModule":
        self.demos = list(demos)
        return self

    # ------------------------------------------------------------------ #
    # Execution                                                           #
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def forward(self, inputs: Mapping[str, Any]) -> Prediction:
        """Run the module once and return its Prediction."""

    async def __call__(self, inputs: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Prediction:
        values: Dict[str, Any] = dict(inputs or {})
        values.update(kwargs)
        return await self.forward(values)

    # ------------------------------------------------------------------ #
    # Helpers                                                             #
    # ------------------------------------------------------------------ #

    def _history_messages(self) -> List[ChatMessage]:
        return self.adapter.format_history(self.history)

    def _apply_json_mode(self, options: GenerateOptions) -> GenerateOptions:
        """Ask for JSON output when both the model and the adapter speak it."""
        if self.llm.supports_json and isinstance(self.adapter, JSONAdapter):
            options.response_format = "json"
            if options.response_schema is None:
                options.response_schema = self.adapter.response_schema(self.signature)
        return options

    async def _generate(
        self,
        messages: List[ChatMessage],
        options: GenerateOptions,
        *,
        timeout: Optional[float] = None,
        iteration: Optional[int] = None,
    ) -> GenerateResult:
        """Call the model, turning timeouts and provider failures into GenerationError."""
        try:
            if timeout is not None:
                return await asyncio.wait_for(self.llm.generate(messages, options), timeout)
            return await self.llm.generate(messages, options)
        except asyncio.TimeoutError as exc:
            raise GenerationError(
                f"model call timed out after {timeout}s",
                iteration=iteration,
                cause=exc,
            ) from exc
        except StructIQError:
            raise
        except Exception as exc:
            logger.error("Model call failed: %s", exc)
            raise GenerationError(
                f"model call failed: {exc}", iteration=iteration, cause=exc
            ) from exc

    def _parse(self, content: str, adapter: Optional[BaseAdapter] = None):
        """Parse *content*, returning ``(values, adapter_name, attempts, fallback_used)``."""
        adapter = adapter or self.adapter
        if isinstance(adapter, FallbackAdapter):
            outcome = adapter.parse_with_outcome(self.signature, content)
            return outcome.values, outcome.adapter_name, outcome.attempts, outcome.fallback_used
        return adapter.parse(self.signature, content), adapter.name, 1, False

    def _record_turn(self, new_messages: Sequence[ChatMessage], reply: str) -> None:
        """Append this turn to the history. Only called once the turn succeeded."""
        if self.history is None:
            return
        turn = [m for m in new_messages if m.role in ("system", "user")]
        turn.append(ChatMessage.assistant(reply))
        self.history.extend(turn)

"""
History strategies.

    History               -> every message, optionally capped at ``max_size``
    SlidingWindowHistory  -> only the last ``window_size`` messages
"""

from __future__ import annotations

from collections import deque
from typing import Any, List, Optional

from pydantic import Field

from structiq.chat_models import ChatMessage
from structiq.memory.base import BaseMemory


class History(BaseMemory):
    """Full conversation history.

    With ``max_size`` set, the oldest messages are dropped once the cap
    is exceeded.
    """

    max_size: Optional[int] = Field(
        default=None,
        gt=0,
        description="Maximum number of messages to retain (None = unbounded).",
    )

    _messages: List[ChatMessage] = []

    def model_post_init(self, __context: Any) -> None:
        self._messages = []

    @property
    def strategy_name(self) -> str:
        return "full_history"

    def add_message(self, message: ChatMessage) -> None:
        self._messages.append(message)
        if self.max_size is not None and len(self._messages) > self.max_size:
            del self._messages[: len(self._messages) - self.max_size]

    def get_messages(self) -> List[ChatMessage]:
        return list(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    def truncate(self, n: int) -> None:
        """Keep only the last *n* messages."""
        if n <= 0:
            self._messages.clear()
        elif len(self._messages) > n:
            del self._messages[: len(self._messages) - n]

    def clone(self) -> "History":
        copy = History(session_id=self.session_id, max_size=self.max_size)
        copy.extend(self._messages)
        return copy


class SlidingWindowHistory(BaseMemory):
    """Retains only the most recent ``window_size`` messages."""

    window_size: int = Field(
        default=10,
        gt=0,
        description="Maximum number of messages to retain.",
    )

    _messages: deque = deque()

    def model_post_init(self, __context: Any) -> None:
        self._messages = deque(maxlen=self.window_size)

    @property
    def strategy_name(self) -> str:
        return "sliding_window"

    def add_message(self, message: ChatMessage) -> None:
        self._messages.append(message)

    def get_messages(self) -> List[ChatMessage]:
        return list(self._messages)

    def clear(self) -> None:
        self._messages.clear()

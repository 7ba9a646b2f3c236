"""
BaseMemory - abstract interface for conversation history.

A history is an ordered, append-only log of role-tagged messages owned
by the caller. Modules replay it before each call and append the new
turn only after the call succeeded.

Subclasses implement the sync core methods. The async variants
(a-prefixed) delegate to sync by default; override them for backends
with a native async SDK.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from structiq.chat_models import ChatMessage


class BaseMemory(BaseModel, ABC):
    """Abstract base for all history strategies.

    Concrete histories provide ``strategy_name``, ``add_message``,
    ``get_messages`` and ``clear``; everything else is derived from those.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_id: Optional[str] = Field(
        default=None,
        description="Optional identifier of the conversation this history belongs to.",
    )

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def strategy_name(self) -> str:
        """Name reported by this history kind."""

    # ------------------------------------------------------------------
    # Core storage
    # ------------------------------------------------------------------

    @abstractmethod
    def add_message(self, message: ChatMessage) -> None:
        """Append a single message."""
        ...

    @abstractmethod
    def get_messages(self) -> List[ChatMessage]:
        """All retained messages, oldest first (a copy)."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Erase all stored messages."""
        ...

    # ------------------------------------------------------------------
    # Derived helpers
    # ------------------------------------------------------------------

    def extend(self, messages: Iterable[ChatMessage]) -> None:
        """Append several messages in order."""
        for message in messages:
            self.add_message(message)

    def add_user(self, content: str) -> None:
        self.add_message(ChatMessage.user(content))

    def add_assistant(self, content: str) -> None:
        self.add_message(ChatMessage.assistant(content))

    def add_system(self, content: str) -> None:
        self.add_message(ChatMessage.system(content))

    def get_last(self, n: int) -> List[ChatMessage]:
        """The last *n* messages (fewer if the history is shorter)."""
        if n <= 0:
            return []
        return self.get_messages()[-n:]

    def is_empty(self) -> bool:
        return len(self) == 0

    def __len__(self) -> int:
        return len(self.get_messages())

    def export_state(self) -> Dict[str, Any]:
        """Messages as plain dicts, suitable for JSON."""
        return {"messages": [m.to_dict() for m in self.get_messages()]}

    def import_state(self, state: Dict[str, Any]) -> None:
        """Replace the stored messages with those of an ``export_state()`` dict."""
        self.clear()
        self.extend(ChatMessage.from_dict(d) for d in state.get("messages", []))

    # ------------------------------------------------------------------
    # Async variants (in-memory, so they call the sync methods)
    # ------------------------------------------------------------------

    async def aadd_message(self, message: ChatMessage) -> None:
        self.add_message(message)

    async def aextend(self, messages: Iterable[ChatMessage]) -> None:
        self.extend(messages)

    async def aget_messages(self) -> List[ChatMessage]:
        return self.get_messages()

    async def aclear(self) -> None:
        self.clear()

from structiq.memory.base import BaseMemory
from structiq.memory.history import History, SlidingWindowHistory

__all__ = ["BaseMemory", "History", "SlidingWindowHistory"]

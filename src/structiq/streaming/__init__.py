from structiq.streaming.buffer import StreamingBuffer
from structiq.streaming.events import StreamEvent, StreamEventType
from structiq.streaming.marker_filter import StreamingMarkerFilter
from structiq.streaming.pipeline import pipe

__all__ = [
    "StreamEvent",
    "StreamEventType",
    "StreamingBuffer",
    "StreamingMarkerFilter",
    "pipe",
]

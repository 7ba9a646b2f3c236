from structiq.adapters.base import (
    REASONING_FIELD,
    AdapterKind,
    BaseAdapter,
    render_value,
)
from structiq.adapters.fallback import STAGE_NAMES, FallbackAdapter, ParseOutcome
from structiq.adapters.json_adapter import JSONAdapter
from structiq.adapters.marker import MarkerAdapter

__all__ = [
    "REASONING_FIELD",
    "STAGE_NAMES",
    "AdapterKind",
    "BaseAdapter",
    "FallbackAdapter",
    "JSONAdapter",
    "MarkerAdapter",
    "ParseOutcome",
    "render_value",
]

"""
Prediction - the immutable result of one module invocation.

Besides the typed outputs, a Prediction records how they were obtained:
which adapter stage parsed the reply, how many stages were tried,
token usage, partial-validation diagnostics and, for ReAct, the step
trajectory.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from structiq.chat_models import ToolCall, Usage
from structiq.signatures.diagnostics import ValidationDiagnostics


class ReActStep(BaseModel):
    """One reasoning/acting iteration of a ReAct run."""

    iteration: int
    thought: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    observations: List[str] = Field(default_factory=list)


class Prediction(BaseModel):
    """Outputs plus metadata. Frozen once built."""

    model_config = ConfigDict(frozen=True)

    outputs: Dict[str, Any] = Field(default_factory=dict)
    rationale: str = ""
    score: float = 0.0
    usage: Usage = Field(default_factory=Usage)
    adapter_used: str = ""
    parse_attempts: int = 0
    fallback_used: bool = False
    diagnostics: Optional[ValidationDiagnostics] = None
    completions: List[Dict[str, Any]] = Field(default_factory=list)
    module_name: str = ""
    inputs: Dict[str, Any] = Field(default_factory=dict)
    trajectory: List[ReActStep] = Field(default_factory=list)

    def __getitem__(self, key: str) -> Any:
        return self.outputs[key]

    def __contains__(self, key: object) -> bool:
        return key in self.outputs

    @property
    def parse_success(self) -> bool:
        """True when the first adapter stage parsed the reply."""
        return self.parse_attempts == 1

    def get(self, key: str, default: Any = None) -> Any:
        return self.outputs.get(key, default)

    def get_string(self, key: str, default: str = "") -> str:
        value = self.outputs.get(key)
        return value if isinstance(value, str) else default

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.outputs.get(key)
        if isinstance(value, bool):
            return default
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value)
        return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        value = self.outputs.get(key)
        if isinstance(value, bool):
            return default
        if isinstance(value, (int, float)):
            return float(value)
        return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.outputs.get(key)
        return value if isinstance(value, bool) else default

    def has_rationale(self) -> bool:
        return bool(self.rationale)

    def has_completions(self) -> bool:
        return bool(self.completions)

# src/structiq/config.py
"""
Process settings for StructIQ.

Values come from ``STRUCTIQ_*`` environment variables (a project ``.env``
is loaded at package import). Settings are read once into an immutable
model and passed explicitly where needed.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

_TRUTHY = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Immutable runtime settings."""

    model_config = ConfigDict(frozen=True)

    debug_parse: bool = Field(
        default=False,
        description="Log every adapter stage failure at DEBUG level.",
    )
    max_iterations: int = Field(
        default=10,
        gt=0,
        description="Default iteration budget for the ReAct loop.",
    )
    stream_queue_size: int = Field(
        default=64,
        gt=0,
        description="Capacity of the producer/consumer queue used when streaming.",
    )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        values = {}
        if "STRUCTIQ_DEBUG_PARSE" in env:
            values["debug_parse"] = env["STRUCTIQ_DEBUG_PARSE"].strip().lower() in _TRUTHY
        if "STRUCTIQ_MAX_ITERATIONS" in env:
            values["max_iterations"] = int(env["STRUCTIQ_MAX_ITERATIONS"])
        if "STRUCTIQ_STREAM_QUEUE_SIZE" in env:
            values["stream_queue_size"] = int(env["STRUCTIQ_STREAM_QUEUE_SIZE"])
        return cls(**values)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings for this process, read from the environment on first use."""
    return Settings.from_env()

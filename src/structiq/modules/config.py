# src/structiq/modules/config.py
from enum import Enum

from pydantic import BaseModel, Field

from structiq.config import get_settings
from structiq.llms.generate_options import GenerateOptions


class PredictConfig(BaseModel):
    """Configuration settings for single-call modules."""

    llm_call_timeout: float | None = Field(
        default=None, description="Timeout in seconds for the model call (None = no limit)."
    )
    max_demos: int | None = Field(
        default=None,
        ge=0,
        description="Use at most this many demonstrations per prompt (None = all).",
    )
    request_json: bool = Field(
        default=True,
        description="Attach the JSON schema when the model supports JSON mode.",
    )
    options: GenerateOptions = Field(
        default_factory=GenerateOptions,
        description="Base generation options; copied before every call.",
    )


class ReActConfig(BaseModel):
    """Configuration settings for the ReAct loop."""

    max_iterations: int = Field(
        default_factory=lambda: get_settings().max_iterations,
        ge=1,
        description="Maximum reasoning/acting iterations before extraction.",
    )
    verbose: bool = Field(default=False, description="Enable detailed logging")
    llm_call_timeout: float | None = Field(
        default=None, description="Timeout in seconds for individual model calls."
    )
    tool_timeout: float | None = Field(
        default=None,
        description="Timeout in seconds for each tool execution. A timeout becomes an observation.",
    )
    enable_extraction: bool = Field(
        default=True,
        description="Run the extraction step when the loop ends without a valid answer.",
    )
    options: GenerateOptions = Field(
        default_factory=GenerateOptions,
        description="Base generation options; copied before every call.",
    )


class ReActState(str, Enum):
    """Where the ReAct loop currently is."""

    REASONING = "reasoning"
    TOOL_CALL = "tool_call"
    FINAL_ANSWER = "final_answer"
    EXTRACTION = "extraction"
    COMPLETED = "completed"
    ERROR = "error"


class RefineConfig(PredictConfig):
    """Configuration settings for the Refine module."""

    max_iterations: int = Field(
        default=3,
        ge=1,
        description="Total model calls, counting the initial prediction.",
    )
    refinement_field: str = Field(
        default="feedback",
        description="Input holding the feedback; without it no refinement runs.",
    )


class BestOfNConfig(BaseModel):
    """Configuration settings for BestOfN sampling."""

    n: int = Field(default=3, ge=1, description="Number of attempts.")
    max_failures: int | None = Field(
        default=None,
        ge=0,
        description="Failed attempts tolerated before giving up (None = n // 2).",
    )
    threshold: float | None = Field(
        default=None,
        description="Stop early once a score reaches this value.",
    )
    return_all: bool = Field(
        default=False,
        description="Attach the outputs of every scored attempt as completions.",
    )

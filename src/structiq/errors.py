# src/structiq/errors.py
"""
Error classes for StructIQ.

Every raised error carries the stage it came from, the loop iteration
(when inside ReAct), the underlying cause, and the raw model text where
one exists, so callers can tell a non-cooperating model apart from a
repair step that gave up.

    InputValidationError   - caller supplied an incomplete input map
    FormatError            - an adapter could not render the prompt
    GenerationError        - the model call failed, timed out or was truncated
    ParseError             - no adapter stage recovered any field
    OutputValidationError  - parsed values do not satisfy the Signature
    ToolError              - a tool call failed (converted to an observation)
    ExtractionFailure      - the terminal extraction step produced nothing
    SelectionError         - BestOfN ran out of allowed failed attempts
    ExecutionCancelled     - the caller's cancel signal was observed
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional, Tuple

if TYPE_CHECKING:
    from structiq.signatures.diagnostics import ValidationDiagnostics


class StructIQError(Exception):
    """
    Base exception for all StructIQ errors.

    Attributes:
        message: Error description
        stage: Pipeline stage that failed (``"format"``, ``"parse"``, ...)
        iteration: ReAct iteration index, or ``None`` outside the loop
        cause: Underlying exception, if any
        raw_output: The model text involved, if any
        retryable: Whether feeding ``format_for_retry()`` back to the model
            could plausibly fix the problem
    """

    default_stage: str = "unknown"

    def __init__(
        self,
        message: str,
        *,
        stage: str | None = None,
        iteration: int | None = None,
        cause: BaseException | None = None,
        raw_output: Any = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.stage = stage or self.default_stage
        self.iteration = iteration
        self.cause = cause
        self.raw_output = raw_output
        self.retryable = retryable

    def __str__(self) -> str:
        parts = [self.message]
        if self.iteration is not None:
            parts.append(f"(stage={self.stage}, iteration={self.iteration})")
        if self.cause is not None:
            parts.append(f"caused by: {self.cause}")
        return " ".join(parts)

    def format_for_retry(self) -> str:
        """Format error message to send back to the model."""
        return f"Error: {self.message}\nPlease correct your response."


class InputValidationError(StructIQError):
    """Raised when the caller's input values do not satisfy the Signature."""

    default_stage = "input_validation"

    def __init__(self, message: str, *, field_name: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.field_name = field_name


class MissingRequiredField(InputValidationError):
    """A required input field is absent."""

    def __init__(self, field_name: str, **kwargs: Any):
        super().__init__(
            f"missing required input field: {field_name}",
            field_name=field_name,
            **kwargs,
        )


class FormatError(StructIQError):
    """Raised when an adapter cannot render a prompt."""

    default_stage = "format"


class GenerationError(StructIQError):
    """
    Raised when the model-calling interface fails.

    Also covers responses the core cannot use: a ``length`` finish
    reason (truncated output) and, outside the agent loop, a
    ``tool_calls`` finish reason.
    """

    default_stage = "generate"

    def __init__(self, message: str, *, finish_reason: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.finish_reason = finish_reason


class ParseError(StructIQError):
    """
    Raised when no field can be recovered from the model text.

    ``stage_errors`` lists ``(adapter_name, message)`` for every strategy
    that was attempted, in order.
    """

    default_stage = "parse"

    def __init__(
        self,
        message: str,
        *,
        stage_errors: Optional[List[Tuple[str, str]]] = None,
        **kwargs: Any,
    ):
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)
        self.stage_errors = stage_errors or []

    def format_for_retry(self) -> str:
        return (
            f"Could not read your answer: {self.message}\n"
            "Please respond using the requested output format."
        )


class OutputValidationError(StructIQError):
    """Raised when parsed outputs fail strict validation."""

    default_stage = "output_validation"

    def __init__(
        self,
        message: str,
        *,
        diagnostics: "ValidationDiagnostics | None" = None,
        **kwargs: Any,
    ):
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)
        self.diagnostics = diagnostics

    def format_for_retry(self) -> str:
        if self.diagnostics is not None and self.diagnostics.has_errors:
            lines = "\n".join(f"  - {p}" for p in self.diagnostics.problems())
            return f"Validation failed:\n{lines}\nPlease fix and try again."
        return f"Validation failed: {self.message}\nPlease fix and try again."


class ToolError(StructIQError):
    """A tool lookup, argument check or execution failed."""

    default_stage = "tool"

    def __init__(self, message: str, *, tool_name: str | None = None, **kwargs: Any):
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)
        self.tool_name = tool_name

    def format_for_retry(self) -> str:
        return f"Error: {self.message}"


class ExtractionFailure(StructIQError):
    """The extraction step produced nothing usable.

    ``diagnostics`` is set when values were recovered but some have the
    wrong type.
    """

    default_stage = "extraction"

    def __init__(
        self,
        message: str,
        *,
        diagnostics: "ValidationDiagnostics | None" = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.diagnostics = diagnostics


class SelectionError(StructIQError):
    """Too many BestOfN attempts failed to produce a scored Prediction."""

    default_stage = "selection"


class ExecutionCancelled(StructIQError):
    """The caller's cancellation signal was observed."""

    default_stage = "cancelled"

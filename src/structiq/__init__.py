"""
StructIQ - Structured outputs and ReAct loops on top of free-form language models.

Declare a typed contract with a ``Signature``, pick an adapter (marker,
JSON or the fallback chain) and run it through ``Predict``,
``ChainOfThought`` or the tool-using ``ReAct`` module. Model text is
repaired and coerced into the declared field types, and the agent loop
always terminates with either a ``Prediction`` or a typed error.
"""

__version__ = "0.1.0"

from dotenv import load_dotenv

load_dotenv(override=False)

from structiq.adapters import (  # noqa: E402
    AdapterKind,
    FallbackAdapter,
    JSONAdapter,
    MarkerAdapter,
    ParseOutcome,
)
from structiq.errors import (  # noqa: E402
    ExecutionCancelled,
    ExtractionFailure,
    FormatError,
    GenerationError,
    InputValidationError,
    MissingRequiredField,
    OutputValidationError,
    ParseError,
    SelectionError,
    StructIQError,
    ToolError,
)
from structiq.modules import (  # noqa: E402
    BestOfN,
    ChainOfThought,
    Example,
    ExampleSet,
    Predict,
    Prediction,
    Program,
    ReAct,
    Refine,
)
from structiq.signatures import (  # noqa: E402
    Field,
    FieldType,
    Signature,
    ValidationDiagnostics,
)

__all__ = [
    "AdapterKind",
    "BestOfN",
    "ChainOfThought",
    "Example",
    "ExampleSet",
    "ExecutionCancelled",
    "ExtractionFailure",
    "FallbackAdapter",
    "Field",
    "FieldType",
    "FormatError",
    "GenerationError",
    "InputValidationError",
    "JSONAdapter",
    "MarkerAdapter",
    "MissingRequiredField",
    "OutputValidationError",
    "ParseError",
    "ParseOutcome",
    "Predict",
    "Prediction",
    "Program",
    "ReAct",
    "Refine",
    "SelectionError",
    "Signature",
    "StructIQError",
    "ToolError",
    "ValidationDiagnostics",
]

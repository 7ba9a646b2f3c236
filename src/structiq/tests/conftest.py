"""
Pytest configuration and fixtures for StructIQ tests.
"""

import pytest

from structiq.llms.mock_llm import MockLLM
from structiq.signatures import FieldType, Signature
from structiq.tools.base_tool import BaseTool


@pytest.fixture
def qa_signature() -> Signature:
    """One required string output."""
    return (
        Signature("Answer the question.")
        .add_input("question", description="The question to answer")
        .add_output("answer", description="A short answer")
    )


@pytest.fixture
def sentiment_signature() -> Signature:
    return (
        Signature("Classify the sentiment of a review.")
        .add_input("review")
        .add_class_output(
            "sentiment",
            ["positive", "negative", "neutral"],
            aliases={"pos": "positive", "neg": "negative"},
        )
        .add_output("confidence", FieldType.FLOAT)
    )


@pytest.fixture
def mixed_signature() -> Signature:
    """One output of every type, plus an optional one."""
    return (
        Signature("Extract facts.")
        .add_input("text")
        .add_output("title")
        .add_output("year", FieldType.INT)
        .add_output("score", FieldType.FLOAT)
        .add_output("published", FieldType.BOOL)
        .add_class_output("genre", ["fiction", "non-fiction"])
        .add_output("meta", FieldType.JSON)
        .add_optional_output("notes")
    )


@pytest.fixture
def search_tool() -> BaseTool:
    def search(query: str) -> str:
        """Search the web."""
        return f"Results for {query}: the capital of France is Paris."

    return BaseTool.from_function(search)


@pytest.fixture
def mock_llm_factory():
    """Build a scripted ``MockLLM``."""

    def _make(*responses, **kwargs) -> MockLLM:
        return MockLLM(list(responses), **kwargs)

    return _make

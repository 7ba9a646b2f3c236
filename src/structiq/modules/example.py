"""
Few-shot demonstrations.

An ``Example`` pairs input values with the outputs the model should have
produced. Adapters render demonstrations inside the prompt using the same
textual convention they parse, so the model sees the exact format it is
expected to answer in.
"""

from __future__ import annotations

import random
from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel, Field


class Example(BaseModel):
    """One input/output demonstration."""

    inputs: Dict[str, Any] = Field(default_factory=dict)
    outputs: Dict[str, Any] = Field(default_factory=dict)
    label: str = Field(default="", description="Optional tag, e.g. 'positive-case'.")
    weight: float = Field(default=1.0, ge=0.0, description="Relative importance.")
    description: str = ""


class ExampleSet(BaseModel):
    """An ordered, named collection of demonstrations."""

    name: str = ""
    examples: List[Example] = Field(default_factory=list)

    def add(self, example: Example) -> "ExampleSet":
        self.examples.append(example)
        return self

    def add_pair(self, inputs: Dict[str, Any], outputs: Dict[str, Any]) -> "ExampleSet":
        return self.add(Example(inputs=dict(inputs), outputs=dict(outputs)))

    def first(self, n: int) -> List[Example]:
        """Up to the first *n* examples."""
        if n <= 0:
            return []
        return list(self.examples[:n])

    def sample(self, n: int, seed: Optional[int] = None) -> List[Example]:
        """*n* examples picked at random without replacement.

        The same *seed* always yields the same selection. Asking for more
        examples than exist returns all of them in random order.
        """
        if n <= 0:
            return []
        rng = random.Random(seed)
        return rng.sample(self.examples, min(n, len(self.examples)))

    def clone(self) -> "ExampleSet":
        return self.model_copy(deep=True)

    def clear(self) -> None:
        self.examples.clear()

    def is_empty(self) -> bool:
        return not self.examples

    def __len__(self) -> int:
        return len(self.examples)

    def __iter__(self) -> Iterator[Example]:  # type: ignore[override]
        return iter(self.examples)

"""
BestOfN - run a module several times and keep the highest-scoring Prediction.

Attempts run one after another, so a module holding a History is safe to
wrap. A scorer receives the inputs and a Prediction and returns a float;
raising ``ValueError`` marks the attempt as failed.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Mapping, Optional

from structiq.chat_models import Usage
from structiq.errors import ExecutionCancelled, SelectionError, StructIQError
from structiq.modules.base import BaseModule
from structiq.modules.config import BestOfNConfig
from structiq.modules.prediction import Prediction
from structiq.repair.coercion import extract_numeric_value

logger = logging.getLogger(__name__)

Scorer = Callable[[Mapping[str, Any], Prediction], float]


def length_scorer(inputs: Mapping[str, Any], prediction: Prediction) -> float:
    """Prefer longer outputs."""
    return float(sum(len(str(v)) for v in prediction.outputs.values()))


def confidence_scorer(field: str = "confidence") -> Scorer:
    """Score by a numeric (or numeric-looking) output field."""

    def score(inputs: Mapping[str, Any], prediction: Prediction) -> float:
        value = prediction.get(field)
        if value is None:
            raise ValueError(f"confidence field '{field}' not found in outputs")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, str):
            number = extract_numeric_value(value)
            if number is not None:
                return number
        raise ValueError(f"cannot read a confidence from {value!r}")

    return score


class BestOfN(BaseModule):
    """
    Sequential best-of-N sampling over any module.

    Example:
        ```python
        best = BestOfN(
            Predict(sig, llm),
            confidence_scorer(),
            config=BestOfNConfig(n=5, threshold=0.9),
        )
        pred = await best.forward({"review": "Loved it"})
        pred.score
        ```
    """

    def __init__(
        self,
        module: BaseModule,
        scorer: Scorer,
        *,
        config: Optional[BestOfNConfig] = None,
    ):
        super().__init__(module.signature, module.llm, adapter=module.adapter)
        self.module = module
        self.scorer = scorer
        self.config = config or BestOfNConfig()

    async def forward(self, inputs: Mapping[str, Any]) -> Prediction:
        """
        Run up to ``n`` attempts and return the best one with ``score`` set.

        Raises:
            InputValidationError: a required input is missing
            SelectionError: more attempts failed than ``max_failures`` allows
        """
        self.signature.validate_inputs(inputs)
        n = self.config.n
        max_failures = self.config.max_failures
        if max_failures is None:
            max_failures = n // 2

        best: Optional[Prediction] = None
        best_score = 0.0
        scored: List[Prediction] = []
        usage = Usage()
        failures = 0

        for attempt in range(1, n + 1):
            try:
                pred = await self.module.forward(inputs)
                usage = usage + pred.usage
                score = float(self.scorer(inputs, pred))
            except ExecutionCancelled:
                raise
            except (StructIQError, ValueError) as exc:
                failures += 1
                logger.warning("Attempt %d/%d failed: %s", attempt, n, exc)
                if failures > max_failures:
                    raise SelectionError(
                        f"exceeded maximum failures ({failures}/{n}): {exc}", cause=exc
                    ) from exc
                continue

            logger.debug("Attempt %d/%d scored %s", attempt, n, score)
            scored.append(pred)
            if best is None or score > best_score:
                best, best_score = pred, score
            if self.config.threshold is not None and score >= self.config.threshold:
                logger.info("Score %s reached threshold after %d attempts", score, attempt)
                break

        if best is None:
            raise SelectionError(f"all {n} attempts failed")

        update = {"score": best_score, "usage": usage, "module_name": self.name}
        if self.config.return_all:
            update["completions"] = [dict(p.outputs) for p in scored]
        return best.model_copy(update=update)

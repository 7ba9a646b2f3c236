"""
Refine - improve a prediction using caller feedback.

The first call answers the task without the feedback input. When feedback
is present, each further call sees the original inputs, the feedback and
the previous outputs (as ``previous_<name>`` inputs) and produces a
revised answer. A failed revision keeps the last valid output.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from structiq.adapters.base import BaseAdapter
from structiq.errors import ExecutionCancelled, StructIQError
from structiq.llms.base_llm import BaseLLM
from structiq.modules.base import BaseModule
from structiq.modules.config import RefineConfig
from structiq.modules.example import Example
from structiq.modules.predict import Predict
from structiq.modules.prediction import Prediction
from structiq.signatures.signature import Signature

logger = logging.getLogger(__name__)

REFINE_INSTRUCTION = "Refine the previous output based on the feedback."

PREVIOUS_PREFIX = "previous_"


def _initial_signature(signature: Signature, feedback_field: str) -> Signature:
    sig = Signature(signature.description)
    sig.input_fields = [f for f in signature.input_fields if f.name != feedback_field]
    sig.output_fields = list(signature.output_fields)
    return sig


def _refinement_signature(signature: Signature, feedback_field: str) -> Signature:
    description = REFINE_INSTRUCTION
    if signature.description:
        description = f"{REFINE_INSTRUCTION}\n\n{signature.description}"
    sig = _initial_signature(signature, feedback_field)
    sig.description = description
    sig.add_input(feedback_field, description="Feedback on the previous output")
    for field in signature.output_fields:
        sig.add_optional_input(
            PREVIOUS_PREFIX + field.name, description=f"Previous value of {field.name}"
        )
    return sig


class Refine(BaseModule):
    """
    Iterative refinement on top of ``Predict``.

    Example:
        ```python
        sig = (
            Signature("Write a product tagline.")
            .add_input("product")
            .add_optional_input("feedback")
            .add_output("tagline")
        )
        refine = Refine(sig, llm, config=RefineConfig(max_iterations=2))
        pred = await refine.forward({"product": "tea", "feedback": "shorter"})
        ```
    """

    def __init__(
        self,
        signature: Signature,
        llm: BaseLLM,
        *,
        adapter: Optional[BaseAdapter] = None,
        demos: Optional[Sequence[Example]] = None,
        config: Optional[RefineConfig] = None,
    ):
        super().__init__(signature, llm, adapter=adapter, demos=demos)
        self.config = config or RefineConfig()
        field = self.config.refinement_field
        self.predictor = Predict(
            _initial_signature(signature, field),
            llm,
            adapter=self.adapter,
            demos=self.demos,
            config=self.config,
        )
        self.refiner = Predict(
            _refinement_signature(signature, field), llm, adapter=self.adapter, config=self.config
        )

    async def forward(self, inputs: Mapping[str, Any]) -> Prediction:
        """
        Predict once, then revise up to ``max_iterations - 1`` times.

        Raises:
            InputValidationError: a required input is missing
            StructIQError: the initial prediction failed (revision failures
                are logged and end the refinement instead)
        """
        self.signature.validate_inputs(inputs)
        field = self.config.refinement_field
        base_inputs: Dict[str, Any] = {k: v for k, v in inputs.items() if k != field}

        pred = await self.predictor.forward(base_inputs)
        usage = pred.usage
        feedback = inputs.get(field)

        if feedback is not None:
            for round_ in range(1, self.config.max_iterations):
                refine_inputs = dict(base_inputs)
                refine_inputs[field] = feedback
                for name in self.signature.output_names:
                    if pred.outputs.get(name) is not None:
                        refine_inputs[PREVIOUS_PREFIX + name] = pred.outputs[name]
                try:
                    refined = await self.refiner.forward(refine_inputs)
                except ExecutionCancelled:
                    raise
                except StructIQError as exc:
                    logger.warning(
                        "Refinement round %d failed (%s), keeping previous output",
                        round_,
                        exc.message,
                    )
                    break
                usage = usage + refined.usage
                pred = refined

        return pred.model_copy(
            update={"usage": usage, "module_name": self.name, "inputs": dict(inputs)}
        )

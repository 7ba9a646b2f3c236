"""
Program - a named pipeline of modules run in order.

Each step receives the original inputs merged with the outputs of every
earlier step, so later signatures can declare earlier outputs as inputs.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from structiq.chat_models import Usage
from structiq.errors import StructIQError
from structiq.modules.base import BaseModule
from structiq.modules.prediction import Prediction
from structiq.signatures.signature import Signature

logger = logging.getLogger(__name__)


class Program(BaseModule):
    """
    Sequential composition of modules.

    Example:
        ```python
        program = (
            Program("summarize_then_classify")
            .add_module(Predict(summary_sig, llm))
            .add_module(Predict(topic_sig, llm))
        )
        pred = await program.forward({"article": text})
        ```

    A Program has no model of its own; its ``signature`` is the one of its
    last step.
    """

    def __init__(self, name: str = "Program", modules: Sequence[BaseModule] = ()):
        self._name = name
        self.modules: List[BaseModule] = list(modules)
        self.llm = None
        self.adapter = None
        self.history = None
        self.demos = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def signature(self) -> Optional[Signature]:
        return self.modules[-1].signature if self.modules else None

    def __len__(self) -> int:
        return len(self.modules)

    def add_module(self, module: BaseModule) -> "Program":
        self.modules.append(module)
        return self

    async def forward(self, inputs: Mapping[str, Any]) -> Prediction:
        """
        Run every step and return the merged outputs of all of them.

        Raises:
            ValueError: the program has no modules
            StructIQError: whatever the failing step raised
        """
        if not self.modules:
            raise ValueError("program has no modules")

        current: Dict[str, Any] = dict(inputs)
        outputs: Dict[str, Any] = {}
        usage = Usage()
        rationale = ""

        for index, module in enumerate(self.modules):
            logger.debug("Program %s: step %d (%s)", self.name, index, module.name)
            try:
                pred = await module.forward(current)
            except StructIQError as exc:
                logger.error("Program %s: step %d (%s) failed: %s", self.name, index, module.name, exc)
                raise
            outputs.update(pred.outputs)
            current.update(pred.outputs)
            usage = usage + pred.usage
            rationale = pred.rationale or rationale

        return Prediction(
            outputs=outputs,
            rationale=rationale,
            usage=usage,
            module_name=self.name,
            inputs=dict(inputs),
        )

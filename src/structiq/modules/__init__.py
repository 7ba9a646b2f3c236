from structiq.modules.base import BaseModule
from structiq.modules.best_of_n import BestOfN, Scorer, confidence_scorer, length_scorer
from structiq.modules.config import (
    BestOfNConfig,
    PredictConfig,
    ReActConfig,
    ReActState,
    RefineConfig,
)
from structiq.modules.example import Example, ExampleSet
from structiq.modules.predict import ChainOfThought, Predict
from structiq.modules.prediction import Prediction, ReActStep
from structiq.modules.program import Program
from structiq.modules.react import ReAct
from structiq.modules.refine import Refine

__all__ = [
    "BaseModule",
    "BestOfN",
    "BestOfNConfig",
    "ChainOfThought",
    "Example",
    "ExampleSet",
    "Predict",
    "PredictConfig",
    "Prediction",
    "Program",
    "ReAct",
    "ReActConfig",
    "ReActState",
    "ReActStep",
    "Refine",
    "RefineConfig",
    "Scorer",
    "confidence_scorer",
    "length_scorer",
]

"""Service layer: evaluator backends, analogy generation and wiring."""

from .analogy import AnalogyService, fallback_analogy
from .generation import Evaluator, EvaluatorConfig, EvaluatorResponse, TransformersEvaluator

__all__ = [
    "AnalogyService",
    "Evaluator",
    "EvaluatorConfig",
    "EvaluatorResponse",
    "TransformersEvaluator",
    "fallback_analogy",
]

"""Scoring value objects."""

from .distance import DomainDistance
from .score import ScoreParams, SerendipityScore, SerendipityTier
from .similarity import EmbeddingDimensionError, cosine_similarity

__all__ = [
    "DomainDistance",
    "EmbeddingDimensionError",
    "ScoreParams",
    "SerendipityScore",
    "SerendipityTier",
    "cosine_similarity",
]

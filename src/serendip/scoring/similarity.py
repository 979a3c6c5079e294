"""Vector similarity helpers."""

from __future__ import annotations

import math
from typing import Sequence


class EmbeddingDimensionError(ValueError):
    """Raised when two embedding vectors have different lengths.

    This signals a corrupted or mixed-model embedding store, so callers abort the
    whole discovery instead of skipping the pair.
    """


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise EmbeddingDimensionError(f"Vectors must have same length ({len(a)} != {len(b)})")
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for left, right in zip(a, b):
        dot += left * right
        norm_a += left * left
        norm_b += right * right
    denominator = math.sqrt(norm_a) * math.sqrt(norm_b)
    if denominator == 0.0:
        return 0.0
    return dot / denominator

"""Serendipity score value object.

The score rewards notes that are semantically close but live in distant domains::

    base = similarity * 0.4 + domain_distance * 0.6
    score = base * novelty_penalty * specificity_penalty

``novelty_penalty`` halves the score of notes that are already linked and
``specificity_penalty`` removes 15% per generic term, floored at 30%.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from serendip.scoring.distance import clamp_unit

SIMILARITY_WEIGHT = 0.4
DOMAIN_DISTANCE_WEIGHT = 0.6
LINKED_PENALTY = 0.5
GENERIC_TERM_PENALTY = 0.15
MIN_SPECIFICITY = 0.3

HIGH_THRESHOLD = 0.7
MEDIUM_THRESHOLD = 0.4


class SerendipityTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class ScoreParams:
    """Inputs of :meth:`SerendipityScore.calculate`."""

    similarity: float
    domain_distance: float
    is_already_linked: bool = False
    generic_terms_count: int = 0


@dataclass(frozen=True)
class SerendipityScore:
    value: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", clamp_unit(float(self.value)))

    @classmethod
    def calculate(cls, params: ScoreParams) -> "SerendipityScore":
        base = params.similarity * SIMILARITY_WEIGHT + params.domain_distance * DOMAIN_DISTANCE_WEIGHT
        novelty_penalty = LINKED_PENALTY if params.is_already_linked else 1.0
        specificity_penalty = max(MIN_SPECIFICITY, 1.0 - params.generic_terms_count * GENERIC_TERM_PENALTY)
        return cls(base * novelty_penalty * specificity_penalty)

    @classmethod
    def from_value(cls, value: float) -> "SerendipityScore":
        return cls(value)

    @property
    def tier(self) -> SerendipityTier:
        if self.value >= HIGH_THRESHOLD:
            return SerendipityTier.HIGH
        if self.value >= MEDIUM_THRESHOLD:
            return SerendipityTier.MEDIUM
        return SerendipityTier.LOW

    @property
    def percent(self) -> int:
        # round half up
        return int(self.value * 100 + 0.5)

    def __str__(self) -> str:
        return f"{self.percent}%"

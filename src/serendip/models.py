"""Shared domain models used across the discovery pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Sequence, Tuple

from serendip.scoring import DomainDistance, SerendipityScore
from serendip.scoring.distance import clamp_unit


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class NoteDomain:
    """A note after domain classification."""

    note_id: str
    path: str
    title: str
    primary_domain: str
    secondary_domains: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    embedding: Tuple[float, ...] | None = None


@dataclass(frozen=True)
class NoteEmbedding:
    """Embedding record read from an embedding store."""

    note_id: str
    vector: Tuple[float, ...]
    model: str = "unknown"
    updated_at: datetime = field(default_factory=utcnow)


class ConnectionType(str, Enum):
    UNEXPECTED_SIMILARITY = "unexpected_similarity"
    BRIDGING_CONCEPT = "bridging_concept"
    ANALOGICAL = "analogical"
    CONTRASTING = "contrasting"

    @property
    def label(self) -> str:
        return _CONNECTION_TYPE_LABELS[self]


_CONNECTION_TYPE_LABELS = {
    ConnectionType.UNEXPECTED_SIMILARITY: "Unexpected similarity",
    ConnectionType.BRIDGING_CONCEPT: "Bridging concept",
    ConnectionType.ANALOGICAL: "Analogical connection",
    ConnectionType.CONTRASTING: "Contrasting perspective",
}


def infer_connection_type(similarity: float, domain_distance: float) -> ConnectionType:
    """Label a pair from its similarity and domain distance; first match wins."""

    if similarity > 0.8 and domain_distance > 0.8:
        return ConnectionType.UNEXPECTED_SIMILARITY
    if similarity > 0.6 and domain_distance > 0.5:
        return ConnectionType.BRIDGING_CONCEPT
    if similarity < 0.5 and domain_distance > 0.7:
        return ConnectionType.CONTRASTING
    return ConnectionType.ANALOGICAL


@dataclass
class Connection:
    """Cross-domain connection found by the standard discovery engine."""

    source: NoteDomain
    target: NoteDomain
    serendipity_score: SerendipityScore
    domain_distance: DomainDistance
    similarity: float
    connection_type: ConnectionType
    explanation: str | None = None
    discovered_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if self.source.note_id == self.target.note_id:
            raise ValueError(f"Connection source and target must differ: {self.source.note_id}")

    @property
    def pair_key(self) -> Tuple[str, str]:
        """Unordered identifier pair; A->B and B->A share the same key."""

        first, second = sorted((self.source.note_id, self.target.note_id))
        return first, second

    def attach_explanation(self, explanation: str) -> None:
        if self.explanation is not None:
            raise ValueError(
                f"Explanation already attached for {self.source.note_id} -> {self.target.note_id}",
            )
        self.explanation = explanation


@dataclass(frozen=True)
class DeepConnection:
    """Connection proposed by domain separation and judged by the evaluator."""

    source: NoteDomain
    target: NoteDomain
    quality_score: float
    explanation: str
    domain_distance: float = 1.0
    discovered_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        object.__setattr__(self, "quality_score", clamp_unit(float(self.quality_score)))
        object.__setattr__(self, "domain_distance", clamp_unit(float(self.domain_distance)))


def sort_by_score(connections: Sequence[Connection]) -> list[Connection]:
    return sorted(connections, key=lambda conn: conn.serendipity_score.value, reverse=True)

"""Analogy explanations for standard connections."""

from __future__ import annotations

from typing import Dict, Iterable, Tuple

from serendip.metrics.observability import DiscoveryMetrics, TimedSection, get_logger
from serendip.models import Connection, ConnectionType
from serendip.services.generation import Evaluator

SYSTEM_PROMPT = """You are a knowledge integration expert. You uncover hidden links between concepts from different fields
and offer new insight through creative analogies.

When answering:
- Be concise and clear, two or three sentences.
- Focus on structural or conceptual similarity, not surface overlap.
- Use language a reader interested in either domain can follow.
- Include a concrete example or metaphor where possible."""


def build_analogy_prompt(connection: Connection) -> str:
    source = connection.source
    target = connection.target
    return f"""Analyse the emergent connection between two notes and produce an analogy.

## Source note
- Title: {source.title}
- Domain: {source.primary_domain}
- Tags: {", ".join(source.tags) or "none"}

## Target note
- Title: {target.title}
- Domain: {target.primary_domain}
- Tags: {", ".join(target.tags) or "none"}

## Connection
- Similarity: {connection.similarity * 100:.1f}%
- Domain distance: {connection.domain_distance.value:.2f}
- Connection type: {connection.connection_type.label}
- Serendipity score: {connection.serendipity_score.percent}%

## Request
In two or three sentences, explain why these notes can be connected and what structural or conceptual
similarity they share. If possible, offer the key insight or analogy that bridges the two domains."""


def fallback_analogy(connection: Connection) -> str:
    source = connection.source
    target = connection.target
    kind = connection.connection_type
    if kind is ConnectionType.UNEXPECTED_SIMILARITY:
        return (
            f"'{source.title}' ({source.primary_domain}) and '{target.title}' ({target.primary_domain}) "
            "show a high conceptual similarity despite belonging to different fields."
        )
    if kind is ConnectionType.BRIDGING_CONCEPT:
        return (
            f"'{source.title}' and '{target.title}' may be bridging concepts between "
            f"{source.primary_domain} and {target.primary_domain}."
        )
    if kind is ConnectionType.ANALOGICAL:
        return f"The structure of '{source.title}' may apply by analogy to '{target.title}'."
    return f"'{source.title}' and '{target.title}' offer contrasting perspectives that deepen each other."


class AnalogyService:
    """Asks the evaluator to explain a connection, with a deterministic fallback."""

    def __init__(self, evaluator: Evaluator) -> None:
        self._evaluator = evaluator
        self._logger = get_logger("analogy")

    def explain(self, connection: Connection) -> str:
        with TimedSection(DiscoveryMetrics.observe_evaluation):
            response = self._evaluator.generate(build_analogy_prompt(connection), SYSTEM_PROMPT)
        if response.success and response.text:
            return response.text.strip()
        DiscoveryMetrics.evaluator_failures.inc()
        return fallback_analogy(connection)

    def attach(self, connection: Connection) -> Connection:
        connection.attach_explanation(self.explain(connection))
        return connection

    def explain_batch(self, connections: Iterable[Connection]) -> Dict[Tuple[str, str], str]:
        results: Dict[Tuple[str, str], str] = {}
        for connection in connections:
            key = (connection.source.note_id, connection.target.note_id)
            try:
                results[key] = self.explain(connection)
            except Exception as exc:
                DiscoveryMetrics.evaluator_failures.inc()
                self._logger.error(
                    "analogy.failed",
                    source_id=connection.source.note_id,
                    target_id=connection.target.note_id,
                    detail=str(exc),
                )
                results[key] = fallback_analogy(connection)
        return results

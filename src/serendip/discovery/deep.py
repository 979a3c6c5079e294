"""LLM-first ("deep") cross-domain discovery.

Similarity-first discovery only proposes pairs that are already close in
embedding space. This engine selects pairs by domain separation alone and lets
the evaluator decide whether a meaningful connection exists.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from serendip.discovery.classifier import DomainClassifier, NoteNotFoundError
from serendip.discovery.filters import FolderFilter
from serendip.embeddings.store import EmbeddingStore
from serendip.metrics.observability import DiscoveryMetrics, TimedSection, get_logger
from serendip.models import DeepConnection, NoteDomain, utcnow
from serendip.scoring.distance import clamp_unit
from serendip.services.generation import Evaluator

POSSIBLE_MARKER = "CONNECTION_POSSIBLE:"
SCORE_MARKER = "QUALITY_SCORE:"
ANALOGY_MARKER = "ANALOGY:"
AFFIRMATIVE = "YES"

# Domain difference alone; not refined by tag Jaccard in this mode.
CROSS_DOMAIN_DISTANCE = 1.0

_NUMBER_RE = re.compile(r"[\d.]+")

SYSTEM_PROMPT = """You are an expert at discovering creative connections.
Your role is to find hidden structural similarities and deep insights between concepts from different fields.

Important:
- Give low scores to superficial connections (simple keyword overlap).
- Give high scores to genuinely creative connections (structural analogies, pattern recognition, transfer of insight across domains).
- If a connection is forced or meaningless, answer CONNECTION_POSSIBLE: NO.
- Always follow the required response format."""


@dataclass(frozen=True)
class DeepDiscoveryConfig:
    max_pairs_to_evaluate: int = 20
    min_quality_score: float = 0.5
    max_results: int = 10
    include_folders: Tuple[str, ...] = ()
    exclude_folders: Tuple[str, ...] = ()
    samples_per_domain: int = 3


@dataclass(frozen=True)
class EvaluationResult:
    connection_possible: bool
    quality_score: float
    explanation: str


@dataclass(frozen=True)
class CandidatePair:
    source: NoteDomain
    target: NoteDomain
    domain_distance: float = CROSS_DOMAIN_DISTANCE


NOT_POSSIBLE = EvaluationResult(connection_possible=False, quality_score=0.0, explanation="")


def parse_evaluation_response(content: str) -> EvaluationResult:
    """Parse the line-oriented evaluator answer. Never raises."""

    possible = False
    score = 0.0
    explanation = ""
    for line in content.split("\n"):
        stripped = line.strip()
        if stripped.startswith(POSSIBLE_MARKER):
            possible = AFFIRMATIVE in stripped
        elif stripped.startswith(SCORE_MARKER):
            match = _NUMBER_RE.search(stripped)
            if match:
                try:
                    score = clamp_unit(float(match.group(0)))
                except ValueError:
                    score = 0.0
        elif stripped.startswith(ANALOGY_MARKER):
            explanation = stripped[len(ANALOGY_MARKER) :].strip()

    # the explanation may continue on the lines after the marker
    if not explanation:
        index = content.find(ANALOGY_MARKER)
        if index != -1:
            explanation = content[index + len(ANALOGY_MARKER) :].strip()

    return EvaluationResult(connection_possible=possible, quality_score=score, explanation=explanation)


def build_evaluation_prompt(source: NoteDomain, target: NoteDomain) -> str:
    return f"""Evaluate whether a creative and meaningful connection is possible between the two notes below.

## Note A
- Title: {source.title}
- Domain: {source.primary_domain}
- Tags: {", ".join(source.tags) or "none"}

## Note B
- Title: {target.title}
- Domain: {target.primary_domain}
- Tags: {", ".join(target.tags) or "none"}

## Criteria
1. Do they look unrelated on the surface yet share a deep structural or conceptual similarity?
2. Can an insight from one field be applied to the other?
3. Can connecting the two concepts produce a new idea?

## Response format (follow it exactly)
{POSSIBLE_MARKER} [YES/NO]
{SCORE_MARKER} [number between 0.0 and 1.0, one decimal place]
{ANALOGY_MARKER} [2-3 sentences explaining the creative connection, or "no connection"]

Example:
{POSSIBLE_MARKER} YES
{SCORE_MARKER} 0.8
{ANALOGY_MARKER} The "survival of the fittest" principle of evolution works the same way in startup ecosystems. Just as species that fail to adapt die out, companies that fail to respond to market change disappear."""


class DeepDiscoveryEngine:
    """Samples cross-domain pairs and asks the evaluator to judge each one.

    Evaluator calls are made strictly one pair at a time.
    """

    def __init__(
        self,
        store: EmbeddingStore,
        classifier: DomainClassifier,
        evaluator: Evaluator,
        *,
        config: DeepDiscoveryConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._classifier = classifier
        self._evaluator = evaluator
        self._config = config or DeepDiscoveryConfig()
        self._filter = FolderFilter(self._config.include_folders, self._config.exclude_folders)
        self._rng = rng or random.Random()
        self._logger = get_logger("discovery.deep")

    @property
    def config(self) -> DeepDiscoveryConfig:
        return self._config

    def discover(self) -> list[DeepConnection]:
        groups = self.group_by_domain()
        pairs = self.sample_cross_domain_pairs(groups)
        self._logger.info("deep.pairs_sampled", domains=len(groups), pairs=len(pairs))
        if not pairs:
            return []

        evaluated = self._evaluate_pairs(pairs)
        results = [conn for conn in evaluated if conn.quality_score >= self._config.min_quality_score]
        results.sort(key=lambda conn: conn.quality_score, reverse=True)
        results = results[: self._config.max_results]
        DiscoveryMetrics.observe_deep(len(results))
        self._logger.info("deep.complete", positive=len(evaluated), returned=len(results))
        return results

    def group_by_domain(self) -> Dict[str, List[NoteDomain]]:
        groups: Dict[str, List[NoteDomain]] = {}
        for note_id, embedding in self._store.get_all().items():
            path = self._classifier.get_path(note_id)
            if path is None or not self._filter.allows(path):
                continue
            try:
                note = self._classifier.classify(note_id, embedding.vector)
            except NoteNotFoundError:
                continue
            groups.setdefault(note.primary_domain, []).append(note)
        return groups

    def sample_cross_domain_pairs(self, groups: Dict[str, List[NoteDomain]]) -> list[CandidatePair]:
        domains = list(groups.keys())
        if len(domains) < 2:
            self._logger.warning("deep.not_enough_domains", domains=len(domains))
            return []
        pairs: list[CandidatePair] = []
        for i, first in enumerate(domains):
            for second in domains[i + 1 :]:
                left = self._sample(groups[first])
                right = self._sample(groups[second])
                pairs.extend(CandidatePair(source=a, target=b) for a in left for b in right)
        self._rng.shuffle(pairs)
        return pairs[: self._config.max_pairs_to_evaluate]

    def evaluate_pair(self, source: NoteDomain, target: NoteDomain) -> EvaluationResult:
        with TimedSection(DiscoveryMetrics.observe_evaluation):
            response = self._evaluator.generate(build_evaluation_prompt(source, target), SYSTEM_PROMPT)
        if not response.success or not response.text:
            DiscoveryMetrics.evaluator_failures.inc()
            return NOT_POSSIBLE
        return parse_evaluation_response(response.text)

    def _evaluate_pairs(self, pairs: Sequence[CandidatePair]) -> list[DeepConnection]:
        results: list[DeepConnection] = []
        for pair in pairs:
            DiscoveryMetrics.deep_pairs_evaluated.inc()
            try:
                evaluation = self.evaluate_pair(pair.source, pair.target)
            except Exception as exc:
                DiscoveryMetrics.evaluator_failures.inc()
                self._logger.error(
                    "deep.evaluation_failed",
                    source_id=pair.source.note_id,
                    target_id=pair.target.note_id,
                    detail=str(exc),
                )
                continue
            if evaluation.connection_possible and evaluation.quality_score > 0:
                results.append(
                    DeepConnection(
                        source=pair.source,
                        target=pair.target,
                        quality_score=evaluation.quality_score,
                        explanation=evaluation.explanation,
                        domain_distance=pair.domain_distance,
                        discovered_at=utcnow(),
                    ),
                )
        return results

    def _sample(self, notes: List[NoteDomain]) -> List[NoteDomain]:
        size = self._config.samples_per_domain
        if len(notes) <= size:
            return list(notes)
        return self._rng.sample(notes, size)

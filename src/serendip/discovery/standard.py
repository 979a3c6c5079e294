"""Similarity-first cross-domain discovery."""

from __future__ import annotations

import random
import time
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Mapping, Tuple

from serendip.config import DEFAULT_GENERIC_TERMS
from serendip.discovery.classifier import DomainClassifier, NoteNotFoundError
from serendip.discovery.filters import FolderFilter
from serendip.embeddings.store import EmbeddingStore
from serendip.metrics.observability import DiscoveryMetrics, get_logger
from serendip.models import Connection, NoteDomain, NoteEmbedding, infer_connection_type, sort_by_score, utcnow
from serendip.scoring import DomainDistance, ScoreParams, SerendipityScore, cosine_similarity
from serendip.vault.notes import LinkChecker


@dataclass(frozen=True)
class DiscoveryConfig:
    """Thresholds and limits of the standard engine."""

    min_similarity: float = 0.5
    min_serendipity_score: float = 0.4
    max_results: int = 10
    include_folders: Tuple[str, ...] = ()
    exclude_folders: Tuple[str, ...] = ()
    generic_terms: Tuple[str, ...] = DEFAULT_GENERIC_TERMS
    sample_size: int = 100


def count_generic_terms(note: NoteDomain, terms: Iterable[str]) -> int:
    """Count generic-term hits: one per term found in the title, one per tag containing it."""

    lowered_terms = [term.lower() for term in terms]
    title = note.title.lower()
    count = sum(1 for term in lowered_terms if term in title)
    for tag in note.tags:
        tag_lower = tag.lower()
        count += sum(1 for term in lowered_terms if term in tag_lower)
    return count


class StandardDiscoveryEngine:
    """Finds embedding-similar notes that live in other domains."""

    def __init__(
        self,
        store: EmbeddingStore,
        classifier: DomainClassifier,
        *,
        link_checker: LinkChecker | None = None,
        config: DiscoveryConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._classifier = classifier
        self._link_checker = link_checker
        self._config = config or DiscoveryConfig()
        self._filter = FolderFilter(self._config.include_folders, self._config.exclude_folders)
        self._rng = rng or random.Random()
        self._logger = get_logger("discovery.standard")

    @property
    def config(self) -> DiscoveryConfig:
        return self._config

    def discover(self, source_id: str) -> list[Connection]:
        """Return the best cross-domain connections for one source note.

        Raises:
            NoteNotFoundError: the source has an embedding but is not in the vault index.
            EmbeddingDimensionError: two stored vectors have different lengths.
        """

        source_embedding = self._store.get(source_id)
        if source_embedding is None:
            self._logger.warning("discovery.no_source_embedding", source_id=source_id)
            return []
        return self._discover(source_id, source_embedding, self._store.get_all())

    def find_top_serendipitous_connections(self, limit: int = 10) -> list[Connection]:
        """Run discovery over a bounded sample of sources and merge the results."""

        snapshot = self._store.get_all()
        note_ids = list(snapshot.keys())
        if len(note_ids) > self._config.sample_size:
            note_ids = self._rng.sample(note_ids, self._config.sample_size)

        seen: set[Tuple[str, str]] = set()
        merged: list[Connection] = []
        for source_id in note_ids:
            try:
                connections = self._discover(source_id, snapshot[source_id], snapshot)
            except NoteNotFoundError:
                self._logger.info("discovery.source_unindexed", source_id=source_id)
                continue
            for connection in connections:
                if connection.pair_key in seen:
                    continue
                seen.add(connection.pair_key)
                merged.append(connection)

        self._logger.info(
            "discovery.top_complete",
            sampled_sources=len(note_ids),
            unique_connections=len(merged),
            limit=limit,
        )
        return sort_by_score(merged)[:limit]

    def _discover(
        self,
        source_id: str,
        source_embedding: NoteEmbedding,
        embeddings: Mapping[str, NoteEmbedding],
    ) -> list[Connection]:
        start = time.perf_counter()
        source = self._classifier.classify(source_id, source_embedding.vector)
        skips: Counter[str] = Counter()
        candidates: list[Connection] = []

        for target_id, target_embedding in embeddings.items():
            if target_id == source_id:
                skips["self"] += 1
                continue
            target_path = self._classifier.get_path(target_id)
            if target_path is not None and not self._filter.allows(target_path):
                skips["excluded"] += 1
                continue
            if (
                target_path is not None
                and self._link_checker is not None
                and self._link_checker.exists(source.path, target_path)
            ):
                skips["linked"] += 1
                continue
            try:
                target = self._classifier.classify(target_id, target_embedding.vector)
            except NoteNotFoundError:
                skips["classify_error"] += 1
                continue
            if target.primary_domain == source.primary_domain:
                skips["same_domain"] += 1
                continue

            similarity = cosine_similarity(source_embedding.vector, target_embedding.vector)
            if similarity < self._config.min_similarity:
                skips["low_similarity"] += 1
                continue

            distance = DomainDistance.from_tag_jaccard(source.tags, target.tags)
            score = SerendipityScore.calculate(
                ScoreParams(
                    similarity=similarity,
                    domain_distance=distance.value,
                    # linked pairs were already dropped above
                    is_already_linked=False,
                    generic_terms_count=count_generic_terms(target, self._config.generic_terms),
                ),
            )
            if score.value < self._config.min_serendipity_score:
                skips["low_serendipity"] += 1
                continue

            candidates.append(
                Connection(
                    source=source,
                    target=target,
                    serendipity_score=score,
                    domain_distance=distance,
                    similarity=similarity,
                    connection_type=infer_connection_type(similarity, distance.value),
                    discovered_at=utcnow(),
                ),
            )

        results = sort_by_score(candidates)[: self._config.max_results]
        duration = time.perf_counter() - start
        DiscoveryMetrics.record_skips(dict(skips))
        DiscoveryMetrics.observe_discovery(duration, (conn.serendipity_score.value for conn in results))
        self._logger.info(
            "discovery.complete",
            source_id=source_id,
            source_domain=source.primary_domain,
            candidates=len(candidates),
            returned=len(results),
            skips=dict(skips),
            duration_seconds=duration,
        )
        return results

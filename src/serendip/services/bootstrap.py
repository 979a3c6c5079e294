"""Wiring of the discovery services from settings."""

from __future__ import annotations

import random
from dataclasses import dataclass

import chromadb

from serendip.cache import SerendipityCache
from serendip.config import Settings
from serendip.discovery.classifier import DomainClassifier, build_strategy
from serendip.discovery.deep import DeepDiscoveryConfig, DeepDiscoveryEngine
from serendip.discovery.standard import DiscoveryConfig, StandardDiscoveryEngine
from serendip.embeddings.service import EmbeddingConfig, HuggingFaceEmbeddingBackend, NoteEmbedder
from serendip.embeddings.store import ChromaEmbeddingStore, EmbeddingStore, JsonFolderEmbeddingStore
from serendip.metrics.observability import get_logger
from serendip.services.analogy import AnalogyService
from serendip.services.generation import EvaluatorConfig, TransformersEvaluator
from serendip.vault.notes import MarkdownVault, WikiLinkChecker

LOGGER = get_logger("bootstrap")


@dataclass(frozen=True)
class ServiceBundle:
    settings: Settings
    vault: MarkdownVault
    store: EmbeddingStore
    classifier: DomainClassifier
    engine: StandardDiscoveryEngine
    cache: SerendipityCache
    deep_engine: DeepDiscoveryEngine | None = None
    analogy: AnalogyService | None = None


def build_chroma_store(settings: Settings) -> ChromaEmbeddingStore:
    chroma_client = None
    if settings.chroma_host:
        chroma_client = chromadb.HttpClient(
            host=settings.chroma_host,
            port=settings.chroma_port or 8000,
            ssl=settings.chroma_ssl,
        )
    return ChromaEmbeddingStore(
        collection_name=settings.chroma_collection,
        client=chroma_client,
        persist_directory=None if chroma_client else settings.chroma_persist_dir,
    )


def build_store(settings: Settings) -> EmbeddingStore:
    if settings.embeddings_source == "chroma":
        return build_chroma_store(settings)
    return JsonFolderEmbeddingStore(settings.embeddings_dir)


def build_embedder(settings: Settings) -> NoteEmbedder:
    backend = HuggingFaceEmbeddingBackend(
        EmbeddingConfig(
            model=settings.embedding_model,
            dim=settings.embedding_dim,
            use_model=settings.use_model_embeddings,
            normalize=True,
        ),
    )
    return NoteEmbedder(backend)


def build_services(settings: Settings) -> ServiceBundle:
    vault = MarkdownVault(settings.vault_dir)
    store = build_store(settings)
    prefixes = settings.domain_tag_prefixes_tuple
    classifier = DomainClassifier(
        vault,
        build_strategy(settings.classification_method, prefixes),
        domain_tag_prefixes=prefixes,
    )
    rng = random.Random(settings.random_seed)
    engine = StandardDiscoveryEngine(
        store,
        classifier,
        link_checker=WikiLinkChecker(vault),
        config=DiscoveryConfig(
            min_similarity=settings.min_similarity,
            min_serendipity_score=settings.min_serendipity_score,
            max_results=settings.max_results,
            include_folders=settings.include_folders_tuple,
            exclude_folders=settings.exclude_folders_tuple,
            generic_terms=settings.generic_terms_tuple,
            sample_size=settings.sample_size,
        ),
        rng=rng,
    )

    deep_engine = None
    analogy = None
    if settings.use_model_evaluator:
        evaluator = TransformersEvaluator(
            EvaluatorConfig(
                model=settings.evaluator_model,
                max_new_tokens=settings.evaluator_max_new_tokens,
                temperature=settings.evaluator_temperature,
                use_model=True,
            ),
        )
        deep_engine = DeepDiscoveryEngine(
            store,
            classifier,
            evaluator,
            config=DeepDiscoveryConfig(
                max_pairs_to_evaluate=settings.deep_max_pairs,
                min_quality_score=settings.deep_min_quality,
                max_results=settings.max_results,
                include_folders=settings.include_folders_tuple,
                exclude_folders=settings.exclude_folders_tuple,
                samples_per_domain=settings.deep_samples_per_domain,
            ),
            rng=rng,
        )
        analogy = AnalogyService(evaluator)

    LOGGER.info(
        "bootstrap.complete",
        vault_dir=str(settings.vault_dir),
        embeddings_source=settings.embeddings_source,
        classification_method=settings.classification_method,
        evaluator=settings.use_model_evaluator,
    )
    return ServiceBundle(
        settings=settings,
        vault=vault,
        store=store,
        classifier=classifier,
        engine=engine,
        cache=SerendipityCache(settings.cache_path),
        deep_engine=deep_engine,
        analogy=analogy,
    )

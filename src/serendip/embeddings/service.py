"""Embedding backends used to populate a note embedding store."""

from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass
from typing import Protocol, Sequence, Tuple

from langchain_community.embeddings import HuggingFaceEmbeddings
from langchain_core.embeddings import Embeddings as LangChainEmbeddings

from serendip.metrics.observability import get_logger
from serendip.models import NoteEmbedding
from serendip.vault.notes import MarkdownVault, generate_note_id

LOGGER = get_logger("embeddings.service")

HASH_MODEL_NAME = "hash"


@dataclass(frozen=True)
class EmbeddingConfig:
    """Configuration for embedding backends."""

    model: str = "BAAI/bge-small-en-v1.5"
    dim: int = 384
    use_model: bool = False
    device: str | None = None
    normalize: bool = True
    cache_folder: str | None = None


class EmbeddingBackend(Protocol):
    """Protocol describing embedding behaviour."""

    @property
    def model_name(self) -> str:
        """Name recorded on the produced embedding records."""

    def embed_texts(self, texts: Sequence[str]) -> Sequence[Tuple[float, ...]]:
        """Return one vector per input text."""


def _normalize(vector: Sequence[float]) -> Tuple[float, ...]:
    norm = math.sqrt(sum(value * value for value in vector)) or 1.0
    return tuple(value / norm for value in vector)


class HashEmbeddingBackend:
    """Deterministic lightweight embedding fallback used for testing."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig()

    @property
    def model_name(self) -> str:
        return HASH_MODEL_NAME

    def _hash_to_vector(self, text: str) -> Tuple[float, ...]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        repeat = (self._config.dim + len(digest) - 1) // len(digest)
        raw = (digest * repeat)[: self._config.dim]
        vector = [byte / 255.0 for byte in raw]
        if self._config.normalize:
            return _normalize(vector)
        return tuple(vector)

    def embed_texts(self, texts: Sequence[str]) -> Sequence[Tuple[float, ...]]:
        return [self._hash_to_vector(text) for text in texts]


class HuggingFaceEmbeddingBackend:
    """Sentence-embedding backend that optionally loads a model via LangChain."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig()
        self._delegate = HashEmbeddingBackend(self._config)
        self._client: LangChainEmbeddings | None = None
        if not self._config.use_model:
            LOGGER.info("embeddings.hash_only")
            return
        try:
            model_kwargs = {"device": self._config.device} if self._config.device else {}
            self._client = HuggingFaceEmbeddings(
                model_name=self._config.model,
                model_kwargs=model_kwargs,
                encode_kwargs={"normalize_embeddings": self._config.normalize},
                cache_folder=self._config.cache_folder,
            )
            LOGGER.info("embeddings.model_loaded", model=self._config.model)
        except Exception as exc:  # pragma: no cover
            LOGGER.warning("embeddings.model_fallback", model=self._config.model, detail=str(exc))
            self._client = None

    @property
    def model_name(self) -> str:
        return self._config.model if self._client is not None else HASH_MODEL_NAME

    def embed_texts(self, texts: Sequence[str]) -> Sequence[Tuple[float, ...]]:
        if not texts:
            return []
        if self._client is None:
            return self._delegate.embed_texts(texts)
        vectors = self._client.embed_documents(list(texts))
        if len(vectors) != len(texts):
            LOGGER.error("embeddings.count_mismatch", vectors=len(vectors), texts=len(texts))
            raise ValueError("Mismatch between number of texts and embedding vectors")
        if vectors and len(vectors[0]) != self._config.dim:
            LOGGER.warning("embeddings.dim_mismatch", configured=self._config.dim, actual=len(vectors[0]))
        if self._config.normalize:
            return [_normalize(vector) for vector in vectors]
        return [tuple(vector) for vector in vectors]


class NoteEmbedder:
    """Turns vault notes into embedding records.

    The text embedded for a note is its title followed by its body, so that
    title-only notes still get a meaningful vector.
    """

    def __init__(self, backend: EmbeddingBackend, *, batch_size: int = 32) -> None:
        self._backend = backend
        self._batch_size = max(1, batch_size)

    def embed_vault(self, vault: MarkdownVault, paths: Sequence[str] | None = None) -> list[tuple[str, NoteEmbedding]]:
        """Return ``(path, record)`` pairs for the given paths, or every note in the vault."""

        selected = list(paths) if paths is not None else list(vault.list_note_paths())
        results: list[tuple[str, NoteEmbedding]] = []
        for start in range(0, len(selected), self._batch_size):
            batch = selected[start : start + self._batch_size]
            texts = [f"{vault.get_title(path)}\n\n{vault.get_text(path)}" for path in batch]
            vectors = self._backend.embed_texts(texts)
            for path, vector in zip(batch, vectors, strict=True):
                record = NoteEmbedding(
                    note_id=generate_note_id(path),
                    vector=tuple(vector),
                    model=self._backend.model_name,
                )
                results.append((path, record))
        LOGGER.info("embeddings.vault_embedded", notes=len(results))
        return results

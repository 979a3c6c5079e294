"""Embedding backends and stores."""

from .service import (
    EmbeddingBackend,
    EmbeddingConfig,
    HashEmbeddingBackend,
    HuggingFaceEmbeddingBackend,
    NoteEmbedder,
)
from .store import ChromaEmbeddingStore, EmbeddingStore, JsonFolderEmbeddingStore

__all__ = [
    "ChromaEmbeddingStore",
    "EmbeddingBackend",
    "EmbeddingConfig",
    "EmbeddingStore",
    "HashEmbeddingBackend",
    "HuggingFaceEmbeddingBackend",
    "JsonFolderEmbeddingStore",
    "NoteEmbedder",
]

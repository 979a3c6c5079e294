"""Embedding store implementations."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Dict, Mapping, MutableMapping, Protocol, Sequence

import chromadb
from chromadb.api import ClientAPI

from serendip.metrics.observability import get_logger
from serendip.models import NoteEmbedding, utcnow
from serendip.vault.notes import to_safe_file_id

LOGGER = get_logger("embeddings.store")


class EmbeddingStore(Protocol):
    """Read side of an embedding store, as consumed by the discovery engines."""

    def get(self, note_id: str) -> NoteEmbedding | None:
        """Return the embedding of a single note, or None when it has none."""

    def get_all(self) -> Mapping[str, NoteEmbedding]:
        """Return every stored embedding keyed by note id."""

    def count(self) -> int:
        """Return the number of embedded notes."""


def _parse_timestamp(value: object) -> datetime:
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return utcnow()
    return utcnow()


class JsonFolderEmbeddingStore:
    """Reader for the Vault Embeddings plugin layout.

    ``<folder>/index.json`` lists note ids and ``<folder>/embeddings/<id>.json``
    holds one vector per note. Files that cannot be read are logged and treated
    as missing embeddings.
    """

    def __init__(self, folder: str | Path) -> None:
        self._folder = Path(folder)

    @property
    def folder(self) -> Path:
        return self._folder

    def read_index(self) -> Mapping[str, Mapping[str, object]] | None:
        index_path = self._folder / "index.json"
        if not index_path.exists():
            return None
        try:
            data = json.loads(index_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.error("embeddings.index_unreadable", path=str(index_path), detail=str(exc))
            return None
        notes = data.get("notes") if isinstance(data, dict) else None
        return notes if isinstance(notes, dict) else {}

    def get(self, note_id: str) -> NoteEmbedding | None:
        path = self._folder / "embeddings" / f"{to_safe_file_id(note_id)}.json"
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.error("embeddings.read_failed", note_id=note_id, detail=str(exc))
            return None
        vector = data.get("vector") or data.get("embedding")
        if not isinstance(vector, list):
            LOGGER.error("embeddings.invalid_vector", note_id=note_id)
            return None
        return NoteEmbedding(
            note_id=str(data.get("noteId") or note_id),
            vector=tuple(float(value) for value in vector),
            model=str(data.get("model") or "unknown"),
            updated_at=_parse_timestamp(data.get("updatedAt")),
        )

    def get_all(self) -> Mapping[str, NoteEmbedding]:
        index = self.read_index()
        if index is None:
            LOGGER.warning("embeddings.no_index", folder=str(self._folder))
            return {}
        result: Dict[str, NoteEmbedding] = {}
        for note_id in index:
            embedding = self.get(note_id)
            if embedding is not None:
                result[note_id] = embedding
        LOGGER.info("embeddings.loaded", indexed=len(index), loaded=len(result))
        return result

    def count(self) -> int:
        index = self.read_index()
        return len(index) if index else 0


class ChromaEmbeddingStore:
    """Chroma-backed embedding store keyed by note id."""

    _PAGE_SIZE = 1000

    def __init__(
        self,
        collection_name: str = "serendip-notes",
        *,
        client: ClientAPI | None = None,
        persist_directory: str | Path | None = None,
    ) -> None:
        if client is not None:
            self._client = client
        elif persist_directory is not None:
            self._client = chromadb.PersistentClient(path=str(persist_directory))
        else:
            self._client = chromadb.EphemeralClient()
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def upsert(self, records: Sequence[NoteEmbedding], *, paths: Mapping[str, str] | None = None) -> Sequence[str]:
        if not records:
            return []
        ids = [record.note_id for record in records]
        self._collection.upsert(
            ids=ids,
            embeddings=[list(record.vector) for record in records],
            metadatas=[self._serialize(record, (paths or {}).get(record.note_id)) for record in records],
        )
        return ids

    def get(self, note_id: str) -> NoteEmbedding | None:
        batch = self._collection.get(ids=[note_id], include=["embeddings", "metadatas"])
        records = self._deserialize_batch(batch)
        return records[0] if records else None

    def get_all(self) -> Mapping[str, NoteEmbedding]:
        result: Dict[str, NoteEmbedding] = {}
        offset = 0
        while True:
            batch = self._collection.get(
                include=["embeddings", "metadatas"],
                limit=self._PAGE_SIZE,
                offset=offset,
            )
            records = self._deserialize_batch(batch)
            for record in records:
                result[record.note_id] = record
            if len(records) < self._PAGE_SIZE:
                break
            offset += self._PAGE_SIZE
        return result

    def count(self) -> int:
        return int(self._collection.count())

    def reset(self) -> None:
        ids = list(self._collection.get(include=["metadatas"]).get("ids") or [])
        if ids:
            self._collection.delete(ids=ids)

    @staticmethod
    def _serialize(record: NoteEmbedding, path: str | None) -> MutableMapping[str, object]:
        metadata: MutableMapping[str, object] = {
            "model": record.model,
            "updated_at": record.updated_at.isoformat(),
        }
        if path:
            metadata["path"] = path
        return metadata

    @staticmethod
    def _deserialize_batch(batch: Mapping[str, object]) -> list[NoteEmbedding]:
        ids = list(batch.get("ids") or [])
        embeddings = batch.get("embeddings")
        if embeddings is None:
            embeddings = []
        metadatas = batch.get("metadatas") or [None] * len(ids)
        records: list[NoteEmbedding] = []
        for note_id, vector, metadata in zip(ids, embeddings, metadatas, strict=False):
            metadata = metadata if isinstance(metadata, Mapping) else {}
            records.append(
                NoteEmbedding(
                    note_id=str(note_id),
                    vector=tuple(float(value) for value in vector),
                    model=str(metadata.get("model", "unknown")),
                    updated_at=_parse_timestamp(metadata.get("updated_at")),
                ),
            )
        return records

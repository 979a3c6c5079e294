from __future__ import annotations

import json
from pathlib import Path

import chromadb
import pytest

from serendip.embeddings import (
    ChromaEmbeddingStore,
    EmbeddingConfig,
    HashEmbeddingBackend,
    HuggingFaceEmbeddingBackend,
    JsonFolderEmbeddingStore,
    NoteEmbedder,
)
from serendip.models import NoteEmbedding
from serendip.vault import MarkdownVault, generate_note_id


def _write_json(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")


def test_hash_embedding_dim_matches_config():
    backend = HashEmbeddingBackend(EmbeddingConfig(dim=64))
    vectors = backend.embed_texts(["hello world", "hello world", "other"])
    assert len(vectors) == 3
    assert len(vectors[0]) == 64
    assert vectors[0] == vectors[1]
    assert vectors[0] != vectors[2]


def test_huggingface_backend_falls_back_to_hash_when_disabled():
    backend = HuggingFaceEmbeddingBackend(EmbeddingConfig(dim=16, use_model=False))
    assert backend.model_name == "hash"
    assert len(backend.embed_texts(["alpha"])[0]) == 16
    assert backend.embed_texts([]) == []


def test_note_embedder_uses_note_ids(tmp_path: Path):
    (tmp_path / "Biology").mkdir()
    (tmp_path / "Biology" / "Evolution.md").write_text("Natural selection.", encoding="utf-8")
    (tmp_path / "Business").mkdir()
    (tmp_path / "Business" / "Startups.md").write_text("Market fit.", encoding="utf-8")
    embedder = NoteEmbedder(HashEmbeddingBackend(EmbeddingConfig(dim=8)), batch_size=1)

    embedded = embedder.embed_vault(MarkdownVault(tmp_path))

    assert [path for path, _ in embedded] == ["Biology/Evolution.md", "Business/Startups.md"]
    path, record = embedded[0]
    assert record.note_id == generate_note_id(path)
    assert record.model == "hash"
    assert len(record.vector) == 8


def test_json_folder_store_reads_plugin_layout(tmp_path: Path):
    folder = tmp_path / "09_Embedded"
    _write_json(
        folder / "index.json",
        {"version": 1, "notes": {"abc": {"path": "a.md"}, "def": {"path": "b.md"}, "zzz": {"path": "c.md"}}},
    )
    _write_json(
        folder / "embeddings" / "abc.json",
        {"noteId": "abc", "vector": [0.1, 0.2], "model": "bge", "updatedAt": "2024-05-01T10:00:00Z"},
    )
    _write_json(folder / "embeddings" / "def.json", {"noteId": "def", "embedding": [0.3, 0.4]})
    (folder / "embeddings" / "zzz.json").write_text("{not json", encoding="utf-8")
    store = JsonFolderEmbeddingStore(folder)

    assert store.count() == 3
    record = store.get("abc")
    assert record is not None
    assert record.vector == (0.1, 0.2)
    assert record.model == "bge"
    assert record.updated_at.year == 2024
    assert store.get("missing") is None
    assert store.get("zzz") is None
    assert set(store.get_all()) == {"abc", "def"}


def test_json_folder_store_without_index_is_empty(tmp_path: Path):
    store = JsonFolderEmbeddingStore(tmp_path / "absent")
    assert store.get_all() == {}
    assert store.count() == 0


def test_chroma_store_upsert_get_and_reset():
    store = ChromaEmbeddingStore(collection_name="test-notes", client=chromadb.EphemeralClient())
    store.reset()
    records = [
        NoteEmbedding(note_id="n1", vector=(0.1, 0.2, 0.3), model="hash"),
        NoteEmbedding(note_id="n2", vector=(0.3, 0.2, 0.1), model="hash"),
    ]

    ids = store.upsert(records, paths={"n1": "Notes/one.md"})

    assert list(ids) == ["n1", "n2"]
    assert store.count() == 2
    fetched = store.get("n1")
    assert fetched is not None
    assert fetched.model == "hash"
    assert fetched.vector[0] == pytest.approx(0.1, rel=1e-5)
    assert set(store.get_all()) == {"n1", "n2"}
    assert store.get("unknown") is None

    store.reset()
    assert store.count() == 0

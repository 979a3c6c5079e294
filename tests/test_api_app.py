"""Tests for the FastAPI application."""

from __future__ import annotations

import math
from pathlib import Path
from typing import Dict, Mapping, Sequence

from fastapi.testclient import TestClient

from serendip.api.app import AppDependencies, create_app
from serendip.cache import SerendipityCache
from serendip.config import Settings
from serendip.discovery import (
    DeepDiscoveryEngine,
    DiscoveryConfig,
    DomainClassifier,
    StandardDiscoveryEngine,
    TagStrategy,
)
from serendip.models import NoteEmbedding
from serendip.services import AnalogyService, EvaluatorResponse
from serendip.vault import generate_note_id

NOTES = {
    "Notes/Socrates.md": ["domain/philosophy"],
    "Notes/Evolution.md": ["domain/biology"],
    "Notes/Markets.md": ["domain/economics"],
}
VECTORS = {
    "Notes/Socrates.md": (1.0, 0.0),
    "Notes/Evolution.md": (0.9, math.sqrt(0.19)),
    "Notes/Markets.md": (0.8, 0.6),
    "Orphan/Unindexed.md": (0.0, 1.0),
}


class StubMetadataSource:
    def list_note_paths(self) -> Sequence[str]:
        return sorted(NOTES)

    def get_tags(self, path: str) -> Sequence[str]:
        return NOTES[path]

    def get_title(self, path: str) -> str:
        return path.rsplit("/", 1)[-1].removesuffix(".md")


class InMemoryStore:
    def __init__(self, vectors: Mapping[str, Sequence[float]]) -> None:
        self._records: Dict[str, NoteEmbedding] = {
            generate_note_id(path): NoteEmbedding(note_id=generate_note_id(path), vector=tuple(vector))
            for path, vector in vectors.items()
        }

    def get(self, note_id: str) -> NoteEmbedding | None:
        return self._records.get(note_id)

    def get_all(self) -> Mapping[str, NoteEmbedding]:
        return dict(self._records)

    def count(self) -> int:
        return len(self._records)


class StubEvaluator:
    def generate(self, prompt: str, system_prompt: str | None = None) -> EvaluatorResponse:
        if "CONNECTION_POSSIBLE" in prompt:
            return EvaluatorResponse(
                success=True,
                text="CONNECTION_POSSIBLE: YES\nQUALITY_SCORE: 0.9\nANALOGY: A shared structure.",
            )
        return EvaluatorResponse(success=True, text="An analogy.")


def create_test_client(tmp_path: Path, *, with_evaluator: bool = False, **settings_overrides) -> TestClient:
    store = InMemoryStore(VECTORS)
    classifier = DomainClassifier(StubMetadataSource(), TagStrategy(("domain/",)), domain_tag_prefixes=("domain/",))
    engine = StandardDiscoveryEngine(store, classifier, config=DiscoveryConfig(min_serendipity_score=0.0))
    evaluator = StubEvaluator()
    deps = AppDependencies(
        store=store,
        classifier=classifier,
        engine=engine,
        cache=SerendipityCache(tmp_path / "cache.json"),
        deep_engine=DeepDiscoveryEngine(store, classifier, evaluator) if with_evaluator else None,
        analogy=AnalogyService(evaluator) if with_evaluator else None,
    )
    settings = Settings(environment="test", **settings_overrides)
    return TestClient(create_app(settings=settings, dependencies=deps))


def test_discover_returns_cross_domain_connections(tmp_path: Path):
    client = create_test_client(tmp_path)
    response = client.post("/connections/discover", json={"note_id": generate_note_id("Notes/Socrates.md")})
    assert response.status_code == 200, response.text
    connections = response.json()["connections"]
    assert [item["target"]["title"] for item in connections] == ["Evolution", "Markets"]
    assert connections[0]["source"]["primary_domain"] == "philosophy"
    assert connections[0]["explanation"] is None
    assert response.headers["X-Correlation-ID"]


def test_discover_with_explanations(tmp_path: Path):
    client = create_test_client(tmp_path, with_evaluator=True)
    response = client.post(
        "/connections/discover",
        json={"note_id": generate_note_id("Notes/Socrates.md"), "explain": True},
    )
    assert response.status_code == 200, response.text
    assert {item["explanation"] for item in response.json()["connections"]} == {"An analogy."}


def test_discover_unknown_note_returns_404(tmp_path: Path):
    client = create_test_client(tmp_path)
    response = client.post("/connections/discover", json={"note_id": generate_note_id("Orphan/Unindexed.md")})
    assert response.status_code == 404


def test_discover_without_embedding_returns_empty(tmp_path: Path):
    client = create_test_client(tmp_path)
    response = client.post("/connections/discover", json={"note_id": "ffffffff"})
    assert response.status_code == 200
    assert response.json()["connections"] == []


def test_top_connections_are_cached(tmp_path: Path):
    client = create_test_client(tmp_path)
    assert client.get("/connections/top/cached").status_code == 404

    response = client.post("/connections/top", json={"limit": 2})
    assert response.status_code == 200, response.text
    payload = response.json()
    assert len(payload["connections"]) == 2
    assert payload["timestamp"]

    cached = client.get("/connections/top/cached")
    assert cached.status_code == 200
    assert [item["serendipity_score"] for item in cached.json()["connections"]] == [
        item["serendipity_score"] for item in payload["connections"]
    ]

    assert client.delete("/connections/top/cached").status_code == 204
    assert client.get("/connections/top/cached").status_code == 404


def test_deep_requires_evaluator(tmp_path: Path):
    client = create_test_client(tmp_path)
    assert client.post("/connections/deep").status_code == 503


def test_deep_connections_are_cached(tmp_path: Path):
    client = create_test_client(tmp_path, with_evaluator=True)
    response = client.post("/connections/deep")
    assert response.status_code == 200, response.text
    connections = response.json()["connections"]
    assert len(connections) == 3
    assert all(item["quality_score"] == 0.9 for item in connections)

    cached = client.get("/connections/deep/cached")
    assert cached.status_code == 200
    assert len(cached.json()["connections"]) == 3
    assert client.delete("/connections/deep/cached").status_code == 204
    assert client.get("/connections/deep/cached").status_code == 404


def test_index_stats_and_refresh(tmp_path: Path):
    client = create_test_client(tmp_path)
    stats = client.get("/index/stats").json()
    assert stats == {
        "indexed_notes": 3,
        "embedded_notes": 4,
        "embeddings_source": "json",
        "classification_method": "tag",
    }
    assert client.post("/index/refresh").json()["indexed_notes"] == 3


def test_api_key_is_enforced(tmp_path: Path):
    client = create_test_client(tmp_path, api_key="secret")
    payload = {"limit": 1}
    assert client.post("/connections/top", json=payload).status_code == 401
    assert client.post("/connections/top", json=payload, headers={"X-API-Key": "secret"}).status_code == 200


def test_rate_limit(tmp_path: Path):
    client = create_test_client(tmp_path, rate_limit_requests=1)
    assert client.post("/connections/top", json={"limit": 1}).status_code == 200
    assert client.post("/connections/top", json={"limit": 1}).status_code == 429


def test_health_endpoints(tmp_path: Path):
    client = create_test_client(tmp_path)
    assert client.get("/healthz").json()["status"] == "ok"
    assert client.get("/livez").json() == {"status": "alive"}
    assert client.get("/healthz/ready").json() == {"status": "ready"}
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "serendip_discovery_duration_seconds" in metrics.text

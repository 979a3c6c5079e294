from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from serendip.cache import DEEP_KEY, STANDARD_KEY, SerendipityCache, hydrate_connection, serialize_connection
from serendip.models import Connection, ConnectionType, DeepConnection, NoteDomain
from serendip.scoring import DomainDistance, ScoreParams, SerendipityScore

DISCOVERED_AT = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)


def _note(note_id: str, domain: str, *, embedding=None) -> NoteDomain:
    return NoteDomain(
        note_id=note_id,
        path=f"{domain}/{note_id}.md",
        title=note_id.title(),
        primary_domain=domain,
        secondary_domains=("history",),
        tags=(f"domain/{domain}", "x"),
        embedding=embedding,
    )


def _connection() -> Connection:
    distance = DomainDistance.from_tag_jaccard(["domain/phil", "x"], ["domain/bio", "x"])
    return Connection(
        source=_note("socrates", "phil", embedding=(0.1, 0.2)),
        target=_note("evolution", "bio"),
        serendipity_score=SerendipityScore.calculate(ScoreParams(similarity=0.83, domain_distance=distance.value)),
        domain_distance=distance,
        similarity=0.83,
        connection_type=ConnectionType.BRIDGING_CONCEPT,
        explanation="Both explain change through selection.",
        discovered_at=DISCOVERED_AT,
    )


def test_serialize_then_hydrate_preserves_values():
    expected = _connection()
    restored = hydrate_connection(serialize_connection(expected))

    assert restored.serendipity_score.value == expected.serendipity_score.value
    assert restored.domain_distance.value == expected.domain_distance.value
    assert restored.similarity == expected.similarity
    assert restored.connection_type is ConnectionType.BRIDGING_CONCEPT
    assert restored.discovered_at == DISCOVERED_AT
    assert restored.source.embedding is None
    assert restored.source.tags == expected.source.tags


def test_standard_round_trip_through_file(tmp_path: Path):
    cache = SerendipityCache(tmp_path / "data" / "cache.json")
    expected = _connection()
    cache.save_standard([expected], timestamp=DISCOVERED_AT)

    loaded = cache.load_standard()

    assert loaded is not None
    assert loaded.timestamp == DISCOVERED_AT
    assert len(loaded.connections) == 1
    restored = loaded.connections[0]
    assert restored.serendipity_score.value == expected.serendipity_score.value
    assert restored.domain_distance.value == expected.domain_distance.value
    assert restored.explanation == expected.explanation


def test_stored_document_layout(tmp_path: Path):
    path = tmp_path / "cache.json"
    SerendipityCache(path).save_standard([_connection()], timestamp=DISCOVERED_AT)

    document = json.loads(path.read_text(encoding="utf-8"))

    entry = document[STANDARD_KEY]
    record = entry["connections"][0]
    assert set(entry) == {"connections", "timestamp"}
    assert set(record["serendipity_score"]) == {"value"}
    assert set(record["domain_distance"]) == {"value"}
    assert "embedding" not in record["source"]
    assert record["connection_type"] == "bridging_concept"


def test_deep_round_trip_and_sections_are_independent(tmp_path: Path):
    cache = SerendipityCache(tmp_path / "cache.json")
    deep = DeepConnection(
        source=_note("socrates", "phil"),
        target=_note("evolution", "bio"),
        quality_score=0.8,
        explanation="Dialectic as selection of ideas.",
        discovered_at=DISCOVERED_AT,
    )
    cache.save_standard([_connection()])
    cache.save_deep([deep], timestamp=DISCOVERED_AT)

    loaded = cache.load_deep()
    assert loaded is not None
    assert loaded.connections[0].quality_score == 0.8
    assert loaded.connections[0].domain_distance == 1.0
    assert loaded.connections[0].explanation == "Dialectic as selection of ideas."

    cache.clear_deep()
    assert cache.load_deep() is None
    assert cache.load_standard() is not None

    cache.clear_standard()
    assert cache.load_standard() is None


def test_missing_file_is_a_miss(tmp_path: Path):
    cache = SerendipityCache(tmp_path / "absent.json")
    assert cache.load_standard() is None
    assert cache.load_deep() is None
    cache.clear_standard()
    assert not (tmp_path / "absent.json").exists()


def test_malformed_document_is_a_miss(tmp_path: Path):
    path = tmp_path / "cache.json"
    path.write_text("{broken", encoding="utf-8")
    cache = SerendipityCache(path)
    assert cache.load_standard() is None

    cache.save_deep([])
    assert cache.load_deep() is not None


def test_invalid_section_is_a_miss(tmp_path: Path):
    path = tmp_path / "cache.json"
    path.write_text(
        json.dumps(
            {
                STANDARD_KEY: {"connections": [{"source": {"note_id": "x"}}], "timestamp": "2024-05-01T00:00:00Z"},
                DEEP_KEY: {"connections": [], "timestamp": "2024-05-01T00:00:00Z"},
            },
        ),
        encoding="utf-8",
    )
    cache = SerendipityCache(path)
    assert cache.load_standard() is None
    deep = cache.load_deep()
    assert deep is not None
    assert deep.connections == []


def test_out_of_range_deep_scores_are_clamped_on_load(tmp_path: Path):
    path = tmp_path / "cache.json"
    record = {
        "source": {"note_id": "socrates", "path": "phil/socrates.md", "title": "Socrates", "primary_domain": "phil"},
        "target": {"note_id": "evolution", "path": "bio/evolution.md", "title": "Evolution", "primary_domain": "bio"},
        "quality_score": 1.7,
        "explanation": "Stale entry.",
        "domain_distance": 3.0,
        "discovered_at": "2024-05-01T00:00:00Z",
    }
    path.write_text(
        json.dumps({DEEP_KEY: {"connections": [record], "timestamp": "2024-05-01T00:00:00Z"}}),
        encoding="utf-8",
    )

    loaded = SerendipityCache(path).load_deep()

    assert loaded is not None
    assert loaded.connections[0].quality_score == 1.0
    assert loaded.connections[0].domain_distance == 1.0


def test_deep_connection_clamps_scores():
    connection = DeepConnection(
        source=_note("socrates", "phil"),
        target=_note("evolution", "bio"),
        quality_score=-0.2,
        explanation="",
        domain_distance=1.4,
    )
    assert connection.quality_score == 0.0
    assert connection.domain_distance == 1.0

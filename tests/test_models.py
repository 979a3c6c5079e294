from __future__ import annotations

import pytest

from serendip.models import Connection, ConnectionType, NoteDomain, infer_connection_type, sort_by_score
from serendip.scoring import DomainDistance, SerendipityScore


def _note(note_id: str, domain: str = "phil") -> NoteDomain:
    return NoteDomain(note_id=note_id, path=f"{domain}/{note_id}.md", title=note_id, primary_domain=domain)


def _connection(source: str, target: str, score: float = 0.5) -> Connection:
    return Connection(
        source=_note(source),
        target=_note(target, "bio"),
        serendipity_score=SerendipityScore.from_value(score),
        domain_distance=DomainDistance.from_value(1.0),
        similarity=0.8,
        connection_type=ConnectionType.BRIDGING_CONCEPT,
    )


@pytest.mark.parametrize(
    ("similarity", "distance", "expected"),
    [
        (0.9, 0.9, ConnectionType.UNEXPECTED_SIMILARITY),
        (0.9, 0.6, ConnectionType.BRIDGING_CONCEPT),
        (0.7, 0.6, ConnectionType.BRIDGING_CONCEPT),
        (0.4, 0.8, ConnectionType.CONTRASTING),
        (0.7, 0.3, ConnectionType.ANALOGICAL),
        (0.55, 0.9, ConnectionType.ANALOGICAL),
    ],
)
def test_infer_connection_type_first_match_wins(similarity, distance, expected):
    assert infer_connection_type(similarity, distance) is expected


def test_connection_rejects_self_pair():
    with pytest.raises(ValueError):
        Connection(
            source=_note("a"),
            target=_note("a"),
            serendipity_score=SerendipityScore.from_value(0.5),
            domain_distance=DomainDistance.from_value(1.0),
            similarity=0.9,
            connection_type=ConnectionType.ANALOGICAL,
        )


def test_pair_key_is_unordered():
    assert _connection("a", "b").pair_key == _connection("b", "a").pair_key == ("a", "b")


def test_explanation_is_attached_once():
    connection = _connection("a", "b")
    connection.attach_explanation("first")
    assert connection.explanation == "first"
    with pytest.raises(ValueError):
        connection.attach_explanation("second")


def test_sort_by_score_descending():
    ordered = sort_by_score([_connection("a", "b", 0.4), _connection("a", "c", 0.9), _connection("a", "d", 0.6)])
    assert [conn.target.note_id for conn in ordered] == ["c", "d", "b"]


def test_connection_type_labels():
    assert ConnectionType.CONTRASTING.label == "Contrasting perspective"

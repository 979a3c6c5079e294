"""Persisted cache of the last standard and deep discovery results."""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from serendip.metrics.observability import get_logger
from serendip.models import Connection, ConnectionType, DeepConnection, NoteDomain, utcnow
from serendip.scoring import DomainDistance, SerendipityScore

STANDARD_KEY = "serendipity_cache"
DEEP_KEY = "deep_serendipity_cache"

LOGGER = get_logger("cache")


class CachedNote(BaseModel):
    """Note snapshot without its embedding."""

    model_config = ConfigDict(extra="ignore")

    note_id: str
    path: str
    title: str
    primary_domain: str
    secondary_domains: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)


class CachedValue(BaseModel):
    value: float


class CachedConnection(BaseModel):
    source: CachedNote
    target: CachedNote
    serendipity_score: CachedValue
    domain_distance: CachedValue
    similarity: float
    connection_type: ConnectionType
    explanation: Optional[str] = None
    discovered_at: datetime


class CachedDeepConnection(BaseModel):
    source: CachedNote
    target: CachedNote
    quality_score: float
    explanation: str = ""
    domain_distance: float = 1.0
    discovered_at: datetime


class StandardCacheSection(BaseModel):
    connections: List[CachedConnection]
    timestamp: datetime


class DeepCacheSection(BaseModel):
    connections: List[CachedDeepConnection]
    timestamp: datetime


@dataclass(frozen=True)
class CachedConnections:
    connections: List[Connection]
    timestamp: datetime


@dataclass(frozen=True)
class CachedDeepConnections:
    connections: List[DeepConnection]
    timestamp: datetime


def _dump_note(note: NoteDomain) -> CachedNote:
    return CachedNote(
        note_id=note.note_id,
        path=note.path,
        title=note.title,
        primary_domain=note.primary_domain,
        secondary_domains=list(note.secondary_domains),
        tags=list(note.tags),
    )


def _load_note(note: CachedNote) -> NoteDomain:
    return NoteDomain(
        note_id=note.note_id,
        path=note.path,
        title=note.title,
        primary_domain=note.primary_domain,
        secondary_domains=tuple(note.secondary_domains),
        tags=tuple(note.tags),
    )


def serialize_connection(connection: Connection) -> CachedConnection:
    return CachedConnection(
        source=_dump_note(connection.source),
        target=_dump_note(connection.target),
        serendipity_score=CachedValue(value=connection.serendipity_score.value),
        domain_distance=CachedValue(value=connection.domain_distance.value),
        similarity=connection.similarity,
        connection_type=connection.connection_type,
        explanation=connection.explanation,
        discovered_at=connection.discovered_at,
    )


def hydrate_connection(record: CachedConnection) -> Connection:
    """Rebuild a connection; value objects are restored through ``from_value``."""

    return Connection(
        source=_load_note(record.source),
        target=_load_note(record.target),
        serendipity_score=SerendipityScore.from_value(record.serendipity_score.value),
        domain_distance=DomainDistance.from_value(record.domain_distance.value),
        similarity=record.similarity,
        connection_type=record.connection_type,
        explanation=record.explanation,
        discovered_at=record.discovered_at,
    )


def serialize_deep_connection(connection: DeepConnection) -> CachedDeepConnection:
    return CachedDeepConnection(
        source=_dump_note(connection.source),
        target=_dump_note(connection.target),
        quality_score=connection.quality_score,
        explanation=connection.explanation,
        domain_distance=connection.domain_distance,
        discovered_at=connection.discovered_at,
    )


def hydrate_deep_connection(record: CachedDeepConnection) -> DeepConnection:
    return DeepConnection(
        source=_load_note(record.source),
        target=_load_note(record.target),
        quality_score=record.quality_score,
        explanation=record.explanation,
        domain_distance=record.domain_distance,
        discovered_at=record.discovered_at,
    )


class SerendipityCache:
    """JSON file holding one standard and one deep result set.

    A missing, unreadable or invalid section is reported as a cache miss.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load_standard(self) -> CachedConnections | None:
        raw = self._read_section(STANDARD_KEY)
        if raw is None:
            return None
        try:
            section = StandardCacheSection.model_validate(raw)
            connections = [hydrate_connection(record) for record in section.connections]
        except ValueError as exc:
            LOGGER.warning("cache.invalid_section", section=STANDARD_KEY, detail=str(exc))
            return None
        return CachedConnections(connections=connections, timestamp=section.timestamp)

    def save_standard(self, connections: Sequence[Connection], timestamp: datetime | None = None) -> None:
        section = StandardCacheSection(
            connections=[serialize_connection(conn) for conn in connections],
            timestamp=timestamp or utcnow(),
        )
        self._write_section(STANDARD_KEY, section.model_dump(mode="json"))

    def clear_standard(self) -> None:
        self._write_section(STANDARD_KEY, None)

    def load_deep(self) -> CachedDeepConnections | None:
        raw = self._read_section(DEEP_KEY)
        if raw is None:
            return None
        try:
            section = DeepCacheSection.model_validate(raw)
            connections = [hydrate_deep_connection(record) for record in section.connections]
        except ValueError as exc:
            LOGGER.warning("cache.invalid_section", section=DEEP_KEY, detail=str(exc))
            return None
        return CachedDeepConnections(connections=connections, timestamp=section.timestamp)

    def save_deep(self, connections: Sequence[DeepConnection], timestamp: datetime | None = None) -> None:
        section = DeepCacheSection(
            connections=[serialize_deep_connection(conn) for conn in connections],
            timestamp=timestamp or utcnow(),
        )
        self._write_section(DEEP_KEY, section.model_dump(mode="json"))

    def clear_deep(self) -> None:
        self._write_section(DEEP_KEY, None)

    def _read_document(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            document = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            LOGGER.warning("cache.unreadable", path=str(self._path), detail=str(exc))
            return {}
        if not isinstance(document, dict):
            LOGGER.warning("cache.unreadable", path=str(self._path), detail="document is not an object")
            return {}
        return document

    def _read_section(self, key: str) -> Any:
        return self._read_document().get(key)

    def _write_section(self, key: str, section: Dict[str, Any] | None) -> None:
        document = self._read_document()
        if section is None:
            if key not in document:
                return
            document.pop(key)
        else:
            document[key] = section
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".serendip-", suffix=".json", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        LOGGER.info("cache.written", path=str(self._path), section=key, cleared=section is None)

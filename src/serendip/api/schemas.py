"""Pydantic models for the serendip API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from serendip.models import Connection, DeepConnection, NoteDomain


class NoteModel(BaseModel):
    note_id: str
    path: str
    title: str
    primary_domain: str
    secondary_domains: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    @classmethod
    def from_note(cls, note: NoteDomain) -> "NoteModel":
        return cls(
            note_id=note.note_id,
            path=note.path,
            title=note.title,
            primary_domain=note.primary_domain,
            secondary_domains=list(note.secondary_domains),
            tags=list(note.tags),
        )


class ConnectionModel(BaseModel):
    source: NoteModel
    target: NoteModel
    serendipity_score: float = Field(..., ge=0.0, le=1.0)
    tier: str
    domain_distance: float = Field(..., ge=0.0, le=1.0)
    similarity: float
    connection_type: str
    connection_type_label: str
    explanation: Optional[str] = None
    discovered_at: datetime

    @classmethod
    def from_connection(cls, connection: Connection) -> "ConnectionModel":
        return cls(
            source=NoteModel.from_note(connection.source),
            target=NoteModel.from_note(connection.target),
            serendipity_score=connection.serendipity_score.value,
            tier=connection.serendipity_score.tier.value,
            domain_distance=connection.domain_distance.value,
            similarity=connection.similarity,
            connection_type=connection.connection_type.value,
            connection_type_label=connection.connection_type.label,
            explanation=connection.explanation,
            discovered_at=connection.discovered_at,
        )


class DeepConnectionModel(BaseModel):
    source: NoteModel
    target: NoteModel
    quality_score: float = Field(..., ge=0.0, le=1.0)
    explanation: str
    domain_distance: float
    discovered_at: datetime

    @classmethod
    def from_connection(cls, connection: DeepConnection) -> "DeepConnectionModel":
        return cls(
            source=NoteModel.from_note(connection.source),
            target=NoteModel.from_note(connection.target),
            quality_score=connection.quality_score,
            explanation=connection.explanation,
            domain_distance=connection.domain_distance,
            discovered_at=connection.discovered_at,
        )


class DiscoverRequest(BaseModel):
    note_id: str = Field(..., min_length=1, description="Identifier of the source note")
    explain: bool = Field(default=False, description="Attach an analogy explanation to each connection")


class TopConnectionsRequest(BaseModel):
    limit: int = Field(default=10, ge=1, le=100, description="Maximum number of connections to return")


class ConnectionsResponse(BaseModel):
    connections: List[ConnectionModel]
    timestamp: Optional[datetime] = None


class DeepConnectionsResponse(BaseModel):
    connections: List[DeepConnectionModel]
    timestamp: Optional[datetime] = None


class IndexStatsResponse(BaseModel):
    indexed_notes: int = Field(..., description="Notes known to the classifier index")
    embedded_notes: int = Field(..., description="Notes with an embedding in the configured store")
    embeddings_source: str
    classification_method: str

"""Markdown vault adapters."""

from .notes import (
    LinkChecker,
    MarkdownVault,
    NoteMetadata,
    NoteMetadataSource,
    WikiLinkChecker,
    generate_note_id,
    to_safe_file_id,
)

__all__ = [
    "LinkChecker",
    "MarkdownVault",
    "NoteMetadata",
    "NoteMetadataSource",
    "WikiLinkChecker",
    "generate_note_id",
    "to_safe_file_id",
]

"""Domain classification of notes.

A note's primary domain comes from one of three strategies, chosen once when the
classifier is built:

* ``tag``: the first tag carrying a configured domain prefix (``domain/biology``
  gives ``biology``), falling back to the folder strategy.
* ``folder``: the top-level folder, skipping a numbered organizational folder
  such as ``03_Resources``.
* ``cluster``: a unique synthetic domain per note, which disables the
  same-domain filter of the discovery engines.
"""

from __future__ import annotations

import re
from typing import Dict, Literal, Mapping, Protocol, Sequence, Tuple

from serendip.metrics.observability import get_logger
from serendip.models import NoteDomain
from serendip.vault.notes import NoteMetadataSource, generate_note_id

ClassificationMethod = Literal["tag", "folder", "cluster"]

_NUMBERED_FOLDER_RE = re.compile(r"^\d+_")
ROOT_DOMAIN = "root"


class NoteNotFoundError(LookupError):
    """Raised when a note id is not present in the classifier index."""


def infer_domain_from_tags(tags: Sequence[str], prefixes: Sequence[str]) -> str | None:
    for prefix in prefixes:
        for tag in tags:
            if tag.startswith(prefix):
                return tag[len(prefix) :]
    return None


def infer_domain_from_path(path: str) -> str:
    parts = path.split("/")
    if len(parts) < 2:
        return ROOT_DOMAIN
    first = parts[0]
    if _NUMBERED_FOLDER_RE.match(first) and len(parts) >= 3:
        return parts[1]
    return first


def extract_secondary_domains(tags: Sequence[str], prefixes: Sequence[str], primary: str) -> Tuple[str, ...]:
    domains: list[str] = []
    for prefix in prefixes:
        for tag in tags:
            if not tag.startswith(prefix):
                continue
            domain = tag[len(prefix) :]
            if domain != primary and domain not in domains:
                domains.append(domain)
    return tuple(domains)


class ClassificationStrategy(Protocol):
    name: str

    def primary_domain(self, note_id: str, path: str, tags: Sequence[str]) -> str:
        """Return the primary domain label of a note."""


class FolderStrategy:
    name = "folder"

    def primary_domain(self, note_id: str, path: str, tags: Sequence[str]) -> str:
        return infer_domain_from_path(path)


class TagStrategy:
    name = "tag"

    def __init__(self, prefixes: Sequence[str], fallback: ClassificationStrategy | None = None) -> None:
        self._prefixes = tuple(prefixes)
        self._fallback = fallback or FolderStrategy()

    def primary_domain(self, note_id: str, path: str, tags: Sequence[str]) -> str:
        domain = infer_domain_from_tags(tags, self._prefixes)
        if domain:
            return domain
        return self._fallback.primary_domain(note_id, path, tags)


class ClusterStrategy:
    name = "cluster"

    def primary_domain(self, note_id: str, path: str, tags: Sequence[str]) -> str:
        return f"cluster_{note_id}"


def build_strategy(method: ClassificationMethod, prefixes: Sequence[str]) -> ClassificationStrategy:
    if method == "tag":
        return TagStrategy(prefixes)
    if method == "folder":
        return FolderStrategy()
    if method == "cluster":
        return ClusterStrategy()
    raise ValueError(f"Unknown classification method: {method}")


class DomainClassifier:
    """Classifies notes by id using a metadata source and a strategy.

    The id -> path index is built on construction and rebuilt wholesale by
    :meth:`refresh_index`; a new mapping is built before it replaces the old one.
    """

    def __init__(
        self,
        source: NoteMetadataSource,
        strategy: ClassificationStrategy,
        *,
        domain_tag_prefixes: Sequence[str] = ("domain/", "topic/"),
    ) -> None:
        self._source = source
        self._strategy = strategy
        self._prefixes = tuple(domain_tag_prefixes)
        self._note_paths: Mapping[str, str] = {}
        self._logger = get_logger("classifier")
        self.refresh_index()

    @property
    def strategy(self) -> ClassificationStrategy:
        return self._strategy

    @property
    def note_count(self) -> int:
        return len(self._note_paths)

    def refresh_index(self) -> None:
        index: Dict[str, str] = {}
        for path in self._source.list_note_paths():
            index[generate_note_id(path)] = path
        self._note_paths = index
        self._logger.info("classifier.index_refreshed", notes=len(index))

    def get_path(self, note_id: str) -> str | None:
        return self._note_paths.get(note_id)

    def classify(self, note_id: str, embedding: Sequence[float] | None = None) -> NoteDomain:
        path = self._note_paths.get(note_id)
        if path is None:
            raise NoteNotFoundError(f"Note not found: {note_id}")
        try:
            tags = tuple(self._source.get_tags(path))
            title = self._source.get_title(path)
        except (OSError, UnicodeDecodeError) as exc:
            self._logger.warning("classifier.note_unreadable", note_id=note_id, path=path, detail=str(exc))
            raise NoteNotFoundError(f"Note not readable: {note_id} ({path})") from exc
        primary = self._strategy.primary_domain(note_id, path, tags)
        return NoteDomain(
            note_id=note_id,
            path=path,
            title=title,
            primary_domain=primary,
            secondary_domains=extract_secondary_domains(tags, self._prefixes, primary),
            tags=tags,
            embedding=tuple(embedding) if embedding is not None else None,
        )

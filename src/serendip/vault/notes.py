"""Markdown vault access: note ids, tags, titles and wikilinks."""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import List, Protocol, Sequence, Tuple

import yaml

from serendip.metrics.observability import get_logger

_FRONT_MATTER_RE = re.compile(r"\A---\s*\n(.*?)\n---\s*(?:\n|\Z)", re.DOTALL)
_FENCED_CODE_RE = re.compile(r"^```.*?^```", re.DOTALL | re.MULTILINE)
_INLINE_TAG_RE = re.compile(r"(?:^|(?<=\s))#([\w/-]+)")
_WIKILINK_RE = re.compile(r"!?\[\[([^\]]+)\]\]")
_UNSAFE_ID_CHARS_RE = re.compile(r"[^a-zA-Z0-9_-]")


def generate_note_id(path: str) -> str:
    """Return the hash-based note id used by the Vault Embeddings plugin.

    The hash runs over the UTF-16 code units of the path without its ``.md``
    suffix, wrapping like a signed 32-bit integer, and is rendered as the
    absolute value in lowercase hex, zero-padded to 8 characters.
    """

    stem = re.sub(r"\.md$", "", path)
    encoded = stem.encode("utf-16-le")
    units = struct.unpack(f"<{len(encoded) // 2}H", encoded)
    value = 0
    for unit in units:
        value = ((value << 5) - value + unit) & 0xFFFFFFFF
    if value & 0x80000000:
        value -= 1 << 32
    return format(abs(value), "x").zfill(8)


def to_safe_file_id(note_id: str) -> str:
    return _UNSAFE_ID_CHARS_RE.sub("_", note_id)


@dataclass(frozen=True)
class NoteMetadata:
    """Parsed metadata of a single markdown note."""

    path: str
    title: str
    tags: Tuple[str, ...]
    links: Tuple[str, ...]
    body: str


class NoteMetadataSource(Protocol):
    """Metadata lookups the domain classifier needs."""

    def list_note_paths(self) -> Sequence[str]:
        """Return every note path in the corpus."""

    def get_tags(self, path: str) -> Sequence[str]:
        """Return the tags of the note at ``path`` without the leading ``#``."""

    def get_title(self, path: str) -> str:
        """Return the display title of the note at ``path``."""


class LinkChecker(Protocol):
    def exists(self, path_a: str, path_b: str) -> bool:
        """Return True when either note links to the other."""


def split_front_matter(text: str) -> tuple[dict, str]:
    match = _FRONT_MATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        loaded = yaml.safe_load(match.group(1))
    except yaml.YAMLError:
        return {}, text[match.end() :]
    return (loaded if isinstance(loaded, dict) else {}), text[match.end() :]


def _front_matter_tags(front_matter: dict) -> List[str]:
    raw = front_matter.get("tags") or front_matter.get("tag") or []
    if isinstance(raw, str):
        raw = re.split(r"[,\s]+", raw)
    if not isinstance(raw, (list, tuple)):
        return []
    return [str(tag).strip().lstrip("#") for tag in raw if str(tag).strip()]


def extract_tags(front_matter: dict, body: str) -> Tuple[str, ...]:
    body = _FENCED_CODE_RE.sub("", body)
    inline = [tag for tag in _INLINE_TAG_RE.findall(body) if not tag.isdigit()]
    return tuple(dict.fromkeys(_front_matter_tags(front_matter) + inline))


def extract_links(body: str) -> Tuple[str, ...]:
    body = _FENCED_CODE_RE.sub("", body)
    targets: List[str] = []
    for raw in _WIKILINK_RE.findall(body):
        target = raw.split("|", 1)[0].split("#", 1)[0].strip()
        if target:
            targets.append(target)
    return tuple(dict.fromkeys(targets))


class MarkdownVault:
    """Read-only view over a directory of markdown notes.

    Paths are vault-relative POSIX strings (``"03_Resources/Philosophy/Socrates.md"``).
    Notes are parsed on demand, so callers always see the current file contents.
    """

    _logger = get_logger("vault")

    def __init__(self, root: str | Path, *, encoding: str = "utf-8") -> None:
        self._root = Path(root)
        self._encoding = encoding

    @property
    def root(self) -> Path:
        return self._root

    def list_note_paths(self) -> Sequence[str]:
        if not self._root.is_dir():
            self._logger.warning("vault.missing", root=str(self._root))
            return []
        return sorted(
            path.relative_to(self._root).as_posix()
            for path in self._root.rglob("*.md")
            if path.is_file()
        )

    def read_note(self, path: str) -> NoteMetadata:
        text = (self._root / path).read_text(encoding=self._encoding)
        front_matter, body = split_front_matter(text)
        return NoteMetadata(
            path=path,
            title=PurePosixPath(path).stem,
            tags=extract_tags(front_matter, body),
            links=extract_links(body),
            body=body,
        )

    def get_tags(self, path: str) -> Sequence[str]:
        return self.read_note(path).tags

    def get_title(self, path: str) -> str:
        return PurePosixPath(path).stem

    def get_text(self, path: str) -> str:
        return self.read_note(path).body


class WikiLinkChecker:
    """Bidirectional ``[[wikilink]]`` existence check between two notes.

    A link containing a folder (``[[Philosophy/Socrates]]``) must match the full
    path; a bare name matches any note with that file name.
    """

    def __init__(self, vault: MarkdownVault) -> None:
        self._vault = vault

    def exists(self, path_a: str, path_b: str) -> bool:
        return self._links_to(path_a, path_b) or self._links_to(path_b, path_a)

    def _links_to(self, source: str, target: str) -> bool:
        try:
            links = self._vault.read_note(source).links
        except (OSError, UnicodeDecodeError):
            return False
        target_name = PurePosixPath(target).stem
        for link in links:
            link_path = link if link.endswith(".md") else f"{link}.md"
            if "/" in link:
                if link_path == target:
                    return True
            elif PurePosixPath(link_path).stem == target_name:
                return True
        return False

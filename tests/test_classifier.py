from __future__ import annotations

from typing import Dict, Sequence

import pytest

from serendip.discovery import (
    ClusterStrategy,
    DomainClassifier,
    FolderFilter,
    FolderStrategy,
    NoteNotFoundError,
    TagStrategy,
    build_strategy,
)
from serendip.discovery.classifier import infer_domain_from_path
from serendip.vault import generate_note_id


class StubMetadataSource:
    def __init__(self, notes: Dict[str, Sequence[str]]) -> None:
        self.notes = dict(notes)

    def list_note_paths(self) -> Sequence[str]:
        return sorted(self.notes)

    def get_tags(self, path: str) -> Sequence[str]:
        if path not in self.notes:
            raise FileNotFoundError(path)
        return self.notes[path]

    def get_title(self, path: str) -> str:
        return path.rsplit("/", 1)[-1].removesuffix(".md")


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("03_Resources/Philosophy/Socrates.md", "Philosophy"),
        ("03_Resources/Socrates.md", "03_Resources"),
        ("Biology/Cells/Mitosis.md", "Biology"),
        ("Socrates.md", "root"),
    ],
)
def test_infer_domain_from_path(path: str, expected: str):
    assert infer_domain_from_path(path) == expected


def test_tag_strategy_prefers_prefixed_tag_and_falls_back_to_folder():
    strategy = TagStrategy(("domain/", "topic/"))
    assert strategy.primary_domain("id", "Notes/a.md", ["misc", "topic/physics", "domain/biology"]) == "biology"
    assert strategy.primary_domain("id", "Notes/a.md", ["misc"]) == "Notes"


def test_cluster_strategy_gives_each_note_its_own_domain():
    strategy = ClusterStrategy()
    assert strategy.primary_domain("abc", "Notes/a.md", []) == "cluster_abc"


def test_build_strategy():
    assert isinstance(build_strategy("folder", ()), FolderStrategy)
    assert isinstance(build_strategy("tag", ("domain/",)), TagStrategy)
    assert isinstance(build_strategy("cluster", ()), ClusterStrategy)
    with pytest.raises(ValueError):
        build_strategy("semantic", ())  # type: ignore[arg-type]


def test_classify_builds_note_domain():
    source = StubMetadataSource({"Notes/Evolution.md": ["domain/biology", "domain/history", "x"]})
    classifier = DomainClassifier(source, TagStrategy(("domain/",)), domain_tag_prefixes=("domain/",))
    note_id = generate_note_id("Notes/Evolution.md")

    note = classifier.classify(note_id, [0.1, 0.2])

    assert note.note_id == note_id
    assert note.title == "Evolution"
    assert note.primary_domain == "biology"
    assert note.secondary_domains == ("history",)
    assert note.tags == ("domain/biology", "domain/history", "x")
    assert note.embedding == (0.1, 0.2)


def test_classify_unknown_note_raises():
    classifier = DomainClassifier(StubMetadataSource({}), FolderStrategy())
    with pytest.raises(NoteNotFoundError):
        classifier.classify("deadbeef")


def test_classify_deleted_file_raises_not_found():
    source = StubMetadataSource({"Notes/a.md": []})
    classifier = DomainClassifier(source, FolderStrategy())
    del source.notes["Notes/a.md"]
    with pytest.raises(NoteNotFoundError):
        classifier.classify(generate_note_id("Notes/a.md"))


def test_refresh_index_picks_up_new_notes():
    source = StubMetadataSource({"Notes/a.md": []})
    classifier = DomainClassifier(source, FolderStrategy())
    new_id = generate_note_id("Notes/b.md")
    assert classifier.get_path(new_id) is None

    source.notes["Notes/b.md"] = []
    classifier.refresh_index()

    assert classifier.get_path(new_id) == "Notes/b.md"
    assert classifier.note_count == 2


def test_folder_filter_include_and_exclude():
    folder_filter = FolderFilter(include_folders=("Notes",), exclude_folders=("notes/templates/",))
    assert folder_filter.allows("notes/a.md")
    assert not folder_filter.allows("Notes/Templates/daily.md")
    assert not folder_filter.allows("Other/a.md")
    assert not folder_filter.allows("NotesArchive/a.md")
    assert FolderFilter().allows("anything/at/all.md")

"""Folder include/exclude filtering for note paths."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


def _under(path_lower: str, folders: Tuple[str, ...]) -> bool:
    return any(path_lower.startswith(folder.lower().rstrip("/") + "/") for folder in folders)


@dataclass(frozen=True)
class FolderFilter:
    """Case-insensitive folder prefix filter; an empty include list admits every path."""

    include_folders: Tuple[str, ...] = ()
    exclude_folders: Tuple[str, ...] = ()

    def is_included(self, path: str) -> bool:
        if not self.include_folders:
            return True
        return _under(path.lower(), self.include_folders)

    def is_excluded(self, path: str) -> bool:
        return _under(path.lower(), self.exclude_folders)

    def allows(self, path: str) -> bool:
        return self.is_included(path) and not self.is_excluded(path)

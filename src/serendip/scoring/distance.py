"""Domain distance value object."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping


def clamp_unit(value: float) -> float:
    if value < 0.0:
        return 0.0
    if value > 1.0:
        return 1.0
    return value


@dataclass(frozen=True)
class DomainDistance:
    """How far apart two domains, tag sets or folder paths are.

    ``0.0`` means the same domain and ``1.0`` means maximally distant. The value
    is clamped on construction, so every factory below yields a value in [0, 1].
    """

    value: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", clamp_unit(float(self.value)))

    @classmethod
    def calculate(
        cls,
        domain_a: str,
        domain_b: str,
        taxonomy: Mapping[str, str] | None = None,
    ) -> "DomainDistance":
        """Coarse three-level distance: same domain, same parent category, or unrelated."""

        if domain_a == domain_b:
            return cls(0.0)
        if taxonomy:
            parent_a = taxonomy.get(domain_a)
            parent_b = taxonomy.get(domain_b)
            if parent_a and parent_b and parent_a == parent_b:
                return cls(0.5)
        return cls(1.0)

    @classmethod
    def from_tag_jaccard(cls, tags_a: Iterable[str], tags_b: Iterable[str]) -> "DomainDistance":
        """Jaccard distance between two tag sets.

        Two untagged notes are treated as maximally distant rather than identical,
        otherwise unclassified notes would look like "safe" same-domain pairs.
        """

        set_a = set(tags_a)
        set_b = set(tags_b)
        union = set_a | set_b
        if not union:
            return cls(1.0)
        return cls(1.0 - len(set_a & set_b) / len(union))

    @classmethod
    def from_folder_path(cls, path_a: str, path_b: str) -> "DomainDistance":
        parts_a = [part for part in path_a.split("/") if part]
        parts_b = [part for part in path_b.split("/") if part]
        longest = max(len(parts_a), len(parts_b))
        if longest == 0:
            return cls(1.0)
        common = 0
        for left, right in zip(parts_a, parts_b):
            if left != right:
                break
            common += 1
        return cls(1.0 - common / longest)

    @classmethod
    def from_value(cls, value: float) -> "DomainDistance":
        """Rebuild a distance from its raw number (cache hydration, tests)."""

        return cls(value)

    def __str__(self) -> str:
        return f"{self.value:.2f}"

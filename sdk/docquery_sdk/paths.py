"""
Dotted field paths.

A field path such as ``"author.profile.name"`` is decomposed into its
ordered prefix chain (``"author"``, ``"author.profile"``,
``"author.profile.name"``). The classifier consumes the chain top-down
and stops at the first reference boundary.

Invariants:
    - A FieldPath always has at least one segment
    - No segment is an empty string
    - walk_path() is lazy and restartable: iterating twice yields the
      same prefixes
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

SEPARATOR = "."


@dataclass(frozen=True)
class FieldPath:
    """A parsed dotted field path.

    Attributes:
        segments: Path segments in order

    Example:
        >>> path = FieldPath.parse("author.name")
        >>> list(path.prefixes())
        ['author', 'author.name']
    """

    segments: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.segments:
            raise ValueError("FieldPath requires at least one segment")
        if any(not s for s in self.segments):
            raise ValueError(f"Empty segment in field path {self.segments!r}")

    @classmethod
    def parse(cls, value: Any) -> FieldPath | None:
        """Parse a dotted identifier, returning None when it is malformed."""
        if not isinstance(value, str) or not value:
            return None
        segments = tuple(value.split(SEPARATOR))
        if any(not s for s in segments):
            return None
        return cls(segments)

    @property
    def head(self) -> str:
        """Top-level segment."""
        return self.segments[0]

    def tail(self, depth: int) -> FieldPath | None:
        """Path made of the segments after the first ``depth`` ones."""
        rest = self.segments[depth:]
        if not rest:
            return None
        return FieldPath(rest)

    def prefixes(self) -> Iterator[str]:
        """Yield each prefix from shortest to the full path."""
        for depth in range(1, len(self.segments) + 1):
            yield SEPARATOR.join(self.segments[:depth])

    def __len__(self) -> int:
        return len(self.segments)

    def __str__(self) -> str:
        return SEPARATOR.join(self.segments)


class PathWalk:
    """Restartable iterable over the prefixes of a dotted path."""

    def __init__(self, value: Any) -> None:
        self._path = FieldPath.parse(value)

    def __iter__(self) -> Iterator[str]:
        if self._path is None:
            return iter(())
        return self._path.prefixes()


def walk_path(value: Any) -> PathWalk:
    """Walk the prefixes of a dotted field identifier.

    Empty or non-string input yields an empty sequence.

    Example:
        >>> list(walk_path("a.b.c"))
        ['a', 'a.b', 'a.b.c']
    """
    return PathWalk(value)

"""Data models for snapshot comparison."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum

from fixity_core.tree import FileNode, Node


class ChangeKind(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"
    TYPE_CHANGED = "type_changed"
    DIGEST_DISAGREEMENT = "digest_disagreement"


@dataclass(frozen=True)
class FileDelta:
    """Field-by-field comparison of the same file in two snapshots."""

    size_before: int
    size_after: int
    changed_algorithms: frozenset[str] = frozenset()
    unchanged_algorithms: frozenset[str] = frozenset()
    coverage_added: frozenset[str] = frozenset()
    coverage_removed: frozenset[str] = frozenset()
    nul_before: bool | None = None
    nul_after: bool | None = None
    non_ascii_before: bool | None = None
    non_ascii_after: bool | None = None

    @classmethod
    def compare(cls, before: FileNode, after: FileNode) -> FileDelta:
        old, new = before.digests, after.digests
        common = old.keys() & new.keys()
        return cls(
            size_before=before.size,
            size_after=after.size,
            changed_algorithms=frozenset(a for a in common if old[a] != new[a]),
            unchanged_algorithms=frozenset(a for a in common if old[a] == new[a]),
            coverage_added=frozenset(new.keys() - old.keys()),
            coverage_removed=frozenset(old.keys() - new.keys()),
            nul_before=before.has_nul,
            nul_after=after.has_nul,
            non_ascii_before=before.has_non_ascii,
            non_ascii_after=after.has_non_ascii,
        )

    @property
    def size_changed(self) -> bool:
        return self.size_before != self.size_after

    @property
    def content_changed(self) -> bool:
        """At least one algorithm present on both sides saw different content."""
        return bool(self.changed_algorithms)

    @property
    def compared_algorithms(self) -> frozenset[str]:
        return self.changed_algorithms | self.unchanged_algorithms

    @property
    def coverage_changed(self) -> bool:
        return bool(self.coverage_added or self.coverage_removed)

    @property
    def digest_disagreement(self) -> bool:
        """Two algorithms disagree about whether the content changed."""
        return bool(self.changed_algorithms) and bool(self.unchanged_algorithms)

    @property
    def nul_changed(self) -> bool:
        return _flag_changed(self.nul_before, self.nul_after)

    @property
    def non_ascii_changed(self) -> bool:
        return _flag_changed(self.non_ascii_before, self.non_ascii_after)

    @property
    def nul_introduced(self) -> bool:
        return self.nul_before is False and self.nul_after is True

    @property
    def non_ascii_introduced(self) -> bool:
        return self.non_ascii_before is False and self.non_ascii_after is True

    @property
    def is_empty(self) -> bool:
        return not (
            self.size_changed
            or self.content_changed
            or self.coverage_changed
            or self.nul_changed
            or self.non_ascii_changed
        )


def _flag_changed(before: bool | None, after: bool | None) -> bool:
    # A flag only one side knows about is a coverage gap, not a transition.
    return before is not None and after is not None and before != after


@dataclass(frozen=True)
class Change:
    """One entry of a change set. Each path appears at most once."""

    path: str
    kind: ChangeKind
    before: Node | None = None
    after: Node | None = None
    delta: FileDelta | None = None


@dataclass(frozen=True)
class DirectoryStats:
    """Leaf counts for one directory subtree present in both snapshots."""

    added: int = 0
    removed: int = 0
    changed: int = 0
    unchanged: int = 0

    def __add__(self, other: DirectoryStats) -> DirectoryStats:
        return DirectoryStats(
            added=self.added + other.added,
            removed=self.removed + other.removed,
            changed=self.changed + other.changed,
            unchanged=self.unchanged + other.unchanged,
        )

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.changed)


@dataclass(frozen=True)
class DiffResult:
    """Result of comparing snapshot A (old) against snapshot B (new)."""

    changes: tuple[Change, ...] = ()
    directory_stats: Mapping[str, DirectoryStats] = field(default_factory=dict)
    complete: bool = True

    def __iter__(self) -> Iterator[Change]:
        return iter(self.changes)

    def __len__(self) -> int:
        return len(self.changes)

    def as_set(self) -> frozenset[Change]:
        return frozenset(self.changes)

    @property
    def totals(self) -> DirectoryStats:
        return self.directory_stats.get("", DirectoryStats())

    def by_kind(self, kind: ChangeKind) -> tuple[Change, ...]:
        return tuple(c for c in self.changes if c.kind is kind)

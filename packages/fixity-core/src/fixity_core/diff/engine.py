"""Structural comparison of two snapshot trees."""

from __future__ import annotations

from collections.abc import Generator, Iterator

from fixity_core.cancel import CancelToken, is_cancelled
from fixity_core.diff.models import (
    Change,
    ChangeKind,
    DiffResult,
    DirectoryStats,
    FileDelta,
)
from fixity_core.tree import DirectoryNode, FileNode, Node, iter_leaves, join_path

_Walk = Generator[Change, None, DirectoryStats]


class SnapshotDiffer:
    """Aligns two trees by child name and emits a change per affected path.

    Names are always visited in sorted order, so the output does not depend
    on how either tree's children were inserted. Whole added or removed
    subtrees are expanded to their leaves.
    """

    def __init__(self, cancel: CancelToken | None = None) -> None:
        self.cancel = cancel
        self.directory_stats: dict[str, DirectoryStats] = {}
        self.complete = True

    def iter_changes(self, old: DirectoryNode, new: DirectoryNode) -> Iterator[Change]:
        yield from self._diff_dir(old, new, "")

    def diff(self, old: DirectoryNode, new: DirectoryNode) -> DiffResult:
        changes = tuple(self.iter_changes(old, new))
        return DiffResult(
            changes=changes,
            directory_stats=dict(self.directory_stats),
            complete=self.complete,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _diff_dir(self, old: DirectoryNode, new: DirectoryNode, path: str) -> _Walk:
        stats = DirectoryStats()
        for name in sorted(old.children.keys() | new.children.keys()):
            if is_cancelled(self.cancel):
                self.complete = False
                break
            child_path = join_path(path, name)
            before = old.children.get(name)
            after = new.children.get(name)
            if before is None:
                stats += yield from _expand(after, child_path, ChangeKind.ADDED)
            elif after is None:
                stats += yield from _expand(before, child_path, ChangeKind.REMOVED)
            elif isinstance(before, DirectoryNode) and isinstance(after, DirectoryNode):
                stats += yield from self._diff_dir(before, after, child_path)
            else:
                stats += yield from _diff_entry(before, after, child_path)
        self.directory_stats[path] = stats
        return stats


def _expand(node: Node, path: str, kind: ChangeKind) -> _Walk:
    """Report every leaf of a one-sided subtree individually."""
    count = 0
    for leaf_path, leaf in iter_leaves(node, path):
        count += 1
        if kind is ChangeKind.ADDED:
            yield Change(leaf_path, kind, after=leaf)
        else:
            yield Change(leaf_path, kind, before=leaf)
    if kind is ChangeKind.ADDED:
        return DirectoryStats(added=count)
    return DirectoryStats(removed=count)


def _expand_children(node: Node, path: str, kind: ChangeKind) -> _Walk:
    stats = DirectoryStats()
    if isinstance(node, DirectoryNode):
        for name in sorted(node.children):
            stats += yield from _expand(node.children[name], join_path(path, name), kind)
    return stats


def _diff_entry(before: Node, after: Node, path: str) -> _Walk:
    """Compare two same-named entries that are not both directories."""
    if type(before) is not type(after):
        # Removed(old) + Added(new) at one path; descendants listed separately.
        yield Change(path, ChangeKind.TYPE_CHANGED, before=before, after=after)
        stats = DirectoryStats(changed=1)
        stats += yield from _expand_children(before, path, ChangeKind.REMOVED)
        stats += yield from _expand_children(after, path, ChangeKind.ADDED)
        return stats

    if isinstance(before, FileNode) and isinstance(after, FileNode):
        delta = FileDelta.compare(before, after)
        if delta.is_empty:
            return DirectoryStats(unchanged=1)
        kind = (
            ChangeKind.DIGEST_DISAGREEMENT
            if delta.digest_disagreement
            else ChangeKind.MODIFIED
        )
        yield Change(path, kind, before=before, after=after, delta=delta)
        return DirectoryStats(changed=1)

    if before == after:
        return DirectoryStats(unchanged=1)
    yield Change(path, ChangeKind.MODIFIED, before=before, after=after)
    return DirectoryStats(changed=1)


def iter_changes(
    old: DirectoryNode, new: DirectoryNode, cancel: CancelToken | None = None
) -> Iterator[Change]:
    """Lazily yield the changes between *old* and *new*."""
    return SnapshotDiffer(cancel).iter_changes(old, new)


def diff(
    old: DirectoryNode, new: DirectoryNode, cancel: CancelToken | None = None
) -> DiffResult:
    """Convenience wrapper around SnapshotDiffer.diff()."""
    return SnapshotDiffer(cancel).diff(old, new)

"""Lazy, read-only traversal over snapshot trees."""

from __future__ import annotations

from collections.abc import Iterator

from fixity_core.tree.models import DirectoryNode, FileNode, Node


def join_path(prefix: str, name: str) -> str:
    """Join a tree path and a child name. The root's path is ``""``."""
    return f"{prefix}/{name}" if prefix else name


def walk(node: Node, prefix: str = "") -> Iterator[tuple[str, Node]]:
    """Yield ``(path, node)`` depth-first, parents before children.

    Children are visited in sorted name order. Paths are produced one at a
    time, so the full path list is never held in memory.
    """
    stack: list[tuple[str, Node]] = [(prefix, node)]
    while stack:
        path, current = stack.pop()
        yield path, current
        if isinstance(current, DirectoryNode):
            for name in sorted(current.children, reverse=True):
                stack.append((join_path(path, name), current.children[name]))


def iter_leaves(node: Node, prefix: str = "") -> Iterator[tuple[str, Node]]:
    """Yield every leaf under *node*; an empty directory counts as a leaf."""
    for path, current in walk(node, prefix):
        if not isinstance(current, DirectoryNode) or not current.children:
            yield path, current


def lookup(root: DirectoryNode, path: str) -> Node | None:
    """Find the node at a ``/``-separated path, or None."""
    if not path:
        return root
    current: Node = root
    for part in path.split("/"):
        if not isinstance(current, DirectoryNode):
            return None
        child = current.children.get(part)
        if child is None:
            return None
        current = child
    return current


def count_files(node: Node) -> int:
    return sum(1 for _, n in walk(node) if isinstance(n, FileNode))


def total_size(node: Node) -> int:
    return sum(n.size for _, n in walk(node) if isinstance(n, FileNode))

"""Snapshot tree model and traversal."""

from fixity_core.tree.models import (
    MAX_DEPTH,
    NODE_TYPES,
    UNSUPPORTED_KINDS,
    DirectoryNode,
    FileNode,
    Node,
    UnreadableNode,
    UnsupportedNode,
    check_name,
    node_kind,
)
from fixity_core.tree.traversal import (
    count_files,
    iter_leaves,
    join_path,
    lookup,
    total_size,
    walk,
)

__all__ = [
    "MAX_DEPTH",
    "NODE_TYPES",
    "UNSUPPORTED_KINDS",
    "DirectoryNode",
    "FileNode",
    "Node",
    "UnreadableNode",
    "UnsupportedNode",
    "check_name",
    "count_files",
    "iter_leaves",
    "join_path",
    "lookup",
    "node_kind",
    "total_size",
    "walk",
]

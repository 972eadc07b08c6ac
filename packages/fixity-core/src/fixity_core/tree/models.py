"""Immutable snapshot tree: a tagged union of directory and leaf nodes."""

from __future__ import annotations

import unicodedata
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal, Union

from fixity_core.hashing import ALGORITHMS, is_valid_digest

UnsupportedKind = Literal[
    "symlink", "fifo", "socket", "block_device", "char_device", "other"
]
UNSUPPORTED_KINDS: tuple[str, ...] = (
    "symlink", "fifo", "socket", "block_device", "char_device", "other",
)

# Deepest directory a snapshot may hold; the root is depth 0. The builder
# stops descending here and the codec refuses anything deeper.
MAX_DEPTH = 256


@dataclass(frozen=True, eq=False)
class FileNode:
    """A regular file: its byte length, optional digests and byte-class flags."""

    size: int
    digests: Mapping[str, str] = field(default_factory=dict)
    has_nul: bool | None = None
    has_non_ascii: bool | None = None
    _hash: int = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if isinstance(self.size, bool) or not isinstance(self.size, int):
            raise TypeError(f"size must be an int, got {type(self.size).__name__}")
        if self.size < 0:
            raise ValueError(f"size must be non-negative, got {self.size}")
        for algorithm, value in self.digests.items():
            if algorithm not in ALGORITHMS:
                raise ValueError(f"unknown digest algorithm {algorithm!r}")
            if not is_valid_digest(value):
                raise ValueError(f"malformed {algorithm} digest {value!r}")
        for flag in (self.has_nul, self.has_non_ascii):
            if flag is not None and not isinstance(flag, bool):
                raise TypeError("flags must be bool or None")
        digests = MappingProxyType(dict(self.digests))
        object.__setattr__(self, "digests", digests)
        object.__setattr__(
            self,
            "_hash",
            hash((
                "File",
                self.size,
                frozenset(digests.items()),
                self.has_nul,
                self.has_non_ascii,
            )),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FileNode):
            return NotImplemented
        return (
            self.size == other.size
            and dict(self.digests) == dict(other.digests)
            and self.has_nul == other.has_nul
            and self.has_non_ascii == other.has_non_ascii
        )

    def __hash__(self) -> int:
        return self._hash


@dataclass(frozen=True)
class UnreadableNode:
    """An entry that could not be opened, read or listed during the walk."""

    error: str

    def __post_init__(self) -> None:
        if not isinstance(self.error, str) or not self.error:
            raise ValueError("error kind must be a non-empty string")


@dataclass(frozen=True)
class UnsupportedNode:
    """A symlink, device, socket or other non-regular, non-directory entry."""

    kind: str

    def __post_init__(self) -> None:
        if self.kind not in UNSUPPORTED_KINDS:
            raise ValueError(f"unknown unsupported-entry kind {self.kind!r}")


def check_name(name: object) -> str:
    """Validate a single directory entry name."""
    if not isinstance(name, str):
        raise TypeError(f"entry name must be str, got {type(name).__name__}")
    if not name or name in (".", ".."):
        raise ValueError(f"invalid entry name {name!r}")
    if "/" in name or "\x00" in name:
        raise ValueError(f"entry name may not contain '/' or NUL: {name!r}")
    return name


@dataclass(frozen=True, eq=False)
class DirectoryNode:
    """A directory owning its children by name. Child order is irrelevant."""

    children: Mapping[str, Node] = field(default_factory=dict)
    _hash: int = field(init=False, repr=False)

    def __post_init__(self) -> None:
        seen: dict[str, str] = {}
        for name, child in self.children.items():
            check_name(name)
            if not isinstance(child, NODE_TYPES):
                raise TypeError(
                    f"child {name!r} is not a tree node: {type(child).__name__}"
                )
            normalized = unicodedata.normalize("NFC", name)
            if normalized in seen:
                raise ValueError(
                    f"entry names {seen[normalized]!r} and {name!r} collide "
                    "after Unicode normalization"
                )
            seen[normalized] = name
        children = MappingProxyType(dict(self.children))
        object.__setattr__(self, "children", children)
        object.__setattr__(
            self, "_hash", hash(("Directory", frozenset(children.items())))
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DirectoryNode):
            return NotImplemented
        return self._hash == other._hash and dict(self.children) == dict(other.children)

    def __hash__(self) -> int:
        return self._hash

    def __len__(self) -> int:
        return len(self.children)


Node = Union[FileNode, DirectoryNode, UnreadableNode, UnsupportedNode]
NODE_TYPES = (FileNode, DirectoryNode, UnreadableNode, UnsupportedNode)


def node_kind(node: Node) -> str:
    """Tag name used for this variant in reports and in the database."""
    if isinstance(node, FileNode):
        return "File"
    if isinstance(node, DirectoryNode):
        return "Directory"
    if isinstance(node, UnreadableNode):
        return "Unreadable"
    if isinstance(node, UnsupportedNode):
        return "Unsupported"
    raise TypeError(f"not a tree node: {type(node).__name__}")

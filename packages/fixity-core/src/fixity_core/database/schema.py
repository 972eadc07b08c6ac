"""Closed wire schema for snapshot leaves.

Leaf payloads are validated with strict pydantic models that forbid extra
keys: anything the whole-database digest would not be able to vouch for is
rejected outright.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from fixity_core.hashing import BLAKE2B, DIGEST_PATTERN, SHA2
from fixity_core.tree import FileNode, UnreadableNode, UnsupportedNode

Digest = Annotated[str, StringConstraints(pattern=DIGEST_PATTERN)]

# Wire key for each digest algorithm. The names are the algorithm names.
DIGEST_KEYS: dict[str, str] = {SHA2: SHA2, BLAKE2B: BLAKE2B}


class _Record(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)


class FileRecord(_Record):
    """Payload of a ``File``-tagged entry."""

    size: int = Field(ge=0)
    sha2: Digest | None = Field(default=None, alias="sha2-512/256")
    blake2b: Digest | None = None
    nul: bool | None = None
    nonascii: bool | None = None

    def to_node(self) -> FileNode:
        digests = {
            name: value
            for name, value in ((SHA2, self.sha2), (BLAKE2B, self.blake2b))
            if value is not None
        }
        return FileNode(
            size=self.size,
            digests=digests,
            has_nul=self.nul,
            has_non_ascii=self.nonascii,
        )


class UnreadableRecord(_Record):
    """Payload of an ``Unreadable``-tagged entry."""

    error: str = Field(min_length=1)

    def to_node(self) -> UnreadableNode:
        return UnreadableNode(self.error)


class UnsupportedRecord(_Record):
    """Payload of an ``Unsupported``-tagged entry."""

    kind: Literal["symlink", "fifo", "socket", "block_device", "char_device", "other"]

    def to_node(self) -> UnsupportedNode:
        return UnsupportedNode(self.kind)


LEAF_RECORDS: dict[str, type[_Record]] = {
    "File": FileRecord,
    "Unreadable": UnreadableRecord,
    "Unsupported": UnsupportedRecord,
}


def file_payload(node: FileNode) -> dict[str, Any]:
    """Wire payload for a file node; unknown values are omitted, not nulled."""
    payload: dict[str, Any] = {"size": node.size}
    for algorithm, value in node.digests.items():
        payload[DIGEST_KEYS[algorithm]] = value
    if node.has_nul is not None:
        payload["nul"] = node.has_nul
    if node.has_non_ascii is not None:
        payload["nonascii"] = node.has_non_ascii
    return payload


def leaf_payload(node: FileNode | UnreadableNode | UnsupportedNode) -> dict[str, Any]:
    if isinstance(node, FileNode):
        return file_payload(node)
    if isinstance(node, UnreadableNode):
        return {"error": node.error}
    return {"kind": node.kind}

"""Self-verifying database encoding for snapshot trees.

Stored layout::

    <canonical body> \\n <44-char SHA-512/256 digest of the body> \\n

The body is either canonical JSON (keys sorted, no insignificant
whitespace, UTF-8) or canonical CBOR (RFC 7049 canonical map ordering).
Both carry the same tagged structure and are checked against the same
closed records. Two structurally equal trees therefore encode to
identical bytes in a given codec, and the digest is recomputed on every
load rather than trusted.
"""

from __future__ import annotations

import hmac
import io
import json
import logging
import os
from collections.abc import Iterator
from pathlib import Path
from typing import Any, BinaryIO

import cbor2
from pydantic import ValidationError

from fixity_core.errors import ChecksumMismatch, SchemaViolation
from fixity_core.hashing import ALGORITHMS, DIGEST_LENGTH, SHA2, encode_digest
from fixity_core.database.schema import LEAF_RECORDS, leaf_payload
from fixity_core.tree import (
    MAX_DEPTH,
    DirectoryNode,
    Node,
    check_name,
    join_path,
    node_kind,
)

logger = logging.getLogger(__name__)

DATABASE_DIGEST_ALGORITHM = SHA2
TRAILER_LENGTH = DIGEST_LENGTH + 2

JSON = "json"
CBOR = "cbor"
CODECS: tuple[str, ...] = (JSON, CBOR)

_ENCODING = "utf-8"
# Lone surrogates from undecodable file names round-trip as their raw bytes.
_ERRORS = "surrogateescape"


def _dumps(obj: Any) -> str:
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def _trailer(digest: str) -> bytes:
    return b"\n" + digest.encode("ascii") + b"\n"


def _too_deep(depth: int) -> bool:
    return depth > MAX_DEPTH


def body_digest(body: bytes) -> str:
    """Whole-database digest over the canonical body bytes."""
    hasher = ALGORITHMS[DATABASE_DIGEST_ALGORITHM]()
    hasher.update(body)
    return encode_digest(hasher.digest())


def check_codec(codec: str) -> str:
    if codec not in CODECS:
        raise ValueError(f"Unknown database codec {codec!r}; expected one of {', '.join(CODECS)}")
    return codec


def codec_for_path(path: str | Path) -> str:
    """``cbor`` for a ``.cbor`` file name, ``json`` for anything else."""
    return CBOR if Path(path).suffix.lower() == ".cbor" else JSON


def sniff_codec(body: bytes) -> str:
    """Tell the codecs apart by the first byte of a body.

    A JSON body always opens with ``{``; a CBOR body opens with a map
    header, which is never that byte.
    """
    return JSON if body[:1] == b"{" else CBOR


# ------------------------------------------------------------------
# Encode
# ------------------------------------------------------------------


def iter_canonical(node: Node, _depth: int = 0) -> Iterator[str]:
    """Yield the canonical JSON text of *node* piece by piece."""
    if isinstance(node, DirectoryNode):
        if _too_deep(_depth):
            raise ValueError(f"tree is nested deeper than {MAX_DEPTH} directories")
        yield '{"Directory":{'
        for i, name in enumerate(sorted(node.children)):
            if i:
                yield ","
            yield _dumps(name)
            yield ":"
            yield from iter_canonical(node.children[name], _depth + 1)
        yield "}}"
    else:
        yield _dumps({node_kind(node): leaf_payload(node)})


def _cbor_name(name: str) -> str | bytes:
    # CBOR text must be valid UTF-8; undecodable names go out as raw bytes.
    try:
        name.encode(_ENCODING)
    except UnicodeEncodeError:
        return name.encode(_ENCODING, _ERRORS)
    return name


def to_wire(node: Node, _depth: int = 0) -> dict[Any, Any]:
    """The tagged object form of *node*, as stored in a CBOR body."""
    if isinstance(node, DirectoryNode):
        if _too_deep(_depth):
            raise ValueError(f"tree is nested deeper than {MAX_DEPTH} directories")
        return {
            "Directory": {
                _cbor_name(name): to_wire(child, _depth + 1)
                for name, child in node.children.items()
            }
        }
    return {node_kind(node): leaf_payload(node)}


def _iter_body(root: DirectoryNode, codec: str) -> Iterator[bytes]:
    if check_codec(codec) == CBOR:
        yield cbor2.dumps(to_wire(root), canonical=True)
        return
    for piece in iter_canonical(root):
        yield piece.encode(_ENCODING, _ERRORS)


def encode_body(root: DirectoryNode, codec: str = JSON) -> bytes:
    return b"".join(_iter_body(root, codec))


def write(root: DirectoryNode, stream: BinaryIO, codec: str = JSON) -> str:
    """Stream the sealed encoding of *root* to *stream*; return the digest.

    Raises ``ValueError`` for a tree deeper than ``MAX_DEPTH``, which the
    reader would refuse.
    """
    if not isinstance(root, DirectoryNode):
        raise TypeError(f"database root must be a DirectoryNode, got {type(root).__name__}")
    hasher = ALGORITHMS[DATABASE_DIGEST_ALGORITHM]()
    for raw in _iter_body(root, codec):
        hasher.update(raw)
        stream.write(raw)
    digest = encode_digest(hasher.digest())
    stream.write(_trailer(digest))
    return digest


def encode(root: DirectoryNode, codec: str = JSON) -> bytes:
    buffer = io.BytesIO()
    write(root, buffer, codec)
    return buffer.getvalue()


def dump(root: DirectoryNode, path: str | Path, codec: str | None = None) -> str:
    """Write the database to *path* atomically; return its digest.

    The codec defaults to the one matching the file name.
    """
    path = Path(path)
    codec = check_codec(codec or codec_for_path(path))
    tmp = path.with_name(f".{path.name}.tmp")
    try:
        with open(tmp, "wb") as f:
            digest = write(root, f, codec)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug("Wrote %s database %s (digest %s)", codec, path, digest)
    return digest


# ------------------------------------------------------------------
# Decode
# ------------------------------------------------------------------


def _reject_duplicates(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    obj: dict[str, Any] = {}
    for key, value in pairs:
        if key in obj:
            raise SchemaViolation(f"duplicate key {key!r}")
        obj[key] = value
    return obj


def _reject_constant(name: str) -> Any:
    raise SchemaViolation(f"non-finite number {name}")


def _load_json(body: bytes) -> Any:
    try:
        return json.loads(
            body.decode(_ENCODING, _ERRORS),
            object_pairs_hook=_reject_duplicates,
            parse_constant=_reject_constant,
        )
    except (ValueError, RecursionError) as exc:
        raise SchemaViolation(f"invalid JSON: {exc}") from exc


def _load_cbor(body: bytes) -> Any:
    # Duplicate keys and trailing bytes survive cbor2 but fail the
    # canonical re-encoding check in decode(). Damaged input can fail in
    # any of cbor2's semantic tag decoders, each with its own error type.
    try:
        return cbor2.loads(body)
    except Exception as exc:
        raise SchemaViolation(f"invalid CBOR: {exc}") from exc


def _directory_from_wire(payload: Any, path: str, depth: int) -> DirectoryNode:
    if _too_deep(depth):
        raise SchemaViolation(f"nested deeper than {MAX_DEPTH} directories", path)
    if not isinstance(payload, dict):
        raise SchemaViolation("Directory payload must be an object", path)
    children: dict[str, Node] = {}
    for name, child in payload.items():
        if isinstance(name, bytes):
            name = name.decode(_ENCODING, _ERRORS)
        try:
            check_name(name)
        except (TypeError, ValueError) as exc:
            raise SchemaViolation(str(exc), join_path(path, str(name))) from exc
        children[name] = _from_wire(child, join_path(path, name), depth + 1)
    try:
        return DirectoryNode(children)
    except ValueError as exc:
        raise SchemaViolation(str(exc), path) from exc


def _from_wire(obj: Any, path: str, depth: int) -> Node:
    if not isinstance(obj, dict) or len(obj) != 1:
        raise SchemaViolation("expected an object with exactly one tag", path)
    ((tag, payload),) = obj.items()
    if tag == "Directory":
        return _directory_from_wire(payload, path, depth)

    record_type = LEAF_RECORDS.get(tag)
    if record_type is None:
        raise SchemaViolation(f"unknown tag {tag!r}", path)
    try:
        record = record_type.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first["loc"]) or tag
        raise SchemaViolation(f"{tag}.{where}: {first['msg']}", path) from exc
    return record.to_node()


def parse_body(body: bytes, codec: str | None = None) -> DirectoryNode:
    """Structurally validate a canonical body. Does not check the digest.

    Without an explicit *codec* the body's first byte decides.
    """
    codec = check_codec(codec or sniff_codec(body))
    obj = _load_cbor(body) if codec == CBOR else _load_json(body)
    if not isinstance(obj, dict) or list(obj) != ["Directory"]:
        raise SchemaViolation("root must be a Directory-tagged object")
    return _directory_from_wire(obj["Directory"], "", 0)


def decode(data: bytes, codec: str | None = None) -> DirectoryNode:
    """Decode and verify a stored database.

    Raises:
        SchemaViolation: the bytes are sealed correctly but do not describe
            a valid snapshot (or carry no trailer at all).
        ChecksumMismatch: the recomputed digest differs from the stored one.
            A body that is both malformed and unsealed was damaged after it
            was written, so this takes precedence.
    """
    if len(data) < TRAILER_LENGTH:
        raise SchemaViolation("database is truncated: missing digest trailer")
    body, trailer = data[:-TRAILER_LENGTH], data[-TRAILER_LENGTH:]
    stored = trailer[1:-1].decode("ascii", "replace")
    codec = check_codec(codec or sniff_codec(body))

    try:
        root = parse_body(body, codec)
    except SchemaViolation as exc:
        actual = body_digest(body)
        if not hmac.compare_digest(trailer, _trailer(actual)):
            raise ChecksumMismatch(stored, actual) from exc
        raise

    actual = body_digest(body)
    if not hmac.compare_digest(trailer, _trailer(actual)):
        raise ChecksumMismatch(stored, actual)
    if encode_body(root, codec) != body:
        raise SchemaViolation("encoding is not canonical")
    return root


def read(stream: BinaryIO, codec: str | None = None) -> DirectoryNode:
    return decode(stream.read(), codec)


def load(path: str | Path, codec: str | None = None) -> DirectoryNode:
    """Read and verify the database stored at *path*.

    Either codec is accepted; the body itself says which one it is.
    """
    with open(path, "rb") as f:
        root = read(f, codec)
    logger.debug("Loaded database %s", path)
    return root

"""Streaming content hashing for snapshot files."""

from __future__ import annotations

import base64
import hashlib
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO

SHA2 = "sha2-512/256"
BLAKE2B = "blake2b"

# Algorithm name -> zero-argument constructor of a hashlib object.
# Both produce 256-bit digests, so every encoded digest is 44 characters.
ALGORITHMS: dict[str, Callable[[], Any]] = {
    SHA2: lambda: hashlib.new("sha512_256"),
    BLAKE2B: lambda: hashlib.blake2b(digest_size=32),
}

DEFAULT_ALGORITHMS: tuple[str, ...] = (SHA2, BLAKE2B)
DEFAULT_CHUNK_SIZE = 1024 * 1024
DIGEST_LENGTH = 44
DIGEST_PATTERN = r"^[A-Za-z0-9+/]{43}=$"

_DIGEST_RE = re.compile(DIGEST_PATTERN)


def encode_digest(raw: bytes) -> str:
    """Standard padded base64; 32 raw bytes always encode to 44 characters."""
    return base64.b64encode(raw).decode("ascii")


def is_valid_digest(value: object) -> bool:
    """Check that *value* is a well-formed encoded 256-bit digest."""
    return isinstance(value, str) and _DIGEST_RE.fullmatch(value) is not None


def compute_hash(content: bytes, algorithm: str = SHA2) -> str:
    """Hash an in-memory byte string and return the encoded digest."""
    hasher = ALGORITHMS[algorithm]()
    hasher.update(content)
    return encode_digest(hasher.digest())


@dataclass(frozen=True)
class ContentMetrics:
    """Everything learned about a file's bytes in a single read pass."""

    size: int
    digests: dict[str, str] = field(default_factory=dict)
    has_nul: bool = False
    has_non_ascii: bool = False


class HashSession:
    """Accumulates digests, byte count and byte-class flags chunk by chunk."""

    def __init__(self, algorithms: Iterable[str]) -> None:
        self._hashers = {name: ALGORITHMS[name]() for name in algorithms}
        self._size = 0
        self._has_nul = False
        self._has_non_ascii = False

    def update(self, chunk: bytes) -> None:
        for hasher in self._hashers.values():
            hasher.update(chunk)
        self._size += len(chunk)
        if not self._has_nul and b"\x00" in chunk:
            self._has_nul = True
        if not self._has_non_ascii and not chunk.isascii():
            self._has_non_ascii = True

    def result(self) -> ContentMetrics:
        return ContentMetrics(
            size=self._size,
            digests={
                name: encode_digest(hasher.digest())
                for name, hasher in self._hashers.items()
            },
            has_nul=self._has_nul,
            has_non_ascii=self._has_non_ascii,
        )


class HashEngine:
    """Hashes byte streams with a configured set of algorithms.

    Streams are consumed once, in ``chunk_size`` pieces, so memory use does
    not grow with file size. Read errors from the stream propagate unchanged.
    """

    def __init__(
        self,
        algorithms: Iterable[str] = DEFAULT_ALGORITHMS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        names = tuple(dict.fromkeys(algorithms))
        if not names:
            raise ValueError("at least one hash algorithm is required")
        unknown = [n for n in names if n not in ALGORITHMS]
        if unknown:
            raise ValueError(f"unknown hash algorithm(s): {', '.join(unknown)}")
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.algorithms = names
        self.chunk_size = chunk_size

    def session(self) -> HashSession:
        return HashSession(self.algorithms)

    def hash_stream(self, stream: BinaryIO) -> ContentMetrics:
        """Read *stream* to EOF and return its metrics."""
        session = self.session()
        for chunk in iter(lambda: stream.read(self.chunk_size), b""):
            session.update(chunk)
        return session.result()

    def hash_file(self, path: Path) -> ContentMetrics:
        with open(path, "rb") as handle:
            return self.hash_stream(handle)

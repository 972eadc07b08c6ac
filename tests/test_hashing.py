"""Tests for the content hashing engine."""

from __future__ import annotations

import base64
import errno
import hashlib
import io
from pathlib import Path

import pytest

from fixity_core.hashing import (
    BLAKE2B,
    DIGEST_LENGTH,
    SHA2,
    HashEngine,
    compute_hash,
    is_valid_digest,
)


# ── Digest primitives ───────────────────────────────────────────────


def test_compute_hash_deterministic():
    """Same input always produces the same output."""
    assert compute_hash(b"hello") == compute_hash(b"hello")


def test_compute_hash_is_44_base64_chars():
    for algorithm in (SHA2, BLAKE2B):
        h = compute_hash(b"anything", algorithm)
        assert len(h) == DIGEST_LENGTH
        assert is_valid_digest(h)


def test_compute_hash_matches_hashlib():
    expected_sha = base64.b64encode(hashlib.new("sha512_256", b"abc").digest()).decode()
    expected_blake = base64.b64encode(hashlib.blake2b(b"abc", digest_size=32).digest()).decode()
    assert compute_hash(b"abc", SHA2) == expected_sha
    assert compute_hash(b"abc", BLAKE2B) == expected_blake


def test_algorithms_are_independent():
    assert compute_hash(b"abc", SHA2) != compute_hash(b"abc", BLAKE2B)


def test_is_valid_digest_rejects_malformed():
    good = compute_hash(b"x")
    assert not is_valid_digest(good[:-1])
    assert not is_valid_digest(good + "A")
    assert not is_valid_digest("!" * 43 + "=")
    assert not is_valid_digest(None)
    assert not is_valid_digest(good.encode())


# ── Streaming engine ─────────────────────────────────────────────────


def test_hash_stream_matches_whole_buffer():
    """Chunked reads give the same digests as hashing in one go."""
    content = bytes(range(256)) * 40
    engine = HashEngine(chunk_size=7)
    metrics = engine.hash_stream(io.BytesIO(content))
    assert metrics.size == len(content)
    assert metrics.digests == {
        SHA2: compute_hash(content, SHA2),
        BLAKE2B: compute_hash(content, BLAKE2B),
    }


def test_flags_detected_in_later_chunk():
    content = b"a" * 100 + b"\x00" + b"b" * 100 + b"\xc3\xa9"
    metrics = HashEngine(chunk_size=16).hash_stream(io.BytesIO(content))
    assert metrics.has_nul is True
    assert metrics.has_non_ascii is True


def test_plain_ascii_has_no_flags():
    metrics = HashEngine().hash_stream(io.BytesIO(b"just text\n"))
    assert metrics.has_nul is False
    assert metrics.has_non_ascii is False


def test_empty_stream():
    metrics = HashEngine().hash_stream(io.BytesIO(b""))
    assert metrics.size == 0
    assert metrics.digests[SHA2] == compute_hash(b"", SHA2)
    assert metrics.has_nul is False


def test_single_algorithm():
    metrics = HashEngine(algorithms=[BLAKE2B]).hash_stream(io.BytesIO(b"x"))
    assert set(metrics.digests) == {BLAKE2B}


def test_hash_file(tmp_path: Path):
    f = tmp_path / "sample.bin"
    f.write_bytes(b"hello world")
    metrics = HashEngine().hash_file(f)
    assert metrics.size == 11
    assert metrics.digests[SHA2] == compute_hash(b"hello world")


def test_read_errors_propagate():
    class BrokenStream(io.RawIOBase):
        def readable(self):
            return True

        def read(self, size=-1):
            raise OSError(errno.EIO, "Input/output error")

    with pytest.raises(OSError) as excinfo:
        HashEngine().hash_stream(BrokenStream())
    assert excinfo.value.errno == errno.EIO


# ── Engine configuration ─────────────────────────────────────────────


class TestHashEngineValidation:
    def test_unknown_algorithm(self):
        with pytest.raises(ValueError, match="unknown hash algorithm"):
            HashEngine(algorithms=["md5"])

    def test_no_algorithms(self):
        with pytest.raises(ValueError):
            HashEngine(algorithms=[])

    def test_bad_chunk_size(self):
        with pytest.raises(ValueError):
            HashEngine(chunk_size=0)

    def test_duplicates_collapsed(self):
        engine = HashEngine(algorithms=[SHA2, SHA2, BLAKE2B])
        assert engine.algorithms == (SHA2, BLAKE2B)

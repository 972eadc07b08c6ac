"""Content hashing: digest algorithms and the streaming hash engine."""

from fixity_core.hashing.engine import (
    ALGORITHMS,
    BLAKE2B,
    DEFAULT_ALGORITHMS,
    DEFAULT_CHUNK_SIZE,
    DIGEST_LENGTH,
    DIGEST_PATTERN,
    SHA2,
    ContentMetrics,
    HashEngine,
    HashSession,
    compute_hash,
    encode_digest,
    is_valid_digest,
)

__all__ = [
    "ALGORITHMS",
    "BLAKE2B",
    "DEFAULT_ALGORITHMS",
    "DEFAULT_CHUNK_SIZE",
    "DIGEST_LENGTH",
    "DIGEST_PATTERN",
    "SHA2",
    "ContentMetrics",
    "HashEngine",
    "HashSession",
    "compute_hash",
    "encode_digest",
    "is_valid_digest",
]

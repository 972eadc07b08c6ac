"""Database codec: canonical, checksum-sealed snapshot storage."""

from fixity_core.database.codec import (
    CBOR,
    CODECS,
    DATABASE_DIGEST_ALGORITHM,
    JSON,
    TRAILER_LENGTH,
    body_digest,
    check_codec,
    codec_for_path,
    decode,
    dump,
    encode,
    encode_body,
    iter_canonical,
    load,
    parse_body,
    read,
    sniff_codec,
    to_wire,
    write,
)
from fixity_core.database.schema import (
    FileRecord,
    UnreadableRecord,
    UnsupportedRecord,
    file_payload,
    leaf_payload,
)

__all__ = [
    "CBOR",
    "CODECS",
    "DATABASE_DIGEST_ALGORITHM",
    "JSON",
    "TRAILER_LENGTH",
    "FileRecord",
    "UnreadableRecord",
    "UnsupportedRecord",
    "body_digest",
    "check_codec",
    "codec_for_path",
    "decode",
    "dump",
    "encode",
    "encode_body",
    "file_payload",
    "iter_canonical",
    "leaf_payload",
    "load",
    "parse_body",
    "read",
    "sniff_codec",
    "to_wire",
    "write",
]

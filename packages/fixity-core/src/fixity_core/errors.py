"""Exception types raised by the fixity core."""

from __future__ import annotations


class FixityError(Exception):
    """Base class for all fixity errors."""


class DatabaseError(FixityError):
    """A stored database could not be loaded. No partial result is returned."""


class SchemaViolation(DatabaseError):
    """The database bytes do not match the snapshot schema."""

    def __init__(self, message: str, path: str = "") -> None:
        self.path = path
        where = f" at {path!r}" if path else ""
        super().__init__(f"schema violation{where}: {message}")


class ChecksumMismatch(DatabaseError):
    """The whole-database digest does not reproduce the stored value."""

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"database checksum mismatch: stored {expected!r}, computed {actual!r}"
        )

"""Snapshot building: walk a live directory into a snapshot tree."""

from fixity_core.snapshot.builder import (
    DEPTH_LIMIT,
    SnapshotBuilder,
    build_snapshot,
    error_kind,
    unsupported_kind,
)
from fixity_core.snapshot.models import ScanResult, ScanStats, ScanWarning

__all__ = [
    "DEPTH_LIMIT",
    "ScanResult",
    "ScanStats",
    "ScanWarning",
    "SnapshotBuilder",
    "build_snapshot",
    "error_kind",
    "unsupported_kind",
]

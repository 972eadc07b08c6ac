"""Snapshot comparison and corruption heuristics."""

from fixity_core.diff.classifier import (
    Assessment,
    Finding,
    Tier,
    classify,
    classify_all,
)
from fixity_core.diff.engine import SnapshotDiffer, diff, iter_changes
from fixity_core.diff.models import (
    Change,
    ChangeKind,
    DiffResult,
    DirectoryStats,
    FileDelta,
)

__all__ = [
    "Assessment",
    "Change",
    "ChangeKind",
    "DiffResult",
    "DirectoryStats",
    "FileDelta",
    "Finding",
    "SnapshotDiffer",
    "Tier",
    "classify",
    "classify_all",
    "diff",
    "iter_changes",
]

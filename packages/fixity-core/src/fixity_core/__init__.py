"""Fixity Core - snapshot, verify and compare directory trees for silent corruption."""

from fixity_core.audit import check_directory, compare_snapshots, scan_directory
from fixity_core.cancel import CancelToken
from fixity_core.config import FixityConfig, load_config
from fixity_core.diff import Assessment, Change, ChangeKind, Tier, classify
from fixity_core.errors import (
    ChecksumMismatch,
    DatabaseError,
    FixityError,
    SchemaViolation,
)
from fixity_core.hashing import HashEngine
from fixity_core.report import Report
from fixity_core.snapshot import ScanResult, ScanWarning, SnapshotBuilder
from fixity_core.tree import DirectoryNode, FileNode, UnreadableNode, UnsupportedNode

__version__ = "0.1.0"

__all__ = [
    "Assessment",
    "CancelToken",
    "Change",
    "ChangeKind",
    "ChecksumMismatch",
    "DatabaseError",
    "DirectoryNode",
    "FileNode",
    "FixityConfig",
    "FixityError",
    "HashEngine",
    "Report",
    "ScanResult",
    "ScanWarning",
    "SchemaViolation",
    "SnapshotBuilder",
    "Tier",
    "UnreadableNode",
    "UnsupportedNode",
    "check_directory",
    "classify",
    "compare_snapshots",
    "load_config",
    "scan_directory",
]

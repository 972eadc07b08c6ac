"""High-level operations: snapshot a tree, compare snapshots, check a tree."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from fixity_core import database
from fixity_core.cancel import CancelToken
from fixity_core.config import FixityConfig
from fixity_core.diff import SnapshotDiffer, classify_all
from fixity_core.report import Report
from fixity_core.snapshot import ScanResult, ScanWarning, build_snapshot
from fixity_core.tree import DirectoryNode

logger = logging.getLogger(__name__)


def scan_directory(
    root: str | Path,
    config: FixityConfig | None = None,
    cancel: CancelToken | None = None,
    exclude: Iterable[str | Path] = (),
) -> ScanResult:
    """Walk *root* into a snapshot."""
    return build_snapshot(root, config=config, cancel=cancel, exclude=exclude)


def compare_snapshots(
    old: DirectoryNode,
    new: DirectoryNode,
    cancel: CancelToken | None = None,
    warnings: Iterable[ScanWarning] = (),
    complete: bool = True,
) -> Report:
    """Diff two snapshots and classify every change."""
    differ = SnapshotDiffer(cancel)
    result = differ.diff(old, new)
    assessments = classify_all(result.changes)
    report = Report(
        assessments=assessments,
        directory_stats=result.directory_stats,
        warnings=tuple(warnings),
        complete=complete and result.complete,
    )
    totals = report.totals
    logger.info(
        "Compared snapshots: %d added, %d removed, %d changed, %d unchanged; worst tier %s",
        totals.added,
        totals.removed,
        totals.changed,
        totals.unchanged,
        report.worst_tier.label,
    )
    return report


def check_directory(
    database_path: str | Path,
    root: str | Path,
    config: FixityConfig | None = None,
    cancel: CancelToken | None = None,
) -> Report:
    """Compare a stored database against the live directory at *root*.

    The database is verified before anything is walked; a damaged database
    raises SchemaViolation or ChecksumMismatch and no report is produced.
    """
    stored = database.load(database_path)
    scan = scan_directory(root, config=config, cancel=cancel, exclude=[database_path])
    return compare_snapshots(
        stored,
        scan.root,
        cancel=cancel,
        warnings=scan.warnings,
        complete=scan.complete,
    )

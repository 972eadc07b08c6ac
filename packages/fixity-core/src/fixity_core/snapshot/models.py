"""Result types produced by the snapshot builder."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from fixity_core.tree import DirectoryNode

WarningKind = Literal["io_failure", "name_collision", "depth_limit"]


@dataclass(frozen=True)
class ScanWarning:
    """A non-fatal problem met while walking; the walk carried on."""

    path: str
    kind: WarningKind
    message: str


@dataclass(frozen=True)
class ScanStats:
    files: int = 0
    directories: int = 0
    bytes_read: int = 0
    elapsed: float = 0.0

    @property
    def throughput_mb_s(self) -> float:
        if self.elapsed <= 0:
            return 0.0
        return self.bytes_read / self.elapsed / 1e6


@dataclass(frozen=True)
class ScanResult:
    """A finished walk: the snapshot plus everything that went wrong on the way.

    ``complete`` is False when the walk was cancelled; the tree then holds
    only the subtrees that finished.
    """

    root: DirectoryNode
    warnings: tuple[ScanWarning, ...] = ()
    complete: bool = True
    stats: ScanStats = field(default_factory=ScanStats)

"""Builds snapshot trees by walking a directory on disk."""

from __future__ import annotations

import errno
import logging
import os
import stat
import time
import unicodedata
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Union

from fixity_core.cancel import CancelToken, is_cancelled
from fixity_core.hashing import HashEngine
from fixity_core.snapshot.models import ScanResult, ScanStats, ScanWarning
from fixity_core.tree import (
    MAX_DEPTH,
    DirectoryNode,
    FileNode,
    Node,
    UnreadableNode,
    UnsupportedNode,
    join_path,
)

if TYPE_CHECKING:
    from fixity_core.config.models import FixityConfig

logger = logging.getLogger(__name__)

_READ_FLAGS = (
    os.O_RDONLY
    | getattr(os, "O_NONBLOCK", 0)
    | getattr(os, "O_NOFOLLOW", 0)
    | getattr(os, "O_BINARY", 0)
)

# Error kind recorded for a directory deeper than MAX_DEPTH.
DEPTH_LIMIT = "depth_limit"


def error_kind(exc: OSError) -> str:
    """Stable short name for an OS error, e.g. ``EACCES``."""
    if exc.errno is not None and exc.errno in errno.errorcode:
        return errno.errorcode[exc.errno]
    return type(exc).__name__


def unsupported_kind(mode: int) -> str:
    if stat.S_ISLNK(mode):
        return "symlink"
    if stat.S_ISFIFO(mode):
        return "fifo"
    if stat.S_ISSOCK(mode):
        return "socket"
    if stat.S_ISBLK(mode):
        return "block_device"
    if stat.S_ISCHR(mode):
        return "char_device"
    return "other"


def _listdir(path: Path) -> list[os.DirEntry[str]]:
    with os.scandir(path) as it:
        return sorted(it, key=lambda e: e.name)


@dataclass
class _PendingDir:
    """A listed directory whose file scans may still be running."""

    entries: dict[str, Union[Node, Future, "_PendingDir"]] = field(default_factory=dict)
    node: DirectoryNode | None = None


@dataclass
class _WalkState:
    incomplete: bool = False
    files: int = 0
    directories: int = 0
    bytes_read: int = 0


class SnapshotBuilder:
    """Walks a directory and produces an immutable snapshot tree.

    Regular files are hashed on a thread pool; each file is read by exactly
    one worker. The tree itself is assembled on the calling thread once the
    scans finish, so no locking is needed. Per-entry IO failures become
    ``UnreadableNode`` leaves plus a warning; they never abort the walk.
    """

    def __init__(
        self,
        engine: HashEngine | None = None,
        workers: int = 4,
        ignore_patterns: Iterable[str] = (),
        exclude: Iterable[str | Path] = (),
    ) -> None:
        if workers <= 0:
            raise ValueError(f"workers must be positive, got {workers}")
        self.engine = engine or HashEngine()
        self.workers = workers
        self.ignore = frozenset(ignore_patterns)
        self.exclude = frozenset(Path(p).resolve() for p in exclude)

    @classmethod
    def from_config(
        cls, config: FixityConfig, exclude: Iterable[str | Path] = ()
    ) -> SnapshotBuilder:
        """Build a SnapshotBuilder from the given configuration."""
        engine = HashEngine(
            algorithms=config.hashing.algorithms,
            chunk_size=config.hashing.chunk_size,
        )
        return cls(
            engine,
            workers=config.scan.workers,
            ignore_patterns=config.scan.ignore_patterns,
            exclude=exclude,
        )

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self, root: str | Path, cancel: CancelToken | None = None) -> ScanResult:
        """Walk *root* and return its snapshot.

        Raises ``FileNotFoundError`` or ``NotADirectoryError`` if *root* is
        not a directory, and propagates the error if *root* itself cannot be
        listed. Everything below the root is failure tolerant.
        """
        root_path = Path(root).resolve()
        if not root_path.is_dir():
            if not root_path.exists():
                raise FileNotFoundError(errno.ENOENT, "No such directory", str(root))
            raise NotADirectoryError(errno.ENOTDIR, "Not a directory", str(root))

        logger.debug("Building snapshot of %s with %d workers", root_path, self.workers)
        tic = time.perf_counter()
        state = _WalkState()
        warnings: list[ScanWarning] = []

        with ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="fixity-scan"
        ) as pool:
            pending = self._plan(root_path, pool, cancel, state)
            tree = self._assemble(pending, warnings, state)

        if is_cancelled(cancel):
            state.incomplete = True

        stats = ScanStats(
            files=state.files,
            directories=state.directories,
            bytes_read=state.bytes_read,
            elapsed=time.perf_counter() - tic,
        )
        logger.info(
            "Snapshot of %s took %.3f seconds, read %d bytes in %d files, %.1f MB/s",
            root_path,
            stats.elapsed,
            stats.bytes_read,
            stats.files,
            stats.throughput_mb_s,
        )
        if state.incomplete:
            logger.warning("Snapshot of %s was cancelled and is incomplete", root_path)

        return ScanResult(
            root=tree,
            warnings=tuple(warnings),
            complete=not state.incomplete,
            stats=stats,
        )

    # ------------------------------------------------------------------
    # Walk
    # ------------------------------------------------------------------

    def _plan(
        self,
        root_path: Path,
        pool: ThreadPoolExecutor,
        cancel: CancelToken | None,
        state: _WalkState,
    ) -> _PendingDir:
        """List every directory under *root_path* and submit its files for hashing.

        Directories are visited from an explicit stack, so a deep tree never
        touches the interpreter's recursion limit. A directory deeper than
        ``MAX_DEPTH`` is not listed and becomes an ``UnreadableNode``.
        """
        root = _PendingDir()
        stack: list[tuple[Path, list[os.DirEntry[str]], _PendingDir, int]] = [
            (root_path, _listdir(root_path), root, 0)
        ]
        while stack:
            dirpath, listing, pending, depth = stack.pop()
            state.directories += 1
            for entry in listing:
                if is_cancelled(cancel):
                    state.incomplete = True
                    return root
                if entry.name in self.ignore:
                    continue
                full = dirpath / entry.name
                if full in self.exclude:
                    logger.debug("Excluding %s", full)
                    continue
                try:
                    mode = entry.stat(follow_symlinks=False).st_mode
                except OSError as exc:
                    pending.entries[entry.name] = UnreadableNode(error_kind(exc))
                    continue
                if stat.S_ISREG(mode):
                    pending.entries[entry.name] = pool.submit(self._scan_file, full, cancel)
                elif not stat.S_ISDIR(mode):
                    pending.entries[entry.name] = UnsupportedNode(unsupported_kind(mode))
                elif depth >= MAX_DEPTH:
                    pending.entries[entry.name] = UnreadableNode(DEPTH_LIMIT)
                else:
                    try:
                        children = _listdir(full)
                    except OSError as exc:
                        pending.entries[entry.name] = UnreadableNode(error_kind(exc))
                        continue
                    child = _PendingDir()
                    pending.entries[entry.name] = child
                    stack.append((full, children, child, depth + 1))
        return root

    def _scan_file(self, path: Path, cancel: CancelToken | None) -> Node | None:
        """Hash one file. Returns None if cancelled before it started."""
        if is_cancelled(cancel):
            return None
        try:
            fd = os.open(path, _READ_FLAGS)
        except OSError as exc:
            return UnreadableNode(error_kind(exc))
        try:
            with os.fdopen(fd, "rb") as handle:
                # The entry may have been swapped for something else since stat().
                mode = os.fstat(handle.fileno()).st_mode
                if not stat.S_ISREG(mode):
                    return UnsupportedNode(unsupported_kind(mode))
                metrics = self.engine.hash_stream(handle)
        except OSError as exc:
            return UnreadableNode(error_kind(exc))
        return FileNode(
            size=metrics.size,
            digests=metrics.digests,
            has_nul=metrics.has_nul,
            has_non_ascii=metrics.has_non_ascii,
        )

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    def _assemble(
        self,
        root: _PendingDir,
        warnings: list[ScanWarning],
        state: _WalkState,
    ) -> DirectoryNode:
        """Resolve pending scans into immutable DirectoryNodes, children first."""
        stack: list[tuple[_PendingDir, str, bool]] = [(root, "", False)]
        while stack:
            pending, relpath, expanded = stack.pop()
            if not expanded:
                stack.append((pending, relpath, True))
                for name, item in pending.entries.items():
                    if isinstance(item, _PendingDir):
                        stack.append((item, join_path(relpath, name), False))
                continue
            pending.node = self._resolve(pending, relpath, warnings, state)

        # Same order a depth-first walk in sorted name order would give.
        warnings.sort(key=lambda w: w.path.split("/"))
        if root.node is None:
            raise RuntimeError("snapshot root was never assembled")
        return root.node

    def _resolve(
        self,
        pending: _PendingDir,
        relpath: str,
        warnings: list[ScanWarning],
        state: _WalkState,
    ) -> DirectoryNode:
        children: dict[str, Node] = {}
        seen: dict[str, str] = {}
        for name, item in pending.entries.items():
            path = join_path(relpath, name)
            if isinstance(item, Future):
                node = None if item.cancelled() else item.result()
                if node is None:
                    state.incomplete = True
                    continue
            elif isinstance(item, _PendingDir):
                node = item.node
            else:
                node = item

            normalized = unicodedata.normalize("NFC", name)
            if normalized in seen:
                message = f"name collides with {seen[normalized]!r} after normalization"
                logger.warning("Skipping %s: %s", path, message)
                warnings.append(ScanWarning(path, "name_collision", message))
                continue
            seen[normalized] = name

            if isinstance(node, UnreadableNode) and node.error == DEPTH_LIMIT:
                message = f"deeper than {MAX_DEPTH} directories; not descended into"
                logger.warning("Skipping %s: %s", path, message)
                warnings.append(ScanWarning(path, "depth_limit", message))
            elif isinstance(node, UnreadableNode):
                logger.warning("Unreadable entry %s: %s", path, node.error)
                warnings.append(ScanWarning(path, "io_failure", node.error))
            elif isinstance(node, FileNode):
                state.files += 1
                state.bytes_read += node.size
            children[name] = node
        return DirectoryNode(children)


def build_snapshot(
    root: str | Path,
    config: FixityConfig | None = None,
    cancel: CancelToken | None = None,
    exclude: Iterable[str | Path] = (),
) -> ScanResult:
    """Convenience wrapper around SnapshotBuilder.build()."""
    if config is None:
        builder = SnapshotBuilder(exclude=exclude)
    else:
        builder = SnapshotBuilder.from_config(config, exclude=exclude)
    return builder.build(root, cancel=cancel)

"""Cooperative cancellation shared by long-running scans and diffs."""

from __future__ import annotations

import threading


class CancelToken:
    """Thread-safe flag checked between files and directories.

    Workers never get interrupted mid-read; they look at the token before
    starting the next unit of work and stop there.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def is_cancelled(token: CancelToken | None) -> bool:
    """True if *token* exists and has been cancelled."""
    return token is not None and token.cancelled

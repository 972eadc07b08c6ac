"""Suspicion tiers for changes: expected churn versus likely corruption.

Each rule looks at one change and may produce a finding. A change keeps
every finding that matched; its tier is the most severe of them. Changes
with no findings (ordinary edits, additions, removals) are tier ``NONE``.

=====================================================  ======
Pattern                                                Tier
=====================================================  ======
size > 0 before, size == 0 after                       HIGH
NUL byte appears, size unchanged                       HIGH
two digest algorithms disagree                         HIGH
digest mismatch, size unchanged                        MEDIUM
file became unreadable                                 MEDIUM
non-ASCII byte appears, size unchanged                 LOW
size changed, no digest on both sides                  LOW
digest coverage changed, no mismatch                   INFO
=====================================================  ======
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import IntEnum

from fixity_core.diff.models import Change, ChangeKind, FileDelta
from fixity_core.tree import FileNode, UnreadableNode


class Tier(IntEnum):
    NONE = 0
    INFO = 1
    LOW = 2
    MEDIUM = 3
    HIGH = 4

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: str | Tier) -> Tier:
        if isinstance(value, Tier):
            return value
        try:
            return cls[value.upper()]
        except KeyError:
            raise ValueError(f"Unknown suspicion tier: {value!r}") from None


@dataclass(frozen=True)
class Finding:
    tier: Tier
    code: str
    message: str


@dataclass(frozen=True)
class Assessment:
    """A change annotated with its suspicion tier and the reasons for it."""

    change: Change
    tier: Tier = Tier.NONE
    findings: tuple[Finding, ...] = ()

    @property
    def path(self) -> str:
        return self.change.path


# ------------------------------------------------------------------
# Rules
# ------------------------------------------------------------------

_DeltaRule = Callable[[FileDelta], "Finding | None"]


def _truncation(d: FileDelta) -> Finding | None:
    if d.size_before > 0 and d.size_after == 0:
        return Finding(
            Tier.HIGH, "truncated", f"file was truncated from {d.size_before} bytes to 0"
        )
    return None


def _nul_introduced(d: FileDelta) -> Finding | None:
    if d.nul_introduced and not d.size_changed:
        return Finding(
            Tier.HIGH,
            "nul_introduced",
            "file previously had no NUL bytes, but now does (size unchanged)",
        )
    return None


def _disagreement(d: FileDelta) -> Finding | None:
    if d.digest_disagreement:
        changed = ", ".join(sorted(d.changed_algorithms))
        unchanged = ", ".join(sorted(d.unchanged_algorithms))
        return Finding(
            Tier.HIGH,
            "digest_disagreement",
            f"{changed} reports changed content but {unchanged} does not",
        )
    return None


def _silent_mutation(d: FileDelta) -> Finding | None:
    if d.content_changed and not d.size_changed:
        return Finding(
            Tier.MEDIUM, "silent_mutation", "content changed but size did not"
        )
    return None


def _non_ascii_introduced(d: FileDelta) -> Finding | None:
    if d.non_ascii_introduced and not d.size_changed:
        return Finding(
            Tier.LOW,
            "non_ascii_introduced",
            "file previously had no non-ASCII bytes, but now does (size unchanged)",
        )
    return None


def _unverified_size_change(d: FileDelta) -> Finding | None:
    if d.size_changed and not d.compared_algorithms:
        return Finding(
            Tier.LOW,
            "unverified_size_change",
            f"size changed {d.size_before} -> {d.size_after} with no digest to compare",
        )
    return None


def _coverage_changed(d: FileDelta) -> Finding | None:
    if d.coverage_changed and not d.content_changed:
        parts = []
        if d.coverage_added:
            parts.append(f"added {', '.join(sorted(d.coverage_added))}")
        if d.coverage_removed:
            parts.append(f"dropped {', '.join(sorted(d.coverage_removed))}")
        return Finding(Tier.INFO, "coverage_changed", "digest coverage " + "; ".join(parts))
    return None


DELTA_RULES: tuple[_DeltaRule, ...] = (
    _truncation,
    _nul_introduced,
    _disagreement,
    _silent_mutation,
    _non_ascii_introduced,
    _unverified_size_change,
    _coverage_changed,
)


def _findings(change: Change) -> list[Finding]:
    if change.delta is not None:
        return [f for f in (rule(change.delta) for rule in DELTA_RULES) if f is not None]
    if (
        change.kind is ChangeKind.TYPE_CHANGED
        and isinstance(change.before, FileNode)
        and isinstance(change.after, UnreadableNode)
    ):
        return [
            Finding(
                Tier.MEDIUM,
                "became_unreadable",
                f"file can no longer be read ({change.after.error})",
            )
        ]
    return []


def classify(change: Change) -> Assessment:
    """Assign a suspicion tier to a single change."""
    findings = sorted(_findings(change), key=lambda f: f.tier, reverse=True)
    tier = findings[0].tier if findings else Tier.NONE
    return Assessment(change=change, tier=tier, findings=tuple(findings))


def classify_all(changes: Iterable[Change]) -> tuple[Assessment, ...]:
    return tuple(classify(c) for c in changes)

"""Annotated comparison reports."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field

from pydantic import BaseModel, Field

from fixity_core.diff import Assessment, DirectoryStats, Tier
from fixity_core.snapshot import ScanWarning
from fixity_core.tree import FileNode, node_kind


class FindingModel(BaseModel):
    tier: str
    code: str
    message: str


class ChangeModel(BaseModel):
    """One classified change, flattened for JSON output."""

    path: str
    kind: str
    tier: str
    before: str | None = None
    after: str | None = None
    size_before: int | None = None
    size_after: int | None = None
    findings: list[FindingModel] = Field(default_factory=list)


class StatsModel(BaseModel):
    added: int = 0
    removed: int = 0
    changed: int = 0
    unchanged: int = 0


class DirectoryModel(StatsModel):
    """Leaf counts under one directory present in both snapshots."""

    path: str


class WarningModel(BaseModel):
    path: str
    kind: str
    message: str


class ReportModel(BaseModel):
    """Serializable form of a Report."""

    complete: bool = True
    worst_tier: str = "none"
    totals: StatsModel = Field(default_factory=StatsModel)
    tier_counts: dict[str, int] = Field(default_factory=dict)
    directories: list[DirectoryModel] = Field(default_factory=list)
    changes: list[ChangeModel] = Field(default_factory=list)
    warnings: list[WarningModel] = Field(default_factory=list)


@dataclass(frozen=True)
class Report:
    """Classified changes between two snapshots, plus scan warnings.

    ``complete`` is False if either the scan or the diff was cancelled;
    the assessments then cover only the part that finished.
    """

    assessments: tuple[Assessment, ...] = ()
    directory_stats: Mapping[str, DirectoryStats] = field(default_factory=dict)
    warnings: tuple[ScanWarning, ...] = ()
    complete: bool = True

    @property
    def worst_tier(self) -> Tier:
        return max((a.tier for a in self.assessments), default=Tier.NONE)

    @property
    def totals(self) -> DirectoryStats:
        return self.directory_stats.get("", DirectoryStats())

    def tier_counts(self) -> dict[Tier, int]:
        counts = {tier: 0 for tier in Tier}
        for a in self.assessments:
            counts[a.tier] += 1
        return counts

    def changed_directories(self) -> list[tuple[str, DirectoryStats]]:
        """Non-root directories whose subtree changed, parents first."""
        return sorted(
            ((path, stats) for path, stats in self.directory_stats.items()
             if path and stats.has_changes),
            key=lambda item: item[0].split("/"),
        )

    def filter(self, min_tier: Tier | str) -> tuple[Assessment, ...]:
        """Assessments at or above *min_tier*."""
        floor = Tier.parse(min_tier)
        return tuple(a for a in self.assessments if a.tier >= floor)

    def to_model(self, min_tier: Tier | str = Tier.NONE) -> ReportModel:
        return ReportModel(
            complete=self.complete,
            worst_tier=self.worst_tier.label,
            totals=StatsModel(**asdict(self.totals)),
            tier_counts={t.label: n for t, n in self.tier_counts().items()},
            directories=[
                DirectoryModel(path=path, **asdict(stats))
                for path, stats in self.changed_directories()
            ],
            changes=[_change_model(a) for a in self.filter(min_tier)],
            warnings=[
                WarningModel(path=w.path, kind=w.kind, message=w.message)
                for w in self.warnings
            ],
        )


def _change_model(a: Assessment) -> ChangeModel:
    change = a.change
    before, after = change.before, change.after
    return ChangeModel(
        path=change.path,
        kind=change.kind.value,
        tier=a.tier.label,
        before=node_kind(before) if before is not None else None,
        after=node_kind(after) if after is not None else None,
        size_before=before.size if isinstance(before, FileNode) else None,
        size_after=after.size if isinstance(after, FileNode) else None,
        findings=[
            FindingModel(tier=f.tier.label, code=f.code, message=f.message)
            for f in a.findings
        ],
    )

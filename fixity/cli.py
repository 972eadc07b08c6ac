"""CLI entry point for Fixity."""

from __future__ import annotations

import signal
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich import print as rprint
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from fixity.logs import configure_logging
from fixity_core import database
from fixity_core.database import CODECS
from fixity_core.audit import check_directory, compare_snapshots, scan_directory
from fixity_core.cancel import CancelToken
from fixity_core.config import FixityConfig, load_config
from fixity_core.config.loader import DEFAULT_CONFIG_TEMPLATE, PROJECT_CONFIG
from fixity_core.diff import Assessment, Tier
from fixity_core.errors import ChecksumMismatch, SchemaViolation
from fixity_core.report import Report
from fixity_core.snapshot import ScanWarning
from fixity_core.tree import DirectoryNode, count_files, total_size

app = typer.Typer(
    name="fixity",
    help="Snapshot directory trees and detect silent data corruption between snapshots.",
)

config_app = typer.Typer(help="Manage Fixity configuration.")
app.add_typer(config_app, name="config")

EXIT_FINDINGS = 1
EXIT_INCOMPLETE = 2
EXIT_SCHEMA = 3
EXIT_CHECKSUM = 4

_TIER_STYLE = {
    Tier.HIGH: "bold red",
    Tier.MEDIUM: "yellow",
    Tier.LOW: "cyan",
    Tier.INFO: "dim",
    Tier.NONE: "dim",
}

# Global state
_config: FixityConfig | None = None


def _get_config() -> FixityConfig:
    if _config is None:
        return load_config()
    return _config


def _error(message: object) -> None:
    rprint(f"[red]Error:[/red] {escape(str(message))}")


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to fixity.yaml")
    ] = None,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        _error(e)
        raise typer.Exit(1)
    configure_logging(_config.log_level, _config.log_format)


@contextmanager
def _cancel_on_interrupt(token: CancelToken) -> Iterator[None]:
    """Turn Ctrl-C into a cooperative cancel for the duration of the block."""
    try:
        previous = signal.signal(signal.SIGINT, lambda *_: token.cancel())
    except ValueError:
        # Not on the main thread; leave signal handling alone.
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


@contextmanager
def _database_errors(path: Path) -> Iterator[None]:
    """Exit with a code specific to how loading *path* failed."""
    try:
        yield
    except SchemaViolation as e:
        rprint(f"[red]Malformed database[/red] {escape(str(path))}: {escape(str(e))}")
        raise typer.Exit(EXIT_SCHEMA)
    except ChecksumMismatch as e:
        rprint(f"[red]Database checksum mismatch[/red] {escape(str(path))}: {escape(str(e))}")
        raise typer.Exit(EXIT_CHECKSUM)
    except OSError as e:
        _error(f"cannot read {path}: {e}")
        raise typer.Exit(1)


def _load_database(path: Path) -> DirectoryNode:
    with _database_errors(path):
        return database.load(path)


def _display_warnings(warnings: tuple[ScanWarning, ...]) -> None:
    if not warnings:
        return
    table = Table(title=f"Scan Warnings ({len(warnings)})")
    table.add_column("Path", style="cyan")
    table.add_column("Kind", style="yellow")
    table.add_column("Detail")
    for w in warnings:
        table.add_row(escape(w.path), w.kind, escape(w.message))
    rprint(table)


def _describe(a: Assessment) -> str:
    if a.findings:
        return "; ".join(f.message for f in a.findings)
    delta = a.change.delta
    if delta is not None and delta.size_changed:
        return f"size {delta.size_before} -> {delta.size_after}"
    return "-"


def _display_directories(report: Report) -> None:
    changed = report.changed_directories()
    if not changed:
        return
    table = Table(title=f"Directories with changes ({len(changed)})")
    table.add_column("Directory", style="cyan")
    for column in ("Added", "Removed", "Changed", "Unchanged"):
        table.add_column(column, justify="right")
    for path, stats in changed:
        table.add_row(
            escape(path),
            str(stats.added),
            str(stats.removed),
            str(stats.changed),
            str(stats.unchanged),
        )
    rprint(table)


def _display_report(report: Report, min_tier: Tier) -> None:
    shown = report.filter(min_tier)
    table = Table(title=f"Changes ({len(shown)} of {len(report.assessments)})")
    table.add_column("Path", style="cyan")
    table.add_column("Change")
    table.add_column("Tier", justify="center")
    table.add_column("Details", style="dim")
    for a in shown:
        style = _TIER_STYLE[a.tier]
        table.add_row(
            escape(a.path),
            a.change.kind.value,
            f"[{style}]{a.tier.label}[/{style}]",
            escape(_describe(a)),
        )
    rprint(table)

    totals = report.totals
    rprint(
        f"\n[dim]Totals:[/dim] {totals.added} added, {totals.removed} removed, "
        f"{totals.changed} changed, {totals.unchanged} unchanged"
    )
    _display_directories(report)
    _display_warnings(report.warnings)

    worst = report.worst_tier
    if worst >= Tier.MEDIUM:
        rprint(f"\n[red]Suspicious changes found (worst: {worst.label}).[/red]")
    elif report.assessments:
        rprint("\n[green]No likely corruption found.[/green]")
    else:
        rprint("\n[green]No changes.[/green]")


def _finish(report: Report, fmt: str | None, min_tier: str | None, fail_on: str | None) -> None:
    cfg = _get_config()
    try:
        floor = Tier.parse(min_tier or cfg.report.min_tier)
        threshold = Tier.parse(fail_on or cfg.report.fail_on)
    except ValueError as e:
        _error(e)
        raise typer.Exit(1)

    if (fmt or cfg.report.format) == "json":
        typer.echo(report.to_model(floor).model_dump_json(indent=2))
    else:
        _display_report(report, floor)

    if not report.complete:
        rprint("[yellow]Comparison was interrupted; results are incomplete.[/yellow]")
        raise typer.Exit(EXIT_INCOMPLETE)
    if any(a.tier >= threshold for a in report.assessments):
        raise typer.Exit(EXIT_FINDINGS)


@app.command()
def snapshot(
    root: Annotated[Path, typer.Argument(help="Directory to snapshot")],
    output: Annotated[Path, typer.Option("--output", "-o", help="Database file to write")],
    codec: Annotated[
        str | None,
        typer.Option(
            "--codec", help=f"Database body: {' or '.join(CODECS)} (default: by file suffix)"
        ),
    ] = None,
) -> None:
    """Walk a directory and write a checksum-sealed database."""
    cfg = _get_config()
    try:
        codec = database.check_codec(codec or database.codec_for_path(output))
    except ValueError as e:
        _error(e)
        raise typer.Exit(1)
    token = CancelToken()
    rprint(f"[bold]Snapshotting[/bold] {escape(str(root))}...")
    with _cancel_on_interrupt(token):
        try:
            result = scan_directory(root, config=cfg, cancel=token, exclude=[output])
        except OSError as e:
            _error(e)
            raise typer.Exit(1)

    _display_warnings(result.warnings)
    if not result.complete:
        rprint("[yellow]Snapshot was interrupted; no database written.[/yellow]")
        raise typer.Exit(EXIT_INCOMPLETE)

    try:
        digest = database.dump(result.root, output, codec)
    except OSError as e:
        _error(f"cannot write {output}: {e}")
        raise typer.Exit(1)
    stats = result.stats
    rprint(Panel(
        f"[dim]Database:[/dim]   {escape(str(output))} ({codec})\n"
        f"[dim]Files:[/dim]      {stats.files}\n"
        f"[dim]Bytes:[/dim]      {stats.bytes_read}\n"
        f"[dim]Unreadable:[/dim] {sum(1 for w in result.warnings if w.kind != 'name_collision')}\n"
        f"[dim]Elapsed:[/dim]    {stats.elapsed:.2f}s ({stats.throughput_mb_s:.1f} MB/s)\n"
        f"[dim]Digest:[/dim]     {digest}",
        title="Snapshot Complete",
        border_style="green",
    ))


@app.command()
def verify(
    db: Annotated[Path, typer.Argument(help="Database file to verify")],
) -> None:
    """Check a database's schema and whole-database checksum."""
    root = _load_database(db)
    with _database_errors(db), open(db, "rb") as f:
        codec = database.sniff_codec(f.read(1))
    digest = database.body_digest(database.encode_body(root, codec))
    rprint(Panel(
        f"[dim]Database:[/dim] {escape(str(db))} ({codec})\n"
        f"[dim]Files:[/dim]    {count_files(root)}\n"
        f"[dim]Bytes:[/dim]    {total_size(root)}\n"
        f"[dim]Digest:[/dim]   {digest}",
        title="Database OK",
        border_style="green",
    ))


@app.command()
def diff(
    old: Annotated[Path, typer.Argument(help="Older database")],
    new: Annotated[Path, typer.Argument(help="Newer database")],
    format: Annotated[
        str | None, typer.Option("--format", "-f", help="Output format: table or json")
    ] = None,
    min_tier: Annotated[
        str | None, typer.Option("--min-tier", help="Hide changes below this tier")
    ] = None,
    fail_on: Annotated[
        str | None, typer.Option("--fail-on", help="Exit 1 if a change reaches this tier")
    ] = None,
) -> None:
    """Compare two databases and classify every change."""
    before = _load_database(old)
    after = _load_database(new)
    token = CancelToken()
    with _cancel_on_interrupt(token):
        report = compare_snapshots(before, after, cancel=token)
    _finish(report, format, min_tier, fail_on)


@app.command()
def check(
    db: Annotated[Path, typer.Argument(help="Database to compare against")],
    root: Annotated[Path, typer.Argument(help="Live directory to check")],
    format: Annotated[
        str | None, typer.Option("--format", "-f", help="Output format: table or json")
    ] = None,
    min_tier: Annotated[
        str | None, typer.Option("--min-tier", help="Hide changes below this tier")
    ] = None,
    fail_on: Annotated[
        str | None, typer.Option("--fail-on", help="Exit 1 if a change reaches this tier")
    ] = None,
) -> None:
    """Compare a database against the current state of a directory."""
    cfg = _get_config()
    token = CancelToken()
    with _database_errors(db), _cancel_on_interrupt(token):
        try:
            report = check_directory(db, root, config=cfg, cancel=token)
        except OSError as e:
            _error(e)
            raise typer.Exit(1)
    _finish(report, format, min_tier, fail_on)


@config_app.command("show")
def config_show() -> None:
    """Print the configuration every command would use, as YAML."""
    settings = _get_config().model_dump(mode="json")
    rprint(Syntax(yaml.safe_dump(settings, sort_keys=False), "yaml"))


@config_app.command("init")
def config_init(
    path: Annotated[Path, typer.Option("--path", help="Where to write the file")] = PROJECT_CONFIG,
    force: Annotated[bool, typer.Option("--force", help="Replace an existing file")] = False,
) -> None:
    """Write a commented fixity.yaml with every default spelled out."""
    if path.exists() and not force:
        rprint(f"[yellow]{escape(str(path))} already exists.[/yellow] Pass --force to replace it.")
        raise typer.Exit(1)
    path.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Wrote[/green] {escape(str(path))}")


if __name__ == "__main__":
    app()

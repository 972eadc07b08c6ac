"""Tests for the fixity command line."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from rich.logging import RichHandler
from typer.testing import CliRunner

from fixity.cli import app
from fixity.logs import JsonFormatter, configure_logging
from fixity_core import database
from fixity_core.database import body_digest
from fixity_core.snapshot import ScanResult
from fixity_core.tree import DirectoryNode, FileNode

runner = CliRunner()


@pytest.fixture
def quiet_config(tmp_path: Path) -> Path:
    """Config that keeps log lines out of machine-readable output."""
    path = tmp_path / "quiet.yaml"
    path.write_text("log_level: error\n")
    return path


@pytest.fixture
def snapshot_db(data_dir: Path, tmp_path: Path) -> Path:
    db = tmp_path / "data.db"
    result = runner.invoke(app, ["snapshot", str(data_dir), "-o", str(db)])
    assert result.exit_code == 0, result.output
    return db


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI reconfigures the root logger; undo that after each test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if isinstance(handler, RichHandler) or isinstance(handler.formatter, JsonFormatter):
            root.removeHandler(handler)
    root.setLevel(level)


# ── fixity snapshot ──────────────────────────────────────────────────


def test_snapshot_writes_database(snapshot_db: Path, data_dir: Path):
    root = database.load(snapshot_db)
    assert set(root.children) == {"binary.bin", "hello.txt", "sub", "utf8.txt"}


def test_snapshot_output(data_dir: Path, tmp_path: Path):
    db = tmp_path / "out.db"
    result = runner.invoke(app, ["snapshot", str(data_dir), "--output", str(db)])
    assert result.exit_code == 0
    assert "Snapshot Complete" in result.output


def test_snapshot_inside_root_excludes_itself(data_dir: Path):
    db = data_dir / "self.db"
    result = runner.invoke(app, ["snapshot", str(data_dir), "-o", str(db)])
    assert result.exit_code == 0
    assert "self.db" not in database.load(db).children


def test_snapshot_missing_root(tmp_path: Path):
    result = runner.invoke(app, ["snapshot", str(tmp_path / "nope"), "-o", str(tmp_path / "x.db")])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_snapshot_interrupted_writes_nothing(data_dir: Path, tmp_path: Path, monkeypatch):
    def cancelled_scan(root, config=None, cancel=None, exclude=()):
        return ScanResult(root=DirectoryNode({}), complete=False)

    monkeypatch.setattr("fixity.cli.scan_directory", cancelled_scan)
    db = tmp_path / "partial.db"
    result = runner.invoke(app, ["snapshot", str(data_dir), "-o", str(db)])
    assert result.exit_code == 2
    assert not db.exists()


# ── fixity verify ────────────────────────────────────────────────────


def test_verify_ok(snapshot_db: Path):
    result = runner.invoke(app, ["verify", str(snapshot_db)])
    assert result.exit_code == 0
    assert "Database OK" in result.output


def test_verify_checksum_mismatch(snapshot_db: Path):
    raw = bytearray(snapshot_db.read_bytes())
    raw[10] ^= 0xFF
    snapshot_db.write_bytes(bytes(raw))
    result = runner.invoke(app, ["verify", str(snapshot_db)])
    assert result.exit_code == 4


def test_verify_schema_violation(tmp_path: Path):
    body = b'{"Directory":{"a":{"File":{}}}}'
    db = tmp_path / "bad.db"
    db.write_bytes(body + b"\n" + body_digest(body).encode() + b"\n")
    result = runner.invoke(app, ["verify", str(db)])
    assert result.exit_code == 3


def test_verify_missing_file(tmp_path: Path):
    result = runner.invoke(app, ["verify", str(tmp_path / "nope.db")])
    assert result.exit_code == 1


# ── fixity diff ──────────────────────────────────────────────────────


def test_diff_identical(snapshot_db: Path):
    result = runner.invoke(app, ["diff", str(snapshot_db), str(snapshot_db)])
    assert result.exit_code == 0
    assert "No changes" in result.output


def test_diff_silent_mutation(snapshot_db: Path, data_dir: Path, tmp_path: Path):
    (data_dir / "hello.txt").write_bytes(b"hellO world\n")
    newer = tmp_path / "newer.db"
    runner.invoke(app, ["snapshot", str(data_dir), "-o", str(newer)])

    result = runner.invoke(app, ["diff", str(snapshot_db), str(newer)])
    assert result.exit_code == 0  # default fail_on is high
    assert "hello.txt" in result.output
    assert "medium" in result.output

    result = runner.invoke(app, ["diff", str(snapshot_db), str(newer), "--fail-on", "medium"])
    assert result.exit_code == 1


def test_diff_json(snapshot_db: Path, data_dir: Path, tmp_path: Path, quiet_config: Path):
    (data_dir / "sub" / "nested.txt").write_bytes(b"")
    newer = tmp_path / "newer.db"
    runner.invoke(app, ["snapshot", str(data_dir), "-o", str(newer)])

    result = runner.invoke(
        app,
        ["-c", str(quiet_config), "diff", str(snapshot_db), str(newer), "--format", "json"],
    )
    assert result.exit_code == 1  # truncation is high
    data = json.loads(result.stdout)
    assert data["worst_tier"] == "high"
    assert data["changes"][0]["path"] == "sub/nested.txt"
    assert data["changes"][0]["findings"][0]["code"] == "truncated"
    assert [(d["path"], d["changed"]) for d in data["directories"]] == [("sub", 1)]


def test_diff_damaged_input(snapshot_db: Path, tmp_path: Path):
    damaged = tmp_path / "damaged.db"
    damaged.write_bytes(snapshot_db.read_bytes()[:-2] + b"A\n")
    result = runner.invoke(app, ["diff", str(snapshot_db), str(damaged)])
    assert result.exit_code == 4


def test_diff_bad_tier(snapshot_db: Path):
    result = runner.invoke(app, ["diff", str(snapshot_db), str(snapshot_db), "--min-tier", "loud"])
    assert result.exit_code == 1
    assert "Unknown suspicion tier" in result.output


def test_diff_lists_changed_directories(snapshot_db: Path, data_dir: Path, tmp_path: Path):
    (data_dir / "sub" / "nested.txt").write_bytes(b"nestet\n")
    newer = tmp_path / "newer.db"
    runner.invoke(app, ["snapshot", str(data_dir), "-o", str(newer)])

    result = runner.invoke(app, ["diff", str(snapshot_db), str(newer)])
    assert "Directories with changes (1)" in result.output


def test_diff_names_that_look_like_markup(tmp_path: Path):
    old, new = tmp_path / "old.db", tmp_path / "new.db"
    database.dump(DirectoryNode({}), old)
    database.dump(DirectoryNode({"x[": DirectoryNode({"red]": FileNode(size=1)})}), new)

    result = runner.invoke(app, ["diff", str(old), str(new)])
    assert result.exception is None
    assert result.exit_code == 0
    assert "x[/red]" in result.output


def test_error_paths_that_look_like_markup():
    result = runner.invoke(app, ["verify", "[bold]nope.db"])
    assert result.exit_code == 1
    assert "[bold]nope.db" in result.output


# ── Database codecs ──────────────────────────────────────────────────


def test_snapshot_cbor_by_suffix(data_dir: Path, tmp_path: Path, snapshot_db: Path):
    db = tmp_path / "data.cbor"
    result = runner.invoke(app, ["snapshot", str(data_dir), "-o", str(db)])
    assert result.exit_code == 0
    assert database.sniff_codec(db.read_bytes()) == database.CBOR

    verified = runner.invoke(app, ["verify", str(db)])
    assert verified.exit_code == 0
    assert "(cbor)" in verified.output

    compared = runner.invoke(app, ["diff", str(snapshot_db), str(db)])
    assert compared.exit_code == 0
    assert "No changes" in compared.output


def test_snapshot_codec_option(data_dir: Path, tmp_path: Path):
    db = tmp_path / "data.db"
    result = runner.invoke(app, ["snapshot", str(data_dir), "-o", str(db), "--codec", "cbor"])
    assert result.exit_code == 0
    assert database.sniff_codec(db.read_bytes()) == database.CBOR
    assert runner.invoke(app, ["check", str(db), str(data_dir)]).exit_code == 0


def test_snapshot_unknown_codec(data_dir: Path, tmp_path: Path):
    db = tmp_path / "data.db"
    result = runner.invoke(app, ["snapshot", str(data_dir), "-o", str(db), "--codec", "xml"])
    assert result.exit_code == 1
    assert "Unknown database codec" in result.output
    assert not db.exists()


def test_verify_damaged_cbor(data_dir: Path, tmp_path: Path):
    db = tmp_path / "data.cbor"
    runner.invoke(app, ["snapshot", str(data_dir), "-o", str(db)])
    raw = bytearray(db.read_bytes())
    raw[20] ^= 0x01
    db.write_bytes(bytes(raw))
    assert runner.invoke(app, ["verify", str(db)]).exit_code == 4


# ── fixity check ─────────────────────────────────────────────────────


def test_check_clean(snapshot_db: Path, data_dir: Path):
    result = runner.invoke(app, ["check", str(snapshot_db), str(data_dir)])
    assert result.exit_code == 0


def test_check_finds_corruption(snapshot_db: Path, data_dir: Path, quiet_config: Path):
    (data_dir / "binary.bin").write_bytes(b"ab\x00ce")
    result = runner.invoke(
        app,
        [
            "-c", str(quiet_config),
            "check", str(snapshot_db), str(data_dir),
            "--format", "json", "--fail-on", "medium",
        ],
    )
    assert result.exit_code == 1
    data = json.loads(result.stdout)
    assert [c["path"] for c in data["changes"]] == ["binary.bin"]
    assert data["changes"][0]["tier"] == "medium"


def test_check_min_tier_hides_churn(snapshot_db: Path, data_dir: Path, quiet_config: Path):
    (data_dir / "new.txt").write_text("fresh")
    result = runner.invoke(
        app,
        [
            "-c", str(quiet_config),
            "check", str(snapshot_db), str(data_dir),
            "--format", "json", "--min-tier", "low",
        ],
    )
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["changes"] == []
    assert data["totals"]["added"] == 1


def test_check_damaged_database(snapshot_db: Path, data_dir: Path):
    raw = bytearray(snapshot_db.read_bytes())
    raw[3] ^= 0x20
    snapshot_db.write_bytes(bytes(raw))
    result = runner.invoke(app, ["check", str(snapshot_db), str(data_dir)])
    assert result.exit_code == 4


# ── fixity config ────────────────────────────────────────────────────


def test_config_init(isolated_config: Path):
    result = runner.invoke(app, ["config", "init"])
    assert result.exit_code == 0
    assert (isolated_config / "fixity.yaml").is_file()

    again = runner.invoke(app, ["config", "init"])
    assert again.exit_code == 1
    assert "already exists" in again.output

    forced = runner.invoke(app, ["config", "init", "--force"])
    assert forced.exit_code == 0


def test_config_show(tmp_path: Path):
    path = tmp_path / "c.yaml"
    path.write_text("scan:\n  workers: 7\n")
    result = runner.invoke(app, ["-c", str(path), "config", "show"])
    assert result.exit_code == 0
    assert "workers: 7" in result.output


def test_missing_config_file(tmp_path: Path):
    result = runner.invoke(app, ["-c", str(tmp_path / "nope.yaml"), "config", "show"])
    assert result.exit_code == 1
    assert "Config file not found" in result.output


# ── Logging setup ────────────────────────────────────────────────────


def test_json_formatter():
    record = logging.LogRecord("fixity_core.audit", logging.WARNING, __file__, 1, "hello %s", ("x",), None)
    data = json.loads(JsonFormatter().format(record))
    assert data["level"] == "warning"
    assert data["logger"] == "fixity_core.audit"
    assert data["message"] == "hello x"


def test_configure_logging_level():
    configure_logging("error", "json")
    root = logging.getLogger()
    assert root.level == logging.ERROR
    assert isinstance(root.handlers[0].formatter, JsonFormatter)

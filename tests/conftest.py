"""Shared test fixtures for Fixity."""

from pathlib import Path

import pytest

from fixity_core.config.models import FixityConfig
from fixity_core.hashing import BLAKE2B, SHA2, compute_hash
from fixity_core.tree import DirectoryNode, FileNode, UnreadableNode, UnsupportedNode


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory, monkeypatch):
    """Keep a developer's ./fixity.yaml and ~/.fixity out of every test."""
    home = tmp_path_factory.mktemp("home")
    cwd = tmp_path_factory.mktemp("cwd")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(cwd)
    return cwd


@pytest.fixture
def sample_config():
    return FixityConfig()


@pytest.fixture
def make_file():
    """Factory for FileNodes hashed the way the builder hashes real files."""

    def _make(content: bytes, algorithms=(SHA2, BLAKE2B)) -> FileNode:
        return FileNode(
            size=len(content),
            digests={a: compute_hash(content, a) for a in algorithms},
            has_nul=b"\x00" in content,
            has_non_ascii=not content.isascii(),
        )

    return _make


@pytest.fixture
def sample_tree(make_file):
    """Every node variant, a nested directory and an empty one."""
    return DirectoryNode({
        "README.md": make_file(b"# fixity\n"),
        "data": DirectoryNode({
            "a.bin": make_file(b"\x00\x01\x02" * 100),
            "b.txt": make_file("café\n".encode()),
            "empty": DirectoryNode({}),
        }),
        "link": UnsupportedNode("symlink"),
        "locked": UnreadableNode("EACCES"),
    })


@pytest.fixture
def data_dir(tmp_path) -> Path:
    """A small directory on disk with text, binary and nested content."""
    root = tmp_path / "data"
    root.mkdir()
    (root / "hello.txt").write_bytes(b"hello world\n")
    (root / "binary.bin").write_bytes(b"ab\x00cd")
    (root / "utf8.txt").write_bytes("naïve\n".encode())
    (root / "sub").mkdir()
    (root / "sub" / "nested.txt").write_bytes(b"nested\n")
    (root / "sub" / "empty").mkdir()
    return root

"""Locate, read and validate fixity.yaml."""

from __future__ import annotations

import os
import re
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import FixityConfig

PROJECT_CONFIG = Path("fixity.yaml")
USER_CONFIG = Path(".fixity") / "config.yaml"

_ENV_REF = re.compile(r"\$\{(\w+)\}")


def _candidates(cli_path: str | None) -> Iterator[Path]:
    """Config files in priority order: CLI, project-local, user-global."""
    if cli_path:
        explicit = Path(cli_path)
        if not explicit.exists():
            raise ValueError(f"Config file not found: {cli_path}")
        yield explicit
    yield PROJECT_CONFIG
    yield Path.home() / USER_CONFIG


def _read(path: Path) -> dict[str, Any] | None:
    """Parse one YAML file. Returns None for an empty file."""
    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid config in {path}: expected a mapping")
    return raw


def load_config(cli_path: str | None = None) -> FixityConfig:
    """Load the first non-empty config file found, or the defaults.

    ``${VAR}`` references in string values are replaced from the
    environment before validation.
    """
    for path in _candidates(cli_path):
        if not path.is_file():
            continue
        raw = _read(path)
        if raw is None:
            continue
        try:
            return FixityConfig.model_validate(_expand_env_vars(raw))
        except ValidationError as e:
            raise ValueError(f"Invalid config in {path}: {e}") from e
    return FixityConfig()


def _expand_env_vars(obj: Any) -> Any:
    if isinstance(obj, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), obj)
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


# Default YAML template for `fixity config init`
DEFAULT_CONFIG_TEMPLATE = """\
# fixity.yaml

# Content hashing
hashing:
  algorithms:                  # sha2-512/256 | blake2b (two independent families)
    - "sha2-512/256"
    - "blake2b"
  chunk_size: 1048576          # bytes read per chunk

# Directory walk
scan:
  workers: 4                   # parallel file hashing threads
  ignore_patterns: []          # entry names to skip, e.g. [".git", "node_modules"]

# Reporting
report:
  min_tier: "none"             # none | info | low | medium | high
  format: "table"              # table | json
  fail_on: "high"              # exit 1 when a finding reaches this tier

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""

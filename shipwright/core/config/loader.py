"""
Workspace loading — shipwright.yml on disk → validated ``Workspace``.

The file is looked up from the current directory towards the filesystem
root unless ``--config`` names it. Everything that goes wrong on the way
(missing file, bad YAML, schema errors, duplicate names) surfaces as a
single ``ConfigError`` so the CLI has one thing to catch.
"""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from shipwright.core.errors import ShipwrightError
from shipwright.core.models.workspace import Workspace

logger = logging.getLogger(__name__)

WORKSPACE_CONFIG_FILE = "shipwright.yml"
STATE_DIR = ".shipwright"


class ConfigError(ShipwrightError):
    """Workspace configuration is missing or unusable."""


def find_workspace_file(start_dir: Path | None = None) -> Path | None:
    """Closest shipwright.yml at or above ``start_dir`` (default: cwd)."""
    start = (start_dir or Path.cwd()).resolve()
    for directory in (start, *start.parents):
        candidate = directory / WORKSPACE_CONFIG_FILE
        if candidate.is_file():
            return candidate
    return None


def resolve_workspace_file(path: Path | None = None) -> Path:
    """``path`` itself, or the nearest shipwright.yml when it is None.

    Raises:
        ConfigError: No workspace file above the current directory.
    """
    found = path or find_workspace_file()
    if found is None:
        raise ConfigError(
            f"No {WORKSPACE_CONFIG_FILE} found. "
            "Run from inside a workspace, or specify --config."
        )
    return found


def load_workspace(path: Path | None = None) -> Workspace:
    """Read, parse and validate a workspace file.

    Raises:
        ConfigError: No file could be found, or its content is invalid.
    """
    path = resolve_workspace_file(path)
    data = _read_mapping(path)
    try:
        workspace = Workspace.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid workspace configuration: {e}") from e

    _reject_duplicates("environment", [e.name for e in workspace.environments], path)
    _reject_duplicates("workload", [w.name for w in workspace.workloads], path)
    _reject_duplicates("pipeline", [p.name for p in workspace.pipelines], path)

    logger.info(
        "Workspace %s: application %s, %d workload(s), %d environment(s), %d pipeline(s)",
        path, workspace.application,
        len(workspace.workloads), len(workspace.environments), len(workspace.pipelines),
    )
    return workspace


def _read_mapping(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    logger.debug("Reading %s", path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def _reject_duplicates(kind: str, names: list[str], path: Path) -> None:
    repeated = [name for name, count in Counter(names).items() if count > 1]
    if repeated:
        raise ConfigError(f"Duplicate {kind} '{repeated[0]}' in {path}")


def workspace_root(config_path: Path) -> Path:
    return config_path.parent.resolve()


def state_dir(root: Path) -> Path:
    """Where the local control plane and artifact store keep their files."""
    return root / STATE_DIR

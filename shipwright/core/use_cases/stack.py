"""
Stack use cases — inspect and manually roll back local stacks.

Rollback is the recovery path for deploys run with ``--no-rollback``:
the failed configuration is left in place for debugging, and this
restores the last good one (or removes a stack that never got created).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from shipwright.adapters.local.control_plane import LocalControlPlane, StackRecord
from shipwright.core.config.loader import load_workspace, resolve_workspace_file, state_dir, workspace_root
from shipwright.core.errors import ShipwrightError

logger = logging.getLogger(__name__)


def _control_plane(config_path: Path | None) -> LocalControlPlane:
    config_path = resolve_workspace_file(config_path)
    load_workspace(config_path)  # fail early on an invalid workspace
    return LocalControlPlane(state_dir(workspace_root(config_path)))


def _summary(record: StackRecord) -> dict:
    return {
        "stack": record.stack_name,
        "status": record.status,
        "version": record.current.version,
        "deployments": record.deployments,
        "updated_at": record.updated_at,
        "can_roll_back": record.previous is not None or record.failed,
        "tags": dict(record.tags),
    }


@dataclass
class StackStatusResult:
    stacks: list[StackRecord] = field(default_factory=list)
    error: ShipwrightError | None = None

    def to_dict(self) -> dict:
        if self.error is not None:
            return {"error": str(self.error)}
        return {"stacks": [_summary(r) for r in self.stacks]}


@dataclass
class StackRollbackResult:
    stack_name: str = ""
    record: StackRecord | None = None
    deleted: bool = False
    error: ShipwrightError | None = None

    def to_dict(self) -> dict:
        if self.error is not None:
            return {"error": str(self.error)}
        result: dict = {"stack": self.stack_name, "deleted": self.deleted}
        if self.record is not None:
            result.update(_summary(self.record))
        return result


def stack_status(config_path: Path | None = None, stack_name: str | None = None) -> StackStatusResult:
    """Records of one stack, or of every stack when no name is given."""
    result = StackStatusResult()
    try:
        plane = _control_plane(config_path)
        result.stacks = [plane.get(stack_name)] if stack_name else plane.list_records()
    except ShipwrightError as e:
        result.error = e
    return result


def stack_rollback(stack_name: str, config_path: Path | None = None) -> StackRollbackResult:
    """Restore a stack's last good configuration."""
    result = StackRollbackResult(stack_name=stack_name)
    try:
        plane = _control_plane(config_path)
        result.record = plane.rollback(stack_name)
        result.deleted = result.record is None
    except ShipwrightError as e:
        logger.debug("Rollback of %s failed: %s", stack_name, e)
        result.error = e
    return result

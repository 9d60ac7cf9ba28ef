"""
Local control plane — file-backed stacks for running without a cloud.

Each stack is one JSON record in ``.shipwright/stacks/<stack>.json``.
Writes are atomic (write to temp file, then rename) so an interrupted
process never leaves a half-written record behind.

Behaves like a real control plane where the deploy engine can tell:

    - missing stacks raise StackNotFoundError
    - creating an existing stack raises StackAlreadyExistsError
    - an update identical to what is deployed raises ChangeSetEmptyError
    - a template without a ``Resources`` mapping fails to apply
    - Ctrl-C while applying deletes a half-created stack or restores the
      previous record, then raises the matching interrupt signal

A failed apply is rolled back unless ``disable_rollback`` is set, in
which case the failed record stays until ``rollback()`` is called.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from yaml.nodes import MappingNode, ScalarNode

from shipwright.adapters.base import DeployedPipeline, DeployedPipelineLister, StackDeployer
from shipwright.core.errors import (
    ChangeSetEmptyError,
    StackAlreadyExistsError,
    StackDeletedOnInterruptError,
    StackNotFoundError,
    StackRolledBackOnInterruptError,
    TransportError,
    ValidationError,
)
from shipwright.core.models.outcome import StackOptions
from shipwright.core.models.target import ProposedChange

logger = logging.getLogger(__name__)

STACKS_DIR = "stacks"

_STACK_NAME = re.compile(r"^[A-Za-z][-A-Za-z0-9]{0,127}$")

# Stack statuses
CREATE_COMPLETE = "CREATE_COMPLETE"
CREATE_FAILED = "CREATE_FAILED"
UPDATE_COMPLETE = "UPDATE_COMPLETE"
UPDATE_FAILED = "UPDATE_FAILED"
UPDATE_ROLLBACK_COMPLETE = "UPDATE_ROLLBACK_COMPLETE"

_FAILED_STATUSES = (CREATE_FAILED, UPDATE_FAILED)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StackSnapshot(BaseModel):
    """One applied configuration of a stack."""

    template: str
    parameters: str = ""
    version: str | None = None
    artifact_references: dict[str, str] = Field(default_factory=dict)


class StackRecord(BaseModel):
    """Everything the local control plane stores for one stack."""

    stack_name: str
    status: str = CREATE_COMPLETE
    current: StackSnapshot
    previous: StackSnapshot | None = None
    tags: dict[str, str] = Field(default_factory=dict)
    disable_rollback: bool = False
    deployments: int = 1
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)

    @property
    def failed(self) -> bool:
        return self.status in _FAILED_STATUSES

    def touch(self) -> None:
        self.updated_at = _now()


# ── Template metadata ───────────────────────────────────────────


def _metadata(template: str) -> dict[str, ScalarNode | MappingNode]:
    # compose() tolerates intrinsic-function tags that safe_load() rejects.
    try:
        root = yaml.compose(template, Loader=yaml.SafeLoader)
    except yaml.YAMLError as e:
        raise ValidationError(f"template is not valid YAML: {e}") from e
    if not isinstance(root, MappingNode):
        raise ValidationError("template must be a YAML mapping")
    sections = {k.value: v for k, v in root.value if isinstance(k, ScalarNode)}
    if not isinstance(sections.get("Resources"), MappingNode):
        raise ValidationError("template has no Resources section")
    metadata = sections.get("Metadata")
    if not isinstance(metadata, MappingNode):
        return {}
    return {k.value: v for k, v in metadata.value if isinstance(k, ScalarNode)}


def _snapshot(change: ProposedChange) -> tuple[StackSnapshot, dict[str, str]]:
    metadata = _metadata(change.template)
    version = metadata.get("Version")
    tags_node = metadata.get("Tags")
    tags: dict[str, str] = {}
    if isinstance(tags_node, MappingNode):
        tags = {k.value: v.value for k, v in tags_node.value if isinstance(v, ScalarNode)}
    snapshot = StackSnapshot(
        template=change.template,
        parameters=change.parameters,
        version=version.value if isinstance(version, ScalarNode) else None,
        artifact_references=dict(change.artifact_references),
    )
    return snapshot, tags


# ═══════════════════════════════════════════════════════════════════
#  Control plane
# ═══════════════════════════════════════════════════════════════════


class LocalControlPlane(StackDeployer, DeployedPipelineLister):
    """Stacks stored as JSON files under ``<state_dir>/stacks``."""

    def __init__(self, state_dir: Path):
        self._dir = state_dir / STACKS_DIR

    # ── Records ─────────────────────────────────────────────────

    def _path(self, stack_name: str) -> Path:
        if not _STACK_NAME.match(stack_name):
            raise ValidationError(f"invalid stack name {stack_name!r}")
        return self._dir / f"{stack_name}.json"

    def _read(self, path: Path) -> StackRecord:
        try:
            return StackRecord.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError) as e:
            raise TransportError(f"read stack record {path.name}: {e}") from e

    def get(self, stack_name: str) -> StackRecord:
        path = self._path(stack_name)
        if not path.is_file():
            raise StackNotFoundError(stack_name)
        return self._read(path)

    def _write(self, record: StackRecord) -> None:
        """Save a record (atomic write)."""
        path = self._path(record.stack_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(record.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"

        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".stack_", suffix=".tmp")
        os.close(fd)
        tmp = Path(tmp_path)
        try:
            tmp.write_text(content, encoding="utf-8")
            tmp.replace(path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        logger.debug("Stack record saved to %s", path)

    def _delete(self, stack_name: str) -> None:
        self._path(stack_name).unlink(missing_ok=True)
        logger.debug("Stack record %s deleted", stack_name)

    def list_records(self) -> list[StackRecord]:
        if not self._dir.is_dir():
            return []
        return [self._read(p) for p in sorted(self._dir.glob("*.json"))]

    # ── StackDeployer ───────────────────────────────────────────

    def exists(self, stack_name: str) -> bool:
        return self._path(stack_name).is_file()

    def template(self, stack_name: str) -> str:
        return self.get(stack_name).current.template

    def version(self, stack_name: str) -> str:
        # Empty for stacks written before versions were recorded; the
        # version gate sorts it below every real version.
        return self.get(stack_name).current.version or ""

    def create(self, stack_name: str, change: ProposedChange, options: StackOptions) -> None:
        if self.exists(stack_name):
            raise StackAlreadyExistsError(stack_name)
        try:
            snapshot, tags = _snapshot(change)
        except ValidationError:
            if options.disable_rollback:
                self._write(StackRecord(
                    stack_name=stack_name,
                    status=CREATE_FAILED,
                    current=StackSnapshot(template=change.template, parameters=change.parameters),
                    disable_rollback=True,
                ))
            raise

        record = StackRecord(
            stack_name=stack_name,
            current=snapshot,
            tags=tags,
            disable_rollback=options.disable_rollback,
        )
        try:
            self._write(record)
        except KeyboardInterrupt:
            self._delete(stack_name)
            raise StackDeletedOnInterruptError(stack_name) from None
        logger.info("Created stack %s", stack_name)

    def update(self, stack_name: str, change: ProposedChange, options: StackOptions) -> None:
        record = self.get(stack_name)
        if (
            not record.failed
            and record.current.template == change.template
            and record.current.parameters == change.parameters
        ):
            raise ChangeSetEmptyError(stack_name)

        try:
            snapshot, tags = _snapshot(change)
        except ValidationError:
            if options.disable_rollback:
                failed = record.model_copy(deep=True)
                if not record.failed:
                    failed.previous = record.current
                failed.current = StackSnapshot(template=change.template, parameters=change.parameters)
                failed.status = UPDATE_FAILED
                failed.disable_rollback = True
                failed.touch()
                self._write(failed)
            raise

        updated = record.model_copy(deep=True)
        if not record.failed:
            updated.previous = record.current
        updated.current = snapshot
        updated.tags = tags or record.tags
        updated.status = UPDATE_COMPLETE
        updated.disable_rollback = options.disable_rollback
        updated.deployments += 1
        updated.touch()
        try:
            self._write(updated)
        except KeyboardInterrupt:
            self._write(record)
            raise StackRolledBackOnInterruptError(stack_name) from None
        logger.info("Updated stack %s", stack_name)

    def force_update(self, stack_name: str) -> bool:
        record = self.get(stack_name)
        record.deployments += 1
        record.touch()
        self._write(record)
        logger.info("Forced a new deployment of stack %s", stack_name)
        return True

    # ── Manual recovery ─────────────────────────────────────────

    def rollback(self, stack_name: str) -> StackRecord | None:
        """Roll a stack back to its last good configuration.

        A stack that failed on create has nothing to go back to and is
        deleted; returns None in that case.

        Raises:
            StackNotFoundError: No such stack.
            ValidationError: Nothing to roll back to.
        """
        record = self.get(stack_name)
        if record.status == CREATE_FAILED:
            self._delete(stack_name)
            logger.info("Deleted stack %s that failed to create", stack_name)
            return None
        if record.previous is None:
            raise ValidationError(f"stack {stack_name} has no previous configuration to roll back to")

        record.current, record.previous = record.previous, None
        record.status = UPDATE_ROLLBACK_COMPLETE
        record.touch()
        self._write(record)
        logger.info("Rolled back stack %s", stack_name)
        return record

    # ── DeployedPipelineLister ──────────────────────────────────

    def list_deployed_pipelines(self, app: str) -> list[DeployedPipeline]:
        pipelines = []
        for record in self.list_records():
            if record.tags.get("shipwright-kind") != "pipeline":
                continue
            if record.tags.get("shipwright-application") != app:
                continue
            name = record.tags.get("shipwright-name", record.stack_name)
            pipelines.append(DeployedPipeline(
                app=app,
                resource_name=record.stack_name,
                name=name,
                is_legacy=record.stack_name == name,
            ))
        return pipelines

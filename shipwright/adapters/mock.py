"""
Mock adapters — recording test doubles for every collaborator contract.

Used by the test suite to drive the deploy engine without touching the
file system. Each mock records the calls it receives and can be told
to fail a specific operation with a specific exception.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shipwright.adapters.base import (
    ArtifactStep,
    DeployedPipeline,
    DeployedPipelineLister,
    Prompter,
    StackDeployer,
)
from shipwright.core.errors import StackNotFoundError
from shipwright.core.models.outcome import StackOptions
from shipwright.core.models.target import ProposedChange

if TYPE_CHECKING:
    from shipwright.core.engine.artifacts import UploadArtifactsOutput


class MockStackDeployer(StackDeployer, DeployedPipelineLister):
    """In-memory control plane.

    By default every operation succeeds. ``set_failure(op, exc)`` makes
    ``op`` ("exists", "template", "version", "create", "update",
    "force_update", "list") raise ``exc`` instead.
    """

    def __init__(
        self,
        templates: dict[str, str] | None = None,
        versions: dict[str, str] | None = None,
        pipelines: list[DeployedPipeline] | None = None,
        supports_force_update: bool = True,
    ):
        self.templates: dict[str, str] = dict(templates or {})
        self.versions: dict[str, str] = dict(versions or {})
        self.pipelines = list(pipelines or [])
        self._supports_force_update = supports_force_update
        self._failures: dict[str, BaseException] = {}
        self._call_log: list[tuple[str, str]] = []

    @property
    def call_log(self) -> list[tuple[str, str]]:
        """``(operation, stack_name)`` for every call received."""
        return self._call_log

    def calls(self, op: str) -> list[str]:
        """Stack names ``op`` was called with, in order."""
        return [name for called, name in self._call_log if called == op]

    def set_failure(self, op: str, exc: BaseException) -> None:
        self._failures[op] = exc

    def _record(self, op: str, stack_name: str) -> None:
        self._call_log.append((op, stack_name))
        if op in self._failures:
            raise self._failures[op]

    def exists(self, stack_name: str) -> bool:
        self._record("exists", stack_name)
        return stack_name in self.templates

    def template(self, stack_name: str) -> str:
        self._record("template", stack_name)
        if stack_name not in self.templates:
            raise StackNotFoundError(stack_name)
        return self.templates[stack_name]

    def version(self, stack_name: str) -> str:
        self._record("version", stack_name)
        if stack_name not in self.templates and stack_name not in self.versions:
            raise StackNotFoundError(stack_name)
        return self.versions.get(stack_name, "")

    def create(self, stack_name: str, change: ProposedChange, options: StackOptions) -> None:
        self._record("create", stack_name)
        self.templates[stack_name] = change.template

    def update(self, stack_name: str, change: ProposedChange, options: StackOptions) -> None:
        self._record("update", stack_name)
        self.templates[stack_name] = change.template

    def force_update(self, stack_name: str) -> bool:
        self._record("force_update", stack_name)
        return self._supports_force_update

    def list_deployed_pipelines(self, app: str) -> list[DeployedPipeline]:
        self._record("list", app)
        return [p for p in self.pipelines if p.app == app]


class MockPrompter(Prompter):
    """Answers every question with ``answer``, or raises ``error``."""

    def __init__(self, answer: bool = True, error: Exception | None = None):
        self._answer = answer
        self._error = error
        self.messages: list[str] = []

    @property
    def call_count(self) -> int:
        return len(self.messages)

    def confirm(self, message: str, default: bool = False) -> bool:
        self.messages.append(message)
        if self._error is not None:
            raise self._error
        return self._answer


class MockArtifactStep(ArtifactStep):
    """Records one image digest, or raises ``error``."""

    def __init__(self, container: str = "web", digest: str = "sha256:mock", error: Exception | None = None):
        self._container = container
        self._digest = digest
        self._error = error
        self.call_count = 0

    def upload(self, out: UploadArtifactsOutput) -> None:
        self.call_count += 1
        if self._error is not None:
            raise self._error
        out.image_digests[self._container] = self._digest

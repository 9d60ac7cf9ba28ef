"""
Deployment target models — what a single deploy run is aimed at.

A run starts by fixing its DeploymentTarget, renders one ProposedChange,
and derives a DiffResult from it. None of these outlive the process: the
control plane is the system of record.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ComponentKind = Literal["application", "environment", "workload", "pipeline"]


class DeploymentTarget(BaseModel):
    """Identifies exactly one deployable stack.

    ``env`` is None for application- and pipeline-scoped stacks.
    """

    model_config = ConfigDict(frozen=True)

    app: str
    name: str
    kind: ComponentKind = "workload"
    env: str | None = None

    def describe(self) -> str:
        """Human-readable ``"<kind> <name>"`` used in wrapped error messages."""
        return f"{self.kind} {self.name}"


class ProposedChange(BaseModel):
    """A rendered template plus everything it references."""

    model_config = ConfigDict(frozen=True)

    template: str
    parameters: str = ""
    artifact_references: dict[str, str] = Field(default_factory=dict)


class DiffResult(BaseModel):
    """Preview of the change between the live and the candidate template."""

    has_changes: bool
    rendered: str = ""

    def render(self) -> str:
        if not self.has_changes:
            return "No changes.\n"
        return self.rendered


class VersionConstraint(BaseModel):
    """Inputs to the downgrade gate.

    When ``deployed_version`` is None the stack is fresh and nothing is checked.
    """

    candidate_version: str
    deployed_version: str | None = None
    allow_downgrade: bool = False

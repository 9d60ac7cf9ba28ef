"""
Apply outcome models — the result contract of the lifecycle controller.

The controller never prints and never makes callers inspect exception
types to learn what happened. It returns an ApplyResult carrying one
ApplyOutcome from a closed set, plus typed Notices that the CLI layer
decides how to render.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel

from shipwright.core.errors import ShipwrightError
from shipwright.core.models.target import DeploymentTarget


class ApplyOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DECLINED = "declined"
    NO_CHANGE = "no_change"
    INTERRUPTED_CREATE = "interrupted_create"
    INTERRUPTED_UPDATE = "interrupted_update"
    FAILED = "failed"


class NoticeKind(str, Enum):
    ACTION_REQUIRED = "action_required"
    ROLLED_BACK = "rolled_back"
    DELETED_ON_INTERRUPT = "deleted_on_interrupt"
    NO_CHANGES = "no_changes"
    FORCE_UPDATE_HINT = "force_update_hint"
    ROLLBACK_DISABLED = "rollback_disabled"


class Notice(BaseModel):
    """Something the user should see, emitted mid-flow by the engine."""

    kind: NoticeKind
    message: str


class StackOptions(BaseModel):
    """Per-run switches that change how a stack is applied."""

    disable_rollback: bool = False
    detach: bool = False
    force_new_update: bool = False


@dataclass
class ApplyResult:
    """Result of applying a ProposedChange to one stack."""

    outcome: ApplyOutcome
    target: DeploymentTarget
    stack_name: str = ""
    notices: list[Notice] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    error: ShipwrightError | None = None
    detached: bool = False

    @property
    def ok(self) -> bool:
        """Everything except FAILED is a non-error outcome."""
        return self.outcome != ApplyOutcome.FAILED

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def notice(self, kind: NoticeKind, message: str) -> None:
        self.notices.append(Notice(kind=kind, message=message))

    def to_dict(self) -> dict:
        result: dict = {
            "outcome": self.outcome.value,
            "stack": self.stack_name,
            "target": self.target.model_dump(mode="json"),
            "detached": self.detached,
            "notices": [n.model_dump(mode="json") for n in self.notices],
            "recommendations": list(self.recommendations),
        }
        if self.error is not None:
            result["error"] = str(self.error)
        return result

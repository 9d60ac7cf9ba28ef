"""
Adapter base — the contracts between the deploy engine and the outside.

The engine never talks to the control plane, the artifact store, the
template renderer or the terminal directly. It is handed objects that
implement these interfaces, and only calls what is declared here.

Error contract for control-plane adapters:
    - StackNotFoundError when the stack does not exist (template and
      version lookups), distinct from every other failure.
    - StackAlreadyExistsError / ChangeSetEmptyError from create/update
      when the platform reports those conditions.
    - StackDeletedOnInterruptError / StackRolledBackOnInterruptError
      when an apply was interrupted and the platform cleaned up.
    - Anything else propagates as-is; the engine wraps it with context.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from pydantic import BaseModel

from shipwright.core.models.outcome import StackOptions

if TYPE_CHECKING:
    from shipwright.core.engine.artifacts import UploadArtifactsOutput
    from shipwright.core.models.target import DeploymentTarget, ProposedChange
    from shipwright.core.models.workspace import Environment


class DeployedPipeline(BaseModel):
    """A pipeline the control plane knows about."""

    app: str
    resource_name: str
    name: str
    is_legacy: bool = False


class TemplateFetcher(ABC):
    @abstractmethod
    def template(self, stack_name: str) -> str:
        """Return the live template of a stack."""


class VersionGetter(ABC):
    @abstractmethod
    def version(self, stack_name: str) -> str:
        """Return the template version recorded in a stack's metadata."""


class StackDeployer(TemplateFetcher, VersionGetter):
    """The control plane: probe, create and update stacks."""

    @abstractmethod
    def exists(self, stack_name: str) -> bool:
        """Whether a stack with this name is deployed."""

    @abstractmethod
    def create(self, stack_name: str, change: ProposedChange, options: StackOptions) -> None:
        """Create a stack. With ``options.detach`` return once it started."""

    @abstractmethod
    def update(self, stack_name: str, change: ProposedChange, options: StackOptions) -> None:
        """Update a stack. With ``options.detach`` return once it started."""

    def force_update(self, stack_name: str) -> bool:
        """Redeploy a stack's workload without template changes.

        Returns False when the platform has no such operation.
        """
        return False


class DeployedPipelineLister(ABC):
    @abstractmethod
    def list_deployed_pipelines(self, app: str) -> list[DeployedPipeline]:
        """All pipelines deployed for an application."""


class EnvironmentStore(ABC):
    @abstractmethod
    def get_environment(self, app: str, name: str) -> Environment:
        """Look up an environment; raises NotFoundError when missing."""


class ConnectionLookup(ABC):
    @abstractmethod
    def connection_arn(self, connection_name: str) -> str:
        """Resolve a named repository connection to its ARN."""


class Prompter(ABC):
    @abstractmethod
    def confirm(self, message: str, default: bool = False) -> bool:
        """Ask a yes/no question and block until answered."""


class TemplateRenderer(ABC):
    @abstractmethod
    def render(
        self,
        target: DeploymentTarget,
        config: dict,
        artifacts: UploadArtifactsOutput,
        version: str,
    ) -> ProposedChange:
        """Turn a resolved configuration into a template and parameters."""


class ArtifactStep(ABC):
    """One upload step of the artifact coordinator."""

    @abstractmethod
    def upload(self, out: UploadArtifactsOutput) -> None:
        """Upload this step's artifacts and record references on ``out``."""

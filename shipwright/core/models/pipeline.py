"""
Pipeline models — sources, declared stages and resolved stages.

A pipeline manifest declares a source repository and an ordered list of
stages, one per environment. The stage resolver binds each declared
stage to a concrete environment; the resulting PipelineStage list is
what the pipeline template is rendered from. Stage order is the
deployment order downstream and must never be shuffled.
"""

from __future__ import annotations

import re
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from shipwright.core.errors import ValidationError

DEFAULT_BRANCH = "main"
STAGE_FULL_NAME_PREFIX = "DeployTo-"
DEFAULT_ARTIFACTS_DIR = "infrastructure"

_GITHUB_REPO = re.compile(r"(https://github\.com/|)(?P<owner>.+)/(?P<repo>.+)")
_CODECOMMIT_REPO = re.compile(
    r"(https://(?P<region>.+)\.console\.aws\.amazon\.com/codesuite/codecommit/repositories/(?P<repo>.+)(/browse))"
)
_BITBUCKET_REPO = re.compile(r"(https://bitbucket\.org/)(?P<owner>.+)/(?P<repo>.+)")

# Connection names are capped at 32 characters by the platform.
_MAX_OWNER_LENGTH = 5
_MAX_REPO_LENGTH = 18


def _match(pattern: re.Pattern[str], url: str) -> dict[str, str]:
    if not url:
        raise ValidationError("unable to locate the repository")
    m = pattern.search(url)
    if m is None:
        raise ValidationError(f"unable to parse the repository from the URL {url}")
    return m.groupdict()


def connection_name(owner: str, repo: str) -> str:
    """Recognizable name for a repository connection."""
    return f"shipwright-{owner[:_MAX_OWNER_LENGTH]}-{repo[:_MAX_REPO_LENGTH]}"


# ═══════════════════════════════════════════════════════════════════
#  Sources
# ═══════════════════════════════════════════════════════════════════


class GitHubV1Source(BaseModel):
    """GitHub source authenticated with a personal access token secret."""

    provider: Literal["GitHubV1"] = "GitHubV1"
    repository_url: str
    branch: str = DEFAULT_BRANCH
    access_token_secret: str

    def owner(self) -> str:
        return _match(_GITHUB_REPO, self.repository_url)["owner"]

    def repository(self) -> str:
        return _match(_GITHUB_REPO, self.repository_url)["repo"]


class GitHubSource(BaseModel):
    """GitHub source authenticated through a repository connection."""

    provider: Literal["GitHub"] = "GitHub"
    repository_url: str
    branch: str = DEFAULT_BRANCH
    connection_arn: str = ""
    output_artifact_format: str = ""

    def owner(self) -> str:
        return _match(_GITHUB_REPO, self.repository_url)["owner"]

    def repository(self) -> str:
        parts = _match(_GITHUB_REPO, self.repository_url)
        return f"{parts['owner']}/{parts['repo']}"

    def connection_name(self) -> str:
        parts = _match(_GITHUB_REPO, self.repository_url)
        return connection_name(parts["owner"], parts["repo"])


class CodeCommitSource(BaseModel):
    provider: Literal["CodeCommit"] = "CodeCommit"
    repository_url: str
    branch: str = DEFAULT_BRANCH
    output_artifact_format: str = ""

    def repository(self) -> str:
        return _match(_CODECOMMIT_REPO, self.repository_url)["repo"]


class BitbucketSource(BaseModel):
    provider: Literal["Bitbucket"] = "Bitbucket"
    repository_url: str
    branch: str = DEFAULT_BRANCH
    connection_arn: str = ""
    output_artifact_format: str = ""

    def repository(self) -> str:
        parts = _match(_BITBUCKET_REPO, self.repository_url)
        return f"{parts['owner']}/{parts['repo']}"

    def connection_name(self) -> str:
        parts = _match(_BITBUCKET_REPO, self.repository_url)
        return connection_name(parts["owner"], parts["repo"])


PipelineSource = Annotated[
    Union[GitHubV1Source, GitHubSource, CodeCommitSource, BitbucketSource],
    Field(discriminator="provider"),
]


def _required(properties: dict[str, Any], key: str) -> str:
    if key not in properties:
        raise ValidationError(f"missing `{key}` in properties")
    return _optional(properties, key, "")


def _optional(properties: dict[str, Any], key: str, default: str) -> str:
    value = properties.get(key, default)
    if not isinstance(value, str):
        raise ValidationError(f"property `{key}` is not a string")
    return value


def source_from_manifest(
    provider: str, properties: dict[str, Any]
) -> tuple[GitHubV1Source | GitHubSource | CodeCommitSource | BitbucketSource, bool]:
    """Decode a manifest source block into one concrete source variant.

    Returns the source and whether its connection still has to be
    activated by hand (connection-based providers without an existing
    ``connection_arn``).

    Raises:
        ValidationError: Unknown provider, missing or non-string property.
    """
    branch = _optional(properties, "branch", DEFAULT_BRANCH)
    repository = _required(properties, "repository")
    output_format = _optional(properties, "output_artifact_format", "")

    if provider == "GitHubV1" or (provider == "GitHub" and "access_token_secret" in properties):
        # Manifests written before connections existed say "GitHub" but carry a token secret.
        return GitHubV1Source(
            repository_url=repository,
            branch=branch,
            access_token_secret=_required(properties, "access_token_secret"),
        ), False

    if provider == "GitHub":
        arn = _optional(properties, "connection_arn", "")
        return GitHubSource(
            repository_url=repository,
            branch=branch,
            connection_arn=arn,
            output_artifact_format=output_format,
        ), not arn

    if provider == "CodeCommit":
        return CodeCommitSource(
            repository_url=repository,
            branch=branch,
            output_artifact_format=output_format,
        ), False

    if provider == "Bitbucket":
        arn = _optional(properties, "connection_arn", "")
        return BitbucketSource(
            repository_url=repository,
            branch=branch,
            connection_arn=arn,
            output_artifact_format=output_format,
        ), not arn

    raise ValidationError(f"invalid repo source provider: {provider}")


# ═══════════════════════════════════════════════════════════════════
#  Stages
# ═══════════════════════════════════════════════════════════════════


class Deployment(BaseModel):
    """Per-workload overrides for a stage's deploy action."""

    stack_name: str = ""
    template_path: str = ""
    template_config: str = ""
    depends_on: list[str] = Field(default_factory=list)


class DeclaredStage(BaseModel):
    """A stage as written in the pipeline manifest."""

    name: str
    requires_approval: bool = False
    test_commands: list[str] = Field(default_factory=list)
    deployments: dict[str, Deployment | None] = Field(default_factory=dict)


class AssociatedEnvironment(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    app: str
    region: str
    account_id: str


class DeployAction(BaseModel):
    """Create-or-update action for one workload stack within a stage."""

    workload: str
    env: str
    app: str
    run_order: int = 1
    override: Deployment | None = None

    @property
    def name(self) -> str:
        return f"CreateOrUpdate-{self.workload}-{self.env}"

    @property
    def stack_name(self) -> str:
        if self.override and self.override.stack_name:
            return self.override.stack_name
        return f"{self.app}-{self.env}-{self.workload}"

    @property
    def template_path(self) -> str:
        if self.override and self.override.template_path:
            return self.override.template_path
        return f"{DEFAULT_ARTIFACTS_DIR}/{self.workload}-{self.env}.stack.yml"

    @property
    def template_config_path(self) -> str:
        if self.override and self.override.template_config:
            return self.override.template_config
        return f"{DEFAULT_ARTIFACTS_DIR}/{self.workload}-{self.env}.params.json"


class TestCommandsAction(BaseModel):
    __test__ = False  # not a pytest class

    commands: list[str]
    run_order: int = 1

    @property
    def name(self) -> str:
        return "TestCommands"


class PipelineStage(BaseModel):
    """A declared stage bound to a concrete environment."""

    environment_name: str
    associated_environment: AssociatedEnvironment
    requires_approval: bool = False
    test_commands: tuple[str, ...] = ()
    local_workloads: tuple[str, ...] = ()
    deployments: dict[str, Deployment | None] = Field(default_factory=dict)

    @property
    def full_name(self) -> str:
        return STAGE_FULL_NAME_PREFIX + self.environment_name

    @property
    def region(self) -> str:
        return self.associated_environment.region

    @property
    def approval_action_name(self) -> str | None:
        if not self.requires_approval:
            return None
        return f"ApprovePromotionTo-{self.environment_name}"

    def _effective_deployments(self) -> dict[str, Deployment | None]:
        # Without explicit deployments every local workload is deployed.
        if self.deployments:
            return self.deployments
        return {name: None for name in self.local_workloads}

    def deploy_actions(self) -> list[DeployAction]:
        """Deploy actions sorted by workload name, ranked by ``depends_on``."""
        deployments = self._effective_deployments()
        ranks = _rank(deployments)
        baseline = 2 if self.requires_approval else 1
        actions = [
            DeployAction(
                workload=name,
                env=self.environment_name,
                app=self.associated_environment.app,
                run_order=baseline + ranks[name],
                override=override,
            )
            for name, override in deployments.items()
        ]
        return sorted(actions, key=lambda a: a.name)

    def test_action(self) -> TestCommandsAction | None:
        if not self.test_commands:
            return None
        previous = [a.run_order for a in self.deploy_actions()]
        if self.requires_approval:
            previous.append(1)
        return TestCommandsAction(
            commands=list(self.test_commands),
            run_order=max(previous, default=0) + 1,
        )


def _rank(deployments: dict[str, Deployment | None]) -> dict[str, int]:
    """Longest chain of ``depends_on`` under each deployment."""
    ranks: dict[str, int] = {}
    visiting: set[str] = set()

    def visit(name: str) -> int:
        if name in ranks:
            return ranks[name]
        if name in visiting:
            raise ValidationError(f"deployment {name} has a circular dependency")
        if name not in deployments:
            raise ValidationError(f"deployment {name} is not part of the stage")
        visiting.add(name)
        deps = deployments[name].depends_on if deployments[name] else []
        rank = max((visit(dep) + 1 for dep in deps), default=0)
        visiting.discard(name)
        ranks[name] = rank
        return rank

    for name in deployments:
        visit(name)
    return ranks

"""
Domain models — Pydantic types for the deploy engine.

All models are re-exported here for convenient access:

    from shipwright.core.models import DeploymentTarget, PipelineStage, ApplyResult
"""

from shipwright.core.models.outcome import (
    ApplyOutcome,
    ApplyResult,
    Notice,
    NoticeKind,
    StackOptions,
)
from shipwright.core.models.pipeline import (
    AssociatedEnvironment,
    BitbucketSource,
    CodeCommitSource,
    DeclaredStage,
    DeployAction,
    Deployment,
    GitHubSource,
    GitHubV1Source,
    PipelineStage,
    TestCommandsAction,
    source_from_manifest,
)
from shipwright.core.models.target import (
    DeploymentTarget,
    DiffResult,
    ProposedChange,
    VersionConstraint,
)
from shipwright.core.models.workspace import (
    Environment,
    ImageConfig,
    PipelineManifest,
    SourceConfig,
    Workload,
    Workspace,
)

__all__ = [
    # outcome.py
    "ApplyOutcome",
    "ApplyResult",
    "AssociatedEnvironment",
    "BitbucketSource",
    "CodeCommitSource",
    "DeclaredStage",
    "DeployAction",
    "Deployment",
    # target.py
    "DeploymentTarget",
    "DiffResult",
    # workspace.py
    "Environment",
    "GitHubSource",
    "GitHubV1Source",
    "ImageConfig",
    "Notice",
    "NoticeKind",
    "PipelineManifest",
    # pipeline.py
    "PipelineStage",
    "ProposedChange",
    "SourceConfig",
    "StackOptions",
    "TestCommandsAction",
    "VersionConstraint",
    "Workload",
    "Workspace",
    "source_from_manifest",
]

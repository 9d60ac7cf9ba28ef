"""Adapters — collaborator contracts and their local implementations.

Public re-exports for convenient access.
"""

from shipwright.adapters.base import (
    ArtifactStep,
    ConnectionLookup,
    DeployedPipeline,
    DeployedPipelineLister,
    EnvironmentStore,
    Prompter,
    StackDeployer,
    TemplateFetcher,
    TemplateRenderer,
    VersionGetter,
)
from shipwright.adapters.mock import MockArtifactStep, MockPrompter, MockStackDeployer

__all__ = [
    "ArtifactStep",
    "ConnectionLookup",
    "DeployedPipeline",
    "DeployedPipelineLister",
    "EnvironmentStore",
    "MockArtifactStep",
    "MockPrompter",
    "MockStackDeployer",
    "Prompter",
    "StackDeployer",
    "TemplateFetcher",
    "TemplateRenderer",
    "VersionGetter",
]

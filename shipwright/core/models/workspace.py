"""
Workspace model — the application as declared in shipwright.yml.

This is the local declaration of intent: which environments the
application deploys to, which workloads live in this workspace, and
which pipelines promote them. What is actually deployed is only known
to the control plane.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from shipwright.core.models.pipeline import DeclaredStage


class Environment(BaseModel):
    """A deployment environment (test, staging, prod)."""

    name: str
    region: str = "us-east-1"
    account_id: str = ""
    config: dict[str, Any] = Field(default_factory=dict)


class ImageConfig(BaseModel):
    build: str = ""          # Dockerfile path, relative to the workspace
    context: str = ""        # build context directory (default: Dockerfile's dir)
    location: str = ""       # prebuilt image; skips building


class Workload(BaseModel):
    """A service or job living in this workspace."""

    name: str
    type: Literal["service", "job"] = "service"
    image: ImageConfig = Field(default_factory=ImageConfig)
    env_file: str = ""
    addons: str = ""         # path to an addons template
    static_assets: str = ""  # directory of static files served by the workload
    config: dict[str, Any] = Field(default_factory=dict)


class SourceConfig(BaseModel):
    provider: str
    properties: dict[str, Any] = Field(default_factory=dict)


class PipelineManifest(BaseModel):
    name: str
    source: SourceConfig
    stages: list[DeclaredStage] = Field(default_factory=list)
    build: dict[str, Any] = Field(default_factory=dict)


class Workspace(BaseModel):
    """Root workspace declaration — loaded from shipwright.yml."""

    version: int = 1

    application: str
    environments: list[Environment] = Field(default_factory=list)
    workloads: list[Workload] = Field(default_factory=list)
    pipelines: list[PipelineManifest] = Field(default_factory=list)
    connections: dict[str, str] = Field(default_factory=dict)
    tags: dict[str, str] = Field(default_factory=dict)

    def get_environment(self, name: str) -> Environment | None:
        for env in self.environments:
            if env.name == name:
                return env
        return None

    def get_workload(self, name: str) -> Workload | None:
        for wkld in self.workloads:
            if wkld.name == name:
                return wkld
        return None

    def get_pipeline(self, name: str) -> PipelineManifest | None:
        for pipeline in self.pipelines:
            if pipeline.name == name:
                return pipeline
        return None

    def workload_names(self) -> list[str]:
        """Services first, then jobs, each in declaration order."""
        services = [w.name for w in self.workloads if w.type == "service"]
        jobs = [w.name for w in self.workloads if w.type == "job"]
        return services + jobs

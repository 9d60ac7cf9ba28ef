"""
Workspace adapters — environment, connection and workload lookups
answered from the loaded shipwright.yml.
"""

from __future__ import annotations

from shipwright.adapters.base import ConnectionLookup, EnvironmentStore
from shipwright.core.engine.stages import dedupe
from shipwright.core.errors import NotFoundError
from shipwright.core.models.workspace import Environment, Workspace


class WorkspaceEnvironmentStore(EnvironmentStore):
    def __init__(self, workspace: Workspace):
        self._workspace = workspace

    def get_environment(self, app: str, name: str) -> Environment:
        if app != self._workspace.application:
            raise NotFoundError(f"application {app} not found in the workspace")
        env = self._workspace.get_environment(name)
        if env is None:
            raise NotFoundError(f"environment {name} not found in application {app}")
        return env


class WorkspaceConnectionLookup(ConnectionLookup):
    """Connections declared under ``connections:`` as name → ARN."""

    def __init__(self, workspace: Workspace):
        self._connections = dict(workspace.connections)

    def connection_arn(self, connection_name: str) -> str:
        try:
            return self._connections[connection_name]
        except KeyError:
            raise NotFoundError(f"connection {connection_name} not found") from None


def local_workloads(workspace: Workspace) -> tuple[str, ...]:
    """Names of every workload in the workspace, services first."""
    return dedupe(workspace.workload_names())

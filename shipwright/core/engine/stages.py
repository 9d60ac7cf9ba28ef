"""
Pipeline stage resolver — declared stages → environment-bound stages.

Takes the stages written in a pipeline manifest and binds each one to
the environment it deploys to. The output order is the declaration
order: the pipeline executes stages in that order, so the resolver
never sorts, groups or parallelizes them.

Also owns pipeline naming. Pipelines deployed by early releases use
their bare name as the stack name ("legacy" naming); newer ones are
namespaced under the application. Which scheme a pipeline uses is read
from what is deployed, once, and then held for the rest of the run so
every probe, create and update targets the same stack.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence

from shipwright.adapters.base import DeployedPipelineLister
from shipwright.core.errors import NotFoundError, wrap
from shipwright.core.models.pipeline import AssociatedEnvironment, DeclaredStage, PipelineStage
from shipwright.core.models.workspace import Environment

logger = logging.getLogger(__name__)

PIPELINE_STACK_PREFIX = "pipeline"

EnvLookup = Callable[[str], Environment]


# ── Naming ──────────────────────────────────────────────────────


def workload_stack_name(app: str, env: str, name: str) -> str:
    return f"{app}-{env}-{name}"


def environment_stack_name(app: str, env: str) -> str:
    return f"{app}-{env}"


def pipeline_stack_name(app: str, name: str, is_legacy: bool) -> str:
    """Stack name of a pipeline under the given naming scheme."""
    if is_legacy:
        return name
    return f"{PIPELINE_STACK_PREFIX}-{app}-{name}"


def dedupe(names: Iterable[str]) -> tuple[str, ...]:
    """Drop repeated names, keeping first-seen order."""
    return tuple(dict.fromkeys(names))


# ── Stages ──────────────────────────────────────────────────────


def resolve_stages(
    declared: Sequence[DeclaredStage],
    app_name: str,
    local_workloads: Iterable[str],
    env_lookup: EnvLookup,
) -> list[PipelineStage]:
    """Bind each declared stage to its environment, in declaration order.

    Every stage carries the full local workload inventory; deciding
    which workloads a stage actually deploys is the stage's concern
    (see ``PipelineStage.deploy_actions``).

    Raises:
        NotFoundError: An environment could not be resolved.
    """
    workloads = dedupe(local_workloads)
    stages: list[PipelineStage] = []
    for declared_stage in declared:
        try:
            env = env_lookup(declared_stage.name)
        except Exception as e:
            raise wrap(e, f"get environment {declared_stage.name} in application {app_name}", NotFoundError) from e

        stages.append(
            PipelineStage(
                environment_name=env.name,
                associated_environment=AssociatedEnvironment(
                    name=env.name,
                    app=app_name,
                    region=env.region,
                    account_id=env.account_id,
                ),
                requires_approval=declared_stage.requires_approval,
                test_commands=tuple(declared_stage.test_commands),
                local_workloads=workloads,
                deployments=dict(declared_stage.deployments),
            )
        )
    logger.debug("Resolved %d stage(s): %s", len(stages), ", ".join(s.environment_name for s in stages))
    return stages


# ── Legacy naming ───────────────────────────────────────────────


class LegacyNamingResolver:
    """Decides, once per run, whether a pipeline uses legacy naming.

    The first answer is cached and returned for every later call. A
    failed listing caches ``False`` before the error is raised, so a
    caller that recovers still gets one consistent answer.
    """

    def __init__(self, lister: DeployedPipelineLister, app_name: str):
        self._lister = lister
        self._app_name = app_name
        self._is_legacy: bool | None = None

    def is_legacy(self, pipeline_name: str) -> bool:
        if self._is_legacy is not None:
            return self._is_legacy

        try:
            pipelines = self._lister.list_deployed_pipelines(self._app_name)
        except Exception as e:
            self._is_legacy = False
            raise wrap(e, f"list deployed pipelines for app {self._app_name}") from e

        self._is_legacy = False
        for pipeline in pipelines:
            # Namespaced pipelines never have a resource name equal to the bare name.
            if pipeline.resource_name == pipeline_name:
                self._is_legacy = pipeline.is_legacy
                break
        logger.debug("Pipeline %s legacy naming: %s", pipeline_name, self._is_legacy)
        return self._is_legacy

    def stack_name(self, pipeline_name: str) -> str:
        return pipeline_stack_name(self._app_name, pipeline_name, self.is_legacy(pipeline_name))

"""
Deploy use cases — workload, environment and pipeline deploys.

Each deploy is one vertical slice through the engine:

    validate target → (pipeline) resolve naming → version gate
    → upload artifacts → render → diff preview (+ confirm)
    → apply → DeployResult

Use cases never print. What the user should see before the apply (the
diff) is handed to the ``on_diff`` callback; everything else comes back
on the DeployResult for the CLI to render.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from shipwright.adapters.base import (
    ConnectionLookup,
    DeployedPipelineLister,
    EnvironmentStore,
    Prompter,
    StackDeployer,
    TemplateRenderer,
)
from shipwright.core.config.loader import load_workspace, resolve_workspace_file, state_dir, workspace_root
from shipwright.core.engine.artifacts import ArtifactCoordinator, UploadArtifactsOutput
from shipwright.core.engine.diff import DiffEngine
from shipwright.core.engine.lifecycle import StackLifecycleController
from shipwright.core.engine.stages import (
    LegacyNamingResolver,
    environment_stack_name,
    resolve_stages,
    workload_stack_name,
)
from shipwright.core.engine.version_gate import VersionGate
from shipwright.core.errors import NotFoundError, ShipwrightError, ValidationError, wrap
from shipwright.core.models.outcome import ApplyOutcome, ApplyResult, StackOptions
from shipwright.core.models.pipeline import PipelineStage, source_from_manifest
from shipwright.core.models.target import DeploymentTarget, DiffResult, ProposedChange
from shipwright.core.models.workspace import Environment, Workspace
from shipwright.core.version import template_version

logger = logging.getLogger(__name__)

CONTINUE_PROMPT = "Continue with the deployment?"
CONNECTIONS_URL = "https://console.aws.amazon.com/codesuite/settings/connections"


# ═══════════════════════════════════════════════════════════════════
#  Inputs and results
# ═══════════════════════════════════════════════════════════════════


@dataclass
class DeployOptions:
    """Flags shared by every deploy command."""

    yes: bool = False
    show_diff: bool = False
    diff_autoapprove: bool = False
    allow_downgrade: bool = False
    force: bool = False
    no_rollback: bool = False
    detach: bool = False

    def stack_options(self) -> StackOptions:
        return StackOptions(
            disable_rollback=self.no_rollback,
            detach=self.detach,
            force_new_update=self.force,
        )


@dataclass
class DeployContext:
    """Everything a deploy needs from outside the engine."""

    workspace: Workspace
    root: Path
    deployer: StackDeployer
    lister: DeployedPipelineLister
    prompter: Prompter
    renderer: TemplateRenderer
    environments: EnvironmentStore
    connections: ConnectionLookup
    artifact_steps: Callable[[str], list] = lambda name: []
    version: str = field(default_factory=template_version)

    @property
    def app(self) -> str:
        return self.workspace.application

    @classmethod
    def local(cls, config_path: Path | None = None, interactive: bool = True) -> DeployContext:
        """Context backed by the local control plane next to shipwright.yml.

        Raises:
            ConfigError: No workspace, or an invalid one.
        """
        from shipwright.adapters.local.artifacts import ArtifactStore, workload_steps
        from shipwright.adapters.local.control_plane import LocalControlPlane
        from shipwright.adapters.prompt import ClickPrompter
        from shipwright.adapters.render import YamlTemplateRenderer
        from shipwright.adapters.workspace import WorkspaceConnectionLookup, WorkspaceEnvironmentStore

        config_path = resolve_workspace_file(config_path)
        workspace = load_workspace(config_path)
        root = workspace_root(config_path)
        state = state_dir(root)

        control_plane = LocalControlPlane(state)
        store = ArtifactStore(state)

        def steps(name: str) -> list:
            wkld = workspace.get_workload(name)
            return workload_steps(wkld, root, store) if wkld else []

        return cls(
            workspace=workspace,
            root=root,
            deployer=control_plane,
            lister=control_plane,
            prompter=ClickPrompter(interactive=interactive),
            renderer=YamlTemplateRenderer(tags=workspace.tags),
            environments=WorkspaceEnvironmentStore(workspace),
            connections=WorkspaceConnectionLookup(workspace),
            artifact_steps=steps,
        )


@dataclass
class DeployResult:
    """Result of one deploy command."""

    target: DeploymentTarget | None = None
    stack_name: str = ""
    diff: DiffResult | None = None
    artifacts: UploadArtifactsOutput | None = None
    stages: list[PipelineStage] = field(default_factory=list)
    stage_configs: list[dict[str, Any]] = field(default_factory=list)
    apply: ApplyResult | None = None
    aborted: bool = False  # declined after the diff preview
    error: ShipwrightError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    @property
    def outcome(self) -> ApplyOutcome | None:
        if self.aborted:
            return ApplyOutcome.DECLINED
        return self.apply.outcome if self.apply else None

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error is not None:
            result["error"] = str(self.error)
            advice = self.error.recommended_actions()
            if advice:
                result["recommended_actions"] = advice
        if self.target is not None:
            result["target"] = self.target.model_dump(mode="json")
        result["stack"] = self.stack_name
        outcome = self.outcome
        result["outcome"] = outcome.value if outcome else None
        if self.diff is not None:
            result["diff"] = self.diff.render()
        if self.artifacts is not None:
            result["artifacts"] = self.artifacts.to_dict()
        if self.stage_configs:
            result["stages"] = self.stage_configs
        if self.apply is not None:
            result["apply"] = self.apply.to_dict()
        return result


DiffCallback = Callable[[DiffResult], None]


# ═══════════════════════════════════════════════════════════════════
#  Shared steps
# ═══════════════════════════════════════════════════════════════════


def _check_app(ctx: DeployContext, app: str | None) -> None:
    if app and app != ctx.app:
        raise NotFoundError(f"application {app} not found in the workspace (workspace application is {ctx.app})")


def _environment(ctx: DeployContext, name: str) -> Environment:
    try:
        return ctx.environments.get_environment(ctx.app, name)
    except Exception as e:
        raise wrap(e, f"get environment {name} configuration", NotFoundError) from e


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge ``override`` onto a copy of ``base``; lists are replaced."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _render(
    ctx: DeployContext,
    target: DeploymentTarget,
    config: dict,
    artifacts: UploadArtifactsOutput,
) -> ProposedChange:
    try:
        return ctx.renderer.render(target, config, artifacts, ctx.version)
    except Exception as e:
        raise wrap(e, f"render template for {target.describe()}") from e


def _preview_and_apply(
    ctx: DeployContext,
    target: DeploymentTarget,
    result: DeployResult,
    change: ProposedChange,
    opts: DeployOptions,
    on_diff: DiffCallback | None,
    connection_notice: str | None = None,
) -> DeployResult:
    pre_approved = opts.yes
    if opts.show_diff:
        result.diff = DiffEngine(ctx.deployer).diff(target, result.stack_name, change.template)
        if on_diff is not None:
            on_diff(result.diff)
        if not (opts.yes or opts.diff_autoapprove):
            try:
                proceed = ctx.prompter.confirm(CONTINUE_PROMPT, default=False)
            except Exception as e:
                raise wrap(e, "ask whether to continue with the deployment") from e
            if not proceed:
                result.aborted = True
                return result
        # Accepting the diff is the confirmation.
        pre_approved = True

    controller = StackLifecycleController(ctx.deployer, ctx.prompter)
    result.apply = controller.apply(
        target,
        result.stack_name,
        change,
        opts.stack_options(),
        pre_approved=pre_approved,
        connection_notice=connection_notice,
    )
    result.error = result.apply.error
    return result


# ═══════════════════════════════════════════════════════════════════
#  Workloads and environments
# ═══════════════════════════════════════════════════════════════════


def deploy_workload(
    ctx: DeployContext,
    name: str,
    env: str,
    opts: DeployOptions | None = None,
    app: str | None = None,
    on_diff: DiffCallback | None = None,
) -> DeployResult:
    """Deploy a service or job to one environment."""
    opts = opts or DeployOptions()
    result = DeployResult()
    try:
        _check_app(ctx, app)
        workload = ctx.workspace.get_workload(name)
        if workload is None:
            raise NotFoundError(f"workload {name} not found in the workspace")
        environment = _environment(ctx, env)

        target = DeploymentTarget(app=ctx.app, name=name, kind="workload", env=env)
        result.target = target
        result.stack_name = workload_stack_name(ctx.app, env, name)

        if not opts.allow_downgrade:
            VersionGate(ctx.deployer, ctx.version).check(target, result.stack_name)

        result.artifacts = ArtifactCoordinator(ctx.artifact_steps(name)).upload(target)

        # Per-environment overrides live under config.environments.<env>.
        base = {k: v for k, v in workload.config.items() if k != "environments"}
        override = workload.config.get("environments", {}).get(env, {})
        config: dict[str, Any] = {
            "type": workload.type,
            "environment": environment.name,
            "region": environment.region,
        }
        config.update(_merge(base, override))

        change = _render(ctx, target, config, result.artifacts)
        return _preview_and_apply(ctx, target, result, change, opts, on_diff)
    except ShipwrightError as e:
        logger.debug("Deploy of workload %s failed: %s", name, e)
        result.error = e
        return result


def deploy_environment(
    ctx: DeployContext,
    env: str,
    opts: DeployOptions | None = None,
    app: str | None = None,
    on_diff: DiffCallback | None = None,
) -> DeployResult:
    """Deploy an environment's shared infrastructure."""
    opts = opts or DeployOptions()
    result = DeployResult()
    try:
        _check_app(ctx, app)
        environment = _environment(ctx, env)

        target = DeploymentTarget(app=ctx.app, name=env, kind="environment", env=env)
        result.target = target
        result.stack_name = environment_stack_name(ctx.app, env)

        if not opts.allow_downgrade:
            VersionGate(ctx.deployer, ctx.version).check(target, result.stack_name)

        result.artifacts = ArtifactCoordinator().upload(target)
        config: dict[str, Any] = {
            "region": environment.region,
            "account_id": environment.account_id,
        }
        config.update(environment.config)

        change = _render(ctx, target, config, result.artifacts)
        return _preview_and_apply(ctx, target, result, change, opts, on_diff)
    except ShipwrightError as e:
        logger.debug("Deploy of environment %s failed: %s", env, e)
        result.error = e
        return result


# ═══════════════════════════════════════════════════════════════════
#  Pipelines
# ═══════════════════════════════════════════════════════════════════


def _stage_config(stage: PipelineStage) -> dict[str, Any]:
    actions = [
        {
            "name": action.name,
            "run_order": action.run_order,
            "stack_name": action.stack_name,
            "template_path": action.template_path,
            "template_config": action.template_config_path,
        }
        for action in stage.deploy_actions()
    ]
    config: dict[str, Any] = {
        "name": stage.full_name,
        "environment": stage.environment_name,
        "region": stage.region,
        "account_id": stage.associated_environment.account_id,
        "approval": stage.approval_action_name,
        "actions": actions,
    }
    test = stage.test_action()
    if test is not None:
        config["test"] = {"name": test.name, "run_order": test.run_order, "commands": list(test.commands)}
    return config


def deploy_pipeline(
    ctx: DeployContext,
    name: str | None = None,
    opts: DeployOptions | None = None,
    app: str | None = None,
    on_diff: DiffCallback | None = None,
) -> DeployResult:
    """Deploy a delivery pipeline declared in the workspace.

    With no ``name`` the workspace must declare exactly one pipeline.
    """
    opts = opts or DeployOptions()
    result = DeployResult()
    try:
        _check_app(ctx, app)
        manifest = _pipeline_manifest(ctx, name)
        target = DeploymentTarget(app=ctx.app, name=manifest.name, kind="pipeline")
        result.target = target

        # One answer for the whole run: gate, probe, create and update
        # all target the same stack.
        naming = LegacyNamingResolver(ctx.lister, ctx.app)
        result.stack_name = naming.stack_name(manifest.name)
        if not opts.allow_downgrade:
            VersionGate(ctx.deployer, ctx.version).check(target, naming.stack_name(manifest.name))

        properties = dict(manifest.source.properties)
        connection = properties.get("connection_name")
        if connection:
            try:
                properties["connection_arn"] = ctx.connections.connection_arn(str(connection))
            except Exception as e:
                raise wrap(e, "get connection ARN") from e

        try:
            source, should_prompt = source_from_manifest(manifest.source.provider, properties)
        except ValidationError as e:
            raise wrap(e, "read source from manifest", ValidationError) from e

        try:
            stages = resolve_stages(
                manifest.stages,
                ctx.app,
                ctx.workspace.workload_names(),
                lambda env_name: ctx.environments.get_environment(ctx.app, env_name),
            )
        except NotFoundError as e:
            raise wrap(e, "convert environments to deployment stage", NotFoundError) from e

        # Action ranking rejects unknown or circular depends_on here, before
        # the stages are attached to the result.
        stage_configs = [_stage_config(stage) for stage in stages]
        result.stages, result.stage_configs = stages, stage_configs
        result.artifacts = UploadArtifactsOutput()

        source_config = source.model_dump(mode="json")
        source_config["repository"] = source.repository()
        config = {
            "source": source_config,
            "build": manifest.build,
            "stages": stage_configs,
        }
        change = _render(ctx, target, config, result.artifacts)

        notice = None
        if should_prompt:
            notice = (
                f"ACTION REQUIRED! Go to {CONNECTIONS_URL} to update the status of connection "
                f"{source.connection_name()} from PENDING to AVAILABLE."
            )
        return _preview_and_apply(ctx, target, result, change, opts, on_diff, connection_notice=notice)
    except ShipwrightError as e:
        logger.debug("Deploy of pipeline %s failed: %s", name, e)
        result.error = e
        return result


def _pipeline_manifest(ctx: DeployContext, name: str | None):
    if name:
        manifest = ctx.workspace.get_pipeline(name)
        if manifest is None:
            raise NotFoundError(f"pipeline {name} not found in the workspace")
        return manifest
    if not ctx.workspace.pipelines:
        raise NotFoundError("no pipelines found in the workspace")
    if len(ctx.workspace.pipelines) > 1:
        names = ", ".join(p.name for p in ctx.workspace.pipelines)
        raise ValidationError(f"more than one pipeline in the workspace ({names}); pass --name")
    return ctx.workspace.pipelines[0]

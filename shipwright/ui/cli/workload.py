"""
CLI commands for services and jobs.

Thin wrappers over ``shipwright.core.use_cases.deploy.deploy_workload``.
"""

from __future__ import annotations

import click

from shipwright.ui.cli.common import (
    check_flags,
    config_path,
    deploy_options,
    diff_printer,
    pick,
    print_error,
    render_deploy,
)


def _deploy(
    ctx: click.Context,
    workload_type: str,
    name: str | None,
    env: str | None,
    app: str | None,
    yes: bool,
    show_diff: bool,
    diff_autoapprove: bool,
    allow_downgrade: bool,
    force: bool,
    no_rollback: bool,
    detach: bool,
    as_json: bool,
) -> None:
    from shipwright.core.errors import ShipwrightError
    from shipwright.core.use_cases.deploy import DeployContext, DeployOptions, deploy_workload

    check_flags(show_diff, diff_autoapprove)
    try:
        deploy_ctx = DeployContext.local(config_path(ctx))
    except ShipwrightError as e:
        print_error(e)
        raise SystemExit(1) from None

    workspace = deploy_ctx.workspace
    name = pick(name, [w.name for w in workspace.workloads if w.type == workload_type], workload_type, "name")
    env = pick(env, [e.name for e in workspace.environments], "environment", "env")

    opts = DeployOptions(
        yes=yes,
        show_diff=show_diff,
        diff_autoapprove=diff_autoapprove,
        allow_downgrade=allow_downgrade,
        force=force,
        no_rollback=no_rollback,
        detach=detach,
    )
    result = deploy_workload(deploy_ctx, name, env, opts, app=app, on_diff=diff_printer(as_json))
    render_deploy(result, as_json, quiet=ctx.obj.get("quiet", False))


@click.group()
def svc() -> None:
    """Services — long-running workloads."""


@svc.command("deploy")
@click.option("--name", "-n", default=None, help="Name of the service.")
@click.option("--env", "-e", "env", default=None, help="Name of the environment.")
@click.option("--force", is_flag=True, help="Force a new deployment even if nothing changed.")
@deploy_options
@click.pass_context
def svc_deploy(ctx: click.Context, name: str | None, env: str | None, force: bool, **flags) -> None:
    """Deploy a service to an environment.

    Examples:

        shipwright svc deploy --name api --env test

        shipwright svc deploy -n api -e prod --diff
    """
    _deploy(ctx, "service", name, env, force=force, **flags)


@click.group()
def job() -> None:
    """Jobs — scheduled or triggered workloads."""


@job.command("deploy")
@click.option("--name", "-n", default=None, help="Name of the job.")
@click.option("--env", "-e", "env", default=None, help="Name of the environment.")
@click.option("--force", is_flag=True, help="Force a new deployment even if nothing changed.")
@deploy_options
@click.pass_context
def job_deploy(ctx: click.Context, name: str | None, env: str | None, force: bool, **flags) -> None:
    """Deploy a job to an environment."""
    _deploy(ctx, "job", name, env, force=force, **flags)

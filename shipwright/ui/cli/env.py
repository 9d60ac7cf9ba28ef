"""
CLI commands for environments.

Thin wrappers over ``shipwright.core.use_cases.deploy.deploy_environment``.
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


@click.group()
def env() -> None:
    """Environments — shared infrastructure for workloads."""


@env.command("deploy")
@click.option("--name", "-n", default=None, help="Name of the environment.")
@click.option("--force", is_flag=True, help="Force an update even if nothing changed.")
@deploy_options
@click.pass_context
def env_deploy(
    ctx: click.Context,
    name: str | None,
    force: bool,
    app: str | None,
    yes: bool,
    show_diff: bool,
    diff_autoapprove: bool,
    allow_downgrade: bool,
    no_rollback: bool,
    detach: bool,
    as_json: bool,
) -> None:
    """Deploy an environment."""
    from shipwright.core.errors import ShipwrightError
    from shipwright.core.use_cases.deploy import DeployContext, DeployOptions, deploy_environment

    check_flags(show_diff, diff_autoapprove)
    try:
        deploy_ctx = DeployContext.local(config_path(ctx))
    except ShipwrightError as e:
        print_error(e)
        raise SystemExit(1) from None

    name = pick(name, [e.name for e in deploy_ctx.workspace.environments], "environment", "name")
    opts = DeployOptions(
        yes=yes,
        show_diff=show_diff,
        diff_autoapprove=diff_autoapprove,
        allow_downgrade=allow_downgrade,
        force=force,
        no_rollback=no_rollback,
        detach=detach,
    )
    result = deploy_environment(deploy_ctx, name, opts, app=app, on_diff=diff_printer(as_json))
    render_deploy(result, as_json, quiet=ctx.obj.get("quiet", False))

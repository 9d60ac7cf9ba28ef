"""
CLI commands for delivery pipelines.

Thin wrappers over ``shipwright.core.use_cases.deploy.deploy_pipeline``.
"""

from __future__ import annotations

import click

from shipwright.ui.cli.common import (
    check_flags,
    config_path,
    deploy_options,
    diff_printer,
    print_error,
    render_deploy,
)


@click.group()
def pipeline() -> None:
    """Pipelines — promote workloads through environments."""


@pipeline.command("deploy")
@click.option("--name", "-n", default=None, help="Name of the pipeline (default: the only one).")
@deploy_options
@click.pass_context
def pipeline_deploy(
    ctx: click.Context,
    name: str | None,
    app: str | None,
    yes: bool,
    show_diff: bool,
    diff_autoapprove: bool,
    allow_downgrade: bool,
    no_rollback: bool,
    detach: bool,
    as_json: bool,
) -> None:
    """Deploy a pipeline declared in shipwright.yml.

    Examples:

        shipwright pipeline deploy

        shipwright pipeline deploy --name release --diff
    """
    from shipwright.core.errors import ShipwrightError
    from shipwright.core.use_cases.deploy import DeployContext, DeployOptions, deploy_pipeline

    check_flags(show_diff, diff_autoapprove)
    try:
        deploy_ctx = DeployContext.local(config_path(ctx))
    except ShipwrightError as e:
        print_error(e)
        raise SystemExit(1) from None

    opts = DeployOptions(
        yes=yes,
        show_diff=show_diff,
        diff_autoapprove=diff_autoapprove,
        allow_downgrade=allow_downgrade,
        no_rollback=no_rollback,
        detach=detach,
    )
    result = deploy_pipeline(deploy_ctx, name, opts, app=app, on_diff=diff_printer(as_json))
    render_deploy(result, as_json, quiet=ctx.obj.get("quiet", False))

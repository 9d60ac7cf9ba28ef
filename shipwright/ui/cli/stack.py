"""
CLI commands for inspecting and recovering deployed stacks.

Thin wrappers over ``shipwright.core.use_cases.stack``.
"""

from __future__ import annotations

import json
import sys

import click

from shipwright.ui.cli.common import config_path, print_error

_STATUS_COLORS = {
    "CREATE_COMPLETE": "green",
    "UPDATE_COMPLETE": "green",
    "UPDATE_ROLLBACK_COMPLETE": "yellow",
    "CREATE_FAILED": "red",
    "UPDATE_FAILED": "red",
}


@click.group()
def stack() -> None:
    """Stacks — status and manual rollback."""


@stack.command("status")
@click.option("--stack-name", "-s", default=None, help="Show one stack (default: all).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def stack_status(ctx: click.Context, stack_name: str | None, as_json: bool) -> None:
    """Show deployed stacks."""
    from shipwright.core.use_cases.stack import stack_status as _status

    result = _status(config_path(ctx), stack_name)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.error is None else 1)

    if result.error is not None:
        print_error(result.error)
        sys.exit(1)

    if not result.stacks:
        click.secho("No stacks deployed.", fg="yellow")
        return

    click.secho(f"📦 Stacks: {len(result.stacks)}", fg="cyan", bold=True)
    for record in result.stacks:
        click.secho(f"   • {record.stack_name} ", nl=False)
        click.secho(record.status, fg=_STATUS_COLORS.get(record.status, "white"))
        version = record.current.version or "unversioned"
        click.echo(f"     {version}, {record.deployments} deployment(s), updated {record.updated_at}")


@stack.command("rollback")
@click.option("--stack-name", "-s", required=True, help="Stack to roll back.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def stack_rollback(ctx: click.Context, stack_name: str, as_json: bool) -> None:
    """Roll a stack back to its last good configuration."""
    from shipwright.core.use_cases.stack import stack_rollback as _rollback

    result = _rollback(stack_name, config_path(ctx))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.error is None else 1)

    if result.error is not None:
        print_error(result.error)
        sys.exit(1)

    if result.deleted:
        click.secho(f"✅ Deleted stack {stack_name}, which had failed to create.", fg="green", bold=True)
    else:
        click.secho(f"✅ Rolled back stack {stack_name} to its previous configuration.", fg="green", bold=True)

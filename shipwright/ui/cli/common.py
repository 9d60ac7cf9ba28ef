"""
Shared CLI helpers — deploy flags and result rendering.

Every deploy command takes the same flags and renders a DeployResult
the same way; the commands themselves only pick the use case.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from shipwright.core.errors import ShipwrightError
from shipwright.core.models.outcome import ApplyOutcome, NoticeKind
from shipwright.core.models.target import DiffResult

_OUTCOME_LABELS = {
    ApplyOutcome.CREATED: ("✅", "Deployed", "green"),
    ApplyOutcome.UPDATED: ("✅", "Deployed", "green"),
    ApplyOutcome.NO_CHANGE: ("✅", "No infrastructure changes for", "cyan"),
    ApplyOutcome.DECLINED: ("⊘", "Deployment aborted for", "yellow"),
    ApplyOutcome.INTERRUPTED_CREATE: ("⊘", "Deployment interrupted for", "yellow"),
    ApplyOutcome.INTERRUPTED_UPDATE: ("⊘", "Deployment interrupted for", "yellow"),
}

_NOTICE_COLORS = {
    NoticeKind.ACTION_REQUIRED: "yellow",
    NoticeKind.ROLLED_BACK: "yellow",
    NoticeKind.DELETED_ON_INTERRUPT: "yellow",
    NoticeKind.NO_CHANGES: "cyan",
    NoticeKind.FORCE_UPDATE_HINT: "yellow",
    NoticeKind.ROLLBACK_DISABLED: "yellow",
}


def config_path(ctx: click.Context) -> Path | None:
    return ctx.obj.get("config_path") if ctx.obj else None


def deploy_options(func: Callable) -> Callable:
    """Flags shared by every deploy command."""
    options = [
        click.option("--app", "-a", "app", default=None, help="Application name (default: the workspace's)."),
        click.option("--yes", is_flag=True, help="Skip confirmation prompts."),
        click.option("--diff", "show_diff", is_flag=True, help="Show the template diff before deploying."),
        click.option("--diff-autoapprove", is_flag=True, help="Deploy after the diff without asking. Requires --diff."),
        click.option("--allow-downgrade", is_flag=True, help="Allow deploying with an older template version."),
        click.option("--no-rollback", is_flag=True, help="Leave a failed deployment in place instead of rolling back."),
        click.option("--detach", is_flag=True, help="Return once the deployment has started."),
        click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def check_flags(show_diff: bool, diff_autoapprove: bool) -> None:
    if diff_autoapprove and not show_diff:
        raise click.UsageError("--diff-autoapprove requires --diff")


def pick(value: str | None, candidates: list[str], label: str, flag: str) -> str:
    """Use ``value``, or the only candidate when there is exactly one."""
    if value:
        return value
    if len(candidates) == 1:
        return candidates[0]
    if not candidates:
        raise click.UsageError(f"no {label}s found in the workspace")
    raise click.UsageError(f"more than one {label} in the workspace ({', '.join(candidates)}); pass --{flag}")


def diff_printer(as_json: bool) -> Callable[[DiffResult], None] | None:
    if as_json:
        return None

    def show(diff: DiffResult) -> None:
        click.echo(diff.render(), nl=False)

    return show


def print_error(error: ShipwrightError) -> None:
    click.secho(f"❌ {error}", fg="red")
    advice = error.recommended_actions()
    if advice:
        click.echo("")
        click.secho("Recommended actions:", fg="yellow")
        for line in advice.split("\n"):
            click.echo(f"   {line}")


def render_deploy(result: Any, as_json: bool, quiet: bool = False) -> None:
    """Print a DeployResult and exit with its exit code."""
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    apply = result.apply
    if apply is not None:
        for notice in apply.notices:
            if notice.kind == NoticeKind.NO_CHANGES:
                continue  # covered by the outcome line
            click.secho(f"   {notice.message}", fg=_NOTICE_COLORS.get(notice.kind, "white"))

    if result.error is not None:
        print_error(result.error)
        if apply is not None and apply.recommendations:
            _print_recommendations(apply.recommendations)
        sys.exit(1)

    target = result.target
    outcome = result.outcome
    if outcome in _OUTCOME_LABELS and target is not None:
        icon, verb, color = _OUTCOME_LABELS[outcome]
        suffix = f" (stack {result.stack_name})" if outcome in (ApplyOutcome.CREATED, ApplyOutcome.UPDATED) else ""
        if apply is not None and apply.detached:
            verb = "Started deployment of"
        click.secho(f"{icon} {verb} {target.describe()}{suffix}.", fg=color, bold=True)

    if not quiet and apply is not None and apply.recommendations:
        _print_recommendations(apply.recommendations)


def _print_recommendations(actions: list[str]) -> None:
    click.echo()
    click.secho("Recommended follow-up actions:", fg="white", bold=True)
    for action in actions:
        click.echo(f"   • {action}")

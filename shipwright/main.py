"""
shipwright command line.

    shipwright svc deploy --name api --env test
    shipwright env deploy --name prod --diff
    shipwright pipeline deploy
    shipwright stack status
"""

from __future__ import annotations

from pathlib import Path

import click

from shipwright import __version__
from shipwright.core.observability.logging_config import resolve_level, setup_from_env
from shipwright.ui.cli.env import env
from shipwright.ui.cli.pipeline import pipeline
from shipwright.ui.cli.stack import stack
from shipwright.ui.cli.workload import job, svc


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, prog_name="shipwright")
@click.option(
    "--config", "-c", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Workspace file to use instead of the nearest shipwright.yml.",
)
@click.option("--debug", is_flag=True, help="Log everything, including library internals.")
@click.option("--verbose", "-v", is_flag=True, help="Log progress at INFO.")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors.")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, debug: bool, verbose: bool, quiet: bool) -> None:
    """Deploy workloads, environments and release pipelines."""
    setup_from_env(resolve_level(debug=debug, verbose=verbose, quiet=quiet))
    ctx.obj = {
        "config_path": config_path,
        "debug": debug,
        "verbose": verbose,
        "quiet": quiet,
    }


for _command in (svc, job, env, pipeline, stack):
    cli.add_command(_command)


if __name__ == "__main__":
    cli()

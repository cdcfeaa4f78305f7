"""Main entry point for the ferry CLI.

This module provides the Click-based CLI with one command group per
artifact backend plus the fleet group.

Command Groups:
    ferry container: ECR image aliases (list, promote, rollback, rollout)
    ferry object: S3 object aliases (list, promote, rollback, rollout, push)
    ferry fleet: Auto Scaling instance refreshes (status, rollback)

Example:
    $ ferry --env prod container promote a1b2c3d --repository backend
    $ ferry --env prod object rollback --bucket releases --name migrator --swap
    $ ferry --env prod container rollout --repository backend --asg backend-prod --wait
"""

from __future__ import annotations

import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path

import click

from ferry.cli.container import container
from ferry.cli.fleet import fleet
from ferry.cli.object import object_group
from ferry.cli.utils import ExitCode, fail
from ferry.config import load_settings
from ferry.environment import ENVIRONMENT_CHOICES
from ferry.errors import ConfigurationError
from ferry.telemetry.logging import configure_logging


def _get_version() -> str:
    """Get the ferry package version, or 'unknown' if not installed."""
    try:
        return get_version("ferry")
    except PackageNotFoundError:
        return "unknown"


@click.group(
    name="ferry",
    help="ferry - promote, roll back and roll out release artifacts on AWS.",
    epilog="Use 'ferry <command> --help' for command-specific help.",
    context_settings={
        "help_option_names": ["-h", "--help"],
    },
)
@click.version_option(
    version=_get_version(),
    prog_name="ferry",
    message="%(prog)s %(version)s",
)
@click.option(
    "--env",
    "environment",
    type=click.Choice(sorted(ENVIRONMENT_CHOICES), case_sensitive=False),
    default=None,
    help="Target environment. Defaults to FERRY_ENVIRONMENT or 'dev'.",
)
@click.option(
    "--env-index",
    "environment_index",
    type=click.IntRange(1, 255),
    default=None,
    help="Environment stack index; 1 renders without suffix.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML settings file. Defaults to $FERRY_CONFIG.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Minimum log level (logs go to stderr).",
)
@click.option(
    "--log-json",
    is_flag=True,
    default=False,
    help="Emit JSON log lines.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    environment: str | None,
    environment_index: int | None,
    config_path: Path | None,
    log_level: str | None,
    log_json: bool,
) -> None:
    """Root command group for the ferry CLI.

    Loads settings (YAML file, then FERRY_* environment variables, then
    these options) and configures logging before any subcommand runs.
    """
    ctx.ensure_object(dict)
    try:
        settings = load_settings(
            config_path,
            environment=environment,
            environment_index=environment_index,
            log_level=log_level,
            log_json=True if log_json else None,
        )
    except ConfigurationError as e:
        fail(e)

    configure_logging(settings.log_level, json_output=settings.log_json)
    ctx.obj["settings"] = settings
    ctx.obj["environment"] = settings.resolved_environment()


cli.add_command(container)
cli.add_command(object_group)
cli.add_command(fleet)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the ferry CLI.

    Args:
        argv: Command-line arguments (uses sys.argv if None).
    """
    try:
        cli(args=argv, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(ExitCode.INTERRUPTED)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(ExitCode.GENERAL_ERROR)


if __name__ == "__main__":
    main()

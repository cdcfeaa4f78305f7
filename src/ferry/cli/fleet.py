"""Fleet command group: inspect and roll back Auto Scaling instance refreshes.

`fleet rollback` rolls the infrastructure back to its previous launch
template. Rollout escalation never does this; it only moves artifact aliases.

Example:
    $ ferry fleet status --asg backend-prod --region eu-west-1
    $ ferry fleet rollback --asg backend-prod --region eu-west-1
"""

from __future__ import annotations

import json

import click

from ferry.cli import _factory
from ferry.cli.utils import OUTPUT_CHOICES, emit, fail, success
from ferry.console import status_glyph
from ferry.errors import FerryError

_REGION_OPTION = click.option(
    "--region",
    default=None,
    help="AWS region. Defaults to FERRY_REGION.",
    metavar="REGION",
)
_GROUP_OPTION = click.option(
    "--asg",
    "group",
    required=True,
    help="Auto Scaling Group name.",
    metavar="NAME",
)
_OUTPUT_OPTION = click.option(
    "--output",
    type=click.Choice(list(OUTPUT_CHOICES), case_sensitive=False),
    default="table",
    show_default=True,
    help="Output format.",
)


@click.group(
    name="fleet",
    help="Inspect and roll back Auto Scaling instance refreshes.",
)
def fleet() -> None:
    """Fleet commands."""


@fleet.command(
    name="status",
    help="Show the most recent instance refresh of an Auto Scaling Group.",
    epilog="""
Exit Codes:
    0  - Success
    5  - AWS call failed
    6  - Auto Scaling Group not found
""",
)
@_GROUP_OPTION
@_REGION_OPTION
@_OUTPUT_OPTION
@click.pass_context
def status_command(ctx: click.Context, group: str, region: str | None, output: str) -> None:
    region = _factory.resolve_region(ctx, region)
    try:
        state = _factory.create_fleet_driver(region).get_latest_status(group)
    except FerryError as e:
        fail(e, output, asg=group)

    glyph, message = status_glyph(state)
    lines = [f"{glyph}  {group}: {message}"]
    if state.refresh_id:
        lines.append(f"  Refresh:  {state.refresh_id}")
    if state.percentage_complete is not None:
        lines.append(f"  Progress: {state.percentage_complete}%")
    if state.reason:
        lines.append(f"  Reason:   {state.reason}")
    emit(state, output, "\n".join(lines))


@fleet.command(
    name="rollback",
    help="Roll the group back to the launch template used before the last refresh.",
    epilog="""
Exit Codes:
    0  - Rollback started
    5  - AWS call failed (e.g. no refresh to roll back)
    6  - Auto Scaling Group not found
""",
)
@_GROUP_OPTION
@_REGION_OPTION
@_OUTPUT_OPTION
@click.confirmation_option(prompt="Roll back the instance refresh of this group?")
@click.pass_context
def rollback_command(ctx: click.Context, group: str, region: str | None, output: str) -> None:
    region = _factory.resolve_region(ctx, region)
    try:
        refresh_id = _factory.create_fleet_driver(region).rollback_refresh(group)
    except FerryError as e:
        fail(e, output, asg=group)

    if output == "json":
        click.echo(json.dumps({"group": group, "refresh_id": refresh_id}))
    else:
        success(f"⏪ Instance refresh rollback started for {group} ({refresh_id or 'no id'})")


__all__ = ["fleet"]

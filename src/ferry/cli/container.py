"""Container command group: aliases on ECR image tags.

Tags are environment scoped. The live tag defaults to the environment's
medium name (``prod``) and the rollback tag to ``rollback_<env>``.

Example:
    $ ferry --env prod container list --repository backend
    $ ferry --env prod container promote a1b2c3d --repository backend
    $ ferry --env prod container rollback --repository backend --swap
    $ ferry --env prod container rollout --repository backend --asg backend-prod --wait
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import click
import structlog

from ferry.cli import _factory
from ferry.cli._rollout import ROLLOUT_EPILOG, rollout_options, run_rollout
from ferry.cli.utils import OUTPUT_CHOICES, emit, fail, info
from ferry.console import render_promotion, render_rollback, render_set_status
from ferry.errors import FerryError
from ferry.promotion import PromotionEngine, swap_alias
from ferry.schemas.artifacts import ArtifactSet, BackendKind

logger = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_COMMON_OPTIONS = [
    click.option(
        "--region",
        default=None,
        help="AWS region. Defaults to FERRY_REGION.",
        metavar="REGION",
    ),
    click.option(
        "--repository",
        required=True,
        help="ECR repository name.",
        metavar="NAME",
    ),
    click.option(
        "--latest-tag",
        default=None,
        help="Live tag. Defaults to the environment name (e.g. 'prod').",
        metavar="TAG",
    ),
    click.option(
        "--rollback-tag",
        default=None,
        help="Rollback tag. Defaults to 'rollback_<env>'.",
        metavar="TAG",
    ),
    click.option(
        "--output",
        type=click.Choice(list(OUTPUT_CHOICES), case_sensitive=False),
        default="table",
        show_default=True,
        help="Output format.",
    ),
]


def container_options(func: F) -> F:
    for option in reversed(_COMMON_OPTIONS):
        func = option(func)
    return func


class _Target:
    """Resolved region, artifact set, tags and engine for one command."""

    def __init__(
        self,
        ctx: click.Context,
        region: str | None,
        repository: str,
        latest_tag: str | None,
        rollback_tag: str | None,
    ) -> None:
        environment = _factory.get_environment(ctx)
        self.region = _factory.resolve_region(ctx, region)
        self.alias = environment.container_latest_tag(latest_tag)
        self.rollback_alias = environment.container_rollback_tag(rollback_tag)
        self.artifact_set = ArtifactSet(
            backend=BackendKind.CONTAINER,
            region=self.region,
            repository=repository,
        )
        store = _factory.create_registry_store(
            self.region,
            known_aliases=(self.alias, self.rollback_alias, swap_alias(self.rollback_alias)),
        )
        self.engine = PromotionEngine(store)
        logger.debug(
            "container_target",
            repository=repository,
            alias=self.alias,
            rollback_alias=self.rollback_alias,
            environment=str(environment),
            operator=_factory.get_settings(ctx).resolved_operator(),
        )


@click.group(
    name="container",
    help="Promote, roll back and roll out container images (ECR tags).",
)
def container() -> None:
    """Container artifact commands."""


@container.command(
    name="list",
    help="Show the live tag, rollback tag and last pushed image.",
    epilog="""
Exit Codes:
    0  - Success
    2  - Invalid tag name
    5  - AWS call failed
""",
)
@container_options
@click.pass_context
def list_command(
    ctx: click.Context,
    region: str | None,
    repository: str,
    latest_tag: str | None,
    rollback_tag: str | None,
    output: str,
) -> None:
    target = _Target(ctx, region, repository, latest_tag, rollback_tag)
    try:
        status = target.engine.list(target.artifact_set, target.alias, target.rollback_alias)
    except FerryError as e:
        fail(e, output, repository=repository)
    emit(status, output, render_set_status(status))


@container.command(
    name="promote",
    help="Point the live tag at BUILD_ID, archiving the old image to the rollback tag.",
    epilog="""
Exit Codes:
    0  - Success (including when BUILD_ID is already live)
    2  - Invalid build id or tag name
    3  - BUILD_ID was never pushed to the repository
    5  - AWS call failed
""",
)
@click.argument("build_id")
@container_options
@click.pass_context
def promote_command(
    ctx: click.Context,
    build_id: str,
    region: str | None,
    repository: str,
    latest_tag: str | None,
    rollback_tag: str | None,
    output: str,
) -> None:
    target = _Target(ctx, region, repository, latest_tag, rollback_tag)
    try:
        result = target.engine.promote(
            target.artifact_set,
            build_id,
            target.alias,
            target.rollback_alias,
        )
    except FerryError as e:
        fail(e, output, repository=repository, alias=target.alias)
    emit(result, output, render_promotion(result))


@container.command(
    name="rollback",
    help="Point the live tag back at the image held by the rollback tag.",
    epilog="""
Exit Codes:
    0  - Success
    2  - Invalid tag name
    4  - Rollback tag is not set; nothing was changed
    5  - AWS call failed
""",
)
@container_options
@click.option(
    "--swap",
    is_flag=True,
    default=False,
    help="Also move the current live image to the rollback tag.",
)
@click.pass_context
def rollback_command(
    ctx: click.Context,
    region: str | None,
    repository: str,
    latest_tag: str | None,
    rollback_tag: str | None,
    output: str,
    swap: bool,
) -> None:
    target = _Target(ctx, region, repository, latest_tag, rollback_tag)
    try:
        result = target.engine.rollback(
            target.artifact_set,
            target.alias,
            target.rollback_alias,
            swap=swap,
        )
    except FerryError as e:
        fail(e, output, repository=repository, alias=target.alias)
    emit(result, output, render_rollback(result))


@container.command(
    name="rollout",
    help="Start an instance refresh; with --wait, roll the live tag back once on timeout.",
    epilog=ROLLOUT_EPILOG,
)
@container_options
@rollout_options
@click.pass_context
def rollout_command(
    ctx: click.Context,
    region: str | None,
    repository: str,
    latest_tag: str | None,
    rollback_tag: str | None,
    output: str,
    **rollout: Any,
) -> None:
    target = _Target(ctx, region, repository, latest_tag, rollback_tag)
    if output == "table":
        info(f"📦 {target.artifact_set} ({target.alias} / {target.rollback_alias})")
    try:
        run_rollout(
            ctx,
            region=target.region,
            engine=target.engine,
            artifact_set=target.artifact_set,
            alias=target.alias,
            rollback_alias=target.rollback_alias,
            output=output,
            **rollout,
        )
    except FerryError as e:
        fail(e, output, repository=repository, asg=rollout["group"])


__all__ = ["container"]

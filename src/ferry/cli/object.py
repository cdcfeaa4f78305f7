"""Object command group: aliases as permalink objects in S3.

Each artifact set lives under ``{prefix}/{name}/`` in a bucket. Builds are
immutable objects at ``{prefix}/{name}/{build_id}/{name}``; aliases are
copies at ``{prefix}/{name}/{name}.{alias}`` tagged with binding metadata.

Example:
    $ ferry object push a1b2c3d --bucket releases --name migrator --file dist/migrator.zip
    $ ferry --env prod object promote a1b2c3d --bucket releases --name migrator \\
        --container-repository backend
    $ ferry object rollback --bucket releases --name migrator --swap
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import click
import structlog

from ferry.cli import _factory
from ferry.cli._rollout import ROLLOUT_EPILOG, rollout_options, run_rollout
from ferry.cli.utils import OUTPUT_CHOICES, emit, fail, info
from ferry.console import render_promotion, render_push, render_rollback, render_set_status
from ferry.environment import OBJECT_LATEST_ALIAS, OBJECT_ROLLBACK_ALIAS
from ferry.errors import FerryError
from ferry.promotion import PromotionEngine
from ferry.schemas.artifacts import DEFAULT_OBJECT_PREFIX, ArtifactSet, BackendKind
from ferry.store.objects import ObjectArtifactStore

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
        "--bucket",
        required=True,
        help="S3 bucket holding the artifact set.",
        metavar="BUCKET",
    ),
    click.option(
        "--name",
        required=True,
        help="Logical artifact name.",
        metavar="NAME",
    ),
    click.option(
        "--prefix",
        default=DEFAULT_OBJECT_PREFIX,
        show_default=True,
        help="Key prefix under which artifact sets live.",
    ),
    click.option(
        "--output",
        type=click.Choice(list(OUTPUT_CHOICES), case_sensitive=False),
        default="table",
        show_default=True,
        help="Output format.",
    ),
]

_ALIAS_OPTIONS = [
    click.option(
        "--latest-alias",
        default=OBJECT_LATEST_ALIAS,
        show_default=True,
        help="Live alias.",
        metavar="ALIAS",
    ),
    click.option(
        "--rollback-alias",
        default=OBJECT_ROLLBACK_ALIAS,
        show_default=True,
        help="Rollback alias.",
        metavar="ALIAS",
    ),
]

_BINDING_OPTIONS = [
    click.option(
        "--container-repository",
        default=None,
        help="Record the container build this object runs with.",
        metavar="NAME",
    ),
    click.option(
        "--container-latest-tag",
        default=None,
        help="Container live tag. Defaults to the environment name.",
        metavar="TAG",
    ),
    click.option(
        "--container-commit-tag",
        default=None,
        help="Container commit tag. Resolved from the live tag when omitted.",
        metavar="TAG",
    ),
]


def _apply(options: list[Callable[[F], F]]) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        for option in reversed(options):
            func = option(func)
        return func

    return decorator


object_options = _apply(_COMMON_OPTIONS)
alias_options = _apply(_ALIAS_OPTIONS)
binding_options = _apply(_BINDING_OPTIONS)


def _artifact_set(region: str, bucket: str, name: str, prefix: str) -> ArtifactSet:
    return ArtifactSet(
        backend=BackendKind.OBJECT,
        region=region,
        repository=bucket,
        name=name,
        prefix=prefix,
    )


def _store(
    ctx: click.Context,
    region: str,
    container_repository: str | None = None,
    container_latest_tag: str | None = None,
    container_commit_tag: str | None = None,
) -> ObjectArtifactStore:
    environment = _factory.get_environment(ctx)
    binding = _factory.resolve_container_binding(
        region,
        environment,
        container_repository,
        latest_tag=container_latest_tag,
        commit_tag=container_commit_tag,
    )
    logger.debug(
        "object_binding",
        environment=binding.environment,
        container_repository=binding.container_repository,
        container_commit_tag=binding.container_commit_tag,
        operator=_factory.get_settings(ctx).resolved_operator(),
    )
    return _factory.create_object_store(region, binding)


@click.group(
    name="object",
    help="Push, promote, roll back and roll out S3 objects.",
)
def object_group() -> None:
    """Object artifact commands."""


@object_group.command(
    name="list",
    help="Show the live alias, rollback alias and last pushed object.",
    epilog="""
Exit Codes:
    0  - Success
    2  - Invalid alias name
    5  - AWS call failed
""",
)
@object_options
@alias_options
@click.pass_context
def list_command(
    ctx: click.Context,
    region: str | None,
    bucket: str,
    name: str,
    prefix: str,
    output: str,
    latest_alias: str,
    rollback_alias: str,
) -> None:
    region = _factory.resolve_region(ctx, region)
    artifact_set = _artifact_set(region, bucket, name, prefix)
    try:
        engine = PromotionEngine(_store(ctx, region))
        status = engine.list(artifact_set, latest_alias, rollback_alias)
    except FerryError as e:
        fail(e, output, bucket=bucket, name=name)
    emit(status, output, render_set_status(status))


@object_group.command(
    name="promote",
    help="Copy BUILD_ID onto the live alias, archiving the old object to the rollback alias.",
    epilog="""
Exit Codes:
    0  - Success (including when BUILD_ID is already live)
    1  - Container commit tag could not be resolved
    2  - Invalid build id or alias name
    3  - BUILD_ID was never pushed
    5  - AWS call failed
""",
)
@click.argument("build_id")
@object_options
@alias_options
@binding_options
@click.pass_context
def promote_command(
    ctx: click.Context,
    build_id: str,
    region: str | None,
    bucket: str,
    name: str,
    prefix: str,
    output: str,
    latest_alias: str,
    rollback_alias: str,
    container_repository: str | None,
    container_latest_tag: str | None,
    container_commit_tag: str | None,
) -> None:
    region = _factory.resolve_region(ctx, region)
    artifact_set = _artifact_set(region, bucket, name, prefix)
    try:
        store = _store(
            ctx,
            region,
            container_repository,
            container_latest_tag,
            container_commit_tag,
        )
        result = PromotionEngine(store).promote(
            artifact_set,
            build_id,
            latest_alias,
            rollback_alias,
        )
    except FerryError as e:
        fail(e, output, bucket=bucket, name=name, alias=latest_alias)
    emit(result, output, render_promotion(result))
    if output == "table" and result.current is not None:
        url = store.console_url(artifact_set, result.current)
        if url:
            info(f"🌐 Console: {url}")


@object_group.command(
    name="rollback",
    help="Point the live alias back at the object held by the rollback alias.",
    epilog="""
Exit Codes:
    0  - Success
    1  - Container commit tag could not be resolved
    2  - Invalid alias name
    4  - Rollback alias is not set; nothing was changed
    5  - AWS call failed
""",
)
@object_options
@alias_options
@binding_options
@click.option(
    "--swap",
    is_flag=True,
    default=False,
    help="Also move the current live object to the rollback alias.",
)
@click.pass_context
def rollback_command(
    ctx: click.Context,
    region: str | None,
    bucket: str,
    name: str,
    prefix: str,
    output: str,
    latest_alias: str,
    rollback_alias: str,
    container_repository: str | None,
    container_latest_tag: str | None,
    container_commit_tag: str | None,
    swap: bool,
) -> None:
    region = _factory.resolve_region(ctx, region)
    artifact_set = _artifact_set(region, bucket, name, prefix)
    try:
        store = _store(
            ctx,
            region,
            container_repository,
            container_latest_tag,
            container_commit_tag,
        )
        result = PromotionEngine(store).rollback(
            artifact_set, latest_alias, rollback_alias, swap=swap
        )
        if container_repository is not None:
            store.retag_alias(artifact_set, latest_alias, source="rollback")
    except FerryError as e:
        fail(e, output, bucket=bucket, name=name, alias=latest_alias)
    emit(result, output, render_rollback(result))
    if output == "table" and container_repository is not None:
        info(f"🏷️  Updated {latest_alias} binding tags after rollback")


@object_group.command(
    name="rollout",
    help="Start an instance refresh; with --wait, roll the live alias back once on timeout.",
    epilog=ROLLOUT_EPILOG,
)
@object_options
@alias_options
@binding_options
@rollout_options
@click.pass_context
def rollout_command(
    ctx: click.Context,
    region: str | None,
    bucket: str,
    name: str,
    prefix: str,
    output: str,
    latest_alias: str,
    rollback_alias: str,
    container_repository: str | None,
    container_latest_tag: str | None,
    container_commit_tag: str | None,
    **rollout: Any,
) -> None:
    region = _factory.resolve_region(ctx, region)
    artifact_set = _artifact_set(region, bucket, name, prefix)
    if output == "table":
        info(f"📦 {artifact_set} ({latest_alias} / {rollback_alias})")
    try:
        store = _store(
            ctx,
            region,
            container_repository,
            container_latest_tag,
            container_commit_tag,
        )
        run_rollout(
            ctx,
            region=region,
            engine=PromotionEngine(store),
            artifact_set=artifact_set,
            alias=latest_alias,
            rollback_alias=rollback_alias,
            output=output,
            **rollout,
        )
    except FerryError as e:
        fail(e, output, bucket=bucket, name=name, asg=rollout["group"])


@object_group.command(
    name="push",
    help="Upload FILE as the immutable object for BUILD_ID.",
    epilog="""
Exit Codes:
    0  - Uploaded, or already present without --force
    1  - File not found
    2  - Invalid build id
    5  - AWS call failed
""",
)
@click.argument("build_id")
@object_options
@click.option(
    "--file",
    "path",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Local file to upload.",
)
@click.option(
    "--force",
    is_flag=True,
    default=False,
    help="Overwrite the build object if it already exists.",
)
@click.pass_context
def push_command(
    ctx: click.Context,
    build_id: str,
    region: str | None,
    bucket: str,
    name: str,
    prefix: str,
    output: str,
    path: Path,
    force: bool,
) -> None:
    region = _factory.resolve_region(ctx, region)
    artifact_set = _artifact_set(region, bucket, name, prefix)
    store = _factory.create_object_store(region)
    try:
        result = store.push(artifact_set, build_id, path, force=force)
    except FerryError as e:
        fail(e, output, bucket=bucket, name=name, build_id=build_id)
    url = store.console_url(artifact_set, result.ref) if output == "table" else None
    emit(result, output, render_push(result, url))


__all__ = ["object_group"]

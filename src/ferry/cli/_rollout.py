"""Rollout options and runner shared by `container rollout` and `object rollout`."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import click

from ferry.cli import _factory
from ferry.cli.utils import emit, info, success, warn
from ferry.console import ConsoleRolloutReporter, format_duration, render_promotion
from ferry.promotion import PromotionEngine
from ferry.rollout import RolloutCoordinator
from ferry.schemas.artifacts import ArtifactSet
from ferry.schemas.rollout import EscalationTarget, RefreshPreferences, RolloutRequest
from ferry.shutdown import ShutdownContext

F = TypeVar("F", bound=Callable[..., Any])

_ROLLOUT_OPTIONS = [
    click.option(
        "--asg",
        "group",
        required=True,
        help="Auto Scaling Group to refresh.",
        metavar="NAME",
    ),
    click.option(
        "--build-id",
        default=None,
        help="Promote this build before starting the refresh.",
        metavar="ID",
    ),
    click.option(
        "--strategy",
        default="Rolling",
        show_default=True,
        help="Instance refresh strategy.",
    ),
    click.option(
        "--instance-warmup",
        type=click.IntRange(min=0),
        default=120,
        show_default=True,
        help="Seconds before a new instance counts as healthy.",
    ),
    click.option(
        "--min-healthy-percentage",
        type=click.IntRange(0, 100),
        default=90,
        show_default=True,
        help="Capacity kept in service during the refresh.",
    ),
    click.option(
        "--skip-matching/--no-skip-matching",
        default=True,
        show_default=True,
        help="Skip instances already on the desired configuration.",
    ),
    click.option(
        "--wait",
        is_flag=True,
        default=False,
        help="Wait for the refresh to finish.",
    ),
    click.option(
        "--timeout",
        "timeout_seconds",
        type=click.IntRange(min=1),
        default=None,
        help="Seconds per wait window. Defaults to FERRY_ROLLOUT_TIMEOUT_SECONDS or 1800.",
    ),
    click.option(
        "--poll",
        "poll_seconds",
        type=click.IntRange(min=1),
        default=None,
        help="Seconds between status polls. Defaults to FERRY_ROLLOUT_POLL_SECONDS or 10.",
    ),
    click.option(
        "--no-auto-rollback",
        is_flag=True,
        default=False,
        help="On the first timeout, keep waiting without rolling the artifact back.",
    ),
]

ROLLOUT_EPILOG = """
Exit Codes:
    0   - Refresh started (or finished successfully with --wait)
    3   - --build-id not found
    5   - AWS call failed
    6   - Auto Scaling Group not found
    10  - Refresh failed, was cancelled or could not start
    11  - Refresh succeeded only after the artifact was rolled back automatically
    12  - Refresh timed out twice
    130 - Interrupted while waiting
"""


def rollout_options(func: F) -> F:
    for option in reversed(_ROLLOUT_OPTIONS):
        func = option(func)
    return func


def run_rollout(
    ctx: click.Context,
    *,
    region: str,
    engine: PromotionEngine,
    artifact_set: ArtifactSet,
    alias: str,
    rollback_alias: str,
    group: str,
    build_id: str | None,
    strategy: str,
    instance_warmup: int,
    min_healthy_percentage: int,
    skip_matching: bool,
    wait: bool,
    timeout_seconds: int | None,
    poll_seconds: int | None,
    no_auto_rollback: bool,
    output: str,
) -> None:
    """Optionally promote, then start (and optionally watch) an instance refresh.

    FerryError propagates to the calling command.
    """
    settings = _factory.get_settings(ctx)

    if build_id is not None:
        promotion = engine.promote(artifact_set, build_id, alias, rollback_alias)
        if output == "table":
            info(render_promotion(promotion))

    request = RolloutRequest(
        group=group,
        strategy=strategy,
        preferences=RefreshPreferences(
            instance_warmup=instance_warmup,
            min_healthy_percentage=min_healthy_percentage,
            skip_matching=skip_matching,
        ),
        wait=wait,
        timeout_seconds=timeout_seconds or settings.rollout_timeout_seconds,
        poll_interval_seconds=poll_seconds or settings.rollout_poll_seconds,
    )
    escalation = None
    if no_auto_rollback:
        if wait:
            warn("Automatic artifact rollback disabled", alias=alias)
    else:
        escalation = EscalationTarget(
            artifact_set=artifact_set,
            alias=alias,
            rollback_alias=rollback_alias,
        )

    reporter = ConsoleRolloutReporter(
        region,
        interactive=output == "table",
        timeout_seconds=request.timeout_seconds,
    )
    coordinator = RolloutCoordinator(
        _factory.create_fleet_driver(region),
        engine,
        reporter=reporter,
    )

    if wait and output == "table":
        info(
            f"⏱️  Waiting up to {format_duration(request.timeout_seconds)} "
            f"(polling every {request.poll_interval_seconds:g}s)"
        )

    shutdown = ShutdownContext()
    with shutdown.install_signal_handlers():
        result = coordinator.rollout(request, escalation=escalation, shutdown=shutdown)

    table = f"Refresh {result.refresh_id} on {result.group}: {result.status.value}"
    emit(result, output, table)
    if output == "table" and not wait:
        success(f"Check progress with: ferry fleet status --asg {group} --region {region}")


__all__ = ["ROLLOUT_EPILOG", "rollout_options", "run_rollout"]

"""Rollout coordinator: drive a fleet instance refresh and self-heal once.

The coordinator starts an instance refresh and, when asked to wait, polls its
status. If the refresh has not converged when the wait window runs out, the
coordinator rolls the *artifact* back (never the infrastructure) through the
PromotionEngine, resets the window and keeps watching the same refresh. A
second timeout is fatal.

Session meta-state::

    waiting           --timeout-->           rolled_back_once
    waiting           --Successful-->        succeeded
    rolled_back_once  --Successful-->        succeeded (reported as exit 11)
    any               --Failed/Cancelled-->  failed_hard
    rolled_back_once  --timeout-->           failed_hard

Example:
    >>> coordinator = RolloutCoordinator(driver, engine)
    >>> result = coordinator.rollout(
    ...     RolloutRequest(group="backend-prod", wait=True),
    ...     escalation=EscalationTarget(artifact_set=backend, alias="prod",
    ...                                 rollback_alias="rollback_prod"),
    ... )
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Protocol

import structlog

from ferry.errors import (
    BackendError,
    DoubleTimeoutError,
    FerryError,
    RolloutConvergedAfterRollbackError,
    RolloutFailedError,
    RolloutInterruptedError,
    RolloutStartError,
)
from ferry.promotion import PromotionEngine
from ferry.schemas.promotion import RollbackResult
from ferry.schemas.rollout import (
    EscalationTarget,
    RefreshPreferences,
    RefreshState,
    RefreshStatus,
    RolloutRequest,
    RolloutResult,
    RolloutSession,
    SessionState,
)
from ferry.shutdown import ShutdownContext
from ferry.telemetry.tracing import create_span, trace_id_of

logger = structlog.get_logger(__name__)


class FleetDriver(Protocol):
    """What the coordinator needs from a fleet backend."""

    def start_refresh(
        self, group: str, strategy: str, preferences: RefreshPreferences
    ) -> str: ...

    def get_latest_status(self, group: str) -> RefreshState: ...


class RolloutReporter(Protocol):
    """Receives progress events from the coordinator."""

    def started(self, session: RolloutSession) -> None: ...

    def poll(self, session: RolloutSession, elapsed: float) -> None: ...

    def escalation(
        self,
        session: RolloutSession,
        target: EscalationTarget | None,
        result: RollbackResult | None,
    ) -> None: ...

    def finished(self, session: RolloutSession, elapsed: float) -> None: ...


class NullReporter:
    """Reporter that ignores every event."""

    def started(self, session: RolloutSession) -> None:
        pass

    def poll(self, session: RolloutSession, elapsed: float) -> None:
        pass

    def escalation(
        self,
        session: RolloutSession,
        target: EscalationTarget | None,
        result: RollbackResult | None,
    ) -> None:
        pass

    def finished(self, session: RolloutSession, elapsed: float) -> None:
        pass


class RolloutCoordinator:
    """Start, watch and escalate one fleet refresh at a time.

    Args:
        driver: Fleet backend.
        engine: Promotion engine used for the escalation rollback.
        clock: Monotonic clock in seconds.
        sleep: Sleep function. When None, sleeping waits on the shutdown
            context so a shutdown request wakes the loop immediately.
        reporter: Progress sink.
    """

    def __init__(
        self,
        driver: FleetDriver,
        engine: PromotionEngine | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] | None = None,
        reporter: RolloutReporter | None = None,
    ) -> None:
        self.driver = driver
        self.engine = engine
        self._clock = clock
        self._sleep = sleep
        self.reporter: RolloutReporter = reporter or NullReporter()

    def _pause(self, seconds: float, shutdown: ShutdownContext) -> bool:
        if self._sleep is None:
            return shutdown.wait(seconds)
        self._sleep(seconds)
        return shutdown.requested

    def rollout(
        self,
        request: RolloutRequest,
        escalation: EscalationTarget | None = None,
        shutdown: ShutdownContext | None = None,
    ) -> RolloutResult:
        """Start an instance refresh and optionally wait for it.

        Args:
            request: Group, strategy, preferences and wait parameters.
            escalation: Alias to roll back when the first window times out.
                Without one, the first timeout only starts the second window.
            shutdown: Checked every iteration; requesting it ends the wait.

        Returns:
            RolloutResult. Without ``wait`` it carries the started refresh id.

        Raises:
            RolloutStartError: If the refresh could not be started (not retried).
            FleetNotFoundError: If the group does not exist.
            RolloutFailedError: If the refresh ends Failed or Cancelled.
            RolloutConvergedAfterRollbackError: If it succeeds only after escalation.
            DoubleTimeoutError: If it times out again after escalation.
            RolloutInterruptedError: If shutdown is requested while waiting.
        """
        if escalation is not None and self.engine is None:
            raise FerryError("An escalation target needs a PromotionEngine")
        shutdown = shutdown or ShutdownContext()

        with create_span(
            "ferry.rollout",
            attributes={
                "ferry.group": request.group,
                "ferry.strategy": request.strategy,
                "ferry.wait": request.wait,
                "ferry.timeout_seconds": request.timeout_seconds,
            },
        ) as span:
            trace_id = trace_id_of(span)
            log = logger.bind(group=request.group, trace_id=trace_id)

            try:
                refresh_id = self.driver.start_refresh(
                    request.group,
                    request.strategy,
                    request.preferences,
                )
            except BackendError as e:
                log.error("rollout_start_failed", error=str(e))
                raise RolloutStartError(request.group, str(e)) from e

            now = self._clock()
            session = RolloutSession(
                group=request.group,
                refresh_id=refresh_id,
                started_at=now,
                window_started_at=now,
            )
            span.set_attribute("ferry.refresh_id", refresh_id)
            log = log.bind(refresh_id=refresh_id)
            log.info("rollout_started", strategy=request.strategy, wait=request.wait)
            self.reporter.started(session)

            if not request.wait:
                return self._result(session, now, waited=False, trace_id=trace_id)

            while True:
                if shutdown.requested:
                    self._interrupt(session, log)

                session.last = self.driver.get_latest_status(request.group)
                session.polls += 1
                now = self._clock()
                status = session.last.status
                self.reporter.poll(session, session.elapsed(now))
                log.debug("rollout_status", status=session.last.display, polls=session.polls)

                if status is RefreshStatus.SUCCESSFUL:
                    session.state = SessionState.SUCCEEDED
                    self.reporter.finished(session, session.elapsed(now))
                    span.set_attribute("ferry.rollback_triggered", session.rollback_triggered)
                    if session.rollback_triggered:
                        log.warning("rollout_converged_after_rollback")
                        raise RolloutConvergedAfterRollbackError(
                            request.group,
                            refresh_id,
                            alias=escalation.alias if escalation else None,
                        )
                    log.info("rollout_succeeded", elapsed=session.elapsed(now))
                    return self._result(session, now, waited=True, trace_id=trace_id)

                if status in (RefreshStatus.FAILED, RefreshStatus.CANCELLED):
                    session.state = SessionState.FAILED_HARD
                    self.reporter.finished(session, session.elapsed(now))
                    log.error("rollout_failed", status=session.last.display)
                    raise RolloutFailedError(
                        request.group,
                        refresh_id,
                        session.last.display,
                        rollback_triggered=session.rollback_triggered,
                    )

                if session.window_elapsed(now) >= request.timeout_seconds:
                    if session.rollback_triggered:
                        session.state = SessionState.FAILED_HARD
                        self.reporter.finished(session, session.elapsed(now))
                        log.error("rollout_double_timeout", status=session.last.display)
                        raise DoubleTimeoutError(
                            request.group,
                            refresh_id,
                            request.timeout_seconds,
                            session.last.display,
                        )
                    self._escalate(session, escalation, log)
                    session.window_started_at = now

                if self._pause(request.poll_interval_seconds, shutdown):
                    self._interrupt(session, log)

    def _escalate(
        self,
        session: RolloutSession,
        escalation: EscalationTarget | None,
        log: structlog.BoundLogger,
    ) -> None:
        log.warning("rollout_timeout", status=session.last.display, polls=session.polls)
        result: RollbackResult | None = None
        if escalation is None or self.engine is None:
            log.warning("rollout_timeout_no_escalation")
        else:
            try:
                result = self.engine.rollback(
                    escalation.artifact_set,
                    escalation.alias,
                    escalation.rollback_alias,
                )
            except FerryError as e:
                session.state = SessionState.FAILED_HARD
                log.error("rollout_escalation_failed", alias=escalation.alias, error=str(e))
                raise
            log.warning(
                "rollout_escalated",
                alias=escalation.alias,
                restored=result.current.label(),
            )
        session.rollback_triggered = True
        session.state = SessionState.ROLLED_BACK_ONCE
        self.reporter.escalation(session, escalation, result)

    def _interrupt(self, session: RolloutSession, log: structlog.BoundLogger) -> None:
        now = self._clock()
        self.reporter.finished(session, session.elapsed(now))
        log.warning("rollout_interrupted", rollback_triggered=session.rollback_triggered)
        raise RolloutInterruptedError(
            session.group,
            session.refresh_id,
            session.rollback_triggered,
        )

    def _result(
        self,
        session: RolloutSession,
        now: float,
        *,
        waited: bool,
        trace_id: str,
    ) -> RolloutResult:
        return RolloutResult(
            group=session.group,
            refresh_id=session.refresh_id,
            waited=waited,
            status=session.last.status if waited else RefreshStatus.PENDING,
            state=session.state,
            rollback_triggered=session.rollback_triggered,
            elapsed_seconds=session.elapsed(now),
            polls=session.polls,
            trace_id=trace_id,
        )


__all__ = [
    "FleetDriver",
    "NullReporter",
    "RolloutCoordinator",
    "RolloutReporter",
]

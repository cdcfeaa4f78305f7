"""Unit tests for the RolloutCoordinator state machine.

The fake clock only advances when the coordinator sleeps, so a window of
``timeout_seconds / poll_interval_seconds`` polls elapses per timeout.

Requirements tested:
    FR-009: Rollout start and wait loop
    FR-010: Rollout escalation and double timeout
    FR-011: Cooperative shutdown
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from ferry.errors import (
    BackendError,
    DoubleTimeoutError,
    FerryError,
    FleetNotFoundError,
    RollbackNotFoundError,
    RolloutConvergedAfterRollbackError,
    RolloutFailedError,
    RolloutInterruptedError,
    RolloutStartError,
)
from ferry.promotion import PromotionEngine
from ferry.rollout import RolloutCoordinator
from ferry.schemas.rollout import (
    EscalationTarget,
    RefreshStatus,
    RolloutRequest,
    SessionState,
)
from ferry.shutdown import ShutdownContext


def _request(**overrides) -> RolloutRequest:
    values = {
        "group": "backend-prod",
        "wait": True,
        "timeout_seconds": 30,
        "poll_interval_seconds": 10,
    }
    values.update(overrides)
    return RolloutRequest(**values)


@pytest.fixture
def live_store(store):
    """Store with latest=sha-222 and rollback=sha-111."""
    store.set_alias("latest", "sha-222")
    store.set_alias("rollback", "sha-111")
    return store


@pytest.fixture
def escalation(container_set) -> EscalationTarget:
    return EscalationTarget(artifact_set=container_set)


def _coordinator(driver, store, clock, reporter=None) -> RolloutCoordinator:
    return RolloutCoordinator(
        driver,
        PromotionEngine(store),
        clock=clock,
        sleep=clock.sleep,
        reporter=reporter,
    )


class TestRolloutStart:
    """Tests for starting a refresh."""

    @pytest.mark.requirement("FR-009")
    def test_no_wait_returns_refresh_id(self, fleet_driver, store, clock) -> None:
        coordinator = _coordinator(fleet_driver, store, clock)

        result = coordinator.rollout(_request(wait=False))

        assert result.refresh_id == "refresh-0001"
        assert result.waited is False
        assert result.status is RefreshStatus.PENDING
        assert fleet_driver.polls == 0
        assert clock.sleeps == []

    @pytest.mark.requirement("FR-009")
    def test_start_uses_strategy_and_preferences(self, fleet_driver, store, clock) -> None:
        coordinator = _coordinator(fleet_driver, store, clock)

        coordinator.rollout(_request(wait=False, strategy="ReplaceRootVolume"))

        group, strategy, preferences = fleet_driver.started[0]
        assert group == "backend-prod"
        assert strategy == "ReplaceRootVolume"
        assert preferences.min_healthy_percentage == 90

    @pytest.mark.requirement("FR-009")
    def test_start_failure_is_fatal_and_not_retried(self, fleet_driver, store, clock) -> None:
        fleet_driver.start_error = BackendError(
            "autoscaling", "StartInstanceRefresh", "InstanceRefreshInProgress"
        )
        coordinator = _coordinator(fleet_driver, store, clock)

        with pytest.raises(RolloutStartError) as exc_info:
            coordinator.rollout(_request())

        assert exc_info.value.exit_code == 10
        assert "InstanceRefreshInProgress" in str(exc_info.value)
        assert fleet_driver.started == []
        assert fleet_driver.polls == 0

    @pytest.mark.requirement("FR-009")
    def test_missing_group_propagates(self, fleet_driver, store, clock) -> None:
        fleet_driver.start_error = FleetNotFoundError("backend-prod", "eu-west-1")
        coordinator = _coordinator(fleet_driver, store, clock)

        with pytest.raises(FleetNotFoundError):
            coordinator.rollout(_request())

    @pytest.mark.requirement("FR-010")
    def test_escalation_requires_engine(self, fleet_driver, escalation) -> None:
        coordinator = RolloutCoordinator(fleet_driver)

        with pytest.raises(FerryError, match="PromotionEngine"):
            coordinator.rollout(_request(), escalation=escalation)


class TestRolloutWait:
    """Tests for the wait loop."""

    @pytest.mark.requirement("FR-009")
    def test_success_on_first_poll(self, fleet_driver, store, clock) -> None:
        coordinator = _coordinator(fleet_driver, store, clock)

        result = coordinator.rollout(_request())

        assert result.status is RefreshStatus.SUCCESSFUL
        assert result.state is SessionState.SUCCEEDED
        assert result.rollback_triggered is False
        assert result.polls == 1
        assert clock.sleeps == []

    @pytest.mark.requirement("FR-009")
    def test_in_progress_then_success(self, store, clock, make_driver) -> None:
        driver = make_driver(["Pending", "InProgress", "Successful"])
        coordinator = _coordinator(driver, store, clock)

        result = coordinator.rollout(_request(timeout_seconds=600))

        assert result.status is RefreshStatus.SUCCESSFUL
        assert result.polls == 3
        assert clock.sleeps == [10, 10]
        assert result.elapsed_seconds == 20

    @pytest.mark.requirement("FR-009")
    def test_unknown_and_missing_statuses_keep_waiting(self, store, clock, make_driver) -> None:
        driver = make_driver([None, "SomethingNew", "Successful"])
        coordinator = _coordinator(driver, store, clock)

        result = coordinator.rollout(_request(timeout_seconds=600))

        assert result.status is RefreshStatus.SUCCESSFUL
        assert result.polls == 3

    @pytest.mark.parametrize("raw", ["Failed", "Cancelled", "RollbackSuccessful"])
    @pytest.mark.requirement("FR-009")
    def test_terminal_failure_short_circuits(
        self, live_store, clock, make_driver, escalation, raw
    ) -> None:
        driver = make_driver([raw])
        coordinator = _coordinator(driver, live_store, clock)

        with pytest.raises(RolloutFailedError) as exc_info:
            coordinator.rollout(_request(), escalation=escalation)

        assert exc_info.value.exit_code == 10
        assert exc_info.value.status == raw
        assert exc_info.value.rollback_triggered is False
        assert driver.polls == 1
        assert clock.sleeps == []
        assert live_store.mutations() == []

    @pytest.mark.requirement("FR-010")
    def test_escalation_fires_once_then_success_is_reported(
        self, live_store, clock, make_driver, escalation
    ) -> None:
        """Converging after the automatic rollback is exit 11, not success."""
        driver = make_driver(["InProgress"] * 5 + ["Successful"])
        coordinator = _coordinator(driver, live_store, clock)

        with pytest.raises(RolloutConvergedAfterRollbackError) as exc_info:
            coordinator.rollout(_request(), escalation=escalation)

        assert exc_info.value.exit_code == 11
        assert exc_info.value.alias == "latest"
        assert live_store.build_of("latest") == "sha-111"
        assert live_store.mutations() == [("bind_alias", "latest", "sha-111")]

    @pytest.mark.requirement("FR-010")
    def test_double_timeout_rolls_back_exactly_once(
        self, live_store, clock, make_driver, escalation
    ) -> None:
        driver = make_driver(["InProgress"])
        reporter = MagicMock()
        coordinator = _coordinator(driver, live_store, clock, reporter=reporter)

        with pytest.raises(DoubleTimeoutError) as exc_info:
            coordinator.rollout(_request(), escalation=escalation)

        assert exc_info.value.exit_code == 12
        assert exc_info.value.last_status == "InProgress"
        assert live_store.mutations() == [("bind_alias", "latest", "sha-111")]
        reporter.escalation.assert_called_once()
        # polls at t=0,10,20,30 (timeout), then 40,50,60 (second timeout)
        assert driver.polls == 7

    @pytest.mark.requirement("FR-010")
    def test_window_resets_after_escalation(
        self, live_store, clock, make_driver, escalation
    ) -> None:
        """The second window starts at the escalation, not at the refresh start."""
        driver = make_driver(["InProgress"] * 6 + ["Successful"])
        coordinator = _coordinator(driver, live_store, clock)

        with pytest.raises(RolloutConvergedAfterRollbackError):
            coordinator.rollout(_request(), escalation=escalation)

        assert driver.polls == 7

    @pytest.mark.requirement("FR-010")
    def test_timeout_without_escalation_target(self, store, clock, make_driver) -> None:
        driver = make_driver(["InProgress"])
        coordinator = _coordinator(driver, store, clock)

        with pytest.raises(DoubleTimeoutError):
            coordinator.rollout(_request())

        assert store.mutations() == []

    @pytest.mark.requirement("FR-010")
    def test_timeout_without_engine(self, clock, make_driver) -> None:
        """A coordinator with no PromotionEngine still reaches the second timeout."""
        driver = make_driver(["InProgress"])
        coordinator = RolloutCoordinator(driver, clock=clock, sleep=clock.sleep)

        with pytest.raises(DoubleTimeoutError) as exc_info:
            coordinator.rollout(_request())

        assert exc_info.value.last_status == "InProgress"
        assert driver.polls == 7

    @pytest.mark.requirement("FR-010")
    def test_failure_after_escalation_records_rollback(
        self, live_store, clock, make_driver, escalation
    ) -> None:
        driver = make_driver(["InProgress"] * 4 + ["Failed"])
        coordinator = _coordinator(driver, live_store, clock)

        with pytest.raises(RolloutFailedError) as exc_info:
            coordinator.rollout(_request(), escalation=escalation)

        assert exc_info.value.rollback_triggered is True

    @pytest.mark.requirement("FR-010")
    def test_escalation_failure_propagates(self, store, clock, make_driver, escalation) -> None:
        """A missing rollback alias during escalation ends the session."""
        store.set_alias("latest", "sha-222")
        driver = make_driver(["InProgress"])
        coordinator = _coordinator(driver, store, clock)

        with pytest.raises(RollbackNotFoundError):
            coordinator.rollout(_request(), escalation=escalation)

        assert store.build_of("latest") == "sha-222"


class TestRolloutShutdown:
    """Tests for cooperative shutdown while waiting."""

    @pytest.mark.requirement("FR-011")
    def test_shutdown_during_sleep_interrupts(self, store, clock, make_driver) -> None:
        driver = make_driver(["InProgress"])
        shutdown = ShutdownContext()
        clock.on_sleep = lambda count: shutdown.request("SIGTERM") if count == 2 else None
        coordinator = _coordinator(driver, store, clock)

        with pytest.raises(RolloutInterruptedError) as exc_info:
            coordinator.rollout(_request(timeout_seconds=600), shutdown=shutdown)

        assert exc_info.value.exit_code == 130
        assert exc_info.value.rollback_triggered is False
        assert driver.polls == 2

    @pytest.mark.requirement("FR-011")
    def test_shutdown_before_first_poll(self, fleet_driver, store, clock) -> None:
        shutdown = ShutdownContext()
        shutdown.request()
        coordinator = _coordinator(fleet_driver, store, clock)

        with pytest.raises(RolloutInterruptedError):
            coordinator.rollout(_request(), shutdown=shutdown)

        assert fleet_driver.polls == 0

    @pytest.mark.requirement("FR-011")
    def test_default_sleep_waits_on_shutdown_event(self, store, clock, make_driver) -> None:
        """Without an injected sleep the loop blocks on the shutdown event."""
        driver = make_driver(["InProgress"])
        shutdown = MagicMock(spec=ShutdownContext)
        shutdown.requested = False
        shutdown.wait.return_value = True
        coordinator = RolloutCoordinator(driver, PromotionEngine(store), clock=clock)

        with pytest.raises(RolloutInterruptedError):
            coordinator.rollout(_request(), shutdown=shutdown)

        shutdown.wait.assert_called_once_with(10)


class TestRolloutReporter:
    """Tests for reporter events."""

    @pytest.mark.requirement("FR-009")
    def test_reporter_sees_lifecycle(self, store, clock, make_driver) -> None:
        driver = make_driver(["InProgress", "Successful"])
        reporter = MagicMock()
        coordinator = _coordinator(driver, store, clock, reporter=reporter)

        coordinator.rollout(_request(timeout_seconds=600))

        reporter.started.assert_called_once()
        assert reporter.poll.call_count == 2
        reporter.finished.assert_called_once()
        reporter.escalation.assert_not_called()


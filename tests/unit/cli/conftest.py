"""CLI test fixtures: a Click runner and factories patched to in-memory fakes."""

from __future__ import annotations

import functools

import pytest
from click.testing import CliRunner

from ferry.rollout import RolloutCoordinator
from ferry.schemas.artifacts import BackendKind


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("FERRY_CONFIG", "FERRY_REGION", "FERRY_ENVIRONMENT", "FERRY_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click test runner."""
    return CliRunner()


@pytest.fixture
def registry(store, monkeypatch: pytest.MonkeyPatch):
    """The in-memory store, served as the ECR store of every container command."""
    monkeypatch.setattr(
        "ferry.cli._factory.create_registry_store",
        lambda region, known_aliases=(): store,
    )
    return store


@pytest.fixture
def bucket(store, monkeypatch: pytest.MonkeyPatch):
    """An in-memory object store with builds sha-111 and sha-222."""
    fake = type(store)(BackendKind.OBJECT)
    fake.push("sha-111")
    fake.push("sha-222")
    bindings = []

    def create(region, binding=None):
        bindings.append(binding)
        return fake

    fake.bindings = bindings
    monkeypatch.setattr("ferry.cli._factory.create_object_store", create)
    return fake


@pytest.fixture
def fleet_driver_factory(fleet_driver, monkeypatch: pytest.MonkeyPatch):
    """Route create_fleet_driver to the scripted fleet driver."""
    monkeypatch.setattr("ferry.cli._factory.create_fleet_driver", lambda region: fleet_driver)
    return fleet_driver


@pytest.fixture
def fake_time(clock, monkeypatch: pytest.MonkeyPatch):
    """Run CLI rollouts on the fake clock so wait windows elapse instantly."""
    monkeypatch.setattr(
        "ferry.cli._rollout.RolloutCoordinator",
        functools.partial(RolloutCoordinator, clock=clock, sleep=clock.sleep),
    )
    return clock

"""Shared fixtures for ferry tests.

Provides in-memory fakes so unit tests run without AWS:
- InMemoryArtifactStore: an ArtifactStore backed by dicts, with call
  recording and per-method failure injection
- ScriptedFleetDriver: returns a scripted sequence of refresh statuses
- FakeClock: a monotonic clock that only moves when the coordinator sleeps

Tests reach the fakes through fixtures; with importlib import mode a test
module cannot import this file by name.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import pytest
import structlog

from ferry.errors import FerryError
from ferry.schemas.artifacts import ArtifactRef, ArtifactSet, BackendKind
from ferry.schemas.rollout import RefreshPreferences, RefreshState
from ferry.store.base import ArtifactStore
from ferry.telemetry.tracing import set_tracer

if TYPE_CHECKING:
    from collections.abc import Generator


class InMemoryArtifactStore(ArtifactStore):
    """ArtifactStore over two dicts: builds and aliases.

    Aliases hold the bound ArtifactRef with its location rewritten to the
    alias, the way both real backends report a resolved alias.
    """

    def __init__(self, backend: BackendKind = BackendKind.CONTAINER) -> None:
        self._backend = backend
        self.builds: dict[str, ArtifactRef] = {}
        self.aliases: dict[str, ArtifactRef] = {}
        self.calls: list[tuple[str, ...]] = []
        self.failures: dict[str, FerryError] = {}
        self.unreadable_aliases: set[str] = set()
        self._pushed = 0

    @property
    def backend(self) -> BackendKind:
        return self._backend

    def push(self, build_id: str, native_id: str | None = None) -> ArtifactRef:
        self._pushed += 1
        ref = ArtifactRef(
            native_id=native_id or f"sha256:{build_id}",
            location=build_id,
            build_id=build_id,
            modified_at=datetime(2024, 1, 1, 0, self._pushed, tzinfo=timezone.utc),
        )
        self.builds[build_id] = ref
        return ref

    def set_alias(self, alias: str, build_id: str) -> None:
        self.aliases[alias] = self.builds[build_id].model_copy(update={"location": alias})

    def build_of(self, alias: str) -> str | None:
        ref = self.aliases.get(alias)
        return ref.build_id if ref else None

    def _record(self, name: str, *args: str) -> None:
        self.calls.append((name, *args))
        if name in self.failures:
            raise self.failures[name]

    def mutations(self) -> list[tuple[str, ...]]:
        return [c for c in self.calls if c[0] in ("bind_alias", "delete_alias")]

    def get_alias(self, artifact_set: ArtifactSet, alias: str) -> ArtifactRef | None:
        self._record("get_alias", alias)
        if alias in self.unreadable_aliases:
            return None
        return self.aliases.get(alias)

    def get_artifact(self, artifact_set: ArtifactSet, build_id: str) -> ArtifactRef | None:
        self._record("get_artifact", build_id)
        return self.builds.get(build_id)

    def bind_alias(self, artifact_set: ArtifactSet, alias: str, ref: ArtifactRef) -> None:
        self._record("bind_alias", alias, ref.build_id or ref.native_id)
        self.aliases[alias] = ref.model_copy(update={"location": alias})

    def delete_alias(self, artifact_set: ArtifactSet, alias: str) -> None:
        self._record("delete_alias", alias)
        self.aliases.pop(alias, None)

    def retag_alias(self, artifact_set: ArtifactSet, alias: str, **extra: str) -> None:
        """Object-store extra: record the re-tag of a bound alias."""
        self._record("retag_alias", alias, *sorted(f"{k}={v}" for k, v in extra.items()))

    def last_pushed(self, artifact_set: ArtifactSet) -> ArtifactRef | None:
        self._record("last_pushed")
        if not self.builds:
            return None
        return max(self.builds.values(), key=lambda r: r.modified_at or datetime.min)

    def alias_location(self, artifact_set: ArtifactSet, alias: str) -> str:
        return f"{artifact_set.repository}:{alias}"

    def console_url(self, artifact_set: ArtifactSet, ref: ArtifactRef) -> str | None:
        self._record("console_url", ref.native_id)
        return f"https://console.example/{ref.native_id}"


class ScriptedFleetDriver:
    """Fleet driver that replays a list of raw AWS statuses.

    Each poll consumes one status; the last one repeats forever.
    """

    def __init__(self, statuses: Iterable[str | None] = ("Successful",)) -> None:
        self.statuses = list(statuses)
        self.started: list[tuple[str, str, RefreshPreferences]] = []
        self.polls = 0
        self.start_error: Exception | None = None
        self.refresh_id = "refresh-0001"

    def start_refresh(self, group: str, strategy: str, preferences: RefreshPreferences) -> str:
        if self.start_error is not None:
            raise self.start_error
        self.started.append((group, strategy, preferences))
        return self.refresh_id

    def get_latest_status(self, group: str) -> RefreshState:
        index = min(self.polls, len(self.statuses) - 1)
        self.polls += 1
        raw = self.statuses[index]
        if raw is None:
            return RefreshState()
        return RefreshState.from_raw(raw, refresh_id=self.refresh_id)


class FakeClock:
    """Monotonic clock advanced only by ``sleep``."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []
        self.on_sleep: Any = None

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep is not None:
            self.on_sleep(len(self.sleeps))


@pytest.fixture
def container_set() -> ArtifactSet:
    return ArtifactSet(backend=BackendKind.CONTAINER, region="eu-west-1", repository="backend")


@pytest.fixture
def object_set() -> ArtifactSet:
    return ArtifactSet(
        backend=BackendKind.OBJECT,
        region="eu-west-1",
        repository="releases",
        name="migrator",
    )


@pytest.fixture
def store() -> InMemoryArtifactStore:
    """Container-backed in-memory store with builds sha-111 and sha-222 pushed."""
    fake = InMemoryArtifactStore()
    fake.push("sha-111")
    fake.push("sha-222")
    return fake


@pytest.fixture
def fleet_driver() -> ScriptedFleetDriver:
    return ScriptedFleetDriver()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _reset_tracer() -> Generator[None, None, None]:
    """Keep an injected test tracer from leaking into other tests."""
    yield
    set_tracer(None)


@pytest.fixture(autouse=True)
def _reset_logging() -> Generator[None, None, None]:
    """Drop logging bound to a stream captured by CliRunner or capsys."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def make_driver() -> type[ScriptedFleetDriver]:
    """The ScriptedFleetDriver class, for tests that script their own statuses."""
    return ScriptedFleetDriver


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "requirement(id): Mark test as covering a specific requirement",
    )

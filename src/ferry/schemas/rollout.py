"""Fleet rollout schemas.

Key Components:
    RefreshStatus: Normalized instance refresh status
    RefreshState: A status plus the raw driver text
    SessionState: Meta-state of one rollout session
    RefreshPreferences: Instance refresh preferences sent to the driver
    RolloutRequest: Everything needed to start and watch one refresh
    RolloutSession: Mutable in-memory record of one rollout
    EscalationTarget: Alias to roll back when the first window times out
    RolloutResult: Outcome of a rollout call
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ferry.environment import OBJECT_LATEST_ALIAS, OBJECT_ROLLBACK_ALIAS
from ferry.schemas.artifacts import ArtifactSet


class RefreshStatus(str, Enum):
    """Normalized instance refresh status.

    ``UNKNOWN`` covers both "no refresh recorded yet" and AWS values ferry
    does not recognize; the raw text is kept on RefreshState for display.
    """

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    CANCELLING = "Cancelling"
    SUCCESSFUL = "Successful"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    UNKNOWN = "Unknown"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL

    @classmethod
    def parse(cls, raw: str | None) -> RefreshStatus:
        """Map an AWS instance refresh status to a RefreshStatus."""
        if raw is None:
            return cls.UNKNOWN
        return _AWS_STATUS_MAP.get(raw, cls.UNKNOWN)


_TERMINAL = frozenset(
    {RefreshStatus.SUCCESSFUL, RefreshStatus.FAILED, RefreshStatus.CANCELLED}
)

_AWS_STATUS_MAP: dict[str, RefreshStatus] = {
    "Pending": RefreshStatus.PENDING,
    "InProgress": RefreshStatus.IN_PROGRESS,
    "Baking": RefreshStatus.IN_PROGRESS,
    "RollbackInProgress": RefreshStatus.IN_PROGRESS,
    "Cancelling": RefreshStatus.CANCELLING,
    "Successful": RefreshStatus.SUCCESSFUL,
    "Failed": RefreshStatus.FAILED,
    "RollbackSuccessful": RefreshStatus.FAILED,
    "RollbackFailed": RefreshStatus.FAILED,
    "Cancelled": RefreshStatus.CANCELLED,
}


class RefreshState(BaseModel):
    """Latest status of a fleet's instance refresh.

    Attributes:
        status: Normalized status.
        raw: Status text as reported by AWS (None when no refresh exists).
        refresh_id: Id of the refresh the status belongs to.
        percentage_complete: Progress reported by AWS, when available.
        reason: Status reason reported by AWS, when available.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: RefreshStatus = RefreshStatus.UNKNOWN
    raw: str | None = None
    refresh_id: str | None = None
    percentage_complete: int | None = None
    reason: str | None = None

    @classmethod
    def from_raw(cls, raw: str | None, **kwargs: Any) -> RefreshState:
        return cls(status=RefreshStatus.parse(raw), raw=raw, **kwargs)

    @property
    def display(self) -> str:
        return self.raw or self.status.value


class SessionState(str, Enum):
    """Rollout session meta-state.

    waiting -> rolled_back_once -> succeeded | failed_hard
    """

    WAITING = "waiting"
    ROLLED_BACK_ONCE = "rolled_back_once"
    SUCCEEDED = "succeeded"
    FAILED_HARD = "failed_hard"


class RefreshPreferences(BaseModel):
    """Instance refresh preferences.

    Attributes:
        instance_warmup: Seconds a new instance warms up before it counts as healthy.
        min_healthy_percentage: Capacity that must stay in service during the refresh.
        skip_matching: Skip instances already running the desired configuration.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    instance_warmup: int = Field(default=120, ge=0)
    min_healthy_percentage: int = Field(default=90, ge=0, le=100)
    skip_matching: bool = True

    def to_aws(self) -> dict[str, Any]:
        return {
            "InstanceWarmup": self.instance_warmup,
            "MinHealthyPercentage": self.min_healthy_percentage,
            "SkipMatching": self.skip_matching,
        }


class RolloutRequest(BaseModel):
    """Parameters of one fleet rollout.

    Attributes:
        group: Auto Scaling Group name.
        strategy: Refresh strategy.
        preferences: Refresh preferences.
        wait: Poll until the refresh finishes when true.
        timeout_seconds: Length of each wait window.
        poll_interval_seconds: Seconds between status queries.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    group: str = Field(..., min_length=1, description="Auto Scaling Group name")
    strategy: str = Field(default="Rolling", description="Refresh strategy")
    preferences: RefreshPreferences = Field(default_factory=RefreshPreferences)
    wait: bool = Field(default=False, description="Wait for completion")
    timeout_seconds: float = Field(default=1800, gt=0, description="Wait window")
    poll_interval_seconds: float = Field(default=10, gt=0, description="Poll interval")


class EscalationTarget(BaseModel):
    """Alias to roll back if the first wait window times out."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    artifact_set: ArtifactSet
    alias: str = OBJECT_LATEST_ALIAS
    rollback_alias: str = OBJECT_ROLLBACK_ALIAS


class RolloutSession(BaseModel):
    """In-memory state of one rollout. Never persisted.

    Attributes:
        group: Auto Scaling Group name.
        refresh_id: Refresh started by this session.
        started_at: Session start (monotonic seconds).
        window_started_at: Start of the current wait window (monotonic seconds).
        last: Last status observed.
        rollback_triggered: Whether the artifact rollback already ran.
        state: Meta-state.
        polls: Number of status queries made.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    group: str
    refresh_id: str
    started_at: float
    window_started_at: float
    last: RefreshState = Field(default_factory=RefreshState)
    rollback_triggered: bool = False
    state: SessionState = SessionState.WAITING
    polls: int = 0

    def elapsed(self, now: float) -> float:
        return now - self.started_at

    def window_elapsed(self, now: float) -> float:
        return now - self.window_started_at


class RolloutResult(BaseModel):
    """Result of a rollout call.

    Attributes:
        group: Auto Scaling Group name.
        refresh_id: Started refresh.
        waited: Whether the call waited for completion.
        status: Final status (Pending when not waiting).
        state: Final session meta-state.
        rollback_triggered: Whether the artifact was rolled back.
        elapsed_seconds: Wall time spent waiting.
        polls: Number of status queries made.
        trace_id: OpenTelemetry trace id ("" without an exporter).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    group: str
    refresh_id: str
    waited: bool
    status: RefreshStatus
    state: SessionState
    rollback_triggered: bool = False
    elapsed_seconds: float = 0.0
    polls: int = 0
    trace_id: str = ""


__all__ = [
    "EscalationTarget",
    "RefreshPreferences",
    "RefreshState",
    "RefreshStatus",
    "RolloutRequest",
    "RolloutResult",
    "RolloutSession",
    "SessionState",
]

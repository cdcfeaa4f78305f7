"""Promotion and rollback result schemas.

Key Components:
    PromotionOutcome: promoted or already_promoted (no-op)
    PromotionResult: Before/after references of a promote call
    RollbackResult: Resulting alias reference of a rollback call
    AliasStatus: Presence and reference of one alias
    SetStatus: Operator view of an artifact set (list)
    PushResult: Outcome of uploading a build object
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ferry.schemas.artifacts import ArtifactRef, ArtifactSet


class PromotionOutcome(str, Enum):
    """Outcome of a promote call.

    Attributes:
        PROMOTED: The alias was rebound to the requested build.
        ALREADY_PROMOTED: The alias already resolved to the build; nothing changed.
    """

    PROMOTED = "promoted"
    ALREADY_PROMOTED = "already_promoted"


class PromotionResult(BaseModel):
    """Result of promoting a build to an alias.

    Attributes:
        outcome: Whether anything changed.
        artifact_set: The artifact set promoted within.
        build_id: The requested build id.
        alias: The alias that was (or already was) bound to the build.
        rollback_alias: The alias holding the previous value.
        previous: What the alias resolved to before the call.
        current: What the alias resolves to after the call.
        rollback_archived: Whether the previous value was written to the rollback alias.
        rollback_inconsistent: Whether the rollback alias already held the previous value.
        trace_id: OpenTelemetry trace id ("" without an exporter).

    Examples:
        >>> result.outcome
        <PromotionOutcome.PROMOTED: 'promoted'>
        >>> result.previous.label(), result.current.label()
        ('sha-111', 'sha-222')
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    outcome: PromotionOutcome = Field(..., description="Whether anything changed")
    artifact_set: ArtifactSet = Field(..., description="Artifact set")
    build_id: str = Field(..., min_length=1, description="Requested build id")
    alias: str = Field(..., min_length=1, description="Promoted alias")
    rollback_alias: str = Field(..., min_length=1, description="Rollback alias")
    previous: ArtifactRef | None = Field(
        default=None,
        description="Alias value before the call",
    )
    current: ArtifactRef = Field(..., description="Alias value after the call")
    rollback_archived: bool = Field(
        default=False,
        description="Previous value written to the rollback alias",
    )
    rollback_inconsistent: bool = Field(
        default=False,
        description="Rollback alias already held the previous value",
    )
    trace_id: str = Field(default="", description="OpenTelemetry trace id")

    @property
    def changed(self) -> bool:
        return self.outcome is PromotionOutcome.PROMOTED


class RollbackResult(BaseModel):
    """Result of rolling an alias back.

    Attributes:
        artifact_set: The artifact set rolled back within.
        alias: The alias that now resolves to the rollback artifact.
        rollback_alias: The alias the artifact was restored from.
        previous: What the alias resolved to before the call (None if unbound).
        current: What the alias resolves to after the call.
        swapped: Whether alias and rollback alias exchanged values.
        rollback_after: What the rollback alias resolves to after the call.
        trace_id: OpenTelemetry trace id ("" without an exporter).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    artifact_set: ArtifactSet = Field(..., description="Artifact set")
    alias: str = Field(..., min_length=1, description="Rolled back alias")
    rollback_alias: str = Field(..., min_length=1, description="Rollback alias")
    previous: ArtifactRef | None = Field(
        default=None,
        description="Alias value before the call",
    )
    current: ArtifactRef = Field(..., description="Alias value after the call")
    swapped: bool = Field(default=False, description="Aliases exchanged values")
    rollback_after: ArtifactRef | None = Field(
        default=None,
        description="Rollback alias value after the call",
    )
    trace_id: str = Field(default="", description="OpenTelemetry trace id")


class AliasStatus(BaseModel):
    """Presence and resolved reference of one alias.

    Attributes:
        alias: Alias name.
        location: Tag or key the alias lives at.
        ref: Resolved reference, None when unbound.
        console_url: Console link for the resolved artifact, when available.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    alias: str
    location: str
    ref: ArtifactRef | None = None
    console_url: str | None = None

    @property
    def present(self) -> bool:
        return self.ref is not None


class SetStatus(BaseModel):
    """Operator view of an artifact set. Produced without any mutation.

    Attributes:
        artifact_set: The inspected set.
        latest: Status of the live alias.
        rollback: Status of the rollback alias.
        last_pushed: Most recently pushed non-alias artifact (best effort).
        last_pushed_url: Console link for the last pushed artifact.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    artifact_set: ArtifactSet
    latest: AliasStatus
    rollback: AliasStatus
    last_pushed: ArtifactRef | None = None
    last_pushed_url: str | None = None


class PushResult(BaseModel):
    """Result of uploading a build object.

    Attributes:
        artifact_set: Target set.
        build_id: Build id the object was stored under.
        ref: The stored build object.
        uploaded: False when the object already existed and was left alone.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    artifact_set: ArtifactSet
    build_id: str
    ref: ArtifactRef
    uploaded: bool


__all__ = [
    "AliasStatus",
    "PromotionOutcome",
    "PromotionResult",
    "PushResult",
    "RollbackResult",
    "SetStatus",
]

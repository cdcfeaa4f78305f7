"""Pydantic models shared by the stores, the promotion engine and the CLI."""

from __future__ import annotations

from ferry.schemas.artifacts import (
    DEFAULT_OBJECT_PREFIX,
    SAFE_NAME_PATTERN,
    ArtifactRef,
    ArtifactSet,
    BackendKind,
    BindingMetadata,
    is_safe_name,
)
from ferry.schemas.promotion import (
    AliasStatus,
    PromotionOutcome,
    PromotionResult,
    PushResult,
    RollbackResult,
    SetStatus,
)
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

__all__ = [
    "DEFAULT_OBJECT_PREFIX",
    "SAFE_NAME_PATTERN",
    "AliasStatus",
    "ArtifactRef",
    "ArtifactSet",
    "BackendKind",
    "BindingMetadata",
    "EscalationTarget",
    "PromotionOutcome",
    "PromotionResult",
    "PushResult",
    "RefreshPreferences",
    "RefreshState",
    "RefreshStatus",
    "RollbackResult",
    "RolloutRequest",
    "RolloutResult",
    "RolloutSession",
    "SessionState",
    "is_safe_name",
]

"""ferry: promote, roll back and roll out release artifacts on AWS.

This package provides:
- ArtifactStore: Backend-agnostic alias operations (ECR tags, S3 permalinks)
- PromotionEngine: promote, rollback (optionally swapping) and list
- RolloutCoordinator: Instance refresh with a single automatic artifact rollback
- Errors: One exception per failure kind, each with a CLI exit code

Example:
    >>> from ferry import PromotionEngine
    >>> engine = PromotionEngine(store)
    >>> engine.promote(artifact_set, "a1b2c3d", alias="prod", rollback_alias="rollback_prod")
"""

from __future__ import annotations

__version__ = "0.1.0"

from ferry.errors import FerryError
from ferry.promotion import PromotionEngine
from ferry.rollout import RolloutCoordinator
from ferry.schemas.artifacts import ArtifactRef, ArtifactSet, BackendKind
from ferry.store.base import ArtifactStore

__all__ = [
    "ArtifactRef",
    "ArtifactSet",
    "ArtifactStore",
    "BackendKind",
    "FerryError",
    "PromotionEngine",
    "RolloutCoordinator",
    "__version__",
]

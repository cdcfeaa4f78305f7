"""Promotion engine: promote, roll back and inspect aliases on an ArtifactStore.

The engine is backend agnostic. Every mutation goes through
``ArtifactStore.bind_alias``, which never re-uploads artifact bytes.

Ordering guarantees:
    - promote: the build is resolved before any alias is touched, and the
      live value is archived to the rollback alias before it is overwritten.
      The two writes are not atomic; a crash between them leaves the rollback
      alias updated and the live alias unchanged, which a re-run repairs.
    - rollback: nothing is mutated when the rollback alias is unbound.

Example:
    >>> engine = PromotionEngine(store)
    >>> result = engine.promote(artifact_set, "a1b2c3d", alias="prod",
    ...                         rollback_alias="rollback_prod")
    >>> result.outcome
    <PromotionOutcome.PROMOTED: 'promoted'>
"""

from __future__ import annotations

import structlog

from ferry.environment import OBJECT_LATEST_ALIAS, OBJECT_ROLLBACK_ALIAS
from ferry.errors import (
    ArtifactNotFoundError,
    BackendError,
    FerryError,
    InvalidNameError,
    RollbackNotFoundError,
)
from ferry.schemas.artifacts import ArtifactRef, ArtifactSet, is_safe_name
from ferry.schemas.promotion import (
    AliasStatus,
    PromotionOutcome,
    PromotionResult,
    RollbackResult,
    SetStatus,
)
from ferry.store.base import ArtifactStore
from ferry.telemetry.tracing import create_span, trace_id_of

logger = structlog.get_logger(__name__)

SWAP_SUFFIX = ".swap.tmp"


def swap_alias(rollback_alias: str) -> str:
    """Temporary alias used while swapping live and rollback values."""
    return f"{rollback_alias}{SWAP_SUFFIX}"


def _require_safe(kind: str, value: str) -> None:
    if not is_safe_name(value):
        raise InvalidNameError(
            kind,
            value,
            "must start with a letter or digit and contain only letters, digits, "
            "'.', '_' or '-' (at most 128 characters)",
        )


def _validate_aliases(alias: str, rollback_alias: str) -> None:
    _require_safe("alias", alias)
    _require_safe("rollback alias", rollback_alias)
    if alias == rollback_alias:
        raise InvalidNameError("rollback alias", rollback_alias, "must differ from the alias")


class PromotionEngine:
    """Promote, roll back and list aliases within artifact sets.

    Attributes:
        store: Backend the engine operates on.
    """

    def __init__(self, store: ArtifactStore) -> None:
        self.store = store
        self._log = logger.bind(backend=store.backend.value)

    def promote(
        self,
        artifact_set: ArtifactSet,
        build_id: str,
        alias: str = OBJECT_LATEST_ALIAS,
        rollback_alias: str = OBJECT_ROLLBACK_ALIAS,
    ) -> PromotionResult:
        """Point alias at build_id, archiving the previous value to rollback_alias.

        Promoting the artifact the alias already resolves to changes nothing.
        If the rollback alias already holds the live value, the archive step
        is skipped and an inconsistency warning is logged.

        Args:
            artifact_set: Set to promote within.
            build_id: Build to promote.
            alias: Live alias.
            rollback_alias: Alias that receives the previous live value.

        Returns:
            PromotionResult with the before and after references.

        Raises:
            InvalidNameError: If build_id or an alias name is not safe.
            ArtifactNotFoundError: If build_id was never pushed to the set.
            BackendError: If a store call fails.
        """
        _require_safe("build id", build_id)
        _validate_aliases(alias, rollback_alias)

        with create_span(
            "ferry.promote",
            attributes={
                "ferry.artifact_set": artifact_set.display(),
                "ferry.build_id": build_id,
                "ferry.alias": alias,
                "ferry.rollback_alias": rollback_alias,
            },
        ) as span:
            trace_id = trace_id_of(span)
            log = self._log.bind(
                artifact_set=artifact_set.display(),
                alias=alias,
                trace_id=trace_id,
            )
            log.info("promotion_started", build_id=build_id)

            target = self.store.get_artifact(artifact_set, build_id)
            if target is None:
                raise ArtifactNotFoundError(build_id, artifact_set.display())

            previous = self.store.get_alias(artifact_set, alias)
            if target.same_artifact(previous):
                log.info("promotion_noop", build_id=build_id, native_id=target.native_id)
                span.set_attribute("ferry.outcome", PromotionOutcome.ALREADY_PROMOTED.value)
                return PromotionResult(
                    outcome=PromotionOutcome.ALREADY_PROMOTED,
                    artifact_set=artifact_set,
                    build_id=build_id,
                    alias=alias,
                    rollback_alias=rollback_alias,
                    previous=previous,
                    current=previous,
                    trace_id=trace_id,
                )

            archived = False
            inconsistent = False
            if previous is not None:
                rollback_ref = self.store.get_alias(artifact_set, rollback_alias)
                if previous.same_artifact(rollback_ref):
                    inconsistent = True
                    log.warning(
                        "rollback_inconsistency",
                        rollback_alias=rollback_alias,
                        native_id=previous.native_id,
                        detail="rollback alias already holds the live artifact; not archiving",
                    )
                else:
                    self.store.bind_alias(artifact_set, rollback_alias, previous)
                    archived = True
                    log.info(
                        "promotion_archived",
                        rollback_alias=rollback_alias,
                        archived=previous.label(),
                    )

            self.store.bind_alias(artifact_set, alias, target)

            span.set_attribute("ferry.outcome", PromotionOutcome.PROMOTED.value)
            log.info(
                "promotion_completed",
                build_id=build_id,
                previous=previous.label() if previous else None,
                archived=archived,
            )
            return PromotionResult(
                outcome=PromotionOutcome.PROMOTED,
                artifact_set=artifact_set,
                build_id=build_id,
                alias=alias,
                rollback_alias=rollback_alias,
                previous=previous,
                current=target,
                rollback_archived=archived,
                rollback_inconsistent=inconsistent,
                trace_id=trace_id,
            )

    def rollback(
        self,
        artifact_set: ArtifactSet,
        alias: str = OBJECT_LATEST_ALIAS,
        rollback_alias: str = OBJECT_ROLLBACK_ALIAS,
        *,
        swap: bool = False,
    ) -> RollbackResult:
        """Point alias back at the artifact held by rollback_alias.

        Without swap the rollback alias is left untouched. With swap the two
        aliases exchange values through a temporary alias that is removed
        afterwards (best effort). If the live alias is unbound, swap behaves
        like a plain rollback.

        Raises:
            InvalidNameError: If an alias name is not safe.
            RollbackNotFoundError: If rollback_alias is unbound. Nothing is mutated.
            BackendError: If a store call fails.
        """
        _validate_aliases(alias, rollback_alias)

        with create_span(
            "ferry.rollback",
            attributes={
                "ferry.artifact_set": artifact_set.display(),
                "ferry.alias": alias,
                "ferry.rollback_alias": rollback_alias,
                "ferry.swap": swap,
            },
        ) as span:
            trace_id = trace_id_of(span)
            log = self._log.bind(
                artifact_set=artifact_set.display(),
                alias=alias,
                trace_id=trace_id,
            )
            log.info("rollback_started", rollback_alias=rollback_alias, swap=swap)

            restored = self.store.get_alias(artifact_set, rollback_alias)
            if restored is None:
                raise RollbackNotFoundError(rollback_alias, artifact_set.display())

            previous = self.store.get_alias(artifact_set, alias)

            if swap and previous is not None:
                rollback_after = self._swap(artifact_set, alias, rollback_alias, previous, restored)
                swapped = True
            else:
                if swap:
                    log.info("rollback_swap_skipped", reason="alias unbound")
                self.store.bind_alias(artifact_set, alias, restored)
                rollback_after = restored
                swapped = False

            span.set_attribute("ferry.swapped", swapped)
            log.info(
                "rollback_completed",
                restored=restored.label(),
                previous=previous.label() if previous else None,
                swapped=swapped,
            )
            return RollbackResult(
                artifact_set=artifact_set,
                alias=alias,
                rollback_alias=rollback_alias,
                previous=previous,
                current=restored,
                swapped=swapped,
                rollback_after=rollback_after,
                trace_id=trace_id,
            )

    def _swap(
        self,
        artifact_set: ArtifactSet,
        alias: str,
        rollback_alias: str,
        live: ArtifactRef,
        restored: ArtifactRef,
    ) -> ArtifactRef:
        temp = swap_alias(rollback_alias)
        self.store.bind_alias(artifact_set, temp, live)
        parked = self.store.get_alias(artifact_set, temp)
        if parked is None:
            raise BackendError(
                artifact_set.backend.value,
                "swap",
                f"temporary alias '{temp}' is not readable after binding",
            )

        self.store.bind_alias(artifact_set, alias, restored)
        self.store.bind_alias(artifact_set, rollback_alias, parked)

        try:
            self.store.delete_alias(artifact_set, temp)
        except FerryError as e:
            self._log.warning(
                "swap_cleanup_failed",
                artifact_set=artifact_set.display(),
                temp_alias=temp,
                error=str(e),
            )
        return parked

    def list(
        self,
        artifact_set: ArtifactSet,
        alias: str = OBJECT_LATEST_ALIAS,
        rollback_alias: str = OBJECT_ROLLBACK_ALIAS,
    ) -> SetStatus:
        """Report the live alias, rollback alias and last pushed artifact.

        Read only. Console links and the last pushed artifact are best effort:
        failures there are logged and left empty.
        """
        _validate_aliases(alias, rollback_alias)

        with create_span(
            "ferry.list",
            attributes={
                "ferry.artifact_set": artifact_set.display(),
                "ferry.alias": alias,
            },
        ):
            latest = self._alias_status(artifact_set, alias)
            rollback = self._alias_status(artifact_set, rollback_alias)

            try:
                last_pushed = self.store.last_pushed(artifact_set)
            except BackendError as e:
                self._log.warning(
                    "last_pushed_unavailable",
                    artifact_set=artifact_set.display(),
                    error=str(e),
                )
                last_pushed = None

            return SetStatus(
                artifact_set=artifact_set,
                latest=latest,
                rollback=rollback,
                last_pushed=last_pushed,
                last_pushed_url=self._console_url(artifact_set, last_pushed),
            )

    def _alias_status(self, artifact_set: ArtifactSet, alias: str) -> AliasStatus:
        ref = self.store.get_alias(artifact_set, alias)
        return AliasStatus(
            alias=alias,
            location=self.store.alias_location(artifact_set, alias),
            ref=ref,
            console_url=self._console_url(artifact_set, ref),
        )

    def _console_url(self, artifact_set: ArtifactSet, ref: ArtifactRef | None) -> str | None:
        if ref is None:
            return None
        try:
            return self.store.console_url(artifact_set, ref)
        except BackendError as e:
            self._log.warning("console_url_unavailable", native_id=ref.native_id, error=str(e))
            return None


__all__ = ["SWAP_SUFFIX", "PromotionEngine", "swap_alias"]

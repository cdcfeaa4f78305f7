"""Exception hierarchy for ferry.

All exceptions raised by the promotion engine, the rollout coordinator, the
artifact stores and the AWS adapters inherit from FerryError, so callers can
catch every ferry failure with a single except clause.

Exception Hierarchy:
    FerryError (base)
    ├── InvalidNameError                   # Build id or alias name rejected
    ├── ConfigurationError                 # Config file or values invalid
    ├── ArtifactNotFoundError              # Build id not pushed to the set
    ├── RollbackNotFoundError              # Rollback alias is unbound
    ├── FleetNotFoundError                 # Auto Scaling Group does not exist
    ├── BackendError                       # Registry/object store/fleet API failed
    │   └── AuthenticationError            # Credentials missing, denied or expired
    └── RolloutError                       # Fleet refresh did not converge
        ├── RolloutStartError              # Refresh could not be started
        ├── RolloutFailedError             # Refresh ended Failed or Cancelled
        ├── RolloutConvergedAfterRollbackError
        ├── DoubleTimeoutError             # Still running after auto rollback
        └── RolloutInterruptedError        # Shutdown requested while waiting

Exit Codes:
    0   - Success
    1   - General error (FerryError)
    2   - Invalid name or configuration
    3   - Artifact not found
    4   - Rollback alias not found
    5   - Backend unavailable or authentication failed
    6   - Fleet group not found
    10  - Rollout failed or could not start
    11  - Rollout converged only after an automatic artifact rollback
    12  - Rollout timed out twice
    130 - Interrupted

Example:
    >>> from ferry.errors import ArtifactNotFoundError
    >>> raise ArtifactNotFoundError("a1b2c3d", "ecr://eu-west-1/backend")
    Traceback (most recent call last):
        ...
    ArtifactNotFoundError: Artifact not found: a1b2c3d in ecr://eu-west-1/backend
"""

from __future__ import annotations


class FerryError(Exception):
    """Base exception for all ferry errors.

    Attributes:
        exit_code: CLI exit code for this error type (default: 1).

    Example:
        >>> try:
        ...     engine.promote(artifact_set, "a1b2c3d")
        ... except FerryError as e:
        ...     sys.exit(e.exit_code)
    """

    exit_code: int = 1


class InvalidNameError(FerryError):
    """Raised when a build id or alias name is not a safe identifier.

    Attributes:
        kind: What was being validated ("build id", "alias").
        value: The rejected value.
        exit_code: CLI exit code (2).
    """

    exit_code: int = 2

    def __init__(self, kind: str, value: str, reason: str) -> None:
        self.kind = kind
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {kind} {value!r}: {reason}")


class ConfigurationError(FerryError):
    """Raised when the ferry configuration cannot be loaded.

    Attributes:
        source: Where the configuration came from (file path or "environment").
        reason: Description of the problem.
        exit_code: CLI exit code (2).
    """

    exit_code: int = 2

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid configuration in {source}: {reason}")


class ArtifactNotFoundError(FerryError):
    """Raised when the build id to promote was never pushed to the artifact set.

    Raised before any alias is touched, so nothing was mutated.

    Attributes:
        build_id: The build id that was not found.
        artifact_set: Display form of the artifact set searched.
        exit_code: CLI exit code (3).

    Example:
        >>> raise ArtifactNotFoundError("a1b2c3d", "s3://releases/objects/migrator")
        Traceback (most recent call last):
            ...
        ArtifactNotFoundError: Artifact not found: a1b2c3d in s3://releases/objects/migrator
    """

    exit_code: int = 3

    def __init__(self, build_id: str, artifact_set: str) -> None:
        self.build_id = build_id
        self.artifact_set = artifact_set
        super().__init__(f"Artifact not found: {build_id} in {artifact_set}")


class RollbackNotFoundError(FerryError):
    """Raised when a rollback is requested but the rollback alias is unbound.

    Attributes:
        alias: The rollback alias that was looked up.
        artifact_set: Display form of the artifact set.
        exit_code: CLI exit code (4).
    """

    exit_code: int = 4

    def __init__(self, alias: str, artifact_set: str) -> None:
        self.alias = alias
        self.artifact_set = artifact_set
        super().__init__(
            f"No '{alias}' alias found in {artifact_set}; nothing was changed"
        )


class FleetNotFoundError(FerryError):
    """Raised when the Auto Scaling Group targeted by a rollout does not exist.

    Attributes:
        group: The Auto Scaling Group name.
        region: The AWS region searched.
        exit_code: CLI exit code (6).
    """

    exit_code: int = 6

    def __init__(self, group: str, region: str) -> None:
        self.group = group
        self.region = region
        super().__init__(f"Auto Scaling Group '{group}' not found in {region}")


class BackendError(FerryError):
    """Raised when a registry, object store or fleet API call fails.

    Covers network failures, throttling and unexpected API errors. ferry does
    not retry these itself; botocore's standard retry mode is the only retry
    layer.

    Attributes:
        service: AWS service name ("ecr", "s3", "autoscaling", "sts").
        operation: The API operation that failed.
        reason: Description of the failure.
        exit_code: CLI exit code (5).

    Example:
        >>> raise BackendError("ecr", "PutImage", "Rate exceeded")
        Traceback (most recent call last):
            ...
        BackendError: ecr PutImage failed: Rate exceeded
    """

    exit_code: int = 5

    def __init__(
        self, service: str, operation: str, reason: str, *, outcome: str = "failed"
    ) -> None:
        self.service = service
        self.operation = operation
        self.reason = reason
        super().__init__(f"{service} {operation} {outcome}: {reason}")


class AuthenticationError(BackendError):
    """Raised when AWS credentials are missing, expired or denied.

    Credentials are resolved by the ambient AWS credential chain; ferry only
    reports the failure.
    """

    def __init__(self, service: str, operation: str, reason: str) -> None:
        super().__init__(service, operation, reason, outcome="not authorized")


class RolloutError(FerryError):
    """Base class for fleet rollout failures.

    Attributes:
        group: The Auto Scaling Group being refreshed.
        refresh_id: The instance refresh id, when one was started.
        exit_code: CLI exit code (10).
    """

    exit_code: int = 10

    def __init__(self, group: str, message: str, refresh_id: str | None = None) -> None:
        self.group = group
        self.refresh_id = refresh_id
        super().__init__(message)


class RolloutStartError(RolloutError):
    """Raised when the fleet refresh could not be started. Never retried."""

    def __init__(self, group: str, reason: str) -> None:
        self.reason = reason
        super().__init__(group, f"Instance refresh for '{group}' could not start: {reason}")


class RolloutFailedError(RolloutError):
    """Raised when the fleet refresh reports Failed or Cancelled.

    Attributes:
        status: The terminal status reported by the driver.
        rollback_triggered: Whether the artifact had already been rolled back.
    """

    def __init__(
        self,
        group: str,
        refresh_id: str,
        status: str,
        *,
        rollback_triggered: bool = False,
    ) -> None:
        self.status = status
        self.rollback_triggered = rollback_triggered
        msg = f"Instance refresh {refresh_id} on '{group}' finished with status: {status}"
        if rollback_triggered:
            msg += " (the artifact was already rolled back automatically)"
        super().__init__(group, msg, refresh_id)


class RolloutConvergedAfterRollbackError(RolloutError):
    """Raised when the fleet converged only after the artifact was auto rolled back.

    The fleet is healthy but now runs the rolled-back artifact, which the
    operator must reconcile.

    Attributes:
        alias: The alias that was rolled back, when an escalation target was set.
        exit_code: CLI exit code (11).
    """

    exit_code: int = 11

    def __init__(self, group: str, refresh_id: str, alias: str | None = None) -> None:
        self.alias = alias
        what = f"alias '{alias}' was" if alias else "the artifact was"
        super().__init__(
            group,
            f"Instance refresh {refresh_id} on '{group}' succeeded, but only after "
            f"{what} automatically rolled back; reconcile the promoted build",
            refresh_id,
        )


class DoubleTimeoutError(RolloutError):
    """Raised when the refresh is still not successful after an automatic
    rollback and an additional timeout window.

    Attributes:
        timeout_seconds: Length of each wait window.
        last_status: Last status reported by the driver.
        exit_code: CLI exit code (12).
    """

    exit_code: int = 12

    def __init__(
        self,
        group: str,
        refresh_id: str,
        timeout_seconds: float,
        last_status: str,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.last_status = last_status
        super().__init__(
            group,
            f"Instance refresh {refresh_id} on '{group}' still not successful "
            f"(status: {last_status}) after an automatic rollback and an additional "
            f"{timeout_seconds:g}s timeout window; operator intervention required",
            refresh_id,
        )


class RolloutInterruptedError(RolloutError):
    """Raised when shutdown is requested while waiting for a refresh.

    The refresh itself keeps running in AWS; re-run `fleet status` to check it.
    """

    exit_code: int = 130

    def __init__(self, group: str, refresh_id: str, rollback_triggered: bool) -> None:
        self.rollback_triggered = rollback_triggered
        msg = f"Stopped waiting for instance refresh {refresh_id} on '{group}'"
        if rollback_triggered:
            msg += "; the artifact had already been rolled back automatically"
        super().__init__(group, msg, refresh_id)


__all__ = [
    "ArtifactNotFoundError",
    "AuthenticationError",
    "BackendError",
    "ConfigurationError",
    "DoubleTimeoutError",
    "FerryError",
    "FleetNotFoundError",
    "InvalidNameError",
    "RollbackNotFoundError",
    "RolloutConvergedAfterRollbackError",
    "RolloutError",
    "RolloutFailedError",
    "RolloutInterruptedError",
    "RolloutStartError",
]

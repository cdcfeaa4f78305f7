"""ArtifactStore ABC: immutable builds plus mutable alias pointers.

An artifact store holds immutable build artifacts addressed by build id and
a small number of aliases per artifact set, each pointing at exactly one
artifact. The promotion engine only ever talks to this interface, so the
container registry and the object store share one promote/rollback
algorithm.

Example:
    >>> store = RegistryArtifactStore(EcrRegistryClient(ecr_client, sts_client))
    >>> ref = store.get_alias(artifact_set, "prod")
    >>> ref.native_id
    'sha256:3f1c...'
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ferry.schemas.artifacts import ArtifactRef, ArtifactSet, BackendKind


class ArtifactStore(ABC):
    """Abstract base class for artifact backends.

    Contract shared by all implementations:
        - Lookups return None for "not found" and raise only on genuine
          I/O or authentication failures (BackendError, AuthenticationError).
        - ``bind_alias`` is idempotent and never re-uploads artifact bytes.
        - Two ArtifactRefs denote the same artifact iff their native ids match.

    Concrete stores must implement:
        - backend (property)
        - get_alias()
        - get_artifact()
        - bind_alias()
        - delete_alias()
        - last_pushed()
        - alias_location()
    """

    @property
    @abstractmethod
    def backend(self) -> BackendKind:
        """Backend kind this store serves."""
        ...

    @abstractmethod
    def get_alias(self, artifact_set: ArtifactSet, alias: str) -> ArtifactRef | None:
        """Resolve an alias to the artifact it points at.

        Args:
            artifact_set: Set the alias belongs to.
            alias: Alias name.

        Returns:
            The referenced artifact, or None if the alias is unbound.

        Raises:
            BackendError: If the backend cannot be queried.
        """
        ...

    @abstractmethod
    def get_artifact(self, artifact_set: ArtifactSet, build_id: str) -> ArtifactRef | None:
        """Resolve a build id to its immutable artifact.

        Returns:
            The artifact, or None if the build was never pushed to the set.

        Raises:
            BackendError: If the backend cannot be queried.
        """
        ...

    @abstractmethod
    def bind_alias(self, artifact_set: ArtifactSet, alias: str, ref: ArtifactRef) -> None:
        """Point an alias at an existing artifact.

        Binding an alias to the artifact it already references is a no-op
        from the caller's point of view.

        Raises:
            BackendError: If the write fails.
        """
        ...

    @abstractmethod
    def delete_alias(self, artifact_set: ArtifactSet, alias: str) -> None:
        """Remove an alias. Removing an unbound alias is not an error."""
        ...

    @abstractmethod
    def last_pushed(self, artifact_set: ArtifactSet) -> ArtifactRef | None:
        """Most recently pushed non-alias artifact, best effort."""
        ...

    @abstractmethod
    def alias_location(self, artifact_set: ArtifactSet, alias: str) -> str:
        """Tag or key an alias lives at."""
        ...

    def console_url(self, artifact_set: ArtifactSet, ref: ArtifactRef) -> str | None:
        """AWS console link for an artifact, or None when unavailable."""
        return None


__all__ = ["ArtifactStore"]

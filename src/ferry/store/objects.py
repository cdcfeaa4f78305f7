"""Object store artifact store (Amazon S3).

Key layout for an artifact set ``(bucket, prefix, name)``::

    {prefix}/{name}/{build_id}/{name}     immutable build object
    {prefix}/{name}/{name}.{alias}        alias permalink (e.g. name.latest)

Binding an alias server-side copies the source object onto the permalink
key and then writes BindingMetadata tags on it, so operators can see what
is live without downloading anything. Alias-to-alias copies (archive,
rollback, swap) keep the binding the source object was promoted with.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from ferry.aws.s3 import S3ObjectClient
from ferry.errors import FerryError, InvalidNameError
from ferry.schemas.artifacts import (
    ArtifactRef,
    ArtifactSet,
    BackendKind,
    BindingMetadata,
    is_safe_name,
)
from ferry.schemas.promotion import PushResult
from ferry.store.base import ArtifactStore

logger = structlog.get_logger(__name__)


def set_root(artifact_set: ArtifactSet) -> str:
    if artifact_set.prefix:
        return f"{artifact_set.prefix}/{artifact_set.name}"
    return artifact_set.name


def build_key(artifact_set: ArtifactSet, build_id: str) -> str:
    """Key of the immutable build object.

    Example:
        >>> build_key(migrator_set, "a1b2c3d")
        'objects/migrator/a1b2c3d/migrator'
    """
    return f"{set_root(artifact_set)}/{build_id}/{artifact_set.name}"


def alias_key(artifact_set: ArtifactSet, alias: str) -> str:
    """Key of an alias permalink.

    Example:
        >>> alias_key(migrator_set, "rollback")
        'objects/migrator/migrator.rollback'
    """
    return f"{set_root(artifact_set)}/{artifact_set.name}.{alias}"


def _is_build_ref(artifact_set: ArtifactSet, ref: ArtifactRef) -> bool:
    return ref.build_id is not None and ref.location == build_key(artifact_set, ref.build_id)


def _retagged(tags: dict[str, str], meta: BindingMetadata) -> dict[str, str]:
    """Replace the ferry tags in tags with meta, keeping foreign tags."""
    kept = {k: v for k, v in tags.items() if not k.startswith(BindingMetadata.TAG_PREFIX)}
    kept.update(meta.to_tags())
    return kept


class ObjectArtifactStore(ArtifactStore):
    """ArtifactStore over S3 buckets in one region.

    Args:
        client: S3 adapter.
        binding: Metadata written when a build object is bound (environment
            and the optional container binding). Source fields are filled
            per bind.
    """

    def __init__(self, client: S3ObjectClient, binding: BindingMetadata | None = None) -> None:
        self._client = client
        self._binding = binding or BindingMetadata()

    @property
    def backend(self) -> BackendKind:
        return BackendKind.OBJECT

    @property
    def binding(self) -> BindingMetadata:
        return self._binding

    def _check(self, artifact_set: ArtifactSet) -> None:
        if artifact_set.backend is not BackendKind.OBJECT:
            raise FerryError(f"{artifact_set} is not an object artifact set")

    def get_alias(self, artifact_set: ArtifactSet, alias: str) -> ArtifactRef | None:
        self._check(artifact_set)
        key = alias_key(artifact_set, alias)
        head = self._client.head(artifact_set.repository, key)
        if head is None:
            return None
        meta = BindingMetadata.from_tags(self._client.get_tags(artifact_set.repository, key))
        return ArtifactRef(
            native_id=head.etag,
            location=key,
            build_id=meta.source_build_id,
            modified_at=head.last_modified,
        )

    def get_artifact(self, artifact_set: ArtifactSet, build_id: str) -> ArtifactRef | None:
        self._check(artifact_set)
        key = build_key(artifact_set, build_id)
        head = self._client.head(artifact_set.repository, key)
        if head is None:
            return None
        return ArtifactRef(
            native_id=head.etag,
            location=key,
            build_id=build_id,
            modified_at=head.last_modified,
        )

    def bind_alias(self, artifact_set: ArtifactSet, alias: str, ref: ArtifactRef) -> None:
        """Copy ref onto the alias key and tag it.

        A fresh build object gets the store's binding. Copies from another
        alias keep the source's ferry tags, so archiving or restoring an
        object carries its container binding with it; only the environment
        is refreshed.
        """
        self._check(artifact_set)
        bucket = artifact_set.repository
        key = alias_key(artifact_set, alias)
        if _is_build_ref(artifact_set, ref):
            tags: dict[str, str] = {}
            meta = self._binding.merged(
                source_build_id=ref.build_id,
                source_location=ref.location,
            )
        else:
            tags = self._client.get_tags(bucket, ref.location)
            meta = BindingMetadata.from_tags(tags).merged(
                environment=self._binding.environment,
                source_build_id=ref.build_id,
            )
        if ref.location != key:
            self._client.copy(bucket, ref.location, bucket, key)
        self._client.put_tags(bucket, key, _retagged(tags, meta))
        logger.debug(
            "object_alias_bound",
            bucket=bucket,
            key=key,
            source=ref.location,
            etag=ref.native_id,
            container_commit_tag=meta.container_commit_tag,
        )

    def retag_alias(self, artifact_set: ArtifactSet, alias: str, **extra: str) -> BindingMetadata:
        """Write the store's binding over the tags of a bound alias.

        Source fields and tags outside the ``ferry:`` namespace are kept.
        Keyword arguments become additional ``ferry:`` tags.

        Returns:
            The metadata now recorded on the alias.

        Raises:
            BackendError: If the alias object cannot be read or tagged.
        """
        self._check(artifact_set)
        bucket = artifact_set.repository
        key = alias_key(artifact_set, alias)
        tags = self._client.get_tags(bucket, key)
        current = BindingMetadata.from_tags(tags)
        meta = current.merged(
            environment=self._binding.environment,
            container_repository=self._binding.container_repository,
            container_latest_tag=self._binding.container_latest_tag,
            container_commit_tag=self._binding.container_commit_tag,
        ).model_copy(update={"extra": {**current.extra, **self._binding.extra, **extra}})
        self._client.put_tags(bucket, key, _retagged(tags, meta))
        logger.info(
            "object_alias_retagged",
            bucket=bucket,
            key=key,
            container_commit_tag=meta.container_commit_tag,
        )
        return meta

    def delete_alias(self, artifact_set: ArtifactSet, alias: str) -> None:
        self._check(artifact_set)
        self._client.delete(artifact_set.repository, alias_key(artifact_set, alias))

    def last_pushed(self, artifact_set: ArtifactSet) -> ArtifactRef | None:
        self._check(artifact_set)
        root = f"{set_root(artifact_set)}/"
        newest: ArtifactRef | None = None
        for obj in self._client.list_objects(artifact_set.repository, root):
            parts = obj.key[len(root) :].split("/")
            if len(parts) != 2 or parts[1] != artifact_set.name:
                continue
            if newest is not None and (
                obj.last_modified is None
                or (newest.modified_at is not None and obj.last_modified <= newest.modified_at)
            ):
                continue
            newest = ArtifactRef(
                native_id=obj.etag or obj.key,
                location=obj.key,
                build_id=parts[0],
                modified_at=obj.last_modified,
            )
        return newest

    def alias_location(self, artifact_set: ArtifactSet, alias: str) -> str:
        return alias_key(artifact_set, alias)

    def console_url(self, artifact_set: ArtifactSet, ref: ArtifactRef) -> str | None:
        return self._client.console_url(artifact_set.repository, ref.location)

    def push(
        self,
        artifact_set: ArtifactSet,
        build_id: str,
        path: Path,
        *,
        force: bool = False,
    ) -> PushResult:
        """Upload a local file as the immutable build object for build_id.

        Skips the upload when the build object already exists, unless force.

        Raises:
            InvalidNameError: If build_id is not key safe.
            FerryError: If the file does not exist.
            BackendError: If the upload fails.
        """
        self._check(artifact_set)
        if not is_safe_name(build_id):
            raise InvalidNameError("build id", build_id, "not usable as an object key segment")
        if not path.is_file():
            raise FerryError(f"File not found: {path}")

        key = build_key(artifact_set, build_id)
        existing = None if force else self.get_artifact(artifact_set, build_id)
        if existing is not None:
            logger.info("object_push_skipped", key=key, etag=existing.native_id)
            return PushResult(
                artifact_set=artifact_set,
                build_id=build_id,
                ref=existing,
                uploaded=False,
            )

        self._client.upload(path, artifact_set.repository, key)
        ref = self.get_artifact(artifact_set, build_id)
        if ref is None:
            raise FerryError(f"Uploaded object is not visible yet: {key}")
        return PushResult(artifact_set=artifact_set, build_id=build_id, ref=ref, uploaded=True)


__all__ = ["ObjectArtifactStore", "alias_key", "build_key", "set_root"]

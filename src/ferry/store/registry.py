"""Container registry artifact store (Amazon ECR).

Artifacts are image manifests addressed by commit tag; aliases are mutable
tags. Binding an alias puts the manifest already stored under the source tag
under the alias tag, so no layers are pushed.
"""

from __future__ import annotations

import structlog

from ferry.aws.ecr import EcrImage, EcrRegistryClient, pick_commit_tag
from ferry.errors import FerryError
from ferry.schemas.artifacts import ArtifactRef, ArtifactSet, BackendKind
from ferry.store.base import ArtifactStore

logger = structlog.get_logger(__name__)


class RegistryArtifactStore(ArtifactStore):
    """ArtifactStore over one ECR region.

    Args:
        client: ECR adapter.
        known_aliases: Alias tags never mistaken for commit tags.
    """

    def __init__(self, client: EcrRegistryClient, known_aliases: tuple[str, ...] = ()) -> None:
        self._client = client
        self._known_aliases = frozenset(known_aliases)

    @property
    def backend(self) -> BackendKind:
        return BackendKind.CONTAINER

    def _check(self, artifact_set: ArtifactSet) -> None:
        if artifact_set.backend is not BackendKind.CONTAINER:
            raise FerryError(f"{artifact_set} is not a container artifact set")

    def _to_ref(self, image: EcrImage, build_id: str | None) -> ArtifactRef:
        return ArtifactRef(
            native_id=image.digest,
            location=image.tag,
            build_id=build_id,
            media_type=image.media_type,
            payload=image.manifest,
        )

    def get_alias(self, artifact_set: ArtifactSet, alias: str) -> ArtifactRef | None:
        self._check(artifact_set)
        image = self._client.get_manifest(artifact_set.repository, alias)
        if image is None:
            return None
        commit = self._client.resolve_commit_tag_from_alias(
            artifact_set.repository,
            alias,
            exclude=self._known_aliases,
        )
        return self._to_ref(image, commit)

    def get_artifact(self, artifact_set: ArtifactSet, build_id: str) -> ArtifactRef | None:
        self._check(artifact_set)
        image = self._client.get_manifest(artifact_set.repository, build_id)
        if image is None:
            return None
        return self._to_ref(image, build_id)

    def bind_alias(self, artifact_set: ArtifactSet, alias: str, ref: ArtifactRef) -> None:
        self._check(artifact_set)
        manifest = ref.payload
        media_type = ref.media_type
        if manifest is None:
            # Refs built without a payload are re-read from their own tag.
            image = self._client.get_manifest(artifact_set.repository, ref.location)
            if image is None or image.digest != ref.native_id:
                raise FerryError(
                    f"Cannot bind '{alias}': manifest {ref.native_id} is no longer "
                    f"available under '{ref.location}' in {artifact_set}"
                )
            manifest, media_type = image.manifest, image.media_type
        self._client.put_manifest(artifact_set.repository, alias, manifest, media_type)
        logger.debug(
            "registry_alias_bound",
            repository=artifact_set.repository,
            alias=alias,
            digest=ref.native_id,
        )

    def delete_alias(self, artifact_set: ArtifactSet, alias: str) -> None:
        self._check(artifact_set)
        self._client.delete_tag(artifact_set.repository, alias)

    def last_pushed(self, artifact_set: ArtifactSet) -> ArtifactRef | None:
        self._check(artifact_set)
        detail = self._client.last_pushed(artifact_set.repository)
        if detail is None:
            return None
        commit = pick_commit_tag(detail.tags, exclude=self._known_aliases)
        if commit is None:
            return None
        return ArtifactRef(
            native_id=detail.digest,
            location=commit,
            build_id=commit,
            modified_at=detail.pushed_at,
        )

    def alias_location(self, artifact_set: ArtifactSet, alias: str) -> str:
        return f"{artifact_set.repository}:{alias}"

    def console_url(self, artifact_set: ArtifactSet, ref: ArtifactRef) -> str | None:
        return self._client.console_url(artifact_set.repository, ref.native_id)


__all__ = ["RegistryArtifactStore"]

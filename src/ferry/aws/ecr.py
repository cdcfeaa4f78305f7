"""Amazon ECR adapter: manifests, tags and console links.

Aliases in a registry are plain tags. Re-pointing a tag never moves image
bytes: the manifest already stored under one tag is put again under another.

Example:
    >>> client = EcrRegistryClient(factory.client("ecr"), region="eu-west-1",
    ...                            sts_client=factory.client("sts"))
    >>> image = client.get_manifest("backend", "prod")
    >>> client.put_manifest("backend", "rollback_prod", image.manifest, image.media_type)
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime
from typing import Any

import structlog
from botocore.exceptions import ClientError
from pydantic import BaseModel, ConfigDict, Field

from ferry.aws.session import aws_errors, error_code
from ferry.errors import BackendError
from ferry.telemetry.tracing import traced

logger = structlog.get_logger(__name__)

DOCKER_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
DOCKER_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"
OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_INDEX = "application/vnd.oci.image.index.v1+json"

ACCEPTED_MEDIA_TYPES = [
    DOCKER_MANIFEST_V2,
    DOCKER_MANIFEST_LIST,
    OCI_MANIFEST,
    OCI_INDEX,
]

DEFAULT_ALIAS_TAGS = frozenset({"latest", "rollback"})

_COMMIT_TAG_RE = re.compile(r"^[0-9a-fA-F]{7,40}$")

_NOT_FOUND_CODES = frozenset({"ImageNotFoundException", "RepositoryNotFoundException"})


class EcrImage(BaseModel):
    """A manifest fetched by tag."""

    model_config = ConfigDict(frozen=True)

    tag: str
    digest: str
    manifest: str = Field(repr=False)
    media_type: str | None = None


class EcrImageDetail(BaseModel):
    """Tags and push time of one image."""

    model_config = ConfigDict(frozen=True)

    digest: str
    tags: tuple[str, ...] = ()
    pushed_at: datetime | None = None


def pick_commit_tag(tags: Iterable[str], exclude: Iterable[str] = ()) -> str | None:
    """Pick the tag that looks like a commit sha.

    A commit tag is 7 to 40 hex characters and not one of the alias tags.
    When several qualify, the longest wins.

    Example:
        >>> pick_commit_tag(["prod", "a1b2c3d", "a1b2c3d4e5f6"], exclude=["prod"])
        'a1b2c3d4e5f6'
    """
    excluded = DEFAULT_ALIAS_TAGS | set(exclude)
    candidates = [t for t in tags if t not in excluded and _COMMIT_TAG_RE.match(t)]
    if not candidates:
        return None
    candidates.sort(key=len, reverse=True)
    return candidates[0]


class EcrRegistryClient:
    """boto3-backed registry operations for one region.

    Attributes:
        region: Region the ECR client talks to.
    """

    def __init__(self, ecr_client: Any, region: str, sts_client: Any | None = None) -> None:
        self._ecr = ecr_client
        self._sts = sts_client
        self.region = region
        self._account_id: str | None = None
        self._log = logger.bind(region=region)

    def get_manifest(self, repository: str, tag: str) -> EcrImage | None:
        """Fetch the manifest currently stored under a tag.

        Returns:
            The image, or None if the tag or repository does not exist.

        Raises:
            BackendError: If ECR cannot be queried.
        """
        with aws_errors("ecr", "BatchGetImage"):
            try:
                response = self._ecr.batch_get_image(
                    repositoryName=repository,
                    imageIds=[{"imageTag": tag}],
                    acceptedMediaTypes=ACCEPTED_MEDIA_TYPES,
                )
            except ClientError as e:
                if error_code(e) in _NOT_FOUND_CODES:
                    return None
                raise

        images = response.get("images") or []
        if not images:
            for failure in response.get("failures") or []:
                self._log.debug(
                    "ecr_manifest_missing",
                    repository=repository,
                    tag=tag,
                    failure_code=failure.get("failureCode"),
                )
            return None

        image = images[0]
        return EcrImage(
            tag=tag,
            digest=image["imageId"]["imageDigest"],
            manifest=image["imageManifest"],
            media_type=image.get("imageManifestMediaType"),
        )

    @traced(name="ferry.aws.ecr.put_image", attributes={"aws.service": "ecr"})
    def put_manifest(
        self,
        repository: str,
        tag: str,
        manifest: str,
        media_type: str | None = None,
    ) -> None:
        """Store an existing manifest under a tag, moving the tag if it exists.

        Re-putting the manifest a tag already points at is treated as success.
        """
        kwargs: dict[str, Any] = {
            "repositoryName": repository,
            "imageManifest": manifest,
            "imageTag": tag,
        }
        if media_type:
            kwargs["imageManifestMediaType"] = media_type

        with aws_errors("ecr", "PutImage"):
            try:
                self._ecr.put_image(**kwargs)
            except ClientError as e:
                if error_code(e) != "ImageAlreadyExistsException":
                    raise
                self._log.debug("ecr_tag_already_current", repository=repository, tag=tag)
                return

        self._log.info("ecr_tag_put", repository=repository, tag=tag)

    @traced(name="ferry.aws.ecr.delete_tag", attributes={"aws.service": "ecr"})
    def delete_tag(self, repository: str, tag: str) -> None:
        """Remove a tag. The image itself stays while other tags reference it."""
        with aws_errors("ecr", "BatchDeleteImage"):
            response = self._ecr.batch_delete_image(
                repositoryName=repository,
                imageIds=[{"imageTag": tag}],
            )
        for failure in response.get("failures") or []:
            if failure.get("failureCode") != "ImageNotFound":
                raise BackendError(
                    "ecr",
                    "BatchDeleteImage",
                    f"{failure.get('failureCode')}: {failure.get('failureReason')}",
                )

    def describe_image(self, repository: str, tag: str) -> EcrImageDetail | None:
        with aws_errors("ecr", "DescribeImages"):
            try:
                response = self._ecr.describe_images(
                    repositoryName=repository,
                    imageIds=[{"imageTag": tag}],
                )
            except ClientError as e:
                if error_code(e) in _NOT_FOUND_CODES:
                    return None
                raise

        details = response.get("imageDetails") or []
        if not details:
            return None
        return _detail(details[0])

    def last_pushed(self, repository: str) -> EcrImageDetail | None:
        """Most recently pushed tagged image in the repository."""
        newest: EcrImageDetail | None = None
        with aws_errors("ecr", "DescribeImages"):
            try:
                paginator = self._ecr.get_paginator("describe_images")
                pages = paginator.paginate(
                    repositoryName=repository,
                    filter={"tagStatus": "TAGGED"},
                )
                for page in pages:
                    for raw in page.get("imageDetails") or []:
                        detail = _detail(raw)
                        if detail.pushed_at is None:
                            continue
                        if newest is None or (
                            newest.pushed_at is not None
                            and detail.pushed_at > newest.pushed_at
                        ):
                            newest = detail
            except ClientError as e:
                if error_code(e) in _NOT_FOUND_CODES:
                    return None
                raise
        return newest

    def resolve_commit_tag_from_alias(
        self,
        repository: str,
        alias_tag: str,
        exclude: Iterable[str] = (),
    ) -> str | None:
        """Commit tag co-bound with an alias tag, or None."""
        detail = self.describe_image(repository, alias_tag)
        if detail is None:
            return None
        return pick_commit_tag(detail.tags, exclude=[alias_tag, *exclude])

    def last_pushed_commit_tag(self, repository: str, exclude: Iterable[str] = ()) -> str | None:
        detail = self.last_pushed(repository)
        if detail is None:
            return None
        return pick_commit_tag(detail.tags, exclude=exclude)

    def account_id(self) -> str | None:
        """AWS account id of the caller, looked up once."""
        if self._account_id is None and self._sts is not None:
            with aws_errors("sts", "GetCallerIdentity"):
                self._account_id = self._sts.get_caller_identity()["Account"]
        return self._account_id

    def console_url(self, repository: str, digest: str) -> str | None:
        account_id = self.account_id()
        if account_id is None:
            return None
        region = self.region
        return (
            f"https://{region}.console.aws.amazon.com/ecr/repositories/private/"
            f"{account_id}/{repository}/_/image/{digest}/details?region={region}"
        )


def _detail(raw: dict[str, Any]) -> EcrImageDetail:
    return EcrImageDetail(
        digest=raw["imageDigest"],
        tags=tuple(raw.get("imageTags") or ()),
        pushed_at=raw.get("imagePushedAt"),
    )


__all__ = [
    "ACCEPTED_MEDIA_TYPES",
    "EcrImage",
    "EcrImageDetail",
    "EcrRegistryClient",
    "pick_commit_tag",
]

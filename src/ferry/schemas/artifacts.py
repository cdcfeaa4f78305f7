"""Artifact schemas: artifact sets, artifact references and binding metadata.

Key Components:
    BackendKind: Which artifact backend an ArtifactSet lives in
    ArtifactSet: Scope within which aliases are resolved
    ArtifactRef: Backend-native identity of one immutable build
    BindingMetadata: Structured alias metadata stored as object tags
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

SAFE_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$"
"""Build ids and alias names: tag-safe and key-safe, at most 128 characters."""

_SAFE_NAME_RE = re.compile(SAFE_NAME_PATTERN)

DEFAULT_OBJECT_PREFIX = "objects"


class BackendKind(str, Enum):
    """Artifact backend types.

    Attributes:
        CONTAINER: Container registry (ECR). Aliases are tags.
        OBJECT: Object store (S3). Aliases are permalink objects.
    """

    CONTAINER = "container"
    OBJECT = "object"


def is_safe_name(value: str) -> bool:
    return bool(_SAFE_NAME_RE.match(value))


class ArtifactSet(BaseModel):
    """The scope of a family of artifacts and their aliases.

    Attributes:
        backend: Backend kind.
        region: AWS region.
        repository: ECR repository name or S3 bucket name.
        name: Logical name. Defaults to the repository for containers.
        prefix: S3 key prefix (object backend only).

    Examples:
        >>> ArtifactSet(backend=BackendKind.CONTAINER, region="eu-west-1",
        ...             repository="backend").display()
        'ecr://eu-west-1/backend'
        >>> ArtifactSet(backend=BackendKind.OBJECT, region="eu-west-1",
        ...             repository="releases", name="migrator").display()
        's3://releases/objects/migrator'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    backend: BackendKind = Field(
        ...,
        description="Backend kind",
    )
    region: str = Field(
        ...,
        min_length=1,
        description="AWS region",
    )
    repository: str = Field(
        ...,
        min_length=1,
        description="ECR repository or S3 bucket",
    )
    name: str = Field(
        default="",
        description="Logical artifact name",
    )
    prefix: str = Field(
        default=DEFAULT_OBJECT_PREFIX,
        description="S3 key prefix (object backend only)",
    )

    @model_validator(mode="before")
    @classmethod
    def _default_name(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("name"):
            if BackendKind(data.get("backend")) is BackendKind.OBJECT:
                raise ValueError("object artifact sets require a logical name")
            data["name"] = data.get("repository", "")
        if isinstance(data.get("prefix"), str):
            data["prefix"] = data["prefix"].strip("/")
        return data

    def display(self) -> str:
        if self.backend is BackendKind.CONTAINER:
            return f"ecr://{self.region}/{self.repository}"
        base = f"{self.prefix}/{self.name}" if self.prefix else self.name
        return f"s3://{self.repository}/{base}"

    def __str__(self) -> str:
        return self.display()


class ArtifactRef(BaseModel):
    """Backend-native reference to one immutable artifact.

    Two references denote the same artifact when their native ids match,
    regardless of which tag or key they were resolved through; use
    ``same_artifact`` rather than ``==`` for that comparison.

    Attributes:
        native_id: Manifest digest (container) or ETag (object).
        location: Tag or key the reference was resolved from.
        build_id: Commit or build identifier, when known.
        media_type: Manifest media type (container only).
        payload: Raw manifest JSON (container only, never serialized).
        modified_at: Push or last-modified time, when the backend reports it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    native_id: str = Field(
        ...,
        min_length=1,
        description="Manifest digest or object ETag",
    )
    location: str = Field(
        ...,
        min_length=1,
        description="Tag or key the reference was resolved from",
    )
    build_id: str | None = Field(
        default=None,
        description="Commit or build identifier",
    )
    media_type: str | None = Field(
        default=None,
        description="Manifest media type",
    )
    payload: str | None = Field(
        default=None,
        exclude=True,
        repr=False,
        description="Raw manifest (container only)",
    )
    modified_at: datetime | None = Field(
        default=None,
        description="Push or last-modified timestamp",
    )

    def same_artifact(self, other: ArtifactRef | None) -> bool:
        return other is not None and other.native_id == self.native_id

    def label(self) -> str:
        """Short human label: build id when known, else a truncated native id."""
        if self.build_id:
            return self.build_id
        return self.native_id[:19]


class BindingMetadata(BaseModel):
    """Metadata recorded on an object alias when it is bound.

    Replaces free-form tag maps with named fields. Unknown ``ferry:`` keys
    land in ``extra`` so newer writers stay readable by older readers.

    Attributes:
        environment: Environment the alias serves.
        source_build_id: Build id the alias was bound to.
        source_location: Key the alias content was copied from.
        container_repository: Container repository the object is bound to.
        container_latest_tag: Container alias tag used to resolve the binding.
        container_commit_tag: Container commit tag the object runs with.
        extra: Additional ferry tags without a named field.

    Examples:
        >>> meta = BindingMetadata(environment="prod", source_build_id="a1b2c3d")
        >>> meta.to_tags()
        {'ferry:environment': 'prod', 'ferry:source_build_id': 'a1b2c3d'}
        >>> BindingMetadata.from_tags({"ferry:environment": "prod", "owner": "x"}).environment
        'prod'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    TAG_PREFIX: ClassVar[str] = "ferry:"

    environment: str | None = None
    source_build_id: str | None = None
    source_location: str | None = None
    container_repository: str | None = None
    container_latest_tag: str | None = None
    container_commit_tag: str | None = None
    extra: dict[str, str] = Field(default_factory=dict)

    def to_tags(self) -> dict[str, str]:
        tags: dict[str, str] = {}
        for field in _NAMED_BINDING_FIELDS:
            value = getattr(self, field)
            if value is not None:
                tags[f"{self.TAG_PREFIX}{field}"] = value
        for key, value in self.extra.items():
            tags[f"{self.TAG_PREFIX}{key}"] = value
        return tags

    @classmethod
    def from_tags(cls, tags: dict[str, str]) -> BindingMetadata:
        prefix = cls.TAG_PREFIX
        named: dict[str, str] = {}
        extra: dict[str, str] = {}
        for key, value in tags.items():
            if not key.startswith(prefix):
                continue
            field = key[len(prefix) :]
            if field in _NAMED_BINDING_FIELDS:
                named[field] = value
            else:
                extra[field] = value
        return cls(**named, extra=extra)

    def merged(self, **updates: str | None) -> BindingMetadata:
        """Return a copy with the given named fields replaced (None keeps the old value)."""
        values = {k: v for k, v in updates.items() if v is not None}
        return self.model_copy(update=values)


_NAMED_BINDING_FIELDS = (
    "environment",
    "source_build_id",
    "source_location",
    "container_repository",
    "container_latest_tag",
    "container_commit_tag",
)


__all__ = [
    "DEFAULT_OBJECT_PREFIX",
    "SAFE_NAME_PATTERN",
    "ArtifactRef",
    "ArtifactSet",
    "BackendKind",
    "BindingMetadata",
    "is_safe_name",
]

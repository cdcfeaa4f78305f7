"""Artifact stores: the ArtifactStore ABC and its ECR and S3 implementations."""

from __future__ import annotations

from ferry.store.base import ArtifactStore
from ferry.store.objects import ObjectArtifactStore, alias_key, build_key
from ferry.store.registry import RegistryArtifactStore

__all__ = [
    "ArtifactStore",
    "ObjectArtifactStore",
    "RegistryArtifactStore",
    "alias_key",
    "build_key",
]

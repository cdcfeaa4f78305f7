"""Unit tests for artifact and rollout schemas.

Requirements tested:
    FR-001: Artifact sets, references and safe names
    FR-002: Binding metadata on object aliases
    FR-009: Rollout start and wait loop
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from ferry.schemas.artifacts import (
    ArtifactRef,
    ArtifactSet,
    BackendKind,
    BindingMetadata,
    is_safe_name,
)
from ferry.schemas.rollout import RefreshPreferences, RefreshState, RefreshStatus


class TestArtifactSet:
    """Tests for ArtifactSet."""

    @pytest.mark.requirement("FR-001")
    def test_container_name_defaults_to_repository(self, container_set) -> None:
        assert container_set.name == "backend"
        assert container_set.display() == "ecr://eu-west-1/backend"

    @pytest.mark.requirement("FR-001")
    def test_object_display(self, object_set) -> None:
        assert str(object_set) == "s3://releases/objects/migrator"

    @pytest.mark.requirement("FR-001")
    def test_object_requires_name(self) -> None:
        with pytest.raises(ValidationError, match="logical name"):
            ArtifactSet(backend=BackendKind.OBJECT, region="eu-west-1", repository="releases")

    @pytest.mark.requirement("FR-001")
    def test_prefix_slashes_stripped(self) -> None:
        artifact_set = ArtifactSet(
            backend=BackendKind.OBJECT,
            region="eu-west-1",
            repository="releases",
            name="migrator",
            prefix="/bin/",
        )

        assert artifact_set.prefix == "bin"

    @pytest.mark.requirement("FR-001")
    def test_frozen(self, container_set) -> None:
        with pytest.raises(ValidationError):
            container_set.repository = "other"


class TestArtifactRef:
    """Tests for ArtifactRef identity."""

    @pytest.mark.requirement("FR-001")
    def test_same_artifact_compares_native_ids(self) -> None:
        by_tag = ArtifactRef(native_id="sha256:aaa", location="prod")
        by_commit = ArtifactRef(native_id="sha256:aaa", location="a1b2c3d", build_id="a1b2c3d")

        assert by_tag.same_artifact(by_commit)
        assert by_tag != by_commit
        assert not by_tag.same_artifact(None)

    @pytest.mark.requirement("FR-001")
    def test_payload_never_serialized(self) -> None:
        ref = ArtifactRef(native_id="sha256:aaa", location="prod", payload="{}")

        assert "payload" not in ref.model_dump()

    @pytest.mark.requirement("FR-001")
    def test_label(self) -> None:
        digest = "sha256:" + "f" * 64

        assert ArtifactRef(native_id=digest, location="prod").label() == digest[:19]
        assert ArtifactRef(native_id=digest, location="prod", build_id="abc").label() == "abc"


class TestSafeNames:
    """Tests for is_safe_name."""

    @pytest.mark.parametrize("value", ["a1b2c3d", "v1.2.3", "rollback_prod", "A-b_c.d"])
    @pytest.mark.requirement("FR-001")
    def test_safe(self, value: str) -> None:
        assert is_safe_name(value)

    @pytest.mark.parametrize("value", ["", ".hidden", "a/b", "a b", "x" * 129, "tag:1"])
    @pytest.mark.requirement("FR-001")
    def test_unsafe(self, value: str) -> None:
        assert not is_safe_name(value)


class TestBindingMetadata:
    """Tests for BindingMetadata tag mapping."""

    @pytest.mark.requirement("FR-002")
    def test_round_trip_ignores_foreign_tags(self) -> None:
        meta = BindingMetadata(
            environment="prod",
            source_build_id="a1b2c3d",
            extra={"pipeline": "42"},
        )
        tags = {**meta.to_tags(), "owner": "platform"}

        parsed = BindingMetadata.from_tags(tags)

        assert parsed == meta
        assert "owner" not in parsed.extra

    @pytest.mark.requirement("FR-002")
    def test_unset_fields_are_not_written(self) -> None:
        assert BindingMetadata().to_tags() == {}

    @pytest.mark.requirement("FR-002")
    def test_merged_keeps_values_for_none(self) -> None:
        meta = BindingMetadata(environment="prod", source_build_id="old")

        merged = meta.merged(source_build_id="new", source_location=None)

        assert merged.environment == "prod"
        assert merged.source_build_id == "new"
        assert merged.source_location is None


class TestRefreshStatus:
    """Tests for RefreshStatus parsing."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Pending", RefreshStatus.PENDING),
            ("InProgress", RefreshStatus.IN_PROGRESS),
            ("Baking", RefreshStatus.IN_PROGRESS),
            ("RollbackInProgress", RefreshStatus.IN_PROGRESS),
            ("Cancelling", RefreshStatus.CANCELLING),
            ("Successful", RefreshStatus.SUCCESSFUL),
            ("Failed", RefreshStatus.FAILED),
            ("RollbackSuccessful", RefreshStatus.FAILED),
            ("RollbackFailed", RefreshStatus.FAILED),
            ("Cancelled", RefreshStatus.CANCELLED),
            ("Hibernating", RefreshStatus.UNKNOWN),
            (None, RefreshStatus.UNKNOWN),
        ],
    )
    @pytest.mark.requirement("FR-009")
    def test_parse(self, raw, expected) -> None:
        assert RefreshStatus.parse(raw) is expected

    @pytest.mark.requirement("FR-009")
    def test_terminal_statuses(self) -> None:
        terminal = {s for s in RefreshStatus if s.is_terminal}

        assert terminal == {
            RefreshStatus.SUCCESSFUL,
            RefreshStatus.FAILED,
            RefreshStatus.CANCELLED,
        }

    @pytest.mark.requirement("FR-009")
    def test_state_display_prefers_raw(self) -> None:
        assert RefreshState.from_raw("Baking").display == "Baking"
        assert RefreshState().display == "Unknown"


class TestRefreshPreferences:
    """Tests for RefreshPreferences."""

    @pytest.mark.requirement("FR-009")
    def test_defaults_to_aws(self) -> None:
        assert RefreshPreferences().to_aws() == {
            "InstanceWarmup": 120,
            "MinHealthyPercentage": 90,
            "SkipMatching": True,
        }

    @pytest.mark.requirement("FR-009")
    def test_percentage_bounds(self) -> None:
        with pytest.raises(ValidationError):
            RefreshPreferences(min_healthy_percentage=101)

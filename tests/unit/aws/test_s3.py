"""Unit tests for the S3 adapter with a mocked boto3 client.

Requirements tested:
    FR-012: AWS adapters and error translation
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import ClientError

from ferry.aws.s3 import S3ObjectClient, s3_url, strip_etag
from ferry.errors import AuthenticationError, BackendError


def _client_error(code: str, operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def s3() -> MagicMock:
    return MagicMock()


@pytest.fixture
def client(s3: MagicMock) -> S3ObjectClient:
    return S3ObjectClient(s3, "eu-west-1")


class TestHead:
    """Tests for S3ObjectClient.head."""

    @pytest.mark.requirement("FR-012")
    def test_head_strips_etag_quotes(self, client, s3) -> None:
        modified = datetime(2024, 3, 1, tzinfo=timezone.utc)
        s3.head_object.return_value = {
            "ETag": '"9b2cf535f27731c974343645a3985328"',
            "LastModified": modified,
            "ContentLength": 42,
        }

        obj = client.head("releases", "objects/migrator/a1b2c3d/migrator")

        assert obj is not None
        assert obj.etag == "9b2cf535f27731c974343645a3985328"
        assert obj.last_modified == modified
        assert obj.size == 42

    @pytest.mark.parametrize("code", ["404", "NoSuchKey", "NotFound"])
    @pytest.mark.requirement("FR-012")
    def test_missing_object(self, client, s3, code: str) -> None:
        s3.head_object.side_effect = _client_error(code)

        assert client.head("releases", "objects/migrator/migrator.latest") is None

    @pytest.mark.requirement("FR-012")
    def test_forbidden(self, client, s3) -> None:
        s3.head_object.side_effect = _client_error("AccessDenied")

        with pytest.raises(AuthenticationError):
            client.head("releases", "objects/migrator/migrator.latest")


class TestWrites:
    """Tests for copy, tagging and delete."""

    @pytest.mark.requirement("FR-012")
    def test_copy_is_server_side(self, client, s3) -> None:
        client.copy("releases", "a/b", "releases", "a/c")

        s3.copy_object.assert_called_once_with(
            Bucket="releases",
            Key="a/c",
            CopySource={"Bucket": "releases", "Key": "a/b"},
        )

    @pytest.mark.requirement("FR-012")
    def test_put_tags_sorted(self, client, s3) -> None:
        client.put_tags("releases", "k", {"b": "2", "a": "1"})

        s3.put_object_tagging.assert_called_once_with(
            Bucket="releases",
            Key="k",
            Tagging={"TagSet": [{"Key": "a", "Value": "1"}, {"Key": "b", "Value": "2"}]},
        )

    @pytest.mark.requirement("FR-012")
    def test_get_tags(self, client, s3) -> None:
        s3.get_object_tagging.return_value = {"TagSet": [{"Key": "a", "Value": "1"}]}

        assert client.get_tags("releases", "k") == {"a": "1"}

    @pytest.mark.requirement("FR-012")
    def test_get_tags_of_missing_object(self, client, s3) -> None:
        s3.get_object_tagging.side_effect = _client_error("NoSuchKey", "GetObjectTagging")

        assert client.get_tags("releases", "k") == {}

    @pytest.mark.requirement("FR-012")
    def test_delete_failure(self, client, s3) -> None:
        s3.delete_object.side_effect = _client_error("InternalError", "DeleteObject")

        with pytest.raises(BackendError, match="DeleteObject"):
            client.delete("releases", "k")


class TestListAndUpload:
    """Tests for listings and uploads."""

    @pytest.mark.requirement("FR-012")
    def test_list_objects_across_pages(self, client, s3) -> None:
        s3.get_paginator.return_value.paginate.return_value = [
            {"Contents": [{"Key": "p/a", "ETag": '"1"', "Size": 1}]},
            {},
            {"Contents": [{"Key": "p/b", "ETag": '"2"', "Size": 2}]},
        ]

        objects = client.list_objects("releases", "p/")

        assert [o.key for o in objects] == ["p/a", "p/b"]
        assert [o.etag for o in objects] == ["1", "2"]
        s3.get_paginator.return_value.paginate.assert_called_once_with(
            Bucket="releases", Prefix="p/"
        )

    @pytest.mark.requirement("FR-012")
    def test_upload_stays_single_part(self, client, s3, tmp_path: Path) -> None:
        artifact = tmp_path / "migrator"
        artifact.write_bytes(b"binary")

        client.upload(artifact, "releases", "objects/migrator/a1b2c3d/migrator")

        args = s3.upload_file.call_args
        assert args.args == (str(artifact), "releases", "objects/migrator/a1b2c3d/migrator")
        assert args.kwargs["Config"].multipart_threshold == 5 * 1024**3

    @pytest.mark.requirement("FR-012")
    def test_upload_failure(self, client, s3, tmp_path: Path) -> None:
        s3.upload_file.side_effect = S3UploadFailedError("connection reset")

        with pytest.raises(BackendError, match="connection reset"):
            client.upload(tmp_path / "migrator", "releases", "k")


class TestHelpers:
    """Tests for module helpers."""

    @pytest.mark.requirement("FR-012")
    def test_strip_etag(self) -> None:
        assert strip_etag('"abc"') == "abc"
        assert strip_etag("abc") == "abc"

    @pytest.mark.requirement("FR-012")
    def test_urls(self, client) -> None:
        assert s3_url("releases", "a/b") == "s3://releases/a/b"
        assert client.console_url("releases", "a/b") == (
            "https://s3.console.aws.amazon.com/s3/object/releases?region=eu-west-1&prefix=a/b"
        )

"""Amazon S3 adapter: object heads, server-side copies, tags and uploads."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

import structlog
from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.exceptions import ClientError
from pydantic import BaseModel, ConfigDict

from ferry.aws.session import aws_errors, error_code
from ferry.errors import BackendError
from ferry.telemetry.tracing import traced

logger = structlog.get_logger(__name__)

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})

# Single-part uploads up to the CopyObject limit keep ETags equal to the
# content MD5, so a permalink copy carries the same ETag as its build object.
_SINGLE_PART_LIMIT = 5 * 1024**3


class S3Object(BaseModel):
    """Head or listing entry of one object. ETag is stored without quotes."""

    model_config = ConfigDict(frozen=True)

    key: str
    etag: str
    last_modified: datetime | None = None
    size: int | None = None


def strip_etag(raw: str) -> str:
    return raw.strip('"')


def s3_url(bucket: str, key: str) -> str:
    return f"s3://{bucket}/{key}"


class S3ObjectClient:
    """boto3-backed object operations for one region."""

    def __init__(self, s3_client: Any, region: str) -> None:
        self._s3 = s3_client
        self.region = region
        self._log = logger.bind(region=region)

    def head(self, bucket: str, key: str) -> S3Object | None:
        """Head an object.

        Returns:
            The object's ETag and metadata, or None if it does not exist.

        Raises:
            BackendError: If S3 cannot be queried.
        """
        with aws_errors("s3", "HeadObject"):
            try:
                response = self._s3.head_object(Bucket=bucket, Key=key)
            except ClientError as e:
                if error_code(e) in _NOT_FOUND_CODES:
                    return None
                raise
        return S3Object(
            key=key,
            etag=strip_etag(response["ETag"]),
            last_modified=response.get("LastModified"),
            size=response.get("ContentLength"),
        )

    @traced(name="ferry.aws.s3.copy_object", attributes={"aws.service": "s3"})
    def copy(self, src_bucket: str, src_key: str, dst_bucket: str, dst_key: str) -> None:
        """Server-side copy. The bytes never leave S3."""
        with aws_errors("s3", "CopyObject"):
            self._s3.copy_object(
                Bucket=dst_bucket,
                Key=dst_key,
                CopySource={"Bucket": src_bucket, "Key": src_key},
            )
        self._log.info(
            "s3_object_copied",
            source=s3_url(src_bucket, src_key),
            destination=s3_url(dst_bucket, dst_key),
        )

    @traced(name="ferry.aws.s3.put_tags", attributes={"aws.service": "s3"})
    def put_tags(self, bucket: str, key: str, tags: dict[str, str]) -> None:
        """Replace the tag set of an object."""
        tag_set = [{"Key": k, "Value": v} for k, v in sorted(tags.items())]
        with aws_errors("s3", "PutObjectTagging"):
            self._s3.put_object_tagging(
                Bucket=bucket,
                Key=key,
                Tagging={"TagSet": tag_set},
            )

    def get_tags(self, bucket: str, key: str) -> dict[str, str]:
        with aws_errors("s3", "GetObjectTagging"):
            try:
                response = self._s3.get_object_tagging(Bucket=bucket, Key=key)
            except ClientError as e:
                if error_code(e) in _NOT_FOUND_CODES:
                    return {}
                raise
        return {t["Key"]: t["Value"] for t in response.get("TagSet") or []}

    @traced(name="ferry.aws.s3.delete_object", attributes={"aws.service": "s3"})
    def delete(self, bucket: str, key: str) -> None:
        with aws_errors("s3", "DeleteObject"):
            self._s3.delete_object(Bucket=bucket, Key=key)

    def list_objects(self, bucket: str, prefix: str) -> list[S3Object]:
        objects: list[S3Object] = []
        with aws_errors("s3", "ListObjectsV2"):
            paginator = self._s3.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                for raw in page.get("Contents") or []:
                    objects.append(
                        S3Object(
                            key=raw["Key"],
                            etag=strip_etag(raw.get("ETag", "")),
                            last_modified=raw.get("LastModified"),
                            size=raw.get("Size"),
                        )
                    )
        return objects

    @traced(name="ferry.aws.s3.upload", attributes={"aws.service": "s3"})
    def upload(self, path: Path, bucket: str, key: str) -> None:
        """Upload a local file."""
        config = TransferConfig(multipart_threshold=_SINGLE_PART_LIMIT)
        with aws_errors("s3", "PutObject"):
            try:
                self._s3.upload_file(str(path), bucket, key, Config=config)
            except S3UploadFailedError as e:
                raise BackendError("s3", "PutObject", str(e)) from e
        self._log.info("s3_object_uploaded", path=str(path), destination=s3_url(bucket, key))

    def console_url(self, bucket: str, key: str) -> str:
        return (
            f"https://s3.console.aws.amazon.com/s3/object/{bucket}"
            f"?region={self.region}&prefix={key}"
        )


__all__ = ["S3Object", "S3ObjectClient", "s3_url", "strip_etag"]

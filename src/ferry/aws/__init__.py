"""boto3 adapters for ECR, S3 and EC2 Auto Scaling."""

from __future__ import annotations

from ferry.aws.autoscaling import AutoScalingFleetDriver
from ferry.aws.ecr import EcrRegistryClient, pick_commit_tag
from ferry.aws.s3 import S3ObjectClient, s3_url
from ferry.aws.session import ClientFactory, aws_errors, translate_error

__all__ = [
    "AutoScalingFleetDriver",
    "ClientFactory",
    "EcrRegistryClient",
    "S3ObjectClient",
    "aws_errors",
    "pick_commit_tag",
    "s3_url",
    "translate_error",
]

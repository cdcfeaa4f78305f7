"""boto3 client creation and AWS error translation.

Every boto3 client ferry uses is created here, with botocore's standard
retry mode as the only retry layer. Adapters wrap each API call in
``aws_errors`` so botocore exceptions surface as ferry errors.

Example:
    >>> factory = ClientFactory(region="eu-west-1")
    >>> ecr = factory.client("ecr")
    >>> with aws_errors("ecr", "DescribeImages"):
    ...     ecr.describe_images(repositoryName="backend")
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    EndpointConnectionError,
    NoCredentialsError,
    NoRegionError,
    PartialCredentialsError,
)

from ferry.errors import AuthenticationError, BackendError, FerryError
from ferry.telemetry.sanitization import sanitize_error_message

logger = structlog.get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 5

AUTH_ERROR_CODES = frozenset(
    {
        "AccessDenied",
        "AccessDeniedException",
        "ExpiredToken",
        "ExpiredTokenException",
        "InvalidClientTokenId",
        "SignatureDoesNotMatch",
        "UnrecognizedClientException",
    }
)


def error_code(exc: ClientError) -> str:
    """Return the AWS error code of a ClientError ("" when absent)."""
    return str(exc.response.get("Error", {}).get("Code", ""))


def error_message(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Message", "")) or str(exc)


def translate_error(service: str, operation: str, exc: Exception) -> FerryError:
    """Map a botocore exception to the ferry error taxonomy.

    Args:
        service: AWS service name.
        operation: API operation name.
        exc: The botocore exception.

    Returns:
        AuthenticationError for credential problems, BackendError otherwise.
    """
    if isinstance(exc, ClientError):
        code = error_code(exc)
        reason = sanitize_error_message(f"{code}: {error_message(exc)}")
        if code in AUTH_ERROR_CODES:
            return AuthenticationError(service, operation, reason)
        return BackendError(service, operation, reason)
    if isinstance(exc, (NoCredentialsError, PartialCredentialsError)):
        return AuthenticationError(
            service,
            operation,
            "no AWS credentials found in the environment, profile or instance metadata",
        )
    if isinstance(exc, NoRegionError):
        return BackendError(service, operation, "no AWS region configured (use --region)")
    if isinstance(exc, EndpointConnectionError):
        return BackendError(service, operation, f"cannot reach endpoint: {exc}")
    return BackendError(service, operation, sanitize_error_message(str(exc)))


@contextmanager
def aws_errors(service: str, operation: str) -> Iterator[None]:
    """Translate botocore exceptions raised inside the block.

    Raises:
        AuthenticationError: On missing, expired or denied credentials.
        BackendError: On any other AWS failure.
    """
    try:
        yield
    except (ClientError, BotoCoreError) as e:
        translated = translate_error(service, operation, e)
        logger.debug(
            "aws_call_failed",
            service=service,
            operation=operation,
            error_type=type(translated).__name__,
        )
        raise translated from e


class ClientFactory:
    """Creates and caches boto3 clients for one region.

    Credentials come from the ambient AWS credential chain (environment,
    profile, SSO, instance metadata).

    Attributes:
        region: AWS region for every client.
    """

    def __init__(
        self,
        region: str,
        *,
        session: boto3.session.Session | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self.region = region
        self._session = session or boto3.session.Session()
        self._config = Config(
            region_name=region,
            retries={"mode": "standard", "max_attempts": max_attempts},
        )
        self._clients: dict[str, Any] = {}

    def client(self, service: str) -> Any:
        if service not in self._clients:
            logger.debug("aws_client_created", service=service, region=self.region)
            self._clients[service] = self._session.client(service, config=self._config)
        return self._clients[service]


__all__ = [
    "AUTH_ERROR_CODES",
    "ClientFactory",
    "aws_errors",
    "error_code",
    "error_message",
    "translate_error",
]

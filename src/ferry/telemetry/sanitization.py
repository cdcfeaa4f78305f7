"""Sanitize error messages before they are recorded on spans or printed.

AWS error messages can echo request parameters, and presigned URLs carry
credentials in their query string; both are redacted here.
"""

from __future__ import annotations

import re

_SENSITIVE_KEY_PATTERN = re.compile(
    r"(password|secret_access_key|secret_key|access_key|session_token|token|"
    r"api_key|authorization|credential)"
    r"\s*[=:]\s*\S+",
    re.IGNORECASE,
)
_URL_CREDENTIAL_PATTERN = re.compile(
    r"://[^@/\s]+:[^@/\s]+@",
)
_PRESIGNED_QUERY_PATTERN = re.compile(
    r"(X-Amz-(?:Credential|Signature|Security-Token))=[^&\s]+",
)


def sanitize_error_message(msg: str, max_length: int = 500) -> str:
    """Sanitize an error message by redacting credentials and truncating.

    Args:
        msg: Raw error message to sanitize.
        max_length: Maximum length of returned message.

    Returns:
        Sanitized and truncated error message.

    Example:
        >>> sanitize_error_message("Failed: token=abc123 at host")
        'Failed: token=<REDACTED> at host'
    """
    sanitized = _URL_CREDENTIAL_PATTERN.sub("://<REDACTED>@", msg)
    sanitized = _PRESIGNED_QUERY_PATTERN.sub(r"\1=<REDACTED>", sanitized)
    sanitized = _SENSITIVE_KEY_PATTERN.sub(
        lambda m: m.group(0).split("=", 1)[0] + "=<REDACTED>"
        if "=" in m.group(0)
        else m.group(0).split(":", 1)[0] + ": <REDACTED>",
        sanitized,
    )
    return sanitized[:max_length]


__all__ = ["sanitize_error_message"]

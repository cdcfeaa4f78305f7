"""Logging and tracing for ferry.

- configure_logging / add_trace_context: structlog setup with trace correlation
- create_span / traced: OpenTelemetry spans with sanitized error recording
- sanitize_error_message: credential redaction for messages
"""

from __future__ import annotations

from ferry.telemetry.logging import add_trace_context, configure_logging
from ferry.telemetry.sanitization import sanitize_error_message
from ferry.telemetry.tracing import create_span, trace_id_of, traced

__all__ = [
    "add_trace_context",
    "configure_logging",
    "create_span",
    "sanitize_error_message",
    "trace_id_of",
    "traced",
]

"""OpenTelemetry tracing utilities for ferry.

Provides the @traced decorator and the create_span() context manager used to
instrument promotions, rollbacks and rollouts. Error messages are sanitized
before they are recorded on a span.

Without a configured OpenTelemetry SDK every span is a no-op, so none of this
changes behavior; it only adds correlation when an exporter is installed.
"""

from __future__ import annotations

import functools
import logging
import threading
from collections.abc import Callable
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar, overload

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode, Tracer

from ferry.telemetry.sanitization import sanitize_error_message

__all__ = [
    "create_span",
    "get_tracer",
    "set_tracer",
    "trace_id_of",
    "traced",
]

if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.trace import Span

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

_TRACER_NAME = "ferry"

_tracer: Tracer | None = None
_lock = threading.Lock()


def get_tracer() -> Tracer:
    """Get the cached ferry tracer.

    Falls back to a NoOpTracer if the OpenTelemetry API cannot hand one out,
    so tracing never breaks a promotion or a rollout.

    Returns:
        Tracer instance for creating spans.
    """
    global _tracer

    if _tracer is not None:
        return _tracer

    with _lock:
        if _tracer is None:
            try:
                _tracer = trace.get_tracer(_TRACER_NAME)
            except Exception:
                logger.warning("OpenTelemetry tracer unavailable; spans disabled", exc_info=True)
                _tracer = trace.NoOpTracer()
        return _tracer


def set_tracer(tracer: Tracer | None) -> None:
    """Set the module-level tracer (for testing).

    Args:
        tracer: Tracer instance to use, or None to go back to the global one.
    """
    global _tracer
    with _lock:
        _tracer = tracer


def trace_id_of(span: Span) -> str:
    """Return the 32-char hex trace id of a span, or "" for a no-op span."""
    span_context = span.get_span_context()
    if not span_context.is_valid:
        return ""
    return format(span_context.trace_id, "032x")


def _record_error(span: Span, exc: Exception) -> None:
    sanitized = sanitize_error_message(str(exc))
    span.set_status(Status(StatusCode.ERROR, sanitized))
    span.set_attribute("exception.type", type(exc).__name__)
    span.set_attribute("exception.message", sanitized)


@overload
def traced(func: Callable[P, R]) -> Callable[P, R]: ...


@overload
def traced(
    *,
    name: str | None = None,
    attributes: dict[str, str] | None = None,
) -> Callable[[Callable[P, R]], Callable[P, R]]: ...


def traced(
    func: Callable[P, R] | None = None,
    *,
    name: str | None = None,
    attributes: dict[str, str] | None = None,
) -> Callable[P, R] | Callable[[Callable[P, R]], Callable[P, R]]:
    """Decorator to trace function execution with an OpenTelemetry span.

    Can be used with or without arguments:
        @traced
        def my_function(): ...

        @traced(name="ferry.aws.ecr.put_image", attributes={"aws.service": "ecr"})
        def my_function(): ...

    Args:
        func: The function to decorate (when used without parentheses).
        name: Optional custom span name. Defaults to function name.
        attributes: Optional static span attributes set on every invocation.

    Returns:
        Decorated function that creates a span on each invocation.
    """

    def decorator(fn: Callable[P, R]) -> Callable[P, R]:
        span_name = name if name is not None else fn.__name__

        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            tracer = get_tracer()
            with tracer.start_as_current_span(
                span_name,
                record_exception=False,
                set_status_on_exception=False,
            ) as span:
                if attributes:
                    for key, value in attributes.items():
                        span.set_attribute(key, value)
                try:
                    return fn(*args, **kwargs)
                except Exception as e:
                    _record_error(span, e)
                    raise

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


@contextmanager
def create_span(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Create a span as a context manager.

    Args:
        name: The name for the span.
        attributes: Optional dictionary of attributes to set on the span.
            ``None`` values are skipped.

    Yields:
        The created span for additional attribute setting.

    Examples:
        >>> with create_span("ferry.promote", attributes={"ferry.alias": "prod"}) as span:
        ...     span.set_attribute("ferry.outcome", "promoted")
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(
        name,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        try:
            yield span
        except Exception as e:
            _record_error(span, e)
            raise

"""Cooperative shutdown for long-running waits.

A ShutdownContext is passed explicitly to whatever waits (the rollout
coordinator). Signal handlers only set the event; the waiting code notices
at its next check and unwinds normally.

Example:
    >>> shutdown = ShutdownContext()
    >>> with shutdown.install_signal_handlers():
    ...     coordinator.rollout(request, shutdown=shutdown)
"""

from __future__ import annotations

import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from types import FrameType
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownContext:
    """Event-backed shutdown flag with an interruptible sleep."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: str | None = None

    @property
    def requested(self) -> bool:
        return self._event.is_set()

    def request(self, reason: str = "requested") -> None:
        if not self._event.is_set():
            self.reason = reason
            logger.info("shutdown_requested", reason=reason)
        self._event.set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to seconds, waking early on shutdown.

        Returns:
            True if shutdown was requested.
        """
        return self._event.wait(timeout=max(seconds, 0.0))

    @contextmanager
    def install_signal_handlers(self) -> Iterator[ShutdownContext]:
        """Route SIGINT and SIGTERM to this context while the block runs.

        Previous handlers are restored on exit. Outside the main thread
        signal handlers cannot be installed, so nothing is changed there.
        """
        if threading.current_thread() is not threading.main_thread():
            yield self
            return

        def _handler(signum: int, frame: FrameType | None) -> None:
            self.request(signal.Signals(signum).name)

        previous: dict[int, Any] = {}
        for sig in HANDLED_SIGNALS:
            previous[sig] = signal.signal(sig, _handler)
        try:
            yield self
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)


__all__ = ["ShutdownContext"]

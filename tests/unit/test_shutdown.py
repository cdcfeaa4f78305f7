"""Unit tests for ShutdownContext.

Requirements tested:
    FR-011: Cooperative shutdown
"""

from __future__ import annotations

import os
import signal
import threading

import pytest

from ferry.shutdown import ShutdownContext


class TestShutdownContext:
    """Tests for the shutdown flag and interruptible wait."""

    @pytest.mark.requirement("FR-011")
    def test_request_sets_flag_and_keeps_first_reason(self) -> None:
        shutdown = ShutdownContext()

        shutdown.request("SIGTERM")
        shutdown.request("SIGINT")

        assert shutdown.requested is True
        assert shutdown.reason == "SIGTERM"

    @pytest.mark.requirement("FR-011")
    def test_wait_returns_false_on_timeout(self) -> None:
        assert ShutdownContext().wait(0) is False

    @pytest.mark.requirement("FR-011")
    def test_wait_wakes_on_request(self) -> None:
        shutdown = ShutdownContext()
        timer = threading.Timer(0.05, shutdown.request)
        timer.start()

        assert shutdown.wait(5) is True
        timer.join()

    @pytest.mark.requirement("FR-011")
    def test_negative_wait_does_not_block(self) -> None:
        assert ShutdownContext().wait(-1) is False


class TestSignalHandlers:
    """Tests for install_signal_handlers."""

    @pytest.mark.requirement("FR-011")
    def test_sigterm_requests_shutdown_and_handler_restored(self) -> None:
        shutdown = ShutdownContext()
        before = signal.getsignal(signal.SIGTERM)

        with shutdown.install_signal_handlers():
            os.kill(os.getpid(), signal.SIGTERM)

        assert shutdown.requested is True
        assert shutdown.reason == "SIGTERM"
        assert signal.getsignal(signal.SIGTERM) is before

    @pytest.mark.requirement("FR-011")
    def test_no_handlers_outside_main_thread(self) -> None:
        shutdown = ShutdownContext()
        seen: list[object] = []

        def run() -> None:
            with shutdown.install_signal_handlers() as ctx:
                seen.append(ctx)

        worker = threading.Thread(target=run)
        worker.start()
        worker.join()

        assert seen == [shutdown]

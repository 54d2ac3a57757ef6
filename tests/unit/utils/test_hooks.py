"""
Unit tests for bounded hook execution.
"""

import asyncio
import threading
import time

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent / "src"))

from live_config.core.exceptions import HookTimeoutError
from live_config.utils.hooks import HookRunner, run_awaitable


class TestHookRunner:
    """Test HookRunner."""

    def setup_method(self):
        self.runner = HookRunner(timeout=0.2)

    def teardown_method(self):
        self.runner.shutdown()

    def test_sync_call(self):
        assert self.runner.call(lambda a, b: a + b, 2, 3) == 5

    def test_coroutine_function(self):
        async def double(value):
            await asyncio.sleep(0)
            return value * 2

        assert self.runner.call(double, 21) == 42

    def test_sync_timeout(self):
        started = time.monotonic()
        with pytest.raises(HookTimeoutError) as exc_info:
            self.runner.call(time.sleep, 1)

        assert time.monotonic() - started < 0.9
        assert exc_info.value.context["timeout"] == 0.2

    def test_async_timeout(self):
        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(HookTimeoutError):
            self.runner.call(slow)

    def test_per_call_timeout_override(self):
        with pytest.raises(HookTimeoutError):
            self.runner.call(time.sleep, 0.2, timeout=0.05)

    def test_exceptions_propagate(self):
        def broken():
            raise KeyError("missing")

        with pytest.raises(KeyError):
            self.runner.call(broken)

    def test_hung_hooks_do_not_starve_later_calls(self):
        release = threading.Event()
        try:
            for _ in range(6):
                with pytest.raises(HookTimeoutError):
                    self.runner.call(release.wait, 5.0, timeout=0.05)

            assert self.runner.abandoned == 6
            assert self.runner.call(lambda: "healthy") == "healthy"

            async def check():
                return "ok"

            assert self.runner.call(check) == "ok"
        finally:
            release.set()

    def test_runs_inline_after_shutdown(self):
        self.runner.shutdown()
        assert self.runner.call(lambda: "inline") == "inline"


class TestRunAwaitable:
    """Test run_awaitable."""

    def test_resolves(self):
        async def answer():
            return 42

        assert run_awaitable(answer(), timeout=1.0) == 42

    def test_timeout(self):
        with pytest.raises(HookTimeoutError):
            run_awaitable(asyncio.sleep(1), timeout=0.05)

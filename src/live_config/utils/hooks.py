"""
Bounded execution of user-supplied hooks.

Listener callbacks and asynchronous validation predicates each run on
their own daemon worker thread so that a slow or hung hook cannot stall
a pipeline run for longer than the configured timeout, and an abandoned
hook never holds up the ones that come after it.
"""

import asyncio
import inspect
import logging
import threading
from typing import Any, Awaitable, Callable, Dict, Optional

from ..core.exceptions import HookTimeoutError

logger = logging.getLogger(__name__)


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def _invoke(func: Callable[..., Any], args: tuple, timeout: Optional[float]) -> Any:
    """Call func and drive any awaitable it returns to completion."""
    result = func(*args)
    if inspect.isawaitable(result):
        return asyncio.run(asyncio.wait_for(_await(result), timeout))
    return result


class HookRunner:
    """
    Runs hooks on worker threads with a per-call timeout.

    Coroutine hooks are driven by a private event loop on the worker
    thread and cancelled when the timeout expires. Synchronous hooks that
    overrun are abandoned: the caller gets HookTimeoutError and moves on,
    and the stuck worker is left to finish on its own.
    """

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self.abandoned = 0
        self._closed = False
        self._lock = threading.Lock()

    def call(self, func: Callable[..., Any], *args: Any,
             timeout: Optional[float] = None) -> Any:
        """
        Call a hook and wait for its result.

        Args:
            func: Hook to call; may be a plain or coroutine function
            *args: Positional arguments for the hook
            timeout: Override for the default timeout in seconds

        Returns:
            Whatever the hook returned (awaited if needed)

        Raises:
            HookTimeoutError: If the hook did not finish in time
        """
        limit = self.timeout if timeout is None else timeout
        if self._closed:
            return _invoke(func, args, limit)

        outcome: Dict[str, Any] = {}
        finished = threading.Event()

        def run():
            try:
                outcome["result"] = _invoke(func, args, limit)
            except BaseException as e:
                outcome["error"] = e
            finally:
                finished.set()

        worker = threading.Thread(target=run, name="live-config-hook", daemon=True)
        worker.start()

        name = getattr(func, "__name__", repr(func))
        if not finished.wait(limit):
            with self._lock:
                self.abandoned += 1
            logger.debug(f"Abandoned hook {name} after {limit}s")
            raise HookTimeoutError(
                f"Hook {name} did not finish within {limit}s",
                context={"hook": name, "timeout": limit}
            )

        error = outcome.get("error")
        if isinstance(error, asyncio.TimeoutError):
            raise HookTimeoutError(
                f"Hook {name} did not finish within {limit}s",
                context={"hook": name, "timeout": limit},
                cause=error
            )
        if error is not None:
            raise error
        return outcome.get("result")

    def resolve(self, awaitable: Awaitable[Any], timeout: Optional[float] = None) -> Any:
        """Drive an already-created awaitable to completion on a worker."""
        return self.call(lambda: awaitable, timeout=timeout)

    def shutdown(self):
        """Stop spawning workers; later calls run inline."""
        if not self._closed:
            self._closed = True
            logger.debug(f"Hook runner shut down ({self.abandoned} abandoned hook(s))")


def run_awaitable(awaitable: Awaitable[Any], timeout: Optional[float] = None) -> Any:
    """Resolve an awaitable on a throwaway worker thread."""
    return HookRunner(timeout=timeout if timeout is not None else 5.0).resolve(awaitable)

"""Inactivity timeout for the client session."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_INACTIVITY_TIMEOUT_SEC = 30 * 60


class InactivityMonitor:
    """
    Calls `on_timeout` once after `timeout` seconds without a `touch()`.

    Must be driven from the event loop thread: `touch()` reschedules a loop timer.
    """

    def __init__(
        self,
        on_timeout: Callable[[], Awaitable[None]],
        timeout: float = DEFAULT_INACTIVITY_TIMEOUT_SEC,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._on_timeout = on_timeout
        self._timeout = timeout
        self._handle: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    @property
    def timeout(self) -> float:
        return self._timeout

    def touch(self) -> None:
        """Record user activity: restart the countdown."""
        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._timeout, self._fire)

    def stop(self) -> None:
        """Cancel the countdown. A timeout callback already running is left to finish."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def wait_fired(self) -> None:
        """Wait for a timeout callback that has already started, if any."""
        if self._task is not None:
            await self._task

    def _fire(self) -> None:
        self._handle = None
        logger.info("Inactivity timeout reached after %ss", self._timeout)
        self._task = asyncio.ensure_future(self._on_timeout())
        self._task.add_done_callback(self._log_failure)

    @staticmethod
    def _log_failure(task: asyncio.Task[None]) -> None:
        # Retrieves the exception even when wait_fired() is never awaited.
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Inactivity timeout callback failed", exc_info=exc)

"""Periodic silent refresh of all tracked servers."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable, Iterable

if TYPE_CHECKING:
    from mcserver_link.services.refresh_coordinator import RefreshCoordinator
    from mcserver_link.settings import AppSettings

logger = logging.getLogger(__name__)

CoordinatorProvider = Callable[[], Iterable["RefreshCoordinator"]]


class AutoRefreshScheduler:
    """Repeating timer that silently refreshes every tracked server.

    The timer runs as a task on the current asyncio loop. Changing the
    interval means stop() followed by start(); reconfigure() does both from
    settings. Refreshes started by a tick are not cancelled by stop().
    """

    def __init__(self, coordinators: CoordinatorProvider) -> None:
        """Initialize scheduler.

        Args:
            coordinators: Returns the coordinators to refresh, read on every tick
        """
        self._coordinators = coordinators
        self._timer: asyncio.Task[None] | None = None
        self._interval: int | None = None
        self._pending: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        """Check if the timer is armed."""
        return self._timer is not None and not self._timer.done()

    @property
    def interval_seconds(self) -> int | None:
        """Get the armed interval, or None when stopped."""
        return self._interval if self.is_running else None

    def start(self, interval_seconds: int) -> None:
        """Arm the timer, replacing any existing one.

        Must be called with an asyncio loop running.

        Args:
            interval_seconds: Seconds between ticks

        Raises:
            ValueError: If the interval is not positive
        """
        if interval_seconds <= 0:
            raise ValueError(f"Refresh interval must be positive: {interval_seconds}")

        self.stop()
        self._interval = interval_seconds
        self._timer = asyncio.get_running_loop().create_task(self._run(interval_seconds))
        logger.debug("Auto-refresh armed every %ss", interval_seconds)

    def stop(self) -> None:
        """Cancel the timer. Safe to call when already stopped."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.debug("Auto-refresh stopped")
        self._interval = None

    def reconfigure(self, settings: AppSettings) -> None:
        """Restart the timer from settings.

        Args:
            settings: Current settings; the timer runs only if auto_refresh is on
        """
        self.stop()
        if settings.auto_refresh:
            self.start(settings.refresh_interval)

    async def _run(self, interval_seconds: int) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            self.tick()

    def tick(self) -> int:
        """Start a silent refresh for every tracked server without waiting.

        Returns:
            Number of refreshes started
        """
        coordinators = list(self._coordinators())
        if not coordinators:
            return 0

        loop = asyncio.get_running_loop()
        for coordinator in coordinators:
            task = loop.create_task(coordinator.refresh(foreground=False))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return len(coordinators)

    async def wait_idle(self) -> None:
        """Wait for refreshes started by earlier ticks to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

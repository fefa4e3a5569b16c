"""
Cooperative pause and stop signals for the Volume Orchestrator.

The flags are toggled from other threads (API handlers, signal handlers) and
polled by the control loop between trade attempts.
"""

import asyncio
import threading
from typing import Awaitable, Callable, Optional

from utils.logger import get_logger

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class RunControl:
    """Thread-safe pause/resume toggle plus a stop request."""

    def __init__(self, paused: bool = False):
        self._lock = threading.Lock()
        self._paused = paused
        self._stop_requested = False
        self._sell_recent: Optional[int] = None

    @property
    def is_paused(self) -> bool:
        with self._lock:
            return self._paused

    @property
    def stop_requested(self) -> bool:
        with self._lock:
            return self._stop_requested

    def pause(self) -> None:
        with self._lock:
            changed = not self._paused
            self._paused = True
        if changed:
            logger.info("[PAUSED] Trading paused, resume to continue")

    def resume(self) -> None:
        with self._lock:
            changed = self._paused
            self._paused = False
        if changed:
            logger.info("[RESUMED] Continuing operations")

    def toggle(self) -> bool:
        """Flip the pause flag. Returns the new value."""
        with self._lock:
            self._paused = not self._paused
            paused = self._paused
        logger.info("[PAUSED] Trading paused" if paused else "[RESUMED] Continuing operations")
        return paused

    def request_stop(self) -> None:
        with self._lock:
            self._stop_requested = True
        logger.info("Stop requested")

    def request_sell_recent(self, count: int = 3) -> None:
        """Ask the control loop to sell the ``count`` most recent buyers at its next attempt."""
        if count < 1:
            raise ValueError("count must be at least 1")
        with self._lock:
            self._sell_recent = max(count, self._sell_recent or 0)
        logger.info("Sell of recent buyers requested", count=count)

    def take_sell_request(self) -> Optional[int]:
        """Pending recent-buyer sell count, cleared on read."""
        with self._lock:
            count, self._sell_recent = self._sell_recent, None
        return count

    @property
    def sell_requested(self) -> bool:
        with self._lock:
            return self._sell_recent is not None

    async def wait_while_paused(
        self,
        poll_seconds: float = 1.0,
        sleep: Optional[Sleep] = None,
    ) -> bool:
        """
        Block while paused.

        Returns:
            True if the wait ended because a stop was requested
        """
        sleep = sleep or asyncio.sleep
        announced = False
        while self.is_paused and not self.stop_requested:
            if not announced:
                logger.info("Process paused, waiting for resume")
                announced = True
            await sleep(poll_seconds)
        return self.stop_requested

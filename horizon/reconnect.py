"""
Reconnection policy and connection monitor.

The policy turns failure signals into delayed re-open attempts with
exponential backoff and a bounded attempt budget. The monitor is a slow
watchdog that restarts the policy when a controller should be connected
but nothing is currently trying to reconnect it.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .config import ReconnectConfig
from .errors import MaxAttemptsExceeded
from .types import ReconnectCounter, Sleep


logger = logging.getLogger("horizon.reconnect")


class ReconnectionPolicy:
    """
    Exponential backoff: delay(n) = min(base * 2^(n-1), cap).

    The counter survives failed re-opens and is reset only by a successful
    connect (reset()) or by exhausting the budget.
    """

    def __init__(
        self,
        config: Optional[ReconnectConfig] = None,
        sleep: Optional[Sleep] = None
    ):
        self.config = config or ReconnectConfig()
        self.counter = ReconnectCounter(
            base_delay=self.config.base_delay_s,
            cap=self.config.cap_s,
            max_attempts=self.config.max_attempts,
        )
        self._sleep = sleep or asyncio.sleep
        # Delays actually waited, in order (diagnostics)
        self.history: list[float] = []

    @property
    def attempts(self) -> int:
        return self.counter.attempts

    def reset(self) -> None:
        self.counter.reset()

    async def run(self, reopen: Callable[[], Awaitable[bool]], label: str = "") -> bool:
        """
        Handle one failure signal, and every failed re-open after it.

        Args:
            reopen: Re-opens the channel, returning True when no further attempts are needed
            label: Name used in log lines

        Returns:
            True if the channel was re-opened, False once the budget is spent
        """
        prefix = f"{label} " if label else ""

        while True:
            delay = self.counter.advance()
            if delay is None:
                error = MaxAttemptsExceeded(self.counter.max_attempts)
                logger.warning(
                    f"{prefix}{error}. Waiting for an explicit connect or foreground transition."
                )
                return False

            logger.info(
                f"{prefix}reconnecting in {delay:.1f}s "
                f"(attempt {self.counter.attempts}/{self.counter.max_attempts})"
            )
            self.history.append(delay)
            await self._sleep(delay)

            if await reopen():
                return True


class ConnectionMonitor:
    """Periodically asks whether a reconnect should be kicked off."""

    def __init__(
        self,
        needs_reconnect: Callable[[], bool],
        trigger: Callable[[], Awaitable[None]],
        interval_s: float = 10.0,
        sleep: Optional[Sleep] = None
    ):
        self._needs_reconnect = needs_reconnect
        self._trigger = trigger
        self.interval_s = interval_s
        self._sleep = sleep or asyncio.sleep
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._monitor_loop())

    async def stop(self) -> None:
        self._running = False
        task = self._task
        self._task = None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _monitor_loop(self) -> None:
        while self._running:
            try:
                await self._sleep(self.interval_s)
                if self._running and self._needs_reconnect():
                    logger.info("Connection monitor found the channel down, reconnecting")
                    await self._trigger()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in connection monitor: {e}", exc_info=True)

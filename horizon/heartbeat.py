"""
Heartbeat Scheduler for streaming connection liveness.

Implements:
- Periodic liveness probes on a single open channel
- Two probe styles: protocol-level ping and a literal "ping" text frame
- Latency measurement for the text-sentinel style
- Hand-off of probe failures to the owning controller

The heartbeat exists to detect silently dropped connections (no TCP RST
received) before the next read would time out, and to keep connections
alive through NAT/proxies while the app sits idle.
"""

import asyncio
import logging
import time
from typing import Optional, Callable, Awaitable

from .config import HeartbeatConfig, Sentinel
from .errors import HorizonError
from .transport import TransportHandle
from .types import HeartbeatStyle, Sleep


logger = logging.getLogger("horizon.heartbeat")


class TransportPingProbe:
    """Protocol-level ping; the transport fails the probe on remote silence."""

    # Probe right after the channel opens, then sleep between probes
    probe_first = True

    async def probe(self, handle: TransportHandle) -> None:
        await handle.ping()


class TextSentinelProbe:
    """
    Application-level heartbeat using a literal text frame.

    Some endpoints don't answer protocol-level pings, so a "ping" text frame
    is sent and the server replies with "pong". The reply is consumed by the
    router, which calls handle_pong() so latency can be tracked.
    """

    probe_first = False

    def __init__(self, now: Optional[Callable[[], float]] = None):
        self._now = now or time.monotonic
        self._sent_at: Optional[float] = None
        self.latency_ms: Optional[float] = None

    async def probe(self, handle: TransportHandle) -> None:
        self._sent_at = self._now()
        await handle.send(Sentinel.PING)

    def handle_pong(self) -> Optional[float]:
        """Record a pong, return latency in ms if a ping was outstanding."""
        sent_at = self._sent_at
        self._sent_at = None
        if sent_at is None:
            return None
        self.latency_ms = (self._now() - sent_at) * 1000
        return self.latency_ms


def make_probe(style: HeartbeatStyle) -> TransportPingProbe | TextSentinelProbe:
    if style is HeartbeatStyle.TEXT_SENTINEL:
        return TextSentinelProbe()
    return TransportPingProbe()


class HeartbeatScheduler:
    """
    Emits liveness probes on one channel until stopped.

    Key features:
    - Configurable interval and probe style
    - Probe failures reported through on_failure, once, then the loop ends
    - start()/stop() are idempotent and stop() never raises
    """

    def __init__(
        self,
        handle: TransportHandle,
        on_failure: Callable[[TransportHandle, BaseException], Awaitable[None]],
        config: Optional[HeartbeatConfig] = None,
        style: HeartbeatStyle = HeartbeatStyle.TRANSPORT_PING,
        should_run: Optional[Callable[[], bool]] = None,
        sleep: Optional[Sleep] = None
    ):
        """
        Initialize heartbeat scheduler.

        Args:
            handle: Channel to probe; the scheduler never outlives it
            on_failure: Async callback invoked with (handle, error) when a probe fails
            config: Heartbeat configuration
            style: Probe style for this exchange kind
            should_run: Extra condition checked every cycle (e.g. maintain flag)
            sleep: Sleep function (defaults to asyncio.sleep, injectable for testing)
        """
        self.config = config or HeartbeatConfig()
        self.style = style
        self.probe = make_probe(style)
        self._handle = handle
        self._on_failure = on_failure
        self._should_run = should_run or (lambda: True)
        self._sleep = sleep or asyncio.sleep

        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the heartbeat background task."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._heartbeat_loop())

    async def stop(self) -> None:
        """Stop the heartbeat task and wait for it to finish."""
        self._running = False
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _wanted(self) -> bool:
        return self._running and self._should_run()

    def _active(self) -> bool:
        return self._wanted() and not self._handle.closed

    async def _heartbeat_loop(self) -> None:
        """Main heartbeat loop running in background."""
        interval = self.config.interval_s

        try:
            if not self.probe.probe_first:
                await self._sleep(interval)

            while self._active():
                await self.probe.probe(self._handle)
                await self._sleep(interval)

        except asyncio.CancelledError:
            raise
        except HorizonError as e:
            if not self._wanted():
                return
            self._running = False
            logger.warning(f"Liveness probe failed ({self.style.value}): {e}")
            await self._on_failure(self._handle, e)
        except Exception as e:
            if not self._wanted():
                return
            self._running = False
            logger.error(f"Error in heartbeat loop: {e}", exc_info=True)
            await self._on_failure(self._handle, e)

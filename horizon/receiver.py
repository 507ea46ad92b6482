"""
Receive Loop: pulls frames off one channel and hands them to the controller.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .errors import DecodeError, TransportError
from .router import FrameRouter, PayloadKind, RoutedPayload
from .transport import TransportHandle


logger = logging.getLogger("horizon.receiver")


class ReceiveLoop:
    """
    Blocks on receive() while the channel is open.

    - Sentinels are consumed by the router and never dispatched
    - Malformed frames are logged and dropped; they are not evidence of a
      dead connection
    - A receive failure is reported through on_failure when should_run()
      still holds, otherwise the loop ends quietly (expected during a
      graceful disconnect)
    """

    def __init__(
        self,
        handle: TransportHandle,
        router: FrameRouter,
        dispatch: Callable[[RoutedPayload], Awaitable[None]],
        on_failure: Callable[[TransportHandle, BaseException], Awaitable[None]],
        should_run: Optional[Callable[[], bool]] = None
    ):
        self._handle = handle
        self._router = router
        self._dispatch = dispatch
        self._on_failure = on_failure
        self._should_run = should_run or (lambda: True)

        self._task: Optional[asyncio.Task] = None
        self._running = False
        self.frames_received = 0
        self.frames_dropped = 0

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._receive_loop())

    async def stop(self) -> None:
        """Cancel the loop and wait for it. Idempotent."""
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

    def _wanted(self) -> bool:
        return self._running and self._should_run()

    async def _receive_loop(self) -> None:
        try:
            while self._wanted() and not self._handle.closed:
                frame = await self._handle.receive()
                self.frames_received += 1

                try:
                    payload = self._router.route(frame)
                except DecodeError as e:
                    self.frames_dropped += 1
                    logger.warning(f"Dropping malformed frame: {e}")
                    continue

                if payload.kind is PayloadKind.SENTINEL:
                    continue

                try:
                    await self._dispatch(payload)
                except Exception as e:
                    logger.error(f"Error dispatching frame: {e}", exc_info=True)

        except asyncio.CancelledError:
            raise
        except TransportError as e:
            if not self._wanted():
                return
            self._running = False
            logger.warning(f"Receive failed: {e}")
            await self._on_failure(self._handle, e)
        except Exception as e:
            if not self._wanted():
                return
            self._running = False
            logger.error(f"Receive loop crashed: {e}", exc_info=True)
            await self._on_failure(self._handle, e)

"""
Connection Controller: owns one logical streaming channel.

Responsibilities:
- Connection state machine (disconnected -> connecting -> connected ->
  reconnecting / shutting_down)
- Starting and stopping the heartbeat and receive loop of each channel
- Turning activity failures into exactly one reconnection cycle
- Conversation history and reassembly of the exchange in flight
- Publishing snapshots of the observable state to listeners

All shared state is mutated under a single asyncio.Lock; background
activities only reach it through the controller's coroutines.

Specializations override the class attributes and the hook methods
(build_url, decode_response, encode_request, ...) and keep everything else.
"""

import asyncio
import logging
from typing import Any, Dict, Generic, List, Optional, TypeVar

from .config import CloseCode, Config, Sentinel
from .errors import EncodeError, NotConnected, TransportError
from .heartbeat import HeartbeatScheduler, TextSentinelProbe
from .lifecycle import BackgroundExtender, BackgroundLease
from .models import StreamResponse
from .reassembler import MessageReassembler
from .receiver import ReceiveLoop
from .reconnect import ConnectionMonitor, ReconnectionPolicy
from .router import DEFAULT_SENTINELS, FrameRouter, PayloadKind, RoutedPayload
from .transport import Transport, TransportHandle, WebSocketTransport, encode_payload
from .types import (
    ChatTurn,
    ConnectionSnapshot,
    ConnectionState,
    HeartbeatStyle,
    OnSnapshot,
    Sleep,
)


logger = logging.getLogger("horizon.controller")

RequestT = TypeVar("RequestT")
ResponseT = TypeVar("ResponseT")


class ConnectionController(Generic[RequestT, ResponseT]):
    """
    Generic manager of one streaming channel.

    Usage:
        manager = AssistManager(config=Config.from_env())
        manager.add_listener(render)

        await manager.connect()
        await manager.send_message("Hi")
        ...
        await manager.graceful_disconnect()
    """

    # Name used in logs and for background-time requests
    name: str = "connection"
    heartbeat_style: HeartbeatStyle = HeartbeatStyle.TRANSPORT_PING
    # Whether undecodable text frames are streaming chunks
    accepts_raw_text: bool = False
    # Text frame sent right after the channel opens
    init_frame: Optional[str] = None
    sentinels = DEFAULT_SENTINELS

    def __init__(
        self,
        config: Optional[Config] = None,
        transport: Optional[Transport] = None,
        background: Optional[BackgroundExtender] = None,
        sleep: Optional[Sleep] = None
    ):
        """
        Initialize controller.

        Args:
            config: Full configuration (defaults are used when omitted)
            transport: Channel factory (defaults to WebSocketTransport)
            background: Host facility for extra run time while backgrounded
            sleep: Sleep function (defaults to asyncio.sleep, injectable for testing)
        """
        self.config = config or Config()
        self._transport = transport or WebSocketTransport(self.config.websocket)
        self._sleep = sleep or asyncio.sleep
        self._heartbeat_style = self.config.heartbeat.style or self.heartbeat_style

        self._lock = asyncio.Lock()
        self._state = ConnectionState.DISCONNECTED
        self._maintain = True
        # Set once the reconnect budget is spent; cleared by connect/foreground
        self._parked = False
        self._ever_connected = False

        self._handle: Optional[TransportHandle] = None
        self._heartbeat: Optional[HeartbeatScheduler] = None
        self._receiver: Optional[ReceiveLoop] = None
        self._reconnect_task: Optional[asyncio.Task] = None

        self.policy = ReconnectionPolicy(self.config.reconnect, sleep=self._sleep)
        self._monitor = ConnectionMonitor(
            needs_reconnect=self._needs_reconnect,
            trigger=self._trigger_reconnect,
            interval_s=self.config.reconnect.monitor_interval_s,
            sleep=self._sleep,
        )
        self._background = BackgroundLease(f"{self.name}-connection", background)

        self._reassembler = MessageReassembler()
        self._history: List[ChatTurn] = []
        self._receiving = False
        self._listeners: List[OnSnapshot] = []

    # =========================================================================
    # Specialization hooks
    # =========================================================================

    def build_url(self) -> str:
        """Endpoint of this channel."""
        raise NotImplementedError

    def decode_response(self, data: Any) -> ResponseT:
        """Map a parsed JSON value to a response, raising DecodeError."""
        raise NotImplementedError

    def encode_request(self, request: RequestT) -> Any:
        """JSON-serializable payload for one outbound request."""
        raise NotImplementedError

    def outgoing_turn(self, request: RequestT) -> Optional[ChatTurn]:
        """History entry recorded when request is sent, if any."""
        return None

    def stream_content(self, response: ResponseT) -> Optional[StreamResponse]:
        """Extract a streaming update from a response, if it carries one."""
        if isinstance(response, StreamResponse):
            return response
        return None

    async def handle_response(self, response: ResponseT) -> None:
        """Called for every non-streaming structured response."""

    async def on_exchange_complete(self, content: str) -> None:
        """Called with the finished text of a structured exchange."""

    # =========================================================================
    # Observable state
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def receiving(self) -> bool:
        return self._receiving

    @property
    def current_stream_text(self) -> str:
        return self._reassembler.current_text

    @property
    def conversation_history(self) -> tuple:
        return tuple(self._history)

    @property
    def maintain(self) -> bool:
        return self._maintain

    @property
    def parked(self) -> bool:
        return self._parked

    def snapshot(self) -> ConnectionSnapshot:
        return ConnectionSnapshot(
            state=self._state,
            connected=self.connected,
            receiving=self._receiving,
            current_stream_text=self._reassembler.current_text,
            conversation_history=tuple(self._history),
        )

    def status(self) -> Dict[str, Any]:
        """Diagnostic summary of this controller."""
        probe = self._heartbeat.probe if self._heartbeat else None
        return {
            "name": self.name,
            "state": self._state.value,
            "connected": self.connected,
            "receiving": self._receiving,
            "maintain": self._maintain,
            "parked": self._parked,
            "reconnect_attempts": self.policy.attempts,
            "heartbeat_style": self._heartbeat_style.value,
            "heartbeat_running": bool(self._heartbeat and self._heartbeat.running),
            "receiver_running": bool(self._receiver and self._receiver.running),
            "monitor_running": self._monitor.running,
            "latency_ms": getattr(probe, "latency_ms", None),
            "history_length": len(self._history),
        }

    def add_listener(self, listener: OnSnapshot) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: OnSnapshot) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                await listener(snapshot)
            except Exception as e:
                logger.error(f"Snapshot listener failed: {e}", exc_info=True)

    # =========================================================================
    # Connect
    # =========================================================================

    async def connect(self) -> None:
        """
        Open the channel if it is not already open or being opened.

        A no-op after graceful_disconnect(), while connecting or reconnecting,
        and while a channel is open. Clears the parked state left behind by an
        exhausted reconnection cycle.

        Raises:
            TransportError: if the channel could not be opened
        """
        async with self._lock:
            if not self._maintain:
                logger.debug(f"{self.name}: connect ignored after shutdown")
                return
            if self._state is not ConnectionState.DISCONNECTED or self._handle is not None:
                return
            self._parked = False
            await self._open_locked(fallback=ConnectionState.DISCONNECTED)
        await self._notify()

    async def _open_locked(self, fallback: ConnectionState) -> None:
        """Open a channel and start its activities. Caller holds the lock."""
        self._state = ConnectionState.CONNECTING
        handle: Optional[TransportHandle] = None
        try:
            url = self.build_url()
            logger.info(f"{self.name}: connecting to {url}")
            handle = await self._transport.open(url)
            if self.init_frame is not None:
                await handle.send(self.init_frame)
        except BaseException:
            self._state = fallback
            if handle is not None:
                await handle.close(CloseCode.GOING_AWAY, "initialization failed")
            raise

        self._handle = handle
        self._state = ConnectionState.CONNECTED
        self._ever_connected = True
        self.policy.reset()
        self._start_activities(handle)
        self._monitor.start()
        logger.info(f"{self.name}: connected")

    def _start_activities(self, handle: TransportHandle) -> None:
        self._heartbeat = HeartbeatScheduler(
            handle,
            on_failure=self._on_activity_failure,
            config=self.config.heartbeat,
            style=self._heartbeat_style,
            should_run=lambda: self._maintain,
            sleep=self._sleep,
        )
        self._receiver = ReceiveLoop(
            handle,
            router=self._make_router(self._heartbeat),
            dispatch=self._dispatch,
            on_failure=self._on_activity_failure,
            should_run=lambda: self._maintain,
        )
        self._heartbeat.start()
        self._receiver.start()

    def _make_router(self, heartbeat: HeartbeatScheduler) -> FrameRouter:
        probe = heartbeat.probe

        def on_sentinel(text: str) -> None:
            if text == Sentinel.PONG and isinstance(probe, TextSentinelProbe):
                latency = probe.handle_pong()
                if latency is not None:
                    logger.debug(f"{self.name}: pong after {latency:.0f}ms")
            elif text == Sentinel.INIT_ACK:
                logger.debug(f"{self.name}: initialization acknowledged")

        return FrameRouter(
            decode=self.decode_response,
            accepts_raw_text=self.accepts_raw_text,
            sentinels=self.sentinels,
            on_sentinel=on_sentinel,
        )

    async def _stop_activities(self) -> Optional[TransportHandle]:
        """Detach and stop the current channel's activities; returns its handle."""
        async with self._lock:
            handle = self._handle
            heartbeat, receiver = self._heartbeat, self._receiver
            self._handle = None
            self._heartbeat = None
            self._receiver = None
        if heartbeat:
            await heartbeat.stop()
        if receiver:
            await receiver.stop()
        return handle

    # =========================================================================
    # Failure handling and reconnection
    # =========================================================================

    async def _on_activity_failure(self, handle: TransportHandle, error: BaseException) -> None:
        """
        Called by the heartbeat or receive loop when their channel fails.

        Only the first report for the current channel starts a reconnect
        cycle; reports about a stale channel or after shutdown are ignored.
        """
        async with self._lock:
            if handle is not self._handle or not self._maintain:
                return
            if self._state is not ConnectionState.CONNECTED:
                return
            logger.warning(f"{self.name}: connection lost: {error}")
            self._state = ConnectionState.RECONNECTING
            self._receiving = False
            self._spawn_reconnect()
        await self._notify()

    def _spawn_reconnect(self) -> None:
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.create_task(self._reconnect_cycle())

    async def _reconnect_cycle(self) -> None:
        # Only an exhausted budget parks; a crashed cycle is left to the monitor
        exhausted = False
        try:
            handle = await self._stop_activities()
            if handle is not None:
                await handle.close(CloseCode.GOING_AWAY, "reconnecting")

            if await self.policy.run(self._reopen, label=self.name):
                return
            exhausted = True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"{self.name}: reconnect cycle failed: {e}", exc_info=True)

        async with self._lock:
            if self._state is ConnectionState.RECONNECTING:
                self._state = ConnectionState.DISCONNECTED
                self._parked = exhausted
        await self._notify()

    async def _reopen(self) -> bool:
        """One re-open attempt; True when no further attempts are needed."""
        async with self._lock:
            if not self._maintain or self._state is not ConnectionState.RECONNECTING:
                return True
            try:
                await self._open_locked(fallback=ConnectionState.RECONNECTING)
            except Exception as e:
                logger.warning(f"{self.name}: reconnect attempt failed: {e}")
                return False
        await self._notify()
        return True

    def _needs_reconnect(self) -> bool:
        if not self._maintain or self._parked or not self._ever_connected:
            return False
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return False
        return self._state is ConnectionState.DISCONNECTED

    async def _trigger_reconnect(self) -> None:
        async with self._lock:
            if not self._needs_reconnect():
                return
            self._state = ConnectionState.RECONNECTING
            self._spawn_reconnect()
        await self._notify()

    # =========================================================================
    # Sending and receiving
    # =========================================================================

    async def send(self, request: RequestT) -> None:
        """
        Send one request, connecting first if needed.

        Raises:
            NotConnected: if no open channel is available
            EncodeError: if the request can't be serialized
            TransportError: if the write fails
        """
        if self._state is not ConnectionState.CONNECTED:
            try:
                await self.connect()
            except Exception as e:
                raise NotConnected(f"{self.name}: {e}") from e

        async with self._lock:
            handle = self._handle
            if self._state is not ConnectionState.CONNECTED or handle is None:
                raise NotConnected(f"{self.name} is not connected ({self._state.value})")

            turn = self.outgoing_turn(request)
            if turn is not None:
                self._history.append(turn)
            try:
                frame = encode_payload(self.encode_request(request))
            except EncodeError:
                if turn is not None:
                    self._history.pop()
                raise

            self._reassembler.begin_exchange()
            self._receiving = True

        await self._notify()
        await handle.send(frame)

    async def _dispatch(self, payload: RoutedPayload) -> None:
        """Apply one routed frame from the receive loop."""
        if payload.kind is PayloadKind.RAW_TEXT:
            async with self._lock:
                self._reassembler.chunk(payload.value)
                self._receiving = False
            await self._notify()
            return

        response = payload.value
        update = self.stream_content(response)
        if update is None:
            async with self._lock:
                self._receiving = False
            await self.handle_response(response)
            await self._notify()
            return

        async with self._lock:
            finished = self._reassembler.structured(update.content, update.is_complete)
            if finished is not None:
                self._history.append(ChatTurn(role="assistant", content=finished))
                self._receiving = False
            else:
                self._receiving = True

        if finished is not None:
            await self.on_exchange_complete(finished)
        await self._notify()

    async def clear_conversation(self) -> None:
        """Forget the history and the exchange in flight."""
        async with self._lock:
            self._history.clear()
            self._reassembler.begin_exchange()
            self._receiving = False
        await self._notify()

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def graceful_disconnect(self) -> None:
        """
        Close the channel for good.

        Activities are cancelled before the socket closes; after this call
        the controller never reconnects on its own.
        """
        self._maintain = False

        reconnect_task = self._reconnect_task
        self._reconnect_task = None
        if reconnect_task is not None and reconnect_task is not asyncio.current_task():
            reconnect_task.cancel()
            try:
                await reconnect_task
            except asyncio.CancelledError:
                pass

        async with self._lock:
            self._state = ConnectionState.SHUTTING_DOWN
        await self._notify()

        await self._monitor.stop()
        handle = await self._stop_activities()

        # Let writes already handed to the transport drain
        await self._sleep(self.config.websocket.drain_interval_s)
        if handle is not None:
            await handle.close(CloseCode.NORMAL, "")

        async with self._lock:
            self._state = ConnectionState.DISCONNECTED
            self._receiving = False
        self._background.release()
        logger.info(f"{self.name}: disconnected")
        await self._notify()

    async def __aenter__(self) -> "ConnectionController[RequestT, ResponseT]":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.graceful_disconnect()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def on_enter_background(self) -> None:
        if self._maintain:
            self._background.acquire()

    async def on_enter_foreground(self) -> None:
        self._background.release()
        if not self._maintain:
            return
        self._parked = False
        if self._state is not ConnectionState.DISCONNECTED:
            return
        try:
            await self.connect()
        except Exception as e:
            logger.warning(f"{self.name}: reconnect on foreground failed: {e}")

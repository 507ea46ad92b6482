"""
Transport layer for streaming connections.

Defines the narrow socket interface the controller depends on, a concrete
implementation over the ``websockets`` library, and helpers for endpoint
construction and JSON framing.
"""

import asyncio
import json
import logging
from typing import Any, Optional, Protocol, Union
from urllib.parse import urlencode

import websockets
from websockets.exceptions import WebSocketException

from .config import CloseCode, WebSocketConfig
from .errors import EncodeError, TransportError
from .types import InboundFrame


logger = logging.getLogger("horizon.transport")


class TransportHandle(Protocol):
    """One open full-duplex channel."""

    @property
    def closed(self) -> bool: ...

    async def send(self, frame: Union[str, bytes]) -> None: ...

    async def receive(self) -> InboundFrame: ...

    async def ping(self) -> None: ...

    async def close(self, code: int = CloseCode.NORMAL, reason: str = "") -> None: ...


class Transport(Protocol):
    """Factory for channels."""

    async def open(self, url: str) -> TransportHandle: ...


# =============================================================================
# websockets implementation
# =============================================================================

class WebSocketHandle:
    """
    TransportHandle over a ``websockets`` client connection.

    Every library or socket exception is converted to TransportError so the
    activities above only need to know about one failure type.
    """

    def __init__(self, ws: Any, ping_timeout: float = 20.0):
        self._ws = ws
        self._ping_timeout = ping_timeout
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, frame: Union[str, bytes]) -> None:
        try:
            await self._ws.send(frame)
        except (WebSocketException, OSError) as e:
            self._closed = True
            raise TransportError(f"send failed: {e}") from e

    async def receive(self) -> InboundFrame:
        try:
            raw = await self._ws.recv()
        except (WebSocketException, OSError) as e:
            self._closed = True
            raise TransportError(f"receive failed: {e}") from e
        return InboundFrame.from_raw(raw)

    async def ping(self) -> None:
        """Send a protocol ping and wait for the pong (bounded by ping_timeout)."""
        try:
            pong_waiter = await self._ws.ping()
            await asyncio.wait_for(pong_waiter, self._ping_timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f"no pong within {self._ping_timeout}s") from e
        except (WebSocketException, OSError) as e:
            self._closed = True
            raise TransportError(f"ping failed: {e}") from e

    async def close(self, code: int = CloseCode.NORMAL, reason: str = "") -> None:
        """Close the channel. Never raises; closing twice is harmless."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._ws.close(code=code, reason=reason)
        except Exception as e:
            logger.debug(f"Error while closing websocket: {e}")


class WebSocketTransport:
    """Opens WebSocketHandle channels with the configured limits."""

    def __init__(
        self,
        config: Optional[WebSocketConfig] = None,
        extra_headers: Optional[dict] = None
    ):
        self.config = config or WebSocketConfig()
        self._extra_headers = extra_headers or {}

    async def open(self, url: str) -> WebSocketHandle:
        kwargs: dict[str, Any] = {
            "open_timeout": self.config.open_timeout,
            "close_timeout": self.config.close_timeout,
            "max_size": self.config.max_message_size,
            # Liveness is driven by the heartbeat scheduler
            "ping_interval": None,
        }
        if self._extra_headers:
            kwargs["additional_headers"] = self._extra_headers

        try:
            ws = await websockets.connect(url, **kwargs)
        except (WebSocketException, OSError, asyncio.TimeoutError) as e:
            raise TransportError(f"could not open {url}: {e}") from e

        logger.debug(f"Opened websocket to {url}")
        return WebSocketHandle(ws, ping_timeout=self.config.ping_timeout)


# =============================================================================
# Endpoints and framing
# =============================================================================

def to_websocket_url(base_url: str) -> str:
    """
    Rewrite an HTTP(S) origin to its WS(S) equivalent.

    https://host -> wss://host, http://host -> ws://host. Only the leading
    scheme is replaced and it is matched case-insensitively; anything that is
    not https (or wss) is treated as plain http.
    """
    scheme, sep, rest = base_url.partition("://")
    if not sep:
        return f"ws://{base_url}"
    ws_scheme = "wss" if scheme.lower() in ("https", "wss") else "ws"
    return f"{ws_scheme}://{rest}"


def build_endpoint(base_url: str, path: str, params: Optional[dict] = None) -> str:
    """Join the websocket origin of base_url with a path and query parameters."""
    url = to_websocket_url(base_url).rstrip("/") + path
    if params:
        url += "?" + urlencode(params)
    return url


def encode_payload(payload: Any) -> str:
    """Serialize an outbound payload to a JSON text frame."""
    try:
        return json.dumps(payload, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise EncodeError(f"cannot serialize outbound payload: {e}") from e

"""
Horizon Resilient Streaming Connections

Long-lived streaming channels to the Horizon backend that survive network
drops, server restarts and app backgrounding.

Features:
- Connection state machine with a single open channel per controller
- Heartbeat via transport pings or "ping"/"pong" text frames
- Exponential-backoff reconnection with a bounded attempt budget
- Reassembly of streamed responses into one display string
- Foreground/background lifecycle hooks

Usage:
    from horizon import AssistManager, Config, setup_logging

    config = Config.from_env()
    setup_logging(config=config)
    manager = AssistManager(config=config)
    manager.add_listener(on_snapshot)

    await manager.connect()
    await manager.send_message("Summarize this page", ocr_text=screen_text)
"""

# Type definitions
from .types import (
    ConnectionState,
    HeartbeatStyle,
    FrameKind,
    InboundFrame,
    ReconnectCounter,
    StreamAccumulator,
    ChatTurn,
    ConnectionSnapshot,
)

# Errors
from .errors import (
    HorizonError,
    NotConnected,
    TransportError,
    DecodeError,
    EncodeError,
    MaxAttemptsExceeded,
)

# Configuration
from .config import (
    Config,
    EndpointConfig,
    HeartbeatConfig,
    ReconnectConfig,
    WebSocketConfig,
    CloseCode,
    Sentinel,
    setup_logging,
)

# Transport
from .transport import (
    Transport,
    TransportHandle,
    WebSocketTransport,
    WebSocketHandle,
    to_websocket_url,
    build_endpoint,
    encode_payload,
)

# Activities
from .heartbeat import HeartbeatScheduler, TransportPingProbe, TextSentinelProbe
from .receiver import ReceiveLoop
from .router import FrameRouter, PayloadKind, RoutedPayload
from .reassembler import MessageReassembler, apply_chunk, apply_structured
from .reconnect import ReconnectionPolicy, ConnectionMonitor
from .lifecycle import LifecycleHook, BackgroundExtender, BackgroundLease, LifecycleDispatcher

# Controllers
from .controller import ConnectionController
from .managers import (
    AssistManager,
    ContextSearchManager,
    SearchMethod,
    TagUpdateManager,
)

__all__ = [
    # Types
    "ConnectionState",
    "HeartbeatStyle",
    "FrameKind",
    "InboundFrame",
    "ReconnectCounter",
    "StreamAccumulator",
    "ChatTurn",
    "ConnectionSnapshot",

    # Errors
    "HorizonError",
    "NotConnected",
    "TransportError",
    "DecodeError",
    "EncodeError",
    "MaxAttemptsExceeded",

    # Configuration
    "Config",
    "EndpointConfig",
    "HeartbeatConfig",
    "ReconnectConfig",
    "WebSocketConfig",
    "CloseCode",
    "Sentinel",
    "setup_logging",

    # Transport
    "Transport",
    "TransportHandle",
    "WebSocketTransport",
    "WebSocketHandle",
    "to_websocket_url",
    "build_endpoint",
    "encode_payload",

    # Activities
    "HeartbeatScheduler",
    "TransportPingProbe",
    "TextSentinelProbe",
    "ReceiveLoop",
    "FrameRouter",
    "PayloadKind",
    "RoutedPayload",
    "MessageReassembler",
    "apply_chunk",
    "apply_structured",
    "ReconnectionPolicy",
    "ConnectionMonitor",
    "LifecycleHook",
    "BackgroundExtender",
    "BackgroundLease",
    "LifecycleDispatcher",

    # Controllers
    "ConnectionController",
    "AssistManager",
    "ContextSearchManager",
    "SearchMethod",
    "TagUpdateManager",
]

__version__ = "1.0.0"

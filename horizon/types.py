"""
Type definitions for streaming connection management.

Plain data shared by the controller and its background activities.
"""

from dataclasses import dataclass, field
from typing import Optional, Callable, Awaitable, Union
from enum import Enum


class ConnectionState(str, Enum):
    """Lifecycle state of a connection controller."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    SHUTTING_DOWN = "shutting_down"


class HeartbeatStyle(str, Enum):
    """How liveness probes are emitted."""
    TRANSPORT_PING = "transport_ping"  # protocol-level ping/pong
    TEXT_SENTINEL = "text_sentinel"  # literal "ping" text frame, "pong" reply


class FrameKind(str, Enum):
    """Kind of a raw frame delivered by the transport."""
    BINARY = "binary"
    TEXT = "text"


@dataclass(frozen=True)
class InboundFrame:
    """One discrete message unit received from the transport."""
    kind: FrameKind
    data: Union[bytes, str]

    @classmethod
    def text(cls, data: str) -> "InboundFrame":
        return cls(kind=FrameKind.TEXT, data=data)

    @classmethod
    def binary(cls, data: bytes) -> "InboundFrame":
        return cls(kind=FrameKind.BINARY, data=data)

    @classmethod
    def from_raw(cls, raw: Union[bytes, str]) -> "InboundFrame":
        """Wrap whatever the websocket library handed back."""
        if isinstance(raw, str):
            return cls.text(raw)
        return cls.binary(bytes(raw))


@dataclass
class ReconnectCounter:
    """
    Bounded exponential backoff counter.

    attempts counts reconnect attempts since the last successful connect.
    """
    base_delay: float = 1.0
    cap: float = 30.0
    max_attempts: int = 10
    attempts: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def delay_for(self, attempt: int) -> float:
        """Delay before the given 1-based attempt."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.cap)

    def advance(self) -> Optional[float]:
        """
        Register a failure.

        Returns the delay before the next attempt, or None once the budget is
        spent (in which case the counter is reset to zero).
        """
        if self.exhausted:
            self.attempts = 0
            return None
        self.attempts += 1
        return self.delay_for(self.attempts)

    def reset(self) -> None:
        self.attempts = 0


@dataclass(frozen=True)
class StreamAccumulator:
    """Running display text for the exchange currently in flight."""
    current_text: str = ""
    is_active: bool = False


@dataclass(frozen=True)
class ChatTurn:
    """A role-tagged entry of the conversation history."""
    role: str
    content: str
    metadata: Optional[dict] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "role": self.role,
            "content": self.content,
            **({"metadata": self.metadata} if self.metadata else {})
        }


@dataclass(frozen=True)
class ConnectionSnapshot:
    """Read-only projection of a controller's observable outputs."""
    state: ConnectionState
    connected: bool
    receiving: bool
    current_stream_text: str
    conversation_history: tuple = field(default_factory=tuple)


# Callback type definitions
OnSnapshot = Callable[[ConnectionSnapshot], Awaitable[None]]
Sleep = Callable[[float], Awaitable[None]]

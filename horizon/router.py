"""
Frame Router for inbound streaming traffic.

Handles:
- Sentinel detection (initialization acknowledgment, pong replies)
- Structured decoding of JSON payloads into the manager's response model
- Fallback to raw streaming text for endpoints that stream plain tokens

The router is synchronous and never touches connection state; the receive
loop hands its output to the controller for dispatch.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, FrozenSet, Optional

from .config import Sentinel
from .errors import DecodeError
from .types import FrameKind, InboundFrame


logger = logging.getLogger("horizon.router")


class PayloadKind(str, Enum):
    SENTINEL = "sentinel"
    STRUCTURED = "structured"
    RAW_TEXT = "raw_text"


@dataclass(frozen=True)
class RoutedPayload:
    kind: PayloadKind
    value: Any


DEFAULT_SENTINELS: FrozenSet[str] = frozenset({Sentinel.INIT_ACK, Sentinel.PONG})


class FrameRouter:
    """
    Classifies inbound frames.

    Binary frames must hold a structured JSON payload. Text frames are checked
    against the sentinel set first, then decoded; if decoding fails and the
    endpoint streams raw text, the frame is treated as a literal chunk.
    """

    def __init__(
        self,
        decode: Callable[[Any], Any],
        accepts_raw_text: bool = False,
        sentinels: FrozenSet[str] = DEFAULT_SENTINELS,
        on_sentinel: Optional[Callable[[str], None]] = None
    ):
        """
        Args:
            decode: Maps a parsed JSON value to a response object, raising DecodeError
            accepts_raw_text: Whether undecodable text frames are streaming chunks
            sentinels: Literal text frames consumed silently
            on_sentinel: Called with each consumed sentinel
        """
        self._decode = decode
        self.accepts_raw_text = accepts_raw_text
        self.sentinels = sentinels
        self._on_sentinel = on_sentinel

    def route(self, frame: InboundFrame) -> RoutedPayload:
        """
        Classify one frame.

        Raises:
            DecodeError: if the frame is neither a sentinel, a valid structured
                payload, nor acceptable raw text
        """
        if frame.kind is FrameKind.BINARY:
            try:
                text = frame.data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecodeError(f"binary frame is not UTF-8: {e}") from e
            return RoutedPayload(PayloadKind.STRUCTURED, self._decode_json(text))

        text = frame.data
        if text in self.sentinels:
            if self._on_sentinel:
                self._on_sentinel(text)
            return RoutedPayload(PayloadKind.SENTINEL, text)

        try:
            return RoutedPayload(PayloadKind.STRUCTURED, self._decode_json(text))
        except DecodeError:
            if not self.accepts_raw_text:
                raise
        return RoutedPayload(PayloadKind.RAW_TEXT, text)

    def _decode_json(self, text: str) -> Any:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise DecodeError(f"invalid JSON: {e}") from e
        return self._decode(data)

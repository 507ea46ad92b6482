"""
Assist chat manager.

Streams AI responses for a conversation. Every turn sends the whole history
plus optional screen context; the server answers either with structured
{content, isComplete} updates or with raw text chunks.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol

from ..controller import ConnectionController
from ..errors import EncodeError, NotConnected
from ..models import AssistMessage, AssistRequest, MessageMetadata, StreamResponse, decode_model
from ..transport import build_endpoint
from ..types import ChatTurn, HeartbeatStyle


logger = logging.getLogger("horizon.assist")

ASSIST_PATH = "/horizon/assist/chat-ws"


@dataclass(frozen=True)
class ScreenContext:
    """What the user is looking at when a message is sent."""
    ocr_text: Optional[str] = None
    selected_text: Optional[str] = None
    image_bytes: Optional[bytes] = None


class ContextProvider(Protocol):
    """Host hook that captures screen context on demand."""

    async def capture(self) -> ScreenContext: ...


@dataclass(frozen=True)
class AssistPrompt:
    """One user message and its side payload."""
    text: str
    ocr_text: Optional[str] = None
    selected_text: Optional[str] = None
    image_bytes: Optional[bytes] = None
    smarter_analysis_enabled: bool = False

    def metadata(self) -> Optional[dict]:
        """Context metadata in wire form, or None when there is none."""
        meta = {}
        if self.ocr_text:
            meta["ocrText"] = self.ocr_text
        if self.selected_text:
            meta["selectedText"] = self.selected_text
        return meta or None


@dataclass(frozen=True)
class ChatBubble:
    """One entry of the display transcript."""
    role: str
    content: str


class AssistManager(ConnectionController[AssistPrompt, StreamResponse]):
    """AI chat over a streaming channel."""

    name = "assist"
    heartbeat_style = HeartbeatStyle.TRANSPORT_PING
    accepts_raw_text = True

    def __init__(self, *args, context_provider: Optional[ContextProvider] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.context_provider = context_provider
        self.transcript: List[ChatBubble] = []

    def build_url(self) -> str:
        return build_endpoint(self.config.endpoints.base_url, ASSIST_PATH)

    def decode_response(self, data: Any) -> StreamResponse:
        return decode_model(StreamResponse, data)

    def outgoing_turn(self, request: AssistPrompt) -> Optional[ChatTurn]:
        return ChatTurn(role="user", content=request.text, metadata=request.metadata())

    def encode_request(self, request: AssistPrompt) -> dict:
        messages = [
            AssistMessage(
                role=turn.role,
                content=turn.content,
                metadata=MessageMetadata.model_validate(turn.metadata) if turn.metadata else None,
            )
            for turn in self.conversation_history
        ]
        image = base64.b64encode(request.image_bytes).decode("ascii") if request.image_bytes else None
        return AssistRequest(
            messages=messages,
            image_bytes=image,
            smarter_analysis_enabled=request.smarter_analysis_enabled,
        ).to_wire()

    async def on_exchange_complete(self, content: str) -> None:
        self.transcript.append(ChatBubble(role="assistant", content=content))

    async def send_message(
        self,
        text: str,
        ocr_text: Optional[str] = None,
        selected_text: Optional[str] = None,
        image_bytes: Optional[bytes] = None,
        smarter_analysis_enabled: bool = False
    ) -> None:
        """
        Send a user message with optional screen context.

        Context the caller leaves out is filled in from the context provider,
        when one is configured.

        Raises:
            ValueError: if text is blank
            NotConnected: if the channel can't be opened
        """
        if not text.strip():
            raise ValueError("message text is empty")

        if self.context_provider is not None and not (ocr_text or selected_text or image_bytes):
            captured = await self.context_provider.capture()
            ocr_text = captured.ocr_text
            selected_text = captured.selected_text
            image_bytes = captured.image_bytes

        prompt = AssistPrompt(
            text=text,
            ocr_text=ocr_text,
            selected_text=selected_text,
            image_bytes=image_bytes,
            smarter_analysis_enabled=smarter_analysis_enabled,
        )
        # A raw-text response has no completion marker; it ends with the next send
        bubbles = []
        if self.current_stream_text:
            bubbles.append(ChatBubble(role="assistant", content=self.current_stream_text))
        bubbles.append(ChatBubble(role="user", content=text))
        self.transcript.extend(bubbles)

        logger.info(f"Sending message ({len(self.conversation_history) + 1} turns)")
        try:
            await self.send(prompt)
        except (NotConnected, EncodeError):
            del self.transcript[-len(bubbles):]
            raise

    async def clear_conversation(self) -> None:
        self.transcript.clear()
        await super().clear_conversation()

"""
Context search manager.

Sends the text currently on screen and receives related notes. The channel
opens with an initialization handshake: {"init": true} is sent, the server
acknowledges with "|INIT|".
"""

import logging
from enum import Enum
from typing import Any, List, Optional, Union

from ..config import Sentinel
from ..controller import ConnectionController
from ..models import (
    ContextNote,
    ContextSearchRequest,
    ContextSearchResponse,
    SearchError,
    decode_model,
)
from ..transport import build_endpoint
from ..types import HeartbeatStyle


logger = logging.getLogger("horizon.search")


class SearchMethod(str, Enum):
    """How the backend derives queries from the screen text."""
    TOPIC_EXTRACTION = "topic_extraction"
    SENTENCE_CHUNKS = "sentence_chunks"

    @property
    def path(self) -> str:
        if self is SearchMethod.TOPIC_EXTRACTION:
            return "/horizon/context/context-search-ws-topic-extraction"
        return "/horizon/context/context-search-ws-sentence-chunks"


SearchReply = Union[ContextSearchResponse, SearchError]


class ContextSearchManager(ConnectionController[ContextSearchRequest, SearchReply]):
    """Finds notes related to what the user is looking at."""

    name = "search"
    heartbeat_style = HeartbeatStyle.TRANSPORT_PING
    init_frame = Sentinel.INIT_REQUEST

    def __init__(
        self,
        *args,
        method: SearchMethod = SearchMethod.SENTENCE_CHUNKS,
        tenant_name: Optional[str] = None,
        **kwargs
    ):
        super().__init__(*args, **kwargs)
        self.method = method
        self.tenant_name = tenant_name
        self.response: Optional[ContextSearchResponse] = None
        self.searching = False
        self.last_error: Optional[str] = None

    @property
    def results(self) -> List[ContextNote]:
        return self.response.results if self.response else []

    def build_url(self) -> str:
        return build_endpoint(self.config.endpoints.base_url, self.method.path)

    def decode_response(self, data: Any) -> SearchReply:
        if isinstance(data, dict) and "error" in data:
            return decode_model(SearchError, data)
        return decode_model(ContextSearchResponse, data)

    def encode_request(self, request: ContextSearchRequest) -> dict:
        return request.to_wire()

    async def search(self, screen_ocr: str, tenant_name: Optional[str] = None) -> None:
        """
        Start a search; results arrive asynchronously.

        Raises:
            ValueError: if no tenant is known
            NotConnected: if the channel can't be opened
        """
        tenant = tenant_name or self.tenant_name
        if not tenant:
            raise ValueError("tenant_name is required for context search")

        self.searching = True
        self.last_error = None
        try:
            await self.send(ContextSearchRequest(screen_ocr=screen_ocr, tenant_name=tenant))
        except Exception as e:
            self.searching = False
            self.last_error = str(e)
            raise

    async def handle_response(self, response: SearchReply) -> None:
        self.searching = False
        if isinstance(response, SearchError):
            logger.warning(f"Context search error: {response.error}")
            self.last_error = response.error
            return
        self.response = response
        logger.info(f"Received {response.total_results} search results")

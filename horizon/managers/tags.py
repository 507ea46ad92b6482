"""
Tag update manager.

Keeps an in-memory copy of a tenant's tags in sync: the full list is loaded
once over HTTP, then created/updated/deleted events arrive on a streaming
channel that uses the text "ping"/"pong" heartbeat.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

import aiohttp

from ..controller import ConnectionController
from ..errors import TransportError
from ..models import Tag, TagListResponse, TagUpdate, decode_model
from ..transport import build_endpoint
from ..types import HeartbeatStyle


logger = logging.getLogger("horizon.tags")

TAG_WS_PATH = "/constella_db/tag/ws"
TAG_LIST_PATH = "/constella_db/tag/get_all_tags_for_user"

OnTagUpdate = Callable[[TagUpdate], Awaitable[None]]


class TagSource(Protocol):
    """Loads the full tag list of a tenant."""

    async def get_all_tags(self, tenant_name: str) -> List[Tag]: ...


class TagClient:
    """HTTP client for the tag list endpoint."""

    def __init__(self, base_url: str, timeout: float = 30.0):
        self.base_url = base_url.strip().rstrip("/")
        self.timeout = timeout

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _handle_response(self, resp: aiohttp.ClientResponse, error_msg: str) -> Any:
        if resp.status not in (200, 201):
            text = await resp.text()
            logger.error(f"{error_msg}: {resp.status} {text}")
            raise TransportError(f"{error_msg}: {resp.status} {text}")
        return await resp.json()

    async def post(self, endpoint: str, json: Optional[Dict] = None, error_msg: str = "Request failed") -> Any:
        url = f"{self.base_url}{endpoint}"
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, json=json, headers=self._get_headers()) as resp:
                    return await self._handle_response(resp, error_msg)
        except aiohttp.ClientError as e:
            raise TransportError(f"{error_msg}: {e}") from e

    async def get_all_tags(self, tenant_name: str) -> List[Tag]:
        data = await self.post(
            TAG_LIST_PATH,
            json={"tenant_name": tenant_name},
            error_msg="Failed to fetch tags",
        )
        return decode_model(TagListResponse, data).results


class TagUpdateManager(ConnectionController[Dict[str, Any], TagUpdate]):
    """Live tag list for one tenant."""

    name = "tags"
    heartbeat_style = HeartbeatStyle.TEXT_SENTINEL

    def __init__(
        self,
        *args,
        tenant_name: Optional[str] = None,
        tag_source: Optional[TagSource] = None,
        **kwargs
    ):
        super().__init__(*args, **kwargs)
        self.tenant_name = tenant_name
        self.tag_source = tag_source or TagClient(self.config.endpoints.tag_base_url)
        self.tags: List[Tag] = []
        self.last_update: Optional[TagUpdate] = None
        self._tag_listeners: List[OnTagUpdate] = []

    def build_url(self) -> str:
        if not self.tenant_name:
            raise ValueError("tenant_name must be set before connecting the tag channel")
        return build_endpoint(
            self.config.endpoints.tag_base_url,
            TAG_WS_PATH,
            {"tenant_name": self.tenant_name},
        )

    def decode_response(self, data: Any) -> TagUpdate:
        return decode_model(TagUpdate, data)

    def encode_request(self, request: Dict[str, Any]) -> Dict[str, Any]:
        return request

    # =========================================================================
    # Tag store
    # =========================================================================

    def add_tag_listener(self, listener: OnTagUpdate) -> None:
        if listener not in self._tag_listeners:
            self._tag_listeners.append(listener)

    def remove_tag_listener(self, listener: OnTagUpdate) -> None:
        if listener in self._tag_listeners:
            self._tag_listeners.remove(listener)

    def get_tag(self, uniqueid: str) -> Optional[Tag]:
        return next((tag for tag in self.tags if tag.uniqueid == uniqueid), None)

    def find_tags(self, text: str) -> List[Tag]:
        """Tags whose name contains text, case-insensitively."""
        needle = text.lower()
        return [tag for tag in self.tags if needle in tag.name.lower()]

    async def fetch_all_tags(self) -> List[Tag]:
        """Replace the tag list with the server's current copy."""
        if not self.tenant_name:
            raise ValueError("tenant_name must be set before fetching tags")
        self.tags = list(await self.tag_source.get_all_tags(self.tenant_name))
        logger.info(f"Loaded {len(self.tags)} tags for {self.tenant_name}")
        return self.tags

    async def initialize(self, tenant_name: str) -> None:
        """Load the tag list, then subscribe to live updates."""
        self.tenant_name = tenant_name
        await self.fetch_all_tags()
        await self.connect()

    async def handle_response(self, response: TagUpdate) -> None:
        if response.type == "connection":
            logger.info(f"Tag channel status: {response.status} ({response.tenant_name})")
            return
        if response.type != "tag_update" or response.data is None:
            logger.debug(f"Ignoring tag message of type {response.type}")
            return

        self._apply(response)
        self.last_update = response

        for listener in list(self._tag_listeners):
            try:
                await listener(response)
            except Exception as e:
                logger.error(f"Tag listener failed: {e}", exc_info=True)

    def _apply(self, update: TagUpdate) -> None:
        data = update.data
        if update.action == "deleted":
            self.tags = [tag for tag in self.tags if tag.uniqueid != data.uniqueid]
            logger.debug(f"Removed tag {data.uniqueid}")
            return
        if update.action not in ("created", "updated"):
            logger.debug(f"Unknown tag action {update.action}")
            return

        tag = data.to_tag()
        if tag is None:
            logger.warning(f"Tag {data.uniqueid} {update.action} without name or color")
            return

        for i, existing in enumerate(self.tags):
            if existing.uniqueid == tag.uniqueid:
                self.tags[i] = tag
                break
        else:
            self.tags.append(tag)
        logger.debug(f"Tag {tag.uniqueid} {update.action}")

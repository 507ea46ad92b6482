# ==============================================================================
# FILE: tests/conftest.py
# DESCRIPTION: In-memory transport, controllable sleep and shared fixtures
# ==============================================================================

import asyncio
import json

import pytest
import pytest_asyncio

from horizon.config import Config, HeartbeatConfig, ReconnectConfig, WebSocketConfig
from horizon.errors import TransportError
from horizon.types import InboundFrame


# Sleeps of these lengths park forever, so periodic loops run exactly once
HEARTBEAT_S = 900.0
MONITOR_S = 600.0


class FakeHandle:
    """In-memory channel: tests push inbound frames, sent frames are recorded."""

    def __init__(self, ping_error=None):
        self.inbox = asyncio.Queue()
        self.sent = []
        self.pings = 0
        self.ping_error = ping_error
        self.close_code = None
        self._closed = False

    @property
    def closed(self):
        return self._closed

    async def send(self, frame):
        if self._closed:
            raise TransportError("send on closed channel")
        self.sent.append(frame)

    async def receive(self):
        item = await self.inbox.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def ping(self):
        self.pings += 1
        if self.ping_error is not None:
            raise self.ping_error

    async def close(self, code=1000, reason=""):
        if self._closed:
            return
        self._closed = True
        self.close_code = code

    # Test helpers
    def push_text(self, text):
        self.inbox.put_nowait(InboundFrame.text(text))

    def push_binary(self, data):
        self.inbox.put_nowait(InboundFrame.binary(data))

    def push_json(self, payload):
        self.push_text(json.dumps(payload))

    def drop(self, error=None):
        self.inbox.put_nowait(error or TransportError("connection reset"))

    def sent_json(self):
        return [json.loads(f) for f in self.sent if f.startswith("{")]


class FakeTransport:
    """Hands out FakeHandles; open() can be told to fail."""

    def __init__(self):
        self.urls = []
        self.handles = []
        self.queued = []
        self.fail_next = 0

    @property
    def open_count(self):
        return len(self.urls)

    @property
    def last(self):
        return self.handles[-1]

    async def open(self, url):
        self.urls.append(url)
        await asyncio.sleep(0)
        if self.fail_next > 0:
            self.fail_next -= 1
            raise TransportError(f"could not open {url}: refused")
        handle = self.queued.pop(0) if self.queued else FakeHandle()
        self.handles.append(handle)
        return handle


class FakeSleep:
    """Records requested delays; returns at once except for parked lengths."""

    def __init__(self, parked=(HEARTBEAT_S, MONITOR_S)):
        self.calls = []
        self._parked = set(parked)

    async def __call__(self, delay):
        self.calls.append(delay)
        if delay in self._parked:
            await asyncio.Event().wait()
        await asyncio.sleep(0)


class FakeExtender:
    """Background-time facility that records begin/end calls."""

    def __init__(self):
        self.begun = []
        self.ended = []

    def begin(self, name, on_expire):
        token = len(self.begun) + 1
        self.begun.append((name, token))
        return token

    def end(self, token):
        self.ended.append(token)


async def eventually(predicate, timeout=2.0):
    """Wait until predicate() holds, failing the test after timeout seconds."""
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.001)
    await asyncio.wait_for(_poll(), timeout)


def make_config(max_attempts=10, monitor_interval_s=MONITOR_S):
    return Config(
        heartbeat=HeartbeatConfig(interval_s=HEARTBEAT_S),
        reconnect=ReconnectConfig(max_attempts=max_attempts, monitor_interval_s=monitor_interval_s),
        websocket=WebSocketConfig(drain_interval_s=0.0),
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def extender():
    return FakeExtender()


@pytest_asyncio.fixture
async def assist(transport, fake_sleep, extender):
    from horizon.managers import AssistManager

    manager = AssistManager(
        config=make_config(),
        transport=transport,
        background=extender,
        sleep=fake_sleep,
    )
    yield manager
    await manager.graceful_disconnect()


@pytest_asyncio.fixture
async def tags(transport, fake_sleep):
    from horizon.managers import TagUpdateManager

    manager = TagUpdateManager(
        config=make_config(),
        transport=transport,
        sleep=fake_sleep,
        tenant_name="tenant-1",
    )
    yield manager
    await manager.graceful_disconnect()


@pytest_asyncio.fixture
async def search(transport, fake_sleep):
    from horizon.managers import ContextSearchManager

    manager = ContextSearchManager(
        config=make_config(),
        transport=transport,
        sleep=fake_sleep,
        tenant_name="tenant-1",
    )
    yield manager
    await manager.graceful_disconnect()

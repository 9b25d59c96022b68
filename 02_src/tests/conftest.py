"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import httpx
import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


class FakeMicrophone:
    """In-memory IMicrophone that records every call."""

    def __init__(self, uri: str = "file:///tmp/recording.m4a"):
        self.uri = uri
        self.granted = True
        self.fail_on: set[str] = set()
        self.calls: list[str] = []

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise RuntimeError(f"{name} failed")

    async def request_permission(self) -> bool:
        self.calls.append("request_permission")
        return self.granted

    async def begin(self) -> None:
        self._call("begin")

    async def pause(self) -> None:
        self._call("pause")

    async def resume(self) -> None:
        self._call("resume")

    async def finish(self) -> str:
        self._call("finish")
        return self.uri

    async def release(self) -> None:
        self._call("release")


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def wait_for():
    """Poll a predicate until it holds or the timeout expires."""

    async def _wait_for(predicate, timeout: float = 2.0) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if predicate():
                return True
            await asyncio.sleep(0.005)
        return predicate()

    return _wait_for


@pytest.fixture
def event_bus():
    """Create EventBus."""
    from chatsync.event_bus import EventBus

    return EventBus()


@pytest.fixture
def recorded_events(event_bus):
    """Collect every published event, by topic."""
    from chatsync.models import Topic

    events: dict = {topic: [] for topic in Topic}

    def make_handler(topic):
        async def handler(event):
            events[topic].append(event)

        return handler

    for topic in Topic:
        event_bus.subscribe(topic, make_handler(topic))
    return events


@pytest.fixture
def mock_api():
    """Create mock chat API."""
    api = Mock()
    api.fetch_messages = AsyncMock(return_value=[])
    api.send_message = AsyncMock()
    api.mark_read = AsyncMock(return_value=None)
    api.delete_message = AsyncMock(return_value=None)
    api.unread_count = AsyncMock(return_value=0)
    api.list_conversations = AsyncMock(return_value=[])
    api.open_conversation = AsyncMock()
    api.delete_conversation = AsyncMock(return_value=None)
    return api


@pytest.fixture
def me():
    """Current user."""
    from chatsync.models import Participant

    return Participant(id=1, name="Alice", image="alice.png")


@pytest.fixture
def tracker():
    """Create OptimisticMessageTracker."""
    from chatsync.sync import OptimisticMessageTracker

    return OptimisticMessageTracker()


@pytest_asyncio.fixture
async def engine(mock_api, tracker, event_bus, me):
    """Create MessageSyncEngine; polling is left to the tests."""
    from chatsync.sync import MessageSyncEngine

    eng = MessageSyncEngine(
        api=mock_api,
        tracker=tracker,
        event_bus=event_bus,
        current_user_id=me.id,
        poll_interval=60.0,
    )
    yield eng
    await eng.stop()


@pytest_asyncio.fixture
async def read_receipts(mock_api, engine, event_bus, me):
    """Create ReadReceiptTracker."""
    from chatsync.sync import ReadReceiptTracker

    rr = ReadReceiptTracker(
        api=mock_api, engine=engine, event_bus=event_bus, current_user_id=me.id
    )
    await rr.start()
    yield rr
    await rr.stop()


@pytest.fixture
def controller(mock_api, engine, tracker, read_receipts, me):
    """Create ConversationSendController."""
    from chatsync.send import ConversationSendController

    return ConversationSendController(
        api=mock_api,
        engine=engine,
        tracker=tracker,
        read_receipts=read_receipts,
        sender=me,
    )


@pytest.fixture
def microphone():
    return FakeMicrophone()


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def storage():
    """Create in-memory dev storage with two users."""
    from devserver import DevStorage

    st = DevStorage(":memory:")
    await st.init()
    await st.save_user(1, "Alice", "alice-token", email="alice@example.com")
    await st.save_user(2, "Bob", "bob-token", email="bob@example.com")
    await st.save_user(3, "Carol", "carol-token")
    yield st
    await st.close()


@pytest.fixture
def dev_app(storage):
    """Dev server app bound to the in-memory storage."""
    from devserver import create_dev_app

    return create_dev_app(storage)


@pytest_asyncio.fixture
async def http_client(dev_app):
    """httpx client talking to the dev app in-process."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=dev_app), base_url="http://test"
    ) as client:
        yield client

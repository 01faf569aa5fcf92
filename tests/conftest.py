"""Pytest configuration and shared fixtures."""

import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosedError

from hookrelay.config import IdentityConfig


_CLOSED = object()


class FakeTransport:
    """Records aborts; an abort drops the owning session."""

    def __init__(self, session):
        self._session = session
        self.aborted = False

    def abort(self):
        self.aborted = True
        if not self._session.closed:
            self._session.drop()


class FakeSession:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self, frames=(), answer_pings=True):
        self._frames = asyncio.Queue()
        for frame in frames:
            self._frames.put_nowait(frame)
        self.answer_pings = answer_pings
        self.closed = False
        self.close_calls = 0
        self.pings = 0
        self.transport = FakeTransport(self)

    def feed(self, frame):
        self._frames.put_nowait(frame)

    def drop(self):
        """Simulate the peer going away."""
        self.closed = True
        self._frames.put_nowait(_CLOSED)

    async def recv(self):
        item = await self._frames.get()
        if item is _CLOSED:
            self._frames.put_nowait(_CLOSED)
            raise ConnectionClosedError(None, None)
        return item

    async def ping(self):
        if self.closed:
            raise ConnectionClosedError(None, None)
        self.pings += 1
        pong_waiter = asyncio.get_running_loop().create_future()
        if self.answer_pings:
            pong_waiter.set_result(0.0)
        return pong_waiter

    async def close(self):
        self.close_calls += 1
        if not self.closed:
            self.drop()


class FakeConnector:
    """Connector returning scripted sessions or errors, then refusing forever."""

    def __init__(self, outcomes=()):
        self.outcomes = list(outcomes)
        self.calls = []
        self.urls = []

    async def __call__(self, url):
        self.calls.append(asyncio.get_running_loop().time())
        self.urls.append(url)
        item = self.outcomes.pop(0) if self.outcomes else OSError("Connection refused")
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture
def identity_config():
    """Configuration used by the end-to-end scenario."""
    return IdentityConfig(inspector_id="abc", local_endpoint="http://localhost:9000/hook")


@pytest.fixture
def make_frame():
    """Build an inbound wire frame as the inspector sends it."""
    def _make_frame(id="abc", method="POST", headers=None, body=None, query=None):
        return json.dumps({
            "id": id,
            "headers": headers if headers is not None else {"X-Test": "1"},
            "body": body if body is not None else {"k": "v"},
            "method": method,
            "query": query if query is not None else {"q": "1"},
        })
    return _make_frame


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def fake_connector():
    return FakeConnector


@pytest.fixture
def wait_until():
    """Poll a predicate on the running loop until it holds."""
    async def _wait_until(predicate, timeout=2.0, interval=0.01):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met in time")
            await asyncio.sleep(interval)
    return _wait_until


# Markers for test categorization
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )

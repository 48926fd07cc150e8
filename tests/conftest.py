"""Shared fakes and fixtures for the realtime relay tests."""

import asyncio
import json
import random
from typing import Any, Dict, List, Optional

import pytest
from websockets.exceptions import ConnectionClosedOK

from services.realtime.fallback_responder import FallbackResponder
from services.realtime.session_registry import SessionRegistry
from services.realtime.upstream_connector import UpstreamConnector
from services.realtime.ws_session import RealtimeRelay
from utils.settings import RelaySettings

WEBCAM_IMAGE = "data:image/jpeg;base64,/9j/4AAQSkZJRgABAQ=="
SCREEN_IMAGE = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUg=="


class FakeClientSocket:
    """Stands in for the accepted FastAPI websocket of one browser."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.close_code: Optional[int] = None

    async def send_text(self, data: str) -> None:
        if self.close_code is not None:
            raise RuntimeError('Cannot call "send" once a close message has been sent.')
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000) -> None:
        if self.close_code is not None:
            raise RuntimeError("Unexpected ASGI message 'websocket.close'")
        self.close_code = code

    def types(self) -> List[str]:
        return [event["type"] for event in self.sent]

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [event for event in self.sent if event["type"] == event_type]


class FakeUpstream:
    """Stands in for the websocket connection to the realtime endpoint."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.closed = False
        self._frames: asyncio.Queue = asyncio.Queue()

    async def send(self, data: str) -> None:
        if self.closed:
            raise ConnectionClosedOK(None, None)
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._frames.put_nowait(None)

    def feed(self, event: Dict[str, Any]) -> None:
        self._frames.put_nowait(json.dumps(event))

    def feed_raw(self, frame: str) -> None:
        self._frames.put_nowait(frame)

    def fail(self, exc: BaseException) -> None:
        """Make the next receive raise `exc`."""
        self._frames.put_nowait(exc)

    def types(self) -> List[str]:
        return [message["type"] for message in self.sent]

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        frame = await self._frames.get()
        if frame is None:
            raise StopAsyncIteration
        if isinstance(frame, BaseException):
            raise frame
        return frame


class FakeConnect:
    """Records connect attempts and hands out one FakeUpstream."""

    def __init__(self, upstream: Optional[FakeUpstream] = None, error: Optional[BaseException] = None) -> None:
        self.upstream = upstream or FakeUpstream()
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def __call__(self, url: str, **kwargs: Any) -> FakeUpstream:
        self.calls.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.upstream


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the event loop until `predicate()` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


async def seed_folder(db, user_id: str, name: str) -> int:
    """Insert a FOLDER row the way the upload service would."""
    async with db.connection() as conn:
        cur = await conn.execute(
            "INSERT INTO FOLDER (user_id, name, created_at) VALUES (?, ?, ?)",
            (user_id, name, 1700000000),
        )
        await conn.commit()
        return cur.lastrowid


async def seed_material(
    db,
    user_id: str,
    folder_id: Optional[int],
    name: str,
    content: Optional[str] = None,
    kind: str = "text",
) -> int:
    """Insert a MATERIAL row the way the upload service would."""
    async with db.connection() as conn:
        cur = await conn.execute(
            "INSERT INTO MATERIAL (user_id, folder_id, name, kind, content, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (user_id, folder_id, name, kind, content, 1700000000),
        )
        await conn.commit()
        return cur.lastrowid


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings(tmp_path):
    return RelaySettings(
        openai_api_key="sk-test",
        upstream_connect_timeout=1.0,
        upstream_ready_timeout=5.0,
        external_call_timeout=1.0,
        database_dir=tmp_path,
    )


@pytest.fixture
def fake_connect():
    return FakeConnect()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fallback():
    return FallbackResponder(rng=random.Random(7))


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def relay(settings, fake_connect, fallback, registry, clock):
    connector = UpstreamConnector(settings, connect=fake_connect)
    return RealtimeRelay(registry, connector, fallback, clock=clock)

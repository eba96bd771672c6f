"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Any

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer
from PySide6.QtCore import QCoreApplication

from mcserver_link.models import Motd, PlayerList, ServerRecord, ServerStatusSnapshot, ServerVariant
from mcserver_link.settings import SettingsStore
from mcserver_link.utils.status_client import StatusClient
from mcserver_link.utils.storage import MemoryStore


@dataclass
class RecordedRequest:
    method: str
    path: str
    query: dict[str, str]
    payload: Any


class FakeBackend:
    """In-process HTTP server standing in for the status and history APIs."""

    def __init__(self) -> None:
        self.requests: list[RecordedRequest] = []
        self.routes: dict[tuple[str, str], tuple[int, Any, float]] = {}
        self.base_url = ""
        self.app = web.Application()
        self.app.router.add_route("*", "/{tail:.*}", self._handle)

    def respond(self, method: str, path: str, status: int = 200, body: Any = None, delay: float = 0.0) -> None:
        self.routes[(method, path)] = (status, body, delay)

    def requests_to(self, path: str) -> list[RecordedRequest]:
        return [r for r in self.requests if r.path == path]

    async def _handle(self, request: web.Request) -> web.Response:
        payload = None
        if request.can_read_body:
            text = await request.text()
            try:
                payload = await request.json()
            except ValueError:
                payload = text
        self.requests.append(RecordedRequest(request.method, request.path, dict(request.query), payload))

        route = self.routes.get((request.method, request.path))
        if route is None:
            return web.json_response({"error": "not found"}, status=404)
        status, body, delay = route
        if delay:
            await asyncio.sleep(delay)
        if isinstance(body, str):
            return web.Response(status=status, text=body)
        return web.json_response(body, status=status)


@pytest_asyncio.fixture
async def backend():
    """Running fake backend."""
    fake = FakeBackend()
    server = TestServer(fake.app)
    await server.start_server()
    fake.base_url = str(server.make_url("/")).rstrip("/")
    yield fake
    await server.close()


@pytest.fixture
def store():
    """Empty in-memory key-value store."""
    return MemoryStore()


@pytest.fixture
def settings_store(store):
    """Settings with defaults."""
    return SettingsStore(store)


@pytest_asyncio.fixture
async def client(backend, settings_store):
    """Status client pointed at the fake backend, history configured."""
    settings_store.set_history_server_url(f"{backend.base_url}/api/")
    async with StatusClient(settings_store, status_base_url=f"{backend.base_url}/status") as status_client:
        yield status_client


@pytest.fixture(scope="session")
def qt_app():
    """Qt core application for signal delivery."""
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture
def record():
    """A Java server record."""
    return ServerRecord(
        id="srv-1",
        name="Hypixel",
        address="mc.example.com",
        port=25565,
        variant=ServerVariant.JAVA_EDITION,
    )


def make_snapshot(online_players: int = 5, motd: str = "Welcome") -> ServerStatusSnapshot:
    return ServerStatusSnapshot(
        online=True,
        ip_address="203.0.113.7",
        version_label="1.20.4",
        players=PlayerList(online=online_players, max=100),
        motd=Motd(raw=motd, clean=motd, display_text=motd),
    )


@pytest.fixture
def snapshot_factory():
    return make_snapshot


class FakeStatusClient:
    """Scripted stand-in for StatusClient.

    Queue outcomes with push(): a snapshot is returned, an exception is
    raised, and a Future is awaited first (to control completion order).
    """

    def __init__(self) -> None:
        self.outcomes: deque[Any] = deque()
        self.default: Any = make_snapshot()
        self.status_calls: list[ServerRecord] = []
        self.registered: list[ServerRecord] = []
        self.updated: list[tuple[ServerRecord, str]] = []
        self.deleted: list[str] = []
        self.backend_ok = True
        self.closed = False

    def push(self, *outcomes: Any) -> None:
        self.outcomes.extend(outcomes)

    async def fetch_status_for(self, record: ServerRecord) -> ServerStatusSnapshot:
        self.status_calls.append(record)
        outcome = self.outcomes.popleft() if self.outcomes else self.default
        if isinstance(outcome, asyncio.Future):
            outcome = await outcome
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def register_server(self, record: ServerRecord) -> bool:
        self.registered.append(record)
        return self.backend_ok

    async def update_server(self, record: ServerRecord, previous_address: str) -> bool:
        self.updated.append((record, previous_address))
        return self.backend_ok

    async def delete_server(self, address: str) -> bool:
        self.deleted.append(address)
        return self.backend_ok

    async def validate_base_url(self, url: str) -> bool:
        return url.startswith("https://ok.")

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_client():
    return FakeStatusClient()

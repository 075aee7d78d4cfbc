"""Shared fixtures: an in-memory transport and a client wired to it."""

import asyncio
import inspect
import json

import httpx
import pytest

from protoclient.core.envelopes import HttpRequest, ResponseEnvelope
from protoclient.core.interfaces import Transport
from protoclient.providers.protonet.client import ProtonetClient

BASE = "https://box.example.com"
API = f"{BASE}/api/v1/"
TOKENS_URL = f"{API}tokens/"
ME_URL = f"{API}me/"
CHATS_URL = f"{API}users/1/private_chats"
CHAT_URL = f"{API}private_chats/7"
MEEPS_URL = f"{API}private_chats/7/meeps"

ALICE = {
    "id": 1,
    "name": "alice",
    "username": "alice",
    "private_chats_url": CHATS_URL,
}

CHAT = {
    "id": 7,
    "url": CHAT_URL,
    "meeps_url": MEEPS_URL,
    "title": "alice & bob",
    "other_user_id": 2,
    "updated_at": "2026-10-01T12:00:00Z",
}


def json_response(status: int, data=None, reason: str = "") -> ResponseEnvelope:
    body = b"" if data is None else json.dumps(data).encode("utf-8")
    return ResponseEnvelope(status=status, reason=reason, body=body)


class FakeTransport(Transport):
    """Routes requests to canned responses or handler callables.

    Each route holds a queue; the last entry repeats once the others are
    used up.  Entries may be a :class:`ResponseEnvelope`, an exception to
    raise, or a callable taking the :class:`HttpRequest` (sync or async)
    that returns one of those.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], list] = {}
        self.requests: list[HttpRequest] = []
        self.closed = False

    def add(self, method: str, url: str, *responses) -> None:
        self.routes[(method, url)] = list(responses)

    def sent(self, method: str, url: str) -> list[HttpRequest]:
        return [r for r in self.requests if r.method == method and r.url == url]

    async def send(self, request: HttpRequest, stream: bool = False) -> ResponseEnvelope:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url))
        if not queue:
            return json_response(404, reason="Not Found")
        entry = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(entry):
            entry = entry(request)
            if inspect.isawaitable(entry):
                entry = await entry
        if isinstance(entry, Exception):
            raise entry
        if stream and entry.stream is None:
            return ResponseEnvelope(
                status=entry.status, reason=entry.reason, stream=TrackedStream(entry.body)
            )
        return entry

    async def aclose(self) -> None:
        self.closed = True


class TrackedStream(httpx.ByteStream):
    """In-memory body stream that remembers whether it was closed."""

    def __init__(self, data: bytes):
        super().__init__(data)
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True


async def read_all(stream: httpx.AsyncByteStream) -> bytes:
    return b"".join([chunk async for chunk in stream])


class EventLog:
    """Records every session signal a client emits."""

    def __init__(self, client: ProtonetClient):
        self.events: list[str] = []
        for signal in (
            client.authentication_complete,
            client.authentication_failed,
            client.logged_out,
        ):
            signal.connect(lambda name=signal.name: self.events.append(name))

    def count(self, name: str) -> int:
        return self.events.count(name)


def gated(response: ResponseEnvelope):
    """Return a handler that blocks until released, plus its controls.

    ``started`` is set every time a request reaches the handler; setting
    ``release`` lets every blocked request complete with ``response``.
    """
    started = asyncio.Event()
    release = asyncio.Event()

    async def handler(request):
        started.set()
        await release.wait()
        return response

    return handler, started, release


@pytest.fixture()
def transport():
    t = FakeTransport()
    t.add("POST", TOKENS_URL, json_response(201, {"token": "tok123"}))
    t.add("GET", ME_URL, json_response(200, {"me": ALICE}))
    t.add("GET", CHATS_URL, json_response(200, {"private_chats": [CHAT]}))
    t.add("GET", CHAT_URL, json_response(200, {"private_chat": CHAT}))
    return t


@pytest.fixture()
def client(transport):
    return ProtonetClient(BASE, transport=transport)


@pytest.fixture()
def events(client):
    return EventLog(client)

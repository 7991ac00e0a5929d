import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pytest

from models.game_record import GameRecord
from player.api_client import PlayApiClient

BASE_URL = "http://story.test"


def sse(*payloads: Dict[str, Any]) -> bytes:
    """Encode frame payloads the way the story service writes them."""
    return "".join(f"data: {json.dumps(payload)}\n\n" for payload in payloads).encode("utf-8")


def turn(text: str, options: Optional[List[Dict[str, Any]]] = None) -> bytes:
    """Return a complete turn body: one content frame, options and end."""
    return sse(
        {"type": "content", "content": text},
        {"type": "options", "options": options or []},
        {"type": "end"},
    )


class GatedStream(httpx.AsyncByteStream):
    """Byte stream that pauses before chunk `hold_at` until `gate` is set."""

    def __init__(self, chunks: List[bytes], gate: asyncio.Event, hold_at: int = 1) -> None:
        self.chunks = chunks
        self.gate = gate
        self.hold_at = hold_at

    async def __aiter__(self):
        for index, chunk in enumerate(self.chunks):
            if index == self.hold_at:
                await self.gate.wait()
            yield chunk


class FailingStream(httpx.AsyncByteStream):
    """Byte stream that drops the connection after its chunks."""

    def __init__(self, chunks: List[bytes]) -> None:
        self.chunks = chunks

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        raise httpx.ReadError("connection reset by peer")


class SlowCloseStream(httpx.AsyncByteStream):
    """Byte stream whose close takes `delay` seconds, after all chunks are read."""

    def __init__(self, chunks: List[bytes], delay: float = 0.05) -> None:
        self.chunks = chunks
        self.delay = delay
        self.closing = asyncio.Event()

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk

    async def aclose(self) -> None:
        self.closing.set()
        await asyncio.sleep(self.delay)


TurnReply = Union[bytes, httpx.Response]


class FakeStoryService:
    """In-process stand-in for the story service, routed by path."""

    def __init__(self) -> None:
        self.session_response: Callable[[], httpx.Response] = lambda: httpx.Response(
            200, json={"success": True, "data": {"sessionId": "sess-1", "id": 1}}
        )
        self.game_response: Optional[Callable[[], httpx.Response]] = None
        self.turns: List[TurnReply] = []
        self.image_failures = 0
        self.image_calls = 0
        self.requests: List[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/api/session/new":
            return self.session_response()
        if path == "/api/generate-image":
            self.image_calls += 1
            if self.image_failures:
                self.image_failures -= 1
                return httpx.Response(502, json={"detail": "image backend down"})
            return httpx.Response(200, json={"imageUrl": f"https://img.test/{self.image_calls}.png"})
        if request.method == "GET" and path.startswith("/api/games/") and self.game_response is not None:
            return self.game_response()
        if path.endswith("/start") or path == "/api/games/chat":
            reply = self.turns.pop(0)
            if isinstance(reply, httpx.Response):
                return reply
            return httpx.Response(200, content=reply, headers={"content-type": "text/event-stream"})
        return httpx.Response(404, json={"detail": "Not Found"})

    def bodies(self, path: str) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.url.path == path]


@pytest.fixture
def service() -> FakeStoryService:
    return FakeStoryService()


@pytest.fixture
def api(service: FakeStoryService) -> PlayApiClient:
    client = httpx.AsyncClient(transport=httpx.MockTransport(service), base_url=BASE_URL)
    return PlayApiClient(BASE_URL, client=client)


@pytest.fixture
def game() -> GameRecord:
    return GameRecord(
        id=7,
        slug="lantern-in-the-fog",
        title="Lantern in the Fog",
        description="A keeper vanished during the storm.",
        genre="mystery",
        primary_color="#d4a017",
    )


async def wait_until(condition: Callable[[], bool], attempts: int = 500) -> None:
    """Yield to the event loop until `condition` holds."""
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0.001)
    raise AssertionError("condition was never met")

"""Shared test fixtures for pytest.

ENVIRONMENT is pinned to ``test`` before the app is imported so settings load
without an env file. API tests talk to a real ``GPTBotsClient`` whose HTTP
transport is an ``httpx.MockTransport`` routed through ``UpstreamStub``.
"""

import json
import os
from collections.abc import AsyncGenerator, Callable, Generator, Iterable
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient


os.environ.setdefault("ENVIRONMENT", "test")

from dependencies.services import get_gptbots_client, get_thinking_store
from main import app
from services.gptbots import GPTBotsClient
from services.thinking_store import ThinkingStore


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


Handler = Callable[[httpx.Request], httpx.Response]


class UpstreamStub:
    """Routes mocked GPTBots requests by path and records them."""

    def __init__(self) -> None:
        self.routes: dict[str, Handler] = {}
        self.requests: list[httpx.Request] = []

    def route(self, path: str, handler: Handler) -> None:
        self.routes[path] = handler

    def json_body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, json={"error": "no route"})
        return handler(request)


def sse_body(events: Iterable[dict[str, Any] | str]) -> bytes:
    """Encode events as an upstream SSE body; strings are sent verbatim."""
    lines = []
    for event in events:
        if isinstance(event, str):
            lines.append(event)
        else:
            lines.append(f"data: {json.dumps(event, ensure_ascii=False)}")
        lines.append("")
    return "\n".join(lines).encode("utf-8")


@pytest.fixture
def make_sse_body() -> Callable[[Iterable[dict[str, Any] | str]], bytes]:
    return sse_body


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def thinking_store(fake_clock: FakeClock) -> ThinkingStore:
    return ThinkingStore(ttl_seconds=300, clock=fake_clock)


@pytest.fixture
def upstream() -> UpstreamStub:
    return UpstreamStub()


@pytest_asyncio.fixture
async def gptbots_client(
    upstream: UpstreamStub,
) -> AsyncGenerator[GPTBotsClient, None]:
    client = GPTBotsClient(
        base_url="https://gptbots.test",
        agent_key="agent-test-key",
        workflow_key="workflow-test-key",
        transport=httpx.MockTransport(upstream),
    )
    yield client
    await client.aclose()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """
    Create a test client for the FastAPI application.
    """
    with TestClient(app) as client:
        yield client


@pytest_asyncio.fixture
async def async_client(
    gptbots_client: GPTBotsClient, thinking_store: ThinkingStore
) -> AsyncGenerator[AsyncClient, None]:
    """Async client with the upstream client and thinking store overridden."""
    app.dependency_overrides[get_gptbots_client] = lambda: gptbots_client
    app.dependency_overrides[get_thinking_store] = lambda: thinking_store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.pop(get_gptbots_client, None)
    app.dependency_overrides.pop(get_thinking_store, None)

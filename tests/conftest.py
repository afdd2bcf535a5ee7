"""Shared fixtures: a fake model client and a Canvas client on a mock transport."""
import asyncio
import json
import typing as t
from types import SimpleNamespace

import httpx
import openai
import pytest

from canvas_lms.client import CanvasClient


class FakeCompletions:
    """Stands in for ``client.chat.completions``; records every call."""

    def __init__(self, reply: t.Union[str, Exception]) -> None:
        self.reply = reply
        self.calls: list[dict[str, t.Any]] = []
        self.loops: list[asyncio.AbstractEventLoop] = []

    async def create(self, **kwargs: t.Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        self.loops.append(asyncio.get_running_loop())
        if isinstance(self.reply, Exception):
            raise self.reply
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeLLM:
    """Minimal object with the ``chat.completions.create`` shape of AsyncOpenAI."""

    def __init__(self, reply: t.Union[str, Exception]) -> None:
        self.completions = FakeCompletions(reply)
        self.chat = SimpleNamespace(completions=self.completions)
        self.closed = False

    async def close(self) -> None:
        self.closed = True


def connection_error() -> openai.APIConnectionError:
    return openai.APIConnectionError(request=httpx.Request("POST", "https://llm.test/v1/chat/completions"))


@pytest.fixture
def fake_llm() -> t.Callable[[t.Union[str, Exception]], FakeLLM]:
    return FakeLLM


def canvas_handler(routes: dict[str, t.Any]) -> t.Callable[[httpx.Request], httpx.Response]:
    """
    Build a MockTransport handler from ``{path: payload}``.

    A payload that is an int is returned as that HTTP status code.
    """
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path.split("/api/v1/", 1)[-1]
        if path not in routes:
            return httpx.Response(404, json={"errors": [{"message": "not found"}]})
        payload = routes[path]
        if isinstance(payload, int):
            return httpx.Response(payload, json={"errors": [{"message": "error"}]})
        return httpx.Response(200, content=json.dumps(payload), headers={"Content-Type": "application/json"})
    return handler


@pytest.fixture
def make_canvas() -> t.Callable[[dict[str, t.Any]], CanvasClient]:
    def _make(routes: dict[str, t.Any]) -> CanvasClient:
        return CanvasClient(
            base_url="https://canvas.test/api/v1",
            access_token="test-token",
            transport=httpx.MockTransport(canvas_handler(routes)),
        )
    return _make

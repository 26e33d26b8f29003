"""Shared fixtures: clients wired to an in-memory httpx transport."""

from __future__ import annotations

import builtins
import json
from typing import Any, Callable

import httpx
import pytest

from stretchfs_client import AsyncStretchFSClient, StretchFSClient

DOMAIN = "fs.example.test"
PORT = 8161


class RecordingHandler:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def json(self, path: str, body: Any, status_code: int = 200) -> None:
        self.routes[path] = lambda request: httpx.Response(status_code, json=body)

    def respond(self, path: str, response: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[path] = response

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(200, json={"ok": True})
        return route(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last.content)


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def client(handler: RecordingHandler):
    with StretchFSClient(
        token="T",
        domain=DOMAIN,
        port=PORT,
        transport=httpx.MockTransport(handler),
    ) as client:
        yield client


@pytest.fixture
def login_client(handler: RecordingHandler):
    with StretchFSClient(
        username="alice",
        password="secret",
        domain=DOMAIN,
        port=PORT,
        transport=httpx.MockTransport(handler),
    ) as client:
        yield client


@pytest.fixture
def make_async_client(handler: RecordingHandler):
    def _make(**kwargs) -> AsyncStretchFSClient:
        options = {"token": "T", "domain": DOMAIN, "port": PORT}
        options.update(kwargs)
        return AsyncStretchFSClient(transport=httpx.MockTransport(handler), **options)

    return _make


@pytest.fixture
def record_open(monkeypatch):
    """Wrap ``open`` inside a client module and collect the handles it returns."""

    def _install(module) -> list:
        handles = []

        def _open(*args, **kwargs):
            handle = builtins.open(*args, **kwargs)
            handles.append(handle)
            return handle

        monkeypatch.setattr(module, "open", _open, raising=False)
        return handles

    return _install

"""Shared fixtures for the storage adapter tests."""

from __future__ import annotations

import json
from collections import deque
from typing import Any, Callable, Deque, Iterator, List, Optional

import httpx
import pytest

from supabase_fs.adapters.storage import SupabaseAdapter

TEST_ENDPOINT = "https://example.com"
TEST_BUCKET = "test-bucket"
TEST_KEY = "test-key"
API_BASE = f"{TEST_ENDPOINT}/storage/v1"


class FakeStorageApi:
    """Records every request and replies with queued (or default) responses."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self._queue: Deque[httpx.Response] = deque()
        self._default = httpx.Response(200)

    def push(self, status_code: int = 200, *, json: Any = None, content: Optional[bytes] = None) -> "FakeStorageApi":
        self._queue.append(_response(status_code, json, content))
        return self

    def respond_with(self, status_code: int = 200, *, json: Any = None, content: Optional[bytes] = None) -> None:
        self._default = _response(status_code, json, content)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        template = self._queue.popleft() if self._queue else self._default
        return httpx.Response(template.status_code, headers=template.headers, content=template.content)

    def sent(self, method: str, path: Optional[str] = None) -> List[httpx.Request]:
        matches = [request for request in self.requests if request.method == method]
        if path is not None:
            matches = [request for request in matches if str(request.url) == f"{API_BASE}{path}"]
        return matches


def _response(status_code: int, payload: Any, content: Optional[bytes]) -> httpx.Response:
    if payload is not None:
        return httpx.Response(status_code, json=payload)
    return httpx.Response(status_code, content=content or b"")


def payload_of(request: httpx.Request) -> Any:
    return json.loads(request.content)


@pytest.fixture
def api() -> FakeStorageApi:
    return FakeStorageApi()


@pytest.fixture
def make_adapter(api: FakeStorageApi) -> Iterator[Callable[..., SupabaseAdapter]]:
    clients: List[httpx.Client] = []

    def _make(**overrides: Any) -> SupabaseAdapter:
        settings = {
            "endpoint": TEST_ENDPOINT,
            "bucket": TEST_BUCKET,
            "key": TEST_KEY,
            "public": True,
        }
        settings.update(overrides)
        client = httpx.Client(transport=httpx.MockTransport(api))
        clients.append(client)
        return SupabaseAdapter(settings, client=client)

    yield _make

    for client in clients:
        client.close()


@pytest.fixture
def adapter(make_adapter: Callable[..., SupabaseAdapter]) -> SupabaseAdapter:
    return make_adapter()

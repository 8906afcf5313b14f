"""Shared fixtures: a SegmentationClient wired to an in-memory httpx transport."""

from __future__ import annotations

import json
from typing import Any, Callable, Iterator

import httpx
import pytest

from segmentation_sdk import SegmentationClient
from segmentation_sdk.config.settings import get_settings

Handler = Callable[[httpx.Request], httpx.Response]


def json_response(payload: Any, status_code: int = 200, headers: dict[str, str] | None = None) -> httpx.Response:
    return httpx.Response(status_code, json=payload, headers=headers)


def json_body(request: httpx.Request) -> dict[str, Any]:
    return json.loads(request.content)


class RecordingHandler:
    """Serves canned responses and keeps every request it saw, in order."""

    def __init__(self, handler: Handler) -> None:
        self._handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    @property
    def urls(self) -> list[str]:
        return [str(request.url) for request in self.requests]


@pytest.fixture
def make_client() -> Callable[..., tuple[SegmentationClient, RecordingHandler]]:
    def factory(handler: Handler, **options: Any) -> tuple[SegmentationClient, RecordingHandler]:
        recorder = RecordingHandler(handler)
        if "jwt" not in options:
            options.setdefault("api_key", "test_key")
        client = SegmentationClient(
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(recorder)),
            **options,
        )
        return client, recorder

    return factory


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()

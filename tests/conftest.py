"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Union

import pytest
import requests

from omnivore_mdx.config import ConvertConfig
from omnivore_mdx.converter import ArticleConverter
from omnivore_mdx.events import EventEmitter
from omnivore_mdx.models import ProcessLog

PROXY_URL = (
    "https://proxy-prod.omnivore-image-cache.app/0x0,s123/"
    "https%3A%2F%2Forig.example%2Fimg.png"
)


def make_response(url: str, status: int = 200, content: bytes = b"") -> requests.Response:
    """Build a real Response so raise_for_status behaves as in production."""
    resp = requests.Response()
    resp.status_code = status
    resp.url = url
    resp._content = content
    resp._content_consumed = True
    return resp


class FakeSession:
    """Stand-in for requests.Session keyed by URL.

    Values are bytes (200 response), an int (error status) or an exception
    instance to raise.
    """

    def __init__(self, routes: Dict[str, Union[bytes, int, Exception]]) -> None:
        self.routes = routes
        self.calls: List[tuple] = []

    def get(self, url: str, timeout: Optional[float] = None, stream: bool = False) -> requests.Response:
        self.calls.append((url, timeout))
        outcome = self.routes.get(url, requests.ConnectionError(f"no route to {url}"))
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, int):
            return make_response(url, outcome)
        return make_response(url, 200, outcome)


class FakeAcquirer:
    """Acquirer double returning canned bytes, ``None`` or raising per URL."""

    def __init__(self, routes: Optional[Dict[str, Union[bytes, None, Exception]]] = None, default: Optional[bytes] = None) -> None:
        self.routes = routes or {}
        self.default = default
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def acquire(self, url: str) -> Optional[bytes]:
        self.calls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            outcome = self.routes.get(url, self.default)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        finally:
            self.in_flight -= 1


@pytest.fixture
def logs() -> List[ProcessLog]:
    return []


@pytest.fixture
def events(logs: List[ProcessLog]) -> EventEmitter:
    return EventEmitter.collect(logs)


@pytest.fixture
def config() -> ConvertConfig:
    return ConvertConfig()


@pytest.fixture
def make_converter(config: ConvertConfig, events: EventEmitter):
    """Return a factory building an ArticleConverter around a FakeAcquirer."""

    def _make(acquirer: FakeAcquirer) -> ArticleConverter:
        return ArticleConverter(acquirer, config, events)

    return _make

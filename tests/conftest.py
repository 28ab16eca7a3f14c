"""Pytest configuration and fixtures for recorder-proxy tests.

This file provides:
- make_client: httpx.AsyncClient backed by an in-process MockTransport
- RecordingEventLog: EventLog that keeps every exception it receives
- Fixtures: shared-client cleanup, proxy construction helpers
"""

from __future__ import annotations

import asyncio
from typing import Callable

import httpx
import pytest

from recorder_proxy.proxy import RestProxyBase, close_shared_clients

BASE_URL = "http://recorder.test/ArgusTV/"

Handler = Callable[[httpx.Request], httpx.Response]


def make_client(handler: Handler) -> httpx.AsyncClient:
    """Create an AsyncClient whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)


def json_response(status_code: int = 200, body: str = "") -> Callable[[httpx.Request], httpx.Response]:
    """Handler that always answers with ``body`` as application/json."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status_code,
            content=body.encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )

    return handler


class RecordingEventLog:
    """EventLog that records entries instead of writing them anywhere."""

    def __init__(self) -> None:
        self.entries: list[BaseException] = []

    def write_entry(self, exc: BaseException) -> None:
        self.entries.append(exc)


def run(coro):
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


@pytest.fixture(autouse=True)
def _close_shared_clients():
    yield
    asyncio.run(close_shared_clients())


@pytest.fixture
def event_log() -> RecordingEventLog:
    return RecordingEventLog()


@pytest.fixture
def make_proxy(event_log: RecordingEventLog) -> Callable[[Handler], RestProxyBase]:
    """Build a RestProxyBase whose transport is answered by a handler."""

    def factory(handler: Handler) -> RestProxyBase:
        return RestProxyBase(BASE_URL, client=make_client(handler), event_log=event_log)

    return factory

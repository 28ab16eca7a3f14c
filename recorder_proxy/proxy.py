"""Execution Pipeline - Sends requests to a recorder service and classifies the outcome.

RestProxyBase is the base class for recorder client proxies. Subclasses build
requests with new_request() and run them through one of three modes:

    execute()         fire-and-discard
    execute_typed()   decode the body into a caller-specified type
    execute_result()  decode a {"result", "errorMessage"} envelope, return result

All three share execute_request(), which classifies every failure exactly
once into the errors in recorder_proxy.errors.
"""

from __future__ import annotations

import asyncio
import logging
import ssl
from threading import Lock
from typing import Any, TypeVar

import httpx

from recorder_proxy.errors import (
    HttpStatusError,
    ProxyError,
    ServerError,
    TargetUnreachableError,
    UnexpectedError,
)
from recorder_proxy.json_codec import DEFAULT_STRATEGY, JsonSerializerStrategy, deserialize
from recorder_proxy.logging_setup import EventLog, LoggingEventLog
from recorder_proxy.models import RestError, SimpleResult, TargetConfig
from recorder_proxy.request_builder import ProxyRequest, normalize_base_url


logger = logging.getLogger(__name__)

T = TypeVar("T")

# One client per (base address, event loop); pooled connections belong to the
# loop that opened them
_shared_clients: dict[tuple[str, int], tuple[asyncio.AbstractEventLoop, TargetConfig, httpx.AsyncClient]] = {}
_shared_clients_lock = Lock()


def _build_client_kwargs(target: TargetConfig) -> dict[str, Any]:
    """Build kwargs for httpx.AsyncClient including proxy and TLS configuration."""
    headers = {
        "Accept": "application/json",
        "Accept-Encoding": "gzip",
    }
    headers.update(target.headers)

    kwargs: dict[str, Any] = {
        "base_url": normalize_base_url(target.base_url),
        "headers": headers,
        "timeout": target.timeout,
        "follow_redirects": True,
    }

    # Explicit proxy wins; otherwise httpx picks up HTTP(S)_PROXY from the environment
    if target.proxy:
        kwargs["proxy"] = target.proxy

    if target.ca_bundle:
        kwargs["verify"] = ssl.create_default_context(cafile=target.ca_bundle)
    elif not target.verify_ssl:
        kwargs["verify"] = False

    return kwargs


def _drop_dead_clients() -> None:
    """Forget clients whose event loop has closed. Caller holds the lock."""
    for key, (loop, _, _) in list(_shared_clients.items()):
        if loop.is_closed():
            del _shared_clients[key]


def get_shared_client(target: TargetConfig) -> httpx.AsyncClient:
    """Return the shared client for ``target``'s base address on the running loop.

    Raises:
        RuntimeError: If called outside a running event loop.
    """
    loop = asyncio.get_running_loop()
    base_url = normalize_base_url(target.base_url)
    key = (base_url, id(loop))
    with _shared_clients_lock:
        _drop_dead_clients()
        entry = _shared_clients.get(key)
        if entry is not None and not entry[2].is_closed:
            _, existing_target, client = entry
            if existing_target != target:
                logger.warning(
                    "Shared HTTP client for %s already exists with different settings; "
                    "ignoring headers/proxy/TLS of the new target configuration",
                    base_url,
                )
            return client
        client = httpx.AsyncClient(**_build_client_kwargs(target))
        _shared_clients[key] = (loop, target, client)
        logger.debug("Created shared HTTP client for %s", base_url)
        return client


async def close_shared_clients() -> None:
    """Close the shared clients of the running loop and forget those of closed loops.

    Clients owned by other live loops are left alone.
    """
    loop = asyncio.get_running_loop()
    with _shared_clients_lock:
        _drop_dead_clients()
        clients = [
            client for (owner, _, client) in _shared_clients.values() if owner is loop
        ]
        for key in [key for key, (owner, _, _) in _shared_clients.items() if owner is loop]:
            del _shared_clients[key]
    for client in clients:
        await client.aclose()


def _innermost_message(exc: BaseException) -> str:
    """Message of the deepest exception in the explicit ``raise ... from`` chain."""
    inner = exc
    seen = {id(inner)}
    while inner.__cause__ is not None and id(inner.__cause__) not in seen:
        inner = inner.__cause__
        seen.add(id(inner))
    return str(inner) or str(exc)


def _ensure_active(request: ProxyRequest) -> None:
    if request.released:
        raise RuntimeError(f"{request!r} has already been executed and released")


class RestProxyBase:
    """Base class for proxies talking to a recorder REST service.

    Usage:
        class ScheduleProxy(RestProxyBase):
            async def get_schedule(self, schedule_id: str) -> Schedule:
                request = self.new_request("GET", "Scheduler/ScheduleById/{0}", schedule_id)
                return await self.execute_typed(request, Schedule)

        proxy = ScheduleProxy("http://recorder.local:49943/ArgusTV")
        schedule = await proxy.get_schedule("6b3a...")
    """

    def __init__(
        self,
        target: TargetConfig | str,
        *,
        client: httpx.AsyncClient | None = None,
        event_log: EventLog | None = None,
        strategy: JsonSerializerStrategy | None = None,
    ) -> None:
        """Initialize the proxy.

        Args:
            target: Target configuration, or just its base URL.
            client: HTTP client to use instead of the shared per-target client.
                    Its base_url must point at the recorder service.
            event_log: Sink receiving the raw exception of every logged failure.
            strategy: JSON type strategy used for bodies and results.
        """
        if isinstance(target, str):
            target = TargetConfig(base_url=target)
        self._target = target
        self._client = client
        self._event_log = event_log or LoggingEventLog()
        self._strategy = strategy or DEFAULT_STRATEGY

    @property
    def base_url(self) -> str:
        return normalize_base_url(self._target.base_url)

    @property
    def strategy(self) -> JsonSerializerStrategy:
        return self._strategy

    def _get_client(self) -> httpx.AsyncClient:
        """The injected client, or the shared one for this target on the running loop."""
        if self._client is not None:
            return self._client
        return get_shared_client(self._target)

    def new_request(self, method: str, url: str, *args: Any) -> ProxyRequest:
        """Build a request for ``url`` relative to the base address."""
        return ProxyRequest(method, url, *args)

    def is_connection_error(self, exc: BaseException) -> bool:
        """True if ``exc`` means the recorder could not be reached.

        httpx reports connect failures, name resolution failures and TLS/trust
        failures as ConnectError; proxy rejections as ProxyError.
        """
        return isinstance(exc, (httpx.ConnectError, httpx.ProxyError))

    async def execute(self, request: ProxyRequest, log_error: bool = True) -> None:
        """Send ``request`` and discard the response body."""
        _ensure_active(request)
        try:
            response = await self.execute_request(request, log_error)
            await response.aclose()
        finally:
            request.release()

    async def execute_typed(
        self,
        request: ProxyRequest,
        result_type: type[T] | Any,
        log_error: bool = True,
    ) -> T:
        """Send ``request`` and decode the response body into ``result_type``.

        Raises:
            ApplicationError: Passed through unchanged from execute_request().
            TargetUnreachableError: Passed through unchanged from execute_request().
            UnexpectedError: Decoding or any other unclassified failure.
        """
        _ensure_active(request)
        try:
            response = await self.execute_request(request, log_error)
            try:
                return await self.deserialize_response_content(response, result_type)
            finally:
                await response.aclose()
        except ProxyError:
            raise
        except Exception as exc:
            if log_error:
                self._log_error(request, exc)
            raise UnexpectedError() from exc
        finally:
            request.release()

    async def execute_result(
        self,
        request: ProxyRequest,
        result_type: type[T] | Any,
        log_error: bool = True,
    ) -> T | None:
        """Send ``request``, decode a SimpleResult envelope and return its ``result``."""
        envelope_type = SimpleResult[self._strategy.resolve(result_type)]
        envelope = await self.execute_typed(request, envelope_type, log_error)
        if envelope is None:
            return None
        return envelope.result

    async def execute_request(
        self, request: ProxyRequest, log_error: bool = True
    ) -> httpx.Response:
        """Send ``request`` and classify the outcome.

        Returns:
            The response, for any status below 400. The caller closes it.

        Raises:
            ServerError: HTTP 500; message is the body's ``detail``.
            HttpStatusError: Any other status >= 400; message is the reason phrase.
            TargetUnreachableError: Connection could not be established.
            UnexpectedError: Anything else (logged when ``log_error``).
        """
        _ensure_active(request)
        try:
            if request.method != "GET" and request.content is None:
                # Some servers reject bodyless non-GET requests
                request.content = b""

            client = self._get_client()
            http_request = client.build_request(
                request.method,
                request.url,
                content=request.content,
                headers=request.headers or None,
            )
            response = await client.send(http_request)

            if response.status_code == httpx.codes.INTERNAL_SERVER_ERROR:
                error = RestError.model_validate_json(response.text)
                raise ServerError(error.detail)
            if response.status_code >= httpx.codes.BAD_REQUEST:
                raise HttpStatusError(response.reason_phrase, response.status_code)
            return response

        except ProxyError:
            raise
        except Exception as exc:
            if self.is_connection_error(exc):
                raise TargetUnreachableError(_innermost_message(exc)) from exc
            if log_error:
                self._log_error(request, exc)
            raise UnexpectedError() from exc

    async def deserialize_response_content(
        self, response: httpx.Response, result_type: type[T] | Any
    ) -> T:
        """Decode the response body; an empty body gives the type's zero value."""
        await response.aread()
        return deserialize(response.text, result_type, self._strategy)

    def _log_error(self, request: ProxyRequest, exc: BaseException) -> None:
        logger.error("%s %s failed: %s: %s", request.method, request.url, type(exc).__name__, exc)
        self._event_log.write_entry(exc)

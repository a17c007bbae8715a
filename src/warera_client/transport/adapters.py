"""httpx transport wrappers around the base network call.

Each wrapper is an ``httpx.AsyncBaseTransport`` delegating to an inner
transport, so they compose freely and any transport (including
``httpx.MockTransport``) can sit at the bottom of the chain:

    RateLimitedTransport(
        BatchObserverTransport(
            PostOverflowTransport(httpx.AsyncHTTPTransport()),
            observer=log_batch_event,
        ),
        queue,
    )
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from urllib.parse import unquote

import httpx

from warera_client.logging import get_logger

from .queue import DispatchQueue

logger = get_logger(__name__)

INPUT_PARAM = "input"
BATCH_MARKER = "batch"
READ_METHODS = frozenset({"GET", "HEAD"})
DEFAULT_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class BatchEvent:
    """A wire request that carries more than one operation."""

    method: str
    url: str
    path: str
    operations: list[str] = field(default_factory=list)
    size: int = 0
    body: str | None = None


BatchObserver = Callable[[BatchEvent], None]


def log_batch_event(event: BatchEvent) -> None:
    """Default batch observer: one INFO line per batched request."""
    logger.bind(batch_size=event.size, method=event.method).info(
        "Batched {} operations in one {} request: {}",
        event.size,
        event.method,
        ", ".join(event.operations),
    )


def describe_batch(request: httpx.Request) -> BatchEvent | None:
    """Build a BatchEvent if the request path denotes a multi-operation batch.

    The last path segment is either the explicit ``batch`` marker or the
    comma-joined operation names. Behind the marker, names and size come
    from the encoded inputs (query ``input`` or body).
    """
    segment = request.url.path.rstrip("/").rpartition("/")[2]
    names = [name for name in unquote(segment).split(",") if name]
    if segment != BATCH_MARKER and len(names) < 2:
        return None

    try:
        body = request.content.decode("utf-8") if request.content else None
    except (httpx.RequestNotRead, UnicodeDecodeError):
        body = None

    size = len(names)
    if segment == BATCH_MARKER:
        names, size = _marker_batch_contents(request.url.params.get(INPUT_PARAM) or body)

    return BatchEvent(
        method=request.method,
        url=str(request.url),
        path=request.url.path,
        operations=names,
        size=size,
        body=body,
    )


def _marker_batch_contents(raw: str | None) -> tuple[list[str], int]:
    """Operation names and count of a marker batch payload.

    The payload is either ``{"0": ..., "1": ...}`` or a list of calls;
    list entries carrying a ``path`` contribute their name.
    """
    if not raw:
        return [], 0
    try:
        payload = json.loads(raw)
    except ValueError:
        return [], 0

    if isinstance(payload, dict):
        return [], len(payload)
    if isinstance(payload, list):
        names = [
            entry["path"]
            for entry in payload
            if isinstance(entry, dict) and isinstance(entry.get("path"), str)
        ]
        return names, len(payload)
    return [], 0


def rewrite_long_get(request: httpx.Request, max_url_length: int) -> httpx.Request:
    """Move an oversize ``?input=`` payload from the URL into a POST body.

    Returns the original request unchanged when the method is not
    read-style, the ``input`` parameter is absent, the URL fits the budget
    or the URL cannot be manipulated.
    """
    if request.method not in READ_METHODS:
        return request

    try:
        url = request.url
        if INPUT_PARAM not in url.params:
            return request
        if len(str(url)) <= max_url_length:
            return request

        payload = url.params[INPUT_PARAM]
        headers = httpx.Headers(request.headers)
        headers.pop("content-length", None)
        if "content-type" not in headers:
            headers["content-type"] = DEFAULT_CONTENT_TYPE

        rewritten = httpx.Request(
            "POST",
            url.copy_remove_param(INPUT_PARAM),
            headers=headers,
            content=payload.encode("utf-8"),
            extensions=request.extensions,
        )
    except (httpx.InvalidURL, ValueError, TypeError) as e:
        logger.debug("Leaving request unchanged, URL rewrite failed: {}", e)
        return request

    logger.debug("Rewrote {}-char GET as POST: {}", len(str(url)), rewritten.url)
    return rewritten


class PostOverflowTransport(httpx.AsyncBaseTransport):
    """Reissue GET requests whose URL exceeds a length budget as POSTs."""

    def __init__(self, inner: httpx.AsyncBaseTransport, max_url_length: int = 2000) -> None:
        self._inner = inner
        self._max_url_length = max_url_length

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self._inner.handle_async_request(
            rewrite_long_get(request, self._max_url_length)
        )

    async def aclose(self) -> None:
        await self._inner.aclose()


class BatchObserverTransport(httpx.AsyncBaseTransport):
    """Report batched wire requests to an observer, then forward unchanged."""

    def __init__(self, inner: httpx.AsyncBaseTransport, observer: BatchObserver) -> None:
        self._inner = inner
        self._observer = observer

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        event = describe_batch(request)
        if event is not None:
            try:
                self._observer(event)
            except Exception as e:
                # Observation must never affect the request
                logger.debug("Batch observer failed: {}", e)
        return await self._inner.handle_async_request(request)

    async def aclose(self) -> None:
        await self._inner.aclose()


class RateLimitedTransport(httpx.AsyncBaseTransport):
    """Send every request through a shared DispatchQueue."""

    def __init__(
        self,
        inner: httpx.AsyncBaseTransport,
        queue: DispatchQueue,
        *,
        close_queue: bool = True,
    ) -> None:
        self._inner = inner
        self._queue = queue
        self._close_queue = close_queue

    @property
    def queue(self) -> DispatchQueue:
        """The dispatch queue gating this transport."""
        return self._queue

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self._queue.submit(lambda: self._inner.handle_async_request(request))

    async def aclose(self) -> None:
        if self._close_queue:
            await self._queue.aclose()
        await self._inner.aclose()

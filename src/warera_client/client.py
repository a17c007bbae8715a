"""Async Warera API client.

This module wires the request pipeline together:

    WareraClient.invoke()
      -> BatchDispatcher (coalesces concurrent calls)
      -> RateLimitedTransport (shared DispatchQueue)
      -> BatchObserverTransport (optional batch events)
      -> PostOverflowTransport (oversize GET -> POST)
      -> base httpx transport

and exposes single calls and auto-paginated calls behind one entry point.
"""

from __future__ import annotations

from collections.abc import Awaitable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import httpx

from warera_client.config import Settings, get_settings
from warera_client.cursor import coerce_instant
from warera_client.logging import get_logger
from warera_client.operations import (
    OperationInfo,
    get_operation,
    split_pagination_options,
    validate_operation_name,
    wants_auto_pagination,
)
from warera_client.pagination import PaginationPolicy, Paginator
from warera_client.transport import (
    BatchDispatcher,
    BatchObserver,
    BatchObserverTransport,
    DispatchQueue,
    PostOverflowTransport,
    RateLimitedTransport,
    RateLimitPolicy,
    log_batch_event,
)

logger = get_logger(__name__)


class WareraClient:
    """Async client for the Warera tRPC API.

    Usage:
        async with WareraClient(api_key="...") as client:
            country = await client.invoke("country.getCountryById", {"countryId": cid})

            async for page in client.invoke(
                "article.getArticlesPaginated",
                {"type": "last", "limit": 5, "autoPaginate": True, "maxPages": 3},
            ):
                print(len(page.items), page.cursor)

    Concurrent calls are batched into shared wire requests and every wire
    request passes through one rate-limited dispatch queue per client.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        url: str | None = None,
        api_key: str | None = None,
        rate_limit: int | None = None,
        headers: Mapping[str, str] | None = None,
        log_batches: bool | BatchObserver | None = None,
        max_pages: int | None = None,
        cursor_end: datetime | date | str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        queue: DispatchQueue | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Base settings (defaults to WARERA_* environment settings)
            url: Endpoint base URL override
            api_key: API key override, sent as x-api-key
            rate_limit: Calls per minute override
            headers: Extra headers merged over the configured ones
            log_batches: True for the default batch logger, or an observer callable
            max_pages: Default page limit for auto-pagination
            cursor_end: Default cutoff instant for auto-pagination
            transport: Base httpx transport (defaults to AsyncHTTPTransport)
            queue: Dispatch queue to share (defaults to one built from rate_limit)
        """
        base = settings or get_settings()
        self._settings = self._apply_overrides(
            base,
            url=url,
            api_key=api_key,
            rate_limit=rate_limit,
            headers=headers,
            max_pages=max_pages,
            cursor_end=coerce_instant(cursor_end),
        )
        settings = self._settings

        observer: BatchObserver | None
        if callable(log_batches):
            observer = log_batches
        elif log_batches if log_batches is not None else settings.log_batches:
            observer = log_batch_event
        else:
            observer = None

        self._queue = queue or DispatchQueue(RateLimitPolicy(settings.effective_rate_limit))

        chain: httpx.AsyncBaseTransport = PostOverflowTransport(
            transport or httpx.AsyncHTTPTransport(),
            max_url_length=settings.batch.max_url_length,
        )
        if observer is not None:
            chain = BatchObserverTransport(chain, observer)
        chain = RateLimitedTransport(chain, self._queue, close_queue=queue is None)

        self._http = httpx.AsyncClient(
            transport=chain,
            headers=settings.request_headers,
            timeout=settings.timeout,
        )
        self._dispatcher = BatchDispatcher(
            self._http,
            settings.api_url,
            max_batch_size=settings.batch.max_batch_size,
            batch_interval=settings.batch.batch_interval_ms / 1000,
            max_url_length=settings.batch.max_url_length,
            log_operations=settings.log_operations,
        )

        logger.debug(
            "Client configured (url={}, rate_limit={}/min, api_key={})",
            settings.api_url,
            settings.effective_rate_limit,
            "set" if settings.api_key else "unset",
        )

    @staticmethod
    def _apply_overrides(
        settings: Settings,
        *,
        url: str | None,
        api_key: str | None,
        rate_limit: int | None,
        headers: Mapping[str, str] | None,
        max_pages: int | None,
        cursor_end: datetime | None,
    ) -> Settings:
        update: dict[str, Any] = {}
        if url is not None:
            update["api_url"] = url
        if api_key is not None:
            update["api_key"] = api_key
        if rate_limit is not None:
            update["rate_limit"] = rate_limit
        if headers is not None:
            update["headers"] = {**settings.headers, **headers}
        if max_pages is not None or cursor_end is not None:
            pagination_update: dict[str, Any] = {}
            if max_pages is not None:
                pagination_update["max_pages"] = max_pages
            if cursor_end is not None:
                pagination_update["cursor_end"] = cursor_end
            update["pagination"] = settings.pagination.model_copy(update=pagination_update)
        if not update:
            return settings
        return settings.model_copy(update=update)

    @property
    def settings(self) -> Settings:
        """Effective settings of this client."""
        return self._settings

    @property
    def queue(self) -> DispatchQueue:
        """The dispatch queue shared by every call of this client."""
        return self._queue

    @property
    def dispatcher(self) -> BatchDispatcher:
        return self._dispatcher

    # -------------------------------------------------------------------------
    # Calls
    # -------------------------------------------------------------------------
    def invoke(
        self,
        operation: str,
        input: Mapping[str, Any] | None = None,
    ) -> Awaitable[Any] | Paginator[Any]:
        """Call an operation, or auto-paginate it when ``autoPaginate`` is True.

        Args:
            operation: Dotted operation name, e.g. ``battle.getBattles``
            input: Operation input; ``autoPaginate``, ``maxPages`` and
                ``cursorEnd`` select and tune auto-pagination

        Returns:
            An awaitable resolving to the operation's result, or a
            Paginator yielding pages when auto-pagination is requested

        Raises:
            InvalidOperationError: Malformed operation name
        """
        validate_operation_name(operation)
        if wants_auto_pagination(input):
            return self._start_pagination(operation, input or {})
        return self._dispatcher.query(operation, input if input is not None else {})

    async def call(self, operation: str, input: Mapping[str, Any] | None = None) -> Any:
        """Call an operation once and return its result (never paginates)."""
        validate_operation_name(operation)
        return await self._dispatcher.query(operation, input if input is not None else {})

    def paginate(
        self,
        operation: str,
        input: Mapping[str, Any] | None = None,
        *,
        max_pages: int | None = None,
        cursor_end: datetime | date | str | None = None,
    ) -> Paginator[Any]:
        """Auto-paginate an operation (explicit form of ``autoPaginate: True``)."""
        validate_operation_name(operation)
        request_input: dict[str, Any] = dict(input or {})
        if max_pages is not None:
            request_input["maxPages"] = max_pages
        if cursor_end is not None:
            request_input["cursorEnd"] = cursor_end
        return self._start_pagination(operation, request_input)

    def procedure(self, name: str) -> Procedure:
        """Get a callable handle bound to one operation."""
        return Procedure(self, validate_operation_name(name))

    def _start_pagination(self, operation: str, input: Mapping[str, Any]) -> Paginator[Any]:
        info = get_operation(operation)
        if info is not None and not info.paginated:
            # Registry flags are informative; the server decides what a page is
            logger.warning("{} is not listed as paginated, auto-paginating anyway", operation)

        cleaned, options = split_pagination_options(input)
        defaults = self._settings.pagination
        policy = PaginationPolicy(
            max_pages=options.max_pages if options.max_pages is not None else defaults.max_pages,
            cursor_end=options.cursor_end or coerce_instant(defaults.cursor_end),
        )
        logger.debug(
            "Auto-paginating {} (max_pages={}, cursor_end={})",
            operation,
            policy.max_pages,
            policy.cursor_end,
        )
        return Paginator(self._dispatcher.query, operation, cleaned, policy)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    async def aclose(self) -> None:
        """Send outstanding calls, then close the HTTP client and queue."""
        await self._dispatcher.aclose()
        await self._http.aclose()

    async def __aenter__(self) -> WareraClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.aclose()


@dataclass(frozen=True)
class Procedure:
    """A client bound to one operation name.

    Usage:
        get_battles = client.procedure("battle.getBattles")
        first = await get_battles({"limit": 5})
        async for page in get_battles.paginate({"limit": 5}, max_pages=3):
            ...
    """

    client: WareraClient
    name: str

    @property
    def info(self) -> OperationInfo | None:
        """Registry entry for this operation, if known."""
        return get_operation(self.name)

    def __call__(self, input: Mapping[str, Any] | None = None) -> Awaitable[Any] | Paginator[Any]:
        return self.client.invoke(self.name, input)

    def paginate(
        self,
        input: Mapping[str, Any] | None = None,
        *,
        max_pages: int | None = None,
        cursor_end: datetime | date | str | None = None,
    ) -> Paginator[Any]:
        return self.client.paginate(
            self.name, input, max_pages=max_pages, cursor_end=cursor_end
        )

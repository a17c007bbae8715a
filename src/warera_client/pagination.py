"""Cursor pagination engine.

Expands a cursor-paginated operation into a lazy, pull-driven sequence
of pages. Each ``__anext__`` issues at most one call; nothing runs ahead
of the consumer, so breaking out of ``async for`` is enough to cancel.

Termination (evaluated after the page is yielded, so the page that
triggers it is still delivered):
- ``max_pages`` pages have been produced
- the response has no next cursor
- the response has no items
- the next cursor has no ``|`` separator
- the next cursor's date is strictly earlier than ``cursor_end``
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, TypeVar

from warera_client.cursor import is_older_than, split_cursor
from warera_client.exceptions import PaginationError
from warera_client.logging import LogContext, bind_operation

T = TypeVar("T")

Fetch = Callable[[str, dict[str, Any]], Awaitable[Any]]

CURSOR_FIELD = "cursor"


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of an auto-paginated operation.

    ``cursor`` fetches the following page; empty when there is none.
    """

    items: list[T]
    cursor: str


@dataclass(frozen=True)
class PaginationPolicy:
    """Limits for one pagination session."""

    max_pages: int | None = None
    cursor_end: datetime | None = None

    def __post_init__(self) -> None:
        if self.max_pages is not None and self.max_pages < 0:
            raise ValueError(f"max_pages must be >= 0, got {self.max_pages}")


@dataclass
class PaginationSession:
    """Mutable state of one pagination run."""

    operation: str
    base_input: Mapping[str, Any]
    policy: PaginationPolicy = field(default_factory=PaginationPolicy)
    cursor: str | None = None
    page_count: int = 0
    finished: bool = False

    @classmethod
    def start(
        cls,
        operation: str,
        base_input: Mapping[str, Any],
        policy: PaginationPolicy,
    ) -> PaginationSession:
        """Create a session resuming from the cursor already on the input."""
        return cls(
            operation=operation,
            base_input=dict(base_input),
            policy=policy,
            cursor=base_input.get(CURSOR_FIELD) or None,
        )

    @property
    def exhausted(self) -> bool:
        """True once no further page may be requested."""
        if self.finished:
            return True
        return self.policy.max_pages is not None and self.page_count >= self.policy.max_pages

    def next_input(self) -> dict[str, Any]:
        """Input for the next call: the base input with the current cursor."""
        request_input = dict(self.base_input)
        if self.cursor is None:
            request_input.pop(CURSOR_FIELD, None)
        else:
            request_input[CURSOR_FIELD] = self.cursor
        return request_input

    def stop_reason(self, items: list[Any], next_cursor: str) -> str | None:
        """Why pagination ends after a page, or None to continue."""
        if not next_cursor:
            return "no next cursor"
        if not items:
            return "empty page"
        if split_cursor(next_cursor) is None:
            return "malformed cursor"
        if self.policy.cursor_end is not None and is_older_than(
            next_cursor, self.policy.cursor_end
        ):
            return "cursor older than cutoff"
        return None


class Paginator(Generic[T]):
    """Async iterator over the pages of one operation.

    Usage:
        async for page in Paginator(dispatcher.query, "battle.getBattles", {"limit": 5}):
            print(len(page.items), page.cursor)
    """

    def __init__(
        self,
        fetch: Fetch,
        operation: str,
        base_input: Mapping[str, Any] | None = None,
        policy: PaginationPolicy | None = None,
    ) -> None:
        """Initialize the paginator.

        Args:
            fetch: Single-call path, ``await fetch(operation, input)``
            operation: Dotted operation name
            base_input: Operation input (may carry a starting ``cursor``)
            policy: Page limit and cutoff instant
        """
        self._fetch = fetch
        self._session = PaginationSession.start(
            operation, base_input or {}, policy or PaginationPolicy()
        )
        self._busy = False
        self._logger = bind_operation(operation)

    @property
    def session(self) -> PaginationSession:
        return self._session

    def __aiter__(self) -> Paginator[T]:
        return self

    async def __anext__(self) -> Page[T]:
        session = self._session
        if session.exhausted:
            raise StopAsyncIteration
        if self._busy:
            raise RuntimeError("anext(): a page request is already in progress")

        page_number = session.page_count + 1
        self._busy = True
        with LogContext(operation=session.operation, page=page_number):
            try:
                self._logger.debug("Fetching page (cursor={})", session.cursor or "<start>")
                response = await self._fetch(session.operation, session.next_input())
                items, next_cursor = self._unpack(response)
            except BaseException:
                session.finished = True
                raise
            finally:
                self._busy = False

            session.page_count = page_number
            reason = session.stop_reason(items, next_cursor)
            if reason is None:
                session.cursor = next_cursor
            else:
                session.finished = True
                self._logger.debug("Pagination stopped after {} page(s): {}", page_number, reason)

        return Page(items=items, cursor=next_cursor)

    def _unpack(self, response: Any) -> tuple[list[T], str]:
        if not isinstance(response, Mapping):
            raise PaginationError(
                f"{self._session.operation} returned {type(response).__name__}, "
                "expected a page with 'items' and 'nextCursor'"
            )
        items = response.get("items")
        if items is None:
            items = []
        elif not isinstance(items, list):
            raise PaginationError(f"{self._session.operation} returned non-list 'items'")
        return list(items), response.get("nextCursor") or ""

    async def aclose(self) -> None:
        """Stop the sequence; no further calls are issued."""
        self._session.finished = True

    async def collect(self) -> list[T]:
        """Concatenate the items of every remaining page."""
        items: list[T] = []
        async for page in self:
            items.extend(page.items)
        return items

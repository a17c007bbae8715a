"""Batch dispatcher for tRPC-style HTTP batching.

Concurrent ``query()`` calls issued within a short window are folded
into a single wire request:

    GET {url}/article.getById,battle.getBattles?batch=1&input={"0":{...},"1":{...}}

The JSON array response is matched back to the callers by index.
Groups are split so each URL stays within the configured length budget
and no group exceeds ``max_batch_size``.
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urlencode

import httpx
from pydantic import ValidationError
from pydantic_core import to_jsonable_python

from warera_client.exceptions import (
    BatchResponseError,
    ProcedureAuthenticationError,
    ProcedureNotFoundError,
    ProcedureRateLimitError,
    RemoteProcedureError,
)
from warera_client.logging import get_logger
from warera_client.schemas import Envelope, EnvelopeList, ErrorShape

logger = get_logger(__name__)

_ERROR_CLASSES: dict[str, type[RemoteProcedureError]] = {
    "UNAUTHORIZED": ProcedureAuthenticationError,
    "FORBIDDEN": ProcedureAuthenticationError,
    "NOT_FOUND": ProcedureNotFoundError,
    "TOO_MANY_REQUESTS": ProcedureRateLimitError,
}


@dataclass
class PendingCall:
    """A call waiting for the next flush."""

    path: str
    input: Any
    future: asyncio.Future[Any]


def encode_inputs(calls: list[PendingCall]) -> str:
    """Serialize call inputs as the ``{"0": ..., "1": ...}`` batch object."""
    inputs = {str(i): call.input for i, call in enumerate(calls) if call.input is not None}
    return json.dumps(to_jsonable_python(inputs), separators=(",", ":"))


def build_batch_url(base_url: str, calls: list[PendingCall]) -> str:
    """Build the GET URL for a group of calls."""
    names = ",".join(call.path for call in calls)
    query = urlencode({"batch": "1", "input": encode_inputs(calls)}, quote_via=quote)
    return f"{base_url.rstrip('/')}/{names}?{query}"


def error_from_envelope(
    path: str,
    error: ErrorShape,
    status_code: int | None = None,
) -> RemoteProcedureError:
    """Convert an error envelope into the matching exception."""
    code = error.data.code
    error_class = _ERROR_CLASSES.get(code or "", RemoteProcedureError)
    return error_class(
        error.message or f"Remote procedure failed ({code or status_code})",
        path=path,
        code=code,
        http_status=error.data.http_status or status_code,
        data=error.data.model_dump(by_alias=True, exclude_none=True),
    )


class BatchDispatcher:
    """Coalesce concurrent calls into batched wire requests.

    Usage:
        async with httpx.AsyncClient(transport=transport) as http:
            dispatcher = BatchDispatcher(http, "https://api2.warera.io/trpc")
            a, b = await asyncio.gather(
                dispatcher.query("country.getCountryById", {"countryId": "x"}),
                dispatcher.query("government.getByCountryId", {"countryId": "x"}),
            )
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        base_url: str,
        *,
        max_batch_size: int | None = None,
        batch_interval: float = 0.0,
        max_url_length: int = 2000,
        log_operations: bool = True,
    ) -> None:
        """Initialize the batch dispatcher.

        Args:
            http: HTTP client used for wire requests (owns the transport chain)
            base_url: Endpoint base URL
            max_batch_size: Max operations per request (None = unbounded)
            batch_interval: Seconds to collect calls before flushing
            max_url_length: URL length budget used to split groups
            log_operations: Log each operation round trip at DEBUG
        """
        self._http = http
        self._base_url = base_url
        self._max_batch_size = max_batch_size
        self._batch_interval = batch_interval
        self._max_url_length = max_url_length
        self._log_operations = log_operations

        self._pending: list[PendingCall] = []
        self._flush_handle: asyncio.TimerHandle | None = None
        self._in_flight: set[asyncio.Task[None]] = set()

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def pending_count(self) -> int:
        """Calls collected but not yet sent."""
        return len(self._pending)

    # -------------------------------------------------------------------------
    # Calls
    # -------------------------------------------------------------------------
    async def query(self, path: str, input: Any = None) -> Any:
        """Run one operation through the next batch and return its data.

        Raises:
            RemoteProcedureError: The server returned an error envelope
            BatchResponseError: The response could not be matched to calls
            httpx.HTTPError: Transport-level failure
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        self._pending.append(PendingCall(path=path, input=input, future=future))
        if self._flush_handle is None:
            self._flush_handle = loop.call_later(self._batch_interval, self._flush)

        if not self._log_operations:
            return await future

        started = time.perf_counter()
        logger.debug(">> query {} {}", path, input)
        try:
            result = await future
        except Exception as e:
            logger.debug(
                "<< query {} failed after {:.0f}ms: {}",
                path,
                (time.perf_counter() - started) * 1000,
                e,
            )
            raise
        logger.debug("<< query {} ok in {:.0f}ms", path, (time.perf_counter() - started) * 1000)
        return result

    # -------------------------------------------------------------------------
    # Flushing
    # -------------------------------------------------------------------------
    def _flush(self) -> None:
        self._flush_handle = None
        pending, self._pending = self._pending, []
        for group in self.group_calls(pending):
            task = asyncio.get_running_loop().create_task(self._send(group))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)

    def group_calls(self, calls: list[PendingCall]) -> list[list[PendingCall]]:
        """Split calls, in arrival order, into groups that fit the limits."""
        groups: list[list[PendingCall]] = []
        current: list[PendingCall] = []
        for call in calls:
            candidate = [*current, call]
            too_many = self._max_batch_size is not None and len(candidate) > self._max_batch_size
            too_long = len(build_batch_url(self._base_url, candidate)) > self._max_url_length
            if current and (too_many or too_long):
                groups.append(current)
                current = [call]
            else:
                current = candidate
        if current:
            groups.append(current)
        return groups

    async def _send(self, group: list[PendingCall]) -> None:
        url = build_batch_url(self._base_url, group)
        logger.debug("Sending {} operation(s) in one request", len(group))
        try:
            response = await self._http.get(url)
            envelopes = self._decode(response, len(group))
        except Exception as e:
            # Transport and decoding failures reject every caller in the group
            for call in group:
                if not call.future.done():
                    call.future.set_exception(e)
            return

        for call, envelope in zip(group, envelopes, strict=True):
            if call.future.done():
                continue
            if envelope.error is not None:
                call.future.set_exception(
                    error_from_envelope(call.path, envelope.error, response.status_code)
                )
            else:
                call.future.set_result(envelope.result.data if envelope.result else None)

    def _decode(self, response: httpx.Response, expected: int) -> list[Envelope]:
        """Decode a batch response into exactly ``expected`` envelopes.

        Raises:
            httpx.HTTPStatusError: Non-2xx response without decodable envelopes
            BatchResponseError: 2xx response that does not match the batch
        """
        try:
            payload = response.json()
            if isinstance(payload, dict):
                # A request-level error is reported once for the whole batch
                payload = [payload] * expected
            envelopes = EnvelopeList.validate_python(payload)
        except (ValueError, ValidationError) as e:
            response.raise_for_status()
            raise BatchResponseError(
                f"Malformed batch response: {e}", status_code=response.status_code
            ) from e

        if len(envelopes) != expected:
            response.raise_for_status()
            raise BatchResponseError(
                f"Expected {expected} results, got {len(envelopes)}",
                status_code=response.status_code,
            )
        return envelopes

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    async def aclose(self) -> None:
        """Flush collected calls and wait for every in-flight request."""
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush()
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

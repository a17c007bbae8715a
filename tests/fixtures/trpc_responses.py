"""tRPC wire response fixtures and a fake batching server.

The fake server speaks the HTTP batch protocol used by the client:
comma-joined operation names in the last path segment and a
``{"0": ..., "1": ...}`` input object in the ``input`` query parameter
(or the body, for POST).
"""

import json
from collections.abc import Callable
from typing import Any

import httpx

# -----------------------------------------------------------------------------
# Cursors
# -----------------------------------------------------------------------------
CURSOR_FEB_11 = "2026-02-11T23:32:39Z|698bbff3f4d930a30ffbe671"
CURSOR_FEB_20 = "2026-02-20T00:00:00Z|abc"
CURSOR_FEB_24 = "2026-02-24T12:00:00Z|def"
CURSOR_FEB_26 = "2026-02-26T08:15:00Z|ghi"
CURSOR_JS_DATE = (
    "Wed Feb 11 2026 23:32:39 GMT+0000 (Coordinated Universal Time)|698bbff3f4d930a30ffbe671"
)


# -----------------------------------------------------------------------------
# Envelope builders
# -----------------------------------------------------------------------------
def result_envelope(data: Any) -> dict[str, Any]:
    """Successful call envelope."""
    return {"result": {"data": data}}


def error_envelope(code: str, message: str, http_status: int, path: str = "") -> dict[str, Any]:
    """Failed call envelope in tRPC's default error shape."""
    return {
        "error": {
            "message": message,
            "code": -32600,
            "data": {"code": code, "httpStatus": http_status, "path": path},
        }
    }


def page_response(items: list[Any], next_cursor: str | None) -> dict[str, Any]:
    """A ``{items, nextCursor}`` list endpoint response."""
    response: dict[str, Any] = {"items": items}
    if next_cursor is not None:
        response["nextCursor"] = next_cursor
    return response


class ProcedureFault(Exception):
    """Raised by fake handlers to produce an error envelope."""

    def __init__(self, code: str, message: str, http_status: int = 400) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status


Handler = Callable[[Any], Any]


class FakeTrpcServer:
    """Callable for httpx.MockTransport that answers batched tRPC requests.

    Usage:
        server = FakeTrpcServer()
        server.on("country.getCountryById", lambda inp: {"_id": inp["countryId"]})
        transport = httpx.MockTransport(server)
    """

    def __init__(self) -> None:
        self.handlers: dict[str, Handler] = {}
        self.requests: list[httpx.Request] = []
        self.calls: list[tuple[str, Any]] = []

    def on(self, operation: str, handler: Handler) -> None:
        self.handlers[operation] = handler

    def on_pages(self, operation: str, pages: dict[str | None, dict[str, Any]]) -> None:
        """Serve pages keyed by the incoming cursor (None for the first page)."""
        self.on(operation, lambda inp: pages[(inp or {}).get("cursor")])

    @property
    def batches(self) -> list[list[str]]:
        """Operation names of every wire request, in arrival order."""
        return [operation_names(request) for request in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            raw = request.content.decode("utf-8")
        else:
            raw = request.url.params.get("input", "")
        inputs = json.loads(raw) if raw else {}

        envelopes = []
        for index, name in enumerate(operation_names(request)):
            value = inputs.get(str(index))
            self.calls.append((name, value))
            handler = self.handlers.get(name)
            if handler is None:
                envelopes.append(
                    error_envelope("NOT_FOUND", f'No procedure found on path "{name}"', 404, name)
                )
                continue
            try:
                envelopes.append(result_envelope(handler(value)))
            except ProcedureFault as fault:
                envelopes.append(error_envelope(fault.code, fault.message, fault.http_status, name))

        status = 200 if all("result" in e for e in envelopes) else 207
        return httpx.Response(status, json=envelopes)


def operation_names(request: httpx.Request) -> list[str]:
    """Operation names encoded in a request's last path segment."""
    return request.url.path.rstrip("/").rpartition("/")[2].split(",")

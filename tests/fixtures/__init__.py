"""Test fixtures for the Warera client."""

from .trpc_responses import (
    CURSOR_FEB_11,
    CURSOR_FEB_20,
    CURSOR_FEB_24,
    CURSOR_FEB_26,
    CURSOR_JS_DATE,
    FakeTrpcServer,
    ProcedureFault,
    error_envelope,
    operation_names,
    page_response,
    result_envelope,
)

__all__ = [
    # Cursors
    "CURSOR_FEB_11",
    "CURSOR_FEB_20",
    "CURSOR_FEB_24",
    "CURSOR_FEB_26",
    "CURSOR_JS_DATE",
    # Wire envelopes
    "error_envelope",
    "page_response",
    "result_envelope",
    # Fake server
    "FakeTrpcServer",
    "ProcedureFault",
    "operation_names",
]

"""Async client for the Warera tRPC API.

This package provides:
- WareraClient: Rate-limited, batching API client
- Auto-pagination: Paginator, Page, PaginationPolicy
- Cursor helpers: parse_cursor_date, split_cursor
- Exceptions rooted at WareraClientError
"""

__version__ = "0.3.0"

from .client import Procedure, WareraClient
from .config import Settings, get_settings
from .cursor import Cursor, parse_cursor_date, split_cursor
from .exceptions import (
    BatchResponseError,
    InvalidOperationError,
    PaginationError,
    ProcedureAuthenticationError,
    ProcedureNotFoundError,
    ProcedureRateLimitError,
    RemoteProcedureError,
    WareraClientError,
)
from .operations import OPERATIONS, OperationInfo
from .pagination import Page, PaginationPolicy, Paginator
from .transport import BatchEvent, DispatchQueue, RateLimitPolicy

__all__ = [
    "__version__",
    # Client
    "Procedure",
    "WareraClient",
    # Config
    "Settings",
    "get_settings",
    # Cursor
    "Cursor",
    "parse_cursor_date",
    "split_cursor",
    # Exceptions
    "BatchResponseError",
    "InvalidOperationError",
    "PaginationError",
    "ProcedureAuthenticationError",
    "ProcedureNotFoundError",
    "ProcedureRateLimitError",
    "RemoteProcedureError",
    "WareraClientError",
    # Operations
    "OPERATIONS",
    "OperationInfo",
    # Pagination
    "Page",
    "PaginationPolicy",
    "Paginator",
    # Transport
    "BatchEvent",
    "DispatchQueue",
    "RateLimitPolicy",
]

"""Warera client exceptions."""

from typing import Any


class WareraClientError(Exception):
    """Base exception for Warera client errors."""

    pass


class InvalidOperationError(WareraClientError, ValueError):
    """Raised when an operation name is not a dotted identifier path."""

    pass


class PaginationError(WareraClientError):
    """Raised when a paginated operation returns something other than a page."""

    pass


class BatchResponseError(WareraClientError):
    """Raised when a wire response cannot be matched back to its batched calls."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteProcedureError(WareraClientError):
    """Error envelope returned by the server for a single operation."""

    def __init__(
        self,
        message: str,
        *,
        path: str,
        code: str | None = None,
        http_status: int | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.code = code
        self.http_status = http_status
        self.data = data or {}

    def __str__(self) -> str:
        label = self.code or "ERROR"
        return f"{self.path}: {label}: {self.message}"


class ProcedureAuthenticationError(RemoteProcedureError):
    """Raised when the server rejects the credentials (UNAUTHORIZED/FORBIDDEN)."""

    pass


class ProcedureNotFoundError(RemoteProcedureError):
    """Raised when the operation or the requested entity does not exist."""

    pass


class ProcedureRateLimitError(RemoteProcedureError):
    """Raised when the server reports TOO_MANY_REQUESTS."""

    pass

"""Configuration settings for the Warera API client."""

from datetime import datetime
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_URL = "https://api2.warera.io/trpc"

# Account-tier policy values, not hard limits
DEFAULT_RATE_LIMIT = 100
DEFAULT_RATE_LIMIT_WITH_KEY = 200


class BatchConfig(BaseModel):
    """Configuration for coalescing concurrent calls into wire requests."""

    max_batch_size: int | None = Field(
        default=None,
        ge=1,
        description="Maximum operations per HTTP batch (None = unbounded, 1 = no batching)",
    )
    batch_interval_ms: int = Field(
        default=0,
        ge=0,
        description="Time window to collect operations before sending",
    )
    max_url_length: int = Field(
        default=2000,
        ge=0,
        description="URL length budget for GET batches before splitting / POST rewrite",
    )


class PaginationConfig(BaseModel):
    """Default policy for auto-paginated operations.

    Per-call ``maxPages`` / ``cursorEnd`` fields take precedence.
    """

    max_pages: int | None = Field(
        default=None,
        ge=1,
        description="Maximum pages per auto-paginated call (None = unbounded)",
    )
    cursor_end: datetime | None = Field(
        default=None,
        description="Stop once the next cursor is older than this instant",
    )


class LoggingConfig(BaseModel):
    """Configuration for logging behavior.

    Controls file logging, rotation, and output format.
    """

    log_file: str | None = Field(
        default=None,
        description="Optional path for file logging (enables rotation)",
    )
    rotation: str = Field(
        default="10 MB",
        description="When to rotate log file (e.g., '10 MB', '1 day')",
    )
    retention: str = Field(
        default="7 days",
        description="How long to keep rotated logs",
    )
    serialize: bool = Field(
        default=False,
        description="If True, output JSON format to file",
    )


class Settings(BaseSettings):
    """Client settings loaded from ``WARERA_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="WARERA_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --------------------------------------------------------------------------
    # Endpoint
    # --------------------------------------------------------------------------
    api_url: str = Field(
        default=DEFAULT_API_URL,
        description="Base URL of the tRPC endpoint",
    )
    api_key: str | None = Field(
        default=None,
        description="API key sent as the x-api-key header",
    )
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Additional headers merged into every request",
    )
    timeout: float | None = Field(
        default=30.0,
        gt=0,
        description="HTTP client timeout in seconds (None = no timeout)",
    )

    # --------------------------------------------------------------------------
    # Rate Limiting & Batching
    # --------------------------------------------------------------------------
    rate_limit: int | None = Field(
        default=None,
        ge=1,
        description="Outbound calls per minute (default depends on api_key)",
    )
    batch: BatchConfig = Field(
        default_factory=BatchConfig,
        description="Batch coalescing configuration",
    )

    # --------------------------------------------------------------------------
    # Pagination
    # --------------------------------------------------------------------------
    pagination: PaginationConfig = Field(
        default_factory=PaginationConfig,
        description="Default auto-pagination policy",
    )

    # --------------------------------------------------------------------------
    # Observability
    # --------------------------------------------------------------------------
    log_batches: bool = Field(
        default=False,
        description="Log every wire request that carries more than one operation",
    )
    log_operations: bool = Field(
        default=True,
        description="Log each operation round trip at DEBUG level",
    )
    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration (file output, rotation)",
    )

    @property
    def effective_rate_limit(self) -> int:
        """Calls per minute actually applied by the dispatch queue."""
        if self.rate_limit is not None:
            return self.rate_limit
        if self.api_key is not None:
            return DEFAULT_RATE_LIMIT_WITH_KEY
        return DEFAULT_RATE_LIMIT

    @property
    def request_headers(self) -> dict[str, str]:
        """Headers sent with every request (API key header wins)."""
        headers = dict(self.headers)
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

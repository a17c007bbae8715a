"""Centralized logging configuration using loguru.

Provides:
- Log level from Settings, overridden by --verbose/--quiet
- Console lines tagged with the operation and page being fetched
- Standard library interception (httpx, httpcore, asyncio, the dispatch queue)
- Per-operation context binding (``bind_operation``, ``LogContext``)
- Optional rotating file log
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from loguru import logger

if TYPE_CHECKING:
    from loguru import Logger, Record

    from warera_client.config import Settings

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

CONSOLE_FORMAT = (
    "<dim>{time:HH:mm:ss.SSS}</dim> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[logger_name]}</cyan>{extra[call_tag]} - "
    "<level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
    "{level: <8} | "
    "{extra[logger_name]}:{function}:{line} | "
    "{extra[call_tag]} | "
    "{message}"
)

# Floor levels for chatty libraries outside verbose mode
_LIBRARY_LEVELS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
}
_VERBOSE_LIBRARIES = frozenset({"httpx"})

_configured = False


class InterceptHandler(logging.Handler):
    """Handler to intercept standard library logging and route to loguru.

    httpx and the dispatch queue log through the standard library.
    """

    def emit(self, record: logging.LogRecord) -> None:
        """Route stdlib log record to loguru."""
        from types import FrameType

        # Get corresponding loguru level
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = str(record.levelno)

        # Find caller from where originated the logged message
        frame: FrameType | None = logging.currentframe()
        depth = 2
        while frame is not None:
            if frame.f_code.co_filename != logging.__file__:
                break
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _tag_record(record: Record) -> None:
    """Fill the extras both formats rely on."""
    extra = record["extra"]
    extra["logger_name"] = extra.get("name", record["name"])

    # " [battle.getBattles p3]" while a page is being fetched
    operation = extra.get("operation")
    page = extra.get("page")
    if operation and page is not None:
        extra["call_tag"] = f" [{operation} p{page}]"
    elif operation:
        extra["call_tag"] = f" [{operation}]"
    else:
        extra["call_tag"] = ""


def setup_logging(
    level: LogLevel = "INFO",
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
    serialize: bool = False,
) -> Logger:
    """Configure logging for the client and CLI.

    Args:
        level: Base log level from config
        verbose: If True, use DEBUG level (overrides level)
        quiet: If True, use WARNING level (overrides level)
        log_file: Optional path for file logging with rotation
        rotation: When to rotate log file (e.g., "10 MB", "1 day")
        retention: How long to keep rotated logs
        serialize: If True, write JSON lines to the file log

    Returns:
        Configured logger instance

    Note:
        verbose takes precedence over quiet if both are True.
    """
    global _configured

    # Determine effective level
    effective_level: LogLevel
    if verbose:
        effective_level = "DEBUG"
    elif quiet:
        effective_level = "WARNING"
    else:
        effective_level = level

    # Clear any existing handlers
    logger.remove()
    logger.configure(patcher=_tag_record)

    # Console handler
    logger.add(
        sys.stderr,
        level=effective_level,
        format=CONSOLE_FORMAT,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

    # File handler keeps everything from DEBUG up
    if log_file:
        logger.add(
            log_file,
            level="DEBUG",
            format=FILE_FORMAT,
            rotation=rotation,
            retention=retention,
            compression="gz",
            serialize=serialize,
        )

    # Intercept standard library logging
    _intercept_stdlib_logging(effective_level)

    _configured = True
    return logger


def configure_from_settings(
    settings: Settings, *, verbose: bool = False, quiet: bool = False
) -> Logger:
    """Run ``setup_logging`` with the level and file options from Settings."""
    log_config = settings.logging
    return setup_logging(
        settings.log_level,
        verbose=verbose,
        quiet=quiet,
        log_file=Path(log_config.log_file) if log_config.log_file else None,
        rotation=log_config.rotation,
        retention=log_config.retention,
        serialize=log_config.serialize,
    )


def _intercept_stdlib_logging(level: LogLevel) -> None:
    """Intercept standard library loggers and route to loguru."""
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    debug = level in ("TRACE", "DEBUG")
    for name, floor in _LIBRARY_LEVELS.items():
        # httpx request lines only in verbose mode
        if debug and name in _VERBOSE_LIBRARIES:
            floor = logging.DEBUG
        logging.getLogger(name).setLevel(floor)


def get_logger(name: str) -> Logger:
    """Get a logger with the given name bound as context.

    Usage:
        from warera_client.logging import get_logger
        logger = get_logger(__name__)
        logger.info("Dispatching")
    """
    return logger.bind(name=name)


def bind_operation(operation: str, **extra: Any) -> Logger:
    """Bind operation context to logger.

    Args:
        operation: Dotted operation name
        **extra: Additional context (e.g., page number)

    Returns:
        Logger with operation context bound
    """
    return logger.bind(name="warera_client", operation=operation, **extra)


class LogContext:
    """Context manager scoping extras to everything logged in the block.

    Uses ``logger.contextualize``, so records from any logger (including
    intercepted stdlib ones) in the same task pick the values up.

    Usage:
        with LogContext(operation="battle.getBattles", page=2):
            await fetch(...)  # Lines are tagged [battle.getBattles p2]
    """

    def __init__(self, **context: Any) -> None:
        self._context = context
        self._token: Any = None

    def __enter__(self) -> Logger:
        self._token = logger.contextualize(**self._context)
        self._token.__enter__()
        return logger

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        if self._token:
            self._token.__exit__(exc_type, exc_val, exc_tb)
            self._token = None


def is_configured() -> bool:
    """Check if logging has been configured."""
    return _configured


def reset_logging() -> None:
    """Reset logging state (primarily for testing)."""
    global _configured
    logger.remove()
    _configured = False

"""Common CLI option types and helpers.

It provides:
- `run_async_command`: Unified async execution with error handling for CLI commands
- Input parsing helpers shared by the call/paginate commands
- `Annotated` option aliases for every command parameter
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Coroutine
from datetime import datetime
from typing import Annotated, Any, TypeVar

import typer
from rich.console import Console

from warera_client.cursor import coerce_instant

# Shared console instance for CLI output
console = Console()

T = TypeVar("T")


def run_async_command(
    coro: Coroutine[object, object, T],
    *,
    error_prefix: str = "Error",
) -> T:
    """Execute async code from synchronous CLI command with unified error handling.

    Uses asyncio.run() for clean event loop management. Catches exceptions,
    prints user-friendly error messages, and exits with code 1.

    Args:
        coro: Async coroutine to execute
        error_prefix: Prefix for error messages (default: "Error")

    Returns:
        Result from the coroutine

    Raises:
        typer.Exit: Re-raised from deliberate exits, or raised with code 1 on error
    """
    try:
        return asyncio.run(coro)
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]{error_prefix}:[/red] {e}")
        raise typer.Exit(1) from None


def parse_input(raw: str | None) -> dict[str, Any]:
    """Parse the --input JSON object.

    Raises:
        typer.BadParameter: If the value is not a JSON object
    """
    if raw is None or not raw.strip():
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"--input is not valid JSON: {e}") from None
    if not isinstance(value, dict):
        raise typer.BadParameter("--input must be a JSON object")
    return value


def parse_cutoff(raw: str | None) -> datetime | None:
    """Parse the --cursor-end value into a UTC instant.

    Raises:
        typer.BadParameter: If the date cannot be parsed
    """
    try:
        return coerce_instant(raw)
    except ValueError:
        raise typer.BadParameter(
            f"Invalid date: {raw}. Use YYYY-MM-DD or an ISO-8601 timestamp."
        ) from None


# -----------------------------------------------------------------------------
# Argument/Option Types
# -----------------------------------------------------------------------------
# Options are declared once as Annotated aliases so defaults stay plain values.

OperationArgument = Annotated[
    str,
    typer.Argument(
        help="Dotted operation name (e.g., battle.getBattles)",
    ),
]
"""Required positional operation argument."""

InputOption = Annotated[
    str | None,
    typer.Option(
        "--input",
        "-i",
        help='Operation input as a JSON object (e.g., \'{"limit": 5}\')',
    ),
]
"""Operation input option.

Usage:
    def call(operation: OperationArgument, input_json: InputOption = None) -> None:
"""

# -----------------------------------------------------------------------------
# Pagination Options
# -----------------------------------------------------------------------------

MaxPagesOption = Annotated[
    int | None,
    typer.Option(
        "--max-pages",
        "-n",
        min=1,
        help="Stop after this many pages",
    ),
]
"""Page limit option.

Usage:
    def paginate(max_pages: MaxPagesOption = None) -> None:
"""

CursorEndOption = Annotated[
    str | None,
    typer.Option(
        "--cursor-end",
        "-e",
        help="Stop once results are older than this date (YYYY-MM-DD or ISO-8601)",
    ),
]
"""Cutoff date option, parsed with `parse_cutoff`."""

ShowItemsOption = Annotated[
    bool,
    typer.Option(
        "--items",
        help="Print the items of every page as JSON",
    ),
]

PaginatedOnlyOption = Annotated[
    bool,
    typer.Option(
        "--paginated",
        "-p",
        help="Only list operations flagged as paginated",
    ),
]

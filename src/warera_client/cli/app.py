"""Main CLI application for the Warera client."""

import json
from typing import Annotated, Any

import typer
from rich.table import Table

from warera_client import __version__
from warera_client.cli.common import (
    CursorEndOption,
    InputOption,
    MaxPagesOption,
    OperationArgument,
    PaginatedOnlyOption,
    ShowItemsOption,
    console,
    parse_cutoff,
    parse_input,
    run_async_command,
)
from warera_client.client import WareraClient
from warera_client.config import get_settings
from warera_client.logging import configure_from_settings
from warera_client.operations import OPERATIONS

app = typer.Typer(
    name="warera",
    help="Rate-limited, batching client for the Warera tRPC API.",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"warera version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable debug logging.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress non-error output (WARNING level).",
        ),
    ] = False,
) -> None:
    """Warera API client - call and paginate remote procedures."""
    configure_from_settings(get_settings(), verbose=verbose, quiet=quiet)


@app.command("call")
def call_operation(operation: OperationArgument, input_json: InputOption = None) -> None:
    """Call one operation and print its JSON result.

    Examples:
        warera call gameConfig.getDates
        warera call country.getCountryById --input '{"countryId": "..."}'
    """
    payload = parse_input(input_json)

    async def _call() -> Any:
        async with WareraClient(get_settings()) as client:
            return await client.call(operation, payload)

    result = run_async_command(_call(), error_prefix=f"{operation} failed")
    console.print_json(json.dumps(result, default=str))


@app.command("paginate")
def paginate_operation(
    operation: OperationArgument,
    input_json: InputOption = None,
    max_pages: MaxPagesOption = None,
    cursor_end: CursorEndOption = None,
    show_items: ShowItemsOption = False,
) -> None:
    """Auto-paginate an operation, printing one line per page.

    Examples:
        warera paginate battle.getBattles --max-pages 3
        warera paginate article.getArticlesPaginated -i '{"type": "last"}' -e 2026-02-15
    """
    payload = parse_input(input_json)
    cutoff = parse_cutoff(cursor_end)

    async def _paginate() -> tuple[int, int]:
        pages = 0
        total = 0
        async with WareraClient(get_settings()) as client:
            async for page in client.paginate(
                operation, payload, max_pages=max_pages, cursor_end=cutoff
            ):
                pages += 1
                total += len(page.items)
                console.print(
                    f"Page {pages}: [cyan]{len(page.items)}[/cyan] item(s), "
                    f"next cursor: [dim]{page.cursor or '-'}[/dim]"
                )
                if show_items:
                    console.print_json(json.dumps(page.items, default=str))
        return pages, total

    pages, total = run_async_command(_paginate(), error_prefix=f"{operation} failed")
    console.print(f"[green]Done:[/green] {total} item(s) in {pages} page(s)")


@app.command("operations")
def list_operations(paginated_only: PaginatedOnlyOption = False) -> None:
    """List the known operations."""
    table = Table(title="Known operations")
    table.add_column("Operation", style="cyan")
    table.add_column("Paginated")

    for info in sorted(OPERATIONS.values(), key=lambda op: op.name):
        if paginated_only and not info.paginated:
            continue
        table.add_row(info.name, "yes" if info.paginated else "")

    console.print(table)


if __name__ == "__main__":
    app()

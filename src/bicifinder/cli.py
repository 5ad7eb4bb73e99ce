"""Command-line interface for bicifinder."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

import click
import structlog
import uvicorn
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from bicifinder import __version__
from bicifinder.config import Config, MonitoringConfig, load_config
from bicifinder.errors import VocabularyUnavailableError
from bicifinder.models import Bicycle, SearchFilters, VocabularyEntry
from bicifinder.observability import configure_logging
from bicifinder.service import BicycleSearchService

console = Console()
logger = structlog.get_logger(__name__)


def _load(ctx: click.Context) -> Config:
    try:
        return load_config(ctx.obj["config_path"])
    except (ValidationError, OSError) as e:
        console.print(f"[red]Configuration could not be loaded: {e}[/red]")
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", type=click.Path(exists=True), help="Configuration file path")
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], log_level: str) -> None:
    """bicifinder - search recovered bicycles on biciregistro.es."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config) if config else None
    ctx.obj["log_level"] = log_level

    # stderr keeps --json output on stdout parseable
    configure_logging(MonitoringConfig(log_level=log_level), stream=sys.stderr)


def _bicycle_table(bicycles: List[Bicycle]) -> Table:
    table = Table(title=f"Recovered bicycles ({len(bicycles)})")
    table.add_column("ID", style="dim")
    table.add_column("Brand", style="cyan")
    table.add_column("Model")
    table.add_column("Color", style="magenta")
    table.add_column("Serial")
    table.add_column("City")
    table.add_column("Province")
    for bike in bicycles:
        table.add_row(
            bike.identifier,
            bike.brand,
            bike.model,
            bike.color,
            bike.serial_number or "",
            bike.city or "",
            bike.province or "",
        )
    return table


@cli.command()
@click.option("--brand", "--marca", help="Brand contains")
@click.option("--model", "--modelo", help="Model contains")
@click.option("--color", help="Color contains")
@click.option("--serial-number", help="Serial number contains")
@click.option("--registration-number", help="Registration number contains")
@click.option("--city", "--ciudad", help="City contains")
@click.option("--province", "--provincia", help="Province contains")
@click.option("--query", "-q", "search_term", help="Free text matched against several fields")
@click.option("--json", "as_json", is_flag=True, help="Print records as JSON")
@click.pass_context
def search(ctx: click.Context, as_json: bool, **filter_values: Any) -> None:
    """Search recovered bicycles."""
    try:
        filters = SearchFilters(**filter_values)
    except ValidationError as e:
        console.print(f"[red]Invalid filters: {e}[/red]")
        sys.exit(2)

    config = _load(ctx)

    async def run_search() -> List[Bicycle]:
        async with BicycleSearchService(config) as service:
            return await service.search(filters)

    bicycles = asyncio.run(run_search())

    if as_json:
        click.echo(json.dumps([bike.to_dict() for bike in bicycles], ensure_ascii=False, indent=2))
    elif bicycles:
        console.print(_bicycle_table(bicycles))
    else:
        console.print("[yellow]No recovered bicycles matched the filters.[/yellow]")


def _print_vocabulary(ctx: click.Context, kind: str, as_json: bool) -> None:
    config = _load(ctx)

    async def fetch() -> List[VocabularyEntry]:
        async with BicycleSearchService(config) as service:
            return await service.vocabulary.get(kind)

    try:
        entries = asyncio.run(fetch())
    except VocabularyUnavailableError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([entry.to_dict() for entry in entries], ensure_ascii=False, indent=2))
        return

    table = Table(title=f"{kind.capitalize()} ({len(entries)})")
    table.add_column("ID", style="dim")
    table.add_column("Label", style="cyan")
    for entry in entries:
        table.add_row(str(entry.id), entry.label)
    console.print(table)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print as JSON")
@click.pass_context
def brands(ctx: click.Context, as_json: bool) -> None:
    """List the brands known to the registry."""
    _print_vocabulary(ctx, "brands", as_json)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print as JSON")
@click.pass_context
def colors(ctx: click.Context, as_json: bool) -> None:
    """List the colors known to the registry."""
    _print_vocabulary(ctx, "colors", as_json)


@cli.command()
@click.option("--host", default=None, help="Host to bind to (defaults to web.host)")
@click.option("--port", default=None, type=int, help="Port to bind to (defaults to web.port)")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]) -> None:
    """Start the HTTP API."""
    from bicifinder.web.main import create_app

    config = _load(ctx)
    configure_logging(config.monitoring)
    host = host or config.web.host
    port = port or config.web.port
    console.print(f"[green]Starting bicifinder API at http://{host}:{port}[/green]")

    uvicorn.run(
        create_app(config),
        host=host,
        port=port,
        log_level=config.monitoring.log_level.lower(),
    )


@cli.command()
@click.pass_context
def validate_config(ctx: click.Context) -> None:
    """Validate the current configuration."""
    console.print("[blue]Validating configuration...[/blue]")
    config = _load(ctx)

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("upstream.origin", config.upstream.origin)
    table.add_row("acquisition.strategy_order", ", ".join(config.acquisition.strategy_order))
    table.add_row("render.enabled", str(config.render.enabled))
    table.add_row("fetcher.max_attempts", str(config.fetcher.max_attempts))
    table.add_row("pagination.max_pages", str(config.pagination.max_pages))
    table.add_row("vocabulary.ttl_seconds", str(config.vocabulary.ttl_seconds))
    table.add_row("relay.allowed_hosts", ", ".join(config.relay.allowed_hosts))
    console.print(table)
    console.print("[green]Configuration is valid![/green]")


if __name__ == "__main__":
    cli()

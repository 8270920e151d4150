"""
Command-line interface for the ParcelAI tracker.
Provides commands for tracking shipments, inspecting carriers and serving the API.
"""

import asyncio
import sys
from pathlib import Path

import click
import orjson
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from parcelai import __version__
from parcelai.config import init_config
from parcelai.logging_config import setup_logging

console = Console()

STATUS_COLORS = {
    "delivered": "green",
    "out_for_delivery": "cyan",
    "in_transit": "blue",
    "info_received": "blue",
    "pending": "yellow",
    "exception": "red",
    "failed": "red",
    "expired": "red",
    "unknown": "dim",
}


def _echo_json(data) -> None:
    click.echo(orjson.dumps(data, option=orjson.OPT_INDENT_2).decode())


@click.group()
@click.version_option(version=__version__, prog_name="ParcelAI Tracker")
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    help="Path to configuration file"
)
@click.pass_context
def cli(ctx, config):
    """ParcelAI Tracker - Package tracking across carriers"""
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
@click.argument("tracking_input", nargs=-1, required=True)
@click.option("--carrier", "-C", help="Carrier id (auto-detected if omitted)")
@click.option("--refresh", is_flag=True, help="Ignore cached results")
@click.option("--fallback", is_flag=True, help="Use the TrackingMore API only")
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON response")
@click.pass_context
def track(ctx, tracking_input, carrier, refresh, fallback, as_json):
    """Track a shipment by number (or text containing one)."""
    from parcelai.tracking.tracking_manager import TrackingManager

    config = init_config(ctx.obj.get("config"))
    setup_logging(config, console=not as_json)

    manager = TrackingManager(config)
    try:
        manager.start()
    except RuntimeError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)

    async def run():
        try:
            return await manager.track(
                " ".join(tracking_input),
                carrier=carrier,
                force_refresh=refresh,
                use_fallback=fallback,
            )
        finally:
            await manager.close()

    response = asyncio.run(run())

    if as_json:
        _echo_json(response.model_dump(by_alias=True, mode="json"))
        return

    color = STATUS_COLORS.get(response.status, "white")
    lines = [
        f"[bold]{response.tracking_number}[/bold] via {response.carrier_name}",
        f"Status: [{color}]{response.status_message or response.status}[/{color}]",
    ]
    if response.eta:
        lines.append(f"ETA: {response.eta}")
    if response.delivered_at:
        lines.append(f"Delivered: {response.delivered_at}")
    if response.carrier_tracking_url:
        lines.append(f"[dim]{response.carrier_tracking_url}[/dim]")
    if not response.success:
        lines.append(f"[red]{response.message or response.error}[/red]")

    title = f"Source: {response.source}" + (" (cached)" if response.cached else "")
    console.print(Panel.fit("\n".join(lines), title=title))

    if response.timeline:
        table = Table(title="Timeline")
        table.add_column("When", style="cyan")
        table.add_column("Status")
        table.add_column("Location", style="green")
        table.add_column("Event")

        for entry in response.timeline:
            table.add_row(entry.timestamp, entry.status, entry.location or "", entry.message)

        console.print(table)

    if not response.success:
        sys.exit(1)


@cli.command()
@click.argument("tracking_number")
def detect(tracking_number):
    """Detect the carrier from a tracking number's shape."""
    from parcelai.tracking.carriers import build_tracking_url, detect_carrier, normalize_tracking_number

    normalized = normalize_tracking_number(tracking_number)
    carrier = detect_carrier(normalized)

    if carrier is None:
        console.print(f"[yellow]No carrier matches {normalized}[/yellow]")
        sys.exit(1)

    console.print(f"[green]✓ {carrier.name}[/green] ({carrier.id})")
    console.print(build_tracking_url(carrier, normalized))


@cli.command()
def carriers():
    """List supported carriers."""
    from parcelai.tracking.carriers import CARRIERS

    table = Table(title="Carriers")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Parser")
    table.add_column("TrackingMore Code", style="dim")

    for carrier in CARRIERS:
        table.add_row(carrier.id, carrier.name, carrier.parse_strategy.value, carrier.aggregator_code or carrier.id)

    console.print(table)


@cli.command()
@click.argument("text", nargs=-1)
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON result")
def extract(text, as_json):
    """Find tracking numbers and order details in text (or stdin)."""
    from parcelai.tracking.extractor import parse_shipment_text

    content = " ".join(text) if text else click.get_text_stream("stdin").read()
    parsed = parse_shipment_text(content)

    if as_json:
        _echo_json(parsed.model_dump(by_alias=True, mode="json"))
        return

    if not parsed.tracking_numbers:
        console.print("[yellow]No tracking numbers found[/yellow]")
    else:
        table = Table(title="Tracking Numbers")
        table.add_column("Number", style="cyan")
        table.add_column("Carrier", style="green")

        for candidate in parsed.tracking_numbers:
            table.add_row(candidate.number, candidate.carrier)

        console.print(table)

    for label, value in (
        ("Merchant", parsed.merchant_name),
        ("Order", parsed.order_number),
        ("Item", parsed.item_description),
    ):
        if value:
            console.print(f"{label}: [bold]{value}[/bold]")


@cli.command()
@click.option("--host", help="Bind address (default from HOST)")
@click.option("--port", type=int, help="Port (default from PORT)")
@click.pass_context
def serve(ctx, host, port):
    """Run the HTTP API."""
    from parcelai.server import run_server

    config = init_config(ctx.obj.get("config"))
    if host:
        config.host = host
    if port:
        config.port = port

    setup_logging(config)

    console.print(Panel.fit(
        f"[bold blue]ParcelAI Tracker v{__version__}[/bold blue]\n"
        f"http://{config.host}:{config.port}\n"
        "Press Ctrl+C to stop",
        title="Starting API"
    ))

    run_server(config)


@cli.command()
@click.argument("config_path", type=click.Path())
def init(config_path):
    """Initialize configuration file."""
    config_path = Path(config_path)

    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    template = '''# ParcelAI Tracker Configuration

# TrackingMore (fallback when scraping fails)
TRACKINGMORE_API_KEY=your-trackingmore-api-key
TRACKINGMORE_API_URL=https://api.trackingmore.com/v4

# Timeouts (seconds)
SCRAPE_TIMEOUT=15
PROBE_TIMEOUT=10
AGGREGATOR_TIMEOUT=20

# Cache
CACHE_SWEEP_MINUTES=15

# HTTP API
HOST=127.0.0.1
PORT=8000

# Logging
LOG_LEVEL=INFO
LOG_FILE=
'''

    config_path.write_text(template, encoding='utf-8')
    console.print(f"[green]✓ Configuration file created: {config_path}[/green]")
    console.print("\nEdit this file with your settings, then run:")
    console.print(f"  parcelai --config {config_path} serve")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()

"""Source inspection CLI commands."""

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.table import Table

from ipo_bot.aggregation import Aggregator
from ipo_bot.fetchers import ADAPTER_CLASSES, RATE_LIMITED_SOURCES, QuotaGate
from ipo_bot.models.results import ProbeResult
from ipo_bot.storage import ActivityLog

from .common import console, load_app_config, setup_logging


app = typer.Typer(help="Source connectivity, health and quota")

HEALTH_COLOURS = {"healthy": "green", "degraded": "yellow", "down": "red"}


@app.command("list")
def list_sources() -> None:
    """List registered sources and the operations they provide."""
    table = Table(title="Sources")
    table.add_column("Name")
    table.add_column("Operations")
    table.add_column("Probe")
    table.add_column("Notes")

    for name, cls in sorted(ADAPTER_CLASSES.items()):
        operations = ", ".join(sorted(op.value for op in cls.operations))
        notes = "daily quota, API key" if name in RATE_LIMITED_SOURCES else ""
        table.add_row(name, operations, cls.probe_operation.value, notes)
    console.print(table)


@app.command("probe")
def probe(
    name: Annotated[
        Optional[str],
        typer.Argument(help="Source to probe (default: all)")
    ] = None,
    config_dir: Annotated[
        Optional[Path],
        typer.Option("--config-dir", help="Directory holding sources.yaml")
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging")
    ] = False,
) -> None:
    """Check connectivity by running each source's cheapest read."""
    setup_logging(verbose)
    config = load_app_config(config_dir)

    if name is not None and name.lower() not in ADAPTER_CLASSES:
        console.print(f"[red]Error:[/red] Unknown source: {name}")
        console.print(f"Registered sources: {', '.join(sorted(ADAPTER_CLASSES))}")
        raise typer.Exit(1)

    async def _probe() -> list[ProbeResult]:
        async with Aggregator.from_config(config) as aggregator:
            if name is not None:
                return [await aggregator.probe_source(name)]
            return await aggregator.probe_all()

    results = asyncio.run(_probe())

    table = Table(title="Connectivity")
    table.add_column("Source")
    table.add_column("Status")
    table.add_column("Latency", justify="right")
    table.add_column("Error", overflow="fold")
    for result in results:
        status = "[green]reachable[/green]" if result.success else "[red]failed[/red]"
        table.add_row(result.source, status, f"{result.latency_ms}ms", result.error or "")
    console.print(table)

    if not any(r.success for r in results):
        raise typer.Exit(1)


@app.command("health")
def health(
    hours: Annotated[
        float,
        typer.Option("--hours", help="Look-back window in hours")
    ] = 1.0,
    activity_log: Annotated[
        Optional[Path],
        typer.Option("--activity-log", help="Activity JSONL file (default: from config)")
    ] = None,
    config_dir: Annotated[
        Optional[Path],
        typer.Option("--config-dir", help="Directory holding sources.yaml")
    ] = None,
) -> None:
    """Summarize recent success rates from the activity log."""
    config = load_app_config(config_dir)
    path = activity_log or config.activity_log
    if path is None or not Path(path).exists():
        console.print(f"[yellow]No activity recorded yet ({path})[/yellow]")
        return

    log = ActivityLog(path)
    stats = {s.source: s for s in log.source_stats(hours_back=max(hours, 24))}
    report = log.health_status(sorted(ADAPTER_CLASSES), hours_back=hours)

    table = Table(title=f"Source health (last {hours:g}h)")
    table.add_column("Source")
    table.add_column("Health")
    table.add_column("Calls (24h)", justify="right")
    table.add_column("Success", justify="right")
    table.add_column("Avg time", justify="right")
    table.add_column("Last check")

    for entry in report.sources:
        source_stats = stats.get(entry.name)
        colour = HEALTH_COLOURS[entry.status]
        table.add_row(
            entry.name,
            f"[{colour}]{entry.status}[/{colour}]",
            str(source_stats.total_calls) if source_stats else "0",
            f"{source_stats.success_rate}%" if source_stats else "-",
            f"{source_stats.avg_response_time}ms" if source_stats else "-",
            entry.last_check.strftime("%Y-%m-%d %H:%M:%S") if entry.last_check else "-",
        )
    console.print(table)

    colour = HEALTH_COLOURS[report.overall_health]
    console.print(f"Overall: [bold {colour}]{report.overall_health}[/bold {colour}]")


@app.command("quota")
def quota(
    config_dir: Annotated[
        Optional[Path],
        typer.Option("--config-dir", help="Directory holding sources.yaml")
    ] = None,
) -> None:
    """Show the rate-limited source's daily budget and schedule."""
    config = load_app_config(config_dir)
    gate = QuotaGate(config.quota)
    status = gate.status()

    console.print("\n[bold]IPO alerts quota[/bold]")
    console.print(f"  Day ({config.quota.timezone}): {status.date}")
    console.print(f"  Limit: {status.limit} requests/day")
    console.print(f"  API key: {'configured' if config.ipoalerts.api_key else '[red]missing[/red]'}")
    console.print(f"  Scheduled now: {gate.scheduled_fetch_type() or 'none'}")
    console.print(f"  Market hours: {'yes' if gate.is_market_hours() else 'no'}")
    for window in config.quota.windows:
        console.print(f"    {window.fetch_type:<9} {window.start}-{window.end}")

    # The counter lives in the running process; report the last recorded usage
    if config.activity_log is not None and Path(config.activity_log).exists():
        for entry in ActivityLog(config.activity_log).by_source("ipoalerts", limit=20):
            metadata = entry.metadata or {}
            if "daily_usage" in metadata:
                console.print(
                    f"  Last recorded usage: {metadata['daily_usage']}/{status.limit} "
                    f"at {entry.created_at:%Y-%m-%d %H:%M:%S}"
                )
                break
    console.print()

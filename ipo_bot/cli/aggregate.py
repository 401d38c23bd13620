"""Aggregation pass CLI commands."""

import asyncio
import logging
import time
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from ipo_bot.aggregation import Aggregator
from ipo_bot.models.results import AggregatorResult, Operation
from ipo_bot.storage.snapshot import SnapshotStore

from .common import console, load_app_config, setup_logging


app = typer.Typer(help="Aggregation passes and snapshots")


def _print_sources(result: AggregatorResult) -> None:
    table = Table(title="Sources")
    table.add_column("Source")
    table.add_column("Status")
    table.add_column("Records", justify="right")
    table.add_column("Rejected", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Error", overflow="fold")

    for outcome in result.source_results:
        status = "[green]ok[/green]" if outcome.success else "[red]failed[/red]"
        table.add_row(
            outcome.source,
            status,
            str(outcome.count),
            str(outcome.rejected),
            f"{outcome.response_time_ms}ms",
            outcome.error or "",
        )
    console.print(table)


def _print_entities(result: AggregatorResult, limit: int) -> None:
    table = Table(title=f"{result.operation.value.capitalize()} ({len(result.data)})")
    table.add_column("Symbol")
    table.add_column("Company")
    table.add_column("Status")
    if result.operation is Operation.OFFERINGS:
        table.add_column("Price")
        table.add_column("Open")
        table.add_column("Close")
    elif result.operation is Operation.DEMAND:
        table.add_column("QIB", justify="right")
        table.add_column("NII", justify="right")
        table.add_column("Retail", justify="right")
        table.add_column("Total", justify="right")
    else:
        table.add_column("GMP", justify="right")
        table.add_column("GMP %", justify="right")
        table.add_column("Trend")
    table.add_column("Sources")
    table.add_column("Confidence")

    def fmt(value: float | None) -> str:
        return "-" if value is None else f"{value:g}"

    for entity in sorted(result.data, key=lambda e: (-e.source_count, e.symbol))[:limit]:
        if result.operation is Operation.OFFERINGS:
            extra = [entity.price_range, entity.open_date or "-", entity.close_date or "-"]
        elif result.operation is Operation.DEMAND:
            extra = [
                fmt(entity.subscription_qib),
                fmt(entity.subscription_nii),
                fmt(entity.subscription_retail),
                fmt(entity.subscription_total),
            ]
        else:
            extra = [fmt(entity.gmp), fmt(entity.gmp_percent), entity.trend or "-"]
        table.add_row(
            entity.symbol,
            entity.company_name[:40],
            entity.status,
            *extra,
            ", ".join(entity.sources),
            entity.confidence,
        )
    console.print(table)


@app.command("run")
def run_pass(
    operation: Annotated[
        Operation,
        typer.Argument(help="What to aggregate: offerings, demand or sentiment")
    ],
    source: Annotated[
        Optional[list[str]],
        typer.Option("--source", "-s", help="Source to query (repeatable; default: configured list)")
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Snapshot directory (default: from config)")
    ] = None,
    config_dir: Annotated[
        Optional[Path],
        typer.Option("--config-dir", help="Directory holding sources.yaml")
    ] = None,
    save: Annotated[
        bool,
        typer.Option("--save/--no-save", help="Write a snapshot and upsert offerings")
    ] = True,
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Rows to print")
    ] = 50,
    log_dir: Annotated[
        Optional[Path],
        typer.Option("--log-dir", help="Also write rotating log files here")
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging")
    ] = False,
) -> None:
    """Run one aggregation pass across sources.

    Example:
        ipo-bot aggregate run offerings -s nse -s groww
    """
    setup_logging(verbose, log_dir)
    logger = logging.getLogger(__name__)

    config = load_app_config(config_dir)
    store = SnapshotStore(output or config.snapshot_dir)
    requested = source or config.aggregator.default_sources.get(operation.value, [])

    console.print("\n[bold]IPO Aggregation Pass[/bold]")
    console.print(f"  Operation: {operation.value}")
    console.print(f"  Sources: {', '.join(requested)}")
    console.print(f"  Concurrency: {config.aggregator.concurrency}")
    if save:
        console.print(f"  Output: {store.base_dir}")
    console.print()

    async def _run() -> AggregatorResult:
        async with Aggregator.from_config(config) as aggregator:
            return await aggregator.run(operation, requested)

    start_time = time.time()
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(f"Fetching {operation.value}...", total=None)
            result = asyncio.run(_run())
        duration = time.time() - start_time

        _print_sources(result)
        _print_entities(result, limit)

        if save:
            manifest_path = store.write_snapshot(result, list(requested), config.get_safe_dict(), duration)
            if operation is Operation.OFFERINGS and result.data:
                store.bulk_upsert(result.data)
            console.print(f"  Snapshot: {manifest_path.parent}")

        console.print()
        colour = "green" if result.successful_sources else "yellow"
        console.print(f"[bold {colour}]✓ Pass completed[/bold {colour}]")
        console.print(f"  Records: {len(result.data)} ({result.rejected_records} rejected)")
        console.print(f"  Sources: {result.successful_sources}/{result.total_sources} succeeded")
        console.print(f"  Duration: {duration:.1f}s")

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(130)
    except OSError as e:
        console.print(f"\n[red]Error:[/red] {e}")
        logger.exception("Writing snapshot failed")
        raise typer.Exit(1)


@app.command("list")
def list_snapshots(
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Snapshot directory (default: data/snapshots)")
    ] = None,
) -> None:
    """List aggregation snapshots, newest first."""
    store = SnapshotStore(output or Path("data/snapshots"))

    snapshots = store.list_snapshots()
    if not snapshots:
        console.print(f"[yellow]No snapshots found in {store.base_dir}[/yellow]")
        return

    console.print(f"\n[bold]Available Snapshots[/bold] ({store.base_dir})\n")
    for snapshot in snapshots:
        if not (snapshot / "manifest.json").exists():
            console.print(f"  {snapshot.name} (no manifest)\n")
            continue
        manifest = store.read_manifest(snapshot)
        stats = manifest.stats
        console.print(f"  {snapshot.name}")
        console.print(f"    Operation: {manifest.operation}")
        console.print(f"    Records: {stats.unique_records} ({stats.rejected_records} rejected)")
        console.print(f"    Sources: {stats.successful_sources}/{stats.total_sources}")
        console.print(f"    Duration: {stats.duration_seconds:.1f}s")
        console.print()

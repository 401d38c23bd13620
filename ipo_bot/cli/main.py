"""CLI entry point for ipo-bot."""

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer

from ipo_bot.aggregation import Aggregator
from ipo_bot.scheduler import PollScheduler
from ipo_bot.storage.snapshot import SnapshotStore

from .aggregate import app as aggregate_app
from .common import console, load_app_config, setup_logging
from .sources import app as sources_app

app = typer.Typer(
    name="ipo-bot",
    help="Multi-source IPO listings aggregation tool.",
    no_args_is_help=True,
)

# Register subcommands
app.add_typer(aggregate_app, name="aggregate", help="Aggregation passes and snapshots")
app.add_typer(sources_app, name="sources", help="Source connectivity, health and quota")


@app.command("watch")
def watch(
    polls: Annotated[
        Optional[int],
        typer.Option("--polls", help="Stop after this many polls (default: run until interrupted)")
    ] = None,
    config_dir: Annotated[
        Optional[Path],
        typer.Option("--config-dir", help="Directory holding sources.yaml")
    ] = None,
    log_dir: Annotated[
        Optional[Path],
        typer.Option("--log-dir", help="Also write rotating log files here")
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging")
    ] = False,
) -> None:
    """Poll all sources on a schedule and persist offerings.

    Polls every 5 minutes during market hours, every 30 minutes otherwise.
    """
    setup_logging(verbose, log_dir)
    config = load_app_config(config_dir)
    store = SnapshotStore(config.snapshot_dir)

    async def _watch() -> None:
        async with Aggregator.from_config(config) as aggregator:
            scheduler = PollScheduler(aggregator, store)
            await scheduler.run_forever(max_polls=polls)

    console.print(f"[bold]Watching IPO sources[/bold] (store: {store.records_path})")
    try:
        asyncio.run(_watch())
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(130)


if __name__ == "__main__":
    app()

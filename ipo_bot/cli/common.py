"""Shared CLI helpers: console, logging setup and config loading."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler

from ipo_bot.config import load_config
from ipo_bot.models.config import AppConfig


console = Console()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(verbose: bool = False, log_dir: Path | None = None) -> None:
    """Setup logging with rich handler, plus a rotating file when asked."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [RichHandler(console=console, rich_tracebacks=True)]

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_dir / "ipo-bot.log", maxBytes=5_000_000, backupCount=5)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def load_app_config(config_dir: Path | None = None) -> AppConfig:
    """Load sources.yaml, falling back to defaults when it does not exist."""
    try:
        return AppConfig.from_yaml(load_config("sources", config_dir))
    except FileNotFoundError as e:
        console.print(f"[yellow]Warning:[/yellow] {e}")
        console.print("Using built-in defaults.\n")
        return AppConfig()
    except (yaml.YAMLError, ValueError) as e:
        console.print(f"[red]Error:[/red] Invalid configuration: {e}")
        raise typer.Exit(1)

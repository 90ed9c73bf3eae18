"""
CLI for statesync.

Commands:
- restore: Download persisted state before the gateway starts
- backup-loop: Upload changed files every 60s until SIGTERM/SIGINT
- flush: Upload changed files once, at shutdown
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape

from statesync import __version__
from statesync.config import BACKUP_INTERVAL_SECONDS, ConfigurationError, SyncConfig
from statesync.s3.client import S3Client
from statesync.sync.local_store import LocalDirectoryStore
from statesync.sync.manager import BackupLoop, SyncEngine

err_console = Console(stderr=True)

logger = logging.getLogger("statesync")


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def load_config(ctx: click.Context) -> SyncConfig:
    """Load configuration or exit with status 1."""
    try:
        return SyncConfig.load(ctx.obj.get("config_path"))
    except ConfigurationError as e:
        err_console.print(f"[red]statesync: {escape(str(e))}[/red]", soft_wrap=True)
        sys.exit(1)


def build_store(config: SyncConfig):
    """Create the object store backend selected by the configuration."""
    if config.backend == "local":
        return LocalDirectoryStore(config.local_root)
    return S3Client(config)


def _close(store) -> None:
    close = getattr(store, "close", None)
    if close is not None:
        close()


@click.group()
@click.version_option(__version__, prog_name="statesync")
@click.option("--config", "-c", type=click.Path(exists=True, dir_okay=False), help="Path to YAML config file")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """statesync - persist gateway state to S3-compatible storage."""
    ctx.ensure_object(dict)
    configure_logging(verbose)
    ctx.obj["config_path"] = Path(config) if config else None


@main.command()
@click.pass_context
def restore(ctx: click.Context) -> None:
    """Download persisted state into the state directory."""
    config = load_config(ctx)

    try:
        store = build_store(config)
        try:
            SyncEngine(config, store).restore()
        finally:
            _close(store)
    except Exception as e:
        logger.exception(f"Restore aborted: {e}")
        sys.exit(1)


@main.command("backup-loop")
@click.pass_context
def backup_loop(ctx: click.Context) -> None:
    """Upload changed files periodically until terminated."""
    config = load_config(ctx)

    try:
        store = build_store(config)
        loop = BackupLoop(SyncEngine(config, store), interval=BACKUP_INTERVAL_SECONDS)
        loop.install_signal_handlers()
    except Exception as e:
        logger.exception(f"Backup loop could not start: {e}")
        sys.exit(1)

    try:
        loop.run()
    finally:
        _close(store)


@main.command()
@click.pass_context
def flush(ctx: click.Context) -> None:
    """Upload changed files once."""
    config = load_config(ctx)

    try:
        store = build_store(config)
        try:
            SyncEngine(config, store).flush()
        finally:
            _close(store)
    except Exception as e:
        logger.exception(f"Flush aborted: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

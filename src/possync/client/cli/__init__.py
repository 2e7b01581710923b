"""Command-line interface for possync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- init-db: Create the local database schema
- configure: Store remote credentials and the auto-sync interval
- build-config: Write the build-embedded default credentials
- push: Push local data to the remote store
- pull: Pull remote data into the local database
- sync: Full sync (push then pull)
- test-connection: Check the remote endpoints
- last-sync: Show the last successful sync time
- diagnostics: Show the image sync report
- auto: Run the automatic push scheduler
"""

from __future__ import annotations

import logging
import sys

import click

from possync.client.cli.config import (
    get_config_dir,
    get_config_file,
    get_db_path,
    get_media_dir,
    load_config,
    save_config,
)
from possync.client.cli.settings import build_config, configure, init_db
from possync.client.cli.sync import (
    auto,
    diagnostics,
    last_sync,
    pull,
    push,
    sync_cmd,
    test_connection,
)

_log_handler: logging.Handler | None = None


def setup_logging(verbose: bool = False) -> None:
    """Configure logging to stderr for the possync logger hierarchy.

    Args:
        verbose: Log at DEBUG instead of WARNING.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    root_logger = logging.getLogger("possync")
    root_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    global _log_handler
    if _log_handler is not None:
        root_logger.removeHandler(_log_handler)
    _log_handler = logging.StreamHandler(sys.stderr)
    _log_handler.setFormatter(formatter)
    root_logger.addHandler(_log_handler)


@click.group()
@click.version_option(package_name="possync")
@click.option(
    "--db-path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Local database file (default: configured path or ~/.possync/pos.db).",
)
@click.option(
    "--media-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Image directory (default: configured directory; images are skipped if unset).",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs.")
@click.pass_context
def cli(ctx: click.Context, db_path: str | None, media_dir: str | None, verbose: bool) -> None:
    """possync - Offline-first point-of-sale data sync."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = get_db_path(db_path)
    ctx.obj["media_dir"] = get_media_dir(media_dir)


# Setup commands
cli.add_command(init_db)
cli.add_command(configure)
cli.add_command(build_config)

# Sync commands
cli.add_command(push)
cli.add_command(pull)
cli.add_command(sync_cmd)
cli.add_command(test_connection)
cli.add_command(last_sync)
cli.add_command(diagnostics)
cli.add_command(auto)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "setup_logging",
    # Config utilities
    "get_config_dir",
    "get_config_file",
    "get_db_path",
    "get_media_dir",
    "load_config",
    "save_config",
]

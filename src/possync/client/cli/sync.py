"""Sync commands for the possync CLI.

Commands:
- push: Push local data to the remote store
- pull: Pull remote data into the local database
- sync: Full sync (push then pull)
- test-connection: Check the remote data endpoint and storage bucket
- last-sync: Show the last successful sync time
- diagnostics: Show the image sync report as JSON
- auto: Run the automatic push scheduler in the foreground
"""

from __future__ import annotations

import json
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from typing import NoReturn

import click

from possync.client.store import LocalStore
from possync.core.config import ConfigurationError
from possync.sync.engine import SyncEngine
from possync.sync.types import (
    ProgressCallback,
    PullResult,
    PushResult,
    SyncError,
    SyncProgress,
    TableIssue,
)


@contextmanager
def open_store(ctx: click.Context) -> Iterator[LocalStore]:
    """Open the configured local database, exiting if it doesn't exist."""
    db_path = ctx.obj["db_path"]
    if not db_path.exists():
        click.echo(f"Error: Database not found: {db_path}", err=True)
        click.echo("Run 'possync init-db' or pass --db-path.", err=True)
        sys.exit(1)
    store = LocalStore(db_path)
    try:
        yield store
    finally:
        store.close()


@contextmanager
def open_engine(ctx: click.Context) -> Iterator[SyncEngine]:
    """Open the local database and build a sync engine on it."""
    with open_store(ctx) as store:
        yield SyncEngine(store, asset_dir=ctx.obj["media_dir"])


def _echo_progress(progress: SyncProgress) -> None:
    phase = f"{progress.phase.value} " if progress.phase else ""
    click.echo(f"  [{phase}{progress.index}/{progress.total}] {progress.percent:3.0f}% {progress.table}")


def _progress(enabled: bool) -> ProgressCallback | None:
    return _echo_progress if enabled else None


def _echo_warnings(warnings: list[TableIssue]) -> None:
    for issue in warnings:
        click.echo(f"Warning: {issue.table}: {issue.message}", err=True)


def _echo_push(result: PushResult) -> None:
    click.echo(f"Pushed {result.rows_pushed} rows, deleted {result.rows_deleted} remote rows.")
    if result.images is not None:
        click.echo(
            f"Images: {result.images.uploaded} uploaded, {result.images.skipped} missing locally, "
            f"{result.images_deleted} orphans removed."
        )
    _echo_warnings(result.warnings)


def _echo_pull(result: PullResult) -> None:
    click.echo(f"Pulled {result.rows_pulled} rows, downloaded {result.images_downloaded} images.")
    _echo_warnings(result.warnings)


def _fail(error: Exception) -> NoReturn:
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


@click.command()
@click.option("--no-progress", is_flag=True, help="Disable per-table progress output.")
@click.pass_context
def push(ctx: click.Context, no_progress: bool) -> None:
    """Push local data to the remote store.

    Remote rows that no longer exist locally are deleted.
    """
    with open_engine(ctx) as engine:
        try:
            result = engine.push(progress_callback=_progress(not no_progress))
        except (SyncError, ConfigurationError) as e:
            _fail(e)
    _echo_push(result)


@click.command()
@click.option("--no-progress", is_flag=True, help="Disable per-table progress output.")
@click.pass_context
def pull(ctx: click.Context, no_progress: bool) -> None:
    """Pull remote data into the local database.

    Local tables are replaced by their remote content. Locally configured
    remote credentials are never overwritten.
    """
    with open_engine(ctx) as engine:
        try:
            result = engine.pull(progress_callback=_progress(not no_progress))
        except (SyncError, ConfigurationError) as e:
            _fail(e)
    _echo_pull(result)


@click.command("sync")
@click.option("--no-progress", is_flag=True, help="Disable per-table progress output.")
@click.pass_context
def sync_cmd(ctx: click.Context, no_progress: bool) -> None:
    """Full sync: push local data, then pull remote data.

    The push is skipped when the local database has no menu items and
    no orders, so a fresh install never wipes the remote store.
    """
    with open_engine(ctx) as engine:
        try:
            result = engine.full_sync(progress_callback=_progress(not no_progress))
        except (SyncError, ConfigurationError) as e:
            _fail(e)
    if result.push is None:
        click.echo("Local database is empty, push skipped.")
    else:
        _echo_push(result.push)
    _echo_pull(result.pull)


@click.command("test-connection")
@click.pass_context
def test_connection(ctx: click.Context) -> None:
    """Check that the remote data endpoint and storage bucket are reachable."""
    with open_engine(ctx) as engine:
        try:
            engine.test_connection()
        except (SyncError, ConfigurationError) as e:
            _fail(e)
    click.echo("Connection OK.")


@click.command("last-sync")
@click.pass_context
def last_sync(ctx: click.Context) -> None:
    """Show the time of the last successful push or pull."""
    with open_engine(ctx) as engine:
        click.echo(engine.get_last_sync() or "never")


@click.command()
@click.pass_context
def diagnostics(ctx: click.Context) -> None:
    """Show image references versus local files, as JSON."""
    with open_engine(ctx) as engine:
        report = engine.get_image_sync_diagnostics()
    click.echo(json.dumps(asdict(report), indent=2))


@click.command()
@click.option(
    "--interval",
    "-i",
    default=None,
    help="Interval in minutes (1, 5, 15 or 30; default: the configured value).",
)
@click.pass_context
def auto(ctx: click.Context, interval: str | None) -> None:
    """Push automatically at the configured interval until interrupted."""
    from possync.sync.scheduler import AutoSyncScheduler, parse_interval

    if interval is not None:
        try:
            parse_interval(interval)
        except ValueError as e:
            _fail(e)

    with open_engine(ctx) as engine:
        scheduler = AutoSyncScheduler(engine)
        minutes = scheduler.start(interval)
        if minutes is None:
            scheduler.stop()
            click.echo(
                "Error: Auto-sync is disabled. Run 'possync configure --auto-interval N' "
                "or pass --interval.",
                err=True,
            )
            sys.exit(1)

        click.echo(f"Pushing every {minutes} min. Press Ctrl+C to stop.")
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            click.echo("\nStopping...")
        finally:
            scheduler.stop()

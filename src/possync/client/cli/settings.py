"""Setup commands for the possync CLI.

Commands:
- init-db: Create the local database schema
- configure: Store remote credentials and the auto-sync interval
- build-config: Write the build-embedded default credentials
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from possync.client.cli.config import load_config, save_config
from possync.client.cli.sync import open_store
from possync.client.store import LocalStore
from possync.core.config import (
    SETTING_AUTO_INTERVAL,
    SETTING_REMOTE_KEY,
    SETTING_REMOTE_URL,
    read_build_credentials,
    write_embedded_config,
)


@click.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create the synchronized tables in the local database.

    Existing tables and rows are left untouched.
    """
    db_path: Path = ctx.obj["db_path"]
    with LocalStore(db_path, create_schema=True):
        pass
    click.echo(f"Database ready: {db_path}")


@click.command()
@click.option("--url", default=None, help="Remote project URL.")
@click.option("--key", default=None, help="Remote service key.")
@click.option(
    "--auto-interval",
    default=None,
    help="Automatic push interval in minutes (1, 5, 15, 30) or 'off'.",
)
@click.option(
    "--remember-paths",
    is_flag=True,
    help="Save --db-path and --media-dir as defaults in ~/.possync/config.json.",
)
@click.pass_context
def configure(
    ctx: click.Context,
    url: str | None,
    key: str | None,
    auto_interval: str | None,
    remember_paths: bool,
) -> None:
    """Store sync settings in the local database.

    Credentials stored here take precedence over the embedded defaults
    and are never overwritten by a pull.
    """
    from possync.sync.scheduler import parse_interval

    if url is None and key is None and auto_interval is None and not remember_paths:
        click.echo("Error: Nothing to configure. Pass --url, --key or --auto-interval.", err=True)
        sys.exit(1)

    interval_value: str | None = None
    if auto_interval is not None:
        try:
            minutes = parse_interval(auto_interval)
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        interval_value = str(minutes) if minutes is not None else "off"

    if remember_paths:
        config = load_config()
        config["db_path"] = str(ctx.obj["db_path"])
        if ctx.obj["media_dir"] is not None:
            config["media_dir"] = str(ctx.obj["media_dir"])
        save_config(config)
        click.echo("Saved paths to config file.")

    if url is None and key is None and interval_value is None:
        return

    with open_store(ctx) as store:
        if url is not None:
            store.set_setting(SETTING_REMOTE_URL, url.strip(), category="sync")
            click.echo("Remote URL saved.")
        if key is not None:
            store.set_setting(SETTING_REMOTE_KEY, key.strip(), category="sync")
            click.echo("Service key saved.")
        if interval_value is not None:
            store.set_setting(SETTING_AUTO_INTERVAL, interval_value, category="sync")
            click.echo(f"Auto-sync interval: {interval_value}")


@click.command("build-config")
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path(".env"),
    show_default=True,
    help="File read when the environment lacks SUPABASE_URL / SUPABASE_SERVICE_KEY.",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output file (default: inside the installed package).",
)
def build_config(env_file: Path, output: Path | None) -> None:
    """Embed default remote credentials for distribution builds.

    Reads SUPABASE_URL and SUPABASE_SERVICE_KEY from the environment,
    falling back to the .env file.
    """
    url, key = read_build_credentials(env_file=env_file)
    written = write_embedded_config(url, key, output)
    click.echo(f"Wrote {written}")
    if not url or not key:
        click.echo(
            "Warning: credentials incomplete; sync will need 'possync configure'.",
            err=True,
        )

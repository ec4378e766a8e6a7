"""CLI entry point for reviewsync.

Commands:
  sync      one inbound + outbound pass for the files of a pull request
  comments  list the local comments of a file
  orphans   resolve comments whose anchor text is gone from the current content
  watch     keep a pull request in sync on an interval
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from reviewsync_cli.commands.comments import comments_cmd
from reviewsync_cli.commands.orphans import orphans_cmd
from reviewsync_cli.commands.sync import sync_cmd
from reviewsync_cli.commands.watch import watch_cmd

console = Console()


def _build_store(config: dict):
    """Instantiate the configured store from .reviewsync.yml settings.

    Store selection:
      store: sqlite → SQLiteStore (store_path, default .reviewsync.db)
      store: memory → MemoryStore (nothing survives the process)

    This factory lives in cli.py so neither reviewsync_core nor
    reviewsync_store know about the CLI config format.
    """
    if config.get("store") == "memory":
        from reviewsync_store.memory import MemoryStore

        return MemoryStore()

    from reviewsync_store.sqlite import SQLiteStore

    return SQLiteStore(db_path=config.get("store_path") or ".reviewsync.db")


@click.group()
@click.version_option(
    version=importlib.metadata.version("reviewsync"),
    prog_name="reviewsync",
)
@click.option(
    "--config",
    "config_path",
    default=".reviewsync.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="REVIEWSYNC_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Keep local document comments and GitHub PR review threads in sync."""
    from reviewsync_cli.auth import resolve_github_token
    from reviewsync_core.config import ConfigError, load_config

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    # Resolve token early so all subcommands share the same resolution.
    token = resolve_github_token()
    if token:
        config["github_token"] = token

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.call_on_close(store.close)


main.add_command(sync_cmd)
main.add_command(comments_cmd)
main.add_command(orphans_cmd)
main.add_command(watch_cmd)

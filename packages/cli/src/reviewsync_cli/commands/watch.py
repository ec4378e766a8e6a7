"""watch command: keep a pull request in sync on an interval."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console

from reviewsync_cli.commands.sync import build_coordinator, resolve_files

console = Console()


async def _watch(coordinator, files: list[str], interval: float) -> None:
    stop = asyncio.Event()
    try:
        await coordinator.run_periodic(files, interval, stop)
    finally:
        stop.set()
        await coordinator.aclose()


@click.command("watch")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option("--file", "file_path", default=None, help="Watch one file. Omit to watch every changed text file.")
@click.option("--branch", default=None, help="Branch the local comments belong to. Defaults to the PR head.")
@click.option("--interval", type=float, default=None, help="Seconds between passes. Overrides poll_interval.")
@click.pass_context
def watch_cmd(ctx, repo: str, pr_number: int, file_path: str | None, branch: str | None, interval: float | None):
    """Sync a pull request repeatedly until interrupted (Ctrl+C)."""
    if interval is not None and interval <= 0:
        raise click.BadParameter("must be positive", param_hint="--interval")
    interval = interval or ctx.obj["config"]["poll_interval"]

    coordinator, pull = build_coordinator(ctx, repo, pr_number, branch)
    files = resolve_files(ctx, pull, file_path)
    if not files:
        console.print("[yellow]No text files changed in this pull request.[/yellow]")
        return

    console.print(f"Watching {len(files)} file(s) on {repo}#{pr_number} every {interval:g}s. Press Ctrl+C to stop.")
    try:
        asyncio.run(_watch(coordinator, files, interval))
    except KeyboardInterrupt:
        console.print("\nStopped.")

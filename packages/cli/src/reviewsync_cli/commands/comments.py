"""comments command: list the local comments of a file."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console
from rich.table import Table

from reviewsync_store.models import STATUS_RESOLVED

console = Console()


@click.command("comments")
@click.option("--repo", required=True, help="GitHub repository (owner/name).")
@click.option("--file", "file_path", required=True, help="File path within the repository.")
@click.option("--all", "show_all", is_flag=True, help="Include resolved threads.")
@click.pass_context
def comments_cmd(ctx, repo: str, file_path: str, show_all: bool):
    """Show the comments stored locally for one file, oldest first."""
    store = ctx.obj["store"]
    records = asyncio.run(store.list_comments(repo, file_path))
    if not show_all:
        resolved_roots = {r.id for r in records if r.status == STATUS_RESOLVED and not r.is_reply}
        records = [r for r in records if r.status != STATUS_RESOLVED and r.parent_comment_id not in resolved_roots]

    if not records:
        console.print("[yellow]No comments found.[/yellow]")
        return

    table = Table(title=f"Comments — {repo}:{file_path}", show_header=True, header_style="bold cyan")
    table.add_column("ID", width=8)
    table.add_column("Author", max_width=20)
    table.add_column("Anchor", max_width=30)
    table.add_column("Comment", max_width=50)
    table.add_column("Status", width=9)
    table.add_column("Synced", justify="center", width=6)

    _status_style = {"active": "green", "resolved": "dim"}

    for r in records:
        status_style = _status_style.get(r.status, "white")
        table.add_row(
            r.id[:8],
            r.author.display_name,
            "  ↳ reply" if r.is_reply else r.anchor_text[:30],
            r.content[:50],
            f"[{status_style}]{r.status}[/{status_style}]",
            "✓" if r.remote_comment_id else "",
        )

    console.print(table)

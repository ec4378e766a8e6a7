"""orphans command: resolve comments whose anchor text is gone."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console

from reviewsync_cli.auth import require_github_token
from reviewsync_core.gh.pull_request import GitHubContentProvider, GitHubReviewAPI
from reviewsync_core.models import SyncScope
from reviewsync_core.orphans import resolve_orphans
from reviewsync_core.remote import RemoteError

console = Console()


async def _resolve(store, provider, remote, scope: SyncScope) -> list[str] | None:
    document_text = await provider.get_content(scope.repo_key, scope.file_path, scope.branch)
    if document_text is None:
        return None
    resolved = await resolve_orphans(store, scope, document_text)
    for comment_id in resolved:
        record = await store.get(comment_id)
        if record is None or not record.remote_thread_id:
            continue
        try:
            await remote.resolve_thread(record.remote_thread_id)
        except RemoteError as e:
            console.print(f"[yellow]Resolved {comment_id} locally but couldn't resolve its thread: {e}[/yellow]")
    return resolved


@click.command("orphans")
@click.option("--repo", required=True, help="GitHub repository (owner/name).")
@click.option("--file", "file_path", required=True, help="File path within the repository.")
@click.option("--branch", required=True, help="Branch whose current content is checked.")
@click.pass_context
def orphans_cmd(ctx, repo: str, file_path: str, branch: str):
    """Resolve comments whose anchored text no longer appears in the file.

    Threads already on GitHub are resolved there too, so the next sync keeps them resolved.
    """
    token = require_github_token(ctx.obj["config"])
    scope = SyncScope(repo_key=repo, file_path=file_path, branch=branch)

    try:
        resolved = asyncio.run(
            _resolve(ctx.obj["store"], GitHubContentProvider(token), GitHubReviewAPI(token), scope)
        )
    except RemoteError as e:
        raise click.ClickException(f"Could not read {file_path}@{branch}: {e}") from e

    if resolved is None:
        raise click.ClickException(f"{file_path} does not exist on {branch}.")
    if not resolved:
        console.print("[green]No orphaned comments.[/green]")
        return
    console.print(f"[yellow]Resolved {len(resolved)} orphaned comment(s):[/yellow]")
    for comment_id in resolved:
        console.print(f"  {comment_id}")

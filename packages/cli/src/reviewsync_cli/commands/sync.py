"""sync command: one inbound + outbound pass over a pull request."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console
from rich.table import Table

from reviewsync_cli.auth import require_github_token
from reviewsync_core.coordinator import SyncCoordinator
from reviewsync_core.gh.pull_request import (
    GitHubContentProvider,
    GitHubReviewAPI,
    get_changed_files,
    get_pull,
    get_repo,
)
from reviewsync_core.models import PullRequestRef
from reviewsync_core.utils.files import changed_text_files

console = Console()


def build_coordinator(ctx, repo: str, pr_number: int, branch: str | None) -> tuple[SyncCoordinator, object]:
    """Wire the configured store to GitHub for one pull request.

    Returns the coordinator and the PyGithub pull request it was built for.
    The branch defaults to the pull request's head branch.
    """
    config = ctx.obj["config"]
    token = require_github_token(config)

    pull = get_pull(get_repo(repo, token=token), pr_number)
    coordinator = SyncCoordinator(
        store=ctx.obj["store"],
        remote=GitHubReviewAPI(token),
        content=GitHubContentProvider(token),
        pr=PullRequestRef(repo=repo, number=pr_number),
        commit_sha=pull.head.sha,
        branch=branch or pull.head.ref,
        warn=lambda message: console.print(f"[yellow]{message}[/yellow]"),
    )
    return coordinator, pull


def resolve_files(ctx, pull, file_path: str | None) -> list[str]:
    if file_path:
        return [file_path]
    return changed_text_files(get_changed_files(pull), ctx.obj["config"].get("exclude"))


async def _sync_files(coordinator: SyncCoordinator, files: list[str]) -> list[tuple]:
    results = []
    for file_path in files:
        results.append((file_path, await coordinator.sync(file_path)))
    await coordinator.aclose()
    return results


@click.command("sync")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option("--file", "file_path", default=None, help="Sync one file. Omit to sync every changed text file.")
@click.option("--branch", default=None, help="Branch the local comments belong to. Defaults to the PR head.")
@click.pass_context
def sync_cmd(ctx, repo: str, pr_number: int, file_path: str | None, branch: str | None):
    """Run one sync pass between the local store and a pull request.

    Pulls new review comments, resolution and reactions from GitHub, then
    pushes local comments that have not been posted yet.
    """
    coordinator, pull = build_coordinator(ctx, repo, pr_number, branch)
    files = resolve_files(ctx, pull, file_path)
    if not files:
        console.print("[yellow]No text files changed in this pull request.[/yellow]")
        return

    results = asyncio.run(_sync_files(coordinator, files))

    table = Table(title=f"Sync — {repo}#{pr_number}", show_header=True, header_style="bold cyan")
    table.add_column("File", max_width=50)
    for column in ("Imported", "Resolved", "Pushed", "Pending", "Skipped", "Failed"):
        table.add_column(column, justify="right")

    failed = 0
    for path, outcome in results:
        if outcome is None:
            table.add_row(path, *(["[dim]busy[/dim]"] * 6))
            continue
        inbound, outbound = outcome
        failed += outbound.failed
        table.add_row(
            path,
            str(inbound.imported),
            str(inbound.resolved),
            str(outbound.pushed),
            str(outbound.pending),
            str(outbound.skipped),
            f"[red]{outbound.failed}[/red]" if outbound.failed else "0",
        )

    console.print(table)
    if failed:
        console.print(f"[yellow]{failed} comment(s) saved locally but couldn't sync; they will be retried.[/yellow]")

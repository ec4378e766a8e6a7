"""Collaborator interfaces consumed by the sync engine.

The engine only talks to these protocols. reviewsync_core.gh.pull_request
provides the GitHub implementations; tests provide in-memory fakes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from reviewsync_core.models import PullRequestRef, RemoteReviewComment, ThreadInfo


class RemoteError(Exception):
    """A remote call failed. Transient: the operation can be retried later."""


class UnprocessableError(RemoteError):
    """The remote rejected the request as unprocessable.

    For review comments this means the file or line is not part of the pull
    request's diff. That is an expected outcome, not a failure.
    """


class RemoteReviewAPI(Protocol):
    async def list_review_comments(self, pr: PullRequestRef, file_path: str) -> list[RemoteReviewComment]: ...

    async def create_review_comment(
        self,
        pr: PullRequestRef,
        body: str,
        commit_id: str,
        path: str,
        line: int,
        start_line: int | None = None,
    ) -> str: ...

    async def reply_to_comment(self, pr: PullRequestRef, parent_id: str, body: str) -> str: ...

    async def update_comment(self, pr: PullRequestRef, comment_id: str, body: str) -> None: ...

    async def delete_comment(self, pr: PullRequestRef, comment_id: str) -> None: ...

    async def fetch_thread_metadata(self, pr: PullRequestRef) -> dict[str, ThreadInfo]: ...

    async def resolve_thread(self, thread_id: str) -> None: ...

    async def unresolve_thread(self, thread_id: str) -> None: ...


class ContentProvider(Protocol):
    async def get_content(self, repo_key: str, file_path: str, branch: str | None) -> str | None:
        """Return the document text, or None when it is unavailable."""
        ...

from __future__ import annotations

import asyncio
import logging

from github import Github, GithubException

from reviewsync_core.models import RemoteReviewComment, parse_review_threads
from reviewsync_core.remote import RemoteError, UnprocessableError

logger = logging.getLogger(__name__)

_THREADS_QUERY = """
query($owner: String!, $repo: String!, $pr: Int!, $cursor: String) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $pr) {
      reviewThreads(first: 100, after: $cursor) {
        pageInfo { hasNextPage endCursor }
        nodes {
          id
          isResolved
          comments(first: 100) {
            pageInfo { hasNextPage endCursor }
            nodes {
              databaseId
              reactions(first: 100) {
                nodes { content user { login } }
              }
            }
          }
        }
      }
    }
  }
}
"""

_THREAD_COMMENTS_QUERY = """
query($threadId: ID!, $cursor: String) {
  node(id: $threadId) {
    ... on PullRequestReviewThread {
      comments(first: 100, after: $cursor) {
        pageInfo { hasNextPage endCursor }
        nodes {
          databaseId
          reactions(first: 100) {
            nodes { content user { login } }
          }
        }
      }
    }
  }
}
"""

_RESOLVE_THREAD_MUTATION = """
mutation($threadId: ID!) {
  resolveReviewThread(input: {threadId: $threadId}) {
    thread { id isResolved }
  }
}
"""

_UNRESOLVE_THREAD_MUTATION = """
mutation($threadId: ID!) {
  unresolveReviewThread(input: {threadId: $threadId}) {
    thread { id isResolved }
  }
}
"""


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_changed_files(pr):
    return pr.get_files()


def find_pull_for_branch(repo, branch: str):
    """Return the open pull request whose head is ``branch``, or None."""
    owner = repo.owner.login
    for pr in repo.get_pulls(state="open", head=f"{owner}:{branch}"):
        return pr
    return None


def _translate(e: Exception, action: str) -> RemoteError:
    if isinstance(e, GithubException) and e.status == 422:
        return UnprocessableError(f"{action}: {e.data}")
    if isinstance(e, GithubException):
        return RemoteError(f"{action}: HTTP {e.status} {e.data}")
    return RemoteError(f"{action}: {e}")


class GitHubReviewAPI:
    """Review-comment operations on GitHub pull requests.

    PyGithub is synchronous; every call runs in a worker thread so the event
    loop stays free. Repository and pull-request handles are cached per
    instance to avoid refetching them for each call.
    """

    def __init__(self, token: str | None = None, client: Github | None = None):
        self._gh = client or Github(token)
        self._repos: dict = {}
        self._pulls: dict = {}

    async def _call(self, action: str, fn):
        try:
            return await asyncio.to_thread(fn)
        except (GithubException, OSError) as e:
            raise _translate(e, action) from e

    def _repo(self, name: str):
        if name not in self._repos:
            self._repos[name] = self._gh.get_repo(name)
        return self._repos[name]

    def _pull(self, pr):
        key = (pr.repo, pr.number)
        if key not in self._pulls:
            self._pulls[key] = self._repo(pr.repo).get_pull(pr.number)
        return self._pulls[key]

    async def list_review_comments(self, pr, file_path: str) -> list[RemoteReviewComment]:
        raw = await self._call(
            f"list review comments on {pr.repo}#{pr.number}",
            lambda: [c for c in self._pull(pr).get_review_comments() if c.path == file_path],
        )
        comments = []
        for obj in raw:
            try:
                comments.append(RemoteReviewComment.from_github(obj))
            except ValueError as e:
                logger.debug("Skipping malformed review comment: %s", e)
        return comments

    async def create_review_comment(
        self,
        pr,
        body: str,
        commit_id: str,
        path: str,
        line: int,
        start_line: int | None = None,
    ) -> str:
        def create():
            pull = self._pull(pr)
            commit = self._repo(pr.repo).get_commit(commit_id)
            kwargs = {"line": line, "side": "RIGHT"}
            if start_line is not None and start_line < line:
                kwargs.update(start_line=start_line, start_side="RIGHT")
            return pull.create_review_comment(body, commit, path, **kwargs)

        comment = await self._call(f"create review comment on {path}:{line}", create)
        return str(comment.id)

    async def reply_to_comment(self, pr, parent_id: str, body: str) -> str:
        comment = await self._call(
            f"reply to review comment {parent_id}",
            lambda: self._pull(pr).create_review_comment_reply(int(parent_id), body),
        )
        return str(comment.id)

    async def update_comment(self, pr, comment_id: str, body: str) -> None:
        await self._call(
            f"edit review comment {comment_id}",
            lambda: self._pull(pr).get_review_comment(int(comment_id)).edit(body),
        )

    async def delete_comment(self, pr, comment_id: str) -> None:
        await self._call(
            f"delete review comment {comment_id}",
            lambda: self._pull(pr).get_review_comment(int(comment_id)).delete(),
        )

    async def fetch_thread_metadata(self, pr) -> dict:
        owner, _, name = pr.repo.partition("/")
        nodes: list[dict] = []
        cursor = None
        while True:
            variables = {"owner": owner, "repo": name, "pr": pr.number, "cursor": cursor}
            data = await self._graphql(f"fetch review threads for {pr.repo}#{pr.number}", _THREADS_QUERY, variables)
            threads = ((data.get("repository") or {}).get("pullRequest") or {}).get("reviewThreads") or {}
            nodes.extend(threads.get("nodes") or [])
            page_info = threads.get("pageInfo") or {}
            if page_info.get("hasNextPage") and page_info.get("endCursor"):
                cursor = page_info["endCursor"]
            else:
                break
        for thread in nodes:
            await self._fetch_remaining_comments(thread)
        return parse_review_threads(nodes)

    async def _fetch_remaining_comments(self, thread: dict | None) -> None:
        """Append the comments past the first page to ``thread`` in place."""
        comments = (thread or {}).get("comments") or {}
        page_info = comments.get("pageInfo") or {}
        while page_info.get("hasNextPage") and page_info.get("endCursor") and thread.get("id"):
            variables = {"threadId": thread["id"], "cursor": page_info["endCursor"]}
            data = await self._graphql(f"fetch comments of thread {thread['id']}", _THREAD_COMMENTS_QUERY, variables)
            page = ((data.get("node") or {}).get("comments")) or {}
            comments["nodes"] = (comments.get("nodes") or []) + (page.get("nodes") or [])
            page_info = page.get("pageInfo") or {}

    async def resolve_thread(self, thread_id: str) -> None:
        await self._graphql(f"resolve thread {thread_id}", _RESOLVE_THREAD_MUTATION, {"threadId": thread_id})

    async def unresolve_thread(self, thread_id: str) -> None:
        await self._graphql(f"unresolve thread {thread_id}", _UNRESOLVE_THREAD_MUTATION, {"threadId": thread_id})

    async def _graphql(self, action: str, query: str, variables: dict) -> dict:
        _, result = await self._call(action, lambda: self._gh.requester.graphql_query(query, variables))
        errors = (result or {}).get("errors")
        if errors:
            raise RemoteError(f"{action}: {errors[0].get('message', errors)}")
        return (result or {}).get("data") or {}


class GitHubContentProvider:
    """Reads document text from a repository branch."""

    def __init__(self, token: str | None = None, client: Github | None = None):
        self._gh = client or Github(token)

    async def get_content(self, repo_key: str, file_path: str, branch: str | None) -> str | None:
        def fetch():
            repo = self._gh.get_repo(repo_key)
            if branch:
                return repo.get_contents(file_path, ref=branch)
            return repo.get_contents(file_path)

        try:
            contents = await asyncio.to_thread(fetch)
        except GithubException as e:
            if e.status == 404:
                return None
            raise _translate(e, f"fetch {file_path}") from e
        except OSError as e:
            raise _translate(e, f"fetch {file_path}") from e

        if isinstance(contents, list):
            # A directory, not a document.
            return None
        try:
            return contents.decoded_content.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("%s is not UTF-8 text", file_path)
            return None

"""Shared fakes for the sync engine tests.

FakeRemote and FakeContent hold their state in plain attributes so tests can
arrange remote activity directly and inspect what the engine sent.
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from reviewsync_core.models import PullRequestRef, RemoteAuthor, RemoteReviewComment, SyncScope, ThreadInfo
from reviewsync_store.memory import MemoryStore

REPO = "owner/repo"
PATH = "docs/guide.md"


class FakeRemote:
    def __init__(self):
        self.comments: list[RemoteReviewComment] = []
        self.threads: dict[str, ThreadInfo] = {}
        self.calls: list[tuple] = []
        self.list_error: Exception | None = None
        self.threads_error: Exception | None = None
        self.create_error: Exception | None = None
        self.reply_error: Exception | None = None
        self.mutation_error: Exception | None = None
        self.list_gate = None  # asyncio.Event; listing blocks until it is set
        self._next_id = 1000

    def add(self, comment_id, body, line=None, in_reply_to_id=None, login="octocat", path=PATH, diff_hunk=""):
        comment = RemoteReviewComment(
            id=str(comment_id),
            body=body,
            path=path,
            line=line,
            diff_hunk=diff_hunk,
            in_reply_to_id=str(in_reply_to_id) if in_reply_to_id is not None else None,
            author=RemoteAuthor(login=login, avatar_url=f"https://avatars.example/{login}"),
            created_at=f"2024-05-01T10:00:{len(self.comments):02d}+00:00",
            updated_at=f"2024-05-01T10:00:{len(self.comments):02d}+00:00",
        )
        self.comments.append(comment)
        return comment

    def _new_id(self) -> str:
        self._next_id += 1
        return str(self._next_id)

    async def list_review_comments(self, pr, file_path):
        self.calls.append(("list", file_path))
        if self.list_gate is not None:
            await self.list_gate.wait()
        if self.list_error:
            raise self.list_error
        return [c for c in self.comments if c.path == file_path]

    async def create_review_comment(self, pr, body, commit_id, path, line, start_line=None):
        self.calls.append(("create", path, line, start_line, body))
        if self.create_error:
            raise self.create_error
        return self.add(self._new_id(), body, line=line, login="me", path=path).id

    async def reply_to_comment(self, pr, parent_id, body):
        self.calls.append(("reply", parent_id, body))
        if self.reply_error:
            raise self.reply_error
        parent = next(c for c in self.comments if c.id == parent_id)
        return self.add(self._new_id(), body, line=parent.line, in_reply_to_id=parent_id, login="me").id

    async def update_comment(self, pr, comment_id, body):
        self.calls.append(("update", comment_id, body))
        if self.mutation_error:
            raise self.mutation_error
        for comment in self.comments:
            if comment.id == comment_id:
                comment.body = body

    async def delete_comment(self, pr, comment_id):
        self.calls.append(("delete", comment_id))
        if self.mutation_error:
            raise self.mutation_error
        self.comments = [c for c in self.comments if c.id != comment_id]

    async def fetch_thread_metadata(self, pr):
        self.calls.append(("threads",))
        if self.threads_error:
            raise self.threads_error
        return dict(self.threads)

    async def resolve_thread(self, thread_id):
        self.calls.append(("resolve", thread_id))
        if self.mutation_error:
            raise self.mutation_error
        self._set_thread_resolved(thread_id, True)

    async def unresolve_thread(self, thread_id):
        self.calls.append(("unresolve", thread_id))
        if self.mutation_error:
            raise self.mutation_error
        self._set_thread_resolved(thread_id, False)

    def _set_thread_resolved(self, thread_id, resolved):
        for comment_id, info in self.threads.items():
            if info.thread_id == thread_id:
                self.threads[comment_id] = replace(info, is_resolved=resolved)

    def called(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]


class FakeContent:
    def __init__(self, documents: dict | None = None):
        self.documents: dict[str, str] = dict(documents or {})
        self.error: Exception | None = None

    async def get_content(self, repo_key, file_path, branch):
        if self.error:
            raise self.error
        return self.documents.get(file_path)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def content():
    return FakeContent({PATH: "# Hello\nWorld"})


@pytest.fixture
def scope():
    return SyncScope(repo_key=REPO, file_path=PATH, branch="feature")


@pytest.fixture
def pr():
    return PullRequestRef(repo=REPO, number=7)


@pytest.fixture
def writes(store):
    """Every change notification the store emits for the test file."""
    notifications: list = []
    store.subscribe(REPO, PATH, notifications.append)
    return notifications

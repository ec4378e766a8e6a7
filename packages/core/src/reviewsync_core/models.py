"""Remote payload structs and sync results.

GitHub payloads are converted into these dataclasses at the adapter boundary
and validated there, so the sync algorithms never reach into loosely-shaped
API objects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PullRequestRef:
    repo: str  # "owner/name"
    number: int


@dataclass(frozen=True)
class SyncScope:
    """The (repository, file) pair a pass operates on, plus the branch being edited."""

    repo_key: str
    file_path: str
    branch: str | None = None


@dataclass(frozen=True)
class RemoteAuthor:
    login: str
    avatar_url: str | None = None


@dataclass
class RemoteReviewComment:
    """A pull-request review comment as listed by the remote host."""

    id: str
    body: str
    path: str
    line: int | None = None
    start_line: int | None = None
    diff_hunk: str = ""
    in_reply_to_id: str | None = None
    author: RemoteAuthor | None = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_github(cls, obj) -> RemoteReviewComment:
        """Build from a PyGithub ``PullRequestComment``.

        ``line`` is None for comments whose line no longer exists in the
        current diff (e.g. after a force-push); fall back to ``original_line``
        in that case. Raises ValueError when the payload has no id.
        """
        if getattr(obj, "id", None) is None:
            raise ValueError("Review comment payload has no id")
        line = obj.line if obj.line is not None else getattr(obj, "original_line", None)
        user = getattr(obj, "user", None)
        author = None
        if user is not None and getattr(user, "login", None):
            author = RemoteAuthor(login=user.login, avatar_url=getattr(user, "avatar_url", None))
        in_reply_to = getattr(obj, "in_reply_to_id", None)
        return cls(
            id=str(obj.id),
            body=obj.body or "",
            path=obj.path or "",
            line=_as_int(line),
            start_line=_as_int(getattr(obj, "start_line", None)),
            diff_hunk=getattr(obj, "diff_hunk", None) or "",
            in_reply_to_id=str(in_reply_to) if in_reply_to is not None else None,
            author=author,
            created_at=_as_iso(getattr(obj, "created_at", None)),
            updated_at=_as_iso(getattr(obj, "updated_at", None)),
        )


@dataclass(frozen=True)
class RemoteReaction:
    content: str  # GitHub reaction type: "+1", "heart", ...
    user_login: str


@dataclass
class ThreadInfo:
    """Resolution and reaction state of the remote thread a comment belongs to."""

    thread_id: str
    is_resolved: bool
    reactions: list[RemoteReaction] = field(default_factory=list)


def parse_review_threads(nodes: list[dict]) -> dict[str, ThreadInfo]:
    """Convert GraphQL ``reviewThreads.nodes`` into a map of comment id → ThreadInfo.

    Every comment in a thread maps to the same thread id and resolution flag,
    each with its own reactions. Malformed nodes are skipped.
    """
    result: dict[str, ThreadInfo] = {}
    for thread in nodes or []:
        thread_id = (thread or {}).get("id")
        if not thread_id:
            logger.debug("Skipping review thread without id: %r", thread)
            continue
        is_resolved = bool(thread.get("isResolved", False))
        for comment in (thread.get("comments") or {}).get("nodes") or []:
            database_id = (comment or {}).get("databaseId")
            if database_id is None:
                continue
            reactions = []
            for reaction in (comment.get("reactions") or {}).get("nodes") or []:
                content = (reaction or {}).get("content")
                login = ((reaction or {}).get("user") or {}).get("login") or ""
                if content and login:
                    reactions.append(RemoteReaction(content=_graphql_reaction_type(content), user_login=login))
            result[str(database_id)] = ThreadInfo(thread_id=thread_id, is_resolved=is_resolved, reactions=reactions)
    return result


class PushStatus(str, Enum):
    PUSHED = "pushed"
    SKIPPED = "skipped"  # expected rejection, e.g. the line is outside the diff
    FAILED = "failed"  # retryable; the record stays unsynced


@dataclass
class PushResult:
    status: PushStatus
    remote_id: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is PushStatus.PUSHED


@dataclass
class InboundResult:
    imported: int = 0
    resolved: int = 0
    updated: int = 0
    relinked: int = 0

    @property
    def writes(self) -> int:
        return self.imported + self.updated + self.relinked


@dataclass
class OutboundResult:
    pushed: int = 0
    pending: int = 0  # replies waiting for their parent to be pushed
    skipped: int = 0
    failed: int = 0
    failures: list[str] = field(default_factory=list)  # local ids of failed pushes


# GraphQL returns reaction types as enum names (THUMBS_UP); REST uses "+1".
_GRAPHQL_REACTIONS = {
    "THUMBS_UP": "+1",
    "THUMBS_DOWN": "-1",
    "LAUGH": "laugh",
    "CONFUSED": "confused",
    "HEART": "heart",
    "HOORAY": "hooray",
    "ROCKET": "rocket",
    "EYES": "eyes",
}


def _graphql_reaction_type(content: str) -> str:
    return _GRAPHQL_REACTIONS.get(content, content)


def _as_int(value) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_iso(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)

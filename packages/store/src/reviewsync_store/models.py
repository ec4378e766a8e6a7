"""Local comment record.

The store owns the persisted shape of a comment. The sync engine in
reviewsync_core reads and writes these records but never decides how they
are laid out on disk.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields

STATUS_ACTIVE = "active"
STATUS_RESOLVED = "resolved"

TYPE_COMMENT = "comment"
TYPE_SUGGESTION = "suggestion"


@dataclass
class Author:
    uid: str
    display_name: str
    photo_url: str | None = None
    source_username: str = ""


@dataclass
class Suggestion:
    original_text: str
    suggested_text: str


@dataclass
class Comment:
    """A comment anchored to a text range of one file.

    ``remote_comment_id`` and ``remote_thread_id`` are written by the sync
    engine only. ``reactions`` maps an emoji to the user ids that reacted with
    it; an emoji never maps to an empty list.
    """

    repo_key: str
    file_path: str
    author: Author
    content: str
    id: str = ""
    branch: str | None = None
    type: str = TYPE_COMMENT  # "comment" | "suggestion"
    anchor_start: int = 0
    anchor_end: int = 0
    anchor_text: str = ""
    reactions: dict[str, list[str]] = field(default_factory=dict)
    parent_comment_id: str | None = None
    remote_comment_id: str | None = None
    remote_thread_id: str | None = None
    status: str = STATUS_ACTIVE  # "active" | "resolved"
    suggestion: Suggestion | None = None
    created_at: str = ""  # ISO-8601 UTC, assigned by the store
    updated_at: str = ""

    @property
    def is_reply(self) -> bool:
        return self.parent_comment_id is not None


# Fields a caller may pass to BaseStore.update(). id and scope are fixed at creation.
UPDATABLE_FIELDS = frozenset(f.name for f in fields(Comment)) - {"id", "repo_key", "file_path", "created_at"}

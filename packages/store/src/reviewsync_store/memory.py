"""In-memory comment store.

Records live only as long as the process. Useful for a single editing
session, for tests, and as the reference implementation of BaseStore.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import replace
from typing import TYPE_CHECKING

from reviewsync_store.base import BaseStore, StoreError

if TYPE_CHECKING:
    from reviewsync_store.models import Comment


class MemoryStore(BaseStore):
    """Keeps records in a dict keyed by id.

    Every read returns a deep copy so callers can never mutate stored state
    (reaction lists in particular) in place.
    """

    def __init__(self):
        super().__init__()
        self._records: dict[str, Comment] = {}
        self._sequence: dict[str, int] = {}

    async def get(self, comment_id: str) -> Comment | None:
        return copy.deepcopy(self._records.get(comment_id))

    async def list_comments(self, repo_key: str, file_path: str) -> list[Comment]:
        scoped = [r for r in self._records.values() if r.repo_key == repo_key and r.file_path == file_path]
        scoped.sort(key=lambda r: (r.created_at, self._sequence[r.id]))
        return copy.deepcopy(scoped)

    async def _insert(self, record: Comment) -> str:
        comment_id = uuid.uuid4().hex
        self._records[comment_id] = copy.deepcopy(replace(record, id=comment_id))
        self._sequence[comment_id] = len(self._sequence)
        return comment_id

    async def _replace(self, record: Comment) -> None:
        if record.id not in self._records:
            raise StoreError(f"Comment {record.id} not found")
        self._records[record.id] = copy.deepcopy(record)

    async def _remove(self, comment_id: str) -> None:
        self._records.pop(comment_id, None)

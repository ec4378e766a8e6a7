"""Abstract comment store interface.

The sync engine depends on BaseStore rather than a concrete backend, so
backends (in-memory, SQLite, a hosted document database) are swappable
without touching the engine.

Subscribers get snapshot semantics: after every change in a
(repo_key, file_path) scope each callback receives the full current list of
comments in that scope, ordered by creation time ascending.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from reviewsync_store.models import UPDATABLE_FIELDS

if TYPE_CHECKING:
    from reviewsync_store.models import Comment

logger = logging.getLogger(__name__)

Listener = Callable[[list["Comment"]], None]


class StoreError(Exception):
    """Raised when the backend cannot complete a read or write."""


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class BaseStore(ABC):
    """Pluggable persistence layer for comment records.

    Subclasses implement the five primitive operations; the public
    create/update/delete wrappers assign timestamps, validate partial updates
    and notify subscribers.
    """

    def __init__(self) -> None:
        self._listeners: dict[tuple[str, str], list[Listener]] = {}

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    async def create(self, record: Comment) -> str:
        """Persist a new record and return its store-assigned id.

        ``created_at``/``updated_at`` already set on the record (e.g. the
        remote timestamps of an imported comment) are kept.
        """
        now = utc_now()
        record = replace(
            record,
            created_at=record.created_at or now,
            updated_at=record.updated_at or record.created_at or now,
        )
        comment_id = await self._insert(record)
        await self._notify(record.repo_key, record.file_path)
        return comment_id

    async def update(self, comment_id: str, fields: dict) -> None:
        """Apply a partial update. ``updated_at`` is stamped unless supplied."""
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        if not fields:
            return
        existing = await self.get(comment_id)
        if existing is None:
            raise StoreError(f"Comment {comment_id} not found")
        changes = {"updated_at": utc_now(), **fields}
        await self._replace(replace(existing, **changes))
        await self._notify(existing.repo_key, existing.file_path)

    async def delete(self, comment_id: str) -> None:
        existing = await self.get(comment_id)
        if existing is None:
            return
        await self._remove(comment_id)
        await self._notify(existing.repo_key, existing.file_path)

    def subscribe(self, repo_key: str, file_path: str, callback: Listener) -> Callable[[], None]:
        """Register ``callback`` for changes in one scope and return an unsubscribe function."""
        key = (repo_key, file_path)
        self._listeners.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._listeners.get(key, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Default is a no-op so callers can always call close() safely.
        """

    # ------------------------------------------------------------------ #
    # Abstract: implement in each backend                                 #
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def get(self, comment_id: str) -> Comment | None:
        """Return one record, or None if it does not exist."""

    @abstractmethod
    async def list_comments(self, repo_key: str, file_path: str) -> list[Comment]:
        """Return every record in a scope, ordered by creation time ascending."""

    @abstractmethod
    async def _insert(self, record: Comment) -> str:
        """Store a new record, assigning and returning its id."""

    @abstractmethod
    async def _replace(self, record: Comment) -> None:
        """Overwrite an existing record with the same id."""

    @abstractmethod
    async def _remove(self, comment_id: str) -> None:
        """Delete a record by id."""

    # ------------------------------------------------------------------ #

    async def _notify(self, repo_key: str, file_path: str) -> None:
        callbacks = list(self._listeners.get((repo_key, file_path), []))
        if not callbacks:
            return
        snapshot = await self.list_comments(repo_key, file_path)
        for callback in callbacks:
            try:
                callback(list(snapshot))
            except Exception:
                # A broken subscriber must not fail the write that already happened.
                logger.exception("Comment subscriber for %s:%s raised", repo_key, file_path)

"""SQLiteStore: local file-based comment store.

Why SQLite as the persistent store:
- Batteries included: ships with Python, no extra dependencies.
- Indexed lookups on (repo_key, file_path) keep the per-pass scan that
  rebuilds the correlation map cheap.
- Survives restarts, so a comment pushed on one run is recognised as
  synced on the next instead of being posted twice.

Schema:
  comments: one row per comment. Author, reactions and suggestion are
           small nested values stored as JSON columns to keep reads a
           single SELECT.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
import uuid

from reviewsync_store.base import BaseStore, StoreError
from reviewsync_store.models import Author, Comment, Suggestion

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS comments (
    seq               INTEGER PRIMARY KEY AUTOINCREMENT,
    id                TEXT NOT NULL UNIQUE,
    repo_key          TEXT NOT NULL,
    file_path         TEXT NOT NULL,
    branch            TEXT,
    author_json       TEXT NOT NULL,
    content           TEXT NOT NULL,
    type              TEXT NOT NULL DEFAULT 'comment',
    anchor_start      INTEGER NOT NULL DEFAULT 0,
    anchor_end        INTEGER NOT NULL DEFAULT 0,
    anchor_text       TEXT NOT NULL DEFAULT '',
    reactions_json    TEXT NOT NULL DEFAULT '{}',
    parent_comment_id TEXT,
    remote_comment_id TEXT,
    remote_thread_id  TEXT,
    status            TEXT NOT NULL DEFAULT 'active',
    suggestion_json   TEXT,
    created_at        TEXT NOT NULL,
    updated_at        TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_comments_scope  ON comments (repo_key, file_path);
CREATE INDEX IF NOT EXISTS idx_comments_remote ON comments (remote_comment_id);
"""

_COLUMNS = (
    "id",
    "repo_key",
    "file_path",
    "branch",
    "author_json",
    "content",
    "type",
    "anchor_start",
    "anchor_end",
    "anchor_text",
    "reactions_json",
    "parent_comment_id",
    "remote_comment_id",
    "remote_thread_id",
    "status",
    "suggestion_json",
    "created_at",
    "updated_at",
)


class SQLiteStore(BaseStore):
    """Stores comments in a local SQLite database file.

    The database file path defaults to `.reviewsync.db` in the current working
    directory. Configure via .reviewsync.yml: `store_path: /path/to/comments.db`.
    Statements run in worker threads through ``asyncio.to_thread``, one at a
    time.
    """

    def __init__(self, db_path: str = ".reviewsync.db"):
        super().__init__()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        self._lock = threading.Lock()

    async def get(self, comment_id: str) -> Comment | None:
        rows = await self._query("SELECT * FROM comments WHERE id=?", (comment_id,))
        return self._row_to_record(rows[0]) if rows else None

    async def list_comments(self, repo_key: str, file_path: str) -> list[Comment]:
        rows = await self._query(
            "SELECT * FROM comments WHERE repo_key=? AND file_path=? ORDER BY created_at, seq",
            (repo_key, file_path),
        )
        return [self._row_to_record(r) for r in rows]

    async def _insert(self, record: Comment) -> str:
        comment_id = uuid.uuid4().hex
        values = self._record_to_row(record, comment_id)
        placeholders = ", ".join("?" for _ in _COLUMNS)
        await self._write(f"INSERT INTO comments ({', '.join(_COLUMNS)}) VALUES ({placeholders})", values)
        return comment_id

    async def _replace(self, record: Comment) -> None:
        values = self._record_to_row(record, record.id)
        assignments = ", ".join(f"{c}=?" for c in _COLUMNS[1:])
        rowcount = await self._write(f"UPDATE comments SET {assignments} WHERE id=?", (*values[1:], record.id))
        if rowcount == 0:
            raise StoreError(f"Comment {record.id} not found")

    async def _remove(self, comment_id: str) -> None:
        await self._write("DELETE FROM comments WHERE id=?", (comment_id,))

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    async def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        return await asyncio.to_thread(self._run, sql, params, False)

    async def _write(self, sql: str, params: tuple = ()) -> int:
        return await asyncio.to_thread(self._run, sql, params, True)

    def _run(self, sql: str, params: tuple, commit: bool):
        """Execute one statement off the event loop. Returns the rows, or the rowcount of a write."""
        with self._lock:
            try:
                cursor = self._conn.execute(sql, params)
                if commit:
                    self._conn.commit()
                    return cursor.rowcount
                return cursor.fetchall()
            except sqlite3.Error as e:
                raise StoreError(f"SQLite error: {e}") from e

    @staticmethod
    def _record_to_row(record: Comment, comment_id: str) -> tuple:
        suggestion = None
        if record.suggestion is not None:
            suggestion = json.dumps(
                {
                    "original_text": record.suggestion.original_text,
                    "suggested_text": record.suggestion.suggested_text,
                }
            )
        return (
            comment_id,
            record.repo_key,
            record.file_path,
            record.branch,
            json.dumps(
                {
                    "uid": record.author.uid,
                    "display_name": record.author.display_name,
                    "photo_url": record.author.photo_url,
                    "source_username": record.author.source_username,
                }
            ),
            record.content,
            record.type,
            record.anchor_start,
            record.anchor_end,
            record.anchor_text,
            json.dumps(record.reactions, ensure_ascii=False),
            record.parent_comment_id,
            record.remote_comment_id,
            record.remote_thread_id,
            record.status,
            suggestion,
            record.created_at,
            record.updated_at,
        )

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> Comment:
        author = json.loads(row["author_json"] or "{}")
        suggestion_data = json.loads(row["suggestion_json"]) if row["suggestion_json"] else None
        return Comment(
            id=row["id"],
            repo_key=row["repo_key"],
            file_path=row["file_path"],
            branch=row["branch"],
            author=Author(
                uid=author.get("uid", ""),
                display_name=author.get("display_name", ""),
                photo_url=author.get("photo_url"),
                source_username=author.get("source_username", ""),
            ),
            content=row["content"],
            type=row["type"],
            anchor_start=row["anchor_start"],
            anchor_end=row["anchor_end"],
            anchor_text=row["anchor_text"],
            reactions=json.loads(row["reactions_json"] or "{}"),
            parent_comment_id=row["parent_comment_id"],
            remote_comment_id=row["remote_comment_id"],
            remote_thread_id=row["remote_thread_id"],
            status=row["status"],
            suggestion=Suggestion(**suggestion_data) if suggestion_data else None,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

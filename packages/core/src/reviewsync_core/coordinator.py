"""Scheduling of sync passes for one pull request.

SyncCoordinator owns the timing concerns around the sync functions:

* an in-flight guard per (repo, file): an inbound trigger that arrives while
  a pass for the same file is running is dropped, not queued;
* a per-document lock shared by passes and pushes, so a push that has not yet
  recorded its remote id never overlaps a listing that would import the same
  comment a second time;
* fire-and-forget background pushes that report failures to a warning sink;
* a content-keyed orphan check per (file, branch), mirrored to the remote
  thread so later inbound passes keep the resolution;
* a periodic loop.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from reviewsync_core.inbound import fetch_document, sync_inbound
from reviewsync_core.models import OutboundResult, SyncScope
from reviewsync_core.orphans import resolve_orphans
from reviewsync_core.outbound import sync_outbound
from reviewsync_core.remote import RemoteError
from reviewsync_store.base import StoreError

if TYPE_CHECKING:
    from reviewsync_core.models import InboundResult, PullRequestRef
    from reviewsync_core.remote import ContentProvider, RemoteReviewAPI
    from reviewsync_store.base import BaseStore

logger = logging.getLogger(__name__)

PUSH_FAILED_WARNING = "comment saved locally but couldn't sync"


class SyncCoordinator:
    def __init__(
        self,
        store: BaseStore,
        remote: RemoteReviewAPI,
        content: ContentProvider | None,
        pr: PullRequestRef,
        commit_sha: str,
        branch: str | None = None,
        warn: Callable[[str], None] | None = None,
    ):
        self.store = store
        self.remote = remote
        self.content = content
        self.pr = pr
        self.commit_sha = commit_sha
        self.branch = branch
        self._warn = warn or logger.warning
        self._in_flight: set[tuple[str, str]] = set()
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._tasks: set[asyncio.Task] = set()
        self._content_keys: dict[tuple[str, str | None], str] = {}
        self._unmirrored: dict[tuple[str, str | None], set[str]] = {}

    def scope(self, file_path: str) -> SyncScope:
        return SyncScope(repo_key=self.pr.repo, file_path=file_path, branch=self.branch)

    def _lock(self, key: tuple[str, str]) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def pull(self, file_path: str) -> InboundResult | None:
        """Run one inbound pass, or return None if one is already running for the file."""
        scope = self.scope(file_path)
        key = (scope.repo_key, scope.file_path)
        if key in self._in_flight:
            logger.debug("Inbound pass for %s already running; trigger dropped", file_path)
            return None
        self._in_flight.add(key)
        try:
            async with self._lock(key):
                return await sync_inbound(self.store, self.remote, self.content, scope, self.pr)
        finally:
            self._in_flight.discard(key)

    async def push(self, file_path: str) -> OutboundResult:
        """Push every unsynced comment of the file. Waits for a running pass to finish."""
        scope = self.scope(file_path)
        async with self._lock((scope.repo_key, scope.file_path)):
            return await sync_outbound(self.store, self.remote, self.content, scope, self.pr, self.commit_sha)

    async def sync(self, file_path: str) -> tuple[InboundResult, OutboundResult] | None:
        """Inbound then outbound for one file. Returns None when the trigger was dropped."""
        inbound = await self.pull(file_path)
        if inbound is None:
            return None
        outbound = await self.push(file_path)
        return inbound, outbound

    def push_in_background(self, file_path: str) -> asyncio.Task:
        """Schedule a push without waiting for it.

        Failed pushes are reported through the warning sink; the local records
        stay as they are and are retried by the next pass.
        """
        task = asyncio.create_task(self._background_push(file_path))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _background_push(self, file_path: str) -> OutboundResult:
        try:
            result = await self.push(file_path)
        except StoreError:
            logger.exception("Background push for %s failed", file_path)
            self._warn(PUSH_FAILED_WARNING)
            raise
        if result.failed:
            self._warn(PUSH_FAILED_WARNING)
        return result

    async def on_content_changed(self, file_path: str, document_text: str) -> list[str]:
        """Resolve orphaned comments, once per distinct content of the file on this branch.

        Resolutions of synced threads are mirrored to the remote, otherwise the
        next inbound pass would reopen them. Threads whose mirror failed are
        retried on every later call. The content is remembered only after the
        local writes succeeded.
        """
        key = (file_path, self.branch)
        digest = hashlib.sha256(document_text.encode("utf-8")).hexdigest()
        scope = self.scope(file_path)
        async with self._lock((scope.repo_key, scope.file_path)):
            if self._content_keys.get(key) == digest:
                await self._mirror_resolutions(key)
                return []
            resolved = await resolve_orphans(self.store, scope, document_text)
            self._content_keys[key] = digest
            thread_ids = set()
            for comment_id in resolved:
                record = await self.store.get(comment_id)
                if record is not None and record.remote_thread_id:
                    thread_ids.add(record.remote_thread_id)
            await self._mirror_resolutions(key, thread_ids)
        return resolved

    async def _mirror_resolutions(self, key: tuple[str, str | None], thread_ids: Iterable[str] = ()) -> None:
        pending = self._unmirrored.setdefault(key, set())
        pending.update(thread_ids)
        for thread_id in sorted(pending):
            try:
                await self.remote.resolve_thread(thread_id)
            except RemoteError as e:
                logger.warning("Could not resolve orphaned thread %s remotely: %s", thread_id, e)
                continue
            pending.discard(thread_id)

    async def run_periodic(self, file_paths: Iterable[str], interval: float, stop: asyncio.Event) -> None:
        """Sync every file each ``interval`` seconds until ``stop`` is set.

        After each pass the current content is checked for orphaned anchors;
        unchanged content is skipped by ``on_content_changed``.
        """
        file_paths = list(file_paths)
        while not stop.is_set():
            for file_path in file_paths:
                await self.sync(file_path)
                document_text = await fetch_document(self.content, self.scope(file_path))
                if document_text is not None:
                    await self.on_content_changed(file_path, document_text)
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    async def aclose(self) -> None:
        """Wait for background pushes still in flight."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

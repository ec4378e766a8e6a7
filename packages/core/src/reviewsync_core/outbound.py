"""Outbound sync: push locally created comments to the pull request."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from reviewsync_core.anchors import resolve_line_from_anchor
from reviewsync_core.inbound import fetch_document
from reviewsync_core.models import OutboundResult, PushResult, PushStatus
from reviewsync_core.remote import RemoteError, UnprocessableError

if TYPE_CHECKING:
    from reviewsync_core.models import PullRequestRef, SyncScope
    from reviewsync_core.remote import ContentProvider, RemoteReviewAPI
    from reviewsync_store.base import BaseStore
    from reviewsync_store.models import Comment

logger = logging.getLogger(__name__)


async def push_comment(
    store: BaseStore,
    remote: RemoteReviewAPI,
    record: Comment,
    pr: PullRequestRef,
    commit_sha: str,
    document_text: str | None,
    parent_remote_id: str | None = None,
) -> PushResult:
    """Post one local record to the remote and store the remote id it gets back.

    Roots become new review comments on the line their anchor resolves to;
    replies are posted into the parent's thread. The caller makes sure a
    reply's parent is already synced and passes its remote id.
    """
    try:
        if record.is_reply:
            remote_id = await remote.reply_to_comment(pr, parent_remote_id, record.content)
        else:
            position = resolve_line_from_anchor(document_text, record.anchor_text, record.anchor_start)
            line = position.line if position else 1
            start_line = position.start_line if position else None
            remote_id = await remote.create_review_comment(
                pr,
                body=record.content,
                commit_id=commit_sha,
                path=record.file_path,
                line=line,
                start_line=start_line,
            )
    except UnprocessableError as e:
        logger.debug("Comment %s not pushed, %s is outside the diff: %s", record.id, record.file_path, e)
        return PushResult(PushStatus.SKIPPED, error=str(e))
    except RemoteError as e:
        logger.warning("Failed to push comment %s on %s: %s", record.id, record.file_path, e)
        return PushResult(PushStatus.FAILED, error=str(e))

    await store.update(record.id, {"remote_comment_id": remote_id})
    return PushResult(PushStatus.PUSHED, remote_id=remote_id)


async def sync_outbound(
    store: BaseStore,
    remote: RemoteReviewAPI,
    content: ContentProvider | None,
    scope: SyncScope,
    pr: PullRequestRef,
    commit_sha: str,
) -> OutboundResult:
    """Push every unsynced record of ``scope``, oldest first.

    Replies whose parent has no remote id yet stay pending and are picked
    up by a later pass.
    """
    result = OutboundResult()
    records = await store.list_comments(scope.repo_key, scope.file_path)
    if scope.branch is not None:
        records = [r for r in records if r.branch in (None, scope.branch)]

    unsynced = [r for r in records if r.remote_comment_id is None]
    if not unsynced:
        return result

    remote_ids = {r.id: r.remote_comment_id for r in records if r.remote_comment_id is not None}
    document_text = await fetch_document(content, scope)

    for record in unsynced:
        parent_remote_id = None
        if record.is_reply:
            parent_remote_id = remote_ids.get(record.parent_comment_id)
            if parent_remote_id is None:
                result.pending += 1
                continue

        push = await push_comment(store, remote, record, pr, commit_sha, document_text, parent_remote_id)
        if push.status is PushStatus.PUSHED:
            remote_ids[record.id] = push.remote_id
            result.pushed += 1
        elif push.status is PushStatus.SKIPPED:
            result.skipped += 1
        else:
            result.failed += 1
            result.failures.append(record.id)

    if result.pushed or result.failed:
        logger.info(
            "Outbound sync %s: %d pushed, %d pending, %d skipped, %d failed",
            scope.file_path,
            result.pushed,
            result.pending,
            result.skipped,
            result.failed,
        )
    return result

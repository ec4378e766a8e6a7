"""Inbound sync: pull remote review comments into the local store.

One pass for one file of one pull request:

    content (best-effort) → list remote comments → rebuild correlation map
      → import / update / relink each remote comment
      → fetch thread metadata once → merge resolution + reactions

Every write is guarded by a comparison against the record as it currently
stands, so running the pass again without remote activity writes nothing.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from reviewsync_core.anchors import resolve_anchor_from_line
from reviewsync_core.correlation import CorrelationMap
from reviewsync_core.models import InboundResult
from reviewsync_core.reactions import merge_thread_metadata, remote_user_id
from reviewsync_core.remote import RemoteError
from reviewsync_store.models import STATUS_ACTIVE, STATUS_RESOLVED, Author, Comment

if TYPE_CHECKING:
    from reviewsync_core.models import PullRequestRef, RemoteReviewComment, SyncScope
    from reviewsync_core.remote import ContentProvider, RemoteReviewAPI
    from reviewsync_store.base import BaseStore

logger = logging.getLogger(__name__)


async def fetch_document(content: ContentProvider | None, scope: SyncScope) -> str | None:
    """Return the current document text, or None if it cannot be fetched.

    Missing content never aborts a pass; it only makes anchors less precise.
    """
    if content is None:
        return None
    try:
        return await content.get_content(scope.repo_key, scope.file_path, scope.branch)
    except RemoteError as e:
        logger.debug("Document content unavailable for %s: %s", scope.file_path, e)
        return None


async def sync_inbound(
    store: BaseStore,
    remote: RemoteReviewAPI,
    content: ContentProvider | None,
    scope: SyncScope,
    pr: PullRequestRef,
) -> InboundResult:
    """Import new remote comments for ``scope`` and merge remote thread state.

    Remote failures end the pass quietly; inbound sync is a background
    consistency mechanism and the next pass retries. Store failures propagate.
    """
    result = InboundResult()
    document_text = await fetch_document(content, scope)

    try:
        remote_comments = await remote.list_review_comments(pr, scope.file_path)
    except RemoteError as e:
        logger.warning("Could not list review comments for %s#%d %s: %s", pr.repo, pr.number, scope.file_path, e)
        return result

    remote_comments = [c for c in remote_comments if not c.path or c.path == scope.file_path]

    correlation = CorrelationMap.build(await store.list_comments(scope.repo_key, scope.file_path))

    # Roots first so that replies listed in the same pass find their parent.
    ordered = sorted(remote_comments, key=lambda c: c.in_reply_to_id is not None)
    for remote_comment in ordered:
        if remote_comment.id in correlation:
            await _refresh_existing(store, correlation, remote_comment, result)
        else:
            await _import(store, correlation, remote_comment, scope, document_text)
            result.imported += 1

    await _merge_thread_state(store, remote, correlation, pr, result)

    if result.writes or result.resolved:
        logger.info(
            "Inbound sync %s: %d imported, %d updated, %d relinked, %d resolved",
            scope.file_path,
            result.imported,
            result.updated,
            result.relinked,
            result.resolved,
        )
    return result


async def _refresh_existing(
    store: BaseStore,
    correlation: CorrelationMap,
    remote_comment: RemoteReviewComment,
    result: InboundResult,
) -> None:
    local = correlation.snapshot(remote_comment.id)
    update: dict = {}

    if remote_comment.body != local.content:
        update["content"] = remote_comment.body
        if remote_comment.updated_at:
            update["updated_at"] = remote_comment.updated_at
        result.updated += 1

    # A reply imported before its parent was a standalone root; link it now.
    parent = _resolve_parent(correlation, remote_comment)
    if parent is not None and parent.id != local.id and local.parent_comment_id != parent.id:
        update.update(_thread_fields(parent))
        result.relinked += 1

    if update:
        await store.update(local.id, update)
        correlation.register(_apply(local, update))


async def _import(
    store: BaseStore,
    correlation: CorrelationMap,
    remote_comment: RemoteReviewComment,
    scope: SyncScope,
    document_text: str | None,
) -> None:
    parent = _resolve_parent(correlation, remote_comment)
    if remote_comment.in_reply_to_id is not None and parent is None:
        logger.debug(
            "Parent %s of remote comment %s is not imported yet; importing as a root",
            remote_comment.in_reply_to_id,
            remote_comment.id,
        )

    if parent is not None:
        thread = _thread_fields(parent)
    else:
        anchor = resolve_anchor_from_line(document_text, remote_comment.line, remote_comment.diff_hunk)
        thread = {
            "parent_comment_id": None,
            "branch": scope.branch,
            "anchor_start": anchor.anchor_start,
            "anchor_end": anchor.anchor_end,
            "anchor_text": anchor.anchor_text,
        }

    login = remote_comment.author.login if remote_comment.author else ""
    record = Comment(
        repo_key=scope.repo_key,
        file_path=scope.file_path,
        author=Author(
            uid=remote_user_id(login) if login else "github-unknown",
            display_name=login or "Unknown",
            photo_url=remote_comment.author.avatar_url if remote_comment.author else None,
            source_username=login,
        ),
        content=remote_comment.body,
        remote_comment_id=remote_comment.id,
        status=STATUS_ACTIVE,
        reactions={},
        created_at=remote_comment.created_at,
        updated_at=remote_comment.updated_at,
        **thread,
    )
    record.id = await store.create(record)
    correlation.register(record)


async def _merge_thread_state(
    store: BaseStore,
    remote: RemoteReviewAPI,
    correlation: CorrelationMap,
    pr: PullRequestRef,
    result: InboundResult,
) -> None:
    if not len(correlation):
        return
    try:
        threads = await remote.fetch_thread_metadata(pr)
    except RemoteError as e:
        # Typically a token without GraphQL access; resolution and reactions just stay as they are.
        logger.warning("Could not fetch review thread metadata for %s#%d: %s", pr.repo, pr.number, e)
        return

    for remote_id in correlation:
        info = threads.get(remote_id)
        if info is None:
            continue
        local = correlation.snapshot(remote_id)
        update = merge_thread_metadata(local, info)
        if not update:
            continue
        await store.update(local.id, update)
        correlation.register(_apply(local, update))
        if update.get("status") == STATUS_RESOLVED:
            result.resolved += 1


def _resolve_parent(correlation: CorrelationMap, remote_comment: RemoteReviewComment) -> Comment | None:
    """Local record of the comment's thread root, if it has been imported.

    Threading is one level deep: a reply to a reply is attached to the root.
    """
    parent_local_id = correlation.local_id(remote_comment.in_reply_to_id)
    if parent_local_id is None:
        return None
    parent = correlation.snapshot(remote_comment.in_reply_to_id)
    if parent.parent_comment_id is not None:
        root = correlation.by_local_id(parent.parent_comment_id)
        if root is not None:
            return root
    return parent


def _thread_fields(parent: Comment) -> dict:
    """Fields a reply shares with the root of its thread."""
    return {
        "parent_comment_id": parent.id,
        "branch": parent.branch,
        "anchor_start": parent.anchor_start,
        "anchor_end": parent.anchor_end,
        "anchor_text": parent.anchor_text,
    }


def _apply(record: Comment, update: dict) -> Comment:
    return replace(record, **update)

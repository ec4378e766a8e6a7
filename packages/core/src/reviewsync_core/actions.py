"""Comment mutations performed on behalf of a local user.

Every action writes to the local store first. Where the change has a remote
counterpart it is then mirrored best-effort: the outcome comes back as a
PushResult and a remote failure never undoes the local write. Store errors
propagate to the caller.

Actions never set ``remote_comment_id`` or ``remote_thread_id``; those are
owned by the sync passes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from reviewsync_core.models import PushResult, PushStatus
from reviewsync_core.reactions import toggle_user_reaction
from reviewsync_core.remote import RemoteError, UnprocessableError
from reviewsync_store.base import StoreError
from reviewsync_store.models import STATUS_ACTIVE, STATUS_RESOLVED, TYPE_COMMENT, TYPE_SUGGESTION, Comment

if TYPE_CHECKING:
    from reviewsync_core.anchors import AnchorSpan
    from reviewsync_core.models import PullRequestRef, SyncScope
    from reviewsync_core.remote import RemoteReviewAPI
    from reviewsync_store.base import BaseStore
    from reviewsync_store.models import Author, Suggestion

logger = logging.getLogger(__name__)


async def add_comment(
    store: BaseStore,
    scope: SyncScope,
    author: Author,
    content: str,
    anchor: AnchorSpan,
    suggestion: Suggestion | None = None,
) -> Comment:
    """Create a root comment anchored to ``anchor``. Pushing it is left to outbound sync."""
    record = Comment(
        repo_key=scope.repo_key,
        file_path=scope.file_path,
        branch=scope.branch,
        author=author,
        content=content,
        type=TYPE_SUGGESTION if suggestion is not None else TYPE_COMMENT,
        anchor_start=anchor.anchor_start,
        anchor_end=max(anchor.anchor_start, anchor.anchor_end),
        anchor_text=anchor.anchor_text,
        status=STATUS_ACTIVE,
        suggestion=suggestion,
    )
    record.id = await store.create(record)
    return record


async def add_reply(store: BaseStore, parent_id: str, author: Author, content: str) -> Comment:
    """Reply to a comment. Replies to a reply are attached to the thread root."""
    parent = await _get(store, parent_id)
    if parent.is_reply:
        parent = await _get(store, parent.parent_comment_id)

    record = Comment(
        repo_key=parent.repo_key,
        file_path=parent.file_path,
        branch=parent.branch,
        author=author,
        content=content,
        anchor_start=parent.anchor_start,
        anchor_end=parent.anchor_end,
        anchor_text=parent.anchor_text,
        parent_comment_id=parent.id,
        status=parent.status,
    )
    record.id = await store.create(record)
    return record


async def edit_comment(
    store: BaseStore,
    comment_id: str,
    content: str,
    remote: RemoteReviewAPI | None = None,
    pr: PullRequestRef | None = None,
) -> PushResult | None:
    """Change a comment's body; returns the remote outcome, or None when not synced."""
    record = await _get(store, comment_id)
    await store.update(comment_id, {"content": content})
    if remote is None or pr is None or record.remote_comment_id is None:
        return None
    return await _mirror(
        f"edit comment {comment_id}",
        remote.update_comment(pr, record.remote_comment_id, content),
        record.remote_comment_id,
    )


async def set_resolved(
    store: BaseStore,
    comment_id: str,
    resolved: bool,
    remote: RemoteReviewAPI | None = None,
) -> PushResult | None:
    """Resolve or reopen the thread ``comment_id`` belongs to.

    The status is applied to the root and all of its replies, matching how
    the remote reports resolution per thread.
    """
    record = await _get(store, comment_id)
    root = await _get(store, record.parent_comment_id) if record.is_reply else record
    status = STATUS_RESOLVED if resolved else STATUS_ACTIVE

    replies = [c for c in await store.list_comments(root.repo_key, root.file_path) if c.parent_comment_id == root.id]
    thread = [root] + replies
    for comment in thread:
        if comment.status != status:
            await store.update(comment.id, {"status": status})

    thread_id = next((c.remote_thread_id for c in thread if c.remote_thread_id), None)
    if remote is None or thread_id is None:
        return None
    call = remote.resolve_thread(thread_id) if resolved else remote.unresolve_thread(thread_id)
    return await _mirror(f"{'resolve' if resolved else 'reopen'} thread {thread_id}", call, thread_id)


async def toggle_reaction(store: BaseStore, comment_id: str, emoji: str, uid: str) -> dict[str, list[str]]:
    """Add or remove ``uid``'s reaction. Local only; remote reactions arrive via inbound sync."""
    record = await _get(store, comment_id)
    reactions = toggle_user_reaction(record.reactions, emoji, uid)
    await store.update(comment_id, {"reactions": reactions})
    return reactions


async def delete_comment(
    store: BaseStore,
    comment_id: str,
    remote: RemoteReviewAPI | None = None,
    pr: PullRequestRef | None = None,
) -> list[PushResult]:
    """Delete a comment (and its replies, for a root), then mirror the deletes remotely.

    Replies are removed before their root.
    """
    record = await _get(store, comment_id)
    doomed = []
    if not record.is_reply:
        scoped = await store.list_comments(record.repo_key, record.file_path)
        doomed = [c for c in scoped if c.parent_comment_id == record.id]
    doomed.append(record)

    for comment in doomed:
        await store.delete(comment.id)

    results = []
    if remote is None or pr is None:
        return results
    for comment in doomed:
        if comment.remote_comment_id is None:
            continue
        results.append(
            await _mirror(
                f"delete comment {comment.id}",
                remote.delete_comment(pr, comment.remote_comment_id),
                comment.remote_comment_id,
            )
        )
    return results


async def _get(store: BaseStore, comment_id: str) -> Comment:
    record = await store.get(comment_id)
    if record is None:
        raise StoreError(f"Comment {comment_id} not found")
    return record


async def _mirror(action: str, call, remote_id: str) -> PushResult:
    try:
        await call
    except UnprocessableError as e:
        logger.debug("Remote rejected %s: %s", action, e)
        return PushResult(PushStatus.SKIPPED, remote_id=remote_id, error=str(e))
    except RemoteError as e:
        logger.warning("Could not %s on the remote: %s", action, e)
        return PushResult(PushStatus.FAILED, remote_id=remote_id, error=str(e))
    return PushResult(PushStatus.PUSHED, remote_id=remote_id)

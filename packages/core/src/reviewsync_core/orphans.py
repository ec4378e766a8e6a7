"""Orphaned-anchor detection.

A root comment whose anchor text no longer appears anywhere in the document
has lost its place. It is resolved automatically. The transition is one-way:
the detector never reopens a comment, even if the text later reappears.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from reviewsync_store.models import STATUS_ACTIVE, STATUS_RESOLVED

if TYPE_CHECKING:
    from reviewsync_core.models import SyncScope
    from reviewsync_store.base import BaseStore
    from reviewsync_store.models import Comment

logger = logging.getLogger(__name__)


def detect_orphans(document_text: str, comments: Iterable[Comment]) -> list[str]:
    """Return ids of active root comments whose anchor text is missing from the document."""
    orphaned = []
    for comment in comments:
        if comment.is_reply or comment.status != STATUS_ACTIVE:
            continue
        if not comment.anchor_text.strip():
            continue
        if comment.anchor_text not in document_text:
            orphaned.append(comment.id)
    return orphaned


async def resolve_orphans(store: BaseStore, scope: SyncScope, document_text: str) -> list[str]:
    """Resolve the orphaned comments of one file/branch and return their ids."""
    comments = await store.list_comments(scope.repo_key, scope.file_path)
    if scope.branch is not None:
        comments = [c for c in comments if c.branch in (None, scope.branch)]
    orphaned = detect_orphans(document_text, comments)
    for comment_id in orphaned:
        await store.update(comment_id, {"status": STATUS_RESOLVED})
    if orphaned:
        logger.info("Resolved %d orphaned comment(s) in %s", len(orphaned), scope.file_path)
    return orphaned

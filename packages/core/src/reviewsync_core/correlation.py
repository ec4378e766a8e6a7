"""Per-pass correlation between remote comment ids and local record ids.

The map is rebuilt from the store at the start of every inbound pass and
passed around explicitly. It is never cached between passes: local records
can change at any time (a push attaching a remote id, a user deleting a
thread), and a rebuilt map always reflects confirmed state.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from reviewsync_store.models import Comment

logger = logging.getLogger(__name__)


class CorrelationMap:
    """Two parallel indexes keyed by remote comment id.

    ``local_ids``  remote id → local record id
    ``snapshots``  remote id → the local record as last read or written
    """

    def __init__(self):
        self.local_ids: dict[str, str] = {}
        self.snapshots: dict[str, Comment] = {}

    @classmethod
    def build(cls, records: Iterable[Comment]) -> CorrelationMap:
        """Index every record that carries a remote id.

        Records are expected in creation order. If two local records claim
        the same remote id, the first (oldest) one wins so later passes keep
        updating the same record.
        """
        correlation = cls()
        for record in records:
            remote_id = record.remote_comment_id
            if remote_id is None:
                continue
            if remote_id in correlation.local_ids:
                logger.warning(
                    "Remote comment %s is linked to local records %s and %s; using the first",
                    remote_id,
                    correlation.local_ids[remote_id],
                    record.id,
                )
                continue
            correlation.register(record)
        return correlation

    def register(self, record: Comment) -> None:
        """Add or refresh a record so later lookups in the same pass see it."""
        self.local_ids[record.remote_comment_id] = record.id
        self.snapshots[record.remote_comment_id] = record

    def local_id(self, remote_id: str | None) -> str | None:
        if remote_id is None:
            return None
        return self.local_ids.get(remote_id)

    def snapshot(self, remote_id: str) -> Comment | None:
        return self.snapshots.get(remote_id)

    def by_local_id(self, local_id: str) -> Comment | None:
        for record in self.snapshots.values():
            if record.id == local_id:
                return record
        return None

    def __contains__(self, remote_id: object) -> bool:
        return remote_id in self.local_ids

    def __len__(self) -> int:
        return len(self.local_ids)

    def __iter__(self):
        return iter(list(self.local_ids))

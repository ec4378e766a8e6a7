"""Tests for outbound sync (local → remote)."""

import logging

import pytest

from reviewsync_core.inbound import sync_inbound
from reviewsync_core.models import PushStatus
from reviewsync_core.outbound import push_comment, sync_outbound
from reviewsync_core.remote import RemoteError, UnprocessableError
from reviewsync_store.models import Author, Comment

REPO = "owner/repo"
PATH = "docs/guide.md"
SHA = "a" * 40


def _make_comment(content="please fix", anchor_text="World", anchor_start=8, branch="feature", **kwargs):
    return Comment(
        repo_key=REPO,
        file_path=PATH,
        author=Author(uid="u1", display_name="Ada"),
        content=content,
        anchor_text=anchor_text,
        anchor_start=anchor_start,
        anchor_end=anchor_start + len(anchor_text),
        branch=branch,
        **kwargs,
    )


class TestPushComment:
    @pytest.mark.asyncio
    async def test_root_posted_on_anchor_line(self, store, remote, pr):
        record = _make_comment()
        record.id = await store.create(record)

        result = await push_comment(store, remote, record, pr, SHA, "# Hello\nWorld")

        assert result.status is PushStatus.PUSHED
        assert remote.called("create") == [("create", PATH, 2, None, "please fix")]
        assert (await store.get(record.id)).remote_comment_id == result.remote_id

    @pytest.mark.asyncio
    async def test_multi_line_anchor_sends_start_line(self, store, remote, pr):
        record = _make_comment(anchor_text="two\nthree", anchor_start=4)
        record.id = await store.create(record)

        await push_comment(store, remote, record, pr, SHA, "one\ntwo\nthree\nfour")

        assert remote.called("create")[0][2:4] == (3, 2)

    @pytest.mark.asyncio
    async def test_without_document_uses_line_one(self, store, remote, pr):
        record = _make_comment()
        record.id = await store.create(record)

        await push_comment(store, remote, record, pr, SHA, None)

        assert remote.called("create")[0][2] == 1

    @pytest.mark.asyncio
    async def test_outside_diff_is_skipped_silently(self, store, remote, pr, caplog):
        remote.create_error = UnprocessableError("line must be part of the diff")
        record = _make_comment()
        record.id = await store.create(record)

        with caplog.at_level(logging.WARNING):
            result = await push_comment(store, remote, record, pr, SHA, "# Hello\nWorld")

        assert result.status is PushStatus.SKIPPED
        assert (await store.get(record.id)).remote_comment_id is None
        assert caplog.records == []

    @pytest.mark.asyncio
    async def test_remote_failure_is_reported(self, store, remote, pr, caplog):
        remote.create_error = RemoteError("connection reset")
        record = _make_comment()
        record.id = await store.create(record)

        with caplog.at_level(logging.WARNING, logger="reviewsync_core.outbound"):
            result = await push_comment(store, remote, record, pr, SHA, "# Hello\nWorld")

        assert result.status is PushStatus.FAILED
        assert not result.ok
        assert "connection reset" in result.error
        assert "connection reset" in caplog.text
        assert (await store.get(record.id)).remote_comment_id is None


class TestSyncOutbound:
    @pytest.mark.asyncio
    async def test_pushes_unsynced_in_creation_order(self, store, remote, content, scope, pr):
        await store.create(_make_comment("first"))
        await store.create(_make_comment("second", anchor_text="# Hello", anchor_start=0))

        result = await sync_outbound(store, remote, content, scope, pr, SHA)

        assert result.pushed == 2
        assert [c[4] for c in remote.called("create")] == ["first", "second"]
        assert [c[2] for c in remote.called("create")] == [2, 1]

    @pytest.mark.asyncio
    async def test_synced_records_not_pushed_again(self, store, remote, content, scope, pr):
        await store.create(_make_comment())
        await sync_outbound(store, remote, content, scope, pr, SHA)

        result = await sync_outbound(store, remote, content, scope, pr, SHA)

        assert result.pushed == 0
        assert len(remote.called("create")) == 1

    @pytest.mark.asyncio
    async def test_reply_follows_parent_pushed_in_same_pass(self, store, remote, content, scope, pr):
        root_id = await store.create(_make_comment())
        await store.create(_make_comment("agreed", parent_comment_id=root_id))

        result = await sync_outbound(store, remote, content, scope, pr, SHA)

        assert result.pushed == 2
        root = await store.get(root_id)
        assert remote.called("reply") == [("reply", root.remote_comment_id, "agreed")]

    @pytest.mark.asyncio
    async def test_reply_pending_until_parent_synced(self, store, remote, content, scope, pr):
        root_id = await store.create(_make_comment())
        reply_id = await store.create(_make_comment("agreed", parent_comment_id=root_id))
        remote.create_error = RemoteError("timeout")

        first = await sync_outbound(store, remote, content, scope, pr, SHA)

        assert (first.failed, first.pending) == (1, 1)
        assert first.failures == [root_id]
        assert remote.called("reply") == []

        remote.create_error = None
        second = await sync_outbound(store, remote, content, scope, pr, SHA)

        assert (second.pushed, second.pending) == (2, 0)
        assert (await store.get(reply_id)).remote_comment_id is not None

    @pytest.mark.asyncio
    async def test_other_branches_left_alone(self, store, remote, content, scope, pr):
        await store.create(_make_comment("elsewhere", branch="main"))

        result = await sync_outbound(store, remote, content, scope, pr, SHA)

        assert result.pushed == 0
        assert remote.called("create") == []

    @pytest.mark.asyncio
    async def test_push_then_listing_does_not_duplicate(self, store, remote, content, scope, pr):
        await store.create(_make_comment())
        await sync_outbound(store, remote, content, scope, pr, SHA)

        result = await sync_inbound(store, remote, content, scope, pr)

        assert result.imported == 0
        assert len(await store.list_comments(REPO, PATH)) == 1

    @pytest.mark.asyncio
    async def test_nothing_to_push_skips_content_fetch(self, store, remote, content, scope, pr):
        content.error = AssertionError("content should not be fetched")

        result = await sync_outbound(store, remote, content, scope, pr, SHA)

        assert result.pushed == 0

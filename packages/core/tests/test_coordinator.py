"""Tests for the sync coordinator."""

import asyncio

import pytest

from reviewsync_core.coordinator import PUSH_FAILED_WARNING, SyncCoordinator
from reviewsync_core.models import ThreadInfo
from reviewsync_core.remote import RemoteError
from reviewsync_store.base import StoreError
from reviewsync_store.models import Author, Comment

REPO = "owner/repo"
PATH = "docs/guide.md"
SHA = "a" * 40


def _local_comment(anchor_text="World"):
    return Comment(
        repo_key=REPO,
        file_path=PATH,
        author=Author(uid="u1", display_name="Ada"),
        content="please fix",
        anchor_text=anchor_text,
        branch="feature",
    )


@pytest.fixture
def warnings():
    return []


@pytest.fixture
def coordinator(store, remote, content, pr, warnings):
    return SyncCoordinator(store, remote, content, pr, SHA, branch="feature", warn=warnings.append)


class TestSync:
    @pytest.mark.asyncio
    async def test_sync_runs_inbound_then_outbound(self, coordinator, store, remote):
        remote.add(101, "fix typo", line=2)
        await store.create(_local_comment())

        inbound, outbound = await coordinator.sync(PATH)

        assert inbound.imported == 1
        assert outbound.pushed == 1
        assert [c[0] for c in remote.calls] == ["list", "threads", "create"]

    @pytest.mark.asyncio
    async def test_concurrent_trigger_is_dropped(self, coordinator, remote):
        remote.list_gate = asyncio.Event()
        first = asyncio.create_task(coordinator.pull(PATH))
        await asyncio.sleep(0)

        assert await coordinator.pull(PATH) is None
        assert await coordinator.sync(PATH) is None

        remote.list_gate.set()
        assert (await first).imported == 0
        assert len(remote.called("list")) == 1

    @pytest.mark.asyncio
    async def test_guard_released_after_failure(self, coordinator, remote):
        remote.list_error = RemoteError("502")
        assert await coordinator.pull(PATH) is not None
        remote.list_error = None
        assert await coordinator.pull(PATH) is not None

    @pytest.mark.asyncio
    async def test_push_waits_for_running_pass(self, coordinator, store, remote):
        remote.list_gate = asyncio.Event()
        await store.create(_local_comment())
        pulling = asyncio.create_task(coordinator.pull(PATH))
        await asyncio.sleep(0)

        pushing = asyncio.create_task(coordinator.push(PATH))
        await asyncio.sleep(0)
        assert remote.called("create") == []

        remote.list_gate.set()
        await pulling
        assert (await pushing).pushed == 1


class TestBackgroundPush:
    @pytest.mark.asyncio
    async def test_successful_push(self, coordinator, store, warnings):
        record_id = await store.create(_local_comment())

        result = await coordinator.push_in_background(PATH)

        assert result.pushed == 1
        assert (await store.get(record_id)).remote_comment_id is not None
        assert warnings == []

    @pytest.mark.asyncio
    async def test_failure_warns_and_keeps_local_record(self, coordinator, store, remote, warnings):
        record_id = await store.create(_local_comment())
        remote.create_error = RemoteError("offline")

        coordinator.push_in_background(PATH)
        await coordinator.aclose()

        assert warnings == [PUSH_FAILED_WARNING]
        record = await store.get(record_id)
        assert record is not None
        assert record.remote_comment_id is None


class TestOnContentChanged:
    @pytest.mark.asyncio
    async def test_orphans_resolved_once_per_content(self, coordinator, store):
        record_id = await store.create(_local_comment("Gone"))

        assert await coordinator.on_content_changed(PATH, "# Hello\nWorld") == [record_id]
        assert await coordinator.on_content_changed(PATH, "# Hello\nWorld") == []
        assert (await store.get(record_id)).status == "resolved"

    @pytest.mark.asyncio
    async def test_same_content_skips_store(self, coordinator, store, mocker):
        await coordinator.on_content_changed(PATH, "# Hello\nWorld")
        list_comments = mocker.patch.object(store, "list_comments")

        await coordinator.on_content_changed(PATH, "# Hello\nWorld")

        list_comments.assert_not_called()

    @pytest.mark.asyncio
    async def test_new_content_checked_again(self, coordinator, store):
        await coordinator.on_content_changed(PATH, "# Hello\nWorld")
        record_id = await store.create(_local_comment("World"))

        assert await coordinator.on_content_changed(PATH, "# Hello\nEveryone") == [record_id]

    @pytest.mark.asyncio
    async def test_store_failure_checks_content_again(self, coordinator, store, mocker):
        record_id = await store.create(_local_comment("Gone"))
        original_update = store.update
        update = mocker.patch.object(store, "update", side_effect=StoreError("disk full"))

        with pytest.raises(StoreError):
            await coordinator.on_content_changed(PATH, "# Hello\nWorld")

        update.side_effect = original_update
        assert await coordinator.on_content_changed(PATH, "# Hello\nWorld") == [record_id]
        assert (await store.get(record_id)).status == "resolved"


class TestOrphanedRemoteThreads:
    @pytest.mark.asyncio
    async def test_resolution_survives_next_pass(self, coordinator, store, remote, content):
        remote.add(101, "fix typo", line=2)
        remote.threads = {"101": ThreadInfo("T_1", False, [])}
        await coordinator.sync(PATH)
        [record] = await store.list_comments(REPO, PATH)

        content.documents[PATH] = "# Hello\nEarth"
        assert await coordinator.on_content_changed(PATH, "# Hello\nEarth") == [record.id]
        await coordinator.sync(PATH)
        await coordinator.on_content_changed(PATH, "# Hello\nEarth")

        assert remote.called("resolve") == [("resolve", "T_1")]
        assert remote.threads["101"].is_resolved is True
        assert (await store.get(record.id)).status == "resolved"

    @pytest.mark.asyncio
    async def test_failed_remote_resolve_is_retried(self, coordinator, store, remote):
        remote.add(101, "fix typo", line=2)
        remote.threads = {"101": ThreadInfo("T_1", False, [])}
        await coordinator.sync(PATH)
        [record] = await store.list_comments(REPO, PATH)
        remote.mutation_error = RemoteError("timeout")

        assert await coordinator.on_content_changed(PATH, "# Hello\nEarth") == [record.id]
        assert remote.threads["101"].is_resolved is False

        remote.mutation_error = None
        assert await coordinator.on_content_changed(PATH, "# Hello\nEarth") == []

        assert remote.called("resolve") == [("resolve", "T_1"), ("resolve", "T_1")]
        assert remote.threads["101"].is_resolved is True

    @pytest.mark.asyncio
    async def test_reopened_after_failed_resolve_is_resolved_again(self, coordinator, store, remote, content):
        remote.add(101, "fix typo", line=2)
        remote.threads = {"101": ThreadInfo("T_1", False, [])}
        await coordinator.sync(PATH)
        [record] = await store.list_comments(REPO, PATH)
        content.documents[PATH] = "# Hello\nEarth"
        remote.mutation_error = RemoteError("timeout")
        await coordinator.on_content_changed(PATH, "# Hello\nEarth")

        await coordinator.sync(PATH)
        assert (await store.get(record.id)).status == "active"

        remote.mutation_error = None
        await coordinator.on_content_changed(PATH, "# Hello\nEarth")
        await coordinator.sync(PATH)

        assert (await store.get(record.id)).status == "resolved"


class TestRunPeriodic:
    @pytest.mark.asyncio
    async def test_runs_until_stopped(self, coordinator, store, remote, content):
        remote.add(101, "fix typo", line=2)
        await store.create(_local_comment("Gone"))
        stop = asyncio.Event()

        async def stop_soon():
            await asyncio.sleep(0.05)
            stop.set()

        await asyncio.gather(coordinator.run_periodic([PATH], 0.01, stop), stop_soon())

        assert len(remote.called("list")) >= 2
        statuses = {r.content: r.status for r in await store.list_comments(REPO, PATH)}
        assert statuses == {"fix typo": "active", "please fix": "resolved"}

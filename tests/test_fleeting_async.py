"""Tests for FleetingAsync — end-to-end sharing flows through the facade."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest
from conftest import FakeBlobStore, FakeNotifier, FakePublisher
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleeting import (
    FleetingAsync,
    FleetingConfig,
    FleetingError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    ValidationError,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


@dataclass
class World:
    alice: str
    bob: str
    carol: str
    folder_id: str
    media_id: str


@pytest.fixture
async def fleeting(
    async_engine: AsyncEngine,
    blob_store: FakeBlobStore,
    notifier: FakeNotifier,
    publisher: FakePublisher,
) -> AsyncIterator[FleetingAsync]:
    f = FleetingAsync(
        engine=async_engine,
        blob_store=blob_store,
        notifier=notifier,
        realtime=publisher,
    )
    await f.open()
    yield f
    await f.close()


@pytest.fixture
async def world(fleeting: FleetingAsync) -> World:
    alice = await fleeting.register_principal("alice@example.com", "Alice")
    bob = await fleeting.register_principal("bob@example.com", "Bob")
    carol = await fleeting.register_principal("carol@example.com", "Carol")
    folder = await fleeting.create_folder(alice, "Holiday")
    media = await fleeting.upload_media(folder.id, alice, b"jpeg-bytes", file_name="beach.jpg")
    return World(alice, bob, carol, folder.id, media.id)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_requires_engine_or_factory(self):
        with pytest.raises(ValueError, match="engine or session_factory"):
            FleetingAsync()

    def test_rejects_both(self, async_engine: AsyncEngine, session_factory):
        with pytest.raises(ValueError, match="not both"):
            FleetingAsync(engine=async_engine, session_factory=session_factory)

    async def test_session_factory(self, session_factory):
        f = FleetingAsync(session_factory=session_factory)
        alice = await f.register_principal("alice@example.com")
        folder = await f.create_folder(alice, "Mine")
        assert folder.is_owner is True
        assert folder.permission == "owner"

    async def test_closed(self, fleeting: FleetingAsync):
        await fleeting.close()
        with pytest.raises(FleetingError, match="closed"):
            await fleeting.unread_count("bob")

    async def test_register_is_idempotent(self, fleeting: FleetingAsync):
        first = await fleeting.register_principal("Dana@Example.com")
        second = await fleeting.register_principal("dana@example.com")
        assert first == second

    async def test_register_rejects_bad_email(self, fleeting: FleetingAsync):
        with pytest.raises(ValidationError):
            await fleeting.register_principal("not-an-email")


# ---------------------------------------------------------------------------
# View-once media
# ---------------------------------------------------------------------------


class TestViewOnceMedia:
    async def test_view_consumes_and_invalidates_notification(
        self, fleeting: FleetingAsync, world: World
    ):
        result = await fleeting.share_by_id(
            "media", world.media_id, world.alice, [world.bob], mode="view_once"
        )
        assert result.success_count == 1
        listed = await fleeting.list_notifications(world.bob)
        assert [n.type for n in listed.notifications] == ["view_once"]

        view = await fleeting.view_media(world.media_id, world.bob)

        assert view.consumed is True
        assert view.url is not None and view.url.endswith("/beach.jpg")
        assert await fleeting.can_view("media", world.media_id, world.bob) is False
        after = await fleeting.list_notifications(world.bob)
        assert after.notifications == []
        assert after.removed == 1

    async def test_second_view_forbidden(self, fleeting: FleetingAsync, world: World):
        await fleeting.share_by_id("media", world.media_id, world.alice, [world.bob], mode="view_once")
        await fleeting.view_media(world.media_id, world.bob)
        with pytest.raises(ForbiddenError):
            await fleeting.view_media(world.media_id, world.bob)

    async def test_folder_view_once_does_not_open_media(self, fleeting: FleetingAsync, world: World):
        await fleeting.share_by_id("folder", world.folder_id, world.alice, [world.bob], mode="view_once")

        for _ in range(3):
            with pytest.raises(ForbiddenError):
                await fleeting.view_media(world.media_id, world.bob)
        assert await fleeting.can_view("folder", world.folder_id, world.bob) is True
        assert await fleeting.list_folder_media(world.folder_id, world.bob) == []

    async def test_media_entry_consumed_despite_folder_entry(
        self, fleeting: FleetingAsync, world: World
    ):
        await fleeting.share_by_id("folder", world.folder_id, world.alice, [world.bob], mode="view_once")
        await fleeting.share_by_id("media", world.media_id, world.alice, [world.bob], mode="view_once")

        first = await fleeting.view_media(world.media_id, world.bob)
        assert first.consumed is True
        with pytest.raises(ForbiddenError):
            await fleeting.view_media(world.media_id, world.bob)
        status = await fleeting.view_once_status("folder", world.folder_id, world.bob)
        assert status is not None
        assert status.viewed is False

    async def test_owner_view_never_consumes(self, fleeting: FleetingAsync, world: World):
        view = await fleeting.view_media(world.media_id, world.alice)
        assert view.consumed is False

    async def test_stranger_forbidden(self, fleeting: FleetingAsync, world: World):
        with pytest.raises(ForbiddenError):
            await fleeting.view_media(world.media_id, world.carol)

    async def test_mark_notification_viewed(
        self, fleeting: FleetingAsync, world: World, publisher: FakePublisher
    ):
        result = await fleeting.share_by_email(
            "media", world.media_id, world.alice, ["bob@example.com"], mode="view_once"
        )
        notification_id = result.results[0].notification_id
        assert notification_id is not None

        consumed = await fleeting.mark_notification_viewed(notification_id, world.bob)
        assert consumed.consumed is True
        assert consumed.resource_type == "media"

        replay = await fleeting.mark_notification_viewed(notification_id, world.bob)
        assert replay.consumed is False

        status = await fleeting.view_once_status("media", world.media_id, world.bob)
        assert status is not None
        assert status.viewed is True
        assert status.can_view is False
        assert await fleeting.list_view_once_media(world.bob) == []
        assert await fleeting.unread_count(world.bob) == 0

        consumed_events = [e for _, e in publisher.published if e["type"] == "view_consumed"]
        assert [e["actor_id"] for e in consumed_events] == [world.bob]

    async def test_mark_viewed_hides_media_even_with_folder_grant(
        self, fleeting: FleetingAsync, world: World
    ):
        await fleeting.share_by_id("folder", world.folder_id, world.alice, [world.bob])
        result = await fleeting.share_by_id(
            "media", world.media_id, world.alice, [world.bob], mode="view_once"
        )
        notification_id = result.results[0].notification_id
        assert notification_id is not None

        await fleeting.mark_notification_viewed(notification_id, world.bob)

        assert await fleeting.can_view("folder", world.folder_id, world.bob) is True
        assert await fleeting.can_view("media", world.media_id, world.bob) is False
        assert await fleeting.unhide_media(world.media_id, world.bob, requester_id=world.alice)
        assert await fleeting.can_view("media", world.media_id, world.bob) is True

    async def test_mark_viewed_wrong_recipient(self, fleeting: FleetingAsync, world: World):
        result = await fleeting.share_by_id("media", world.media_id, world.alice, [world.bob])
        notification_id = result.results[0].notification_id
        assert notification_id is not None
        with pytest.raises(NotFoundError):
            await fleeting.mark_notification_viewed(notification_id, world.carol)

    async def test_disable_view_once_revokes_entries(self, fleeting: FleetingAsync, world: World):
        await fleeting.share_by_id(
            "media", world.media_id, world.alice, [world.bob, world.carol], mode="view_once"
        )
        assert len(await fleeting.list_view_once_media(world.bob)) == 1

        with pytest.raises(ForbiddenError):
            await fleeting.set_view_once("media", world.media_id, False, requester_id=world.bob)
        removed = await fleeting.set_view_once("media", world.media_id, False, requester_id=world.alice)

        assert removed == 2
        assert await fleeting.can_view("media", world.media_id, world.bob) is False
        assert (await fleeting.list_notifications(world.carol)).notifications == []

    async def test_remove_view_once_user(self, fleeting: FleetingAsync, world: World):
        await fleeting.share_by_id("media", world.media_id, world.alice, [world.bob], mode="view_once")
        assert await fleeting.remove_view_once_user(
            "media", world.media_id, world.bob, requester_id=world.alice
        )
        assert await fleeting.view_once_status("media", world.media_id, world.bob) is None


# ---------------------------------------------------------------------------
# Folders
# ---------------------------------------------------------------------------


class TestFolderShares:
    async def test_deleted_folder_notification_removed(self, fleeting: FleetingAsync, world: World):
        await fleeting.share_by_id("folder", world.folder_id, world.alice, [world.bob], permission="view")
        assert (await fleeting.list_notifications(world.bob)).total == 1

        assert await fleeting.delete_folder(world.folder_id, requester_id=world.alice) == 1

        result = await fleeting.list_notifications(world.bob)
        assert result.notifications == []
        assert result.removed == 1
        stats = await fleeting.notification_stats(world.bob)
        assert stats.total == 0

    async def test_persistent_view_does_not_consume(self, fleeting: FleetingAsync, world: World):
        await fleeting.share_by_id("folder", world.folder_id, world.alice, [world.bob], permission="upload")
        for _ in range(2):
            view = await fleeting.view_folder(world.folder_id, world.bob)
            assert view.consumed is False
        assert view.folder is not None
        assert view.folder.permission == "upload"
        assert view.folder.can_upload is True

        media = await fleeting.list_folder_media(world.folder_id, world.bob)
        assert [m.file_name for m in media] == ["beach.jpg"]

        uploaded = await fleeting.upload_media(world.folder_id, world.bob, b"x", file_name="mine.jpg")
        assert uploaded.owner_id == world.bob

    async def test_view_once_folder(self, fleeting: FleetingAsync, world: World):
        await fleeting.share_by_id("folder", world.folder_id, world.alice, [world.bob], mode="view_once")
        info = await fleeting.get_folder(world.folder_id, world.bob)
        assert info.permission == "view_once"

        view = await fleeting.view_folder(world.folder_id, world.bob)
        assert view.consumed is True
        with pytest.raises(ForbiddenError):
            await fleeting.view_folder(world.folder_id, world.bob)

    async def test_revoke(self, fleeting: FleetingAsync, world: World, publisher: FakePublisher):
        await fleeting.share_by_id("folder", world.folder_id, world.alice, [world.bob])
        shared = await fleeting.list_shared_folders(world.bob)
        assert [f.name for f in shared] == ["Holiday"]

        with pytest.raises(ForbiddenError):
            await fleeting.revoke_grant("folder", world.folder_id, world.bob, requester_id=world.bob)
        assert await fleeting.revoke_grant("folder", world.folder_id, world.bob, requester_id=world.alice)
        assert not await fleeting.revoke_grant("folder", world.folder_id, world.bob, requester_id=world.alice)

        assert await fleeting.list_shared_folders(world.bob) == []
        assert (await fleeting.list_notifications(world.bob)).notifications == []
        assert [e["type"] for p, e in publisher.published if p == world.bob][-1] == "grant_revoked"

    async def test_rename(self, fleeting: FleetingAsync, world: World):
        info = await fleeting.rename_folder(world.folder_id, "Summer", requester_id=world.alice)
        assert info.name == "Summer"

    async def test_delete_media(self, fleeting: FleetingAsync, world: World, blob_store: FakeBlobStore):
        with pytest.raises(ForbiddenError):
            await fleeting.delete_media(world.media_id, requester_id=world.bob)
        await fleeting.delete_media(world.media_id, requester_id=world.alice)
        assert blob_store.blobs == {}
        with pytest.raises(NotFoundError):
            await fleeting.view_media(world.media_id, world.alice)

    async def test_failed_commit_keeps_blobs(self, async_engine: AsyncEngine, blob_store: FakeBlobStore):
        class FlakyCommitSession(AsyncSession):
            fail = False

            async def commit(self) -> None:
                if FlakyCommitSession.fail:
                    raise SQLAlchemyError("commit failed")
                await super().commit()

        f = FleetingAsync(
            session_factory=async_sessionmaker(
                async_engine, class_=FlakyCommitSession, expire_on_commit=False
            ),
            blob_store=blob_store,
        )
        alice = await f.register_principal("alice@example.com")
        folder = await f.create_folder(alice, "Holiday")
        media = await f.upload_media(folder.id, alice, b"jpeg", file_name="beach.jpg")

        FlakyCommitSession.fail = True
        with pytest.raises(StorageError):
            await f.delete_media(media.id, requester_id=alice)
        with pytest.raises(StorageError):
            await f.delete_folder(folder.id, requester_id=alice)
        FlakyCommitSession.fail = False

        assert blob_store.deleted == []
        view = await f.view_media(media.id, alice)
        assert view.url == media.url

        assert await f.delete_folder(folder.id, requester_id=alice) == 1
        assert blob_store.blobs == {}


# ---------------------------------------------------------------------------
# Batch shares and fan-out
# ---------------------------------------------------------------------------


class TestBatchShare:
    async def test_valid_and_unknown_email(
        self, fleeting: FleetingAsync, world: World, notifier: FakeNotifier
    ):
        result = await fleeting.share_by_email(
            "folder",
            world.folder_id,
            world.alice,
            ["bob@example.com", "nobody@example.com"],
        )

        assert len(result.results) == 2
        assert [r.success for r in result.results] == [True, False]
        assert "nobody@example.com" in (result.results[1].error or "")
        assert (await fleeting.list_notifications(world.bob)).total == 1
        assert await fleeting.can_view("folder", world.folder_id, world.bob)
        assert [c[0] for c in notifier.calls] == [world.bob]
        assert notifier.calls[0][1] == "share"

    async def test_notifier_called_once_per_success(
        self, fleeting: FleetingAsync, world: World, notifier: FakeNotifier
    ):
        await fleeting.share_by_id(
            "media", world.media_id, world.alice, [world.bob, world.carol, world.alice], mode="view_once"
        )
        assert sorted(c[0] for c in notifier.calls) == sorted([world.bob, world.carol])
        assert {c[1] for c in notifier.calls} == {"view_once_share"}

    async def test_failing_notifier_does_not_abort(
        self, async_engine: AsyncEngine, blob_store: FakeBlobStore
    ):
        f = FleetingAsync(engine=async_engine, blob_store=blob_store, notifier=FakeNotifier(fail=True))
        alice = await f.register_principal("alice@example.com")
        bob = await f.register_principal("bob@example.com")
        folder = await f.create_folder(alice, "Holiday")

        result = await f.share_by_id("folder", folder.id, alice, [bob])

        assert result.success_count == 1
        assert await f.can_view("folder", folder.id, bob)

    async def test_adapters_validate_recipient_kind(self, fleeting: FleetingAsync, world: World):
        with pytest.raises(ValidationError):
            await fleeting.share_by_id("folder", world.folder_id, world.alice, ["bob@example.com"])
        with pytest.raises(ValidationError):
            await fleeting.share_by_email("folder", world.folder_id, world.alice, [world.bob])

    async def test_empty_recipients(self, fleeting: FleetingAsync, world: World):
        with pytest.raises(ValidationError):
            await fleeting.share("folder", world.folder_id, world.alice, [])

    async def test_non_owner(self, fleeting: FleetingAsync, world: World):
        with pytest.raises(ForbiddenError):
            await fleeting.share("folder", world.folder_id, world.bob, [world.carol])


# ---------------------------------------------------------------------------
# Scheduled shares
# ---------------------------------------------------------------------------


class TestScheduled:
    async def test_pending_hidden_until_executed(
        self, fleeting: FleetingAsync, world: World, notifier: FakeNotifier
    ):
        result = await fleeting.share_by_id(
            "folder",
            world.folder_id,
            world.alice,
            [world.bob],
            scheduled_for=datetime.now(UTC) + timedelta(hours=1),
        )
        notification_id = result.results[0].notification_id
        assert notification_id is not None
        assert (await fleeting.list_notifications(world.bob)).notifications == []
        assert notifier.calls == []

        (op,) = await fleeting.list_scheduled(world.alice)
        assert op.status == "pending"

        with pytest.raises(ForbiddenError):
            await fleeting.execute_scheduled(notification_id, world.bob)
        info = await fleeting.execute_scheduled(notification_id, world.alice)
        assert info.status == "executed"
        assert [c[0] for c in notifier.calls] == [world.bob]

        again = await fleeting.execute_scheduled(notification_id, world.alice)
        assert again.status == "executed"
        assert len(notifier.calls) == 1

        listed = await fleeting.list_notifications(world.bob)
        assert [n.type for n in listed.notifications] == ["scheduled"]

    async def test_include_pending(self, fleeting: FleetingAsync, world: World):
        await fleeting.share_by_id(
            "folder",
            world.folder_id,
            world.alice,
            [world.bob],
            scheduled_for=datetime.now(UTC) + timedelta(hours=1),
        )
        listed = await fleeting.list_notifications(world.bob, include_pending=True)
        assert [n.status for n in listed.notifications] == ["pending"]

    async def test_execute_missing(self, fleeting: FleetingAsync, world: World):
        with pytest.raises(NotFoundError):
            await fleeting.execute_scheduled("nope", world.alice)


# ---------------------------------------------------------------------------
# Notification housekeeping
# ---------------------------------------------------------------------------


class TestHousekeeping:
    async def test_read_and_delete(self, fleeting: FleetingAsync, world: World):
        result = await fleeting.share_by_id("folder", world.folder_id, world.alice, [world.bob])
        notification_id = result.results[0].notification_id
        assert notification_id is not None
        await fleeting.share_by_id("media", world.media_id, world.alice, [world.bob])

        await fleeting.mark_notification_read(notification_id, world.bob)
        assert await fleeting.unread_count(world.bob) == 1
        assert await fleeting.mark_all_read(world.bob) == 1

        await fleeting.delete_notification(notification_id, world.bob)
        with pytest.raises(NotFoundError):
            await fleeting.delete_notification(notification_id, world.bob)
        assert (await fleeting.notification_stats(world.bob)).total == 1

    async def test_cleanup(self, fleeting: FleetingAsync, world: World):
        await fleeting.share_by_id("media", world.media_id, world.alice, [world.bob], mode="view_once")
        result = await fleeting.cleanup_notifications(now=datetime.now(UTC) + timedelta(hours=25))
        assert result.expired_deleted == 1

    async def test_sweep(self, fleeting: FleetingAsync, world: World):
        await fleeting.share_by_id("folder", world.folder_id, world.alice, [world.bob, world.carol])
        await fleeting.revoke_grant("folder", world.folder_id, world.carol, requester_id=world.alice)
        result = await fleeting.sweep_notifications()
        assert result.checked == 2
        assert result.deleted == 1

    async def test_hide_permissions(self, fleeting: FleetingAsync, world: World):
        await fleeting.share_by_id("media", world.media_id, world.alice, [world.bob])
        with pytest.raises(ForbiddenError):
            await fleeting.hide_media(world.media_id, world.bob, requester_id=world.carol)
        assert await fleeting.hide_media(world.media_id, world.bob, requester_id=world.bob)
        with pytest.raises(ForbiddenError):
            await fleeting.unhide_media(world.media_id, world.bob, requester_id=world.bob)

    async def test_config_limit(self, async_engine: AsyncEngine):
        f = FleetingAsync(engine=async_engine, config=FleetingConfig(default_list_limit=1))
        alice = await f.register_principal("alice@example.com")
        bob = await f.register_principal("bob@example.com")
        for name in ("One", "Two"):
            folder = await f.create_folder(alice, name)
            await f.share_by_id("folder", folder.id, alice, [bob])
        assert (await f.list_notifications(bob)).total == 1
        assert (await f.list_notifications(bob, limit=5)).total == 2

"""Tests for ShareCoordinator — validated, per-recipient share fan-out."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest
from conftest import FakeResolver, make_folder, make_media

from fleeting.events import EventBus, EventType, ShareEvent
from fleeting.exceptions import ForbiddenError, NotFoundError, ValidationError
from fleeting.notifications.service import NotificationService
from fleeting.permissions import GrantKind
from fleeting.sharing.coordinator import (
    ShareCoordinator,
    ShareRequest,
    normalize_recipients,
    notification_type_for,
)
from fleeting.sharing.grants import GrantService
from fleeting.utils import ensure_utc

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

PRINCIPALS = {"bob@example.com": "bob", "carol@example.com": "carol", "alice@example.com": "alice"}


@pytest.fixture
def events() -> list[ShareEvent]:
    return []


@pytest.fixture
def coordinator(events: list[ShareEvent]) -> ShareCoordinator:
    bus = EventBus()

    async def collect(event: ShareEvent) -> None:
        events.append(event)

    bus.register(EventType.SHARE_CREATED, collect)
    return ShareCoordinator(
        GrantService(), NotificationService(), FakeResolver(PRINCIPALS), event_bus=bus
    )


async def _seed(session_factory: Callable[..., AsyncSession]) -> tuple[str, str]:
    async with session_factory() as session:
        folder = await make_folder(session, "alice")
        media = await make_media(session, folder)
        await session.commit()
        return folder.id, media.id


class TestHelpers:
    def test_normalize_dedupes(self):
        assert normalize_recipients([" Bob@Example.com", "bob@example.com", "carol"]) == [
            "bob@example.com",
            "carol",
        ]

    @pytest.mark.parametrize("bad", [[], "bob", ["bob", ""], ["bob", None]])
    def test_normalize_rejects(self, bad):
        with pytest.raises(ValidationError):
            normalize_recipients(bad)

    def test_notification_type(self):
        assert notification_type_for("media", "view_once", True).value == "scheduled"
        assert notification_type_for("media", "view_once", False).value == "view_once"
        assert notification_type_for("folder", "persistent", False).value == "folder_shared"
        assert notification_type_for("media", "persistent", False).value == "shared"


class TestValidation:
    async def test_missing_resource(
        self, coordinator: ShareCoordinator, session_factory: Callable[..., AsyncSession]
    ):
        request = ShareRequest("folder", "nope", "alice", ["bob"])
        with pytest.raises(NotFoundError):
            await coordinator.create_share(session_factory, request)

    async def test_non_owner_forbidden(
        self, coordinator: ShareCoordinator, session_factory: Callable[..., AsyncSession]
    ):
        folder_id, _ = await _seed(session_factory)
        with pytest.raises(ForbiddenError):
            await coordinator.create_share(
                session_factory, ShareRequest("folder", folder_id, "bob", ["carol"])
            )

    async def test_expiry_before_schedule(
        self, coordinator: ShareCoordinator, session_factory: Callable[..., AsyncSession]
    ):
        folder_id, _ = await _seed(session_factory)
        now = datetime.now(UTC)
        request = ShareRequest(
            "folder", folder_id, "alice", ["bob"],
            scheduled_for=now + timedelta(hours=2),
            expires_at=now + timedelta(hours=1),
        )
        with pytest.raises(ValidationError, match="expires_at"):
            await coordinator.create_share(session_factory, request)

    async def test_invalid_mode(
        self, coordinator: ShareCoordinator, session_factory: Callable[..., AsyncSession]
    ):
        folder_id, _ = await _seed(session_factory)
        with pytest.raises(ValidationError, match="share mode"):
            await coordinator.create_share(
                session_factory, ShareRequest("folder", folder_id, "alice", ["bob"], mode="forever")
            )

    async def test_upload_on_media(
        self, coordinator: ShareCoordinator, session_factory: Callable[..., AsyncSession]
    ):
        _, media_id = await _seed(session_factory)
        with pytest.raises(ValidationError, match="folders only"):
            await coordinator.create_share(
                session_factory,
                ShareRequest("media", media_id, "alice", ["bob"], permission="upload"),
            )


class TestBatch:
    async def test_partial_success(
        self,
        coordinator: ShareCoordinator,
        session_factory: Callable[..., AsyncSession],
        events: list[ShareEvent],
    ):
        folder_id, _ = await _seed(session_factory)
        request = ShareRequest(
            "folder", folder_id, "alice", ["bob@example.com", "ghost@example.com"]
        )

        result = await coordinator.create_share(session_factory, request)

        assert len(result.results) == 2
        ok, failed = result.results
        assert ok.success is True
        assert ok.principal_id == "bob"
        assert ok.notification_id is not None
        assert failed.success is False
        assert "No user found" in (failed.error or "")
        assert result.success_count == 1
        assert result.failure_count == 1
        assert result.message == "Shared with 1 of 2 recipient(s)"

        async with session_factory() as session:
            grants = GrantService()
            assert await grants.get_grant(session, "folder", folder_id, "bob", "persistent") is not None
            stored = await NotificationService().list_for_recipient(session, "bob")
            assert [n.type for n in stored] == ["folder_shared"]

        assert [e.principal_id for e in events] == ["bob"]

    async def test_self_share_fails(
        self, coordinator: ShareCoordinator, session_factory: Callable[..., AsyncSession]
    ):
        folder_id, _ = await _seed(session_factory)
        result = await coordinator.create_share(
            session_factory, ShareRequest("folder", folder_id, "alice", ["alice@example.com", "bob"])
        )
        assert [r.success for r in result.results] == [False, True]
        assert result.results[0].error == "Cannot share with yourself"

    async def test_invalid_email_recorded(
        self, coordinator: ShareCoordinator, session_factory: Callable[..., AsyncSession]
    ):
        folder_id, _ = await _seed(session_factory)
        result = await coordinator.create_share(
            session_factory, ShareRequest("folder", folder_id, "alice", ["bob@", "carol"])
        )
        assert [r.success for r in result.results] == [False, True]
        assert "Invalid email" in (result.results[0].error or "")

    async def test_unknown_id_recorded(
        self, coordinator: ShareCoordinator, session_factory: Callable[..., AsyncSession]
    ):
        folder_id, _ = await _seed(session_factory)
        result = await coordinator.create_share(
            session_factory, ShareRequest("folder", folder_id, "alice", ["zed"])
        )
        assert result.failure_count == 1

    async def test_resolver_failure_isolated(
        self,
        session_factory: Callable[..., AsyncSession],
        events: list[ShareEvent],
    ):
        class FlakyResolver(FakeResolver):
            async def find_by_email(self, email: str) -> str | None:
                if email.startswith("down@"):
                    raise RuntimeError("directory down")
                return await super().find_by_email(email)

        bus = EventBus()

        async def collect(event: ShareEvent) -> None:
            events.append(event)

        bus.register(EventType.SHARE_CREATED, collect)
        coordinator = ShareCoordinator(
            GrantService(), NotificationService(), FlakyResolver(PRINCIPALS), event_bus=bus
        )
        folder_id, _ = await _seed(session_factory)

        result = await coordinator.create_share(
            session_factory,
            ShareRequest("folder", folder_id, "alice", ["bob@example.com", "down@example.com", "carol"]),
        )

        assert [r.success for r in result.results] == [True, False, True]
        assert "directory down" in (result.results[1].error or "")
        assert result.results[1].principal_id is None
        assert [e.principal_id for e in events] == ["bob", "carol"]

    async def test_view_once_media(
        self, coordinator: ShareCoordinator, session_factory: Callable[..., AsyncSession]
    ):
        folder_id, media_id = await _seed(session_factory)
        before = datetime.now(UTC)
        result = await coordinator.create_share(
            session_factory,
            ShareRequest("media", media_id, "alice", ["bob"], mode="view_once", message="Just once"),
        )
        assert result.success_count == 1

        async with session_factory() as session:
            grants = GrantService()
            entry = await grants.get_grant(session, "media", media_id, "bob", GrantKind.VIEW_ONCE)
            assert entry is not None
            assert entry.viewed is False
            media = await grants.get_media(session, media_id)
            assert media is not None
            assert media.view_once_enabled is True

            (n,) = await NotificationService().list_for_recipient(session, "bob")
            assert n.type == "view_once"
            assert n.view_once is True
            assert n.media_id == media_id
            assert n.folder_id == folder_id
            assert n.message == "Just once"
            expires = ensure_utc(n.expires_at)
            assert expires is not None
            assert before + timedelta(hours=23) < expires <= datetime.now(UTC) + timedelta(hours=24)

    async def test_scheduled_share_not_announced_yet(
        self,
        coordinator: ShareCoordinator,
        session_factory: Callable[..., AsyncSession],
        events: list[ShareEvent],
    ):
        folder_id, _ = await _seed(session_factory)
        result = await coordinator.create_share(
            session_factory,
            ShareRequest(
                "folder", folder_id, "alice", ["bob"],
                scheduled_for=datetime.now(UTC) + timedelta(hours=1),
            ),
        )
        assert result.success_count == 1
        assert events == []

        async with session_factory() as session:
            (n,) = await NotificationService().list_for_recipient(session, "bob")
            assert n.type == "scheduled"
            # The grant is written immediately; only delivery is deferred.
            grant = await GrantService().get_grant(session, "folder", folder_id, "bob", "persistent")
            assert grant is not None

    async def test_handler_failure_does_not_abort(
        self, session_factory: Callable[..., AsyncSession]
    ):
        bus = EventBus()

        async def boom(event: ShareEvent) -> None:
            raise RuntimeError("push failed")

        bus.register(EventType.SHARE_CREATED, boom)
        coordinator = ShareCoordinator(
            GrantService(), NotificationService(), FakeResolver(PRINCIPALS), event_bus=bus
        )
        folder_id, _ = await _seed(session_factory)
        result = await coordinator.create_share(
            session_factory, ShareRequest("folder", folder_id, "alice", ["bob", "carol"])
        )
        assert result.success_count == 2

    async def test_reshare_is_idempotent_for_grants(
        self, coordinator: ShareCoordinator, session_factory: Callable[..., AsyncSession]
    ):
        folder_id, _ = await _seed(session_factory)
        for permission in ("view", "upload"):
            await coordinator.create_share(
                session_factory,
                ShareRequest("folder", folder_id, "alice", ["bob"], permission=permission),
            )
        async with session_factory() as session:
            grants = await GrantService().list_grants(session, "folder", folder_id)
            assert [(g.grantee_id, g.mode) for g in grants] == [("bob", "upload")]

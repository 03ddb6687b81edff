"""FleetingAsync — primary async class exposing the host API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleeting.config import FleetingConfig
from fleeting.events import EventBus, EventType, ShareEvent
from fleeting.exceptions import FleetingError, ForbiddenError, StorageError, ValidationError
from fleeting.models.grants import Grant
from fleeting.models.notifications import Notification
from fleeting.models.principals import Principal
from fleeting.models.resources import Folder, MediaHide, MediaItem
from fleeting.notifications.reconciler import NotificationReconciler
from fleeting.notifications.scheduling import ScheduledOperations, ScheduleStatus, notification_status
from fleeting.notifications.service import NotificationService
from fleeting.permissions import GrantMode, ResourceType, ShareMode
from fleeting.sharing.access import AccessPolicy
from fleeting.sharing.consumption import ViewConsumption
from fleeting.sharing.coordinator import ShareCoordinator, ShareRequest
from fleeting.sharing.grants import GrantService, resource_type_value
from fleeting.sharing.principals import DatabasePrincipalResolver
from fleeting.sharing.resources import ResourceService
from fleeting.types import ConsumeResult, FolderInfo, MediaInfo, ViewResult
from fleeting.utils import ensure_utc, utcnow

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable, Iterable, Sequence
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncEngine

    from fleeting.models.notifications import NotificationType
    from fleeting.models.resources import FolderBase, MediaItemBase
    from fleeting.protocols import BlobStore, Notifier, PrincipalResolver, RealtimePublisher
    from fleeting.sharing.access import FolderAccess, MediaAccess
    from fleeting.types import (
        BatchShareResult,
        CleanupResult,
        ListNotificationsResult,
        NotificationStats,
        ScheduledOperationInfo,
        SweepResult,
        ViewOnceStatus,
    )

logger = logging.getLogger(__name__)

_TABLES = (Principal, Folder, MediaItem, MediaHide, Grant, Notification)


def _folder_info(folder: FolderBase, snapshot: FolderAccess, principal_id: str, policy: AccessPolicy) -> FolderInfo:
    permission = policy.permission_for(snapshot, principal_id)
    if permission is None and policy.view_once_status(snapshot, principal_id) is not None:
        permission = ShareMode.VIEW_ONCE.value
    return FolderInfo(
        id=folder.id,
        name=folder.name,
        owner_id=folder.owner_id,
        permission=permission,
        is_owner=policy.is_owner(snapshot, principal_id),
        can_upload=policy.can_upload(snapshot, principal_id),
        created_at=ensure_utc(folder.created_at),
        updated_at=ensure_utc(folder.updated_at),
    )


def _media_info(media: MediaItemBase) -> MediaInfo:
    return MediaInfo(
        id=media.id,
        folder_id=media.folder_id,
        owner_id=media.owner_id,
        file_name=media.file_name,
        file_type=media.file_type,
        url=media.url,
        size_bytes=media.size_bytes,
        view_once_enabled=media.view_once_enabled,
        created_at=ensure_utc(media.created_at),
    )


class FleetingAsync:
    """Async facade wiring grants, notifications, reconciliation, and events.

    Every public method runs in its own session: committed on success,
    rolled back on error.  Taxonomy errors (``NotFoundError``,
    ``ForbiddenError``, ``ValidationError``) propagate unchanged; database
    failures surface as ``StorageError``.

    Engine-based (tables are created on first use)::

        engine = create_async_engine("sqlite+aiosqlite:///fleeting.db")
        async with FleetingAsync(engine=engine, blob_store=store) as f:
            result = await f.share_by_email(
                "media", media_id, owner_id, ["friend@example.com"], mode="view_once"
            )

    Session-factory based (the caller owns the schema)::

        f = FleetingAsync(session_factory=my_sessionmaker)
    """

    def __init__(
        self,
        *,
        engine: AsyncEngine | None = None,
        session_factory: Callable[..., AsyncSession] | None = None,
        config: FleetingConfig | None = None,
        blob_store: BlobStore | None = None,
        notifier: Notifier | None = None,
        realtime: RealtimePublisher | None = None,
        resolver: PrincipalResolver | None = None,
    ) -> None:
        if engine is not None and session_factory is not None:
            raise ValueError("Provide engine or session_factory, not both")
        if engine is None and session_factory is None:
            raise ValueError("Provide engine or session_factory")

        self._engine = engine
        self._session_factory: Callable[..., AsyncSession] = session_factory or async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )
        self._tables_ready = engine is None
        self._closed = False
        self._config = config or FleetingConfig()

        # Services (stateless, session passed per call)
        self._policy = AccessPolicy()
        self._event_bus = EventBus()
        self._principals = DatabasePrincipalResolver(self._session_factory)
        self._resolver: PrincipalResolver = resolver or self._principals
        self._grants = GrantService()
        self._consumption = ViewConsumption()
        self._notifications = NotificationService(action_url_prefix=self._config.action_url_prefix)
        self._scheduled = ScheduledOperations()
        self._reconciler = NotificationReconciler(self._notifications, self._grants, self._policy)
        self._resources = ResourceService(self._grants, blob_store=blob_store, policy=self._policy)
        self._coordinator = ShareCoordinator(
            self._grants,
            self._notifications,
            self._resolver,
            event_bus=self._event_bus,
            policy=self._policy,
            view_once_ttl=timedelta(hours=self._config.view_once_ttl_hours),
        )

        # Collaborator fan-out
        self._notifier = notifier
        self._realtime = realtime
        if notifier is not None:
            self._event_bus.register(EventType.SHARE_CREATED, self._on_share_created)
        if realtime is not None:
            for event_type in EventType:
                self._event_bus.register(event_type, self._publish)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Create the tables on the engine if they do not exist yet."""
        if self._tables_ready:
            return
        assert self._engine is not None
        async with self._engine.begin() as conn:
            for model in _TABLES:
                await conn.run_sync(
                    lambda c, m=model: m.__table__.create(c, checkfirst=True)  # type: ignore[attr-defined]
                )
        self._tables_ready = True

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._event_bus.clear()

    async def __aenter__(self) -> FleetingAsync:
        await self.open()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession]:
        """Yield a session; commit on success, roll back on error."""
        if self._closed:
            raise FleetingError("FleetingAsync is closed")
        await self.open()
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except FleetingError:
            await session.rollback()
            raise
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("Storage operation failed", exc_info=True)
            raise StorageError(str(e)) from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def _on_share_created(self, event: ShareEvent) -> None:
        assert self._notifier is not None
        template = "view_once_share" if event.view_once else "share"
        await self._notifier.notify(event.principal_id, template, event.to_payload())

    async def _publish(self, event: ShareEvent) -> None:
        assert self._realtime is not None
        await self._realtime.publish(event.principal_id, event.to_payload())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _snapshot(
        self,
        session: AsyncSession,
        resource_type: ResourceType | str,
        resource_id: str,
    ) -> FolderAccess | MediaAccess:
        if resource_type_value(resource_type) == ResourceType.FOLDER.value:
            folder = await self._resources.get_folder(session, resource_id)
            return await self._grants.folder_snapshot(session, folder)
        media = await self._resources.get_media(session, resource_id)
        return await self._grants.media_snapshot(session, media)

    async def _require_owner(
        self,
        session: AsyncSession,
        resource_type: ResourceType | str,
        resource_id: str,
        requester_id: str,
    ) -> FolderAccess | MediaAccess:
        snapshot = await self._snapshot(session, resource_type, resource_id)
        if not self._policy.can_share(snapshot, requester_id):
            raise ForbiddenError("Only the owner can manage sharing on this resource")
        return snapshot

    # ------------------------------------------------------------------
    # Principals
    # ------------------------------------------------------------------

    async def register_principal(self, email: str, display_name: str = "") -> str:
        """Register a principal in the built-in table and return its id."""
        await self.open()
        try:
            principal = await self._principals.register(email, display_name)
        except SQLAlchemyError as e:
            logger.error("Failed to register principal %s", email, exc_info=True)
            raise StorageError(str(e)) from e
        return principal.id

    # ------------------------------------------------------------------
    # Shares
    # ------------------------------------------------------------------

    async def share(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        sender_id: str,
        recipients: Sequence[str],
        *,
        mode: ShareMode | str = ShareMode.PERSISTENT,
        permission: GrantMode | str = GrantMode.VIEW,
        scheduled_for: datetime | None = None,
        expires_at: datetime | None = None,
        message: str | None = None,
    ) -> BatchShareResult:
        """Share a resource with recipients given as principal ids or emails."""
        await self.open()
        request = ShareRequest(
            resource_type=resource_type,
            resource_id=resource_id,
            sender_id=sender_id,
            recipients=recipients,
            mode=mode,
            permission=permission,
            scheduled_for=scheduled_for,
            expires_at=expires_at,
            message=message,
        )
        try:
            return await self._coordinator.create_share(self._session_factory, request)
        except SQLAlchemyError as e:
            logger.error("Share of %s %s failed", resource_type, resource_id, exc_info=True)
            raise StorageError(str(e)) from e

    async def share_by_id(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        sender_id: str,
        recipient_ids: Sequence[str],
        **kwargs: Any,
    ) -> BatchShareResult:
        if any("@" in r for r in recipient_ids if isinstance(r, str)):
            raise ValidationError("share_by_id expects principal ids, not emails")
        return await self.share(resource_type, resource_id, sender_id, recipient_ids, **kwargs)

    async def share_by_email(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        sender_id: str,
        emails: Sequence[str],
        **kwargs: Any,
    ) -> BatchShareResult:
        if any(isinstance(e, str) and "@" not in e for e in emails):
            raise ValidationError("share_by_email expects email addresses")
        return await self.share(resource_type, resource_id, sender_id, emails, **kwargs)

    async def revoke_grant(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        grantee_id: str,
        *,
        requester_id: str,
    ) -> bool:
        """Remove a persistent grant. Owner only."""
        async with self._session() as session:
            await self._require_owner(session, resource_type, resource_id, requester_id)
            removed = await self._grants.remove_persistent_grant(
                session, resource_type, resource_id, grantee_id
            )
        if removed:
            await self._event_bus.emit(
                ShareEvent(
                    event_type=EventType.GRANT_REVOKED,
                    principal_id=grantee_id,
                    resource_type=resource_type_value(resource_type),
                    resource_id=resource_id,
                    actor_id=requester_id,
                )
            )
        return removed

    async def remove_view_once_user(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        grantee_id: str,
        *,
        requester_id: str,
    ) -> bool:
        """Remove a grantee's view-once entry. Owner only."""
        async with self._session() as session:
            await self._require_owner(session, resource_type, resource_id, requester_id)
            removed = await self._grants.remove_view_once_entry(
                session, resource_type, resource_id, grantee_id
            )
        if removed:
            await self._event_bus.emit(
                ShareEvent(
                    event_type=EventType.GRANT_REVOKED,
                    principal_id=grantee_id,
                    resource_type=resource_type_value(resource_type),
                    resource_id=resource_id,
                    actor_id=requester_id,
                    view_once=True,
                )
            )
        return removed

    async def set_view_once(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        enabled: bool,
        *,
        requester_id: str,
    ) -> int:
        """Toggle view-once sharing. Disabling deletes every view-once entry.

        Returns the number of entries deleted.
        """
        async with self._session() as session:
            await self._require_owner(session, resource_type, resource_id, requester_id)
            if resource_type_value(resource_type) == ResourceType.FOLDER.value:
                resource: FolderBase | MediaItemBase = await self._resources.get_folder(session, resource_id)
            else:
                resource = await self._resources.get_media(session, resource_id)
            return await self._grants.set_view_once_enabled(session, resource, enabled)

    async def hide_media(self, media_id: str, principal_id: str, *, requester_id: str) -> bool:
        """Hide media from *principal_id*. The owner or the principal themself may hide."""
        async with self._session() as session:
            media = await self._resources.get_media(session, media_id)
            if requester_id not in (media.owner_id, principal_id):
                raise ForbiddenError("Only the owner can hide media from other users")
            return await self._grants.hide_media(session, media_id, principal_id)

    async def unhide_media(self, media_id: str, principal_id: str, *, requester_id: str) -> bool:
        """Lift a hide. Owner only."""
        async with self._session() as session:
            await self._require_owner(session, ResourceType.MEDIA, media_id, requester_id)
            return await self._grants.unhide_media(session, media_id, principal_id)

    async def view_once_status(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        principal_id: str,
    ) -> ViewOnceStatus | None:
        async with self._session() as session:
            snapshot = await self._snapshot(session, resource_type, resource_id)
        return self._policy.view_once_status(snapshot, principal_id)

    async def can_view(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        principal_id: str,
    ) -> bool:
        async with self._session() as session:
            snapshot = await self._snapshot(session, resource_type, resource_id)
        return self._policy.can_view(snapshot, principal_id)

    async def list_shared_folders(self, principal_id: str) -> list[FolderInfo]:
        """Folders shared with *principal_id* through a persistent grant."""
        async with self._session() as session:
            rows = await self._grants.list_folders_shared_with(session, principal_id)
            infos = []
            for folder, _grant in rows:
                snapshot = await self._grants.folder_snapshot(session, folder)
                infos.append(_folder_info(folder, snapshot, principal_id, self._policy))
        return infos

    async def list_view_once_media(self, principal_id: str) -> list[MediaInfo]:
        """Media *principal_id* can still view once."""
        async with self._session() as session:
            media = await self._grants.list_view_once_media_for(session, principal_id)
        return [_media_info(m) for m in media]

    # ------------------------------------------------------------------
    # Viewing
    # ------------------------------------------------------------------

    async def view_media(self, media_id: str, principal_id: str) -> ViewResult:
        """Open a media item, consuming the view-once entry if that is the only access path."""
        async with self._session() as session:
            media = await self._resources.get_media(session, media_id)
            snapshot = await self._grants.media_snapshot(session, media)
            if not self._policy.can_view(snapshot, principal_id):
                raise ForbiddenError("You do not have access to this media")

            consumed = False
            if not self._policy.has_folder_access(snapshot, principal_id):
                outcome = await self._consumption.consume(
                    session, ResourceType.MEDIA, media_id, principal_id
                )
                if not outcome.consumed:
                    raise ForbiddenError("This view-once media has already been viewed")
                consumed = True
            info = _media_info(media)

        if consumed:
            await self._emit_consumed(ResourceType.MEDIA.value, media_id, info.owner_id, principal_id)
        return ViewResult(
            resource_type=ResourceType.MEDIA.value,
            resource_id=media_id,
            consumed=consumed,
            url=info.url,
            media=info,
        )

    async def view_folder(self, folder_id: str, principal_id: str) -> ViewResult:
        """Open a folder, consuming the view-once entry if that is the only access path."""
        async with self._session() as session:
            folder = await self._resources.get_folder(session, folder_id)
            snapshot = await self._grants.folder_snapshot(session, folder)
            if not self._policy.can_view(snapshot, principal_id):
                raise ForbiddenError("You do not have access to this folder")

            consumed = False
            if self._policy.permission_for(snapshot, principal_id) is None:
                outcome = await self._consumption.consume(
                    session, ResourceType.FOLDER, folder_id, principal_id
                )
                if not outcome.consumed:
                    raise ForbiddenError("This view-once folder has already been viewed")
                consumed = True
            info = _folder_info(folder, snapshot, principal_id, self._policy)

        if consumed:
            await self._emit_consumed(ResourceType.FOLDER.value, folder_id, info.owner_id, principal_id)
        return ViewResult(
            resource_type=ResourceType.FOLDER.value,
            resource_id=folder_id,
            consumed=consumed,
            folder=info,
        )

    async def _emit_consumed(self, resource_type: str, resource_id: str, owner_id: str, viewer_id: str) -> None:
        await self._event_bus.emit(
            ShareEvent(
                event_type=EventType.VIEW_CONSUMED,
                principal_id=owner_id,
                resource_type=resource_type,
                resource_id=resource_id,
                actor_id=viewer_id,
                view_once=True,
            )
        )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def list_notifications(
        self,
        recipient_id: str,
        *,
        types: Iterable[NotificationType | str] | None = None,
        include_viewed: bool = False,
        include_expired: bool = False,
        include_pending: bool = False,
        limit: int | None = None,
    ) -> ListNotificationsResult:
        """Reconciled listing: stale notifications are deleted, not returned."""
        async with self._session() as session:
            return await self._reconciler.list_valid(
                session,
                recipient_id,
                types=types,
                include_viewed=include_viewed,
                include_expired=include_expired,
                include_pending=include_pending,
                limit=limit or self._config.default_list_limit,
            )

    async def mark_notification_viewed(self, notification_id: str, recipient_id: str) -> ConsumeResult:
        """Mark a notification viewed; for view-once shares, consume the grant.

        The grant on the notification's media is consumed (or on its folder
        when there is no media) and the media is hidden from the recipient.
        Repeat calls return ``consumed=False``.
        """
        now = utcnow()
        async with self._session() as session:
            notification = await self._notifications.get_for_recipient(
                session, notification_id, recipient_id
            )
            sender_id = notification.sender_id
            await self._notifications.mark_viewed(session, notification, now=now)
            if not notification.is_read:
                notification.is_read = True
                session.add(notification)

            result = ConsumeResult(consumed=False)
            if notification.is_view_once:
                if notification.media_id is not None:
                    result = await self._consumption.consume(
                        session, ResourceType.MEDIA, notification.media_id, recipient_id, now=now
                    )
                    await self._grants.hide_media(session, notification.media_id, recipient_id)
                elif notification.folder_id is not None:
                    result = await self._consumption.consume(
                        session, ResourceType.FOLDER, notification.folder_id, recipient_id, now=now
                    )

        if result.consumed:
            assert result.resource_type is not None and result.resource_id is not None
            await self._emit_consumed(result.resource_type, result.resource_id, sender_id, recipient_id)
        return result

    async def mark_notification_read(self, notification_id: str, recipient_id: str) -> None:
        async with self._session() as session:
            await self._notifications.mark_read(session, notification_id, recipient_id)

    async def mark_all_read(self, recipient_id: str) -> int:
        async with self._session() as session:
            return await self._notifications.mark_all_read(session, recipient_id)

    async def delete_notification(self, notification_id: str, recipient_id: str) -> None:
        async with self._session() as session:
            notification = await self._notifications.get_for_recipient(
                session, notification_id, recipient_id
            )
            resource_type = ResourceType.MEDIA if notification.media_id else ResourceType.FOLDER
            resource_id = notification.media_id or notification.folder_id or ""
            await self._notifications.delete(session, notification_id, recipient_id)
        await self._event_bus.emit(
            ShareEvent(
                event_type=EventType.NOTIFICATION_REMOVED,
                principal_id=recipient_id,
                resource_type=resource_type.value,
                resource_id=resource_id,
                notification_id=notification_id,
            )
        )

    async def unread_count(self, recipient_id: str) -> int:
        async with self._session() as session:
            return await self._notifications.unread_count(session, recipient_id)

    async def notification_stats(self, recipient_id: str) -> NotificationStats:
        async with self._session() as session:
            return await self._notifications.stats(session, recipient_id)

    async def sweep_notifications(self) -> SweepResult:
        """Reconcile every recipient's notifications at once."""
        async with self._session() as session:
            return await self._reconciler.sweep(session)

    async def cleanup_notifications(self, *, now: datetime | None = None) -> CleanupResult:
        """Delete expired notifications and read ones past the retention window."""
        async with self._session() as session:
            return await self._notifications.cleanup_expired(
                session, read_retention_days=self._config.read_retention_days, now=now
            )

    async def cleanup_viewed_notifications(self, recipient_id: str) -> int:
        async with self._session() as session:
            return await self._notifications.cleanup_viewed(session, recipient_id)

    # ------------------------------------------------------------------
    # Scheduled operations
    # ------------------------------------------------------------------

    async def execute_scheduled(self, notification_id: str, requester_id: str) -> ScheduledOperationInfo:
        """Deliver a pending scheduled notification now. Sender only."""
        now = utcnow()
        async with self._session() as session:
            notification = await session.get(self._notifications.model, notification_id)
            was_pending = (
                notification is not None
                and notification_status(notification, now) is ScheduleStatus.PENDING
            )
            info = await self._scheduled.execute_now(session, notification_id, requester_id, now=now)
            view_once = notification.is_view_once if notification is not None else False

        if was_pending:
            await self._event_bus.emit(
                ShareEvent(
                    event_type=EventType.SHARE_CREATED,
                    principal_id=info.recipient_id,
                    resource_type=(ResourceType.MEDIA if info.media_id else ResourceType.FOLDER).value,
                    resource_id=info.media_id or info.folder_id or "",
                    actor_id=requester_id,
                    notification_id=info.notification_id,
                    view_once=view_once,
                )
            )
        return info

    async def list_scheduled(self, sender_id: str) -> list[ScheduledOperationInfo]:
        async with self._session() as session:
            return await self._scheduled.list_scheduled(session, sender_id)

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    async def create_folder(self, owner_id: str, name: str) -> FolderInfo:
        async with self._session() as session:
            folder = await self._resources.create_folder(session, owner_id, name)
            snapshot = await self._grants.folder_snapshot(session, folder)
            return _folder_info(folder, snapshot, owner_id, self._policy)

    async def rename_folder(self, folder_id: str, name: str, *, requester_id: str) -> FolderInfo:
        async with self._session() as session:
            folder = await self._resources.rename_folder(session, folder_id, requester_id, name)
            snapshot = await self._grants.folder_snapshot(session, folder)
            return _folder_info(folder, snapshot, requester_id, self._policy)

    async def get_folder(self, folder_id: str, principal_id: str) -> FolderInfo:
        """Folder metadata for a principal who can view it. Never consumes."""
        async with self._session() as session:
            folder = await self._resources.get_folder(session, folder_id)
            snapshot = await self._grants.folder_snapshot(session, folder)
            if not self._policy.can_view(snapshot, principal_id):
                raise ForbiddenError("You do not have access to this folder")
            return _folder_info(folder, snapshot, principal_id, self._policy)

    async def list_folder_media(self, folder_id: str, principal_id: str) -> list[MediaInfo]:
        """Media in a folder that *principal_id* can currently view."""
        async with self._session() as session:
            items = await self._resources.list_folder_media(session, folder_id)
            visible = []
            for media in items:
                snapshot = await self._grants.media_snapshot(session, media)
                if self._policy.can_view(snapshot, principal_id):
                    visible.append(_media_info(media))
        return visible

    async def delete_folder(self, folder_id: str, *, requester_id: str) -> int:
        """Delete a folder and everything in it. Returns media removed.

        Blobs are deleted only after the database delete has committed.
        """
        async with self._session() as session:
            removed = await self._resources.delete_folder(session, folder_id, requester_id)
            blob_ids = [m.blob_id for m in removed]
        await self._resources.release_blobs(blob_ids)
        return len(blob_ids)

    async def upload_media(
        self,
        folder_id: str,
        uploader_id: str,
        data: bytes,
        *,
        file_name: str,
        file_type: str = "image",
    ) -> MediaInfo:
        async with self._session() as session:
            media = await self._resources.create_media(
                session, folder_id, uploader_id, data, file_name=file_name, file_type=file_type
            )
            return _media_info(media)

    async def delete_media(self, media_id: str, *, requester_id: str) -> None:
        async with self._session() as session:
            media = await self._resources.delete_media(session, media_id, requester_id)
            blob_id = media.blob_id
        await self._resources.release_blobs([blob_id])

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> FleetingConfig:
        return self._config

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def policy(self) -> AccessPolicy:
        return self._policy

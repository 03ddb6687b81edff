"""Main Fleeting class — sync wrappers over FleetingAsync."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any

from fleeting._fleeting_async import FleetingAsync

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime

    from fleeting.config import FleetingConfig
    from fleeting.events import EventBus
    from fleeting.models.notifications import NotificationType
    from fleeting.permissions import GrantMode, ResourceType, ShareMode
    from fleeting.protocols import BlobStore, Notifier, PrincipalResolver, RealtimePublisher
    from fleeting.types import (
        BatchShareResult,
        CleanupResult,
        ConsumeResult,
        FolderInfo,
        ListNotificationsResult,
        MediaInfo,
        NotificationStats,
        ScheduledOperationInfo,
        SweepResult,
        ViewOnceStatus,
        ViewResult,
    )

logger = logging.getLogger(__name__)


class Fleeting:
    """Synchronous facade over ``FleetingAsync``.

    Runs a private event loop in a daemon thread so callers can use the
    sharing core from plain sync code or from inside an existing async
    context.  The engine is created on that loop from *url*; collaborators
    (blob store, notifier, realtime publisher) are async and run there too.

    Usage::

        with Fleeting("sqlite+aiosqlite:///fleeting.db", blob_store=store) as f:
            alice = f.register_principal("alice@example.com")
            folder = f.create_folder(alice, "Holiday")
            f.share_by_email("folder", folder.id, alice, ["bob@example.com"])
    """

    def __init__(
        self,
        url: str = "sqlite+aiosqlite://",
        *,
        config: FleetingConfig | None = None,
        blob_store: BlobStore | None = None,
        notifier: Notifier | None = None,
        realtime: RealtimePublisher | None = None,
        resolver: PrincipalResolver | None = None,
    ) -> None:
        self._closed = False

        # Private event loop in a daemon thread
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
        self._thread.start()

        self._async: FleetingAsync = self._run(
            self._async_init(url, config, blob_store, notifier, realtime, resolver)
        )

    async def _async_init(
        self,
        url: str,
        config: FleetingConfig | None,
        blob_store: BlobStore | None,
        notifier: Notifier | None,
        realtime: RealtimePublisher | None,
        resolver: PrincipalResolver | None,
    ) -> FleetingAsync:
        from sqlalchemy.ext.asyncio import create_async_engine

        self._engine = create_async_engine(url, echo=False)
        fleeting = FleetingAsync(
            engine=self._engine,
            config=config,
            blob_store=blob_store,
            notifier=notifier,
            realtime=realtime,
            resolver=resolver,
        )
        await fleeting.open()
        return fleeting

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _run(self, coro: Any) -> Any:
        """Submit *coro* to the private loop and block for the result."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the facade, dispose the engine, stop the loop and join the thread."""
        if self._closed:
            return
        self._closed = True

        try:
            self._run(self._async_close())
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5)

    async def _async_close(self) -> None:
        await self._async.close()
        await self._engine.dispose()

    def __enter__(self) -> Fleeting:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Principals and resources
    # ------------------------------------------------------------------

    def register_principal(self, email: str, display_name: str = "") -> str:
        return self._run(self._async.register_principal(email, display_name))

    def create_folder(self, owner_id: str, name: str) -> FolderInfo:
        return self._run(self._async.create_folder(owner_id, name))

    def rename_folder(self, folder_id: str, name: str, *, requester_id: str) -> FolderInfo:
        return self._run(self._async.rename_folder(folder_id, name, requester_id=requester_id))

    def get_folder(self, folder_id: str, principal_id: str) -> FolderInfo:
        return self._run(self._async.get_folder(folder_id, principal_id))

    def list_folder_media(self, folder_id: str, principal_id: str) -> list[MediaInfo]:
        return self._run(self._async.list_folder_media(folder_id, principal_id))

    def delete_folder(self, folder_id: str, *, requester_id: str) -> int:
        return self._run(self._async.delete_folder(folder_id, requester_id=requester_id))

    def upload_media(
        self,
        folder_id: str,
        uploader_id: str,
        data: bytes,
        *,
        file_name: str,
        file_type: str = "image",
    ) -> MediaInfo:
        return self._run(
            self._async.upload_media(
                folder_id, uploader_id, data, file_name=file_name, file_type=file_type
            )
        )

    def delete_media(self, media_id: str, *, requester_id: str) -> None:
        self._run(self._async.delete_media(media_id, requester_id=requester_id))

    # ------------------------------------------------------------------
    # Shares
    # ------------------------------------------------------------------

    def share(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        sender_id: str,
        recipients: Sequence[str],
        **kwargs: Any,
    ) -> BatchShareResult:
        return self._run(
            self._async.share(resource_type, resource_id, sender_id, recipients, **kwargs)
        )

    def share_by_id(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        sender_id: str,
        recipient_ids: Sequence[str],
        *,
        mode: ShareMode | str = "persistent",
        permission: GrantMode | str = "view",
        scheduled_for: datetime | None = None,
        expires_at: datetime | None = None,
        message: str | None = None,
    ) -> BatchShareResult:
        return self._run(
            self._async.share_by_id(
                resource_type,
                resource_id,
                sender_id,
                recipient_ids,
                mode=mode,
                permission=permission,
                scheduled_for=scheduled_for,
                expires_at=expires_at,
                message=message,
            )
        )

    def share_by_email(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        sender_id: str,
        emails: Sequence[str],
        *,
        mode: ShareMode | str = "persistent",
        permission: GrantMode | str = "view",
        scheduled_for: datetime | None = None,
        expires_at: datetime | None = None,
        message: str | None = None,
    ) -> BatchShareResult:
        return self._run(
            self._async.share_by_email(
                resource_type,
                resource_id,
                sender_id,
                emails,
                mode=mode,
                permission=permission,
                scheduled_for=scheduled_for,
                expires_at=expires_at,
                message=message,
            )
        )

    def revoke_grant(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        grantee_id: str,
        *,
        requester_id: str,
    ) -> bool:
        return self._run(
            self._async.revoke_grant(resource_type, resource_id, grantee_id, requester_id=requester_id)
        )

    def remove_view_once_user(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        grantee_id: str,
        *,
        requester_id: str,
    ) -> bool:
        return self._run(
            self._async.remove_view_once_user(
                resource_type, resource_id, grantee_id, requester_id=requester_id
            )
        )

    def set_view_once(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        enabled: bool,
        *,
        requester_id: str,
    ) -> int:
        return self._run(
            self._async.set_view_once(resource_type, resource_id, enabled, requester_id=requester_id)
        )

    def hide_media(self, media_id: str, principal_id: str, *, requester_id: str) -> bool:
        return self._run(self._async.hide_media(media_id, principal_id, requester_id=requester_id))

    def unhide_media(self, media_id: str, principal_id: str, *, requester_id: str) -> bool:
        return self._run(self._async.unhide_media(media_id, principal_id, requester_id=requester_id))

    def view_once_status(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        principal_id: str,
    ) -> ViewOnceStatus | None:
        return self._run(self._async.view_once_status(resource_type, resource_id, principal_id))

    def can_view(self, resource_type: ResourceType | str, resource_id: str, principal_id: str) -> bool:
        return self._run(self._async.can_view(resource_type, resource_id, principal_id))

    def list_shared_folders(self, principal_id: str) -> list[FolderInfo]:
        return self._run(self._async.list_shared_folders(principal_id))

    def list_view_once_media(self, principal_id: str) -> list[MediaInfo]:
        return self._run(self._async.list_view_once_media(principal_id))

    def view_media(self, media_id: str, principal_id: str) -> ViewResult:
        return self._run(self._async.view_media(media_id, principal_id))

    def view_folder(self, folder_id: str, principal_id: str) -> ViewResult:
        return self._run(self._async.view_folder(folder_id, principal_id))

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def list_notifications(
        self,
        recipient_id: str,
        *,
        types: Iterable[NotificationType | str] | None = None,
        include_viewed: bool = False,
        include_expired: bool = False,
        include_pending: bool = False,
        limit: int | None = None,
    ) -> ListNotificationsResult:
        return self._run(
            self._async.list_notifications(
                recipient_id,
                types=types,
                include_viewed=include_viewed,
                include_expired=include_expired,
                include_pending=include_pending,
                limit=limit,
            )
        )

    def mark_notification_viewed(self, notification_id: str, recipient_id: str) -> ConsumeResult:
        return self._run(self._async.mark_notification_viewed(notification_id, recipient_id))

    def mark_notification_read(self, notification_id: str, recipient_id: str) -> None:
        self._run(self._async.mark_notification_read(notification_id, recipient_id))

    def mark_all_read(self, recipient_id: str) -> int:
        return self._run(self._async.mark_all_read(recipient_id))

    def delete_notification(self, notification_id: str, recipient_id: str) -> None:
        self._run(self._async.delete_notification(notification_id, recipient_id))

    def unread_count(self, recipient_id: str) -> int:
        return self._run(self._async.unread_count(recipient_id))

    def notification_stats(self, recipient_id: str) -> NotificationStats:
        return self._run(self._async.notification_stats(recipient_id))

    def sweep_notifications(self) -> SweepResult:
        return self._run(self._async.sweep_notifications())

    def cleanup_notifications(self, *, now: datetime | None = None) -> CleanupResult:
        return self._run(self._async.cleanup_notifications(now=now))

    def cleanup_viewed_notifications(self, recipient_id: str) -> int:
        return self._run(self._async.cleanup_viewed_notifications(recipient_id))

    def execute_scheduled(self, notification_id: str, requester_id: str) -> ScheduledOperationInfo:
        return self._run(self._async.execute_scheduled(notification_id, requester_id))

    def list_scheduled(self, sender_id: str) -> list[ScheduledOperationInfo]:
        return self._run(self._async.list_scheduled(sender_id))

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def event_bus(self) -> EventBus:
        return self._async.event_bus

    @property
    def aio(self) -> FleetingAsync:
        """The underlying async facade (bound to the private loop)."""
        return self._async

"""NotificationReconciler — read-time validation and repair of notifications.

Notifications, grants, and resources live in separate tables with no
cross-table transaction tying them together.  Instead of keeping them
continuously consistent, every listing re-validates each candidate
against current resource and grant state and deletes the ones that no
longer hold.  Between listings a notification may be stale; it is simply
not filtered until the next reconciliation.

The same validation runs across all recipients via ``sweep()`` for hosts
that want a periodic pass.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fleeting.sharing.access import AccessPolicy
from fleeting.types import ListNotificationsResult, SweepResult
from fleeting.utils import ensure_utc, utcnow

from .scheduling import ScheduleStatus, notification_status

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from fleeting.models.notifications import NotificationBase, NotificationType
    from fleeting.sharing.access import FolderAccess, MediaAccess
    from fleeting.sharing.grants import GrantService

    from .service import NotificationService

logger = logging.getLogger(__name__)


class _SnapshotCache:
    """Per-pass memo of folder/media snapshots (None = missing)."""

    def __init__(self, grants: GrantService, session: AsyncSession) -> None:
        self._grants = grants
        self._session = session
        self._folders: dict[str, FolderAccess | None] = {}
        self._media: dict[str, MediaAccess | None] = {}

    async def folder(self, folder_id: str) -> FolderAccess | None:
        if folder_id not in self._folders:
            self._folders[folder_id] = await self._grants.load_folder_access(self._session, folder_id)
        return self._folders[folder_id]

    async def media(self, media_id: str) -> MediaAccess | None:
        if media_id not in self._media:
            self._media[media_id] = await self._grants.load_media_access(self._session, media_id)
        return self._media[media_id]


class NotificationReconciler:
    """Cross-checks notifications against resources and the access policy."""

    def __init__(
        self,
        notifications: NotificationService,
        grants: GrantService,
        policy: AccessPolicy | None = None,
    ) -> None:
        self._notifications = notifications
        self._grants = grants
        self._policy = policy or AccessPolicy()

    async def stale_reason(
        self,
        notification: NotificationBase,
        cache: _SnapshotCache,
    ) -> str | None:
        """Why *notification* is stale for its recipient, or None if it is valid."""
        recipient = notification.recipient_id
        policy = self._policy

        if notification.media_id is not None and notification.folder_id is not None:
            media = await cache.media(notification.media_id)
            folder = await cache.folder(notification.folder_id)
            if media is None or folder is None:
                return "media or folder not found"
            if not notification.is_view_once and not policy.has_folder_access(media, recipient):
                return "recipient no longer has folder access"
            if not policy.can_view(media, recipient):
                return "recipient can no longer view media"
            return None

        if notification.folder_id is not None:
            folder = await cache.folder(notification.folder_id)
            if folder is None:
                return "folder not found"
            if not policy.can_view(folder, recipient):
                return "recipient can no longer view folder"
            return None

        if notification.media_id is not None:
            media = await cache.media(notification.media_id)
            if media is None:
                return "media not found"
            if not policy.can_view(media, recipient):
                return "recipient can no longer view media"
        return None

    async def _remove(self, session: AsyncSession, notification: NotificationBase, reason: str) -> None:
        logger.info(
            "Removing notification %s for %s: %s",
            notification.id,
            notification.recipient_id,
            reason,
        )
        await self._notifications.delete_by_id(session, notification.id)

    async def list_valid(
        self,
        session: AsyncSession,
        recipient_id: str,
        *,
        types: Iterable[NotificationType | str] | None = None,
        include_viewed: bool = False,
        include_expired: bool = False,
        include_pending: bool = False,
        limit: int = 50,
        now: datetime | None = None,
    ) -> ListNotificationsResult:
        """Return the recipient's valid notifications, deleting stale ones.

        Expired and still-pending notifications are filtered out (not
        deleted) unless the matching ``include_*`` flag is set.  Validation
        stops once *limit* valid notifications have been collected.
        """
        now = ensure_utc(now) or utcnow()
        candidates = await self._notifications.list_for_recipient(
            session, recipient_id, types=types, include_viewed=include_viewed
        )
        cache = _SnapshotCache(self._grants, session)
        result = ListNotificationsResult()

        for notification in candidates:
            if len(result.notifications) >= limit:
                break
            derived = notification_status(notification, now)
            if derived is ScheduleStatus.EXPIRED and not include_expired:
                continue
            if derived is ScheduleStatus.PENDING and not include_pending:
                continue

            reason = await self.stale_reason(notification, cache)
            if reason is not None:
                await self._remove(session, notification, reason)
                result.removed += 1
                continue
            result.notifications.append(self._notifications.to_info(notification, now))

        result.unread_count = await self._notifications.unread_count(session, recipient_id)
        return result

    async def sweep(self, session: AsyncSession) -> SweepResult:
        """Validate every notification for every recipient, deleting stale ones."""
        cache = _SnapshotCache(self._grants, session)
        result = SweepResult()
        for notification in await self._notifications.list_all(session):
            result.checked += 1
            reason = await self.stale_reason(notification, cache)
            if reason is not None:
                await self._remove(session, notification, reason)
                result.deleted += 1
        if result.deleted:
            logger.info("Sweep removed %d of %d notifications", result.deleted, result.checked)
        return result

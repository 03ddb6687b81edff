"""NotificationService — notification CRUD, read/viewed state, and TTL cleanup."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy import and_, delete, func, or_, update
from sqlmodel import select

from fleeting.exceptions import NotFoundError, ValidationError
from fleeting.models.notifications import Notification, NotificationType
from fleeting.types import CleanupResult, NotificationInfo, NotificationStats
from fleeting.utils import ensure_utc, utcnow

from .scheduling import notification_status

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from fleeting.models.notifications import NotificationBase

logger = logging.getLogger(__name__)

_TITLES = {
    (NotificationType.SHARED, "media"): "Media Shared",
    (NotificationType.SHARED, "folder"): "Folder Shared",
    (NotificationType.VIEW_ONCE, "media"): "View-Once Media Shared",
    (NotificationType.VIEW_ONCE, "folder"): "View-Once Folder Shared",
    (NotificationType.FOLDER_SHARED, "folder"): "Folder Shared",
    (NotificationType.SCHEDULED, "media"): "Scheduled Media Share",
    (NotificationType.SCHEDULED, "folder"): "Scheduled Folder Share",
}


def notification_type_value(value: NotificationType | str) -> str:
    try:
        return NotificationType(value).value
    except ValueError:
        raise ValidationError(f"Invalid notification type: {value!r}") from None


def default_title(ntype: NotificationType, resource_type: str) -> str:
    return _TITLES.get((ntype, resource_type), "Shared With You")


def default_message(view_once: bool, resource_type: str) -> str:
    noun = "folder" if resource_type == "folder" else "media file"
    if view_once:
        return f"You have received a view-once {noun}"
    return f"You have received a shared {noun}"


class NotificationService:
    """Creates notifications and drives their read/viewed lifecycle.

    Receives the concrete notification model at construction and a
    session at call time.  Methods flush but never commit.
    """

    def __init__(
        self,
        notification_model: type[NotificationBase] | None = None,
        *,
        action_url_prefix: str = "/dashboard",
    ) -> None:
        self._model: type[NotificationBase] = notification_model or Notification
        self._action_url_prefix = action_url_prefix.rstrip("/")

    @property
    def model(self) -> type[NotificationBase]:
        return self._model

    # ------------------------------------------------------------------
    # Create / lookup
    # ------------------------------------------------------------------

    async def create(
        self,
        session: AsyncSession,
        *,
        recipient_id: str,
        sender_id: str,
        notification_type: NotificationType | str,
        media_id: str | None = None,
        folder_id: str | None = None,
        view_once: bool = False,
        scheduled_for: datetime | None = None,
        expires_at: datetime | None = None,
        message: str | None = None,
        title: str | None = None,
    ) -> NotificationBase:
        """Create a notification for a share. Flushes but does not commit."""
        if media_id is None and folder_id is None:
            raise ValidationError("A notification must reference a media item or a folder")
        ntype = NotificationType(notification_type_value(notification_type))
        resource_type = "media" if media_id is not None else "folder"

        notification = self._model(
            recipient_id=recipient_id,
            sender_id=sender_id,
            type=ntype.value,
            title=title or default_title(ntype, resource_type),
            message=message or default_message(view_once, resource_type),
            media_id=media_id,
            folder_id=folder_id,
            view_once=view_once,
            scheduled_for=scheduled_for,
            expires_at=expires_at,
        )
        notification.action_url = self._action_url(notification)
        session.add(notification)
        await session.flush()
        return notification

    def _action_url(self, notification: NotificationBase) -> str:
        if notification.media_id is not None:
            url = f"{self._action_url_prefix}/media/{notification.media_id}"
        else:
            url = f"{self._action_url_prefix}/folders/{notification.folder_id}"
        if notification.view_once:
            url += f"?viewOnce=true&notificationId={notification.id}"
        return url

    async def get_for_recipient(
        self,
        session: AsyncSession,
        notification_id: str,
        recipient_id: str,
    ) -> NotificationBase:
        """Fetch a notification owned by *recipient_id* or raise ``NotFoundError``."""
        notification = await session.get(self._model, notification_id)
        if notification is None or notification.recipient_id != recipient_id:
            raise NotFoundError(f"Notification not found: {notification_id}")
        return notification

    async def list_for_recipient(
        self,
        session: AsyncSession,
        recipient_id: str,
        *,
        types: Iterable[NotificationType | str] | None = None,
        include_viewed: bool = True,
    ) -> list[NotificationBase]:
        """Raw notifications for *recipient_id*, newest first. No validation."""
        model = self._model
        query = select(model).where(model.recipient_id == recipient_id)
        if types is not None:
            values = [notification_type_value(t) for t in types]
            query = query.where(model.type.in_(values))  # type: ignore[attr-defined]
        if not include_viewed:
            query = query.where(model.is_viewed == False)  # noqa: E712
        query = query.order_by(model.created_at.desc())  # type: ignore[union-attr]
        result = await session.execute(query)
        return list(result.scalars().all())

    async def list_all(self, session: AsyncSession) -> list[NotificationBase]:
        result = await session.execute(select(self._model))
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Read / viewed transitions
    # ------------------------------------------------------------------

    async def mark_read(
        self,
        session: AsyncSession,
        notification_id: str,
        recipient_id: str,
    ) -> NotificationBase:
        notification = await self.get_for_recipient(session, notification_id, recipient_id)
        if not notification.is_read:
            notification.is_read = True
            session.add(notification)
            await session.flush()
        return notification

    async def mark_all_read(self, session: AsyncSession, recipient_id: str) -> int:
        """Mark every unread notification for *recipient_id* read. Returns the count."""
        model = self._model
        result = await session.execute(
            update(model)
            .where(
                model.recipient_id == recipient_id,  # type: ignore[arg-type]
                model.is_read == False,  # type: ignore[arg-type]  # noqa: E712
            )
            .values(is_read=True)
        )
        return result.rowcount or 0

    async def mark_viewed(
        self,
        session: AsyncSession,
        notification: NotificationBase,
        *,
        now: datetime | None = None,
    ) -> bool:
        """Mark *notification* viewed. Returns False if it already was.

        The first ``viewed_at`` is kept on repeat calls.
        """
        if notification.is_viewed:
            return False
        notification.is_viewed = True
        notification.viewed_at = now or utcnow()
        session.add(notification)
        await session.flush()
        return True

    # ------------------------------------------------------------------
    # Delete / cleanup
    # ------------------------------------------------------------------

    async def delete(self, session: AsyncSession, notification_id: str, recipient_id: str) -> None:
        notification = await self.get_for_recipient(session, notification_id, recipient_id)
        await session.delete(notification)
        await session.flush()

    async def delete_by_id(self, session: AsyncSession, notification_id: str) -> bool:
        model = self._model
        result = await session.execute(
            delete(model).where(model.id == notification_id)  # type: ignore[arg-type]
        )
        return (result.rowcount or 0) > 0

    async def cleanup_expired(
        self,
        session: AsyncSession,
        *,
        read_retention_days: int = 30,
        now: datetime | None = None,
    ) -> CleanupResult:
        """TTL expiry across all recipients.

        Deletes notifications whose ``expires_at`` has passed, and read
        notifications older than *read_retention_days*.
        """
        now = ensure_utc(now) or utcnow()
        model = self._model
        expired = await session.execute(
            delete(model).where(
                model.expires_at.is_not(None),  # type: ignore[union-attr]
                model.expires_at < now,  # type: ignore[operator]
            ).execution_options(synchronize_session="fetch")
        )
        cutoff = now - timedelta(days=read_retention_days)
        read = await session.execute(
            delete(model).where(
                model.is_read == True,  # type: ignore[arg-type]  # noqa: E712
                model.created_at < cutoff,  # type: ignore[arg-type]
            ).execution_options(synchronize_session="fetch")
        )
        result = CleanupResult(
            expired_deleted=expired.rowcount or 0,
            read_deleted=read.rowcount or 0,
        )
        if result.expired_deleted or result.read_deleted:
            logger.info(
                "Notification cleanup removed %d expired and %d read notifications",
                result.expired_deleted,
                result.read_deleted,
            )
        return result

    async def cleanup_viewed(self, session: AsyncSession, recipient_id: str) -> int:
        """Delete viewed view-once notifications for *recipient_id*."""
        model = self._model
        result = await session.execute(
            delete(model).where(
                model.recipient_id == recipient_id,  # type: ignore[arg-type]
                model.is_viewed == True,  # type: ignore[arg-type]  # noqa: E712
                or_(
                    model.view_once == True,  # type: ignore[arg-type]  # noqa: E712
                    model.type == NotificationType.VIEW_ONCE.value,  # type: ignore[arg-type]
                ),
            )
        )
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Counts
    # ------------------------------------------------------------------

    async def unread_count(self, session: AsyncSession, recipient_id: str) -> int:
        model = self._model
        result = await session.execute(
            select(func.count()).select_from(model).where(
                model.recipient_id == recipient_id,
                model.is_read == False,  # noqa: E712
            )
        )
        return int(result.scalar_one())

    async def stats(
        self,
        session: AsyncSession,
        recipient_id: str,
        *,
        now: datetime | None = None,
    ) -> NotificationStats:
        now = ensure_utc(now) or utcnow()
        model = self._model
        base = select(func.count()).select_from(model).where(model.recipient_id == recipient_id)
        view_once = or_(
            model.view_once == True,  # type: ignore[arg-type]  # noqa: E712
            model.type == NotificationType.VIEW_ONCE.value,  # type: ignore[arg-type]
        )
        not_expired = or_(
            model.expires_at.is_(None),  # type: ignore[union-attr]
            model.expires_at >= now,  # type: ignore[operator]
        )
        total = await session.execute(base)
        unread = await session.execute(base.where(model.is_read == False))  # noqa: E712
        active = await session.execute(
            base.where(and_(view_once, model.is_viewed == False, not_expired))  # type: ignore[arg-type]  # noqa: E712
        )
        viewed = await session.execute(base.where(model.is_viewed == True))  # noqa: E712
        return NotificationStats(
            total=int(total.scalar_one()),
            unread=int(unread.scalar_one()),
            view_once_active=int(active.scalar_one()),
            viewed=int(viewed.scalar_one()),
        )

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    @staticmethod
    def to_info(notification: NotificationBase, now: datetime | None = None) -> NotificationInfo:
        return NotificationInfo(
            id=notification.id,
            recipient_id=notification.recipient_id,
            sender_id=notification.sender_id,
            type=notification.type,
            title=notification.title,
            message=notification.message,
            media_id=notification.media_id,
            folder_id=notification.folder_id,
            view_once=notification.view_once,
            scheduled_for=ensure_utc(notification.scheduled_for),
            expires_at=ensure_utc(notification.expires_at),
            is_read=notification.is_read,
            is_viewed=notification.is_viewed,
            viewed_at=ensure_utc(notification.viewed_at),
            action_url=notification.action_url,
            created_at=ensure_utc(notification.created_at),
            status=notification_status(notification, now).value,
        )

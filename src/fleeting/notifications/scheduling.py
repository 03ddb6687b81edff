"""Scheduled operations — status derivation and early execution.

A scheduled operation is a notification with ``scheduled_for`` set.  Its
status is never stored; it is derived from the two timestamps:

- ``expired``: ``expires_at`` has passed (checked first, so bad input
  with a future ``scheduled_for`` and a past ``expires_at`` is expired).
- ``pending``: ``scheduled_for`` is still in the future.
- ``executed``: otherwise.

Grants are written immediately when a share is created; only delivery of
the notification is deferred.  A ``pending`` notification is therefore
hidden from the recipient's listing until it becomes ``executed``.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from sqlmodel import select

from fleeting.exceptions import ForbiddenError, NotFoundError
from fleeting.models.notifications import Notification
from fleeting.types import ScheduledOperationInfo
from fleeting.utils import ensure_utc, utcnow

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from fleeting.models.notifications import NotificationBase


class ScheduleStatus(str, Enum):
    """Derived status of a scheduled operation."""

    PENDING = "pending"
    EXPIRED = "expired"
    EXECUTED = "executed"


def status(
    scheduled_for: datetime | None,
    expires_at: datetime | None,
    now: datetime | None = None,
) -> ScheduleStatus:
    """Derive the status of an operation from its timestamps."""
    now = ensure_utc(now) or utcnow()
    expires = ensure_utc(expires_at)
    if expires is not None and expires < now:
        return ScheduleStatus.EXPIRED
    scheduled = ensure_utc(scheduled_for)
    if scheduled is not None and scheduled > now:
        return ScheduleStatus.PENDING
    return ScheduleStatus.EXECUTED


def notification_status(notification: NotificationBase, now: datetime | None = None) -> ScheduleStatus:
    return status(notification.scheduled_for, notification.expires_at, now)


class ScheduledOperations:
    """Lists and fast-forwards scheduled notifications for their sender."""

    def __init__(self, notification_model: type[NotificationBase] | None = None) -> None:
        self._model: type[NotificationBase] = notification_model or Notification

    @staticmethod
    def to_info(notification: NotificationBase, now: datetime | None = None) -> ScheduledOperationInfo:
        return ScheduledOperationInfo(
            notification_id=notification.id,
            recipient_id=notification.recipient_id,
            sender_id=notification.sender_id,
            status=notification_status(notification, now).value,
            scheduled_for=ensure_utc(notification.scheduled_for),
            expires_at=ensure_utc(notification.expires_at),
            media_id=notification.media_id,
            folder_id=notification.folder_id,
        )

    async def execute_now(
        self,
        session: AsyncSession,
        notification_id: str,
        requester_id: str,
        *,
        now: datetime | None = None,
    ) -> ScheduledOperationInfo:
        """Deliver a scheduled notification immediately.

        Sets ``scheduled_for`` to *now* when the operation is still pending.
        Idempotent: executing an executed (or expired) operation changes
        nothing observable.  Only the sender may execute.
        """
        now = ensure_utc(now) or utcnow()
        notification = await session.get(self._model, notification_id)
        if notification is None:
            raise NotFoundError(f"Scheduled operation not found: {notification_id}")
        if notification.sender_id != requester_id:
            raise ForbiddenError("Only the sender can execute a scheduled operation")

        if notification_status(notification, now) is ScheduleStatus.PENDING:
            notification.scheduled_for = now
            session.add(notification)
            await session.flush()
        return self.to_info(notification, now)

    async def list_scheduled(
        self,
        session: AsyncSession,
        sender_id: str,
        *,
        now: datetime | None = None,
    ) -> list[ScheduledOperationInfo]:
        """All operations *sender_id* scheduled, newest first, with derived status."""
        model = self._model
        result = await session.execute(
            select(model)
            .where(
                model.sender_id == sender_id,
                model.scheduled_for.is_not(None),  # type: ignore[union-attr]
            )
            .order_by(model.created_at.desc())  # type: ignore[union-attr]
        )
        return [self.to_info(n, now) for n in result.scalars().all()]

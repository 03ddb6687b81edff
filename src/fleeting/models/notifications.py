"""Notification model — delivery tickets that reference grants.

A notification is not the source of truth for access: it has its own
lifecycle (read, viewed, expired, deleted) and may drift from the grant
it points at.  ``NotificationReconciler`` repairs that drift at read time.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel


class NotificationType(str, Enum):
    """Kinds of share notifications."""

    SHARED = "shared"
    VIEW_ONCE = "view_once"
    FOLDER_SHARED = "folder_shared"
    SCHEDULED = "scheduled"


class NotificationBase(SQLModel):
    """Base fields for a notification. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    recipient_id: str = Field(index=True)
    sender_id: str = Field(index=True)
    type: str = Field(default=NotificationType.SHARED.value)
    title: str = Field(default="")
    message: str = Field(default="")
    media_id: str | None = Field(default=None, index=True)
    folder_id: str | None = Field(default=None, index=True)
    view_once: bool = Field(default=False)
    scheduled_for: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    expires_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    is_read: bool = Field(default=False)
    is_viewed: bool = Field(default=False)
    viewed_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    action_url: str | None = Field(default=None)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )

    @property
    def is_view_once(self) -> bool:
        """True for view-once notifications, by type or by flag."""
        return self.view_once or self.type == NotificationType.VIEW_ONCE.value


class Notification(NotificationBase, table=True):
    """Default notification table, ``fleeting_notifications``."""

    __tablename__ = "fleeting_notifications"
    __table_args__ = (
        Index("ix_fleeting_notifications_recipient_read", "recipient_id", "is_read"),
    )

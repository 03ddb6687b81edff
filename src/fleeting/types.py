"""Result types: ConsumeResult, BatchShareResult, NotificationInfo, etc."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime


@dataclass
class ConsumeResult:
    """Outcome of a view-once consumption attempt.

    ``consumed=False`` covers both "no entry" and "already consumed";
    replay is an expected client pattern, not an error.
    """

    consumed: bool
    resource_type: str | None = None
    resource_id: str | None = None
    grantee_id: str | None = None
    viewed_at: datetime | None = None


@dataclass
class ViewOnceStatus:
    """Per-principal view-once state for a resource."""

    can_view: bool
    viewed: bool
    viewed_at: datetime | None = None


@dataclass
class RecipientResult:
    """Outcome of sharing with a single recipient."""

    recipient: str
    success: bool
    principal_id: str | None = None
    notification_id: str | None = None
    error: str | None = None


@dataclass
class BatchShareResult:
    """Per-recipient outcomes of a batch share; partial success is normal."""

    resource_type: str
    resource_id: str
    mode: str
    results: list[RecipientResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def message(self) -> str:
        return f"Shared with {self.success_count} of {len(self.results)} recipient(s)"


@dataclass
class NotificationInfo:
    """Notification as surfaced to its recipient."""

    id: str
    recipient_id: str
    sender_id: str
    type: str
    title: str
    message: str
    media_id: str | None = None
    folder_id: str | None = None
    view_once: bool = False
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None
    is_read: bool = False
    is_viewed: bool = False
    viewed_at: datetime | None = None
    action_url: str | None = None
    created_at: datetime | None = None
    status: str | None = None


@dataclass
class ListNotificationsResult:
    """Result of a reconciled notification listing."""

    notifications: list[NotificationInfo] = field(default_factory=list)
    unread_count: int = 0
    removed: int = 0

    @property
    def total(self) -> int:
        return len(self.notifications)


@dataclass
class NotificationStats:
    """Counts for a recipient's notifications."""

    total: int = 0
    unread: int = 0
    view_once_active: int = 0
    viewed: int = 0


@dataclass
class CleanupResult:
    """Counts from a notification cleanup pass."""

    expired_deleted: int = 0
    read_deleted: int = 0


@dataclass
class SweepResult:
    """Counts from a full reconciliation sweep."""

    checked: int = 0
    deleted: int = 0


@dataclass
class ScheduledOperationInfo:
    """A scheduled notification with its derived status."""

    notification_id: str
    recipient_id: str
    sender_id: str
    status: str
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None
    media_id: str | None = None
    folder_id: str | None = None


@dataclass
class FolderInfo:
    """Folder metadata as seen by a principal."""

    id: str
    name: str
    owner_id: str
    permission: str | None = None
    is_owner: bool = False
    can_upload: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class MediaInfo:
    """Media metadata as seen by a principal."""

    id: str
    folder_id: str
    owner_id: str
    file_name: str
    file_type: str
    url: str
    size_bytes: int = 0
    view_once_enabled: bool = False
    created_at: datetime | None = None


@dataclass
class ViewResult:
    """Result of viewing a media item or folder."""

    resource_type: str
    resource_id: str
    consumed: bool = False
    url: str | None = None
    media: MediaInfo | None = None
    folder: FolderInfo | None = None

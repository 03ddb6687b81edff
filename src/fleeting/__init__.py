"""Fleeting: view-once and time-limited sharing.

Grants, atomic view-once consumption, and self-repairing share
notifications on top of SQLModel.
"""

__version__ = "0.1.0"

from fleeting._fleeting import Fleeting
from fleeting._fleeting_async import FleetingAsync
from fleeting.config import FleetingConfig
from fleeting.events import EventBus, EventType, ShareEvent
from fleeting.exceptions import (
    FleetingError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from fleeting.notifications.scheduling import ScheduleStatus, status
from fleeting.permissions import GrantKind, GrantMode, ResourceType, ShareMode
from fleeting.protocols import (
    BlobStore,
    Notifier,
    PrincipalResolver,
    RealtimePublisher,
    StoredBlob,
)
from fleeting.sharing.access import AccessPolicy
from fleeting.sharing.coordinator import ShareRequest
from fleeting.types import (
    BatchShareResult,
    CleanupResult,
    ConsumeResult,
    FolderInfo,
    ListNotificationsResult,
    MediaInfo,
    NotificationInfo,
    NotificationStats,
    RecipientResult,
    ScheduledOperationInfo,
    SweepResult,
    ViewOnceStatus,
    ViewResult,
)

__all__ = [
    "AccessPolicy",
    "BatchShareResult",
    "BlobStore",
    "CleanupResult",
    "ConsumeResult",
    "EventBus",
    "EventType",
    "Fleeting",
    "FleetingAsync",
    "FleetingConfig",
    "FleetingError",
    "FolderInfo",
    "ForbiddenError",
    "GrantKind",
    "GrantMode",
    "ListNotificationsResult",
    "MediaInfo",
    "NotFoundError",
    "NotificationInfo",
    "NotificationStats",
    "Notifier",
    "PrincipalResolver",
    "RealtimePublisher",
    "RecipientResult",
    "ResourceType",
    "ScheduleStatus",
    "ScheduledOperationInfo",
    "ShareEvent",
    "ShareMode",
    "ShareRequest",
    "StorageError",
    "StoredBlob",
    "SweepResult",
    "ValidationError",
    "ViewOnceStatus",
    "ViewResult",
    "__version__",
    "status",
]

"""SQLModel database models for Fleeting."""

from fleeting.models.grants import Grant, GrantBase
from fleeting.models.notifications import Notification, NotificationBase, NotificationType
from fleeting.models.principals import Principal, PrincipalBase
from fleeting.models.resources import (
    Folder,
    FolderBase,
    MediaHide,
    MediaHideBase,
    MediaItem,
    MediaItemBase,
)

__all__ = [
    "Folder",
    "FolderBase",
    "Grant",
    "GrantBase",
    "MediaHide",
    "MediaHideBase",
    "MediaItem",
    "MediaItemBase",
    "Notification",
    "NotificationBase",
    "NotificationType",
    "Principal",
    "PrincipalBase",
]

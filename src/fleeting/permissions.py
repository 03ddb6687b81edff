"""Resource, grant, and share-mode enums."""

from __future__ import annotations

from enum import Enum


class ResourceType(str, Enum):
    """Kind of resource a grant or notification refers to."""

    FOLDER = "folder"
    MEDIA = "media"


class GrantKind(str, Enum):
    """How long a grant lives: until revoked, or until first view."""

    PERSISTENT = "persistent"
    VIEW_ONCE = "view_once"


class GrantMode(str, Enum):
    """Capability carried by a persistent grant."""

    VIEW = "view"
    UPLOAD = "upload"


class ShareMode(str, Enum):
    """Share mode requested by the sender."""

    PERSISTENT = "persistent"
    VIEW_ONCE = "view_once"

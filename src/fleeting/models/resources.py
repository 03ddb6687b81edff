"""Folder, MediaItem, and MediaHide models.

Grants are not embedded here; they live in the ``Grant`` table keyed by
``(resource_type, resource_id, grantee_id)``.  ``MediaHide`` is the
normalized per-principal suppression set for a media item.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


class FolderBase(SQLModel):
    """Base fields for a folder. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    owner_id: str = Field(index=True)
    name: str = Field(default="")
    view_once_enabled: bool = Field(default=False)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class Folder(FolderBase, table=True):
    """Default folder table, ``fleeting_folders``."""

    __tablename__ = "fleeting_folders"


class MediaItemBase(SQLModel):
    """Base fields for a media item. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    owner_id: str = Field(index=True)
    folder_id: str = Field(index=True)
    file_name: str = Field(default="")
    file_type: str = Field(default="image")
    blob_id: str = Field(default="")
    url: str = Field(default="")
    size_bytes: int = Field(default=0)
    view_once_enabled: bool = Field(default=False)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class MediaItem(MediaItemBase, table=True):
    """Default media table, ``fleeting_media``."""

    __tablename__ = "fleeting_media"


class MediaHideBase(SQLModel):
    """A principal for whom a media item is permanently suppressed."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    media_id: str = Field(index=True)
    principal_id: str = Field(index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class MediaHide(MediaHideBase, table=True):
    """Default hide table, ``fleeting_media_hides``."""

    __tablename__ = "fleeting_media_hides"
    __table_args__ = (
        UniqueConstraint("media_id", "principal_id", name="uq_fleeting_media_hide"),
    )

"""ResourceService — folder and media lifecycle owned by their principals."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlmodel import select

from fleeting.exceptions import ForbiddenError, NotFoundError, ValidationError
from fleeting.models.resources import Folder, MediaItem
from fleeting.permissions import ResourceType

from .access import AccessPolicy

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from fleeting.models.resources import FolderBase, MediaItemBase
    from fleeting.protocols import BlobStore

    from .grants import GrantService

logger = logging.getLogger(__name__)

MAX_FOLDER_NAME = 100
MEDIA_TYPES = ("image", "video")


def validate_folder_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise ValidationError("Folder name is required")
    if len(name) > MAX_FOLDER_NAME:
        raise ValidationError(f"Folder name must be at most {MAX_FOLDER_NAME} characters")
    return name


class ResourceService:
    """Creates, renames, and deletes folders and media.

    Deleting a resource removes its grants and hides in the same
    transaction.  Blobs are not touched until the caller has committed;
    pass the deleted media's blob ids to ``release_blobs`` afterwards.
    Notifications that point at a deleted resource are left alone; the
    reconciler removes them on the recipient's next listing.
    """

    def __init__(
        self,
        grants: GrantService,
        *,
        blob_store: BlobStore | None = None,
        folder_model: type[FolderBase] | None = None,
        media_model: type[MediaItemBase] | None = None,
        policy: AccessPolicy | None = None,
    ) -> None:
        self._grants = grants
        self._blob_store = blob_store
        self._folder_model: type[FolderBase] = folder_model or Folder
        self._media_model: type[MediaItemBase] = media_model or MediaItem
        self._policy = policy or AccessPolicy()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def get_folder(self, session: AsyncSession, folder_id: str) -> FolderBase:
        folder = await session.get(self._folder_model, folder_id)
        if folder is None:
            raise NotFoundError(f"Folder not found: {folder_id}")
        return folder

    async def get_media(self, session: AsyncSession, media_id: str) -> MediaItemBase:
        media = await session.get(self._media_model, media_id)
        if media is None:
            raise NotFoundError(f"Media not found: {media_id}")
        return media

    async def list_folder_media(self, session: AsyncSession, folder_id: str) -> list[MediaItemBase]:
        model = self._media_model
        result = await session.execute(
            select(model)
            .where(model.folder_id == folder_id)
            .order_by(model.created_at.desc())  # type: ignore[union-attr]
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    async def create_folder(self, session: AsyncSession, owner_id: str, name: str) -> FolderBase:
        folder = self._folder_model(owner_id=owner_id, name=validate_folder_name(name))
        session.add(folder)
        await session.flush()
        return folder

    async def rename_folder(
        self,
        session: AsyncSession,
        folder_id: str,
        requester_id: str,
        name: str,
    ) -> FolderBase:
        folder = await self.get_folder(session, folder_id)
        snapshot = await self._grants.folder_snapshot(session, folder)
        if not self._policy.can_edit(snapshot, requester_id):
            raise ForbiddenError("Only the folder owner can edit this folder")
        folder.name = validate_folder_name(name)
        folder.updated_at = datetime.now(UTC)
        session.add(folder)
        await session.flush()
        return folder

    async def delete_folder(
        self,
        session: AsyncSession,
        folder_id: str,
        requester_id: str,
    ) -> list[MediaItemBase]:
        """Delete a folder with its media, grants, and hides.

        Returns the deleted media items; their blobs are still stored.
        """
        folder = await self.get_folder(session, folder_id)
        snapshot = await self._grants.folder_snapshot(session, folder)
        if not self._policy.can_delete(snapshot, requester_id):
            raise ForbiddenError("Only the folder owner can delete this folder")

        media_items = await self.list_folder_media(session, folder_id)
        for media in media_items:
            await self._purge_media(session, media)
        await self._grants.delete_grants_for(session, ResourceType.FOLDER, folder_id)
        await session.delete(folder)
        await session.flush()
        return media_items

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    async def create_media(
        self,
        session: AsyncSession,
        folder_id: str,
        uploader_id: str,
        data: bytes,
        *,
        file_name: str,
        file_type: str = "image",
    ) -> MediaItemBase:
        """Store *data* through the blob store and record a media item.

        The uploader must be allowed to upload into the folder; the media
        is owned by the uploader.
        """
        if self._blob_store is None:
            raise ValidationError("No blob store configured")
        if file_type not in MEDIA_TYPES:
            raise ValidationError(f"Invalid file type: {file_type!r}. Must be 'image' or 'video'.")
        if not file_name.strip():
            raise ValidationError("File name is required")

        folder = await self.get_folder(session, folder_id)
        snapshot = await self._grants.folder_snapshot(session, folder)
        if not self._policy.can_upload(snapshot, uploader_id):
            raise ForbiddenError("You do not have upload permission for this folder")

        blob = await self._blob_store.store(data, file_name=file_name)
        media = self._media_model(
            owner_id=uploader_id,
            folder_id=folder_id,
            file_name=file_name.strip(),
            file_type=file_type,
            blob_id=blob.id,
            url=blob.url,
            size_bytes=len(data),
        )
        session.add(media)
        await session.flush()
        return media

    async def delete_media(self, session: AsyncSession, media_id: str, requester_id: str) -> MediaItemBase:
        media = await self.get_media(session, media_id)
        snapshot = await self._grants.media_snapshot(session, media, include_folder=False)
        if not self._policy.can_delete(snapshot, requester_id):
            raise ForbiddenError("Only the owner can delete this media")
        await self._purge_media(session, media)
        await session.flush()
        return media

    async def _purge_media(self, session: AsyncSession, media: MediaItemBase) -> None:
        await self._grants.delete_grants_for(session, ResourceType.MEDIA, media.id)
        await self._grants.delete_hides_for(session, media.id)
        await session.delete(media)

    async def release_blobs(self, blob_ids: Iterable[str]) -> int:
        """Delete stored blobs, best-effort. Returns how many were deleted.

        Call only after the transaction that deleted the media has committed.
        """
        if self._blob_store is None:
            return 0
        released = 0
        for blob_id in blob_ids:
            if not blob_id:
                continue
            try:
                if await self._blob_store.delete(blob_id):
                    released += 1
            except Exception:
                logger.warning("Failed to delete blob %s", blob_id, exc_info=True)
        return released

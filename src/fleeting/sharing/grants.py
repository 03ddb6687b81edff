"""GrantService — grant CRUD, hide sets, and access snapshots.

Stateless service that receives the concrete models at construction
and a session at call time.  Methods flush but never commit; the caller
owns the transaction.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete
from sqlmodel import select

from fleeting.exceptions import ValidationError
from fleeting.models.grants import Grant
from fleeting.models.resources import Folder, MediaHide, MediaItem
from fleeting.permissions import GrantKind, GrantMode, ResourceType

from .access import FolderAccess, GrantState, MediaAccess

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from fleeting.models.grants import GrantBase
    from fleeting.models.resources import FolderBase, MediaHideBase, MediaItemBase

logger = logging.getLogger(__name__)


def resource_type_value(resource_type: ResourceType | str) -> str:
    """Validate and normalize a resource type to its string value."""
    try:
        return ResourceType(resource_type).value
    except ValueError:
        raise ValidationError(f"Invalid resource type: {resource_type!r}") from None


def grant_mode_value(mode: GrantMode | str) -> str:
    """Validate and normalize a persistent grant mode to its string value."""
    try:
        return GrantMode(mode).value
    except ValueError:
        raise ValidationError(
            f"Invalid permission: {mode!r}. Must be 'view' or 'upload'."
        ) from None


def _to_state(grant: GrantBase) -> GrantState:
    return GrantState(
        grantee_id=grant.grantee_id,
        kind=grant.kind,
        mode=grant.mode,
        viewed=grant.viewed,
        viewed_at=grant.viewed_at,
    )


class GrantService:
    """Manages persistent grants, view-once entries, and media hides.

    Constructor receives the concrete models so callers can use custom
    SQLModel subclasses with different table names.
    """

    def __init__(
        self,
        *,
        grant_model: type[GrantBase] | None = None,
        folder_model: type[FolderBase] | None = None,
        media_model: type[MediaItemBase] | None = None,
        hide_model: type[MediaHideBase] | None = None,
    ) -> None:
        self._grant_model: type[GrantBase] = grant_model or Grant
        self._folder_model: type[FolderBase] = folder_model or Folder
        self._media_model: type[MediaItemBase] = media_model or MediaItem
        self._hide_model: type[MediaHideBase] = hide_model or MediaHide

    @property
    def grant_model(self) -> type[GrantBase]:
        return self._grant_model

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def get_folder(self, session: AsyncSession, folder_id: str) -> FolderBase | None:
        return await session.get(self._folder_model, folder_id)

    async def get_media(self, session: AsyncSession, media_id: str) -> MediaItemBase | None:
        return await session.get(self._media_model, media_id)

    async def get_grant(
        self,
        session: AsyncSession,
        resource_type: ResourceType | str,
        resource_id: str,
        grantee_id: str,
        kind: GrantKind | str,
    ) -> GrantBase | None:
        model = self._grant_model
        result = await session.execute(
            select(model).where(
                model.resource_type == resource_type_value(resource_type),
                model.resource_id == resource_id,
                model.grantee_id == grantee_id,
                model.kind == GrantKind(kind).value,
            )
        )
        return result.scalar_one_or_none()

    async def list_grants(
        self,
        session: AsyncSession,
        resource_type: ResourceType | str,
        resource_id: str,
        *,
        kind: GrantKind | str | None = None,
    ) -> list[GrantBase]:
        """List grants on a resource, optionally filtered by *kind*."""
        model = self._grant_model
        query = select(model).where(
            model.resource_type == resource_type_value(resource_type),
            model.resource_id == resource_id,
        )
        if kind is not None:
            query = query.where(model.kind == GrantKind(kind).value)
        result = await session.execute(query)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Persistent grants
    # ------------------------------------------------------------------

    async def add_persistent_grant(
        self,
        session: AsyncSession,
        resource_type: ResourceType | str,
        resource_id: str,
        grantee_id: str,
        mode: GrantMode | str = GrantMode.VIEW,
        *,
        granted_by: str = "",
    ) -> GrantBase:
        """Grant *grantee_id* persistent access. Idempotent.

        Re-adding an existing grantee never creates a second row; if
        *mode* differs from the stored mode, the stored mode is updated.
        """
        rtype = resource_type_value(resource_type)
        mode_value = grant_mode_value(mode)
        if rtype == ResourceType.MEDIA.value and mode_value == GrantMode.UPLOAD.value:
            raise ValidationError("Upload permission applies to folders only")

        existing = await self.get_grant(
            session, rtype, resource_id, grantee_id, GrantKind.PERSISTENT
        )
        if existing is not None:
            if existing.mode != mode_value:
                existing.mode = mode_value
                await session.flush()
            return existing

        grant = self._grant_model(
            resource_type=rtype,
            resource_id=resource_id,
            grantee_id=grantee_id,
            kind=GrantKind.PERSISTENT.value,
            mode=mode_value,
            granted_by=granted_by,
        )
        session.add(grant)
        await session.flush()
        return grant

    async def remove_persistent_grant(
        self,
        session: AsyncSession,
        resource_type: ResourceType | str,
        resource_id: str,
        grantee_id: str,
    ) -> bool:
        """Revoke a persistent grant. Returns True if one was removed."""
        return await self._remove(
            session, resource_type, resource_id, grantee_id, GrantKind.PERSISTENT
        )

    # ------------------------------------------------------------------
    # View-once entries
    # ------------------------------------------------------------------

    async def add_view_once_entry(
        self,
        session: AsyncSession,
        resource_type: ResourceType | str,
        resource_id: str,
        grantee_id: str,
        *,
        granted_by: str = "",
    ) -> GrantBase:
        """Add a view-once entry for *grantee_id*. Idempotent.

        An existing entry is returned unchanged, including one that has
        already been viewed: consumed entries are never re-armed.
        """
        rtype = resource_type_value(resource_type)
        existing = await self.get_grant(
            session, rtype, resource_id, grantee_id, GrantKind.VIEW_ONCE
        )
        if existing is not None:
            return existing

        entry = self._grant_model(
            resource_type=rtype,
            resource_id=resource_id,
            grantee_id=grantee_id,
            kind=GrantKind.VIEW_ONCE.value,
            mode=GrantMode.VIEW.value,
            viewed=False,
            granted_by=granted_by,
        )
        session.add(entry)
        await session.flush()
        return entry

    async def remove_view_once_entry(
        self,
        session: AsyncSession,
        resource_type: ResourceType | str,
        resource_id: str,
        grantee_id: str,
    ) -> bool:
        """Remove a view-once entry. Returns True if one was removed."""
        return await self._remove(
            session, resource_type, resource_id, grantee_id, GrantKind.VIEW_ONCE
        )

    async def set_view_once_enabled(
        self,
        session: AsyncSession,
        resource: FolderBase | MediaItemBase,
        enabled: bool,
    ) -> int:
        """Toggle view-once sharing on *resource*.

        Disabling is destructive, not a pause: every view-once entry on the
        resource is deleted, consumed or not, and re-enabling starts from
        an empty set.  Returns the number of entries deleted.
        """
        rtype = (
            ResourceType.FOLDER.value
            if isinstance(resource, self._folder_model)
            else ResourceType.MEDIA.value
        )
        resource.view_once_enabled = enabled
        if isinstance(resource, self._folder_model):
            resource.updated_at = datetime.now(UTC)

        removed = 0
        if not enabled:
            model = self._grant_model
            result = await session.execute(
                delete(model).where(
                    model.resource_type == rtype,  # type: ignore[arg-type]
                    model.resource_id == resource.id,  # type: ignore[arg-type]
                    model.kind == GrantKind.VIEW_ONCE.value,  # type: ignore[arg-type]
                )
            )
            removed = result.rowcount or 0
            if removed:
                logger.debug("Cleared %d view-once entries on %s %s", removed, rtype, resource.id)
        session.add(resource)
        await session.flush()
        return removed

    async def _remove(
        self,
        session: AsyncSession,
        resource_type: ResourceType | str,
        resource_id: str,
        grantee_id: str,
        kind: GrantKind,
    ) -> bool:
        grant = await self.get_grant(session, resource_type, resource_id, grantee_id, kind)
        if grant is None:
            return False
        await session.delete(grant)
        await session.flush()
        return True

    async def delete_grants_for(
        self,
        session: AsyncSession,
        resource_type: ResourceType | str,
        resource_id: str,
    ) -> int:
        """Delete every grant on a resource. Returns the number removed."""
        model = self._grant_model
        result = await session.execute(
            delete(model).where(
                model.resource_type == resource_type_value(resource_type),  # type: ignore[arg-type]
                model.resource_id == resource_id,  # type: ignore[arg-type]
            )
        )
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Media hides
    # ------------------------------------------------------------------

    async def hide_media(self, session: AsyncSession, media_id: str, principal_id: str) -> bool:
        """Suppress *media_id* for *principal_id*. Returns True if newly hidden."""
        model = self._hide_model
        result = await session.execute(
            select(model).where(model.media_id == media_id, model.principal_id == principal_id)
        )
        if result.scalar_one_or_none() is not None:
            return False
        session.add(model(media_id=media_id, principal_id=principal_id))
        await session.flush()
        return True

    async def unhide_media(self, session: AsyncSession, media_id: str, principal_id: str) -> bool:
        """Lift a suppression. Returns True if one was removed."""
        model = self._hide_model
        result = await session.execute(
            select(model).where(model.media_id == media_id, model.principal_id == principal_id)
        )
        hide = result.scalar_one_or_none()
        if hide is None:
            return False
        await session.delete(hide)
        await session.flush()
        return True

    async def hidden_for(self, session: AsyncSession, media_id: str) -> frozenset[str]:
        model = self._hide_model
        result = await session.execute(
            select(model.principal_id).where(model.media_id == media_id)
        )
        return frozenset(result.scalars().all())

    async def delete_hides_for(self, session: AsyncSession, media_id: str) -> int:
        model = self._hide_model
        result = await session.execute(
            delete(model).where(model.media_id == media_id)  # type: ignore[arg-type]
        )
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    async def folder_snapshot(self, session: AsyncSession, folder: FolderBase) -> FolderAccess:
        """Build a ``FolderAccess`` from an already-loaded folder."""
        grants = await self.list_grants(session, ResourceType.FOLDER, folder.id)
        return FolderAccess(
            id=folder.id,
            owner_id=folder.owner_id,
            grants=tuple(_to_state(g) for g in grants),
            view_once_enabled=folder.view_once_enabled,
        )

    async def media_snapshot(
        self,
        session: AsyncSession,
        media: MediaItemBase,
        *,
        include_folder: bool = True,
    ) -> MediaAccess:
        """Build a ``MediaAccess`` from an already-loaded media item."""
        grants = await self.list_grants(session, ResourceType.MEDIA, media.id)
        folder_access: FolderAccess | None = None
        if include_folder:
            folder = await session.get(self._folder_model, media.folder_id)
            if folder is not None:
                folder_access = await self.folder_snapshot(session, folder)
        return MediaAccess(
            id=media.id,
            owner_id=media.owner_id,
            folder_id=media.folder_id,
            grants=tuple(_to_state(g) for g in grants),
            hidden_for=await self.hidden_for(session, media.id),
            view_once_enabled=media.view_once_enabled,
            folder=folder_access,
        )

    async def load_folder_access(self, session: AsyncSession, folder_id: str) -> FolderAccess | None:
        """Snapshot a folder by id, or None if it does not exist."""
        folder = await session.get(self._folder_model, folder_id)
        if folder is None:
            return None
        return await self.folder_snapshot(session, folder)

    async def load_media_access(
        self,
        session: AsyncSession,
        media_id: str,
        *,
        include_folder: bool = True,
    ) -> MediaAccess | None:
        """Snapshot a media item by id, or None if it does not exist."""
        media = await session.get(self._media_model, media_id)
        if media is None:
            return None
        return await self.media_snapshot(session, media, include_folder=include_folder)

    # ------------------------------------------------------------------
    # Grantee-side listings
    # ------------------------------------------------------------------

    async def list_folders_shared_with(
        self,
        session: AsyncSession,
        principal_id: str,
    ) -> list[tuple[FolderBase, GrantBase]]:
        """Folders holding a persistent grant for *principal_id*, with the grant."""
        grant_model = self._grant_model
        folder_model = self._folder_model
        result = await session.execute(
            select(folder_model, grant_model)
            .join(grant_model, grant_model.resource_id == folder_model.id)  # type: ignore[arg-type]
            .where(
                grant_model.resource_type == ResourceType.FOLDER.value,
                grant_model.grantee_id == principal_id,
                grant_model.kind == GrantKind.PERSISTENT.value,
            )
            .order_by(folder_model.updated_at.desc())  # type: ignore[union-attr]
        )
        return [(row[0], row[1]) for row in result.all()]

    async def list_view_once_media_for(
        self,
        session: AsyncSession,
        principal_id: str,
    ) -> list[MediaItemBase]:
        """Media with an unconsumed view-once entry for *principal_id*.

        Media hidden from the principal is excluded.
        """
        grant_model = self._grant_model
        media_model = self._media_model
        hide_model = self._hide_model
        hidden = select(hide_model.media_id).where(hide_model.principal_id == principal_id)
        result = await session.execute(
            select(media_model)
            .join(grant_model, grant_model.resource_id == media_model.id)  # type: ignore[arg-type]
            .where(
                grant_model.resource_type == ResourceType.MEDIA.value,
                grant_model.grantee_id == principal_id,
                grant_model.kind == GrantKind.VIEW_ONCE.value,
                grant_model.viewed == False,  # noqa: E712
                media_model.id.not_in(hidden),  # type: ignore[union-attr]
            )
            .order_by(media_model.created_at.desc())  # type: ignore[union-attr]
        )
        return list(result.scalars().all())

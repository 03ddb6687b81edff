"""AccessPolicy — pure evaluator over folder/media access snapshots.

The policy never touches the store.  ``GrantService`` loads a
``FolderAccess`` or ``MediaAccess`` snapshot and the policy answers
questions about it, so checks can run any number of times without
side effects.

Evaluation order for viewing media:

1. Owner: always allowed.
2. ``hidden_for``: denies everything below, including unconsumed
   view-once entries and persistent grants.
3. Persistent grant on the media.
4. Access to the containing folder (inherited): the folder owner or a
   persistent folder grant.  A folder view-once entry covers the folder
   itself, never the media inside it.
5. Unconsumed view-once entry.

Persistent and view-once grants combine with OR semantics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from fleeting.permissions import GrantKind, GrantMode
from fleeting.types import ViewOnceStatus

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True, slots=True)
class GrantState:
    """Immutable view of one grant row."""

    grantee_id: str
    kind: str
    mode: str = GrantMode.VIEW.value
    viewed: bool = False
    viewed_at: datetime | None = None

    @property
    def is_persistent(self) -> bool:
        return self.kind == GrantKind.PERSISTENT.value

    @property
    def is_view_once(self) -> bool:
        return self.kind == GrantKind.VIEW_ONCE.value


@dataclass(frozen=True, slots=True)
class FolderAccess:
    """Access-relevant state of a folder."""

    id: str
    owner_id: str
    grants: tuple[GrantState, ...] = ()
    view_once_enabled: bool = False


@dataclass(frozen=True, slots=True)
class MediaAccess:
    """Access-relevant state of a media item, with its folder when loaded."""

    id: str
    owner_id: str
    folder_id: str
    grants: tuple[GrantState, ...] = ()
    hidden_for: frozenset[str] = field(default_factory=frozenset)
    view_once_enabled: bool = False
    folder: FolderAccess | None = None


Resource = FolderAccess | MediaAccess


def _persistent_grant(resource: Resource, principal_id: str) -> GrantState | None:
    for grant in resource.grants:
        if grant.is_persistent and grant.grantee_id == principal_id:
            return grant
    return None


def _view_once_entry(resource: Resource, principal_id: str) -> GrantState | None:
    for grant in resource.grants:
        if grant.is_view_once and grant.grantee_id == principal_id:
            return grant
    return None


class AccessPolicy:
    """Decides view/edit/upload/share/delete for a principal on a resource."""

    def is_owner(self, resource: Resource, principal_id: str) -> bool:
        return resource.owner_id == principal_id

    def can_edit(self, resource: Resource, principal_id: str) -> bool:
        """Owner only; no delegation."""
        return self.is_owner(resource, principal_id)

    def can_delete(self, resource: Resource, principal_id: str) -> bool:
        """Owner only; no delegation."""
        return self.is_owner(resource, principal_id)

    def can_share(self, resource: Resource, principal_id: str) -> bool:
        """Owner only; no delegation."""
        return self.is_owner(resource, principal_id)

    def can_upload(self, resource: Resource, principal_id: str) -> bool:
        """Folders only: owner, or a persistent grant with ``upload`` mode."""
        if not isinstance(resource, FolderAccess):
            return False
        if self.is_owner(resource, principal_id):
            return True
        grant = _persistent_grant(resource, principal_id)
        return grant is not None and grant.mode == GrantMode.UPLOAD.value

    def can_view(self, resource: Resource, principal_id: str) -> bool:
        """True if *principal_id* may currently see *resource*."""
        if self.is_owner(resource, principal_id):
            return True

        if isinstance(resource, MediaAccess):
            if principal_id in resource.hidden_for:
                return False
            if _persistent_grant(resource, principal_id) is not None:
                return True
            if resource.folder is not None and self._inherits(resource.folder, principal_id):
                return True
        elif _persistent_grant(resource, principal_id) is not None:
            return True

        entry = _view_once_entry(resource, principal_id)
        return entry is not None and not entry.viewed

    def has_folder_access(self, media: MediaAccess, principal_id: str) -> bool:
        """True if the principal reaches *media* through a non-view-once path.

        Either the principal owns or holds a persistent grant on the
        containing folder, or the media carries its own persistent grant.
        """
        if self.is_owner(media, principal_id):
            return True
        if _persistent_grant(media, principal_id) is not None:
            return True
        return media.folder is not None and self._inherits(media.folder, principal_id)

    def _inherits(self, folder: FolderAccess, principal_id: str) -> bool:
        return self.is_owner(folder, principal_id) or _persistent_grant(folder, principal_id) is not None

    def permission_for(self, resource: Resource, principal_id: str) -> str | None:
        """Mode of the principal's persistent grant, ``"owner"``, or None."""
        if self.is_owner(resource, principal_id):
            return "owner"
        grant = _persistent_grant(resource, principal_id)
        return grant.mode if grant is not None else None

    def view_once_status(self, resource: Resource, principal_id: str) -> ViewOnceStatus | None:
        """View-once state for the principal, or None if no entry exists."""
        entry = _view_once_entry(resource, principal_id)
        if entry is None:
            return None
        hidden = isinstance(resource, MediaAccess) and principal_id in resource.hidden_for
        return ViewOnceStatus(
            can_view=not entry.viewed and not hidden,
            viewed=entry.viewed,
            viewed_at=entry.viewed_at,
        )

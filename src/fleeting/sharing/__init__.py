"""Sharing layer — access policy, grants, view-once consumption, share fan-out."""

from fleeting.sharing.access import AccessPolicy, FolderAccess, GrantState, MediaAccess
from fleeting.sharing.consumption import ViewConsumption
from fleeting.sharing.coordinator import ShareCoordinator, ShareRequest
from fleeting.sharing.grants import GrantService
from fleeting.sharing.principals import DatabasePrincipalResolver
from fleeting.sharing.resources import ResourceService

__all__ = [
    "AccessPolicy",
    "DatabasePrincipalResolver",
    "FolderAccess",
    "GrantService",
    "GrantState",
    "MediaAccess",
    "ResourceService",
    "ShareCoordinator",
    "ShareRequest",
    "ViewConsumption",
]

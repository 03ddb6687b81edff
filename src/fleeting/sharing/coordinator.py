"""ShareCoordinator — the single entry point that creates shares.

A share fans out over a list of recipients.  The request is validated as
a whole first; after that every recipient is processed in its own session
and transaction, so one bad recipient (unknown email, store failure)
never rolls back the others.  The result lists one outcome per recipient.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from fleeting.events import EventBus, EventType, ShareEvent
from fleeting.exceptions import FleetingError, ForbiddenError, NotFoundError, ValidationError
from fleeting.models.notifications import NotificationType
from fleeting.permissions import GrantMode, ResourceType, ShareMode
from fleeting.types import BatchShareResult, RecipientResult
from fleeting.utils import ensure_utc, is_email, utcnow

from .access import AccessPolicy
from .grants import grant_mode_value, resource_type_value

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from fleeting.notifications.service import NotificationService
    from fleeting.protocols import PrincipalResolver

    from .grants import GrantService

logger = logging.getLogger(__name__)


@dataclass
class ShareRequest:
    """Everything needed to share one resource with a list of recipients.

    Each recipient is either a principal id or an email address; anything
    containing ``@`` is treated as an email.
    """

    resource_type: ResourceType | str
    resource_id: str
    sender_id: str
    recipients: Sequence[str] = field(default_factory=list)
    mode: ShareMode | str = ShareMode.PERSISTENT
    permission: GrantMode | str = GrantMode.VIEW
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None
    message: str | None = None


def share_mode_value(mode: ShareMode | str) -> str:
    try:
        return ShareMode(mode).value
    except ValueError:
        raise ValidationError(
            f"Invalid share mode: {mode!r}. Must be 'persistent' or 'view_once'."
        ) from None


def normalize_recipients(recipients: Sequence[str]) -> list[str]:
    """Strip, drop duplicates (keeping order), and reject malformed lists."""
    if isinstance(recipients, str) or not recipients:
        raise ValidationError("At least one recipient is required")
    seen: dict[str, None] = {}
    for raw in recipients:
        if not isinstance(raw, str) or not raw.strip():
            raise ValidationError(f"Malformed recipient: {raw!r}")
        value = raw.strip()
        seen.setdefault(value.lower() if "@" in value else value, None)
    return list(seen)


def notification_type_for(resource_type: str, mode: str, scheduled: bool) -> NotificationType:
    if scheduled:
        return NotificationType.SCHEDULED
    if mode == ShareMode.VIEW_ONCE.value:
        return NotificationType.VIEW_ONCE
    if resource_type == ResourceType.FOLDER.value:
        return NotificationType.FOLDER_SHARED
    return NotificationType.SHARED


class _UnresolvedRecipient(Exception):
    """Recipient-level failure recorded in the batch result, never raised out."""


class ShareCoordinator:
    """Validates a share request and writes grants plus notifications.

    ``SHARE_CREATED`` is emitted on the event bus after each recipient's
    transaction commits; handler failures are logged by the bus.
    """

    def __init__(
        self,
        grants: GrantService,
        notifications: NotificationService,
        resolver: PrincipalResolver,
        *,
        event_bus: EventBus | None = None,
        policy: AccessPolicy | None = None,
        view_once_ttl: timedelta = timedelta(hours=24),
    ) -> None:
        self._grants = grants
        self._notifications = notifications
        self._resolver = resolver
        self._event_bus = event_bus or EventBus()
        self._policy = policy or AccessPolicy()
        self._view_once_ttl = view_once_ttl

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def _validate(
        self,
        session: AsyncSession,
        request: ShareRequest,
        resource_type: str,
    ) -> str | None:
        """Check the resource and the sender's right to share it.

        Returns the media's folder id for media shares, None for folders.
        """
        if resource_type == ResourceType.FOLDER.value:
            snapshot = await self._grants.load_folder_access(session, request.resource_id)
            folder_id = None
        else:
            snapshot = await self._grants.load_media_access(
                session, request.resource_id, include_folder=False
            )
            folder_id = snapshot.folder_id if snapshot is not None else None

        if snapshot is None:
            raise NotFoundError(f"{resource_type.capitalize()} not found: {request.resource_id}")
        if not self._policy.can_share(snapshot, request.sender_id):
            raise ForbiddenError(f"Only the owner can share this {resource_type}")
        return folder_id

    async def _resolve(self, recipient: str) -> str:
        if "@" in recipient:
            if not is_email(recipient):
                raise _UnresolvedRecipient(f"Invalid email address: {recipient}")
            principal_id = await self._resolver.find_by_email(recipient)
            if principal_id is None:
                raise _UnresolvedRecipient(f"No user found with email {recipient}")
            return principal_id
        if not await self._resolver.exists(recipient):
            raise _UnresolvedRecipient(f"No user found with id {recipient}")
        return recipient

    # ------------------------------------------------------------------
    # Share
    # ------------------------------------------------------------------

    async def create_share(
        self,
        session_factory: Callable[..., AsyncSession],
        request: ShareRequest,
    ) -> BatchShareResult:
        """Share ``request.resource_id`` with every recipient.

        Raises ``ValidationError``, ``NotFoundError``, or ``ForbiddenError``
        when the request as a whole is invalid.  Per-recipient problems
        are reported in the returned ``BatchShareResult`` instead.
        """
        resource_type = resource_type_value(request.resource_type)
        mode = share_mode_value(request.mode)
        permission = grant_mode_value(request.permission)
        recipients = normalize_recipients(request.recipients)

        if mode == ShareMode.PERSISTENT.value and resource_type == ResourceType.MEDIA.value:
            if permission == GrantMode.UPLOAD.value:
                raise ValidationError("Upload permission applies to folders only")

        scheduled_for = ensure_utc(request.scheduled_for)
        expires_at = ensure_utc(request.expires_at)
        if scheduled_for is not None and expires_at is not None and expires_at <= scheduled_for:
            raise ValidationError("expires_at must be after scheduled_for")
        if mode == ShareMode.VIEW_ONCE.value and expires_at is None:
            expires_at = (scheduled_for or utcnow()) + self._view_once_ttl

        async with session_factory() as session:
            folder_id = await self._validate(session, request, resource_type)

        result = BatchShareResult(
            resource_type=resource_type,
            resource_id=request.resource_id,
            mode=mode,
        )
        ntype = notification_type_for(resource_type, mode, scheduled_for is not None)

        for recipient in recipients:
            outcome = await self._share_one(
                session_factory,
                request,
                recipient,
                resource_type=resource_type,
                mode=mode,
                permission=permission,
                notification_type=ntype,
                folder_id=folder_id,
                scheduled_for=scheduled_for,
                expires_at=expires_at,
            )
            result.results.append(outcome)

        logger.debug(
            "Share of %s %s by %s: %d succeeded, %d failed",
            resource_type,
            request.resource_id,
            request.sender_id,
            result.success_count,
            result.failure_count,
        )
        return result

    async def _share_one(
        self,
        session_factory: Callable[..., AsyncSession],
        request: ShareRequest,
        recipient: str,
        *,
        resource_type: str,
        mode: str,
        permission: str,
        notification_type: NotificationType,
        folder_id: str | None,
        scheduled_for: datetime | None,
        expires_at: datetime | None,
    ) -> RecipientResult:
        try:
            principal_id = await self._resolve(recipient)
        except _UnresolvedRecipient as e:
            return RecipientResult(recipient=recipient, success=False, error=str(e))
        except Exception as e:
            logger.warning("Resolving share recipient %s failed", recipient, exc_info=True)
            return RecipientResult(
                recipient=recipient,
                success=False,
                error=f"Could not resolve recipient {recipient}: {e}",
            )
        if principal_id == request.sender_id:
            return RecipientResult(
                recipient=recipient,
                success=False,
                principal_id=principal_id,
                error="Cannot share with yourself",
            )

        view_once = mode == ShareMode.VIEW_ONCE.value
        session = session_factory()
        try:
            if view_once:
                await self._arm_view_once(session, resource_type, request.resource_id)
                await self._grants.add_view_once_entry(
                    session,
                    resource_type,
                    request.resource_id,
                    principal_id,
                    granted_by=request.sender_id,
                )
            else:
                await self._grants.add_persistent_grant(
                    session,
                    resource_type,
                    request.resource_id,
                    principal_id,
                    permission,
                    granted_by=request.sender_id,
                )

            is_media = resource_type == ResourceType.MEDIA.value
            notification = await self._notifications.create(
                session,
                recipient_id=principal_id,
                sender_id=request.sender_id,
                notification_type=notification_type,
                media_id=request.resource_id if is_media else None,
                folder_id=folder_id if is_media else request.resource_id,
                view_once=view_once,
                scheduled_for=scheduled_for,
                expires_at=expires_at,
                message=request.message,
            )
            notification_id = notification.id
            await session.commit()
        except (FleetingError, SQLAlchemyError) as e:
            await session.rollback()
            logger.warning(
                "Share of %s %s with %s failed",
                resource_type,
                request.resource_id,
                recipient,
                exc_info=True,
            )
            return RecipientResult(
                recipient=recipient,
                success=False,
                principal_id=principal_id,
                error=str(e),
            )
        finally:
            await session.close()

        # Pending scheduled shares are announced when they are executed.
        if scheduled_for is None or scheduled_for <= utcnow():
            await self._event_bus.emit(
                ShareEvent(
                    event_type=EventType.SHARE_CREATED,
                    principal_id=principal_id,
                    resource_type=resource_type,
                    resource_id=request.resource_id,
                    actor_id=request.sender_id,
                    notification_id=notification_id,
                    view_once=view_once,
                    message=request.message,
                )
            )
        return RecipientResult(
            recipient=recipient,
            success=True,
            principal_id=principal_id,
            notification_id=notification_id,
        )

    async def _arm_view_once(self, session: AsyncSession, resource_type: str, resource_id: str) -> None:
        """Turn view-once sharing on for the resource if it is off."""
        if resource_type == ResourceType.FOLDER.value:
            resource = await self._grants.get_folder(session, resource_id)
        else:
            resource = await self._grants.get_media(session, resource_id)
        if resource is None:
            raise NotFoundError(f"{resource_type.capitalize()} not found: {resource_id}")
        if not resource.view_once_enabled:
            await self._grants.set_view_once_enabled(session, resource, True)

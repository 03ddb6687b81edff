"""EventBus and event types for best-effort share fan-out."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of sharing events published after a transaction commits."""

    SHARE_CREATED = "share_created"
    GRANT_REVOKED = "grant_revoked"
    VIEW_CONSUMED = "view_consumed"
    NOTIFICATION_REMOVED = "notification_removed"


@dataclass(frozen=True, slots=True)
class ShareEvent:
    """Immutable record of a committed sharing mutation.

    Attributes:
        event_type: The kind of mutation that occurred.
        principal_id: Principal the event is addressed to (recipient/grantee).
        resource_type: ``"folder"`` or ``"media"``.
        resource_id: Id of the affected resource.
        actor_id: Principal that caused the event, when known.
        notification_id: Notification created or removed, when relevant.
        view_once: Whether the grant involved is a view-once entry.
        message: Optional personal message attached by the sender.
    """

    event_type: EventType
    principal_id: str
    resource_type: str
    resource_id: str
    actor_id: str | None = None
    notification_id: str | None = None
    view_once: bool = False
    message: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Plain-dict form for realtime publishers and notifier templates."""
        return {
            "type": self.event_type.value,
            "principal_id": self.principal_id,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "actor_id": self.actor_id,
            "notification_id": self.notification_id,
            "view_once": self.view_once,
            "message": self.message,
        }


class EventBus:
    """Dispatches sharing events to registered handlers.

    Handlers are called sequentially in registration order.
    Exceptions are logged but never propagated; a failing handler
    loses a push or an email, it never undoes a committed share.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[Callable[..., Any]]] = {et: [] for et in EventType}

    def register(self, event_type: EventType, handler: Callable[..., Any]) -> None:
        """Append *handler* to the list for *event_type*."""
        self._handlers[event_type].append(handler)

    def unregister(self, event_type: EventType, handler: Callable[..., Any]) -> bool:
        """Remove first occurrence of *handler*. Return True if found."""
        handlers = self._handlers[event_type]
        try:
            handlers.remove(handler)
            return True
        except ValueError:
            return False

    async def emit(self, event: ShareEvent) -> None:
        """Dispatch *event* to all registered handlers for its type."""
        for handler in self._handlers[event.event_type]:
            try:
                await handler(event)
            except Exception:
                logger.warning(
                    "Handler %r failed for %s on %s %s",
                    handler,
                    event.event_type.value,
                    event.resource_type,
                    event.resource_id,
                    exc_info=True,
                )

    @property
    def handler_count(self) -> int:
        """Total number of registered handlers across all event types."""
        return sum(len(h) for h in self._handlers.values())

    def clear(self) -> None:
        """Remove all registered handlers."""
        for handlers in self._handlers.values():
            handlers.clear()

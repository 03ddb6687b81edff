"""Collaborator protocols — runtime-checkable interfaces.

The sharing core never implements blob storage, outbound messaging, or
realtime push itself.  Hosts plug concrete collaborators in through these
protocols; ``DatabasePrincipalResolver`` is the only built-in one.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class StoredBlob:
    """Handle returned by a blob store for stored content."""

    id: str
    url: str


@runtime_checkable
class BlobStore(Protocol):
    """Opaque byte storage.  The core stores the returned id/url and never inspects content."""

    async def store(self, data: bytes, *, file_name: str) -> StoredBlob: ...

    async def delete(self, blob_id: str) -> bool: ...


@runtime_checkable
class Notifier(Protocol):
    """Email/push delivery.  Fire-and-forget; failures never abort a share."""

    async def notify(self, principal_id: str, template: str, data: dict[str, Any]) -> bool: ...


@runtime_checkable
class PrincipalResolver(Protocol):
    """Turns human input (emails, ids) into principal ids."""

    async def find_by_email(self, email: str) -> str | None: ...

    async def exists(self, principal_id: str) -> bool: ...


@runtime_checkable
class RealtimePublisher(Protocol):
    """Best-effort fan-out to connected clients.  No delivery guarantee."""

    async def publish(self, principal_id: str, event: dict[str, Any]) -> None: ...

"""Time, identifier, and email helpers shared across services."""

from __future__ import annotations

import re
from datetime import UTC, datetime

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Return *value* as an aware UTC datetime.

    SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
    columns, so naive values are interpreted as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def is_email(value: str) -> bool:
    """True if *value* looks like an email address."""
    return bool(_EMAIL_RE.match(value))


def normalize_email(email: str) -> str:
    """Lower-case and strip an email address."""
    return email.strip().lower()

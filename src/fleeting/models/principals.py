"""Principal model — the identities grants and notifications refer to.

Provides ``PrincipalBase`` (non-table) and ``Principal`` (concrete table).
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class PrincipalBase(SQLModel):
    """Base fields for a principal. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    email: str = Field(index=True, unique=True)
    display_name: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class Principal(PrincipalBase, table=True):
    """Default principal table, ``fleeting_principals``."""

    __tablename__ = "fleeting_principals"

"""Grant model — normalized share grants for folders and media.

One row per ``(resource_type, resource_id, grantee_id, kind)``: a grantee
can hold at most one persistent grant and one view-once entry on the same
resource.  View-once rows carry ``viewed``/``viewed_at``; consumption is a
conditional update on ``viewed = false``.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Index, UniqueConstraint
from sqlmodel import Field, SQLModel

from fleeting.permissions import GrantKind, GrantMode


class GrantBase(SQLModel):
    """Base fields for a grant. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    resource_type: str = Field(index=True)
    resource_id: str = Field(index=True)
    grantee_id: str = Field(index=True)
    kind: str = Field(default=GrantKind.PERSISTENT.value)
    mode: str = Field(default=GrantMode.VIEW.value)
    viewed: bool = Field(default=False)
    viewed_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    granted_by: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class Grant(GrantBase, table=True):
    """Default grant table, ``fleeting_grants``."""

    __tablename__ = "fleeting_grants"
    __table_args__ = (
        UniqueConstraint(
            "resource_type", "resource_id", "grantee_id", "kind",
            name="uq_fleeting_grant",
        ),
        Index("ix_fleeting_grants_resource_grantee", "resource_id", "grantee_id"),
    )

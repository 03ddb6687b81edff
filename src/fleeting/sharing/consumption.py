"""ViewConsumption — single-winner consumption of view-once entries."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import update

from fleeting.models.grants import Grant
from fleeting.permissions import GrantKind, ResourceType
from fleeting.types import ConsumeResult
from fleeting.utils import utcnow

from .grants import resource_type_value

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from fleeting.models.grants import GrantBase

logger = logging.getLogger(__name__)


class ViewConsumption:
    """Consumes a view-once entry exactly once.

    The check and the set happen in one ``UPDATE ... WHERE viewed = false``
    statement; the affected row count decides the winner.  Two concurrent
    callers for the same entry cannot both observe ``consumed=True``.
    """

    def __init__(self, grant_model: type[GrantBase] | None = None) -> None:
        self._grant_model: type[GrantBase] = grant_model or Grant

    async def consume(
        self,
        session: AsyncSession,
        resource_type: ResourceType | str,
        resource_id: str,
        grantee_id: str,
        *,
        now: datetime | None = None,
    ) -> ConsumeResult:
        """Mark the entry for *grantee_id* as viewed if it is still unviewed.

        Returns ``consumed=False`` when there is no entry or it was already
        consumed.  Neither case is an error.  Flushes nothing beyond the
        update itself; the caller commits.
        """
        rtype = resource_type_value(resource_type)
        viewed_at = now or utcnow()
        model = self._grant_model
        result = await session.execute(
            update(model)
            .where(
                model.resource_type == rtype,  # type: ignore[arg-type]
                model.resource_id == resource_id,  # type: ignore[arg-type]
                model.grantee_id == grantee_id,  # type: ignore[arg-type]
                model.kind == GrantKind.VIEW_ONCE.value,  # type: ignore[arg-type]
                model.viewed == False,  # type: ignore[arg-type]  # noqa: E712
            )
            .values(viewed=True, viewed_at=viewed_at)
        )
        consumed = (result.rowcount or 0) == 1
        if consumed:
            logger.debug("Consumed view-once entry on %s %s for %s", rtype, resource_id, grantee_id)
        return ConsumeResult(
            consumed=consumed,
            resource_type=rtype,
            resource_id=resource_id,
            grantee_id=grantee_id,
            viewed_at=viewed_at if consumed else None,
        )

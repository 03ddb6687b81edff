"""DatabasePrincipalResolver — principal lookup backed by the principals table."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlmodel import select

from fleeting.exceptions import ValidationError
from fleeting.models.principals import Principal
from fleeting.utils import is_email, normalize_email

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from fleeting.models.principals import PrincipalBase


class DatabasePrincipalResolver:
    """Resolves emails and ids against the principal table.

    Opens its own short-lived session per lookup, so it can be handed to
    ``ShareCoordinator`` independently of the caller's transaction.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        principal_model: type[PrincipalBase] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._principal_model: type[PrincipalBase] = principal_model or Principal

    async def find_by_email(self, email: str) -> str | None:
        model = self._principal_model
        async with self._session_factory() as session:
            result = await session.execute(
                select(model.id).where(model.email == normalize_email(email))
            )
            return result.scalar_one_or_none()

    async def exists(self, principal_id: str) -> bool:
        async with self._session_factory() as session:
            return await session.get(self._principal_model, principal_id) is not None

    async def register(self, email: str, display_name: str = "") -> PrincipalBase:
        """Create a principal, or return the existing one for *email*."""
        if not is_email(email):
            raise ValidationError(f"Invalid email address: {email!r}")
        email = normalize_email(email)
        model = self._principal_model
        async with self._session_factory() as session:
            result = await session.execute(select(model).where(model.email == email))
            existing = result.scalar_one_or_none()
            if existing is not None:
                return existing
            principal = model(email=email, display_name=display_name)
            session.add(principal)
            await session.commit()
            await session.refresh(principal)
            return principal

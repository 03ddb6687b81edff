"""Shared fixtures for Fleeting tests."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import Session, SQLModel, create_engine

import fleeting.models  # noqa: F401  (registers tables on SQLModel.metadata)
from fleeting.models.principals import Principal
from fleeting.models.resources import Folder, MediaItem
from fleeting.protocols import StoredBlob

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterator

    from sqlalchemy import Engine
    from sqlalchemy.ext.asyncio import AsyncEngine


# =========================================================================
# Fake collaborators
# =========================================================================


class FakeBlobStore:
    """In-memory BlobStore."""

    def __init__(self, *, fail_delete: bool = False) -> None:
        self.blobs: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self._fail_delete = fail_delete
        self._counter = 0

    async def store(self, data: bytes, *, file_name: str) -> StoredBlob:
        self._counter += 1
        blob_id = f"blob-{self._counter}"
        self.blobs[blob_id] = data
        return StoredBlob(id=blob_id, url=f"https://blobs.example.com/{blob_id}/{file_name}")

    async def delete(self, blob_id: str) -> bool:
        if self._fail_delete:
            raise RuntimeError("blob store unavailable")
        self.deleted.append(blob_id)
        return self.blobs.pop(blob_id, None) is not None


class FakeNotifier:
    """Records notify() calls; optionally raises on every call."""

    def __init__(self, *, fail: bool = False) -> None:
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self._fail = fail

    async def notify(self, principal_id: str, template: str, data: dict[str, Any]) -> bool:
        self.calls.append((principal_id, template, data))
        if self._fail:
            raise RuntimeError("smtp down")
        return True


class FakePublisher:
    """Records publish() calls."""

    def __init__(self) -> None:
        self.published: list[tuple[str, dict[str, Any]]] = []

    async def publish(self, principal_id: str, event: dict[str, Any]) -> None:
        self.published.append((principal_id, event))


class FakeResolver:
    """PrincipalResolver over a fixed email → id mapping."""

    def __init__(self, principals: dict[str, str]) -> None:
        self._by_email = {email.lower(): pid for email, pid in principals.items()}

    async def find_by_email(self, email: str) -> str | None:
        return self._by_email.get(email.strip().lower())

    async def exists(self, principal_id: str) -> bool:
        return principal_id in self._by_email.values()


# =========================================================================
# Database fixtures
# =========================================================================


@pytest.fixture
def engine() -> Engine:
    """In-memory SQLite engine with all tables created."""
    eng = create_engine("sqlite://", echo=False)
    SQLModel.metadata.create_all(eng)
    return eng


@pytest.fixture
def session(engine: Engine) -> Iterator[Session]:
    """SQLModel session bound to the in-memory engine, rolled back after each test."""
    with Session(engine) as s:
        s.begin()
        yield s
        s.rollback()


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> Callable[..., AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_session(
    session_factory: Callable[..., AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Async SQLModel session for service-level tests."""
    async with session_factory() as session:
        yield session


# =========================================================================
# Data helpers
# =========================================================================


async def make_principal(session: AsyncSession, email: str) -> str:
    principal = Principal(email=email)
    session.add(principal)
    await session.flush()
    return principal.id


async def make_folder(session: AsyncSession, owner_id: str, name: str = "Photos") -> Folder:
    folder = Folder(owner_id=owner_id, name=name)
    session.add(folder)
    await session.flush()
    return folder


async def make_media(
    session: AsyncSession,
    folder: Folder,
    owner_id: str | None = None,
    file_name: str = "beach.jpg",
) -> MediaItem:
    media = MediaItem(
        owner_id=owner_id or folder.owner_id,
        folder_id=folder.id,
        file_name=file_name,
        blob_id=f"blob-{file_name}",
        url=f"https://blobs.example.com/{file_name}",
    )
    session.add(media)
    await session.flush()
    return media


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()

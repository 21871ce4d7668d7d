"""
Test configuration and shared fixtures.
Orchestrator tests run against in-memory doubles; repository and HTTP tests
use an in-memory SQLite database.
"""
from __future__ import annotations

import asyncio
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("STORAGE_BACKEND", "memory")

import uuid  # noqa: E402
from collections.abc import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

import attachvault.models  # noqa: E402,F401
from attachvault.core.config import AttachmentPolicy  # noqa: E402
from attachvault.core.dependencies import get_object_store  # noqa: E402
from attachvault.core.exceptions import RepositoryException, StorageException  # noqa: E402
from attachvault.core.security import create_access_token  # noqa: E402
from attachvault.db.base import Base  # noqa: E402
from attachvault.db.session import get_db  # noqa: E402
from attachvault.main import app  # noqa: E402
from attachvault.models.task import Task  # noqa: E402
from attachvault.repositories.memory import (  # noqa: E402
    InMemoryAttachmentRepository,
    InMemoryTaskLookup,
)
from attachvault.schemas.attachment import FileUpload  # noqa: E402
from attachvault.services.attachment_service import AttachmentService  # noqa: E402
from attachvault.storage.memory import InMemoryObjectStore  # noqa: E402

MIB = 1024 * 1024
PDF = "application/pdf"
PNG = "image/png"


def make_upload(
    name: str = "report.pdf",
    size: int = 1024,
    media_type: str = PDF,
    content: bytes | None = None,
) -> FileUpload:
    """Build a FileUpload whose declared size may differ from its content."""
    return FileUpload(
        original_name=name,
        media_type=media_type,
        size_bytes=size,
        content=content if content is not None else name.encode(),
    )


# ── Failure-injecting doubles ─────────────────────────────────────────────────

class FlakyObjectStore(InMemoryObjectStore):
    """Fails the n-th put/copy call, or every delete, on request."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_put_on: int | None = None
        self.fail_copy_on: int | None = None
        self.fail_delete = False
        self.put_calls = 0
        self.copy_calls = 0

    async def put(self, key: str, content: bytes, media_type: str) -> str:
        self.put_calls += 1
        await asyncio.sleep(0)  # yield like real I/O would
        if self.put_calls == self.fail_put_on:
            raise StorageException("Storage upload failed: injected")
        return await super().put(key, content, media_type)

    async def copy(self, source_locator: str, destination_key: str, media_type: str) -> str:
        self.copy_calls += 1
        if self.copy_calls == self.fail_copy_on:
            raise StorageException("Storage copy failed: injected")
        return await super().copy(source_locator, destination_key, media_type)

    async def delete(self, locator: str) -> None:
        if self.fail_delete:
            raise StorageException("Storage deletion failed: injected")
        await super().delete(locator)


class FlakyAttachmentRepository(InMemoryAttachmentRepository):
    """Fails the n-th create call, every single-record delete, or commit, on request."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_create_on: int | None = None
        self.fail_delete_by_id = False
        self.fail_commit = False
        self.create_calls = 0

    async def create(self, **kwargs):  # type: ignore[override]
        self.create_calls += 1
        if self.create_calls == self.fail_create_on:
            raise RepositoryException("Failed to create attachment")
        return await super().create(**kwargs)

    async def delete_by_id(self, attachment_id: uuid.UUID) -> None:
        if self.fail_delete_by_id:
            raise RepositoryException("Failed to delete attachment")
        await super().delete_by_id(attachment_id)

    async def commit(self) -> None:
        if self.fail_commit:
            raise RepositoryException("Failed to commit attachments")


# ── Orchestrator fixtures ─────────────────────────────────────────────────────

@pytest.fixture
def policy() -> AttachmentPolicy:
    return AttachmentPolicy()


@pytest.fixture
def object_store() -> FlakyObjectStore:
    return FlakyObjectStore()


@pytest.fixture
def repository() -> FlakyAttachmentRepository:
    return FlakyAttachmentRepository()


@pytest.fixture
def task_lookup() -> InMemoryTaskLookup:
    return InMemoryTaskLookup()


@pytest.fixture
def task_id(task_lookup: InMemoryTaskLookup) -> uuid.UUID:
    return task_lookup.add(uuid.uuid4())


@pytest.fixture
def other_task_id(task_lookup: InMemoryTaskLookup) -> uuid.UUID:
    return task_lookup.add(uuid.uuid4())


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def service(
    repository: FlakyAttachmentRepository,
    object_store: FlakyObjectStore,
    task_lookup: InMemoryTaskLookup,
    policy: AttachmentPolicy,
) -> AttachmentService:
    return AttachmentService(
        repository=repository,
        object_store=object_store,
        task_lookup=task_lookup,
        policy=policy,
    )


# ── Database fixtures ─────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """A fresh in-memory database per test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # The sqlite driver manages BEGIN itself; SAVEPOINT needs SQLAlchemy to do it.
    @event.listens_for(test_engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(test_engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest_asyncio.fixture
async def db_task(db: AsyncSession) -> Task:
    task = Task(title="Quarterly report")
    db.add(task)
    await db.flush()
    await db.refresh(task)
    return task


# ── HTTP fixtures ─────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(
    db: AsyncSession, object_store: FlakyObjectStore
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client with the test DB and the in-memory store injected."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_object_store] = lambda: object_store

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(user_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user_id))}"}


@pytest.fixture
def other_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(uuid.uuid4()))}"}

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.db import get_session
from app.main import app
from app.models import SQLModel
from app.services.attendance import InMemoryAttendanceService, set_attendance_service
from app.services.employee import InMemoryEmployeeService, set_employee_service

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """In-memory SQLite engine with the schema created.

    pysqlite's own transaction handling is disabled so that the explicit
    BEGIN below makes SAVEPOINT (``session.begin_nested``) work.
    """
    _engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)

    @event.listens_for(_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _record) -> None:  # noqa: ANN001
        dbapi_connection.isolation_level = None

    @event.listens_for(_engine.sync_engine, "begin")
    def _on_begin(conn) -> None:  # noqa: ANN001
        conn.exec_driver_sql("BEGIN")

    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
async def db_connection(engine: AsyncEngine) -> AsyncIterator[AsyncConnection]:
    """A connection inside an outer transaction that rolls back after each test."""
    async with engine.connect() as conn:
        txn = await conn.begin()
        yield conn
        await txn.rollback()


@pytest.fixture
async def db_session(db_connection: AsyncConnection) -> AsyncIterator[AsyncSession]:
    """Yield a database session whose commits stay inside the test transaction."""
    session = AsyncSession(bind=db_connection, expire_on_commit=False)
    yield session
    await session.close()


@pytest.fixture
def session_factory(db_connection: AsyncConnection) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test connection, for code that opens its own sessions."""
    return async_sessionmaker(bind=db_connection, expire_on_commit=False)


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def employee_service() -> Iterator[InMemoryEmployeeService]:
    """Fresh in-memory roster, installed for the duration of the test."""
    svc = InMemoryEmployeeService()
    set_employee_service(svc)
    yield svc
    set_employee_service(InMemoryEmployeeService())


@pytest.fixture
def attendance_service() -> Iterator[InMemoryAttendanceService]:
    """Fresh in-memory attendance source, installed for the duration of the test."""
    svc = InMemoryAttendanceService()
    set_attendance_service(svc)
    yield svc
    set_attendance_service(InMemoryAttendanceService())

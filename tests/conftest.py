"""Pytest configuration and fixtures for planner tests."""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from planner.api.auth.jwt import TokenPayload
from planner.api.dependencies import get_session, require_auth
from planner.api.main import app
from planner.common.database import create_session_factory
from planner.models import Workspace
from planner.models.base import Base
from planner.services.backup import ImportContext


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
def user_id() -> str:
    """Identity of the calling user."""
    return "user_1"


@pytest.fixture
def import_context(user_id: str) -> ImportContext:
    return ImportContext(user_id=user_id, email="user_1@example.com")


@pytest_asyncio.fixture(scope="function")
async def test_db(tmp_path) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session.

    Backed by a throwaway SQLite file with foreign keys enforced. Tables are
    created before the test and the file is discarded afterwards.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'planner.db'}")
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = create_session_factory(engine)
    async with factory() as session:
        yield session
        await session.rollback()

    await engine.dispose()


@pytest_asyncio.fixture
async def async_client(
    test_db: AsyncSession,
    user_id: str,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client authenticated as ``user_id``."""

    async def override_get_session():
        try:
            yield test_db
            await test_db.commit()
        except Exception:
            await test_db.rollback()
            raise

    async def override_require_auth() -> TokenPayload:
        return TokenPayload(sub=user_id, exp=0, iat=0, email=f"{user_id}@example.com")

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[require_auth] = override_require_auth

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def unauthenticated_client(test_db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the real bearer-token authentication in place."""

    async def override_get_session():
        try:
            yield test_db
            await test_db.commit()
        except Exception:
            await test_db.rollback()
            raise

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def make_workspace(test_db: AsyncSession) -> Callable[..., Any]:
    """Factory that persists a workspace and returns it."""

    async def _make(owner_id: str, **overrides: Any) -> Workspace:
        values: dict[str, Any] = {
            "name": "Personal",
            "slug": f"ws-{uuid4().hex[:10]}",
            "owner_id": owner_id,
            "is_personal": True,
        }
        values.update(overrides)
        workspace = Workspace(**values)
        test_db.add(workspace)
        await test_db.commit()
        return workspace

    return _make


@pytest.fixture
def make_snapshot(user_id: str) -> Callable[..., dict[str, Any]]:
    """Factory for snapshot documents in the exported wire format."""

    def _make(
        owner_id: str | None = None,
        workspaces: list[dict[str, Any]] | None = None,
        tasks: list[dict[str, Any]] | None = None,
        goals: list[dict[str, Any]] | None = None,
        habits: list[dict[str, Any]] | None = None,
        templates: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        return {
            "formatVersion": "1.0.0",
            "exportedAt": datetime.now(UTC).isoformat(),
            "owner": {"id": owner_id or user_id, "email": None},
            "collections": {
                "workspaces": workspaces or [],
                "workspaceMembers": [],
                "tasks": tasks or [],
                "goals": goals or [],
                "habits": habits or [],
                "templates": templates or [],
            },
        }

    return _make


def workspace_record(workspace_id: UUID | None = None, **overrides: Any) -> dict[str, Any]:
    record = {
        "id": str(workspace_id or uuid4()),
        "name": "Restored workspace",
        "slug": f"restored-{uuid4().hex[:10]}",
        "ownerId": "someone-else",
        "isPersonal": True,
    }
    record.update(overrides)
    return record


def task_record(workspace_id: UUID | str, **overrides: Any) -> dict[str, Any]:
    record = {
        "id": str(uuid4()),
        "type": "task",
        "title": "Restored task",
        "workspaceId": str(workspace_id),
        "createdBy": "someone-else",
        "status": "todo",
        "priority": "high",
        "tags": ["restored"],
        "metadata": {"origin": "backup"},
    }
    record.update(overrides)
    return record


def goal_record(workspace_id: UUID | str, **overrides: Any) -> dict[str, Any]:
    record = {
        "id": str(uuid4()),
        "title": "Restored goal",
        "workspaceId": str(workspace_id),
        "type": "quarterly",
        "milestones": [{"title": "Halfway", "completed": False}],
    }
    record.update(overrides)
    return record


def habit_record(workspace_id: UUID | str, **overrides: Any) -> dict[str, Any]:
    record = {
        "id": str(uuid4()),
        "name": "Restored habit",
        "workspaceId": str(workspace_id),
        "userId": "someone-else",
        "scheduledDays": [1, 3, 5],
        "startDate": "2026-01-05",
    }
    record.update(overrides)
    return record


def template_record(**overrides: Any) -> dict[str, Any]:
    record = {
        "id": str(uuid4()),
        "name": "Restored template",
        "creatorId": "someone-else",
        "structure": {"entries": [{"kind": "task", "title": "From backup"}]},
        "status": "published",
    }
    record.update(overrides)
    return record

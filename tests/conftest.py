"""Shared test fixtures — async DB, client, actor headers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Point settings at SQLite before any import builds the app engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import uuid
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from okr_backend.common.constants import (
    Confidence,
    MetricType,
    ObjectiveStatus,
    ObjectiveType,
    TimePeriod,
    UserRole,
)
from okr_backend.database import Base, get_db
from okr_backend.main import create_app

# Import ALL model modules so every table is on Base.metadata
import okr_backend.org.models  # noqa: F401
import okr_backend.okr.models  # noqa: F401
import okr_backend.notifications.models  # noqa: F401

# ── SQLite compat: compile PG-specific types ────────────────────────

from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


def actor_headers(user_id: uuid.UUID) -> dict[str, str]:
    """Headers identifying the acting user."""
    return {"X-Actor-Id": str(user_id)}


# ── Model factories ─────────────────────────────────────────────────

def _make_user(
    *,
    name: str = "Test User",
    email: Optional[str] = None,
    role: UserRole = UserRole.member,
    is_active: bool = True,
    created_at: Optional[datetime] = None,
) -> dict:
    now = created_at or datetime.now(timezone.utc)
    return dict(
        id=uuid.uuid4(),
        name=name,
        email=email or f"user-{uuid.uuid4().hex[:8]}@okr.test",
        role=role,
        is_active=is_active,
        created_at=now,
        updated_at=now,
    )


def _make_department(
    *,
    name: Optional[str] = None,
    code: Optional[str] = None,
) -> dict:
    suffix = uuid.uuid4().hex[:6]
    return dict(
        id=uuid.uuid4(),
        name=name or f"Dept-{suffix}",
        code=code or f"D{suffix[:4]}",
        is_active=True,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


def _make_team(
    *,
    department_id: uuid.UUID,
    leader_id: Optional[uuid.UUID] = None,
    name: Optional[str] = None,
    is_active: bool = True,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name or f"Team-{uuid.uuid4().hex[:6]}",
        department_id=department_id,
        leader_id=leader_id,
        is_active=is_active,
        member_count=0,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


def _make_objective(
    *,
    owner_id: uuid.UUID,
    type: ObjectiveType = ObjectiveType.individual,
    title: str = "Grow weekly active users",
    department_id: Optional[uuid.UUID] = None,
    team_id: Optional[uuid.UUID] = None,
    aligned_to_id: Optional[uuid.UUID] = None,
    status: ObjectiveStatus = ObjectiveStatus.active,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        title=title,
        type=type,
        owner_id=owner_id,
        department_id=department_id,
        team_id=team_id,
        aligned_to_id=aligned_to_id,
        status=status,
        time_period=TimePeriod.q1,
        year=2025,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


def _make_key_result(
    *,
    objective_id: uuid.UUID,
    owner_id: uuid.UUID,
    title: str = "Reach 1000 signups",
    starting_value: float = 0,
    target_value: float = 100,
    current_value: Optional[float] = None,
    progress: int = 0,
    confidence: Confidence = Confidence.on_track,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        objective_id=objective_id,
        owner_id=owner_id,
        title=title,
        metric_type=MetricType.number,
        starting_value=starting_value,
        target_value=target_value,
        current_value=starting_value if current_value is None else current_value,
        progress=progress,
        confidence=confidence,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )

"""Shared test fixtures: async DB, client, factories.

Reusable across all test modules (policies, ledger, allocation, leave, reports).
Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from leave_engine.database import Base, get_db
from leave_engine.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module foreign keys
import leave_engine.common.events  # noqa: F401
import leave_engine.directory.models  # noqa: F401
import leave_engine.leave.models  # noqa: F401
import leave_engine.ledger.models  # noqa: F401
import leave_engine.policies.models  # noqa: F401

from leave_engine.directory.models import Department, Employee
from leave_engine.policies.models import LeavePolicy

# ── SQLite compat: compile PG-specific types to TEXT/BLOB ───────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


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


# Register PG-compatible functions for SQLite
@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() as a SQLite custom function."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
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


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from leave_engine.common.rate_limit import limiter

    limiter.reset()
    yield


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


# ── Model factories ─────────────────────────────────────────────────

def _make_department(
    *,
    name: str = "Engineering",
    code: str = "ENG",
) -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        code=code,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )


def _make_employee(
    *,
    email: Optional[str] = None,
    first_name: str = "Test",
    last_name: str = "User",
    department_id: Optional[uuid.UUID] = None,
    is_active: bool = True,
) -> dict:
    code = uuid.uuid4().hex[:6].upper()
    return dict(
        id=uuid.uuid4(),
        employee_code=f"EMP-{code}",
        first_name=first_name,
        last_name=last_name,
        email=email or f"user.{code.lower()}@example.com",
        department_id=department_id,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
    )


def _make_policy(
    *,
    leave_type: str = "annual",
    total_days_per_year: Decimal = Decimal("25"),
    can_carry_forward: bool = False,
    max_carry_forward_days: Decimal = Decimal("0"),
    requires_approval: bool = True,
    allow_half_day: bool = True,
    allow_negative_balance: bool = False,
    min_notice_days: int = 0,
    max_days_per_request: Optional[Decimal] = None,
    is_active: bool = True,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        leave_type=leave_type,
        name=f"{leave_type.title()} Leave",
        total_days_per_year=total_days_per_year,
        can_carry_forward=can_carry_forward,
        max_carry_forward_days=max_carry_forward_days,
        requires_approval=requires_approval,
        allow_half_day=allow_half_day,
        allow_negative_balance=allow_negative_balance,
        min_notice_days=min_notice_days,
        max_days_per_request=max_days_per_request,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


async def seed_department(db: AsyncSession, **kwargs) -> Department:
    dept = Department(**_make_department(**kwargs))
    db.add(dept)
    await db.flush()
    return dept


async def seed_employee(db: AsyncSession, **kwargs) -> Employee:
    emp = Employee(**_make_employee(**kwargs))
    db.add(emp)
    await db.flush()
    return emp


async def seed_policy(db: AsyncSession, **kwargs) -> LeavePolicy:
    policy = LeavePolicy(**_make_policy(**kwargs))
    db.add(policy)
    await db.flush()
    return policy


@pytest.fixture
async def test_department(db) -> Department:
    """Insert a test department."""
    return await seed_department(db)


@pytest.fixture
async def test_employee(db, test_department) -> Employee:
    """Insert an active employee in test_department."""
    return await seed_employee(db, department_id=test_department.id)


@pytest.fixture
async def annual_policy(db) -> LeavePolicy:
    """Active 'annual' policy: 25 days, no carry-forward, approval required."""
    return await seed_policy(db)

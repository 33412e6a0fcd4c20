"""Shared test fixtures — async DB, client, auth helpers, factories.

Reusable across all test modules (ledger, leave, approval, API).
Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from leaveflow.common.constants import Department, LeaveType, UserRole
from leaveflow.config import settings
from leaveflow.database import Base, get_db
from leaveflow.main import create_app
from leaveflow.users.models import Employee

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
# (Employee → LeaveRequest, AuditTrail → Employee)
import leaveflow.common.audit  # noqa: F401
import leaveflow.leave.models  # noqa: F401


# ── Fixed calendar ──────────────────────────────────────────────────
# 2030-01-01 is a Tuesday; 2030-01-07 a Monday.

TODAY = date(2030, 1, 1)
MONDAY = date(2030, 1, 7)


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


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from leaveflow.common.rate_limit import limiter

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

def _make_employee(
    *,
    first_name: str = "Test",
    last_name: str = "User",
    email: Optional[str] = None,
    department: Department = Department.vas,
    role: UserRole = UserRole.employee,
    is_hod: bool = False,
    leave_total: int = 28,
    leave_used: int = 0,
    is_active: bool = True,
) -> dict:
    code = uuid.uuid4().hex[:6].upper()
    return dict(
        id=uuid.uuid4(),
        staff_id=f"ST-{code}",
        first_name=first_name,
        last_name=last_name,
        email=email or f"{first_name.lower()}.{code.lower()}@leaveflow.local",
        department=department,
        role=role,
        is_hod=is_hod,
        leave_total=leave_total,
        leave_available=leave_total - leave_used,
        leave_used=leave_used,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


async def seed_employee(db: AsyncSession, **kwargs) -> Employee:
    emp = Employee(**_make_employee(**kwargs))
    db.add(emp)
    await db.flush()
    return emp


def leave_payload(
    reliever_id: uuid.UUID,
    *,
    from_date: date = MONDAY,
    to_date: date = MONDAY + timedelta(days=2),
    leave_type: str = LeaveType.annual.value,
    reason: str = "Family visit",
) -> dict:
    """Create payload in wire format (camelCase)."""
    return {
        "leaveType": leave_type,
        "fromDate": from_date.isoformat(),
        "toDate": to_date.isoformat(),
        "reason": reason,
        "relieverId": str(reliever_id),
    }


@pytest.fixture
async def employee(db) -> Employee:
    """Regular VAS employee with 28 days."""
    return await seed_employee(db, first_name="Ama", last_name="Mensah")


@pytest.fixture
async def reliever(db) -> Employee:
    return await seed_employee(db, first_name="Kofi", last_name="Boateng")


@pytest.fixture
async def hod(db) -> Employee:
    """Head of the VAS department."""
    return await seed_employee(
        db, first_name="Efua", last_name="Owusu", role=UserRole.hod, is_hod=True,
    )


@pytest.fixture
async def other_hod(db) -> Employee:
    """Head of a different department (NOC)."""
    return await seed_employee(
        db,
        first_name="Yaw",
        last_name="Asante",
        department=Department.noc,
        role=UserRole.hod,
        is_hod=True,
    )


@pytest.fixture
async def hr_user(db) -> Employee:
    return await seed_employee(
        db, first_name="Abena", last_name="Darko",
        department=Department.admin, role=UserRole.hr,
    )


@pytest.fixture
async def ged_user(db) -> Employee:
    return await seed_employee(
        db, first_name="Kwame", last_name="Nkrumah",
        department=Department.admin, role=UserRole.ged,
    )


@pytest.fixture
async def admin_user(db) -> Employee:
    return await seed_employee(
        db, first_name="Adwoa", last_name="Sarpong",
        department=Department.admin, role=UserRole.admin,
    )


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    expired: bool = False,
    token_type: str = "access",
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS)
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": token_type,
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers(employee: Employee) -> dict[str, str]:
    """Bearer auth headers for *employee*."""
    return {"Authorization": f"Bearer {create_access_token(employee.id, employee.role)}"}

"""Pytest fixtures for payroll lifecycle tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from payroll_lifecycle.models import Base, Department, Employee, PayrollPeriod, User
from payroll_lifecycle.services.lifecycle_coordinator import PayrollLifecycleCoordinator
from payroll_lifecycle.services.period_store import PeriodStore
from payroll_lifecycle.services.roles import Actor

# Use in-memory SQLite for tests (with async support); StaticPool keeps
# every session on the one connection that holds the database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@dataclass
class Org:
    """Seeded organization: HR, two departments with heads, two employees each."""

    hr: User
    head_a: User
    head_b: User
    staff: User
    dept_a: Department
    dept_b: Department
    employees: dict[str, Employee] = field(default_factory=dict)


@pytest.fixture
async def engine():
    """Create test database engine with a fresh schema."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def org(session: AsyncSession) -> Org:
    """Create users, departments A/B and four active employees (plus one inactive)."""
    hr = User(email="hr@example.com", first_name="Hana", last_name="Reyes", role="hr")
    head_a = User(
        email="eng.head@example.com", first_name="Ade", last_name="Okafor", role="department_head"
    )
    head_b = User(
        email="ops.head@example.com", first_name="Bea", last_name="Lim", role="department_head"
    )
    staff = User(email="staff@example.com", first_name="Sam", last_name="Cruz", role="employee")
    session.add_all([hr, head_a, head_b, staff])
    await session.flush()

    dept_a = Department(name="Engineering", department_head_user_id=head_a.id)
    dept_b = Department(name="Operations", department_head_user_id=head_b.id)
    session.add_all([dept_a, dept_b])
    await session.flush()

    employees = {
        "E001": Employee(
            employee_code="E001", first_name="Ana", last_name="Santos",
            position="Engineer", department_id=dept_a.id, base_salary=Decimal("5280.00"),
        ),
        "E002": Employee(
            employee_code="E002", first_name="Ben", last_name="Tan",
            position="Engineer", department_id=dept_a.id, base_salary=Decimal("4400.00"),
        ),
        "E003": Employee(
            employee_code="E003", first_name="Cara", last_name="Diaz",
            position="Coordinator", department_id=dept_b.id, base_salary=Decimal("3520.00"),
        ),
        "E004": Employee(
            employee_code="E004", first_name="Dan", last_name="Uy",
            position="Coordinator", department_id=dept_b.id, base_salary=Decimal("3520.00"),
        ),
        "E005": Employee(
            employee_code="E005", first_name="Eli", last_name="Go",
            position="Engineer", department_id=dept_a.id, base_salary=Decimal("9999.00"),
            status="inactive",
        ),
    }
    session.add_all(employees.values())
    await session.flush()

    return Org(
        hr=hr,
        head_a=head_a,
        head_b=head_b,
        staff=staff,
        dept_a=dept_a,
        dept_b=dept_b,
        employees=employees,
    )


@pytest.fixture
def hr_actor(org: Org) -> Actor:
    return Actor(user_id=org.hr.id, role="hr")


@pytest.fixture
def head_a_actor(org: Org) -> Actor:
    return Actor(user_id=org.head_a.id, role="department_head")


@pytest.fixture
def head_b_actor(org: Org) -> Actor:
    return Actor(user_id=org.head_b.id, role="department_head")


@pytest.fixture
async def period(session: AsyncSession, org: Org) -> PayrollPeriod:
    """Create a draft January period."""
    return await PeriodStore(session).create(
        period_name="January 2026",
        start_date=date(2026, 1, 1),
        end_date=date(2026, 1, 31),
        working_days=22,
        created_by=org.hr.id,
    )


@pytest.fixture
def coordinator(session: AsyncSession) -> PayrollLifecycleCoordinator:
    return PayrollLifecycleCoordinator(session)

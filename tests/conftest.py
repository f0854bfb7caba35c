"""Pytest fixtures for trench payroll tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from trench_payroll.database import engine_options
from trench_payroll.models import Base, EmployeeType, Labourer, PayRate, Project
from trench_payroll.services.authorization import Actor, Role

# In-memory SQLite shared across one test's connections
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

RATE_EFFECTIVE = date(2024, 1, 1)


@pytest.fixture
async def engine():
    """Create a fresh schema per test."""
    engine = create_async_engine(TEST_DATABASE_URL, **engine_options(TEST_DATABASE_URL))

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


# =============================================================================
# Actors
# =============================================================================


def make_actor(role: Role) -> Actor:
    return Actor(user_id=uuid4(), role=role, email_domain="example.co.za")


@pytest.fixture
def super_admin() -> Actor:
    return make_actor(Role.SUPER_ADMIN)


@pytest.fixture
def admin() -> Actor:
    return make_actor(Role.ADMIN)


@pytest.fixture
def manager() -> Actor:
    return make_actor(Role.PROJECT_MANAGER)


@pytest.fixture
def supervisor() -> Actor:
    return make_actor(Role.SUPERVISOR)


@pytest.fixture
def project_admin() -> Actor:
    return make_actor(Role.PROJECT_ADMIN)


@pytest.fixture
def labourer_actor() -> Actor:
    return make_actor(Role.LABOURER)


# =============================================================================
# Reference data
# =============================================================================


@pytest.fixture
async def employee_type(session: AsyncSession) -> EmployeeType:
    """General worker employee type."""
    employee_type = EmployeeType(name="General Worker", description="Trenching crew")
    session.add(employee_type)
    await session.flush()
    return employee_type


@pytest.fixture
async def project(session: AsyncSession, admin: Actor) -> Project:
    """Active fortnightly project."""
    project = Project(
        name="Soweto Fibre Phase 2",
        location="Soweto, Johannesburg",
        budget=Decimal("250000.00"),
        status="active",
        payment_frequency="fortnightly",
        start_date=date(2024, 1, 1),
        created_by=admin.user_id,
    )
    session.add(project)
    await session.flush()
    return project


def labourer_fields(**overrides) -> dict:
    fields = {
        "first_name": "Thabo",
        "surname": "Mokoena",
        "id_number": "9001015800087",
        "date_of_birth": date(1990, 1, 1),
        "contact_number": "0821234567",
        "bank_name": "Capitec",
        "account_number": "1234567890",
        "account_type": "savings",
        "branch_code": "470010",
    }
    fields.update(overrides)
    return fields


@pytest.fixture
async def labourer(session: AsyncSession, project: Project, employee_type: EmployeeType, admin: Actor) -> Labourer:
    """Labourer assigned to the project."""
    labourer = Labourer(
        project_id=project.project_id,
        employee_type_id=employee_type.employee_type_id,
        created_by=admin.user_id,
        **labourer_fields(),
    )
    session.add(labourer)
    await session.flush()
    return labourer


@pytest.fixture
async def second_labourer(
    session: AsyncSession, project: Project, employee_type: EmployeeType, admin: Actor
) -> Labourer:
    labourer = Labourer(
        project_id=project.project_id,
        employee_type_id=employee_type.employee_type_id,
        created_by=admin.user_id,
        **labourer_fields(first_name="Lerato", surname="Dlamini", id_number="9203035800081"),
    )
    session.add(labourer)
    await session.flush()
    return labourer


@pytest.fixture
async def rates(session: AsyncSession, project: Project, employee_type: EmployeeType, admin: Actor) -> dict[str, PayRate]:
    """Open trenching R25/m and close trenching R20/m."""
    open_rate = PayRate(
        project_id=project.project_id,
        employee_type_id=employee_type.employee_type_id,
        category="open_trenching",
        amount=Decimal("25.00"),
        unit="per_meter",
        effective_date=RATE_EFFECTIVE,
        created_by=admin.user_id,
    )
    close_rate = PayRate(
        project_id=project.project_id,
        employee_type_id=employee_type.employee_type_id,
        category="close_trenching",
        amount=Decimal("20.00"),
        unit="per_meter",
        effective_date=RATE_EFFECTIVE,
        created_by=admin.user_id,
    )
    session.add_all([open_rate, close_rate])
    await session.flush()
    return {"open_trenching": open_rate, "close_trenching": close_rate}


@pytest.fixture
async def foreman(session: AsyncSession, project: Project, admin: Actor) -> EmployeeType:
    """Second employee type paid R50/m open and R40/m close on the project."""
    foreman = EmployeeType(name="Foreman")
    session.add(foreman)
    await session.flush()
    session.add_all(
        [
            PayRate(
                project_id=project.project_id,
                employee_type_id=foreman.employee_type_id,
                category=category,
                amount=amount,
                unit="per_meter",
                effective_date=RATE_EFFECTIVE,
                created_by=admin.user_id,
            )
            for category, amount in (
                ("open_trenching", Decimal("50.00")),
                ("close_trenching", Decimal("40.00")),
            )
        ]
    )
    await session.flush()
    return foreman


@pytest.fixture
async def other_project(session: AsyncSession, admin: Actor) -> Project:
    project = Project(
        name="Alexandra Fibre Phase 1",
        status="active",
        payment_frequency="monthly",
        start_date=date(2024, 1, 1),
        created_by=admin.user_id,
    )
    session.add(project)
    await session.flush()
    return project

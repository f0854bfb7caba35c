"""Tests for engine options and the unit-of-work session."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.pool import StaticPool

from trench_payroll.database import create_schema, dispose_db, engine_options, get_session, init_db
from trench_payroll.models import EmployeeType


class TestEngineOptions:
    def test_postgres_gets_a_sized_pool(self):
        options = engine_options("postgresql+asyncpg://u:p@db:5432/trench_payroll")

        assert options["pool_pre_ping"] is True
        assert options["pool_size"] == 10
        assert "poolclass" not in options

    def test_memory_sqlite_keeps_one_connection(self):
        options = engine_options("sqlite+aiosqlite:///:memory:")

        assert options["poolclass"] is StaticPool
        assert "pool_size" not in options

    def test_file_sqlite_uses_default_pool(self):
        assert "poolclass" not in engine_options("sqlite+aiosqlite:///./payroll.db")


@pytest.fixture
async def memory_db():
    await dispose_db()
    init_db("sqlite+aiosqlite:///:memory:")
    await create_schema()
    yield
    await dispose_db()


async def count_types() -> int:
    async with get_session() as session:
        return await session.scalar(select(func.count()).select_from(EmployeeType))


class TestGetSession:
    """Commit on clean exit, rollback on error."""

    async def test_commits(self, memory_db):
        async with get_session() as session:
            session.add(EmployeeType(name="General Labourer"))

        assert await count_types() == 1

    async def test_rolls_back_on_error(self, memory_db):
        with pytest.raises(RuntimeError):
            async with get_session() as session:
                session.add(EmployeeType(name="General Labourer"))
                await session.flush()
                raise RuntimeError("boom")

        assert await count_types() == 0

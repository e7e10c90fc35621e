"""
Shared fixtures: an in-memory SQLite database per test, a CoreOperations
bound to it, and small builders for the common entity graph.
"""
from datetime import date
from typing import AsyncGenerator

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from cohortdesk.config.feature_flags import FeatureFlags
from cohortdesk.database import build_engine, build_sessionmaker
from cohortdesk.orm.base import Base
from cohortdesk.services.core_operations import CoreOperations

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def engine():
    engine = build_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def flags() -> FeatureFlags:
    """Per-test flags; override attributes on the instance, never the class."""
    flags = FeatureFlags()
    flags.ENFORCE_COHORT_CAPACITY = True
    flags.DEFAULT_MAX_COHORTS = 3
    flags.REQUIRE_DROP_CONFIRMATION = False
    return flags


@pytest_asyncio.fixture
async def ops(db_session, flags) -> CoreOperations:
    return CoreOperations(db_session, flags=flags, actor="admin@test.com")


# ==========================================
# Builders
# ==========================================

def program_data(**overrides) -> dict:
    data = {"name": "Full Stack Bootcamp", "duration": "12 weeks"}
    data.update(overrides)
    return data


def cohort_data(program_id: int, **overrides) -> dict:
    data = {
        "program_id": program_id,
        "name": "Batch 1",
        "capacity": 30,
        "start_date": date(2026, 1, 5),
        "end_date": date(2026, 3, 30),
        "price": 49999,
    }
    data.update(overrides)
    return data


def mentor_data(email: str = "mentor@test.com", **overrides) -> dict:
    data = {"name": "Asha Rao", "email": email, "specialty": "Backend"}
    data.update(overrides)
    return data


def student_data(cohort_id: int, email: str = "student@test.com", **overrides) -> dict:
    data = {"name": "Ravi Kumar", "email": email, "cohort_id": cohort_id}
    data.update(overrides)
    return data


@pytest_asyncio.fixture
async def program(ops):
    return await ops.create_program(program_data())


@pytest_asyncio.fixture
async def cohort(ops, program):
    return await ops.create_cohort(cohort_data(program.id))


@pytest_asyncio.fixture
async def mentor(ops):
    return await ops.create_mentor(mentor_data())


@pytest_asyncio.fixture
async def student(ops, cohort):
    return await ops.create_student(student_data(cohort.id))

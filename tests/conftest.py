"""
Pytest configuration and fixtures.
Provides test app client, async DB session replacement and seed helpers.
"""

import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Tuple

import pytest
from dependency_injector import providers
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from teamreview.main import app
from teamreview.db.base import Base
from teamreview.db.immutability import register_immutability_listeners, unregister_immutability_listeners
from teamreview.db.session import get_db
from teamreview.db.transactions import AtomicTransactionPolicy, BestEffortTransactionPolicy
from teamreview.deps import di_container
from teamreview.deps.di_container import get_transaction_policy
from teamreview.models import Project, TimeEntry, Timesheet, TimesheetStatus, User, UserRole
from teamreview.services.health_service import HealthService
from teamreview.services.ledger_service import LedgerService


# Test database URL (in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

WEEK_START = date(2025, 2, 3)
WEEK_END = date(2025, 2, 9)


@pytest.fixture(autouse=True)
def immutability_listeners():
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()


@pytest.fixture(scope="function")
async def test_session_maker():
    """
    In-memory SQLite database with all tables created.
    """
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture(scope="function")
async def test_db_session(test_session_maker):
    """
    Create a test database session.
    Uses in-memory SQLite for fast tests.
    """
    async with test_session_maker() as session:
        yield session


@pytest.fixture
def atomic():
    return AtomicTransactionPolicy()


@pytest.fixture
def best_effort():
    return BestEffortTransactionPolicy()


class WorkflowFactory:
    """Seeds users, projects and timesheets. Every helper commits."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._counter = 0

    async def _save(self, instance):
        self.session.add(instance)
        await self.session.commit()
        return instance

    async def user(self, role: UserRole = UserRole.EMPLOYEE, name: Optional[str] = None) -> User:
        self._counter += 1
        name = name or f"{role.value.title()} {self._counter}"
        return await self._save(User(
            full_name=name,
            email=f"user{self._counter}@example.com",
            role=role,
        ))

    async def project(
        self,
        manager: User,
        lead: Optional[User] = None,
        auto_escalates: bool = False,
        name: Optional[str] = None,
    ) -> Project:
        self._counter += 1
        return await self._save(Project(
            name=name or f"Project {self._counter}",
            primary_manager_id=manager.id,
            lead_id=lead.id if lead else None,
            approval_settings={"lead_approval_auto_escalates": auto_escalates},
        ))

    async def timesheet(
        self,
        owner: User,
        week_start: date = WEEK_START,
        hours: Iterable[Tuple[Project, str]] = (),
    ) -> Timesheet:
        timesheet = await self._save(Timesheet(
            user_id=owner.id,
            week_start_date=week_start,
            week_end_date=week_start + timedelta(days=6),
            status=TimesheetStatus.DRAFT,
        ))
        for offset, (project, amount) in enumerate(hours):
            self.session.add(TimeEntry(
                timesheet_id=timesheet.id,
                project_id=project.id,
                entry_date=week_start + timedelta(days=offset % 5),
                hours=Decimal(amount),
            ))
        await self.session.commit()
        return timesheet

    async def submitted_timesheet(
        self,
        owner: User,
        hours: Iterable[Tuple[Project, str]],
        week_start: date = WEEK_START,
    ) -> Timesheet:
        timesheet = await self.timesheet(owner, week_start, hours)
        await LedgerService(self.session, AtomicTransactionPolicy()).submit_timesheet(timesheet.id, owner.id)
        return timesheet


@pytest.fixture
def factory(test_db_session):
    return WorkflowFactory(test_db_session)


@pytest.fixture(scope="function")
async def test_client(test_session_maker):
    """
    Create a test HTTP client bound to the in-memory database.
    """
    async def override_get_db():
        async with test_session_maker() as session:
            try:
                yield session
            finally:
                if session.in_transaction():
                    await session.rollback()

    policy = AtomicTransactionPolicy()
    container = di_container.Container()
    container.config.from_dict({"use_transactions": True})
    container.health_service.override(
        providers.Object(HealthService(policy, session_factory=test_session_maker))
    )
    previous = di_container._container
    di_container._container = container

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_transaction_policy] = lambda: policy

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    di_container._container = previous

"""Shared fixtures: a file-backed SQLite database and services on a fake clock."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import Settings
from app.core.ledger import CreditLedgerService
from app.core.quota import QuotaWorkflowService
from app.db.database import Base
from app.db import models  # noqa: F401  registers the tables on Base


class FakeClock:
    """Callable clock the tests can move forward."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        default_initial_credits=5,
        default_daily_limit=50,
        default_project_quota=1,
        quota_request_price=299.0,
        ledger_max_retries=3,
    )


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    db_path = tmp_path / "ledger.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield session_maker

    await engine.dispose()


@pytest.fixture
def ledger(session_factory, settings, clock):
    return CreditLedgerService(session_factory, settings=settings, clock=clock)


@pytest.fixture
def workflow(session_factory, settings, clock):
    return QuotaWorkflowService(session_factory, settings=settings, clock=clock)

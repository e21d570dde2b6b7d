"""Shared test fixtures for all test groups.

Database-backed tests run against a throwaway SQLite file per test, so they
need no external services.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.core.config import Settings
from app.core.locking import LocalLockManager
from app.db.base import create_all, create_engine_for
from app.schemas.billing import ActivateProject
from app.services.billing_service import BillingService
from app.wallet import WalletLedgerFake

DAY_0 = datetime(2025, 3, 3, 9, 0, tzinfo=UTC)


class FakeClock:
    """Callable time source that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def build_activation(**overrides) -> ActivateProject:
    data = {
        "project_id": "proj-1",
        "title": "Marketing site",
        "commissioner_id": "commissioner-1",
        "freelancer_id": "freelancer-1",
        "invoicing_method": "milestone",
        "total_budget": Decimal("300.00"),
        "total_tasks": 3,
        "duration_weeks": Decimal(3) / Decimal(7),
        "activated_at": DAY_0,
    }
    data.update(overrides)
    return ActivateProject(**data)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(DAY_0)


@pytest.fixture
def activation():
    """Factory for activation commands with sensible defaults."""
    return build_activation


@pytest.fixture
async def engine(tmp_path) -> AsyncEngine:
    """SQLite engine with all tables created."""
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}")
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest.fixture
def ledger() -> WalletLedgerFake:
    """Wallet ledger that confirms every credit."""
    return WalletLedgerFake(scenario="accept")


@pytest.fixture
def locks() -> LocalLockManager:
    return LocalLockManager(timeout=5.0)


@pytest.fixture
def make_service(session_factory, locks, clock):
    """Factory for BillingService with settings overrides."""

    def _make(ledger=None, **settings_overrides) -> BillingService:
        settings = Settings(**settings_overrides)
        return BillingService(
            session_factory,
            ledger if ledger is not None else WalletLedgerFake(),
            locks,
            settings=settings,
            clock=clock,
        )

    return _make


@pytest.fixture
def billing(make_service, ledger) -> BillingService:
    """BillingService that settles automatic invoices against an accepting ledger."""
    return make_service(ledger=ledger)

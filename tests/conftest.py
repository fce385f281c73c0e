"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for tests; must be set before mlm_ledger is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_HOST", "localhost")
os.environ.setdefault("REDIS_PORT", "6379")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FILE", "")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from mlm_ledger.config.database import create_engine, create_session_maker
from mlm_ledger.models import Base, IncomeCategory, Plan, TransactionType, User, Wallet
from mlm_ledger.services.access import Principal
from mlm_ledger.services.ledger_service import LedgerService


SEED_TYPES = {
    IncomeCategory.DIRECT.value: TransactionType.DIRECT_INCOME,
    IncomeCategory.LEVEL.value: TransactionType.LEVEL_INCOME,
    IncomeCategory.ROI.value: TransactionType.ROI_INCOME,
    IncomeCategory.BONUS.value: TransactionType.BONUS_INCOME,
}


@pytest.fixture
def mock_session():
    """Mock AsyncSession for tests without a database."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.delete = MagicMock()
    session.refresh = AsyncMock()
    return session


@pytest.fixture
def mock_redis_client():
    """Mock Redis client for lock tests."""
    client = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest_asyncio.fixture
async def engine(tmp_path):
    """
    SQLite engine on a fresh file database with all tables created.

    A file database is used because SQLite engines run without a pool,
    so an in-memory database would vanish between connections.
    """
    engine = create_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}", echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    """Session factory bound to the test engine."""
    return create_session_maker(engine)


@pytest_asyncio.fixture
async def session(session_maker):
    """Database session for one test."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def make_user(session):
    """
    Factory creating a user with an empty wallet.

    The password hash is a placeholder; registration tests go through
    RegistrationService for real hashing.
    """
    counter = {"n": 0}

    async def _make_user(
        username: str | None = None,
        sponsor: User | None = None,
        **fields,
    ) -> User:
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        fields.setdefault("email", f"{username}@example.com")
        fields.setdefault("full_name", username.title())
        fields.setdefault("password_hash", "not-a-real-hash")
        fields.setdefault("referral_code", f"REF{counter['n']:05d}")
        user = User(
            username=username,
            sponsor_id=sponsor.id if sponsor else None,
            level=sponsor.level + 1 if sponsor else 1,
            **fields,
        )
        session.add(user)
        await session.flush()
        session.add(Wallet(user_id=user.id))
        await session.commit()
        return user

    return _make_user


@pytest.fixture
def make_plan(session):
    """Factory creating a plan with zero direct bonus and no levels."""
    counter = {"n": 0}

    async def _make_plan(**fields) -> Plan:
        counter["n"] += 1
        fields.setdefault("name", f"Plan {counter['n']}")
        fields.setdefault("amount", Decimal("100"))
        fields.setdefault("roi_percentage", Decimal("10"))
        fields.setdefault("roi_duration", 10)
        fields.setdefault("direct_referral_bonus_percentage", Decimal("0"))
        plan = Plan(**fields)
        session.add(plan)
        await session.commit()
        return plan

    return _make_plan


@pytest.fixture
def fund(session):
    """Credit a wallet through the ledger so balances match transactions."""

    async def _fund(user: User, amount, category: str = IncomeCategory.BONUS.value):
        return await LedgerService(session).credit(
            user.id,
            category,
            Decimal(str(amount)),
            SEED_TYPES[category],
            "Test funding",
        )

    return _fund


@pytest_asyncio.fixture
async def admin_user(make_user):
    """Persisted admin account."""
    return await make_user("admin", role="admin")


@pytest.fixture
def admin(admin_user):
    """Admin principal."""
    return Principal.admin(admin_user.id)

"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for tests; must be set before settings are imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FILE", "logs/test_payout_engine.log")
os.environ.setdefault("PAYOUT_TIMEZONE", "UTC")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from collections.abc import AsyncGenerator
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from payout_engine.models import (
    Base,
    Deposit,
    ReferralEdge,
    User,
)
from payout_engine.models.enums import DepositStatus
from payout_engine.services.settings_service import SettingsService

# In-memory SQLite shared across sessions through a single connection
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def mock_session():
    """Mock AsyncSession for tests without a database."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    return session


@pytest.fixture
async def test_db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(test_db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database."""
    return async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """
    Session for arranging and asserting.

    Commit arranged data before calling code that opens its own sessions;
    call ``expire_all()`` before reading what that code wrote.
    """
    async with session_maker() as session:
        yield session


@pytest.fixture
def make_user(db_session):
    """Factory inserting a user and its referral edge."""
    counter = {"n": 0}

    async def _make_user(
        self_deposit: Decimal | str | int = 0,
        referrer: User | None = None,
        is_active: bool | None = None,
        is_blocked: bool = False,
        balance: Decimal | str | int = 0,
        rank: int = 0,
    ) -> User:
        counter["n"] += 1
        deposit = Decimal(str(self_deposit))
        user = User(
            email=f"user{counter['n']}@example.com",
            name=f"User {counter['n']}",
            referral_code=f"REFTEST{counter['n']:04d}",
            referrer_id=referrer.id if referrer else None,
            self_deposit=deposit,
            balance=Decimal(str(balance)),
            is_active=(deposit >= 20) if is_active is None else is_active,
            is_blocked=is_blocked,
            rank=rank,
        )
        db_session.add(user)
        await db_session.flush()
        if referrer is not None:
            db_session.add(
                ReferralEdge(referrer_id=referrer.id, referred_id=user.id)
            )
            await db_session.flush()
        return user

    return _make_user


@pytest.fixture
def make_deposit(db_session):
    """Factory inserting an approved deposit."""

    async def _make_deposit(
        user: User,
        amount: Decimal | str | int,
        approved_at: datetime | None,
        status: DepositStatus = DepositStatus.APPROVED,
    ) -> Deposit:
        deposit = Deposit(
            user_id=user.id,
            amount=Decimal(str(amount)),
            status=status.value,
            approved_at=approved_at,
        )
        db_session.add(deposit)
        await db_session.flush()
        return deposit

    return _make_deposit


@pytest.fixture
def roi_settings(db_session):
    """Factory saving ROI settings (daily plan by default)."""

    async def _save(
        percentage: Decimal | str | int = 1,
        duration: int = 30,
        plan_type: str = "daily",
        status: str = "active",
        now: datetime | None = None,
    ):
        return await SettingsService(db_session).save_roi_settings(
            plan_type, Decimal(str(percentage)), duration, status=status, now=now
        )

    return _save

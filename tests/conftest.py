"""Shared test fixtures."""

from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fitchallenge_sync.core.database import configure_sqlite
from fitchallenge_sync.models import Challenge, ChallengeParticipant
from fitchallenge_sync.models.base import Base
from tests.fixtures.challenge_seed import seed_challenge, seed_participant


@pytest.fixture
async def async_engine():
    """Create async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    # Foreign keys and SAVEPOINT support
    configure_sqlite(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(async_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_session(session_maker) -> AsyncIterator[AsyncSession]:
    """Create async session for testing."""
    async with session_maker() as session:
        yield session


@pytest.fixture
async def challenge(async_session: AsyncSession) -> Challenge:
    """January 2024 challenge, active at the pinned clock."""
    return await seed_challenge(async_session)


@pytest.fixture
async def participant(async_session: AsyncSession, challenge: Challenge) -> ChallengeParticipant:
    """Accepted participant 'alice' with a fresh profile."""
    return await seed_participant(async_session, challenge.id, "alice")


@pytest.fixture
async def live_challenge(async_session: AsyncSession) -> Challenge:
    """Challenge active around the real current time."""
    now = datetime.now(UTC)
    return await seed_challenge(
        async_session,
        challenge_id="live-challenge",
        start_date=now - timedelta(days=7),
        end_date=now + timedelta(days=7),
    )

"""Shared test fixtures: async SQLite database, member/election factories, and auth tokens."""

import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, date, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ballot_api.core.config import Settings
from ballot_api.core.security import create_access_token, hash_password
from ballot_api.models import Candidate, Election, User
from ballot_api.models.base import Base

TEST_PASSWORD = "Secret123"

UserFactory = Callable[..., Awaitable[User]]
ElectionFactory = Callable[..., Awaitable[Election]]
CandidateFactory = Callable[..., Awaitable[Candidate]]


@pytest.fixture
def settings() -> Settings:
    """Test application settings."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret_key="test-secret-key-not-for-production",
        jwt_algorithm="HS256",
        jwt_access_token_expire_minutes=30,
        jwt_refresh_token_expire_days=7,
        otp_echo_in_response=True,
        status_refresh_enabled=False,
        rate_limit_per_minute=10_000,
        login_rate_limit=10_000,
        otp_rate_limit=10_000,
        vote_rate_limit_per_minute=10_000,
    )


@pytest.fixture
def now() -> datetime:
    """A fixed evaluation instant."""
    return datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an in-memory async SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    """Create a per-test async session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(async_session: AsyncSession) -> UserFactory:
    """Factory persisting a member with sensible defaults."""
    counter = iter(range(1, 10_000))

    async def _make(**overrides: object) -> User:
        n = next(counter)
        fields: dict[str, object] = {
            "id": uuid.uuid4(),
            "full_name": f"Member {n}",
            "membership_id": f"MEM{n:04d}",
            "email": f"member{n}@example.com",
            "hashed_password": hash_password(TEST_PASSWORD),
            "mobile": "0771234567",
            "date_of_birth": date(1990, 1, 1),
            "street": "12 Harbour Road",
            "city": "Colombo",
            "state": "Western",
            "postal_code": "00100",
            "nic": f"NIC{n:06d}",
            "division": "IT",
            "role": "voter",
            "is_active": True,
        }
        fields.update(overrides)
        user = User(**fields)
        async_session.add(user)
        await async_session.commit()
        return user

    return _make


@pytest.fixture
async def admin_user(make_user: UserFactory) -> User:
    return await make_user(full_name="Union Admin", role="admin", division="HR")


@pytest.fixture
async def voter(make_user: UserFactory) -> User:
    return await make_user(full_name="Finance Voter", division="Finance")


@pytest.fixture
def make_election(async_session: AsyncSession, admin_user: User, now: datetime) -> ElectionFactory:
    """Factory persisting an election; ``state`` positions its window around ``now``."""

    async def _make(state: str = "active", **overrides: object) -> Election:
        windows = {
            "upcoming": (now + timedelta(days=1), now + timedelta(days=2)),
            "active": (now - timedelta(hours=1), now + timedelta(hours=1)),
            "completed": (now - timedelta(days=2), now - timedelta(days=1)),
        }
        start, end = windows[state]
        fields: dict[str, object] = {
            "id": uuid.uuid4(),
            "title": "Branch Committee Election",
            "description": "Annual election of the branch committee.",
            "start_date": start,
            "end_date": end,
            "status": state,
            "is_cancelled": False,
            "division": "All",
            "max_candidates": 5,
            "total_votes": 0,
            "is_secret_ballot": True,
            "created_by_id": admin_user.id,
        }
        fields.update(overrides)
        election = Election(**fields)
        async_session.add(election)
        await async_session.commit()
        return election

    return _make


@pytest.fixture
def make_candidate(async_session: AsyncSession) -> CandidateFactory:
    """Factory persisting a candidate in the given election."""
    counter = iter(range(1, 10_000))

    async def _make(election: Election, **overrides: object) -> Candidate:
        n = next(counter)
        fields: dict[str, object] = {
            "id": uuid.uuid4(),
            "election_id": election.id,
            "full_name": f"Candidate {n}",
            "membership_id": f"CAN{n:04d}",
            "division": "IT",
            "position": "Secretary",
            "manifesto": "A stronger, fairer union for every member. " * 2,
            "experience": "Ten years as shop steward.",
            "ballot_order": n,
            "is_active": True,
            "vote_count": 0,
        }
        fields.update(overrides)
        candidate = Candidate(**fields)
        async_session.add(candidate)
        await async_session.commit()
        return candidate

    return _make


def _token_for(user: User, settings: Settings) -> str:
    return create_access_token(
        subject=str(user.id),
        role=user.role,
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


@pytest.fixture
def admin_token(admin_user: User, settings: Settings) -> str:
    return _token_for(admin_user, settings)


@pytest.fixture
def voter_token(voter: User, settings: Settings) -> str:
    return _token_for(voter, settings)


@pytest.fixture
def make_token(settings: Settings) -> Callable[[User], str]:
    """Generate a JWT access token for any member."""
    return lambda user: _token_for(user, settings)

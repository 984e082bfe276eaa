"""Shared test fixtures.

Tests run against an in-memory SQLite database. AB_DATABASE_URL must be set
before anything imports arenabook.core.database, since the engine is created
at import time.
"""

import os

os.environ["AB_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ.setdefault("AB_SECRET_KEY", "test-secret")

from datetime import date, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402
from unittest.mock import AsyncMock, patch  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from arenabook.core.auth import create_access_token, hash_password  # noqa: E402
from arenabook.core.database import async_session_factory, engine  # noqa: E402
from arenabook.main import app  # noqa: E402
from arenabook.models import Base, Court, SportType, SupervisorType, Team, User, UserRole  # noqa: E402
from arenabook.services.time_window import WEEKDAYS, local_today  # noqa: E402


@pytest.fixture(autouse=True)
async def _database():
    """Fresh schema for every test.

    The global engine is created at import time. pytest-asyncio gives each test
    its own event loop, so the pool is disposed first; with the in-memory
    StaticPool that also discards the previous test's data.
    """
    await engine.dispose()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def mock_send_email():
    with patch("arenabook.services.notifications.send_email", new_callable=AsyncMock) as mock_send:
        yield mock_send


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db():
    async with async_session_factory() as session:
        yield session


def next_weekday(name: str, min_days: int = 7) -> date:
    """The first given weekday at least min_days from today."""
    day = local_today() + timedelta(days=min_days)
    return day + timedelta(days=(WEEKDAYS.index(name) - day.weekday()) % 7)


async def create_court(db, **overrides) -> Court:
    data = {
        "name": "Main Hall",
        "sport_type": SportType.BASKETBALL,
        "location": "Building A",
        "hourly_rate": Decimal("20.00"),
        "availability": None,
    }
    data.update(overrides)
    court = Court(**data)
    db.add(court)
    await db.commit()
    return court


async def create_user(db, email: str = "player@example.com", role: UserRole = UserRole.PLAYER, **overrides) -> User:
    user = User(
        email=email,
        hashed_password=hash_password("secret123"),
        role=role,
        first_name="Test",
        last_name=role.value.capitalize(),
        **overrides,
    )
    db.add(user)
    await db.commit()
    return user


async def create_team(db, coach: User | None = None, name: str = "U16 Basketball") -> Team:
    team = Team(name=name, sport_type=SportType.BASKETBALL.value, coach_id=coach.id if coach else None)
    db.add(team)
    await db.commit()
    return team


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
async def admin(db):
    return await create_user(db, "admin@arenabook.io", UserRole.ADMIN)


@pytest.fixture
async def player(db):
    return await create_user(db, "player@example.com", UserRole.PLAYER)


@pytest.fixture
async def coach(db):
    return await create_user(db, "coach@arenabook.io", UserRole.COACH)


@pytest.fixture
async def football_supervisor(db):
    return await create_user(
        db,
        "football@arenabook.io",
        UserRole.SUPERVISOR,
        supervisor_type=SupervisorType.SPORTS,
        supervisor_sport_types=[SportType.FOOTBALL.value],
    )


@pytest.fixture
async def court(db):
    return await create_court(db)

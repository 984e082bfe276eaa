"""Seed the database with ArenaBook test data.

Run with: python -m scripts.seed
Creates the courts, a few teams, test users and one weekly training schedule.
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select

from arenabook.core.auth import hash_password
from arenabook.core.database import async_session_factory, engine
from arenabook.models import (
    Base,
    BookingPurpose,
    Court,
    RecurringSchedule,
    SportType,
    SupervisorType,
    Team,
    User,
    UserRole,
)
from arenabook.services.availability import normalize_availability
from arenabook.services.recurrence import calculate_duration, generate_recurring_bookings
from arenabook.services.time_window import local_today

# Academy mornings and evenings, rentals in between. Sunday is closed.
SPLIT_WEEKDAY = [
    {"start": "08:00", "end": "14:00", "type": "academy"},
    {"start": "14:00", "end": "18:00", "type": "rental"},
    {"start": "18:00", "end": "22:00", "type": "academy"},
]

COURTS = [
    {
        "name": "Main Hall",
        "sport_type": SportType.BASKETBALL,
        "location": "Building A",
        "capacity": 30,
        "hourly_rate": Decimal("40.00"),
        "availability": {
            **{day: SPLIT_WEEKDAY for day in ("monday", "tuesday", "wednesday", "thursday", "friday")},
            "saturday": [{"start": "09:00", "end": "21:00", "type": "rental"}],
            "sunday": [],
        },
    },
    {
        "name": "Outdoor Pitch",
        "sport_type": SportType.FOOTBALL,
        "location": "North field",
        "capacity": 22,
        "hourly_rate": Decimal("60.00"),
        "availability": None,  # default window every day
    },
    {
        "name": "Studio 1",
        "sport_type": SportType.ZUMBA,
        "location": "Building B",
        "capacity": 15,
        "hourly_rate": Decimal("25.00"),
        "availability": None,
    },
]

TEAMS = [
    {"name": "U16 Basketball", "sport_type": SportType.BASKETBALL},
    {"name": "Senior Basketball", "sport_type": SportType.BASKETBALL},
    {"name": "U12 Football", "sport_type": SportType.FOOTBALL},
]

USERS = [
    {
        "email": "admin@arenabook.io",
        "password": "admin123",
        "role": UserRole.ADMIN,
        "first_name": "Test",
        "last_name": "Admin",
    },
    {
        "email": "basketball@arenabook.io",
        "password": "super123",
        "role": UserRole.SUPERVISOR,
        "supervisor_type": SupervisorType.SPORTS,
        "supervisor_sport_types": [SportType.BASKETBALL.value],
        "first_name": "Sports",
        "last_name": "Supervisor",
    },
    {
        "email": "coach@arenabook.io",
        "password": "coach123",
        "role": UserRole.COACH,
        "first_name": "Test",
        "last_name": "Coach",
    },
    {
        "email": "player@example.com",
        "password": "player123",
        "role": UserRole.PLAYER,
        "first_name": "Test",
        "last_name": "Player",
    },
]


async def seed():
    # Create tables (in dev; production uses migrations)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as db:
        result = await db.execute(select(User).where(User.email == "admin@arenabook.io"))
        if result.scalar_one_or_none():
            print("Database already seeded - skipping.")
            return

        courts = {}
        for court_data in COURTS:
            court = Court(**{**court_data, "availability": normalize_availability(court_data["availability"])})
            db.add(court)
            courts[court.name] = court

        users = {}
        for user_data in USERS:
            data = dict(user_data)
            password = data.pop("password")
            user = User(hashed_password=hash_password(password), **data)
            db.add(user)
            users[user.email] = user
        await db.flush()

        coach = users["coach@arenabook.io"]
        teams = {}
        for team_data in TEAMS:
            team = Team(coach_id=coach.id, **team_data)
            db.add(team)
            teams[team.name] = team
        await db.flush()

        schedule = RecurringSchedule(
            team_id=teams["U16 Basketball"].id,
            court_id=courts["Main Hall"].id,
            created_by_id=coach.id,
            purpose=BookingPurpose.TRAINING,
            day_of_week="tuesday",
            start_time="18:00",
            end_time="20:00",
            duration=calculate_duration("18:00", "20:00"),
            start_date=local_today(),
            end_date=local_today() + timedelta(weeks=26),
            notes="U16 weekly training",
            exceptions=[],
            bookings=[],
        )
        db.add(schedule)
        await db.flush()
        generated = await generate_recurring_bookings(db, schedule)

        await db.commit()

        print(f"Seeded: {len(courts)} courts, {len(teams)} teams, {len(users)} users")
        print(f"  1 recurring schedule ({len(generated)} bookings generated)")
        for user_data in USERS:
            print(f"    {user_data['email']} / {user_data['password']}")


if __name__ == "__main__":
    asyncio.run(seed())

"""Court model.

A court is an individual bookable space with a weekly availability pattern.
Availability is stored as a JSON document keyed by weekday name:

    {"monday": [{"start": "09:00", "end": "21:00", "type": "academy"}, ...], ...}

Read it through services.availability.normalize_availability(), never raw.
"""

import enum
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Enum, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from arenabook.models.base import Base, JSONType, TimestampMixin


class SportType(enum.StrEnum):
    BASKETBALL = "Basketball"
    FOOTBALL = "Football"
    VOLLEYBALL = "Volleyball"
    SELF_DEFENSE = "Self Defense"
    KARATE = "Karate"
    GYMNASTICS = "Gymnastics"
    GYM = "Gym"
    ZUMBA = "Zumba"
    SWIMMING = "Swimming"
    PING_PONG = "Ping Pong"
    FITNESS = "Fitness"
    CROSSFIT = "Crossfit"


class AvailabilityType(enum.StrEnum):
    ACADEMY = "academy"  # team training and matches, free
    RENTAL = "rental"  # paid bookings, teams or guests


class Court(TimestampMixin, Base):
    __tablename__ = "courts"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    sport_type: Mapped[SportType] = mapped_column(
        Enum(SportType, name="sport_type", values_callable=lambda e: [x.value for x in e]),
        nullable=False,
    )
    location: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    description: Mapped[str | None] = mapped_column(Text)
    capacity: Mapped[int] = mapped_column(default=1, nullable=False)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    availability: Mapped[dict | None] = mapped_column(JSONType, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (CheckConstraint("hourly_rate >= 0", name="ck_courts_hourly_rate_non_negative"),)

    def __repr__(self) -> str:
        return f"<Court {self.name} ({self.sport_type})>"

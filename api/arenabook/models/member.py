"""User and team models.

Users and teams are owned by the surrounding CRUD layer. Only the fields the
scheduling engine and its capability check read are modelled here.
"""

import enum

from sqlalchemy import Boolean, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from arenabook.models.base import Base, JSONType, TimestampMixin


class UserRole(enum.StrEnum):
    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    COACH = "coach"
    ACCOUNTING = "accounting"
    PLAYER = "player"
    PARENT = "parent"
    GUEST = "guest"


class SupervisorType(enum.StrEnum):
    """Which area of the facility a supervisor looks after."""

    GENERAL = "general"
    BOOKING = "booking"
    SPORTS = "sports"
    CAFETERIA = "cafeteria"


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(254), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str | None] = mapped_column(String(200))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", values_callable=lambda e: [x.value for x in e]),
        default=UserRole.PLAYER,
        nullable=False,
    )
    supervisor_type: Mapped[SupervisorType | None] = mapped_column(
        Enum(SupervisorType, name="supervisor_type", values_callable=lambda e: [x.value for x in e]),
    )
    # Sport names a "sports" supervisor may manage, e.g. ["Basketball"]
    supervisor_sport_types: Mapped[list | None] = mapped_column(JSONType, default=list)

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class Team(TimestampMixin, Base):
    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    sport_type: Mapped[str] = mapped_column(String(50), nullable=False)
    coach_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Team {self.name}>"

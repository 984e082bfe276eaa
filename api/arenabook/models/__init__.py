"""All models imported here for Alembic autogenerate discovery."""

from arenabook.models.base import Base
from arenabook.models.booking import (
    Booking,
    BookingPurpose,
    BookingStatus,
    CourtType,
    GuestBooking,
    PaymentMethod,
    PaymentStatus,
)
from arenabook.models.court import AvailabilityType, Court, SportType
from arenabook.models.member import SupervisorType, Team, User, UserRole
from arenabook.models.schedule import RecurringSchedule, ScheduleException

__all__ = [
    "Base",
    "Court",
    "SportType",
    "AvailabilityType",
    "User",
    "UserRole",
    "SupervisorType",
    "Team",
    "Booking",
    "GuestBooking",
    "BookingPurpose",
    "BookingStatus",
    "CourtType",
    "PaymentStatus",
    "PaymentMethod",
    "RecurringSchedule",
    "ScheduleException",
]

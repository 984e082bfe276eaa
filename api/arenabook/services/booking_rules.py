"""Booking rules enforcement.

All booking validation logic lives here, separate from the route handlers.
Each rule returns a BookingViolation or None if the rule passes.
validate_booking() runs the rules in order and stops at the first violation;
business rejections are returned, never raised. Only storage failures raise
(StorageError).

validate_booking() only reads. Running it twice against an unchanged store
gives the same decision, which the recurrence generator relies on.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from arenabook.core.config import settings
from arenabook.core.exceptions import StorageError
from arenabook.models.booking import BookingPurpose, CourtType
from arenabook.models.court import Court
from arenabook.models.member import Team
from arenabook.services.availability import find_containing_window, get_windows_for_purpose, required_window_type
from arenabook.services.overlap import ConflictKind, find_conflicts, resolve_conflict
from arenabook.services.pricing import calculate_price
from arenabook.services.time_window import TimeWindow, booking_minutes, local_today, weekday_name

logger = logging.getLogger(__name__)


class Rule(enum.StrEnum):
    COURT_NOT_FOUND = "court_not_found"
    TEAM_NOT_FOUND = "team_not_found"
    INVALID_TIME_RANGE = "invalid_time_range"
    LEAD_TIME = "lead_time_violation"
    NO_AVAILABILITY_FOR_DAY = "no_availability_for_day"
    OUTSIDE_AVAILABLE_HOURS = "outside_available_hours"
    HALF_COURT_UNSUPPORTED = "sport_does_not_support_half_court"
    SLOT_ALREADY_BOOKED = "slot_already_booked"


NOT_FOUND_RULES = frozenset({Rule.COURT_NOT_FOUND, Rule.TEAM_NOT_FOUND})


@dataclass
class BookingViolation:
    """A business-rule rejection with enough context for the caller to re-prompt."""

    rule: Rule
    message: str
    available_windows: list[TimeWindow] = field(default_factory=list)
    conflict: ConflictKind | None = None
    earliest_date: date | None = None

    @property
    def is_not_found(self) -> bool:
        return self.rule in NOT_FOUND_RULES

    def to_detail(self) -> dict:
        detail: dict = {"rule": self.rule.value, "message": self.message}
        if self.rule in (Rule.NO_AVAILABILITY_FOR_DAY, Rule.OUTSIDE_AVAILABLE_HOURS):
            detail["available_windows"] = [w.to_dict() for w in self.available_windows]
        if self.conflict is not None:
            detail["conflict"] = self.conflict.value
        if self.earliest_date is not None:
            detail["earliest_date"] = self.earliest_date.isoformat()
        return detail


@dataclass
class BookingRequest:
    court_id: int
    start_time: datetime
    end_time: datetime
    purpose: BookingPurpose = BookingPurpose.RENTAL
    team_id: int | None = None
    court_type: CourtType = CourtType.FULL_COURT
    is_guest: bool = False

    @property
    def effective_purpose(self) -> BookingPurpose:
        return BookingPurpose.RENTAL if self.is_guest else self.purpose


@dataclass
class BookingDecision:
    violation: BookingViolation | None = None
    court: Court | None = None
    price: Decimal | None = None
    day_name: str | None = None

    @property
    def accepted(self) -> bool:
        return self.violation is None


async def find_active_court(db: AsyncSession, court_id: int) -> Court | None:
    try:
        result = await db.execute(select(Court).where(Court.id == court_id, Court.is_active.is_(True)))
    except SQLAlchemyError as exc:
        raise StorageError("Could not load court", cause=exc) from exc
    return result.scalar_one_or_none()


async def find_team(db: AsyncSession, team_id: int) -> Team | None:
    try:
        result = await db.execute(select(Team).where(Team.id == team_id))
    except SQLAlchemyError as exc:
        raise StorageError("Could not load team", cause=exc) from exc
    return result.scalar_one_or_none()


async def validate_booking(db: AsyncSession, request: BookingRequest, today: date | None = None) -> BookingDecision:
    """Decide whether a proposed booking is legal and what it costs."""
    # 1. Court (and team) must exist
    court = await find_active_court(db, request.court_id)
    if court is None:
        return _reject(BookingViolation(Rule.COURT_NOT_FOUND, "Court not found"), request)

    if request.team_id is not None and await find_team(db, request.team_id) is None:
        return _reject(BookingViolation(Rule.TEAM_NOT_FOUND, "Team not found"), request, court)

    # 2. Time range
    v = check_time_range(request.start_time, request.end_time)
    if v:
        return _reject(v, request, court)

    # 3. Guest lead time
    if request.is_guest:
        v = check_lead_time(request.start_time.date(), today or local_today())
        if v:
            return _reject(v, request, court)

    # 4-5. Weekly availability
    day_name = weekday_name(request.start_time)
    purpose = request.effective_purpose
    windows = get_windows_for_purpose(court, day_name, purpose, request.is_guest)
    v = check_within_hours(windows, day_name, purpose, request.is_guest, request.start_time, request.end_time)
    if v:
        return _reject(v, request, court)

    # 6. Half court eligibility
    court_type = request.court_type if request.is_guest else CourtType.FULL_COURT
    if request.is_guest:
        v = check_half_court_supported(court, court_type)
        if v:
            return _reject(v, request, court)

    # 7. Overlap with existing bookings
    conflicts = await find_conflicts(db, court.id, request.start_time, request.end_time)
    v = check_slot_free(court_type, resolve_conflict(court_type, conflicts))
    if v:
        return _reject(v, request, court)

    # 8. Price
    price = calculate_price(request.start_time, request.end_time, court.hourly_rate, purpose, court_type)
    return BookingDecision(court=court, price=price, day_name=day_name)


def _reject(violation: BookingViolation, request: BookingRequest, court: Court | None = None) -> BookingDecision:
    logger.info(
        "Booking rejected court=%s %s-%s rule=%s",
        request.court_id,
        request.start_time,
        request.end_time,
        violation.rule,
    )
    return BookingDecision(violation=violation, court=court)


def check_time_range(start: datetime, end: datetime) -> BookingViolation | None:
    """End must be strictly after start; zero-length bookings are not allowed."""
    if end <= start:
        return BookingViolation(Rule.INVALID_TIME_RANGE, "End time must be after start time.")
    return None


def earliest_guest_date(today: date) -> date:
    return today + timedelta(days=settings.guest_lead_time_days)


def check_lead_time(booking_date: date, today: date) -> BookingViolation | None:
    """Guest bookings must be later than tomorrow. Same-day and next-day are refused."""
    earliest = earliest_guest_date(today)
    if booking_date < earliest:
        return BookingViolation(
            Rule.LEAD_TIME,
            f"Guest bookings must be made at least {settings.guest_lead_time_days} days ahead. "
            f"The earliest date you can book is {earliest.isoformat()}.",
            earliest_date=earliest,
        )
    return None


def check_within_hours(
    windows: list[TimeWindow],
    day_name: str,
    purpose: BookingPurpose,
    is_guest: bool,
    start: datetime,
    end: datetime,
) -> BookingViolation | None:
    """The booking must fit entirely inside one matching window."""
    window_type = required_window_type(purpose, is_guest)
    label = window_type.value.capitalize() if window_type else "bookable"

    if not windows:
        return BookingViolation(
            Rule.NO_AVAILABILITY_FOR_DAY,
            f"No {label} hours available for this court on {day_name}.",
        )

    start_minutes, end_minutes = booking_minutes(start, end)
    if find_containing_window(windows, start_minutes, end_minutes) is None:
        return BookingViolation(
            Rule.OUTSIDE_AVAILABLE_HOURS,
            f"Booking time is outside the court's available {label} hours for {day_name}: "
            f"{', '.join(str(w) for w in windows)}.",
            available_windows=windows,
        )
    return None


def check_half_court_supported(court: Court, court_type: CourtType) -> BookingViolation | None:
    if court_type == CourtType.HALF_COURT and court.sport_type != settings.half_court_sport:
        return BookingViolation(
            Rule.HALF_COURT_UNSUPPORTED,
            f"Half court booking is only available for {settings.half_court_sport.lower()} courts.",
        )
    return None


_CONFLICT_MESSAGES = {
    ConflictKind.FULL_VS_FULL: "Court is already booked during this time.",
    ConflictKind.FULL_VS_HALF: "The court is partly booked during this time.",
    ConflictKind.HALF_CAPACITY: "Both half courts are already booked during this time.",
}


def check_slot_free(court_type: CourtType, conflict: ConflictKind | None) -> BookingViolation | None:
    if conflict is None:
        return None
    message = _CONFLICT_MESSAGES[conflict]
    if conflict == ConflictKind.FULL_VS_HALF:
        if court_type == CourtType.FULL_COURT:
            message = "There are half court bookings during this time. Full court is not available."
        else:
            message = "There is already a full court booking during this time."
    return BookingViolation(Rule.SLOT_ALREADY_BOOKED, message, conflict=conflict)

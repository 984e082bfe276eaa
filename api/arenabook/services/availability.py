"""Weekly court availability: normalization, purpose filtering, containment.

A court's availability is a weekday -> [{start, end, type}] document. A day
that is missing from the document falls back to the default window, open for
both academy and rental use. A day present with an empty list is closed.

normalize() is pure and is applied at every read boundary. Persisting the
normalized document back is an explicit maintenance step
(fix_court_availability), never a side effect of reading.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from arenabook.core.config import settings
from arenabook.core.exceptions import StorageError
from arenabook.models.booking import BookingPurpose, CourtType
from arenabook.models.court import AvailabilityType, Court
from arenabook.services.locks import court_lock
from arenabook.services.overlap import (
    count_upcoming_bookings,
    find_overlapping_bookings,
    find_overlapping_guest_bookings,
)
from arenabook.services.time_window import WEEKDAYS, TimeWindow, weekday_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityEntry:
    window: TimeWindow
    type: AvailabilityType

    def to_dict(self) -> dict:
        return {**self.window.to_dict(), "type": self.type.value}


def _parse_type(value) -> AvailabilityType:
    if value is None:
        return AvailabilityType.RENTAL
    return AvailabilityType(str(value).lower())


def default_entries() -> list[AvailabilityEntry]:
    window = TimeWindow.parse(settings.default_window_start, settings.default_window_end)
    return [
        AvailabilityEntry(window, AvailabilityType.ACADEMY),
        AvailabilityEntry(window, AvailabilityType.RENTAL),
    ]


@dataclass
class WeeklyAvailability:
    """Normalized weekly pattern. Every weekday key is present."""

    days: dict[str, list[AvailabilityEntry]] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: dict | None) -> "WeeklyAvailability":
        """Normalize a stored availability document.

        Raises ValueError on malformed entries (bad HH:MM, unknown type,
        end not after start).
        """
        raw = raw or {}
        days: dict[str, list[AvailabilityEntry]] = {}
        for day in WEEKDAYS:
            entries = raw.get(day)
            if entries is None:
                days[day] = default_entries()
                continue
            days[day] = [
                AvailabilityEntry(TimeWindow.parse(e["start"], e["end"]), _parse_type(e.get("type")))
                for e in entries
            ]
        return cls(days)

    def entries(self, weekday: str) -> list[AvailabilityEntry]:
        return list(self.days.get(weekday.lower(), []))

    def windows(self, weekday: str, window_type: AvailabilityType | None = None) -> list[TimeWindow]:
        """Windows for a weekday in configured order, optionally of one type only."""
        return [e.window for e in self.entries(weekday) if window_type is None or e.type == window_type]

    def to_dict(self) -> dict:
        return {day: [e.to_dict() for e in entries] for day, entries in self.days.items()}


def normalize(court: Court) -> WeeklyAvailability:
    """Normalized view of a court's availability. Does not touch the court."""
    return WeeklyAvailability.from_raw(court.availability)


def normalize_availability(raw: dict | None) -> dict:
    """Normalized availability document, ready to store."""
    return WeeklyAvailability.from_raw(raw).to_dict()


def required_window_type(purpose: BookingPurpose, is_guest: bool = False) -> AvailabilityType | None:
    """Which window type a booking purpose must fall into.

    Training and matches use academy hours; rentals and every guest booking
    use rental hours. "Other" may use any configured window.
    """
    if is_guest or purpose == BookingPurpose.RENTAL:
        return AvailabilityType.RENTAL
    if purpose in (BookingPurpose.TRAINING, BookingPurpose.MATCH):
        return AvailabilityType.ACADEMY
    return None


def get_windows_for_purpose(
    court: Court, weekday: str, purpose: BookingPurpose, is_guest: bool = False
) -> list[TimeWindow]:
    return normalize(court).windows(weekday, required_window_type(purpose, is_guest))


def find_containing_window(windows: list[TimeWindow], start: int, end: int) -> TimeWindow | None:
    """First window that fully contains [start, end). Windows are never merged."""
    for window in windows:
        if window.contains(start, end):
            return window
    return None


async def fix_court_availability(db: AsyncSession) -> int:
    """Persist normalized availability for every court. Returns how many changed.

    Idempotent: a second run finds nothing to change.
    """
    try:
        result = await db.execute(select(Court).order_by(Court.id))
        courts = result.scalars().all()
        changed = 0
        for court in courts:
            normalized = normalize_availability(court.availability)
            if normalized != court.availability:
                court.availability = normalized
                changed += 1
        await db.flush()
    except SQLAlchemyError as exc:
        raise StorageError("Could not fix court availability", cause=exc) from exc

    logger.info("Availability normalized for %d of %d courts", changed, len(courts))
    return changed


async def retire_court(db: AsyncSession, court: Court, now: datetime) -> int:
    """Take a court out of service unless bookings are still to come.

    Returns the number of upcoming bookings; the court is deactivated only
    when that is 0. Past bookings keep pointing at the retired court.
    """
    async with court_lock(court.id):
        upcoming = await count_upcoming_bookings(db, court.id, now)
        if upcoming:
            return upcoming

        court.is_active = False
        try:
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            raise StorageError(f"Could not retire court {court.id}", cause=exc) from exc

    logger.info("Court %s retired", court.id)
    return 0


# ---------------------------------------------------------------------------
# Public day view (guest booking calendar)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BookedRange:
    start_time: datetime
    end_time: datetime
    court_type: CourtType
    is_guest: bool


@dataclass
class CourtDaySlots:
    court: Court
    day: date
    weekday: str
    available_slots: list[tuple[datetime, datetime]]
    booked_slots: list[BookedRange]

    @property
    def is_half_court_sport(self) -> bool:
        return self.court.sport_type == settings.half_court_sport


async def get_court_day_slots(db: AsyncSession, court: Court, day: date) -> CourtDaySlots:
    """Rental windows for a day as concrete datetimes plus the booked sub-ranges.

    Regular bookings always occupy the full court.
    """
    weekday = weekday_name(day)
    windows = normalize(court).windows(weekday, AvailabilityType.RENTAL)

    day_start = datetime(day.year, day.month, day.day)
    day_end = day_start.replace(hour=23, minute=59, second=59, microsecond=999999)

    regular = await find_overlapping_bookings(db, court.id, day_start, day_end)
    guests = await find_overlapping_guest_bookings(db, court.id, day_start, day_end)

    booked = [BookedRange(b.start_time, b.end_time, CourtType.FULL_COURT, False) for b in regular]
    booked += [BookedRange(g.start_time, g.end_time, g.court_type, True) for g in guests]
    booked.sort(key=lambda r: r.start_time)

    return CourtDaySlots(
        court=court,
        day=day,
        weekday=weekday,
        available_slots=[w.on(day) for w in windows],
        booked_slots=booked,
    )


async def list_courts_open_for_rental(db: AsyncSession, day: date) -> list[Court]:
    """Active courts with at least one rental window on the given day."""
    try:
        result = await db.execute(select(Court).where(Court.is_active.is_(True)).order_by(Court.name))
        courts = result.scalars().all()
    except SQLAlchemyError as exc:
        raise StorageError("Could not list courts", cause=exc) from exc

    weekday = weekday_name(day)
    return [c for c in courts if normalize(c).windows(weekday, AvailabilityType.RENTAL)]

"""Recurring schedules: weekly booking generation and exception dates.

generate_recurring_bookings() is the callable the periodic sweep drives. It
is idempotent: it never creates a booking where a live booking already
overlaps, and it only looks week_count weeks ahead of today, so running it
twice with nothing changed in between creates nothing the second time.
"""

import logging
from datetime import date, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from arenabook.core.config import settings
from arenabook.core.exceptions import InvalidScheduleError, StorageError
from arenabook.models.booking import Booking, BookingPurpose, BookingStatus
from arenabook.models.court import Court
from arenabook.models.schedule import RecurringSchedule, ScheduleException
from arenabook.services.availability import find_containing_window, get_windows_for_purpose
from arenabook.services.booking_rules import BookingViolation, Rule
from arenabook.services.lifecycle import mark_cancelled
from arenabook.services.locks import court_lock
from arenabook.services.overlap import find_conflicts
from arenabook.services.time_window import (
    MINUTES_PER_DAY,
    WEEKDAYS,
    local_now,
    local_datetime,
    parse_hhmm,
)

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7


class DuplicateExceptionDate(ValueError):
    """The schedule already skips this date."""


def calculate_duration(start_time: str, end_time: str) -> int:
    """Minutes from start to end. An end before the start runs into the next day."""
    start = parse_hhmm(start_time)
    end = parse_hhmm(end_time)
    if end < start:
        return MINUTES_PER_DAY - start + end
    return end - start


def next_weekday_on_or_after(day: date, weekday_index: int) -> date:
    return day + timedelta(days=(weekday_index - day.weekday()) % DAYS_PER_WEEK)


def occurrence_times(day: date, start_time: str, end_time: str) -> tuple[datetime, datetime]:
    """Local start/end of one occurrence, rolling the end over midnight when needed."""
    start_minutes = parse_hhmm(start_time)
    end_minutes = parse_hhmm(end_time)
    start = local_datetime(day.year, day.month, day.day, start_minutes // 60, start_minutes % 60)
    end = local_datetime(day.year, day.month, day.day, end_minutes // 60, end_minutes % 60)
    if end_minutes < start_minutes:
        end += timedelta(days=1)
    return start, end


def is_exception_date(schedule: RecurringSchedule, day: date) -> bool:
    return any(ex.exception_date == day for ex in schedule.exceptions)


def check_schedule_slot(
    court: Court, day_of_week: str, start_time: str, end_time: str, purpose: BookingPurpose
) -> BookingViolation | None:
    """Validate a schedule's weekly slot against the court's windows for that weekday.

    An overnight slot only needs its part before midnight to fit a window that
    runs to the end of the day.
    """
    if day_of_week not in WEEKDAYS:
        return BookingViolation(Rule.INVALID_TIME_RANGE, f"Invalid day of week: {day_of_week}")
    try:
        duration = calculate_duration(start_time, end_time)
    except ValueError as exc:
        return BookingViolation(Rule.INVALID_TIME_RANGE, str(exc))
    if duration <= 0:
        return BookingViolation(Rule.INVALID_TIME_RANGE, "End time must be after start time.")

    start_minutes = parse_hhmm(start_time)
    end_minutes = min(start_minutes + duration, MINUTES_PER_DAY)
    windows = get_windows_for_purpose(court, day_of_week, purpose)
    if not windows:
        return BookingViolation(
            Rule.NO_AVAILABILITY_FOR_DAY,
            f"No {purpose.value} hours available for this court on {day_of_week}.",
        )
    if find_containing_window(windows, start_minutes, end_minutes) is None:
        return BookingViolation(
            Rule.OUTSIDE_AVAILABLE_HOURS,
            f"Schedule time is outside the court's available hours for {day_of_week}: "
            f"{', '.join(str(w) for w in windows)}.",
            available_windows=windows,
        )
    return None


async def load_schedule(db: AsyncSession, schedule_id: int) -> RecurringSchedule | None:
    try:
        result = await db.execute(select(RecurringSchedule).where(RecurringSchedule.id == schedule_id))
    except SQLAlchemyError as exc:
        raise StorageError("Could not load recurring schedule", cause=exc) from exc
    return result.scalar_one_or_none()


def _generation_range(schedule: RecurringSchedule, week_count: int, today: date) -> tuple[date, date]:
    """First and last calendar day (inclusive) to generate occurrences for."""
    anchor = max(schedule.start_date, today)
    first = anchor
    if schedule.bookings:
        latest = max(b.start_time for b in schedule.bookings)
        first = max(first, latest.date() + timedelta(days=DAYS_PER_WEEK))

    last = anchor + timedelta(days=week_count * DAYS_PER_WEEK - 1)
    if schedule.end_date is not None and schedule.end_date < last:
        last = schedule.end_date
    return first, last


async def generate_recurring_bookings(
    db: AsyncSession,
    schedule: RecurringSchedule,
    week_count: int | None = None,
    now: datetime | None = None,
) -> list[Booking]:
    """Create the schedule's missing bookings up to week_count weeks ahead.

    An occurrence is skipped when its date is an exception, when it has
    already started, or when a live regular booking overlaps it. Invalid
    schedule data aborts the run with InvalidScheduleError.

    Commits before releasing the court lock, like the booking create flows,
    so the next writer on this court sees the new bookings. Pending changes
    in the session (a schedule just added, say) are committed with them.
    """
    week_count = week_count or settings.recurring_generation_weeks
    now = now or local_now()

    if not schedule.is_active:
        logger.info("Schedule %s is inactive, nothing generated", schedule.id)
        return []
    if schedule.day_of_week not in WEEKDAYS:
        raise InvalidScheduleError(f"Invalid day of week: {schedule.day_of_week!r} (schedule {schedule.id})")
    try:
        parse_hhmm(schedule.start_time)
        parse_hhmm(schedule.end_time)
    except ValueError as exc:
        raise InvalidScheduleError(f"Invalid times on schedule {schedule.id}: {exc}") from exc

    first, last = _generation_range(schedule, week_count, now.date())
    day = next_weekday_on_or_after(first, WEEKDAYS.index(schedule.day_of_week))

    generated: list[Booking] = []
    async with court_lock(schedule.court_id):
        while day <= last:
            occurrence_day = day
            day += timedelta(days=DAYS_PER_WEEK)

            if is_exception_date(schedule, occurrence_day):
                logger.info("Schedule %s: %s is an exception, skipped", schedule.id, occurrence_day)
                continue

            start, end = occurrence_times(occurrence_day, schedule.start_time, schedule.end_time)
            if start <= now:
                continue

            conflicts = await find_conflicts(db, schedule.court_id, start, end, include_guest=False)
            if conflicts:
                logger.info("Schedule %s: %s-%s already booked, skipped", schedule.id, start, end)
                continue

            booking = Booking(
                court_id=schedule.court_id,
                user_id=schedule.created_by_id,
                team_id=schedule.team_id,
                start_time=start,
                end_time=end,
                purpose=schedule.purpose,
                status=BookingStatus.CONFIRMED,
                total_price=0,
                is_recurring=True,
                recurring_day=schedule.day_of_week,
                notes=f"Generated from recurring schedule #{schedule.id}",
            )
            schedule.bookings.append(booking)
            db.add(booking)
            generated.append(booking)

        try:
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            raise StorageError(f"Could not save bookings for schedule {schedule.id}", cause=exc) from exc

    logger.info("Schedule %s: generated %d bookings through %s", schedule.id, len(generated), last)
    return generated


async def generate_for_active_schedules(
    db: AsyncSession, week_count: int | None = None, now: datetime | None = None
) -> dict[int, int]:
    """Sweep entry point: generate for every active schedule. Returns {schedule_id: created}."""
    try:
        result = await db.execute(
            select(RecurringSchedule).where(RecurringSchedule.is_active.is_(True)).order_by(RecurringSchedule.id)
        )
        schedules = result.scalars().all()
    except SQLAlchemyError as exc:
        raise StorageError("Could not load recurring schedules", cause=exc) from exc

    created: dict[int, int] = {}
    for schedule in schedules:
        bookings = await generate_recurring_bookings(db, schedule, week_count, now)
        created[schedule.id] = len(bookings)
    return created


async def add_exception(
    db: AsyncSession, schedule: RecurringSchedule, day: date, reason: str | None = None
) -> tuple[ScheduleException, list[Booking]]:
    """Skip a date and cancel the booking already generated for it, if any."""
    if is_exception_date(schedule, day):
        raise DuplicateExceptionDate(f"{day.isoformat()} is already an exception")

    reason = reason or "Manual exception"
    exception = ScheduleException(exception_date=day, reason=reason)
    schedule.exceptions.append(exception)

    cancelled = []
    for booking in schedule.bookings:
        if booking.start_time.date() == day and booking.status != BookingStatus.CANCELLED:
            mark_cancelled(booking, note=f"Cancelled due to exception: {reason}")
            cancelled.append(booking)

    try:
        await db.flush()
    except SQLAlchemyError as exc:
        raise StorageError("Could not save schedule exception", cause=exc) from exc

    logger.info("Schedule %s: exception on %s, %d bookings cancelled", schedule.id, day, len(cancelled))
    return exception, cancelled


async def remove_exception(db: AsyncSession, schedule: RecurringSchedule, exception_id: int) -> bool:
    """Drop an exception date. The skipped booking is not recreated."""
    for exception in schedule.exceptions:
        if exception.id == exception_id:
            schedule.exceptions.remove(exception)
            break
    else:
        return False

    try:
        await db.flush()
    except SQLAlchemyError as exc:
        raise StorageError("Could not remove schedule exception", cause=exc) from exc
    return True


async def delete_schedule(
    db: AsyncSession, schedule: RecurringSchedule, cancel_bookings: bool = False, now: datetime | None = None
) -> int:
    """Hard-delete a schedule. Optionally cancel its upcoming generated bookings.

    Returns the number of bookings cancelled. Past bookings are kept as they were.
    """
    now = now or local_now()
    cancelled = 0
    for booking in schedule.bookings:
        if cancel_bookings and booking.status != BookingStatus.CANCELLED and booking.start_time > now:
            mark_cancelled(booking, note=f"Cancelled: recurring schedule #{schedule.id} deleted")
            cancelled += 1
        booking.recurring_schedule_id = None

    try:
        await db.flush()
        await db.delete(schedule)
        await db.flush()
    except SQLAlchemyError as exc:
        raise StorageError("Could not delete recurring schedule", cause=exc) from exc

    logger.info("Schedule %s deleted, %d bookings cancelled", schedule.id, cancelled)
    return cancelled

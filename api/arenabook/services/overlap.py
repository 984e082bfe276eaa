"""Overlap queries over existing bookings and the half-court rule.

Intervals are half-open: an existing booking conflicts with [start, end)
when existing.start < end and existing.end > start.
"""

import enum
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from arenabook.core.exceptions import StorageError
from arenabook.models.booking import Booking, BookingStatus, CourtType, GuestBooking


class ConflictKind(enum.StrEnum):
    FULL_VS_FULL = "full_conflict"
    FULL_VS_HALF = "half_conflict"
    HALF_CAPACITY = "half_capacity"


# Two halves make a court
HALF_COURT_CAPACITY = 2


@dataclass(frozen=True)
class Conflict:
    """An existing booking that intersects a candidate range."""

    booking_id: int
    is_guest: bool
    court_type: CourtType
    start_time: datetime
    end_time: datetime


async def find_overlapping_bookings(
    db: AsyncSession,
    court_id: int,
    start: datetime,
    end: datetime,
    exclude_cancelled: bool = True,
) -> list[Booking]:
    """Regular bookings on a court intersecting [start, end)."""
    query = select(Booking).where(
        Booking.court_id == court_id,
        Booking.start_time < end,
        Booking.end_time > start,
    )
    if exclude_cancelled:
        query = query.where(Booking.status != BookingStatus.CANCELLED)
    try:
        result = await db.execute(query.order_by(Booking.start_time))
    except SQLAlchemyError as exc:
        raise StorageError("Could not query bookings", cause=exc) from exc
    return list(result.scalars().all())


async def find_overlapping_guest_bookings(
    db: AsyncSession,
    court_id: int,
    start: datetime,
    end: datetime,
    exclude_cancelled: bool = True,
    court_type: CourtType | None = None,
) -> list[GuestBooking]:
    """Guest bookings on a court intersecting [start, end), optionally of one court type."""
    query = select(GuestBooking).where(
        GuestBooking.court_id == court_id,
        GuestBooking.start_time < end,
        GuestBooking.end_time > start,
    )
    if exclude_cancelled:
        query = query.where(GuestBooking.status != BookingStatus.CANCELLED)
    if court_type is not None:
        query = query.where(GuestBooking.court_type == court_type)
    try:
        result = await db.execute(query.order_by(GuestBooking.start_time))
    except SQLAlchemyError as exc:
        raise StorageError("Could not query guest bookings", cause=exc) from exc
    return list(result.scalars().all())


async def find_conflicts(
    db: AsyncSession,
    court_id: int,
    start: datetime,
    end: datetime,
    include_regular: bool = True,
    include_guest: bool = True,
) -> list[Conflict]:
    """Every non-cancelled booking intersecting [start, end), from both stores by default."""
    conflicts: list[Conflict] = []
    if include_regular:
        for b in await find_overlapping_bookings(db, court_id, start, end):
            conflicts.append(Conflict(b.id, False, CourtType.FULL_COURT, b.start_time, b.end_time))
    if include_guest:
        for g in await find_overlapping_guest_bookings(db, court_id, start, end):
            conflicts.append(Conflict(g.id, True, g.court_type, g.start_time, g.end_time))
    return conflicts


def resolve_conflict(candidate: CourtType, conflicts: list[Conflict]) -> ConflictKind | None:
    """Apply the full/half court exclusion rule to a candidate.

    A full court candidate conflicts with anything that overlaps. A half court
    candidate conflicts with any regular booking, any full court guest booking,
    or with HALF_COURT_CAPACITY half court guest bookings already present.
    Regular bookings always count as full court.
    """
    if not conflicts:
        return None

    halves = [c for c in conflicts if c.is_guest and c.court_type == CourtType.HALF_COURT]
    wholes = [c for c in conflicts if not (c.is_guest and c.court_type == CourtType.HALF_COURT)]

    if candidate == CourtType.FULL_COURT:
        if any(not c.is_guest for c in wholes):
            return ConflictKind.FULL_VS_FULL
        if halves:
            return ConflictKind.FULL_VS_HALF
        return ConflictKind.FULL_VS_FULL

    if wholes:
        return ConflictKind.FULL_VS_HALF
    if len(halves) >= HALF_COURT_CAPACITY:
        return ConflictKind.HALF_CAPACITY
    return None


async def count_upcoming_bookings(db: AsyncSession, court_id: int, now: datetime) -> int:
    """Non-cancelled regular and guest bookings on a court that start after now."""
    total = 0
    try:
        for model in (Booking, GuestBooking):
            result = await db.execute(
                select(func.count())
                .select_from(model)
                .where(model.court_id == court_id, model.start_time > now, model.status != BookingStatus.CANCELLED)
            )
            total += result.scalar_one()
    except SQLAlchemyError as exc:
        raise StorageError("Could not count upcoming bookings", cause=exc) from exc
    return total

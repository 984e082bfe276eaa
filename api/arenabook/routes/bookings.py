"""Booking routes: create, list, get, cancel and staff status changes.

All rule enforcement happens in services.booking_rules; these handlers only
translate between HTTP and the booking services.
"""

import logging
from datetime import date, timedelta

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from arenabook.core.database import get_db
from arenabook.core.dependencies import get_current_user, require_manager, violation_error
from arenabook.models.booking import Booking, BookingStatus
from arenabook.models.court import Court
from arenabook.models.member import User
from arenabook.schemas import BookingCreate, BookingOut, StatusUpdate
from arenabook.services import bookings as booking_service
from arenabook.services.lifecycle import check_cancellable, check_status_change, effective_status, mark_cancelled
from arenabook.services.notifications import notify_booking
from arenabook.services.permissions import can_manage, managed_sport_types
from arenabook.services.time_window import combine_local, local_datetime, local_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _booking_out(booking: Booking) -> BookingOut:
    out = BookingOut.model_validate(booking)
    out.status = effective_status(booking, local_now())
    return out


async def _get_booking_with_court(db: AsyncSession, booking_id: int) -> tuple[Booking, Court]:
    result = await db.execute(
        select(Booking, Court).join(Court, Court.id == Booking.court_id).where(Booking.id == booking_id)
    )
    row = result.one_or_none()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return row[0], row[1]


def _require_owner_or_manager(user: User, booking: Booking, court: Court) -> None:
    if booking.user_id != user.id and not can_manage(user, court.sport_type):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to access this booking")


@router.post("", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: BookingCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    start_time = combine_local(body.booking_date, body.start_time)
    end_time = combine_local(body.end_date or body.booking_date, body.end_time)

    outcome = await booking_service.create_booking(
        db,
        user,
        court_id=body.court_id,
        start_time=start_time,
        end_time=end_time,
        purpose=body.purpose,
        team_id=body.team_id,
        notes=body.notes,
    )
    if not outcome.accepted:
        raise violation_error(outcome.violation)

    booking = outcome.booking
    background_tasks.add_task(
        notify_booking,
        user.email,
        "Your court booking",
        booking_service.summarize(booking, outcome.decision.court),
    )
    return _booking_out(booking)


@router.get("", response_model=list[BookingOut])
async def list_bookings(
    court_id: int | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    mine: bool = True,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's bookings, or with mine=false every booking on courts they manage."""
    query = select(Booking, Court).join(Court, Court.id == Booking.court_id)
    if mine:
        query = query.where(Booking.user_id == user.id)
    else:
        sports = managed_sport_types(user)
        if sports is not None:
            query = query.where(Court.sport_type.in_(sports))
    if court_id is not None:
        query = query.where(Booking.court_id == court_id)
    if from_date is not None:
        query = query.where(Booking.start_time >= local_datetime(from_date.year, from_date.month, from_date.day))
    if to_date is not None:
        day_after = local_datetime(to_date.year, to_date.month, to_date.day) + timedelta(days=1)
        query = query.where(Booking.start_time < day_after)

    result = await db.execute(query.order_by(Booking.start_time.desc()).limit(200))
    return [_booking_out(booking) for booking, _ in result.all()]


@router.get("/{booking_id}", response_model=BookingOut)
async def get_booking(
    booking_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking, court = await _get_booking_with_court(db, booking_id)
    _require_owner_or_manager(user, booking, court)
    return _booking_out(booking)


@router.post("/{booking_id}/cancel", response_model=BookingOut)
async def cancel_booking(
    booking_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking, court = await _get_booking_with_court(db, booking_id)
    _require_owner_or_manager(user, booking, court)

    reason = check_cancellable(booking, local_now())
    if reason:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=reason)

    mark_cancelled(booking)
    await db.flush()
    logger.info("Booking %s cancelled by user %s", booking.id, user.id)
    return _booking_out(booking)


@router.patch("/{booking_id}/status", response_model=BookingOut)
async def update_booking_status(
    booking_id: int,
    body: StatusUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking, court = await _get_booking_with_court(db, booking_id)
    require_manager(user, court.sport_type)

    reason = check_status_change(booking, body.status, local_now())
    if reason:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=reason)

    if body.status == BookingStatus.CANCELLED:
        mark_cancelled(booking)
    else:
        booking.status = body.status

    await db.flush()
    logger.info("Booking %s set to %s by user %s", booking.id, body.status, user.id)
    return _booking_out(booking)

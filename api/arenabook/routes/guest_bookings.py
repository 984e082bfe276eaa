"""Guest booking routes: the public, unauthenticated booking surface.

Guests find a court and a free slot, book it (always a rental, at least two
days ahead), then pay now or choose to pay at the court. Staff confirm or
cancel from the same router.
"""

import logging
from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from arenabook.core.database import get_db
from arenabook.core.dependencies import get_current_user, require_any_manager, require_manager, violation_error
from arenabook.models.booking import BookingStatus, GuestBooking
from arenabook.models.court import Court
from arenabook.models.member import User
from arenabook.schemas import (
    BookedRangeOut,
    CourtOut,
    GuestBookingCreate,
    GuestBookingOut,
    GuestCancel,
    GuestSlotsOut,
    PaymentUpdate,
    SlotOut,
    StatusUpdate,
)
from arenabook.services import bookings as booking_service
from arenabook.services.availability import get_court_day_slots, list_courts_open_for_rental, normalize
from arenabook.services.booking_rules import find_active_court
from arenabook.services.lifecycle import (
    apply_guest_payment,
    apply_guest_status,
    check_cancellable,
    check_status_change,
    effective_status,
    mark_cancelled,
)
from arenabook.services.notifications import notify_booking
from arenabook.services.permissions import managed_sport_types
from arenabook.services.time_window import combine_local, local_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/guest-bookings", tags=["guest bookings"])


def _guest_out(booking: GuestBooking) -> GuestBookingOut:
    out = GuestBookingOut.model_validate(booking)
    out.status = effective_status(booking, local_now())
    return out


async def _get_by_reference(db: AsyncSession, reference: str) -> GuestBooking:
    booking = await booking_service.find_guest_booking_by_reference(db, reference)
    if booking is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return booking


async def _court_for(db: AsyncSession, booking: GuestBooking) -> Court:
    result = await db.execute(select(Court).where(Court.id == booking.court_id))
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------


@router.get("/courts", response_model=list[CourtOut])
async def available_courts(day: date = Query(alias="date"), db: AsyncSession = Depends(get_db)):
    """Active courts with rental hours on the given date."""
    courts = await list_courts_open_for_rental(db, day)
    out = []
    for court in courts:
        item = CourtOut.model_validate(court)
        item.availability = normalize(court).to_dict()
        out.append(item)
    return out


@router.get("/slots", response_model=GuestSlotsOut)
async def available_slots(
    court_id: int,
    day: date = Query(alias="date"),
    db: AsyncSession = Depends(get_db),
):
    """Rental windows for the day plus what is already booked inside them."""
    court = await find_active_court(db, court_id)
    if court is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Court not found")

    slots = await get_court_day_slots(db, court, day)
    return GuestSlotsOut(
        court_id=court.id,
        court_name=court.name,
        date=day,
        day=slots.weekday,
        is_basketball_court=slots.is_half_court_sport,
        hourly_rate=court.hourly_rate,
        available_slots=[SlotOut(start_time=start, end_time=end) for start, end in slots.available_slots],
        booked_slots=[
            BookedRangeOut(start_time=r.start_time, end_time=r.end_time, court_type=r.court_type, is_guest=r.is_guest)
            for r in slots.booked_slots
        ],
    )


@router.post("", response_model=GuestBookingOut, status_code=status.HTTP_201_CREATED)
async def create_guest_booking(
    body: GuestBookingCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    outcome = await booking_service.create_guest_booking(
        db,
        court_id=body.court_id,
        start_time=combine_local(body.booking_date, body.start_time),
        end_time=combine_local(body.end_date or body.booking_date, body.end_time),
        guest_name=body.guest_name,
        guest_email=body.guest_email,
        guest_phone=body.guest_phone,
        court_type=body.court_type,
        notes=body.notes,
    )
    if not outcome.accepted:
        raise violation_error(outcome.violation)

    booking = outcome.booking
    background_tasks.add_task(
        notify_booking,
        booking.guest_email,
        f"Booking received: {booking.booking_reference}",
        booking_service.summarize(booking, outcome.decision.court),
    )
    return _guest_out(booking)


@router.get("/reference/{reference}", response_model=GuestBookingOut)
async def get_guest_booking(reference: str, db: AsyncSession = Depends(get_db)):
    return _guest_out(await _get_by_reference(db, reference))


@router.post("/reference/{reference}/payment", response_model=GuestBookingOut)
async def update_payment(
    reference: str,
    body: PaymentUpdate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    booking = await _get_by_reference(db, reference)

    reason = apply_guest_payment(booking, body.payment_method, body.payment_id, body.pay_later)
    if reason:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=reason)
    await db.flush()

    court = await _court_for(db, booking)
    subject = "Booking pending payment" if body.pay_later else "Booking confirmed"
    background_tasks.add_task(
        notify_booking,
        booking.guest_email,
        f"{subject}: {booking.booking_reference}",
        booking_service.summarize(booking, court),
    )
    logger.info("Guest booking %s payment: %s pay_later=%s", reference, body.payment_method, body.pay_later)
    return _guest_out(booking)


@router.post("/reference/{reference}/cancel", response_model=GuestBookingOut)
async def cancel_guest_booking(reference: str, body: GuestCancel, db: AsyncSession = Depends(get_db)):
    """Guest self-cancel. The email must match the one the booking was made with."""
    booking = await _get_by_reference(db, reference)
    if booking.guest_email.lower() != body.email.lower():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Email does not match this booking")

    reason = check_cancellable(booking, local_now())
    if reason:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=reason)

    mark_cancelled(booking, note="Cancelled by guest")
    await db.flush()
    logger.info("Guest booking %s cancelled by guest", reference)
    return _guest_out(booking)


# ---------------------------------------------------------------------------
# Staff
# ---------------------------------------------------------------------------


@router.get("", response_model=list[GuestBookingOut])
async def list_guest_bookings(
    court_id: int | None = None,
    booking_status: BookingStatus | None = Query(default=None, alias="status"),
    user: User = Depends(require_any_manager),
    db: AsyncSession = Depends(get_db),
):
    query = select(GuestBooking, Court).join(Court, Court.id == GuestBooking.court_id)
    sports = managed_sport_types(user)
    if sports is not None:
        query = query.where(Court.sport_type.in_(sports))
    if court_id is not None:
        query = query.where(GuestBooking.court_id == court_id)
    if booking_status is not None:
        query = query.where(GuestBooking.status == booking_status)

    result = await db.execute(query.order_by(GuestBooking.start_time.desc()).limit(200))
    return [_guest_out(b) for b, _ in result.all()]


@router.patch("/{booking_id}/status", response_model=GuestBookingOut)
async def update_guest_status(
    booking_id: int,
    body: StatusUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(GuestBooking, Court).join(Court, Court.id == GuestBooking.court_id).where(GuestBooking.id == booking_id)
    )
    row = result.one_or_none()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    booking, court = row
    require_manager(user, court.sport_type)

    reason = check_status_change(booking, body.status, local_now())
    if reason:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=reason)

    apply_guest_status(booking, body.status)
    await db.flush()
    logger.info("Guest booking %s set to %s by user %s", booking.booking_reference, body.status, user.id)
    return _guest_out(booking)

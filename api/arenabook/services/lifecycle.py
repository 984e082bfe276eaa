"""Booking status lifecycle.

"Completed" is derived at read time by effective_status(); reads never write.
settle_completed_bookings() is the explicit batch that persists it.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from arenabook.core.exceptions import StorageError
from arenabook.models.booking import Booking, BookingStatus, GuestBooking, PaymentMethod, PaymentStatus

logger = logging.getLogger(__name__)

OPEN_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


def effective_status(booking: Booking | GuestBooking, now: datetime) -> BookingStatus:
    """Status as presented to readers: open bookings that have ended read as completed."""
    if booking.status in OPEN_STATUSES and booking.end_time < now:
        return BookingStatus.COMPLETED
    return booking.status


def check_cancellable(booking: Booking | GuestBooking, now: datetime) -> str | None:
    """Reason the booking cannot be cancelled, or None."""
    if booking.status == BookingStatus.CANCELLED:
        return "Booking is already cancelled"
    if booking.status not in OPEN_STATUSES:
        return "This booking cannot be cancelled"
    if booking.start_time <= now:
        return "Cannot cancel past bookings"
    return None


def check_status_change(booking: Booking | GuestBooking, status: BookingStatus, now: datetime) -> str | None:
    """Reason a staff status change is refused, or None.

    Cancelling follows the same rules as a member cancel. Cancelled and
    completed bookings are final.
    """
    if status == BookingStatus.CANCELLED:
        return check_cancellable(booking, now)
    if booking.status == BookingStatus.CANCELLED:
        return "Cancelled bookings cannot be reopened"
    if booking.status == BookingStatus.COMPLETED:
        return "Completed bookings cannot be changed"
    return None


def _append_note(existing: str | None, note: str) -> str:
    return f"{existing}\n{note}" if existing else note


def mark_cancelled(booking: Booking | GuestBooking, note: str | None = None) -> None:
    booking.status = BookingStatus.CANCELLED
    booking.cancelled_at = datetime.now(UTC)
    if booking.payment_status == PaymentStatus.PAID:
        booking.payment_status = PaymentStatus.REFUNDED
    if note:
        booking.notes = _append_note(booking.notes, note)


def apply_guest_payment(
    booking: GuestBooking, method: PaymentMethod, payment_id: str | None, pay_later: bool
) -> str | None:
    """Record how a pending guest booking is paid. Returns a rejection reason or None.

    Paying now confirms the booking. Paying later (cash at the court) keeps it
    pending and unpaid until staff confirm it.
    """
    if booking.status != BookingStatus.PENDING:
        return "Cannot update payment for bookings that are not pending"

    booking.payment_method = method
    booking.payment_id = payment_id or ""
    if pay_later:
        booking.payment_status = PaymentStatus.UNPAID
    else:
        booking.payment_status = PaymentStatus.PAID
        booking.status = BookingStatus.CONFIRMED
    return None


def apply_guest_status(booking: GuestBooking, status: BookingStatus) -> None:
    """Apply a staff status change, already passed by check_status_change, with its payment side effects."""
    if status == BookingStatus.CANCELLED:
        mark_cancelled(booking)
        return
    # Cash received at the court
    if status == BookingStatus.CONFIRMED and booking.status == BookingStatus.PENDING:
        if booking.payment_status == PaymentStatus.UNPAID:
            booking.payment_status = PaymentStatus.PAID
    booking.status = status


async def settle_completed_bookings(db: AsyncSession, now: datetime) -> int:
    """Persist Completed for every open booking (regular and guest) that has ended."""
    total = 0
    try:
        for model in (Booking, GuestBooking):
            result = await db.execute(
                update(model)
                .where(model.end_time < now, model.status.in_(OPEN_STATUSES))
                .values(status=BookingStatus.COMPLETED)
                .execution_options(synchronize_session=False)
            )
            total += result.rowcount or 0
        await db.flush()
    except SQLAlchemyError as exc:
        raise StorageError("Could not settle completed bookings", cause=exc) from exc

    logger.info("Settled %d completed bookings", total)
    return total

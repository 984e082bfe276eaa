"""Validate-then-persist for regular and guest bookings.

Each create runs under the court's lock and commits before releasing it, so
a second request for an overlapping slot on the same court always sees the
first one's row. Rejections come back in the BookingOutcome; nothing here
raises for a business rule.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from arenabook.core.exceptions import StorageError
from arenabook.models.booking import Booking, BookingPurpose, BookingStatus, CourtType, GuestBooking
from arenabook.models.court import Court
from arenabook.models.member import User
from arenabook.services.booking_rules import BookingDecision, BookingRequest, BookingViolation, Rule, validate_booking
from arenabook.services.locks import court_lock
from arenabook.services.notifications import BookingSummary
from arenabook.services.permissions import is_staff

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "GB-"


@dataclass
class BookingOutcome:
    decision: BookingDecision
    booking: Booking | GuestBooking | None = None

    @property
    def accepted(self) -> bool:
        return self.decision.accepted and self.booking is not None

    @property
    def violation(self) -> BookingViolation | None:
        return self.decision.violation


def _lost_race(decision: BookingDecision) -> BookingOutcome:
    violation = BookingViolation(Rule.SLOT_ALREADY_BOOKED, "Court is already booked during this time.")
    return BookingOutcome(BookingDecision(violation=violation, court=decision.court))


async def _commit(db: AsyncSession, what: str) -> None:
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        raise StorageError(f"Could not save {what}", cause=exc) from exc


async def create_booking(
    db: AsyncSession,
    actor: User,
    court_id: int,
    start_time: datetime,
    end_time: datetime,
    purpose: BookingPurpose = BookingPurpose.RENTAL,
    team_id: int | None = None,
    notes: str | None = None,
) -> BookingOutcome:
    """Book a court for an authenticated user.

    Staff bookings (admin, supervisor, coach) are confirmed straight away,
    everyone else's wait in pending for staff approval.
    """
    request = BookingRequest(
        court_id=court_id,
        start_time=start_time,
        end_time=end_time,
        purpose=purpose,
        team_id=team_id,
    )
    async with court_lock(court_id):
        decision = await validate_booking(db, request)
        if not decision.accepted:
            return BookingOutcome(decision)

        booking = Booking(
            court_id=court_id,
            user_id=actor.id,
            team_id=team_id,
            start_time=start_time,
            end_time=end_time,
            purpose=purpose,
            status=BookingStatus.CONFIRMED if is_staff(actor) else BookingStatus.PENDING,
            total_price=decision.price,
            notes=notes,
        )
        db.add(booking)
        try:
            await _commit(db, "booking")
        except IntegrityError:
            logger.info("Booking on court %s at %s lost a race", court_id, start_time)
            return _lost_race(decision)

    logger.info("Booking %s created court=%s %s-%s by user %s", booking.id, court_id, start_time, end_time, actor.id)
    return BookingOutcome(decision, booking)


async def generate_booking_reference(db: AsyncSession) -> str:
    while True:
        reference = REFERENCE_PREFIX + secrets.token_hex(4).upper()
        if await find_guest_booking_by_reference(db, reference) is None:
            return reference


async def create_guest_booking(
    db: AsyncSession,
    court_id: int,
    start_time: datetime,
    end_time: datetime,
    guest_name: str,
    guest_email: str,
    guest_phone: str,
    court_type: CourtType = CourtType.FULL_COURT,
    notes: str | None = None,
    today: date | None = None,
) -> BookingOutcome:
    """Book a court for an unauthenticated guest. Always a pending rental."""
    request = BookingRequest(
        court_id=court_id,
        start_time=start_time,
        end_time=end_time,
        purpose=BookingPurpose.RENTAL,
        court_type=court_type,
        is_guest=True,
    )
    async with court_lock(court_id):
        decision = await validate_booking(db, request, today=today)
        if not decision.accepted:
            return BookingOutcome(decision)

        booking = GuestBooking(
            court_id=court_id,
            court_type=court_type,
            booking_reference=await generate_booking_reference(db),
            guest_name=guest_name,
            guest_email=guest_email,
            guest_phone=guest_phone,
            start_time=start_time,
            end_time=end_time,
            purpose=BookingPurpose.RENTAL,
            status=BookingStatus.PENDING,
            total_price=decision.price,
            notes=notes,
        )
        db.add(booking)
        try:
            await _commit(db, "guest booking")
        except IntegrityError:
            return _lost_race(decision)

    logger.info(
        "Guest booking %s created court=%s %s %s-%s",
        booking.booking_reference,
        court_id,
        court_type,
        start_time,
        end_time,
    )
    return BookingOutcome(decision, booking)


async def find_guest_booking_by_reference(db: AsyncSession, reference: str) -> GuestBooking | None:
    try:
        result = await db.execute(
            select(GuestBooking).where(func.upper(GuestBooking.booking_reference) == reference.upper())
        )
    except SQLAlchemyError as exc:
        raise StorageError("Could not load guest booking", cause=exc) from exc
    return result.scalar_one_or_none()


def summarize(booking: Booking | GuestBooking, court: Court) -> BookingSummary:
    if isinstance(booking, GuestBooking):
        reference, court_type = booking.booking_reference, booking.court_type.value
    else:
        reference, court_type = f"#{booking.id}", None
    return BookingSummary(
        reference=reference,
        court_name=court.name,
        start_time=booking.start_time,
        end_time=booking.end_time,
        status=booking.status.value,
        total_price=booking.total_price,
        court_type=court_type,
    )

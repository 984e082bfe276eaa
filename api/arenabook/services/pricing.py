"""Pricing service for booking cost calculation.

Training and match bookings are free. Rentals bill per started half hour at
the court's hourly rate, halved for a half court.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from arenabook.models.booking import BookingPurpose, CourtType

HALF_HOUR_SECONDS = 30 * 60
HALF_COURT_MULTIPLIER = Decimal("0.5")

_CENTS = Decimal("0.01")


def half_hour_units(start: datetime, end: datetime) -> int:
    """Number of half hours the range occupies, rounded up.

    61 minutes -> 3 units (90 minutes), not 2.
    """
    seconds = int((end - start).total_seconds())
    return -(-seconds // HALF_HOUR_SECONDS)


def calculate_price(
    start: datetime,
    end: datetime,
    hourly_rate: Decimal | int | float,
    purpose: BookingPurpose,
    court_type: CourtType = CourtType.FULL_COURT,
) -> Decimal:
    """Amount to charge for a booking, rounded to cents."""
    if purpose != BookingPurpose.RENTAL:
        return Decimal("0")

    rate = Decimal(str(hourly_rate))
    amount = half_hour_units(start, end) * (rate / 2)
    if court_type == CourtType.HALF_COURT:
        amount *= HALF_COURT_MULTIPLIER
    return amount.quantize(_CENTS, rounding=ROUND_HALF_UP)

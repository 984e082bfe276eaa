"""Booking models.

Booking reserves a court for an authenticated user (optionally on behalf of a
team). GuestBooking is the public, unauthenticated counterpart and carries
guest contact details and a half/full court designation instead of a user.

start_time/end_time are naive local wall-clock datetimes in the facility
timezone, never UTC instants.
"""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Numeric, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from arenabook.models.base import Base, TimestampMixin


class BookingPurpose(enum.StrEnum):
    TRAINING = "training"
    MATCH = "match"
    RENTAL = "rental"
    OTHER = "other"


class BookingStatus(enum.StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentStatus(enum.StrEnum):
    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"


class PaymentMethod(enum.StrEnum):
    CASH = "cash"
    CARD = "card"
    MOBILE = "mobile"


class CourtType(enum.StrEnum):
    FULL_COURT = "full_court"
    HALF_COURT = "half_court"


class Booking(TimestampMixin, Base):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(primary_key=True)
    court_id: Mapped[int] = mapped_column(ForeignKey("courts.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    team_id: Mapped[int | None] = mapped_column(ForeignKey("teams.id"))

    # When (local wall-clock)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    purpose: Mapped[BookingPurpose] = mapped_column(
        Enum(BookingPurpose, name="booking_purpose", values_callable=lambda e: [x.value for x in e]),
        default=BookingPurpose.RENTAL,
        nullable=False,
    )
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status", values_callable=lambda e: [x.value for x in e]),
        default=BookingStatus.PENDING,
        nullable=False,
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Payment
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status", values_callable=lambda e: [x.value for x in e]),
        default=PaymentStatus.UNPAID,
        nullable=False,
    )

    # Recurrence
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurring_day: Mapped[str | None] = mapped_column(String(10))
    recurring_schedule_id: Mapped[int | None] = mapped_column(ForeignKey("recurring_schedules.id"))

    notes: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (
        # Backstop against the validate/persist race: no two live bookings
        # may start at the same instant on the same court.
        Index(
            "ix_bookings_no_double",
            "court_id",
            "start_time",
            unique=True,
            postgresql_where=text("status != 'cancelled'"),
            sqlite_where=text("status != 'cancelled'"),
        ),
        Index("ix_bookings_court_range", "court_id", "start_time", "end_time"),
        Index("ix_bookings_user", "user_id", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<Booking {self.start_time}-{self.end_time} court={self.court_id}>"


class GuestBooking(TimestampMixin, Base):
    __tablename__ = "guest_bookings"

    id: Mapped[int] = mapped_column(primary_key=True)
    court_id: Mapped[int] = mapped_column(ForeignKey("courts.id"), nullable=False)
    court_type: Mapped[CourtType] = mapped_column(
        Enum(CourtType, name="court_type", values_callable=lambda e: [x.value for x in e]),
        default=CourtType.FULL_COURT,
        nullable=False,
    )
    booking_reference: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)

    # Guest contact
    guest_name: Mapped[str] = mapped_column(String(200), nullable=False)
    guest_email: Mapped[str] = mapped_column(String(254), nullable=False)
    guest_phone: Mapped[str] = mapped_column(String(50), nullable=False)

    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    purpose: Mapped[BookingPurpose] = mapped_column(
        Enum(BookingPurpose, name="booking_purpose", values_callable=lambda e: [x.value for x in e]),
        default=BookingPurpose.RENTAL,
        nullable=False,
    )
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status", values_callable=lambda e: [x.value for x in e]),
        default=BookingStatus.PENDING,
        nullable=False,
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status", values_callable=lambda e: [x.value for x in e]),
        default=PaymentStatus.UNPAID,
        nullable=False,
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, name="payment_method", values_callable=lambda e: [x.value for x in e]),
        default=PaymentMethod.CARD,
        nullable=False,
    )
    payment_id: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (Index("ix_guest_bookings_court_range", "court_id", "start_time", "end_time"),)

    def __repr__(self) -> str:
        return f"<GuestBooking {self.booking_reference} {self.court_type} court={self.court_id}>"

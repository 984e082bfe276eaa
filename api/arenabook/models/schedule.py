"""Recurring schedule model.

A recurring schedule is a weekly training slot for a team on a court. It
generates concrete Booking rows ahead of time; the generated bookings point
back at the schedule through Booking.recurring_schedule_id.
"""

from datetime import date

from sqlalchemy import Boolean, Date, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from arenabook.models.base import Base, TimestampMixin
from arenabook.models.booking import Booking, BookingPurpose


class RecurringSchedule(TimestampMixin, Base):
    __tablename__ = "recurring_schedules"

    id: Mapped[int] = mapped_column(primary_key=True)
    team_id: Mapped[int] = mapped_column(ForeignKey("teams.id"), nullable=False)
    court_id: Mapped[int] = mapped_column(ForeignKey("courts.id"), nullable=False)
    created_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    purpose: Mapped[BookingPurpose] = mapped_column(
        Enum(BookingPurpose, name="booking_purpose", values_callable=lambda e: [x.value for x in e]),
        default=BookingPurpose.TRAINING,
        nullable=False,
    )
    day_of_week: Mapped[str] = mapped_column(String(10), nullable=False)  # "monday".."sunday"
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)  # "HH:MM"
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    # Always derived from start_time/end_time, see services.recurrence.calculate_duration
    duration: Mapped[int] = mapped_column(nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date)  # None recurs indefinitely
    notes: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    exceptions: Mapped[list["ScheduleException"]] = relationship(
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="ScheduleException.exception_date",
        lazy="selectin",
    )
    bookings: Mapped[list[Booking]] = relationship(order_by=Booking.start_time, lazy="selectin")

    __table_args__ = (
        Index("ix_recurring_schedules_team_day", "team_id", "day_of_week"),
        Index("ix_recurring_schedules_court_day", "court_id", "day_of_week"),
        Index("ix_recurring_schedules_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<RecurringSchedule {self.day_of_week} {self.start_time}-{self.end_time} court={self.court_id}>"


class ScheduleException(Base):
    """A calendar date on which the schedule does not produce or keep a booking."""

    __tablename__ = "schedule_exceptions"

    id: Mapped[int] = mapped_column(primary_key=True)
    schedule_id: Mapped[int] = mapped_column(ForeignKey("recurring_schedules.id", ondelete="CASCADE"), nullable=False)
    exception_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    reason: Mapped[str] = mapped_column(String(500), default="Manual exception", nullable=False)

    schedule: Mapped[RecurringSchedule] = relationship(back_populates="exceptions")

    def __repr__(self) -> str:
        return f"<ScheduleException {self.exception_date} schedule={self.schedule_id}>"

"""Pydantic schemas for API serialisation."""

from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from arenabook.models.booking import BookingPurpose, BookingStatus, CourtType, PaymentMethod, PaymentStatus
from arenabook.models.court import SportType
from arenabook.models.member import UserRole
from arenabook.services.time_window import WEEKDAYS, parse_hhmm

# --- Auth ---


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: str
    last_name: str
    role: UserRole


# --- Court ---


class AvailabilitySlot(BaseModel):
    start: str
    end: str
    type: str = "academy"

    @field_validator("start", "end")
    @classmethod
    def check_hhmm(cls, value: str) -> str:
        parse_hhmm(value)
        return value


class CourtCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    sport_type: SportType
    location: str = ""
    description: str | None = None
    capacity: int = Field(default=1, ge=1)
    hourly_rate: Decimal = Field(default=Decimal("0"), ge=0)
    availability: dict[str, list[AvailabilitySlot]] | None = None


class CourtUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    sport_type: SportType | None = None
    location: str | None = None
    description: str | None = None
    capacity: int | None = Field(default=None, ge=1)
    hourly_rate: Decimal | None = Field(default=None, ge=0)
    availability: dict[str, list[AvailabilitySlot]] | None = None
    is_active: bool | None = None


class CourtOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    sport_type: SportType
    location: str
    description: str | None
    capacity: int
    hourly_rate: Decimal
    availability: dict | None
    is_active: bool


class WindowOut(BaseModel):
    start: str
    end: str
    type: str | None = None


class SlotOut(BaseModel):
    start_time: datetime
    end_time: datetime


class BookedRangeOut(BaseModel):
    start_time: datetime
    end_time: datetime
    court_type: CourtType
    is_guest: bool = False


class CourtDayOut(BaseModel):
    court_id: int
    date: date
    day: str
    windows: list[WindowOut]
    bookings: list[BookedRangeOut]


class GuestSlotsOut(BaseModel):
    court_id: int
    court_name: str
    date: date
    day: str
    is_basketball_court: bool
    hourly_rate: Decimal
    available_slots: list[SlotOut]
    booked_slots: list[BookedRangeOut]


# --- Booking ---


class BookingCreate(BaseModel):
    court_id: int
    booking_date: date
    start_time: time
    end_time: time
    end_date: date | None = None  # for bookings that run past midnight
    purpose: BookingPurpose = BookingPurpose.RENTAL
    team_id: int | None = None
    notes: str | None = None


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    court_id: int
    user_id: int
    team_id: int | None
    start_time: datetime
    end_time: datetime
    purpose: BookingPurpose
    status: BookingStatus
    total_price: Decimal
    payment_status: PaymentStatus
    is_recurring: bool
    recurring_schedule_id: int | None
    notes: str | None
    cancelled_at: datetime | None


class StatusUpdate(BaseModel):
    status: BookingStatus


# --- Guest booking ---


class GuestBookingCreate(BaseModel):
    court_id: int
    booking_date: date
    start_time: time
    end_time: time
    end_date: date | None = None
    court_type: CourtType = CourtType.FULL_COURT
    guest_name: str = Field(min_length=1, max_length=200)
    guest_email: EmailStr
    guest_phone: str = Field(min_length=1, max_length=50)
    notes: str | None = None


class GuestBookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    booking_reference: str
    court_id: int
    court_type: CourtType
    guest_name: str
    guest_email: str
    guest_phone: str
    start_time: datetime
    end_time: datetime
    purpose: BookingPurpose
    status: BookingStatus
    total_price: Decimal
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    notes: str | None


class PaymentUpdate(BaseModel):
    payment_method: PaymentMethod
    payment_id: str | None = None
    pay_later: bool = False


class GuestCancel(BaseModel):
    email: EmailStr


# --- Recurring schedules ---


def _check_hhmm(value: str | None) -> str | None:
    if value is not None:
        parse_hhmm(value)
    return value


def _check_weekday(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.lower()
    if value not in WEEKDAYS:
        raise ValueError(f"day_of_week must be one of {', '.join(WEEKDAYS)}")
    return value


class ScheduleCreate(BaseModel):
    team_id: int
    court_id: int
    day_of_week: str
    start_time: str
    end_time: str
    start_date: date
    end_date: date | None = None
    purpose: BookingPurpose = BookingPurpose.TRAINING
    notes: str | None = None

    check_weekday = field_validator("day_of_week")(_check_weekday)
    check_times = field_validator("start_time", "end_time")(_check_hhmm)


class ScheduleUpdate(BaseModel):
    court_id: int | None = None
    day_of_week: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    purpose: BookingPurpose | None = None
    notes: str | None = None
    is_active: bool | None = None

    check_weekday = field_validator("day_of_week")(_check_weekday)
    check_times = field_validator("start_time", "end_time")(_check_hhmm)


class ExceptionCreate(BaseModel):
    date: date
    reason: str | None = None


class ExceptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    exception_date: date = Field(serialization_alias="date")
    reason: str | None


class ScheduleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    team_id: int
    court_id: int
    created_by_id: int
    purpose: BookingPurpose
    day_of_week: str
    start_time: str
    end_time: str
    duration: int
    start_date: date
    end_date: date | None
    notes: str | None
    is_active: bool
    exceptions: list[ExceptionOut] = []


class GenerateRequest(BaseModel):
    weeks: int = Field(default=4, ge=1, le=52)


class GenerateResult(BaseModel):
    schedule_id: int
    created: int
    bookings: list[BookingOut]


class ExceptionResult(BaseModel):
    exception: ExceptionOut
    cancelled_booking_ids: list[int]



"""Time-of-day windows and local wall-clock helpers.

Pure calculation module: no database, no async.

Booking instants are naive datetimes in the facility's local wall-clock.
They are always built from discrete date and time components so the civil
day a user asked for can never drift through a UTC conversion.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from arenabook.core.config import settings

MINUTES_PER_DAY = 24 * 60

# Python's weekday(): 0 = Monday
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_HHMM = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")


def parse_hhmm(value: str) -> int:
    """Parse "HH:MM" into minutes since midnight. Raises ValueError if malformed."""
    match = _HHMM.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"Times must be in HH:MM format, got {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def intervals_overlap(a_start, a_end, b_start, b_end) -> bool:
    """Half-open [start, end) intersection. Touching endpoints do not overlap."""
    return a_start < b_end and a_end > b_start


@dataclass(frozen=True, order=True)
class TimeWindow:
    """A half-open time-of-day interval [start, end) in minutes since midnight."""

    start: int
    end: int

    def __post_init__(self):
        if not 0 <= self.start < MINUTES_PER_DAY or not 0 < self.end <= MINUTES_PER_DAY:
            raise ValueError(f"Window bounds out of range: {self.start}-{self.end}")
        if self.end <= self.start:
            raise ValueError(f"Window end must be after start: {format_hhmm(self.start)}-{format_hhmm(self.end)}")

    @classmethod
    def parse(cls, start: str, end: str) -> "TimeWindow":
        end_minutes = parse_hhmm(end)
        # "00:00" as an end bound means midnight at the close of the day
        if end_minutes == 0:
            end_minutes = MINUTES_PER_DAY
        return cls(parse_hhmm(start), end_minutes)

    @property
    def duration_minutes(self) -> int:
        return self.end - self.start

    def contains(self, start: int, end: int) -> bool:
        """True when [start, end) fits entirely inside this window."""
        return self.start <= start and end <= self.end

    def overlaps(self, start: int, end: int) -> bool:
        return intervals_overlap(self.start, self.end, start, end)

    def on(self, day: date) -> tuple[datetime, datetime]:
        """Concrete local datetimes for this window on a calendar day."""
        midnight = datetime(day.year, day.month, day.day)
        return midnight + timedelta(minutes=self.start), midnight + timedelta(minutes=self.end)

    def to_dict(self) -> dict:
        return {"start": format_hhmm(self.start), "end": format_hhmm(self.end % MINUTES_PER_DAY)}

    def __str__(self) -> str:
        return f"{format_hhmm(self.start)}-{format_hhmm(self.end % MINUTES_PER_DAY)}"


def local_datetime(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    """Build a naive local wall-clock datetime from discrete components."""
    return datetime(year, month, day, hour, minute)


def combine_local(day: date, at: time) -> datetime:
    return local_datetime(day.year, day.month, day.day, at.hour, at.minute)


def minutes_since_midnight(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def weekday_name(moment: date | datetime) -> str:
    """Lower-case weekday name of the local civil date, e.g. "monday"."""
    return WEEKDAYS[moment.weekday()]


def booking_minutes(start: datetime, end: datetime) -> tuple[int, int]:
    """Express a booking as minutes on its start day.

    A booking that runs past midnight gets an end beyond 1440 so it can never
    fit inside a single-day window.
    """
    start_minutes = minutes_since_midnight(start)
    day_offset = (end.date() - start.date()).days
    return start_minutes, day_offset * MINUTES_PER_DAY + minutes_since_midnight(end)


def local_now() -> datetime:
    """Current facility wall-clock time as a naive datetime."""
    return datetime.now(ZoneInfo(settings.timezone)).replace(tzinfo=None)


def local_today() -> date:
    return local_now().date()

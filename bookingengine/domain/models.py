"""
Domain models for intervals, bookings, working hours and placement results.

All instants are held as UTC. Day-of-week, local dates and local times are
interpreted in the business time zone, which callers pass explicitly.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import pendulum
from pendulum import DateTime

from .exceptions import InvalidInterval


def to_utc(value: datetime) -> DateTime:
    """
    Normalise a datetime to a UTC pendulum DateTime.

    Naive datetimes are taken to already be in UTC.
    """
    if not isinstance(value, datetime):
        raise InvalidInterval(f"Expected a datetime instant, got {value!r}")
    return pendulum.instance(value, tz="UTC").in_timezone("UTC")


def local_date_of(instant: datetime, timezone: str) -> date:
    """Calendar date of ``instant`` in ``timezone`` as a plain ``datetime.date``."""
    local = to_utc(instant).in_timezone(timezone)
    return date(local.year, local.month, local.day)


def day_of_week(day: date) -> int:
    """Return the day of week with Sunday=0 ... Saturday=6."""
    return day.isoweekday() % 7


@dataclass(frozen=True)
class TimeInterval:
    """
    Represents an immutable half-open time range ``[start, end)``.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        start = to_utc(self.start)
        end = to_utc(self.end)
        if start >= end:
            raise InvalidInterval(f"Start time {start} must be before end time {end}")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @classmethod
    def starting_at(cls, start: datetime, minutes: int) -> "TimeInterval":
        """Build an interval of ``minutes`` length beginning at ``start``."""
        begin = to_utc(start)
        return cls(start=begin, end=begin.add(minutes=minutes))

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeInterval") -> bool:
        """Check if this range overlaps with another. Touching ends do not overlap."""
        return self.start < other.end and other.start < self.end

    def contains(self, instant: datetime) -> bool:
        """Check if ``instant`` lies inside the range (end excluded)."""
        moment = to_utc(instant)
        return self.start <= moment < self.end

    def contains_interval(self, other: "TimeInterval") -> bool:
        """Check if ``other`` lies completely inside this range."""
        return self.start <= other.start and other.end <= self.end

    def intersect(self, other: "TimeInterval") -> "TimeInterval | None":
        """
        Calculate the intersection of two time ranges.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None

        start = max(self.start, other.start)
        end = min(self.end, other.end)

        return TimeInterval(start=start, end=end)

    def shifted_to(self, start: datetime) -> "TimeInterval":
        """Return an interval of the same duration beginning at ``start``."""
        begin = to_utc(start)
        return TimeInterval(start=begin, end=begin + (self.end - self.start))

    def local_date(self, timezone: str) -> date:
        """Calendar date of the start instant in ``timezone``."""
        return local_date_of(self.start, timezone)

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')} UTC"


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    """True iff ``a.start < b.end`` and ``b.start < a.end``."""
    return a.overlaps(b)


def contains(interval: TimeInterval, instant: datetime) -> bool:
    """True iff ``interval.start <= instant < interval.end``."""
    return interval.contains(instant)


class BookingStatus(str, Enum):
    """Lifecycle status of a booking, owned by the persistence side."""
    PENDING = "PENDING"
    PENDING_DEPOSIT = "PENDING_DEPOSIT"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"

    @property
    def blocks_time(self) -> bool:
        """Cancelled and no-show bookings free their slot for rebooking."""
        return self not in (BookingStatus.CANCELLED, BookingStatus.NO_SHOW)


@dataclass(frozen=True)
class WorkingHoursEntry:
    """
    Weekly working hours for one day of the week.
    """
    day_of_week: int  # 0=Sunday, 6=Saturday
    start_time: time
    end_time: time
    is_off: bool = False

    def is_usable(self) -> bool:
        """A day counts as working only if it is not off and its window is well-formed."""
        return not self.is_off and self.start_time < self.end_time

    def covers(self, local_time: time) -> bool:
        """Check whether a local time of day lies inside ``[start_time, end_time)``."""
        if not self.is_usable():
            return False
        return self.start_time <= local_time < self.end_time


@dataclass(frozen=True)
class WorkingHoursTemplate:
    """
    Read-only snapshot of one staff member's weekly working hours.

    A day without exactly one entry is unspecified and counts as unavailable.
    """
    staff_id: str
    entries: Tuple[WorkingHoursEntry, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "entries", tuple(self.entries))

    def entry_for(self, weekday: int) -> Optional[WorkingHoursEntry]:
        """Return the entry for a day of week (Sunday=0), or None if unspecified."""
        matches = [entry for entry in self.entries if entry.day_of_week == weekday]
        if len(matches) != 1:
            return None
        return matches[0]


@dataclass(frozen=True)
class TimeOffRange:
    """
    Multi-day block of time off, inclusive on both ends, at date granularity.
    """
    id: str
    staff_id: str
    start_date: date
    end_date: date
    reason: Optional[str] = None

    def covers(self, day: date) -> bool:
        """Check if ``day`` falls inside the range."""
        # an inverted range blocks every date between its two ends
        first, last = sorted((self.start_date, self.end_date))
        return first <= day <= last


@dataclass(frozen=True)
class Booking:
    """
    A booking as supplied by the persistence side.
    """
    id: str
    staff_id: str
    customer_id: str
    service_id: str
    interval: TimeInterval
    status: BookingStatus = BookingStatus.CONFIRMED
    location_id: Optional[str] = None
    customer_name: Optional[str] = None

    @property
    def start(self) -> DateTime:
        return self.interval.start

    @property
    def end(self) -> DateTime:
        return self.interval.end

    @property
    def blocks_time(self) -> bool:
        return self.status.blocks_time

    def with_placement(self, staff_id: str, interval: TimeInterval) -> "Booking":
        """Return a copy moved to ``staff_id`` and ``interval``."""
        return replace(self, staff_id=staff_id, interval=interval)


@dataclass(frozen=True)
class PlacementCandidate:
    """
    A proposed placement for a new or moved booking.
    """
    staff_id: str
    interval: TimeInterval
    exclude_booking_id: Optional[str] = None
    location_id: Optional[str] = None


class PlacementOutcome(str, Enum):
    """Result categories of a planning call."""
    CLEAN = "CLEAN"
    CONFLICT = "CONFLICT"
    OUTSIDE_WORKING_HOURS = "OUTSIDE_WORKING_HOURS"
    STAFF_TIME_OFF = "STAFF_TIME_OFF"

    @property
    def requires_confirmation(self) -> bool:
        """Only conflicts block a commit until the user explicitly overrides."""
        return self is PlacementOutcome.CONFLICT

    @property
    def is_advisory(self) -> bool:
        return self in (
            PlacementOutcome.OUTSIDE_WORKING_HOURS,
            PlacementOutcome.STAFF_TIME_OFF,
        )


@dataclass(frozen=True)
class PlacementResult:
    """
    Outcome of one planning call. Never persisted.
    """
    outcome: PlacementOutcome
    conflicting_bookings: Tuple[str, ...] = ()

    @classmethod
    def clean(cls) -> "PlacementResult":
        return cls(outcome=PlacementOutcome.CLEAN)

    @classmethod
    def conflict(cls, booking_ids: Sequence[str]) -> "PlacementResult":
        return cls(outcome=PlacementOutcome.CONFLICT, conflicting_bookings=tuple(booking_ids))

    @property
    def is_clean(self) -> bool:
        return self.outcome is PlacementOutcome.CLEAN


@dataclass(frozen=True)
class PlanningContext:
    """
    Consistent snapshot of the data one planning call runs against.
    """
    working_hours: Optional[WorkingHoursTemplate]
    time_off: Tuple[TimeOffRange, ...] = ()
    existing_bookings: Tuple[Booking, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "time_off", tuple(self.time_off))
        object.__setattr__(self, "existing_bookings", tuple(self.existing_bookings))


@dataclass
class AvailableSlot:
    """
    Represents a candidate booking slot for one staff member.
    """
    staff_id: str
    interval: TimeInterval
    available: bool = True
    staff_name: str = ""

    def format_display(self, timezone: str) -> str:
        """
        Format the slot for display.
        Format: Weekday, YYYY-MM-DD | HH:MM - HH:MM (staff)
        """
        start = self.interval.start.in_timezone(timezone)
        end = self.interval.end.in_timezone(timezone)

        weekday = start.format("dddd")
        date_str = start.format("YYYY-MM-DD")
        time_str = f"{start.format('HH:mm')} - {end.format('HH:mm')}"
        who = self.staff_name or self.staff_id
        marker = "" if self.available else " [taken]"

        return f"{weekday}, {date_str} | {time_str} ({who}){marker}"


@dataclass
class CalendarContext:
    """
    Working hours and time-off for one staff member over a date range.
    """
    staff_id: str
    working_hours: Optional[WorkingHoursTemplate]
    time_off: List[TimeOffRange] = field(default_factory=list)

"""
Calendar projections: day, week and month views over a set of bookings.

Projections are recomputed on every call and never mutate their input.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import Booking, BookingStatus, day_of_week, local_date_of

CONFIRMED_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS)
PENDING_STATUSES = (BookingStatus.PENDING, BookingStatus.PENDING_DEPOSIT)
CANCELLED_STATUSES = (BookingStatus.CANCELLED, BookingStatus.NO_SHOW)


@dataclass(frozen=True)
class DisplayWindow:
    """
    Vertical layout of the time grid.
    """
    start_hour: int = 8
    end_hour: int = 20
    slot_height: float = 60  # pixels per hour
    minimum_height: float = 20  # keeps very short bookings clickable

    def __post_init__(self):
        if not 0 <= self.start_hour < self.end_hour <= 24:
            raise ValueError(
                f"Display window {self.start_hour}-{self.end_hour} is not a valid range of hours"
            )
        if self.slot_height <= 0 or self.minimum_height < 0:
            raise ValueError("slot_height must be positive and minimum_height non-negative")

    @property
    def hours(self) -> List[int]:
        """Hour rows shown in the grid."""
        return list(range(self.start_hour, self.end_hour))


@dataclass(frozen=True)
class DayEntry:
    """A booking card positioned on the vertical time axis."""
    booking_id: str
    staff_id: str
    status: BookingStatus
    top_offset: float
    height: float


@dataclass
class DayProjection:
    staff_id: str
    date: date
    entries: List[DayEntry] = field(default_factory=list)


@dataclass
class WeekColumn:
    date: date
    day_of_week: int
    entries: List[DayEntry] = field(default_factory=list)


@dataclass
class WeekProjection:
    week_start: date
    staff_ids: Tuple[str, ...]
    columns: List[WeekColumn] = field(default_factory=list)


@dataclass
class MonthDaySummary:
    """
    Booking counts for one date of a month view.

    ``total`` counts every booking, including completed ones that fall in
    no other bucket.
    """
    date: date
    total: int = 0
    confirmed: int = 0
    pending: int = 0
    cancelled: int = 0
    count_by_status: Dict[BookingStatus, int] = field(default_factory=dict)

    def add(self, status: BookingStatus) -> None:
        self.total += 1
        self.count_by_status[status] = self.count_by_status.get(status, 0) + 1
        if status in CONFIRMED_STATUSES:
            self.confirmed += 1
        elif status in PENDING_STATUSES:
            self.pending += 1
        elif status in CANCELLED_STATUSES:
            self.cancelled += 1


def week_start_for(day: date) -> date:
    """Sunday on or before ``day``."""
    return day - timedelta(days=day_of_week(day))


def month_dates(month: date) -> List[date]:
    """Every date of the month containing ``month``."""
    first = date(month.year, month.month, 1)
    if month.month == 12:
        following = date(month.year + 1, 1, 1)
    else:
        following = date(month.year, month.month + 1, 1)
    return [first + timedelta(days=offset) for offset in range((following - first).days)]


class CalendarAggregator:
    """
    Projects bookings into day, week and month views.

    Bookings are placed on the date their start falls on in the business
    time zone; cancelled and no-show bookings are still shown and counted.
    """

    def __init__(self, timezone: str = "UTC", display: Optional[DisplayWindow] = None):
        self.timezone = timezone
        self.display = display or DisplayWindow()

    def position(self, booking: Booking) -> Tuple[float, float]:
        """
        Compute ``(top_offset, height)`` of a booking card.

        The top follows the local wall-clock start, so hour rows stay aligned on
        DST-change days. The height follows real elapsed time, so a booking
        running past midnight keeps its full height.
        """
        start = booking.start.in_timezone(self.timezone)
        start_hour = start.hour + start.minute / 60 + start.second / 3600
        elapsed_hours = (booking.end - booking.start).total_seconds() / 3600

        top = (start_hour - self.display.start_hour) * self.display.slot_height
        height = max(
            elapsed_hours * self.display.slot_height,
            self.display.minimum_height,
        )
        return top, height

    def project_day(
        self,
        staff_id: str,
        day: date,
        bookings: Iterable[Booking],
    ) -> DayProjection:
        """Position the staff member's bookings starting on ``day``."""
        entries = self._entries_for(day, bookings, staff_ids=(staff_id,))
        return DayProjection(staff_id=staff_id, date=day, entries=entries)

    def project_week(
        self,
        staff_ids: Sequence[str],
        week_start: date,
        bookings: Iterable[Booking],
    ) -> WeekProjection:
        """
        Seven columns starting at ``week_start``, restricted to the selected staff.
        """
        booking_list = list(bookings)
        selected = tuple(staff_ids)
        columns: List[WeekColumn] = []

        for offset in range(7):
            day = week_start + timedelta(days=offset)
            columns.append(
                WeekColumn(
                    date=day,
                    day_of_week=day_of_week(day),
                    entries=self._entries_for(day, booking_list, staff_ids=selected),
                )
            )

        return WeekProjection(week_start=week_start, staff_ids=selected, columns=columns)

    def project_month(
        self,
        month: date,
        bookings: Iterable[Booking],
        staff_ids: Optional[Sequence[str]] = None,
    ) -> Dict[date, MonthDaySummary]:
        """
        Per-date status counts for the month containing ``month``.

        Every date of the month is present, days without bookings included.
        """
        summaries = {day: MonthDaySummary(date=day) for day in month_dates(month)}
        selected = set(staff_ids) if staff_ids is not None else None

        for booking in bookings:
            if selected is not None and booking.staff_id not in selected:
                continue
            summary = summaries.get(local_date_of(booking.start, self.timezone))
            if summary is not None:
                summary.add(booking.status)

        return summaries

    def _entries_for(
        self,
        day: date,
        bookings: Iterable[Booking],
        staff_ids: Sequence[str],
    ) -> List[DayEntry]:
        entries: List[DayEntry] = []
        selected = set(staff_ids)

        for booking in sorted(bookings, key=lambda b: (b.start, b.id)):
            if booking.staff_id not in selected:
                continue
            if local_date_of(booking.start, self.timezone) != day:
                continue
            top, height = self.position(booking)
            entries.append(
                DayEntry(
                    booking_id=booking.id,
                    staff_id=booking.staff_id,
                    status=booking.status,
                    top_offset=top,
                    height=height,
                )
            )

        return entries

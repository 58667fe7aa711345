"""
Tests for domain models.
"""

from datetime import date, datetime, time

import pendulum
import pytest

from bookingengine.domain.exceptions import InvalidInterval
from bookingengine.domain.models import (
    Booking,
    BookingStatus,
    PlacementOutcome,
    PlacementResult,
    TimeInterval,
    TimeOffRange,
    WorkingHoursEntry,
    WorkingHoursTemplate,
    contains,
    day_of_week,
    local_date_of,
    overlaps,
)


def _interval(start: str, end: str, tz: str = "UTC") -> TimeInterval:
    return TimeInterval(start=pendulum.parse(start, tz=tz), end=pendulum.parse(end, tz=tz))


class TestTimeInterval:
    """Tests for TimeInterval model."""

    def test_create_valid_interval(self):
        tr = _interval("2026-03-02 09:00", "2026-03-02 17:00")

        assert tr.duration_minutes() == 480

    def test_invalid_interval_raises_error(self):
        with pytest.raises(InvalidInterval, match="Start time .* must be before end time"):
            _interval("2026-03-02 17:00", "2026-03-02 09:00")

    def test_empty_interval_raises_error(self):
        with pytest.raises(InvalidInterval):
            _interval("2026-03-02 09:00", "2026-03-02 09:00")

    def test_invalid_interval_is_a_value_error(self):
        with pytest.raises(ValueError):
            _interval("2026-03-02 10:00", "2026-03-02 09:00")

    def test_non_datetime_rejected(self):
        with pytest.raises(InvalidInterval):
            TimeInterval(start="2026-03-02", end=pendulum.datetime(2026, 3, 3))

    def test_normalised_to_utc(self):
        tr = _interval("2026-03-02 10:00", "2026-03-02 11:00", tz="Europe/Berlin")

        assert tr.start.timezone_name == "UTC"
        assert tr.start.hour == 9
        assert tr.end.hour == 10

    def test_naive_datetime_is_read_as_utc(self):
        tr = TimeInterval(start=datetime(2026, 3, 2, 9, 0), end=datetime(2026, 3, 2, 10, 0))

        assert tr.start == pendulum.datetime(2026, 3, 2, 9, 0, tz="UTC")

    def test_overlaps_is_symmetric(self):
        tr1 = _interval("2026-03-02 09:00", "2026-03-02 12:00")
        tr2 = _interval("2026-03-02 11:00", "2026-03-02 14:00")

        assert tr1.overlaps(tr2)
        assert tr2.overlaps(tr1)
        assert overlaps(tr1, tr2) == overlaps(tr2, tr1)

    def test_adjacent_intervals_do_not_overlap(self):
        tr1 = _interval("2026-03-02 10:00", "2026-03-02 11:00")
        tr2 = _interval("2026-03-02 11:00", "2026-03-02 12:00")

        assert not overlaps(tr1, tr2)
        assert not overlaps(tr2, tr1)

    def test_nested_intervals_overlap(self):
        outer = _interval("2026-03-02 09:00", "2026-03-02 17:00")
        inner = _interval("2026-03-02 10:00", "2026-03-02 11:00")

        assert overlaps(outer, inner)
        assert outer.contains_interval(inner)
        assert not inner.contains_interval(outer)

    def test_contains_is_half_open(self):
        tr = _interval("2026-03-02 10:00", "2026-03-02 11:00")

        assert contains(tr, pendulum.datetime(2026, 3, 2, 10, 0))
        assert contains(tr, pendulum.datetime(2026, 3, 2, 10, 59))
        assert not contains(tr, pendulum.datetime(2026, 3, 2, 11, 0))
        assert not contains(tr, pendulum.datetime(2026, 3, 2, 9, 59))

    def test_intersect(self):
        tr1 = _interval("2026-03-02 09:00", "2026-03-02 12:00")
        tr2 = _interval("2026-03-02 11:00", "2026-03-02 14:00")

        intersection = tr1.intersect(tr2)

        assert intersection is not None
        assert intersection.start.hour == 11
        assert intersection.end.hour == 12

    def test_intersect_no_overlap(self):
        tr1 = _interval("2026-03-02 09:00", "2026-03-02 10:00")
        tr2 = _interval("2026-03-02 10:00", "2026-03-02 11:00")

        assert tr1.intersect(tr2) is None

    def test_shifted_to_keeps_duration(self):
        tr = _interval("2026-03-02 10:00", "2026-03-02 11:30")

        moved = tr.shifted_to(pendulum.datetime(2026, 3, 3, 14, 0))

        assert moved.start == pendulum.datetime(2026, 3, 3, 14, 0)
        assert moved.duration_minutes() == 90

    def test_local_date_crosses_midnight_in_business_zone(self):
        tr = _interval("2026-03-02 23:30", "2026-03-03 00:30")

        assert tr.local_date("UTC") == date(2026, 3, 2)
        assert tr.local_date("Europe/Berlin") == date(2026, 3, 3)


class TestCalendarHelpers:

    def test_day_of_week_starts_on_sunday(self):
        assert day_of_week(date(2026, 3, 1)) == 0  # Sunday
        assert day_of_week(date(2026, 3, 2)) == 1  # Monday
        assert day_of_week(date(2026, 3, 7)) == 6  # Saturday

    def test_local_date_of_returns_plain_date(self):
        result = local_date_of(pendulum.datetime(2026, 3, 2, 23, 0), "Asia/Tokyo")

        assert result == date(2026, 3, 3)
        assert type(result) is date


class TestWorkingHours:

    def test_entry_covers_start_but_not_end(self):
        entry = WorkingHoursEntry(day_of_week=1, start_time=time(9, 0), end_time=time(17, 0))

        assert entry.covers(time(9, 0))
        assert entry.covers(time(16, 59))
        assert not entry.covers(time(17, 0))

    def test_day_off_is_not_usable(self):
        entry = WorkingHoursEntry(day_of_week=1, start_time=time(9, 0), end_time=time(17, 0), is_off=True)

        assert not entry.is_usable()
        assert not entry.covers(time(10, 0))

    def test_inverted_entry_is_not_usable(self):
        entry = WorkingHoursEntry(day_of_week=1, start_time=time(17, 0), end_time=time(9, 0))

        assert not entry.is_usable()

    def test_duplicate_entries_count_as_unspecified(self):
        template = WorkingHoursTemplate(
            staff_id="s1",
            entries=[
                WorkingHoursEntry(1, time(9, 0), time(12, 0)),
                WorkingHoursEntry(1, time(13, 0), time(17, 0)),
                WorkingHoursEntry(2, time(9, 0), time(17, 0)),
            ],
        )

        assert template.entry_for(1) is None
        assert template.entry_for(2) is not None
        assert template.entry_for(3) is None


class TestTimeOffRange:

    def test_inclusive_on_both_ends(self):
        time_off = TimeOffRange("t1", "s1", date(2026, 3, 1), date(2026, 3, 5))

        assert time_off.covers(date(2026, 3, 1))
        assert time_off.covers(date(2026, 3, 5))
        assert not time_off.covers(date(2026, 3, 6))

    def test_inverted_range_covers_dates_between_ends(self):
        time_off = TimeOffRange("t1", "s1", date(2026, 3, 5), date(2026, 3, 1))

        assert time_off.covers(date(2026, 3, 3))


class TestBooking:

    def test_cancelled_and_no_show_free_their_slot(self):
        assert BookingStatus.CONFIRMED.blocks_time
        assert BookingStatus.PENDING.blocks_time
        assert BookingStatus.COMPLETED.blocks_time
        assert not BookingStatus.CANCELLED.blocks_time
        assert not BookingStatus.NO_SHOW.blocks_time

    def test_with_placement_returns_moved_copy(self):
        booking = Booking(
            id="b1",
            staff_id="s1",
            customer_id="c1",
            service_id="svc",
            interval=_interval("2026-03-02 10:00", "2026-03-02 11:00"),
        )
        target = _interval("2026-03-03 14:00", "2026-03-03 15:00")

        moved = booking.with_placement("s2", target)

        assert moved.staff_id == "s2"
        assert moved.interval == target
        assert booking.staff_id == "s1"


class TestPlacementResult:

    def test_conflict_carries_ids(self):
        result = PlacementResult.conflict(["b1", "b2"])

        assert result.outcome is PlacementOutcome.CONFLICT
        assert result.conflicting_bookings == ("b1", "b2")
        assert result.outcome.requires_confirmation

    def test_advisory_outcomes(self):
        assert PlacementOutcome.OUTSIDE_WORKING_HOURS.is_advisory
        assert PlacementOutcome.STAFF_TIME_OFF.is_advisory
        assert not PlacementOutcome.CONFLICT.is_advisory
        assert PlacementResult.clean().is_clean

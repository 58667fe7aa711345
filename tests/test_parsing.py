"""
Tests for booking API record parsing.
"""

from datetime import date, time

import pendulum
import pytest

from bookingengine.adapters.parsing import (
    booking_to_dict,
    parse_booking,
    parse_date,
    parse_instant,
    parse_records,
    parse_time_off,
    parse_working_hours,
)
from bookingengine.domain.models import BookingStatus


def test_parse_instant_normalises_offset():
    instant = parse_instant("2026-03-02T10:00:00+01:00")

    assert instant == pendulum.datetime(2026, 3, 2, 9, 0)
    assert instant.timezone_name == "UTC"


def test_parse_date_accepts_datetime_strings():
    assert parse_date("2026-03-05") == date(2026, 3, 5)
    assert parse_date("2026-03-05T00:00:00.000Z") == date(2026, 3, 5)


def test_parse_booking_defaults():
    booking = parse_booking(
        {
            "id": 7,
            "staffId": "s1",
            "startTime": "2026-03-02T10:00:00Z",
            "endTime": "2026-03-02T11:00:00Z",
        }
    )

    assert booking.id == "7"
    assert booking.status is BookingStatus.CONFIRMED
    assert booking.customer_name is None
    assert booking_to_dict(booking)["startTime"].startswith("2026-03-02T10:00:00")


def test_parse_booking_rejects_inverted_interval():
    with pytest.raises(ValueError):
        parse_booking(
            {
                "id": "b1",
                "staffId": "s1",
                "startTime": "2026-03-02T11:00:00Z",
                "endTime": "2026-03-02T10:00:00Z",
            }
        )


def test_parse_booking_unknown_status():
    with pytest.raises(ValueError):
        parse_booking(
            {
                "id": "b1",
                "staffId": "s1",
                "startTime": "2026-03-02T10:00:00Z",
                "endTime": "2026-03-02T11:00:00Z",
                "status": "ARCHIVED",
            }
        )


def test_parse_working_hours_drops_bad_entries():
    template = parse_working_hours(
        "s1",
        [
            {"dayOfWeek": 1, "startTime": "09:00", "endTime": "17:00"},
            {"dayOfWeek": 9, "startTime": "09:00", "endTime": "17:00"},
            {"dayOfWeek": 2, "startTime": "09:00"},
            {"dayOfWeek": 3, "startTime": "10:00", "endTime": "14:00", "isOff": True},
        ],
    )

    assert template.entry_for(1).start_time == time(9, 0)
    assert template.entry_for(2) is None
    assert template.entry_for(3).is_off


def test_parse_time_off_uses_given_staff():
    time_off = parse_time_off({"startDate": "2026-03-01", "endDate": "2026-03-05"}, staff_id="s1")

    assert time_off.staff_id == "s1"
    assert time_off.id == "s1:2026-03-01"
    assert time_off.covers(date(2026, 3, 3))


def test_parse_records_skips_invalid():
    records = [{"id": "ok"}, {"missing": True}]

    parsed = parse_records(records, lambda record: str(record["id"]).upper(), "thing")

    assert parsed == ["OK"]

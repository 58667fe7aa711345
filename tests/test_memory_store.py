"""
Tests for the in-memory booking store.
"""

import asyncio
import json
from datetime import date

import pendulum
import pytest

from bookingengine.adapters.memory_store import InMemoryBookingStore
from bookingengine.domain.exceptions import BookingSourceError, ConflictError
from bookingengine.domain.models import BookingStatus, TimeInterval

FIXTURE = {
    "staff": [
        {
            "id": "s1",
            "workingHours": [
                {"dayOfWeek": 1, "startTime": "09:00", "endTime": "17:00"},
                {"dayOfWeek": 2, "startTime": "09:00", "endTime": "17:00"},
            ],
            "timeOff": [
                {"id": "t1", "startDate": "2026-03-10", "endDate": "2026-03-12"},
                {"startDate": "not a date", "endDate": "2026-03-12"},
            ],
        }
    ],
    "bookings": [
        {
            "id": "b1", "staffId": "s1", "customerId": "c1", "serviceId": "svc",
            "startTime": "2026-03-02T10:00:00Z", "endTime": "2026-03-02T11:00:00Z",
            "status": "CONFIRMED", "locationId": "loc1",
        },
        {
            "id": "b2", "staffId": "s1", "customerId": "c2", "serviceId": "svc",
            "startTime": "2026-03-02T13:00:00Z", "endTime": "2026-03-02T14:00:00Z",
            "status": "PENDING", "customer": {"name": "Grace"},
        },
        {
            "id": "b3", "staffId": "s1", "customerId": "c3", "serviceId": "svc",
            "startTime": "2026-03-02T15:00:00Z", "endTime": "2026-03-02T16:00:00Z",
            "status": "CANCELLED",
        },
        {"id": "broken", "staffId": "s1"},
    ],
}


def _store() -> InMemoryBookingStore:
    return InMemoryBookingStore.from_dict(FIXTURE)


def _interval(day: int, start_hour: int, end_hour: int) -> TimeInterval:
    return TimeInterval(
        start=pendulum.datetime(2026, 3, day, start_hour, 0),
        end=pendulum.datetime(2026, 3, day, end_hour, 0),
    )


class TestLoading:

    def test_from_dict_skips_invalid_records(self):
        store = _store()

        bookings = asyncio.run(store.get_bookings(start_date=date(2026, 3, 1), end_date=date(2026, 3, 31)))
        time_off = asyncio.run(store.get_time_off("s1", date(2026, 3, 1), date(2026, 3, 31)))

        assert [b.id for b in bookings] == ["b1", "b2", "b3"]
        assert [r.id for r in time_off] == ["t1"]

    def test_customer_name_from_nested_customer(self):
        booking = asyncio.run(_store().get_booking("b2"))

        assert booking.customer_name == "Grace"
        assert booking.status is BookingStatus.PENDING

    def test_from_file_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            InMemoryBookingStore.from_file(tmp_path / "missing.json")

    def test_from_file_invalid_json(self, tmp_path):
        data_file = tmp_path / "bookings.json"
        data_file.write_text("{not json", encoding="utf-8")

        with pytest.raises(BookingSourceError):
            InMemoryBookingStore.from_file(data_file)

    def test_save_and_reload(self, tmp_path):
        data_file = tmp_path / "bookings.json"
        _store().save(data_file)

        reloaded = InMemoryBookingStore.from_file(data_file)
        template = asyncio.run(reloaded.get_working_hours("s1"))

        assert json.loads(data_file.read_text(encoding="utf-8"))["bookings"][0]["id"] == "b1"
        assert template.entry_for(1) is not None
        assert asyncio.run(reloaded.get_booking("b1")).location_id == "loc1"


class TestQueries:

    def test_unknown_booking(self):
        with pytest.raises(BookingSourceError):
            asyncio.run(_store().get_booking("nope"))

    def test_get_bookings_filters(self):
        store = _store()

        by_location = asyncio.run(store.get_bookings(
            start_date=date(2026, 3, 2), end_date=date(2026, 3, 2), location_id="loc1"
        ))
        other_staff = asyncio.run(store.get_bookings(
            start_date=date(2026, 3, 2), end_date=date(2026, 3, 2), staff_ids=["s2"]
        ))
        other_day = asyncio.run(store.get_bookings(start_date=date(2026, 3, 3), end_date=date(2026, 3, 3)))

        assert [b.id for b in by_location] == ["b1"]
        assert other_staff == []
        assert other_day == []

    def test_time_off_outside_window_is_not_returned(self):
        assert asyncio.run(_store().get_time_off("s1", date(2026, 3, 1), date(2026, 3, 9))) == []


class TestCommitReschedule:

    def test_commit_moves_booking(self):
        store = _store()

        moved = asyncio.run(store.commit_reschedule("b1", "s1", _interval(3, 14, 15)))

        assert moved.interval == _interval(3, 14, 15)
        assert asyncio.run(store.get_booking("b1")) == moved

    def test_commit_is_idempotent(self):
        store = _store()

        first = asyncio.run(store.commit_reschedule("b1", "s1", _interval(3, 14, 15)))
        second = asyncio.run(store.commit_reschedule("b1", "s1", _interval(3, 14, 15)))

        assert first == second

    def test_unacknowledged_conflict_is_rejected(self):
        store = _store()

        with pytest.raises(ConflictError) as excinfo:
            asyncio.run(store.commit_reschedule("b1", "s1", _interval(2, 13, 14)))

        assert excinfo.value.conflicting_booking_ids == ("b2",)
        assert asyncio.run(store.get_booking("b1")).interval == _interval(2, 10, 11)

    def test_acknowledged_conflict_is_recorded(self):
        store = _store()

        asyncio.run(store.commit_reschedule(
            "b1", "s1", _interval(2, 13, 14),
            acknowledged_conflicts=["b2"],
            override_reason="Customer asked",
        ))

        assert store.override_log["b1"] == "Customer asked"

    def test_cancelled_booking_does_not_conflict(self):
        store = _store()

        moved = asyncio.run(store.commit_reschedule("b1", "s1", _interval(2, 15, 16)))

        assert moved.start.hour == 15

    def test_unknown_booking(self):
        with pytest.raises(BookingSourceError):
            asyncio.run(_store().commit_reschedule("nope", "s1", _interval(3, 14, 15)))

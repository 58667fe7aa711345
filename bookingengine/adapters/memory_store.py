"""
In-memory booking store backed by an optional JSON fixture file.
"""

import asyncio
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..domain.conflicts import ConflictDetector
from ..domain.exceptions import BookingSourceError, ConflictError
from ..domain.models import (
    Booking,
    PlacementCandidate,
    TimeInterval,
    TimeOffRange,
    WorkingHoursTemplate,
    local_date_of,
)
from .parsing import (
    booking_to_dict,
    parse_booking,
    parse_records,
    parse_time_off,
    parse_working_hours,
    time_off_to_dict,
    working_hours_to_list,
)

logger = logging.getLogger(__name__)


class InMemoryBookingStore:
    """
    Booking source that keeps staff schedules and bookings in memory.

    Commits are serialised with a lock and re-run the conflict check against
    the store's current bookings, so it behaves like the authoritative
    persistence layer. Fixture format:

    {
        "staff": [
            {"id": "s1", "workingHours": [...], "timeOff": [...]}
        ],
        "bookings": [...]
    }
    """

    def __init__(
        self,
        working_hours: Iterable[WorkingHoursTemplate] = (),
        time_off: Iterable[TimeOffRange] = (),
        bookings: Iterable[Booking] = (),
        timezone: str = "UTC",
    ):
        self.timezone = timezone
        self._working_hours: Dict[str, WorkingHoursTemplate] = {
            template.staff_id: template for template in working_hours
        }
        self._time_off: List[TimeOffRange] = list(time_off)
        self._bookings: Dict[str, Booking] = {booking.id: booking for booking in bookings}
        self._detector = ConflictDetector()
        self._lock = asyncio.Lock()
        self.override_log: Dict[str, str] = {}

    @classmethod
    def from_dict(cls, data: Dict[str, Any], timezone: str = "UTC") -> "InMemoryBookingStore":
        templates: List[WorkingHoursTemplate] = []
        time_off: List[TimeOffRange] = []

        for staff in data.get("staff", []):
            staff_id = str(staff["id"])
            if "workingHours" in staff:
                templates.append(parse_working_hours(staff_id, staff["workingHours"]))
            time_off.extend(
                parse_records(
                    staff.get("timeOff", []),
                    lambda record, sid=staff_id: parse_time_off(record, staff_id=sid),
                    "time-off range",
                )
            )

        bookings = parse_records(data.get("bookings", []), parse_booking, "booking")
        return cls(working_hours=templates, time_off=time_off, bookings=bookings, timezone=timezone)

    @classmethod
    def from_file(cls, data_file: Path, timezone: str = "UTC") -> "InMemoryBookingStore":
        """
        Load a store from a JSON fixture.

        Raises:
            FileNotFoundError: If the fixture does not exist
            BookingSourceError: If the fixture is not valid JSON
        """
        if not data_file.exists():
            raise FileNotFoundError(f"Booking data file not found: {data_file}")

        try:
            with open(data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise BookingSourceError(f"Invalid JSON in {data_file}: {exc}") from exc

        store = cls.from_dict(data, timezone=timezone)
        logger.info(
            "Loaded %d booking(s) for %d staff member(s) from %s",
            len(store._bookings), len(store._working_hours), data_file,
        )
        return store

    def to_dict(self) -> Dict[str, Any]:
        staff_ids = sorted(
            set(self._working_hours) | {time_off.staff_id for time_off in self._time_off}
        )
        staff = []
        for staff_id in staff_ids:
            record: Dict[str, Any] = {"id": staff_id}
            template = self._working_hours.get(staff_id)
            if template is not None:
                record["workingHours"] = working_hours_to_list(template)
            record["timeOff"] = [
                time_off_to_dict(r) for r in self._time_off if r.staff_id == staff_id
            ]
            staff.append(record)

        return {
            "staff": staff,
            "bookings": [
                booking_to_dict(b) for b in sorted(self._bookings.values(), key=lambda b: (b.start, b.id))
            ],
        }

    def save(self, data_file: Path) -> None:
        with open(data_file, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info("Saved %d booking(s) to %s", len(self._bookings), data_file)

    async def get_booking(self, booking_id: str) -> Booking:
        return self._get(booking_id)

    def _get(self, booking_id: str) -> Booking:
        try:
            return self._bookings[booking_id]
        except KeyError:
            raise BookingSourceError(f"Unknown booking: {booking_id}") from None

    def add_booking(self, booking: Booking) -> None:
        """Insert or replace a booking without any checks (fixtures and tests)."""
        self._bookings[booking.id] = booking

    async def get_working_hours(self, staff_id: str) -> Optional[WorkingHoursTemplate]:
        return self._working_hours.get(staff_id)

    async def get_time_off(
        self,
        staff_id: str,
        start_date: date,
        end_date: date,
    ) -> List[TimeOffRange]:
        return [
            r for r in self._time_off
            if r.staff_id == staff_id
            and min(r.start_date, r.end_date) <= end_date
            and max(r.start_date, r.end_date) >= start_date
        ]

    async def get_bookings(
        self,
        *,
        start_date: date,
        end_date: date,
        staff_ids: Optional[Sequence[str]] = None,
        location_id: Optional[str] = None,
    ) -> List[Booking]:
        selected = set(staff_ids) if staff_ids is not None else None
        matches = [
            booking for booking in self._bookings.values()
            if start_date <= local_date_of(booking.start, self.timezone) <= end_date
            and (selected is None or booking.staff_id in selected)
            and (location_id is None or booking.location_id == location_id)
        ]
        return sorted(matches, key=lambda b: (b.start, b.id))

    async def commit_reschedule(
        self,
        booking_id: str,
        new_staff_id: str,
        new_interval: TimeInterval,
        *,
        acknowledged_conflicts: Sequence[str] = (),
        override_reason: Optional[str] = None,
    ) -> Booking:
        """
        Move a booking, re-checking conflicts against the current bookings.

        Re-committing a placement that is already stored succeeds unchanged.

        Raises:
            BookingSourceError: If the booking does not exist
            ConflictError: If a conflict exists that was not acknowledged
        """
        async with self._lock:
            current = self._get(booking_id)
            candidate = PlacementCandidate(
                staff_id=new_staff_id,
                interval=new_interval,
                exclude_booking_id=booking_id,
            )
            conflicts = self._detector.find_conflicts(candidate, self._bookings.values())
            acknowledged = set(acknowledged_conflicts)
            unseen = [conflict for conflict in conflicts if conflict not in acknowledged]
            if unseen:
                logger.warning(
                    "Rejecting move of %s: overlaps %s", booking_id, ", ".join(unseen)
                )
                raise ConflictError(booking_id, unseen)

            updated = current.with_placement(new_staff_id, new_interval)
            self._bookings[booking_id] = updated
            if conflicts:
                self.override_log[booking_id] = override_reason or "override"
                logger.info(
                    "Booking %s placed over %s: %s",
                    booking_id, ", ".join(conflicts), self.override_log[booking_id],
                )
            return updated

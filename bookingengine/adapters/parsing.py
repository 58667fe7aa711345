"""
Conversion between booking API payloads (camelCase JSON) and domain models.
"""

import logging
from datetime import date, time
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

import pendulum
from pendulum import DateTime

from ..domain.models import (
    Booking,
    BookingStatus,
    TimeInterval,
    TimeOffRange,
    WorkingHoursEntry,
    WorkingHoursTemplate,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def parse_instant(value: str) -> DateTime:
    """
    Parse an ISO 8601 string to a UTC pendulum DateTime.

    Strings without an offset are read as UTC.
    """
    parsed = pendulum.parse(value, tz="UTC")
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Could not parse datetime: {value}")
    return parsed.in_timezone("UTC")


def parse_date(value: str) -> date:
    """Parse ``YYYY-MM-DD`` or an ISO datetime (its calendar date is used)."""
    parsed = pendulum.parse(value, tz="UTC")
    if isinstance(parsed, DateTime):
        return date(parsed.year, parsed.month, parsed.day)
    if isinstance(parsed, date):
        return date(parsed.year, parsed.month, parsed.day)
    raise ValueError(f"Could not parse date: {value}")


def parse_local_time(value: str) -> time:
    """Parse an ``HH:MM`` wall-clock time."""
    hours, minutes = value.strip().split(":")[:2]
    return time(hour=int(hours), minute=int(minutes))


def format_local_time(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def parse_booking(data: Dict[str, Any]) -> Booking:
    """
    Build a Booking from an API record.

    Example:
    {
        "id": "b1", "staffId": "s1", "customerId": "c1", "serviceId": "svc",
        "startTime": "2026-03-02T10:00:00Z", "endTime": "2026-03-02T11:00:00Z",
        "status": "CONFIRMED", "customer": {"name": "Ada"}
    }
    """
    customer = data.get("customer") or {}
    return Booking(
        id=str(data["id"]),
        staff_id=str(data["staffId"]),
        customer_id=str(data.get("customerId") or customer.get("id") or ""),
        service_id=str(data.get("serviceId") or ""),
        interval=TimeInterval(
            start=parse_instant(data["startTime"]),
            end=parse_instant(data["endTime"]),
        ),
        status=BookingStatus(data.get("status", BookingStatus.CONFIRMED.value)),
        location_id=data.get("locationId"),
        customer_name=data.get("customerName") or customer.get("name"),
    )


def booking_to_dict(booking: Booking) -> Dict[str, Any]:
    return {
        "id": booking.id,
        "staffId": booking.staff_id,
        "customerId": booking.customer_id,
        "customerName": booking.customer_name,
        "serviceId": booking.service_id,
        "locationId": booking.location_id,
        "startTime": booking.start.to_iso8601_string(),
        "endTime": booking.end.to_iso8601_string(),
        "status": booking.status.value,
    }


def parse_working_hours_entry(data: Dict[str, Any]) -> WorkingHoursEntry:
    day = int(data["dayOfWeek"])
    if not 0 <= day <= 6:
        raise ValueError(f"dayOfWeek must be between 0 and 6, got {day}")
    return WorkingHoursEntry(
        day_of_week=day,
        start_time=parse_local_time(data["startTime"]),
        end_time=parse_local_time(data["endTime"]),
        is_off=bool(data.get("isOff", False)),
    )


def parse_working_hours(staff_id: str, entries: Iterable[Dict[str, Any]]) -> WorkingHoursTemplate:
    """Build a template from API entries; malformed entries are dropped, leaving the day unspecified."""
    return WorkingHoursTemplate(
        staff_id=staff_id,
        entries=tuple(parse_records(entries, parse_working_hours_entry, "working hours entry")),
    )


def working_hours_to_list(template: WorkingHoursTemplate) -> List[Dict[str, Any]]:
    return [
        {
            "dayOfWeek": entry.day_of_week,
            "startTime": format_local_time(entry.start_time),
            "endTime": format_local_time(entry.end_time),
            "isOff": entry.is_off,
        }
        for entry in sorted(template.entries, key=lambda e: e.day_of_week)
    ]


def parse_time_off(data: Dict[str, Any], staff_id: Optional[str] = None) -> TimeOffRange:
    return TimeOffRange(
        id=str(data.get("id") or f"{staff_id or data['staffId']}:{data['startDate']}"),
        staff_id=str(data.get("staffId") or staff_id),
        start_date=parse_date(data["startDate"]),
        end_date=parse_date(data["endDate"]),
        reason=data.get("reason"),
    )


def time_off_to_dict(time_off: TimeOffRange) -> Dict[str, Any]:
    return {
        "id": time_off.id,
        "staffId": time_off.staff_id,
        "startDate": time_off.start_date.isoformat(),
        "endDate": time_off.end_date.isoformat(),
        "reason": time_off.reason,
    }


def parse_records(
    records: Iterable[Dict[str, Any]],
    parser: Callable[[Dict[str, Any]], T],
    kind: str,
) -> List[T]:
    """
    Parse a list of records, skipping invalid ones with a warning.
    """
    parsed: List[T] = []
    for record in records:
        try:
            parsed.append(parser(record))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping invalid %s %r: %s", kind, record, exc)
    return parsed

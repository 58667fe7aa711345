"""
HTTP client for the booking API.
"""

import asyncio
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence

import pendulum
import requests

from ..domain.exceptions import BookingSourceError, ConflictError
from ..domain.models import (
    Booking,
    TimeInterval,
    TimeOffRange,
    WorkingHoursTemplate,
    local_date_of,
)
from .parsing import parse_booking, parse_records, parse_time_off, parse_working_hours

logger = logging.getLogger(__name__)


class RestBookingSource:
    """
    Booking source backed by the booking REST API.

    Endpoints:
    - GET   /staff/{id}/working-hours
    - GET   /staff/{id}/time-off
    - GET   /bookings/calendar?dateFrom=...&dateTo=...
    - PATCH /bookings/{id}

    Calls are blocking ``requests`` calls run in a worker thread.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout_seconds: float = 30,
        timezone: str = "UTC",
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the API client.

        Args:
            base_url: API root, e.g. https://api.example.com/api
            token: Optional bearer token
            timeout_seconds: Per-request timeout
            timezone: Business time zone used to turn dates into query bounds
            session: Optional pre-configured requests session
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.timezone = timezone
        self.session = session or requests.Session()
        self.headers = {"Content-Type": "application/json"}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    async def get_booking(self, booking_id: str) -> Booking:
        data = await asyncio.to_thread(self._request, "GET", f"/bookings/{booking_id}")
        try:
            return parse_booking(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise BookingSourceError(f"Unexpected response for booking {booking_id}: {exc}") from exc

    async def get_working_hours(self, staff_id: str) -> Optional[WorkingHoursTemplate]:
        data = await asyncio.to_thread(self._request, "GET", f"/staff/{staff_id}/working-hours")
        if not data:
            return None
        return parse_working_hours(staff_id, data)

    async def get_time_off(
        self,
        staff_id: str,
        start_date: date,
        end_date: date,
    ) -> List[TimeOffRange]:
        data = await asyncio.to_thread(self._request, "GET", f"/staff/{staff_id}/time-off")
        ranges = parse_records(
            data or [],
            lambda record: parse_time_off(record, staff_id=staff_id),
            "time-off range",
        )
        return [
            r for r in ranges
            if min(r.start_date, r.end_date) <= end_date
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
        params: Dict[str, Any] = {
            "dateFrom": self._day_start(start_date),
            "dateTo": self._day_start(end_date + timedelta(days=1)),
        }
        if staff_ids:
            params["staffIds"] = ",".join(staff_ids)
        if location_id:
            params["locationId"] = location_id

        data = await asyncio.to_thread(self._request, "GET", "/bookings/calendar", params=params)
        bookings = parse_records(data or [], parse_booking, "booking")

        # the API filter is coarse; narrow to the exact selection
        selected = set(staff_ids) if staff_ids else None
        return [
            booking for booking in bookings
            if start_date <= local_date_of(booking.start, self.timezone) <= end_date
            and (selected is None or booking.staff_id in selected)
            and (location_id is None or booking.location_id == location_id)
        ]

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
        PATCH the booking with its new staff member and interval.

        The server re-validates against its latest bookings. A 409, or a 400
        that reports a conflict, is raised as ConflictError.
        """
        payload: Dict[str, Any] = {
            "staffId": new_staff_id,
            "startTime": new_interval.start.to_iso8601_string(),
            "endTime": new_interval.end.to_iso8601_string(),
        }
        if acknowledged_conflicts:
            payload["forceBook"] = True
            payload["forceBookReason"] = override_reason or "override"
            payload["acknowledgedConflicts"] = list(acknowledged_conflicts)

        data = await asyncio.to_thread(
            self._request, "PATCH", f"/bookings/{booking_id}", json=payload, booking_id=booking_id
        )
        try:
            return parse_booking(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise BookingSourceError(f"Unexpected response for booking {booking_id}: {exc}") from exc

    def _day_start(self, day: date) -> str:
        return pendulum.datetime(day.year, day.month, day.day, tz=self.timezone).in_timezone("UTC").to_iso8601_string()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        booking_id: Optional[str] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug("%s %s params=%s", method, url, params)

        try:
            response = self.session.request(
                method,
                url,
                headers=self.headers,
                params=params,
                json=json,
                timeout=self.timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            raise BookingSourceError(f"Request to {url} failed: {e}") from e

        if booking_id is not None and self._is_conflict(response):
            raise ConflictError(booking_id, self._conflicting_ids(response))

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise BookingSourceError(f"Booking API returned an error for {url}: {e}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise BookingSourceError(f"Booking API returned invalid JSON for {url}") from e

    @staticmethod
    def _is_conflict(response: requests.Response) -> bool:
        if response.status_code == 409:
            return True
        if response.status_code == 400:
            return "conflict" in response.text.lower()
        return False

    @staticmethod
    def _conflicting_ids(response: requests.Response) -> List[str]:
        try:
            body = response.json()
        except ValueError:
            return []
        if isinstance(body, dict):
            return [str(i) for i in body.get("conflictingBookingIds", [])]
        return []

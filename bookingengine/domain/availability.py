"""
Working-hours and time-off resolution for staff members.

Pure functions of the supplied snapshots: nothing here fetches data or
keeps state between calls.
"""

from datetime import date, datetime
from typing import Dict, Iterable, List, Mapping, Optional

import pendulum

from .models import (
    TimeInterval,
    TimeOffRange,
    WorkingHoursEntry,
    WorkingHoursTemplate,
    day_of_week,
    local_date_of,
    to_utc,
)


class AvailabilityResolver:
    """
    Answers "is this staff member working at this instant / on this date".

    Rules:
    1. Instants are mapped to the business time zone before the weekday lookup
    2. A missing weekday entry or ``is_off`` means unavailable
    3. Time-off blocks the whole date and wins over working hours
    """

    def __init__(
        self,
        working_hours: Mapping[str, WorkingHoursTemplate],
        time_off: Iterable[TimeOffRange] = (),
        timezone: str = "UTC",
    ):
        self.working_hours = dict(working_hours)
        self.timezone = timezone
        self._time_off: Dict[str, List[TimeOffRange]] = {}
        for time_off_range in time_off:
            self._time_off.setdefault(time_off_range.staff_id, []).append(time_off_range)

    @classmethod
    def for_templates(
        cls,
        templates: Iterable[WorkingHoursTemplate],
        time_off: Iterable[TimeOffRange] = (),
        timezone: str = "UTC",
    ) -> "AvailabilityResolver":
        """Build a resolver from a list of templates keyed by their staff id."""
        return cls(
            working_hours={template.staff_id: template for template in templates},
            time_off=time_off,
            timezone=timezone,
        )

    def local_date(self, instant: datetime) -> date:
        """Calendar date of ``instant`` in the business time zone."""
        return local_date_of(instant, self.timezone)

    def entry_for(self, staff_id: str, day: date) -> Optional[WorkingHoursEntry]:
        """Working-hours entry that applies to ``day``, or None if unspecified."""
        template = self.working_hours.get(staff_id)
        if template is None:
            return None
        return template.entry_for(day_of_week(day))

    def is_within_working_hours(self, staff_id: str, instant: datetime) -> bool:
        """
        Check if ``instant`` falls inside the staff member's working hours.

        Time-off is not considered here; see ``is_available``.
        """
        local = to_utc(instant).in_timezone(self.timezone)
        entry = self.entry_for(staff_id, local.date())
        if entry is None:
            return False
        return entry.covers(local.time())

    def is_on_time_off(self, staff_id: str, day: date) -> bool:
        """Check if any time-off range of the staff member covers ``day``."""
        return any(
            time_off_range.covers(day)
            for time_off_range in self._time_off.get(staff_id, [])
        )

    def is_available(self, staff_id: str, instant: datetime) -> bool:
        """Working at ``instant`` and not on time-off that day."""
        if self.is_on_time_off(staff_id, self.local_date(instant)):
            return False
        return self.is_within_working_hours(staff_id, instant)

    def working_block(self, staff_id: str, day: date) -> Optional[TimeInterval]:
        """
        Get the working hours range for a specific local day as UTC instants.
        Returns None if the staff member does not work that day.
        """
        entry = self.entry_for(staff_id, day)
        if entry is None or not entry.is_usable():
            return None

        start = pendulum.datetime(
            day.year, day.month, day.day,
            entry.start_time.hour, entry.start_time.minute,
            tz=self.timezone,
        )
        end = pendulum.datetime(
            day.year, day.month, day.day,
            entry.end_time.hour, entry.end_time.minute,
            tz=self.timezone,
        )

        return TimeInterval(start=start, end=end)

    def fits_working_hours(self, staff_id: str, interval: TimeInterval) -> bool:
        """
        Check both boundaries of ``interval`` against the working hours of its start day.

        The start must be inside ``[open, close)`` and the end may equal the
        closing time, since the interval itself excludes its end.
        """
        block = self.working_block(staff_id, self.local_date(interval.start))
        if block is None:
            return False
        return block.contains_interval(interval)

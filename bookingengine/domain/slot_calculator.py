"""
Core business logic for calculating bookable time slots.

Pure domain logic without any external dependencies (no API calls, no
database, no I/O).
"""

from collections import Counter
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence

from .availability import AvailabilityResolver
from .conflicts import ConflictDetector
from .models import AvailableSlot, Booking, PlacementCandidate, TimeInterval, to_utc


class SlotCalculator:
    """
    Calculates free windows and bookable slots for staff members on a day.

    Algorithm:
    1. Get the staff member's working block for the local day
    2. Skip the day entirely on time-off
    3. Walk the block in fixed increments, marking slots that collide
       with active bookings as unavailable
    4. Drop slots that already started and sort by time, then staff name
    """

    def __init__(
        self,
        resolver: AvailabilityResolver,
        slot_increment_minutes: int = 30,
        conflict_detector: Optional[ConflictDetector] = None,
    ):
        if slot_increment_minutes <= 0:
            raise ValueError("slot_increment_minutes must be greater than zero")
        self.resolver = resolver
        self.slot_increment_minutes = slot_increment_minutes
        self.conflict_detector = conflict_detector or ConflictDetector()

    def free_windows(
        self,
        staff_id: str,
        day: date,
        bookings: Iterable[Booking],
    ) -> List[TimeInterval]:
        """
        Free time inside the working block of ``day`` for one staff member.

        This is a key algorithm:
        - Start with the working block (the "universe" of possible time)
        - Subtract all active bookings
        - What remains is free time
        """
        block = self._bookable_block(staff_id, day)
        if block is None:
            return []

        busy = [
            booking.interval for booking in bookings
            if booking.staff_id == staff_id
            and booking.blocks_time
            and block.overlaps(booking.interval)
        ]

        if not busy:
            return [block]

        return self._subtract_busy_from_block(block, self._merge_adjacent_ranges(busy))

    def find_available_slots(
        self,
        staff_ids: Sequence[str],
        day: date,
        duration_minutes: int,
        bookings: Iterable[Booking],
        *,
        now: Optional[datetime] = None,
        staff_names: Optional[Dict[str, str]] = None,
    ) -> List[AvailableSlot]:
        """
        Generate candidate slots for every staff member working on ``day``.

        Args:
            staff_ids: Staff members to consider
            day: Local calendar date
            duration_minutes: Length of the service being booked
            bookings: Existing bookings (any status)
            now: Slots starting before this instant are skipped
            staff_names: Optional display names keyed by staff id

        Returns:
            List of AvailableSlot objects, taken slots included with available=False
        """
        if duration_minutes <= 0:
            raise ValueError("duration_minutes must be greater than zero")

        names = staff_names or {}
        cutoff = to_utc(now) if now is not None else None
        booking_list = list(bookings)
        slots: List[AvailableSlot] = []

        for staff_id in staff_ids:
            block = self._bookable_block(staff_id, day)
            if block is None:
                continue

            current = block.start
            while current.add(minutes=duration_minutes) <= block.end:
                interval = TimeInterval.starting_at(current, duration_minutes)
                current = current.add(minutes=self.slot_increment_minutes)

                if cutoff is not None and interval.start < cutoff:
                    continue

                conflicts = self.conflict_detector.find_conflicts(
                    PlacementCandidate(staff_id=staff_id, interval=interval),
                    booking_list,
                )
                slots.append(
                    AvailableSlot(
                        staff_id=staff_id,
                        interval=interval,
                        available=not conflicts,
                        staff_name=names.get(staff_id, staff_id),
                    )
                )

        slots.sort(key=lambda slot: (slot.interval.start, slot.staff_name))
        return slots

    def recommend_slots(
        self,
        staff_ids: Sequence[str],
        day: date,
        duration_minutes: int,
        bookings: Iterable[Booking],
        *,
        now: Optional[datetime] = None,
        staff_names: Optional[Dict[str, str]] = None,
        exclude_booking_id: Optional[str] = None,
        limit: int = 5,
    ) -> List[AvailableSlot]:
        """
        Pick the best available slots, preferring mid-day and lightly loaded staff.

        Score (lower is better): distance from 12:00 in hours * 2 + staff load * 3,
        where staff load is the number of active bookings that day.
        """
        booking_list = list(bookings)
        available = [
            slot for slot in self.find_available_slots(
                staff_ids,
                day,
                duration_minutes,
                booking_list,
                now=now,
                staff_names=staff_names,
            )
            if slot.available
        ]
        if not available:
            return []

        load = Counter(
            booking.staff_id for booking in booking_list
            if booking.blocks_time
            and booking.id != exclude_booking_id
            and self.resolver.local_date(booking.start) == day
        )

        def score(slot: AvailableSlot) -> float:
            local = slot.interval.start.in_timezone(self.resolver.timezone)
            hour = local.hour + local.minute / 60
            return abs(hour - 12) * 2 + load[slot.staff_id] * 3

        ranked = sorted(
            available,
            key=lambda slot: (score(slot), slot.interval.start, slot.staff_name),
        )
        return ranked[:limit]

    def _bookable_block(self, staff_id: str, day: date) -> Optional[TimeInterval]:
        if self.resolver.is_on_time_off(staff_id, day):
            return None
        return self.resolver.working_block(staff_id, day)

    def _subtract_busy_from_block(
        self,
        working_block: TimeInterval,
        busy_ranges: List[TimeInterval]
    ) -> List[TimeInterval]:
        """
        Subtract busy times from a working block, yielding free time ranges.

        Example:
        Working: 09:00 - 17:00
        Busy: [10:00-11:00, 14:00-15:00]
        Result: [09:00-10:00, 11:00-14:00, 15:00-17:00]
        """
        free_ranges: List[TimeInterval] = []
        current_start = working_block.start

        for busy in sorted(busy_ranges, key=lambda r: r.start):
            # Clip busy range to working block
            clipped_busy_start = max(busy.start, working_block.start)
            clipped_busy_end = min(busy.end, working_block.end)

            if current_start < clipped_busy_start:
                free_ranges.append(
                    TimeInterval(start=current_start, end=clipped_busy_start)
                )

            current_start = max(current_start, clipped_busy_end)

        if current_start < working_block.end:
            free_ranges.append(
                TimeInterval(start=current_start, end=working_block.end)
            )

        return free_ranges

    def _merge_adjacent_ranges(
        self,
        ranges: List[TimeInterval]
    ) -> List[TimeInterval]:
        """
        Merge overlapping or adjacent time ranges.

        Example: [09:00-10:00, 10:00-11:00] -> [09:00-11:00]
        """
        if not ranges:
            return []

        sorted_ranges = sorted(ranges, key=lambda r: r.start)
        merged: List[TimeInterval] = [sorted_ranges[0]]

        for current in sorted_ranges[1:]:
            last = merged[-1]

            if current.start <= last.end:
                merged[-1] = TimeInterval(
                    start=last.start,
                    end=max(last.end, current.end)
                )
            else:
                merged.append(current)

        return merged

"""
Overlap detection between a proposed placement and existing bookings.
"""

from typing import Iterable, List

from .models import Booking, PlacementCandidate


class ConflictDetector:
    """
    Finds every active booking of the same staff member that a candidate overlaps.

    Bookings are skipped when they:
    - belong to another staff member
    - are the booking being moved (``exclude_booking_id``)
    - are cancelled or no-show
    """

    def conflicting_bookings(
        self,
        candidate: PlacementCandidate,
        existing_bookings: Iterable[Booking],
    ) -> List[Booking]:
        """Return all overlapping bookings, ordered by start time then id."""
        matches = [
            booking for booking in existing_bookings
            if booking.staff_id == candidate.staff_id
            and booking.id != candidate.exclude_booking_id
            and booking.blocks_time
            and candidate.interval.overlaps(booking.interval)
        ]
        return sorted(matches, key=lambda b: (b.start, b.id))

    def find_conflicts(
        self,
        candidate: PlacementCandidate,
        existing_bookings: Iterable[Booking],
    ) -> List[str]:
        """Return the ids of all bookings the candidate would collide with."""
        return [
            booking.id
            for booking in self.conflicting_bookings(candidate, existing_bookings)
        ]


def find_conflicts(
    candidate: PlacementCandidate,
    existing_bookings: Iterable[Booking],
) -> List[str]:
    """Module-level shortcut for ``ConflictDetector().find_conflicts``."""
    return ConflictDetector().find_conflicts(candidate, existing_bookings)

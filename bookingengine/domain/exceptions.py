"""
Domain-specific exception hierarchy for the booking engine.
"""

from typing import Sequence


class BookingEngineError(Exception):
    """Base class for all application-level errors."""


class InvalidInterval(BookingEngineError, ValueError):
    """Raised when an interval is empty, inverted or built from unusable instants."""


class ConflictError(BookingEngineError):
    """
    Raised by the persistence side when a commit would overlap another booking.

    The client-side plan is advisory only; this is the authoritative answer.
    """

    def __init__(self, booking_id: str, conflicting_booking_ids: Sequence[str] = ()):
        self.booking_id = booking_id
        self.conflicting_booking_ids = tuple(conflicting_booking_ids)
        detail = ", ".join(self.conflicting_booking_ids) or "unknown booking"
        super().__init__(
            f"Booking {booking_id} cannot be moved: slot is taken by {detail}"
        )


class InvalidTransition(BookingEngineError):
    """Raised when a reschedule event is not allowed in the current state."""


class BookingSourceError(BookingEngineError):
    """Raised when booking data cannot be fetched, parsed or written."""

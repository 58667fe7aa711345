"""
Reschedule workflow as an explicit state machine.

States: IDLE -> DRAGGING -> DROP_PENDING -> CONFIRMING -> COMMITTED | CANCELLED,
and back to IDLE once the surrounding view has reloaded its bookings.

``transition`` is a pure function of ``(state, event)``. Planning and
persistence happen outside it; their results are fed back in as events.
"""

import math
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Optional, Tuple, Union

import pendulum

from .exceptions import InvalidTransition
from .models import Booking, PlacementCandidate, PlacementResult


class RescheduleStage(str, Enum):
    IDLE = "IDLE"
    DRAGGING = "DRAGGING"
    DROP_PENDING = "DROP_PENDING"
    CONFIRMING = "CONFIRMING"
    COMMITTED = "COMMITTED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class DropTarget:
    """
    Grid cell a booking card was released over.
    """
    staff_id: str
    day: date
    hour: int
    offset: float = 0  # pixels from the top of the hour cell


@dataclass(frozen=True)
class RescheduleState:
    stage: RescheduleStage = RescheduleStage.IDLE
    booking: Optional[Booking] = None
    candidate: Optional[PlacementCandidate] = None
    result: Optional[PlacementResult] = None
    conflicts: Tuple[Booking, ...] = ()
    submitting: bool = False
    committed_booking: Optional[Booking] = None
    error: Optional[str] = None

    @property
    def requires_override(self) -> bool:
        """True when confirming means knowingly booking over other bookings."""
        if self.conflicts:
            return True
        return self.result is not None and self.result.outcome.requires_confirmation

    def conflict_summary(self) -> str:
        """Human-readable list of the bookings a confirmation would collide with."""
        return ", ".join(
            f"{booking.customer_name or booking.customer_id} ({booking.id})"
            for booking in self.conflicts
        )


@dataclass(frozen=True)
class BeginDrag:
    booking: Booking


@dataclass(frozen=True)
class Drop:
    candidate: PlacementCandidate


@dataclass(frozen=True)
class PickSlot:
    """Manual slot selection; skips the drag gesture."""
    booking: Booking
    candidate: PlacementCandidate


@dataclass(frozen=True)
class PlacementEvaluated:
    result: PlacementResult
    conflicts: Tuple[Booking, ...] = ()


@dataclass(frozen=True)
class PlanningFailed:
    """The planning snapshot could not be fetched."""
    message: str


@dataclass(frozen=True)
class Confirm:
    pass


@dataclass(frozen=True)
class CommitSucceeded:
    booking: Booking


@dataclass(frozen=True)
class CommitRejected:
    message: str


@dataclass(frozen=True)
class Cancel:
    pass


@dataclass(frozen=True)
class Reset:
    """The view reloaded its bookings."""


RescheduleEvent = Union[
    BeginDrag, Drop, PickSlot, PlacementEvaluated, PlanningFailed, Confirm,
    CommitSucceeded, CommitRejected, Cancel, Reset,
]

IDLE_STATE = RescheduleState()


def snap_minute(offset: float, slot_height: float = 60, snap_minutes: int = 30) -> int:
    """
    Snap a vertical offset inside an hour cell to a minute boundary.

    Rounds to the nearest boundary, with exact halves rounding down, and
    never leaves the hour cell: 15 -> 0, 20 -> 30, 50 -> 30 at a 30 minute snap.
    """
    if slot_height <= 0:
        raise ValueError("slot_height must be greater than zero")
    if snap_minutes <= 0 or 60 % snap_minutes:
        raise ValueError("snap_minutes must be a positive divisor of 60")

    minute = max(0.0, offset) / slot_height * 60
    snapped = math.ceil(minute / snap_minutes - 0.5) * snap_minutes
    return int(min(max(snapped, 0), 60 - snap_minutes))


def candidate_for_drop(
    booking: Booking,
    target: DropTarget,
    *,
    timezone: str = "UTC",
    slot_height: float = 60,
    snap_minutes: int = 30,
) -> PlacementCandidate:
    """
    Build the candidate for a dropped booking, keeping its existing duration.
    """
    minute = snap_minute(target.offset, slot_height=slot_height, snap_minutes=snap_minutes)
    start = pendulum.datetime(
        target.day.year, target.day.month, target.day.day,
        target.hour, minute,
        tz=timezone,
    )
    return PlacementCandidate(
        staff_id=target.staff_id,
        interval=booking.interval.shifted_to(start),
        exclude_booking_id=booking.id,
        location_id=booking.location_id,
    )


def candidate_for_slot(booking: Booking, staff_id: str, start: datetime) -> PlacementCandidate:
    """Candidate for a manually picked start time, keeping the booking's duration."""
    return PlacementCandidate(
        staff_id=staff_id,
        interval=booking.interval.shifted_to(start),
        exclude_booking_id=booking.id,
        location_id=booking.location_id,
    )


def transition(state: RescheduleState, event: RescheduleEvent) -> RescheduleState:
    """
    Apply ``event`` to ``state`` and return the next state.

    Raises:
        InvalidTransition: If the event is not allowed in the current stage
    """
    stage = state.stage

    if isinstance(event, BeginDrag):
        _require(state, event, RescheduleStage.IDLE)
        return RescheduleState(stage=RescheduleStage.DRAGGING, booking=event.booking)

    if isinstance(event, Drop):
        _require(state, event, RescheduleStage.DRAGGING)
        return replace(state, stage=RescheduleStage.DROP_PENDING, candidate=event.candidate)

    if isinstance(event, PickSlot):
        _require(state, event, RescheduleStage.IDLE)
        return RescheduleState(
            stage=RescheduleStage.DROP_PENDING,
            booking=event.booking,
            candidate=event.candidate,
        )

    if isinstance(event, PlacementEvaluated):
        # every outcome is shown to the user before anything is written
        _require(state, event, RescheduleStage.DROP_PENDING)
        return replace(
            state,
            stage=RescheduleStage.CONFIRMING,
            result=event.result,
            conflicts=tuple(event.conflicts),
        )

    if isinstance(event, PlanningFailed):
        _require(state, event, RescheduleStage.DROP_PENDING)
        return RescheduleState(stage=RescheduleStage.IDLE, error=event.message)

    if isinstance(event, Confirm):
        _require(state, event, RescheduleStage.CONFIRMING)
        if state.submitting:
            raise InvalidTransition("A commit for this reschedule is already in flight")
        return replace(state, submitting=True)

    if isinstance(event, CommitSucceeded):
        _require(state, event, RescheduleStage.CONFIRMING)
        if not state.submitting:
            raise InvalidTransition("No commit is in flight")
        return replace(
            state,
            stage=RescheduleStage.COMMITTED,
            submitting=False,
            committed_booking=event.booking,
        )

    if isinstance(event, CommitRejected):
        _require(state, event, RescheduleStage.CONFIRMING)
        if not state.submitting:
            raise InvalidTransition("No commit is in flight")
        return RescheduleState(stage=RescheduleStage.IDLE, error=event.message)

    if isinstance(event, Cancel):
        _require(
            state,
            event,
            RescheduleStage.DRAGGING,
            RescheduleStage.DROP_PENDING,
            RescheduleStage.CONFIRMING,
        )
        if state.submitting:
            raise InvalidTransition("A commit in flight cannot be cancelled")
        return RescheduleState(stage=RescheduleStage.CANCELLED, booking=state.booking)

    if isinstance(event, Reset):
        if state.submitting:
            raise InvalidTransition("Cannot reset while a commit is in flight")
        return IDLE_STATE

    raise InvalidTransition(f"Unknown event {event!r} in stage {stage.value}")


def _require(state: RescheduleState, event: RescheduleEvent, *allowed: RescheduleStage) -> None:
    if state.stage not in allowed:
        raise InvalidTransition(
            f"{type(event).__name__} is not allowed in stage {state.stage.value}"
        )

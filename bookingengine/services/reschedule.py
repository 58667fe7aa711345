"""
Drives the reschedule state machine against the scheduling service.

Each user gesture is turned into an event for ``transition``; the only
awaited side effects are the planning fetch on drop and the commit on confirm.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Tuple

from ..domain.exceptions import BookingSourceError, ConflictError, InvalidTransition
from ..domain.models import Booking
from ..domain.reschedule import (
    IDLE_STATE,
    BeginDrag,
    Cancel,
    CommitRejected,
    CommitSucceeded,
    Confirm,
    Drop,
    DropTarget,
    PickSlot,
    PlacementEvaluated,
    PlanningFailed,
    RescheduleEvent,
    RescheduleStage,
    RescheduleState,
    Reset,
    candidate_for_drop,
    candidate_for_slot,
    transition,
)
from .scheduling import SchedulingService

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "This slot was just taken, please pick another time."
ALREADY_BOOKED_MESSAGE = "This time overlaps existing bookings, please pick another time."
DEFAULT_OVERRIDE_REASON = "Confirmed despite conflict"


class RescheduleWorkflow:
    """
    Interactive reschedule protocol for a single booking card.

    Every drop ends in CONFIRMING, even a clean one, so nothing is written
    without an explicit ``confirm``.
    """

    def __init__(
        self,
        service: SchedulingService,
        *,
        slot_height: float = 60,
        snap_minutes: int = 30,
    ) -> None:
        self._service = service
        self.slot_height = slot_height
        self.snap_minutes = snap_minutes
        self.state: RescheduleState = IDLE_STATE

    def _apply(self, event: RescheduleEvent) -> RescheduleState:
        previous = self.state.stage
        self.state = transition(self.state, event)
        logger.debug("Reschedule %s -> %s on %s", previous.value, self.state.stage.value, type(event).__name__)
        return self.state

    def begin_drag(self, booking: Booking) -> RescheduleState:
        return self._apply(BeginDrag(booking))

    async def drop(self, target: DropTarget) -> RescheduleState:
        """
        Release the dragged card over a grid cell and plan the move.
        """
        if self.state.stage is not RescheduleStage.DRAGGING:
            raise InvalidTransition(f"Drop is not allowed in stage {self.state.stage.value}")
        booking = self.state.booking

        candidate = candidate_for_drop(
            booking,
            target,
            timezone=self._service.timezone,
            slot_height=self.slot_height,
            snap_minutes=self.snap_minutes,
        )
        self._apply(Drop(candidate))
        return await self._evaluate()

    async def pick_slot(self, booking: Booking, staff_id: str, start: datetime) -> RescheduleState:
        """Manual alternative to drag and drop."""
        self._apply(PickSlot(booking, candidate_for_slot(booking, staff_id, start)))
        return await self._evaluate()

    async def _evaluate(self) -> RescheduleState:
        candidate = self.state.candidate
        try:
            result, conflicts = await self._service.plan_with_conflicts(candidate)
        except BookingSourceError as exc:
            logger.error("Could not plan reschedule of %s: %s", candidate.exclude_booking_id, exc)
            return self._apply(PlanningFailed(f"Could not check availability: {exc}"))
        return self._apply(PlacementEvaluated(result=result, conflicts=tuple(conflicts)))

    async def confirm(self, override_reason: Optional[str] = None) -> RescheduleState:
        """
        Commit the proposed move.

        A conflicting placement is committed with an override reason; a race
        detected by persistence returns the workflow to IDLE with an error.
        """
        self._apply(Confirm())
        booking = self.state.booking
        candidate = self.state.candidate

        shown = tuple(b.id for b in self.state.conflicts)
        acknowledged = tuple(dict.fromkeys(self.state.result.conflicting_bookings + shown))
        reason = override_reason
        if acknowledged and not reason:
            reason = DEFAULT_OVERRIDE_REASON

        logger.info(
            "Committing reschedule of %s to staff %s at %s",
            booking.id, candidate.staff_id, candidate.interval,
        )
        try:
            updated = await self._service.source.commit_reschedule(
                booking.id,
                candidate.staff_id,
                candidate.interval,
                acknowledged_conflicts=acknowledged,
                override_reason=reason,
            )
        except ConflictError as exc:
            logger.warning("Reschedule of %s rejected: %s", booking.id, exc)
            return self._apply(CommitRejected(self._rejection_message(exc, shown)))
        except BookingSourceError as exc:
            logger.error("Reschedule of %s could not be saved: %s", booking.id, exc)
            return self._apply(CommitRejected(f"Could not save the booking: {exc}"))

        logger.info("Reschedule of %s committed", booking.id)
        return self._apply(CommitSucceeded(updated))

    def cancel(self) -> RescheduleState:
        return self._apply(Cancel())

    def reset(self) -> RescheduleState:
        """Call once the view has reloaded its bookings after COMMITTED or CANCELLED."""
        return self._apply(Reset())

    @staticmethod
    def _rejection_message(exc: ConflictError, shown: Tuple[str, ...]) -> str:
        # every rejected id was already in the planning snapshot: not a race
        rejected = set(exc.conflicting_booking_ids)
        if rejected and rejected <= set(shown):
            return ALREADY_BOOKED_MESSAGE
        return SLOT_TAKEN_MESSAGE

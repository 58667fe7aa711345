"""
Placement planning: decides how a proposed booking placement should be treated.

Nothing is committed here. The result is advisory; persistence re-checks
conflicts when the move is written.
"""

from typing import Optional

from .availability import AvailabilityResolver
from .conflicts import ConflictDetector
from .models import PlacementCandidate, PlanningContext, PlacementResult, PlacementOutcome


class PlacementPlanner:
    """
    Evaluates a candidate placement against availability and existing bookings.

    Checks run in a fixed order and the first failing one decides the outcome:
    1. Time-off on the local start date -> STAFF_TIME_OFF
    2. Start or end outside working hours -> OUTSIDE_WORKING_HOURS
    3. Overlap with active bookings -> CONFLICT
    4. Otherwise -> CLEAN
    """

    def __init__(
        self,
        timezone: str = "UTC",
        conflict_detector: Optional[ConflictDetector] = None,
    ):
        self.timezone = timezone
        self.conflict_detector = conflict_detector or ConflictDetector()

    def plan(
        self,
        candidate: PlacementCandidate,
        context: PlanningContext,
    ) -> PlacementResult:
        """
        Plan a placement for ``candidate``.

        Args:
            candidate: Proposed staff member and interval
            context: Working hours, time-off and bookings snapshot

        Returns:
            PlacementResult describing the outcome
        """
        resolver = self._build_resolver(context)
        start_date = resolver.local_date(candidate.interval.start)

        if resolver.is_on_time_off(candidate.staff_id, start_date):
            return PlacementResult(outcome=PlacementOutcome.STAFF_TIME_OFF)

        if not resolver.fits_working_hours(candidate.staff_id, candidate.interval):
            return PlacementResult(outcome=PlacementOutcome.OUTSIDE_WORKING_HOURS)

        conflicts = self.conflict_detector.find_conflicts(
            candidate,
            context.existing_bookings,
        )
        if conflicts:
            return PlacementResult.conflict(conflicts)

        return PlacementResult.clean()

    def _build_resolver(self, context: PlanningContext) -> AvailabilityResolver:
        templates = [context.working_hours] if context.working_hours else []
        return AvailabilityResolver.for_templates(
            templates,
            time_off=context.time_off,
            timezone=self.timezone,
        )

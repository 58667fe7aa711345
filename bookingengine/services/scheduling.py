"""
Application services for planning placements and building calendar views.

The service fetches snapshots through a ``BookingSource`` and hands them to
the pure domain objects. Swapping the in-memory store for the REST client,
or a stub in tests, needs no change here.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Protocol, Sequence

from ..domain.availability import AvailabilityResolver
from ..domain.calendar import (
    CalendarAggregator,
    DayProjection,
    DisplayWindow,
    MonthDaySummary,
    WeekProjection,
    month_dates,
)
from ..domain.conflicts import ConflictDetector
from ..domain.models import (
    AvailableSlot,
    Booking,
    CalendarContext,
    PlacementCandidate,
    PlacementResult,
    PlanningContext,
    TimeInterval,
    TimeOffRange,
    WorkingHoursTemplate,
)
from ..domain.placement import PlacementPlanner
from ..domain.slot_calculator import SlotCalculator

logger = logging.getLogger(__name__)


class BookingSource(Protocol):
    """Protocol describing the collaborator that owns staff and booking data."""

    async def get_booking(self, booking_id: str) -> Booking:
        """Return one booking; raise BookingSourceError if it does not exist."""

    async def get_working_hours(self, staff_id: str) -> Optional[WorkingHoursTemplate]:
        """Return the weekly template, or None if the staff member has none."""

    async def get_time_off(
        self,
        staff_id: str,
        start_date: date,
        end_date: date,
    ) -> List[TimeOffRange]:
        """Return time-off ranges overlapping ``[start_date, end_date]``."""

    async def get_bookings(
        self,
        *,
        start_date: date,
        end_date: date,
        staff_ids: Optional[Sequence[str]] = None,
        location_id: Optional[str] = None,
    ) -> List[Booking]:
        """Return bookings starting on a local date in ``[start_date, end_date]``."""

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
        Persist a move after re-checking conflicts against the latest bookings.

        Conflicts listed in ``acknowledged_conflicts`` were shown to the user and
        overridden; any other conflict must raise ConflictError without writing.
        """


class SchedulingService:
    """
    Orchestrates data retrieval and the scheduling engine.
    """

    def __init__(
        self,
        source: BookingSource,
        *,
        timezone: str = "UTC",
        display: Optional[DisplayWindow] = None,
        slot_increment_minutes: int = 30,
    ) -> None:
        self._source = source
        self.timezone = timezone
        self.conflict_detector = ConflictDetector()
        self.planner = PlacementPlanner(timezone=timezone, conflict_detector=self.conflict_detector)
        self.aggregator = CalendarAggregator(timezone=timezone, display=display)
        self.slot_increment_minutes = slot_increment_minutes

    @property
    def source(self) -> BookingSource:
        return self._source

    async def load_planning_context(self, staff_id: str, day: date) -> PlanningContext:
        """Fetch a consistent snapshot for planning on one local day."""
        working_hours, time_off, bookings = await asyncio.gather(
            self._source.get_working_hours(staff_id),
            self._source.get_time_off(staff_id, day, day),
            # the previous day catches bookings running past midnight
            self._source.get_bookings(
                start_date=day - timedelta(days=1), end_date=day, staff_ids=[staff_id]
            ),
        )
        logger.debug(
            "Loaded planning context for %s on %s: %d time-off range(s), %d booking(s)",
            staff_id, day, len(time_off), len(bookings),
        )
        return PlanningContext(
            working_hours=working_hours,
            time_off=time_off,
            existing_bookings=bookings,
        )

    async def plan_placement(self, candidate: PlacementCandidate) -> PlacementResult:
        """Plan a placement against freshly fetched data."""
        result, _ = await self.plan_with_conflicts(candidate)
        return result

    async def plan_with_conflicts(
        self,
        candidate: PlacementCandidate,
    ) -> tuple[PlacementResult, List[Booking]]:
        """
        Plan a placement and also return the overlapping bookings themselves,
        so callers can show who the conflicts belong to.

        The overlaps are returned for every outcome. A placement outside
        working hours can still sit on top of another booking even though
        the result only reports the first failing check.
        """
        day = candidate.interval.local_date(self.timezone)
        context = await self.load_planning_context(candidate.staff_id, day)
        result = self.planner.plan(candidate, context)
        conflicts = self.conflict_detector.conflicting_bookings(candidate, context.existing_bookings)

        logger.info(
            "Planned %s for staff %s at %s: %s",
            candidate.exclude_booking_id or "new booking",
            candidate.staff_id,
            candidate.interval,
            result.outcome.value,
        )
        return result, conflicts

    async def project_day(self, staff_id: str, day: date) -> DayProjection:
        bookings = await self._source.get_bookings(
            start_date=day, end_date=day, staff_ids=[staff_id]
        )
        return self.aggregator.project_day(staff_id, day, bookings)

    async def project_week(self, staff_ids: Sequence[str], week_start: date) -> WeekProjection:
        bookings = await self._source.get_bookings(
            start_date=week_start,
            end_date=week_start + timedelta(days=6),
            staff_ids=list(staff_ids),
        )
        return self.aggregator.project_week(staff_ids, week_start, bookings)

    async def project_month(
        self,
        month: date,
        staff_ids: Optional[Sequence[str]] = None,
        location_id: Optional[str] = None,
    ) -> Dict[date, MonthDaySummary]:
        days = month_dates(month)
        bookings = await self._source.get_bookings(
            start_date=days[0],
            end_date=days[-1],
            staff_ids=list(staff_ids) if staff_ids is not None else None,
            location_id=location_id,
        )
        return self.aggregator.project_month(month, bookings, staff_ids=staff_ids)

    async def load_calendar_context(
        self,
        staff_ids: Sequence[str],
        start_date: date,
        end_date: date,
    ) -> Dict[str, CalendarContext]:
        """Working hours and time-off per staff member, for shading non-working cells."""
        contexts: Dict[str, CalendarContext] = {}
        for staff_id in staff_ids:
            working_hours, time_off = await asyncio.gather(
                self._source.get_working_hours(staff_id),
                self._source.get_time_off(staff_id, start_date, end_date),
            )
            contexts[staff_id] = CalendarContext(
                staff_id=staff_id,
                working_hours=working_hours,
                time_off=sorted(time_off, key=lambda r: r.start_date),
            )
        return contexts

    async def find_available_slots(
        self,
        staff_ids: Sequence[str],
        day: date,
        duration_minutes: int,
        *,
        now: Optional[datetime] = None,
        staff_names: Optional[Dict[str, str]] = None,
    ) -> List[AvailableSlot]:
        calculator, bookings = await self._slot_inputs(staff_ids, day)
        return calculator.find_available_slots(
            staff_ids,
            day,
            duration_minutes,
            bookings,
            now=now,
            staff_names=staff_names,
        )

    async def recommend_slots(
        self,
        staff_ids: Sequence[str],
        day: date,
        duration_minutes: int,
        *,
        now: Optional[datetime] = None,
        staff_names: Optional[Dict[str, str]] = None,
        exclude_booking_id: Optional[str] = None,
        limit: int = 5,
    ) -> List[AvailableSlot]:
        calculator, bookings = await self._slot_inputs(staff_ids, day)
        return calculator.recommend_slots(
            staff_ids,
            day,
            duration_minutes,
            bookings,
            now=now,
            staff_names=staff_names,
            exclude_booking_id=exclude_booking_id,
            limit=limit,
        )

    async def _slot_inputs(
        self,
        staff_ids: Sequence[str],
        day: date,
    ) -> tuple[SlotCalculator, List[Booking]]:
        contexts = await self.load_calendar_context(staff_ids, day, day)
        bookings = await self._source.get_bookings(
            start_date=day - timedelta(days=1), end_date=day, staff_ids=list(staff_ids)
        )
        resolver = AvailabilityResolver.for_templates(
            [ctx.working_hours for ctx in contexts.values() if ctx.working_hours],
            time_off=[r for ctx in contexts.values() for r in ctx.time_off],
            timezone=self.timezone,
        )
        calculator = SlotCalculator(
            resolver,
            slot_increment_minutes=self.slot_increment_minutes,
            conflict_detector=self.conflict_detector,
        )
        return calculator, bookings

"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .availability import AvailabilityResolver
from .calendar import CalendarAggregator, DisplayWindow, MonthDaySummary, week_start_for
from .conflicts import ConflictDetector, find_conflicts
from .exceptions import (
    BookingEngineError,
    BookingSourceError,
    ConflictError,
    InvalidInterval,
    InvalidTransition,
)
from .models import (
    AvailableSlot,
    Booking,
    BookingStatus,
    PlacementCandidate,
    PlacementOutcome,
    PlacementResult,
    PlanningContext,
    TimeInterval,
    TimeOffRange,
    WorkingHoursEntry,
    WorkingHoursTemplate,
    contains,
    overlaps,
)
from .placement import PlacementPlanner
from .reschedule import DropTarget, RescheduleStage, RescheduleState, transition
from .slot_calculator import SlotCalculator

__all__ = [
    "AvailabilityResolver",
    "AvailableSlot",
    "Booking",
    "BookingEngineError",
    "BookingSourceError",
    "BookingStatus",
    "CalendarAggregator",
    "ConflictDetector",
    "ConflictError",
    "DisplayWindow",
    "DropTarget",
    "InvalidInterval",
    "InvalidTransition",
    "MonthDaySummary",
    "PlacementCandidate",
    "PlacementOutcome",
    "PlacementPlanner",
    "PlacementResult",
    "PlanningContext",
    "RescheduleStage",
    "RescheduleState",
    "SlotCalculator",
    "TimeInterval",
    "TimeOffRange",
    "WorkingHoursEntry",
    "WorkingHoursTemplate",
    "contains",
    "find_conflicts",
    "overlaps",
    "transition",
    "week_start_for",
]

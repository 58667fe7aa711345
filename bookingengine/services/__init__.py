"""
Service layer helpers that orchestrate booking sources and domain logic.
"""

from .reschedule import RescheduleWorkflow
from .scheduling import BookingSource, SchedulingService

__all__ = ["BookingSource", "RescheduleWorkflow", "SchedulingService"]

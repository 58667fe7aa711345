"""
Adapters layer - Booking data sources (in-memory fixtures and the REST API).
"""

from .memory_store import InMemoryBookingStore
from .rest_client import RestBookingSource

__all__ = ["InMemoryBookingStore", "RestBookingSource"]

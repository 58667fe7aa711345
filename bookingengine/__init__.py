"""
bookingengine - scheduling and availability engine for staff bookings.
"""

__version__ = "0.1.0"

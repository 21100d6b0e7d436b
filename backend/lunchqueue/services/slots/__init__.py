# backend/lunchqueue/services/slots/__init__.py
"""
Pickup slot allocation module.

SlotGrid: ordered slots per location/date/period (Redis-cached)
SlotAllocator / QuickQueue: lowest-wait slot selection
ReservationCoordinator: hold → confirm / release against the slot store
"""

from .config import SlotsConfig, get_slots_config
from .errors import (
    CannotReleaseConfirmedError,
    DuplicateReservationError,
    HoldReleasedError,
    NotFoundError,
    SlotsError,
    StoreUnavailableError,
)
from .grid import Location, PeriodWindow, SlotGrid, TimeSlot, period_window
from .allocator import OccupancyWaitCost, QuickQueue, SlotAllocator
from .store import SqlSlotStore
from .redis_store import SlotsRedisStore
from .invalidator import invalidate_location_cache
from .reservations import Rejected, RejectReason, ReservationCoordinator, ReservationHandle
from .checkout import CheckoutResult, CheckoutStatus, quick_checkout

__all__ = [
    "SlotsConfig",
    "get_slots_config",
    "SlotsError",
    "NotFoundError",
    "DuplicateReservationError",
    "CannotReleaseConfirmedError",
    "HoldReleasedError",
    "StoreUnavailableError",
    "Location",
    "PeriodWindow",
    "SlotGrid",
    "TimeSlot",
    "period_window",
    "OccupancyWaitCost",
    "QuickQueue",
    "SlotAllocator",
    "SqlSlotStore",
    "SlotsRedisStore",
    "invalidate_location_cache",
    "Rejected",
    "RejectReason",
    "ReservationCoordinator",
    "ReservationHandle",
    "CheckoutResult",
    "CheckoutStatus",
    "quick_checkout",
]

# backend/lunchqueue/services/slots/checkout.py
"""
QuickQueue checkout: pick the best slot, hold it, create the order, confirm.

Flow:
1. find_optimal_slot (excluding slots already rejected as full)
2. reserve → Rejected (full or already started)? back to 1 with the slot excluded
3. create_order(slot) inside coordinator.hold → failure releases the hold
4. confirm(handle, order_id)

DuplicateReservationError and StoreUnavailableError propagate to the caller.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable

from .allocator import QuickQueue
from .errors import DuplicateReservationError, StoreUnavailableError
from .grid import TimeSlot
from .reservations import Rejected, ReservationCoordinator, ReservationHandle

logger = logging.getLogger(__name__)

SLOT_FULL_MESSAGE = "Slot no longer available, please pick another"
SLOT_STARTED_MESSAGE = "This pickup time has already passed, please pick another"
DUPLICATE_MESSAGE = "You already have an order today"
RETRY_MESSAGE = "Temporarily unavailable, please try again"
NOT_AVAILABLE_MESSAGE = "No available time slots"


class CheckoutStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    NOT_AVAILABLE = "not_available"
    SLOT_FULL = "slot_full"


@dataclass(frozen=True)
class CheckoutResult:
    status: CheckoutStatus
    slot: TimeSlot | None = None
    handle: ReservationHandle | None = None
    order_id: str | None = None

    @property
    def message(self) -> str | None:
        if self.status == CheckoutStatus.SLOT_FULL:
            return SLOT_FULL_MESSAGE
        if self.status == CheckoutStatus.NOT_AVAILABLE:
            return NOT_AVAILABLE_MESSAGE
        return None


def user_message(error: Exception) -> str:
    """Text shown to the user for an error raised during checkout."""
    if isinstance(error, DuplicateReservationError):
        return DUPLICATE_MESSAGE
    if isinstance(error, StoreUnavailableError):
        return RETRY_MESSAGE
    return str(error)


def quick_checkout(
    quick_queue: QuickQueue,
    coordinator: ReservationCoordinator,
    user_id: str,
    target_date: date,
    period: str,
    create_order: Callable[[TimeSlot], str],
    preferred_location: str | None = None,
    max_attempts: int = 3,
) -> CheckoutResult:
    """
    Book the lowest-wait slot for the user.

    Args:
        create_order: Creates the order for the held slot, returns its id.
                      Raising releases the hold.
        max_attempts: How many slots to try when holds are rejected as full.
    """
    excluded: set[int | str] = set()

    for attempt in range(1, max_attempts + 1):
        slot = quick_queue.find_optimal_slot(
            target_date, period, preferred_location=preferred_location, exclude=excluded,
        )
        if slot is None:
            return CheckoutResult(status=CheckoutStatus.NOT_AVAILABLE)

        with coordinator.hold(user_id, slot) as held:
            if isinstance(held, Rejected):
                logger.info(f"Checkout attempt {attempt}: slot {slot.id} rejected ({held.reason.value}), re-allocating")
                excluded.add(slot.id)
                continue

            order_id = create_order(slot)
            coordinator.confirm(held, order_id)

        logger.info(f"Checkout confirmed: user={user_id} slot={slot.id} order={order_id}")
        return CheckoutResult(
            status=CheckoutStatus.CONFIRMED,
            slot=slot,
            handle=held,
            order_id=order_id,
        )

    logger.warning(f"Checkout gave up after {max_attempts} full slots: user={user_id}")
    return CheckoutResult(status=CheckoutStatus.SLOT_FULL)

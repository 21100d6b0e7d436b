# backend/lunchqueue/services/slots/reservations.py
"""
Reservation coordinator: turns a chosen slot into a capacity-safe hold.

State machine per reservation:

    Requested ──► Held ──► Confirmed            (confirm)
        │          │           └──► Cancelled   (release with cancel=True)
        │          ├──► Released                (release)
        │          └──► Expired                 (hold_ttl passed, swept)
        └──► Rejected (SLOT_FULL or SLOT_STARTED, no capacity change)

Every path out of Held other than Confirmed returns exactly one unit
of capacity. Store errors are never retried here: a blind retry of
try_decrement could consume two units.
"""

import enum
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Iterator

from .config import SlotsConfig, get_slots_config
from .errors import CannotReleaseConfirmedError, DuplicateReservationError, HoldReleasedError, NotFoundError
from .grid import TimeSlot
from .store import ReservationRecord, SlotStore

logger = logging.getLogger(__name__)


class RejectReason(str, enum.Enum):
    SLOT_FULL = "slot_full"
    SLOT_STARTED = "slot_started"


@dataclass(frozen=True)
class Rejected:
    reason: RejectReason
    slot_id: int | str


@dataclass(frozen=True)
class ReservationHandle:
    """A provisional hold on one unit of a slot."""
    reservation_id: str
    user_id: str
    slot_id: int | str
    date: date
    held_until: datetime


class ReservationCoordinator:
    def __init__(
        self,
        store: SlotStore,
        config: SlotsConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.config = config or get_slots_config()
        self._clock = clock or datetime.now

    # ── Reserve ──────────────────────────────────────────────────────────

    def reserve(self, user_id: str, slot: TimeSlot) -> ReservationHandle | Rejected:
        """
        Hold one unit of the slot for the user.

        Returns:
            ReservationHandle on success, Rejected(SLOT_FULL) when the
            store had no capacity left, Rejected(SLOT_STARTED) when the
            pickup time is not in the future.

        Raises:
            DuplicateReservationError: user already has a reservation that day
            StoreUnavailableError: store could not be reached
        """
        now = self._clock()

        if slot.has_started(now):
            logger.warning(f"Slot already started: slot={slot.id} user={user_id}")
            return Rejected(reason=RejectReason.SLOT_STARTED, slot_id=slot.id)

        # Lazy expiry: a stale hold of this user must not block a new one
        self._expire(self.store.expired_holds(now, user_id=user_id, target_date=slot.date))

        if self.store.has_active_reservation(user_id, slot.date):
            logger.warning(f"Duplicate reservation attempt: user={user_id} date={slot.date}")
            raise DuplicateReservationError(user_id, slot.date.isoformat())

        if not self.store.try_decrement(slot.id):
            logger.warning(f"Slot full: slot={slot.id} user={user_id}")
            return Rejected(reason=RejectReason.SLOT_FULL, slot_id=slot.id)

        held_until = now + timedelta(seconds=self.config.hold_ttl_seconds)
        try:
            reservation_id = self.store.record_reservation(user_id, slot.id, slot.date, held_until)
        except Exception:
            # The unit was consumed but no reservation owns it
            self.store.increment(slot.id)
            raise

        logger.info(f"Slot held: reservation={reservation_id} slot={slot.id} user={user_id}")

        return ReservationHandle(
            reservation_id=reservation_id,
            user_id=user_id,
            slot_id=slot.id,
            date=slot.date,
            held_until=held_until,
        )

    # ── Confirm ──────────────────────────────────────────────────────────

    def confirm(self, handle: ReservationHandle, order_id: str) -> None:
        """
        Make the hold permanent for the created order. Idempotent.

        Raises:
            HoldReleasedError: the hold was released or expired first
        """
        # A hold past its deadline expires here even if the sweeper has not run yet
        self._expire(self.store.expired_holds(
            self._clock(), user_id=handle.user_id, target_date=handle.date
        ))

        if self.store.confirm_reservation(handle.reservation_id, order_id):
            logger.info(f"Reservation confirmed: {handle.reservation_id} → order={order_id}")
            return

        record = self._get(handle.reservation_id)
        if record.status == "confirmed":
            if record.order_id != order_id:
                logger.warning(
                    f"Reservation {handle.reservation_id} already confirmed "
                    f"for order {record.order_id}, ignoring order {order_id}"
                )
            return

        raise HoldReleasedError(
            f"Reservation {handle.reservation_id} is {record.status}, cannot confirm"
        )

    # ── Release ──────────────────────────────────────────────────────────

    def release(self, handle: ReservationHandle, cancel: bool = False) -> None:
        """
        Void the reservation and return its unit of capacity. Idempotent.

        A confirmed reservation is only released as an explicit
        cancellation (cancel=True).

        Raises:
            CannotReleaseConfirmedError: confirmed and cancel is False
        """
        if self.store.void_reservation(handle.reservation_id, new_status="released"):
            self.store.increment(handle.slot_id)
            logger.info(f"Hold released: {handle.reservation_id}")
            return

        record = self._get(handle.reservation_id)
        if record.status != "confirmed":
            # released / cancelled / expired: nothing left to return
            return

        if not cancel:
            raise CannotReleaseConfirmedError(
                f"Reservation {handle.reservation_id} is confirmed; cancel it instead"
            )

        if self.store.void_reservation(
            handle.reservation_id, new_status="cancelled", include_confirmed=True
        ):
            self.store.increment(handle.slot_id)
            logger.info(f"Reservation cancelled: {handle.reservation_id}")

    @contextmanager
    def hold(self, user_id: str, slot: TimeSlot) -> Iterator[ReservationHandle | Rejected]:
        """
        Reserve for the duration of a block.

        Any exception raised inside the block releases the hold before it
        propagates. The block is expected to confirm() on success.
        """
        result = self.reserve(user_id, slot)
        if isinstance(result, Rejected):
            yield result
            return

        try:
            yield result
        except Exception:
            logger.warning(f"Order creation failed, releasing hold {result.reservation_id}")
            try:
                self.release(result)
            except CannotReleaseConfirmedError:
                # Failed after confirm(): the order exists and keeps its slot
                logger.warning(f"Reservation {result.reservation_id} already confirmed, kept")
            raise

    # ── Expiry ───────────────────────────────────────────────────────────

    def expire_holds(self, now: datetime | None = None) -> int:
        """Release every hold past its held_until. Returns how many expired."""
        now = now or self._clock()
        return self._expire(self.store.expired_holds(now))

    def _expire(self, records: list[ReservationRecord]) -> int:
        expired = 0
        for record in records:
            if self.store.void_reservation(record.id, new_status="expired"):
                self.store.increment(record.slot_id)
                expired += 1
                logger.info(f"Hold expired: {record.id} slot={record.slot_id} user={record.user_id}")
        return expired

    def handle_for(self, reservation_id: str) -> ReservationHandle:
        """Rebuild a handle from the stored reservation (HTTP callers only keep the id)."""
        record = self._get(reservation_id)
        return ReservationHandle(
            reservation_id=record.id,
            user_id=record.user_id,
            slot_id=record.slot_id,
            date=record.date,
            held_until=record.held_until,
        )

    def _get(self, reservation_id: str) -> ReservationRecord:
        record = self.store.get_reservation(reservation_id)
        if record is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return record

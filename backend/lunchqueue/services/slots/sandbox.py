# backend/lunchqueue/services/slots/sandbox.py
"""
SANDBOX slot store, for demos and local development only.

Mirrors the old demo mode on purpose:
✓ every slot reports SANDBOX_AVAILABILITY free places
✓ try_decrement always succeeds, capacity never moves
✓ the one-order-per-day rule is still enforced (in memory)

Enabled only with SANDBOX_MODE=true. Never use in production.
"""

import logging
import threading
from dataclasses import replace
from datetime import date, datetime
from uuid import uuid4

from .config import SlotsConfig, get_slots_config, parse_time_str
from .grid import Location, TimeSlot, generate_start_times, period_window
from .store import ReservationRecord

logger = logging.getLogger(__name__)

SANDBOX_AVAILABILITY = 20

SANDBOX_LOCATIONS = [
    Location(id="loc-0", name="Main Cafeteria"),
    Location(id="loc-1", name="Student Center"),
]


class SandboxSlotStore:
    """In-memory slot store with fixed, never-exhausted availability."""

    def __init__(self, config: SlotsConfig | None = None):
        self.config = config or get_slots_config()
        self._slots: dict[str, TimeSlot] = {}
        self._reservations: dict[str, ReservationRecord] = {}
        self._lock = threading.Lock()
        logger.warning("SANDBOX slot store in use: availability is fake, reservations always succeed")

    def get_slots(self, location_id: str, target_date: date, period: str) -> list[TimeSlot]:
        window = period_window(period, self.config)
        slots = []
        with self._lock:
            for time_str in generate_start_times(window):
                slot_id = f"sandbox:{location_id}:{target_date.isoformat()}:{time_str}"
                slot = self._slots.setdefault(slot_id, TimeSlot(
                    id=slot_id,
                    location_id=location_id,
                    date=target_date,
                    start=parse_time_str(time_str),
                    capacity=SANDBOX_AVAILABILITY,
                    remaining=SANDBOX_AVAILABILITY,
                ))
                slots.append(slot)
        return slots

    def get_slot(self, slot_id: int | str) -> TimeSlot | None:
        with self._lock:
            return self._slots.get(slot_id)

    def try_decrement(self, slot_id: int | str) -> bool:
        return True

    def increment(self, slot_id: int | str) -> None:
        return None

    def has_active_reservation(self, user_id: str, target_date: date) -> bool:
        with self._lock:
            return any(
                r.user_id == user_id and r.date == target_date and r.status in ("held", "confirmed")
                for r in self._reservations.values()
            )

    def record_reservation(
        self,
        user_id: str,
        slot_id: int | str,
        target_date: date,
        held_until: datetime,
    ) -> str:
        reservation_id = str(uuid4())
        with self._lock:
            self._reservations[reservation_id] = ReservationRecord(
                id=reservation_id,
                user_id=user_id,
                slot_id=slot_id,
                date=target_date,
                status="held",
                held_until=held_until,
            )
        return reservation_id

    def void_reservation(
        self,
        reservation_id: str,
        new_status: str = "released",
        include_confirmed: bool = False,
    ) -> bool:
        from_statuses = ("held", "confirmed") if include_confirmed else ("held",)
        with self._lock:
            record = self._reservations.get(reservation_id)
            if record is None or record.status not in from_statuses:
                return False
            self._reservations[reservation_id] = replace(record, status=new_status)
            return True

    def confirm_reservation(self, reservation_id: str, order_id: str) -> bool:
        with self._lock:
            record = self._reservations.get(reservation_id)
            if record is None or record.status != "held":
                return False
            self._reservations[reservation_id] = replace(record, status="confirmed", order_id=order_id)
            return True

    def get_reservation(self, reservation_id: str) -> ReservationRecord | None:
        with self._lock:
            return self._reservations.get(reservation_id)

    def expired_holds(
        self,
        now: datetime,
        user_id: str | None = None,
        target_date: date | None = None,
    ) -> list[ReservationRecord]:
        with self._lock:
            return [
                r for r in self._reservations.values()
                if r.status == "held"
                and r.held_until <= now
                and (user_id is None or r.user_id == user_id)
                and (target_date is None or r.date == target_date)
            ]

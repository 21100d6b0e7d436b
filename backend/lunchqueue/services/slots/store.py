# backend/lunchqueue/services/slots/store.py
"""
Slot store: the system of record for capacity and reservations.

Tables: time_slots, reservations (see models/tables.py).

Correctness-critical operations are single conditional statements:
✓ try_decrement: UPDATE ... SET remaining = remaining - 1 WHERE remaining > 0
✓ increment:     UPDATE ... SET remaining = remaining + 1 WHERE remaining < capacity
✓ reservation transitions: UPDATE ... WHERE status IN (...)
✓ one order per day: partial unique index on (user_id, date)

Nothing here reads a value and writes it back from Python.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterable, Iterator, Protocol
from uuid import uuid4

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from .config import SlotsConfig, get_slots_config, parse_time_str
from .errors import DuplicateReservationError, StoreUnavailableError
from .grid import TimeSlot, booking_dates, generate_start_times, period_window

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

ChangeListener = Callable[[str, date], None]


@dataclass(frozen=True)
class ReservationRecord:
    id: str
    user_id: str
    slot_id: int | str
    date: date
    status: str  # held / confirmed / released / cancelled / expired
    held_until: datetime
    order_id: str | None = None


class SlotStore(Protocol):
    def get_slots(self, location_id: str, target_date: date, period: str) -> list[TimeSlot]:
        ...

    def get_slot(self, slot_id: int | str) -> TimeSlot | None:
        ...

    def try_decrement(self, slot_id: int | str) -> bool:
        ...

    def increment(self, slot_id: int | str) -> None:
        ...

    def has_active_reservation(self, user_id: str, target_date: date) -> bool:
        ...

    def record_reservation(
        self, user_id: str, slot_id: int | str, target_date: date, held_until: datetime
    ) -> str:
        ...

    def void_reservation(
        self, reservation_id: str, new_status: str = "released", include_confirmed: bool = False
    ) -> bool:
        ...

    def confirm_reservation(self, reservation_id: str, order_id: str) -> bool:
        ...

    def get_reservation(self, reservation_id: str) -> ReservationRecord | None:
        ...

    def expired_holds(
        self, now: datetime, user_id: str | None = None, target_date: date | None = None
    ) -> list[ReservationRecord]:
        ...


@contextmanager
def unavailable_on_db_errors() -> Iterator[None]:
    """Re-raise connectivity failures as StoreUnavailableError."""
    try:
        yield
    except (OperationalError, InterfaceError) as e:
        logger.error(f"Slot store unavailable: {e}")
        raise StoreUnavailableError("Slot store is unavailable") from e


class SqlSlotStore:
    """SQLAlchemy-backed slot store. One session per operation."""

    def __init__(self, session_factory: sessionmaker, config: SlotsConfig | None = None):
        self.session_factory = session_factory
        self.config = config or get_slots_config()
        self._listeners: list[ChangeListener] = []

    # ── Change notifications ─────────────────────────────────────────────

    def add_listener(self, listener: ChangeListener) -> None:
        """Called with (location_id, date) after every capacity change."""
        self._listeners.append(listener)

    def _notify(self, location_id: str, date_str: str) -> None:
        dt = date.fromisoformat(date_str)
        for listener in self._listeners:
            try:
                listener(location_id, dt)
            except Exception as e:
                # Capacity already changed; a stale cache only lives until its TTL
                logger.warning(f"Slot change listener failed for {location_id} {date_str}: {e}")

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        with unavailable_on_db_errors():
            with self.session_factory() as db, db.begin():
                yield db

    # ── Slots ────────────────────────────────────────────────────────────

    def get_slots(self, location_id: str, target_date: date, period: str) -> list[TimeSlot]:
        """
        Slots of a location for a date and period, ordered by start time.

        The day's rows are created from the period template on first read.
        """
        rows = self._select_slots(location_id, target_date, period)
        if rows:
            return rows

        self._materialize(location_id, target_date, period)
        return self._select_slots(location_id, target_date, period)

    def get_slot(self, slot_id: int | str) -> TimeSlot | None:
        from ...models.tables import TimeSlots

        with self._transaction() as db:
            row = db.get(TimeSlots, slot_id)
            return _to_slot(row) if row else None

    def materialize_window(self, location_ids: Iterable[str], today: date) -> int:
        """
        Pre-create slots for every bookable date in the rolling window.

        Returns:
            Number of (location, date, period) grids created.
        """
        created = 0
        for location_id in location_ids:
            for dt in booking_dates(today, self.config):
                for period in self.config.periods:
                    if self._select_slots(location_id, dt, period):
                        continue
                    if self._materialize(location_id, dt, period):
                        created += 1
        return created

    def _select_slots(self, location_id: str, target_date: date, period: str) -> list[TimeSlot]:
        from ...models.tables import TimeSlots

        with self._transaction() as db:
            rows = (
                db.query(TimeSlots)
                .filter(
                    TimeSlots.location_id == location_id,
                    TimeSlots.date == target_date.isoformat(),
                    TimeSlots.period == period,
                )
                .order_by(TimeSlots.start_time)
                .all()
            )
            return [_to_slot(row) for row in rows]

    def _materialize(self, location_id: str, target_date: date, period: str) -> bool:
        """Insert the template rows. False if another writer got there first."""
        from ...models.tables import TimeSlots

        window = period_window(period, self.config)
        capacity = self.config.slot_capacity
        try:
            with self._transaction() as db:
                for time_str in generate_start_times(window):
                    db.add(TimeSlots(
                        location_id=location_id,
                        date=target_date.isoformat(),
                        period=period,
                        start_time=time_str,
                        capacity=capacity,
                        remaining=capacity,
                    ))
        except IntegrityError:
            logger.info(f"Slots for {location_id} {target_date} {period} already materialized")
            return False

        logger.info(f"Materialized slots: {location_id} {target_date} period {period}")
        return True

    # ── Capacity ─────────────────────────────────────────────────────────

    def try_decrement(self, slot_id: int | str) -> bool:
        """Consume one unit iff one is left. Single conditional UPDATE."""
        from ...models.tables import TimeSlots

        stmt = (
            update(TimeSlots)
            .where(TimeSlots.id == slot_id, TimeSlots.remaining > 0)
            .values(remaining=TimeSlots.remaining - 1)
            .returning(TimeSlots.location_id, TimeSlots.date)
            .execution_options(synchronize_session=False)
        )
        with self._transaction() as db:
            row = db.execute(stmt).first()

        if row is None:
            return False

        self._notify(row.location_id, row.date)
        return True

    def increment(self, slot_id: int | str) -> None:
        """Return one unit, never above capacity."""
        from ...models.tables import TimeSlots

        stmt = (
            update(TimeSlots)
            .where(TimeSlots.id == slot_id, TimeSlots.remaining < TimeSlots.capacity)
            .values(remaining=TimeSlots.remaining + 1)
            .returning(TimeSlots.location_id, TimeSlots.date)
            .execution_options(synchronize_session=False)
        )
        with self._transaction() as db:
            row = db.execute(stmt).first()

        if row is None:
            logger.warning(f"Increment on slot {slot_id} ignored: slot missing or already full")
            return

        self._notify(row.location_id, row.date)

    # ── Reservations ─────────────────────────────────────────────────────

    def has_active_reservation(self, user_id: str, target_date: date) -> bool:
        from ...models.tables import ACTIVE_STATUSES, Reservations

        with self._transaction() as db:
            found = (
                db.query(Reservations.id)
                .filter(
                    Reservations.user_id == user_id,
                    Reservations.date == target_date.isoformat(),
                    Reservations.status.in_(ACTIVE_STATUSES),
                )
                .first()
            )
            return found is not None

    def record_reservation(
        self,
        user_id: str,
        slot_id: int | str,
        target_date: date,
        held_until: datetime,
    ) -> str:
        """
        Insert a held reservation.

        Raises:
            DuplicateReservationError: the user already holds one that day
        """
        from ...models.tables import Reservations

        reservation_id = str(uuid4())
        try:
            with self._transaction() as db:
                db.add(Reservations(
                    id=reservation_id,
                    user_id=user_id,
                    slot_id=slot_id,
                    date=target_date.isoformat(),
                    status="held",
                    held_until=held_until.strftime(TIMESTAMP_FORMAT),
                ))
        except IntegrityError:
            if self.has_active_reservation(user_id, target_date):
                raise DuplicateReservationError(user_id, target_date.isoformat())
            raise

        return reservation_id

    def void_reservation(
        self,
        reservation_id: str,
        new_status: str = "released",
        include_confirmed: bool = False,
    ) -> bool:
        """
        Move a held (or, if allowed, confirmed) reservation to new_status.

        Returns:
            True if this call made the transition, False if it was
            already voided or in a state that may not be voided.
        """
        from ...models.tables import Reservations

        from_statuses = ("held", "confirmed") if include_confirmed else ("held",)
        stmt = (
            update(Reservations)
            .where(Reservations.id == reservation_id, Reservations.status.in_(from_statuses))
            .values(status=new_status, released_at=datetime.now().strftime(TIMESTAMP_FORMAT))
            .execution_options(synchronize_session=False)
        )
        with self._transaction() as db:
            result = db.execute(stmt)
            return result.rowcount == 1

    def confirm_reservation(self, reservation_id: str, order_id: str) -> bool:
        """held → confirmed. False if the reservation was not held."""
        from ...models.tables import Reservations

        stmt = (
            update(Reservations)
            .where(Reservations.id == reservation_id, Reservations.status == "held")
            .values(
                status="confirmed",
                order_id=order_id,
                confirmed_at=datetime.now().strftime(TIMESTAMP_FORMAT),
            )
            .execution_options(synchronize_session=False)
        )
        with self._transaction() as db:
            result = db.execute(stmt)
            return result.rowcount == 1

    def get_reservation(self, reservation_id: str) -> ReservationRecord | None:
        from ...models.tables import Reservations

        with self._transaction() as db:
            row = db.get(Reservations, reservation_id)
            return _to_record(row) if row else None

    def expired_holds(
        self,
        now: datetime,
        user_id: str | None = None,
        target_date: date | None = None,
    ) -> list[ReservationRecord]:
        """Held reservations whose held_until has passed."""
        from ...models.tables import Reservations

        with self._transaction() as db:
            query = db.query(Reservations).filter(
                Reservations.status == "held",
                Reservations.held_until <= now.strftime(TIMESTAMP_FORMAT),
            )
            if user_id is not None:
                query = query.filter(Reservations.user_id == user_id)
            if target_date is not None:
                query = query.filter(Reservations.date == target_date.isoformat())
            return [_to_record(row) for row in query.all()]


# ── Helpers ──────────────────────────────────────────────────────────────


def _to_slot(row) -> TimeSlot:
    return TimeSlot(
        id=row.id,
        location_id=row.location_id,
        date=date.fromisoformat(row.date),
        start=parse_time_str(row.start_time),
        capacity=row.capacity,
        remaining=row.remaining,
    )


def _to_record(row) -> ReservationRecord:
    return ReservationRecord(
        id=row.id,
        user_id=row.user_id,
        slot_id=row.slot_id,
        date=date.fromisoformat(row.date),
        status=row.status,
        held_until=datetime.strptime(row.held_until, TIMESTAMP_FORMAT),
        order_id=row.order_id,
    )

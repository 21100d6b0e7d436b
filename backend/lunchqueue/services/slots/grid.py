# backend/lunchqueue/services/slots/grid.py
"""
SlotGrid: the ordered pickup slots of one location for one date and period.

Slots come from the slot store (system of record), read through the
Redis grid cache. The cached grid is advisory only: remaining capacity
is re-validated atomically at the store on every reservation.

Ordering: slots are always sorted ascending by start time. The
allocator's "earliest slot" tie-break relies on it.

Today's slots that already started are never returned.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, Iterable

from .config import SlotsConfig, get_slots_config, minutes_to_time_str, parse_time_str, time_str_to_minutes
from .errors import NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Location:
    id: str
    name: str
    is_active: bool = True


@dataclass(frozen=True)
class TimeSlot:
    """One pickup slot: a start time at a location on a date."""
    id: int | str
    location_id: str
    date: date
    start: time
    capacity: int
    remaining: int

    @property
    def occupancy(self) -> float:
        """Fraction of capacity already consumed (0 = empty, 1 = full)."""
        return 1 - self.remaining / self.capacity

    @property
    def is_available(self) -> bool:
        return self.remaining > 0

    @property
    def time_str(self) -> str:
        return self.start.strftime("%H:%M")

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.date, self.start)

    def has_started(self, now: datetime) -> bool:
        return self.starts_at <= now

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location_id": self.location_id,
            "date": self.date.isoformat(),
            "start": self.time_str,
            "capacity": self.capacity,
            "remaining": self.remaining,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TimeSlot":
        return cls(
            id=data["id"],
            location_id=data["location_id"],
            date=date.fromisoformat(data["date"]),
            start=parse_time_str(data["start"]),
            capacity=data["capacity"],
            remaining=data["remaining"],
        )


@dataclass(frozen=True)
class PeriodWindow:
    start_time: time
    slot_granularity_minutes: int
    period_duration_minutes: int


def period_window(period: str, config: SlotsConfig | None = None) -> PeriodWindow:
    """Window of a lunch period (A → 11:00, B → 12:00 by default)."""
    config = config or get_slots_config()
    start = config.periods.get(period)
    if start is None:
        raise NotFoundError(f"Unknown lunch period: {period!r}")
    return PeriodWindow(
        start_time=parse_time_str(start),
        slot_granularity_minutes=config.slot_step_minutes,
        period_duration_minutes=config.period_duration_minutes,
    )


def generate_start_times(window: PeriodWindow) -> list[str]:
    """Daily template: "HH:MM" start times covering the window."""
    start_min = window.start_time.hour * 60 + window.start_time.minute
    end_min = start_min + window.period_duration_minutes
    return [
        minutes_to_time_str(t)
        for t in range(start_min, end_min, window.slot_granularity_minutes)
    ]


def is_bookable_date(target_date: date, today: date, config: SlotsConfig) -> bool:
    if target_date < today:
        return False
    if target_date > today + timedelta(days=config.horizon_days):
        return False
    if config.skip_weekends and target_date.weekday() >= 5:
        return False
    return True


def booking_dates(today: date, config: SlotsConfig | None = None) -> list[date]:
    """Every bookable date in the rolling window [today, today + horizon_days]."""
    config = config or get_slots_config()
    dates = []
    for offset in range(config.horizon_days + 1):
        dt = today + timedelta(days=offset)
        if is_bookable_date(dt, today, config):
            dates.append(dt)
    return dates


def sort_slots(slots: Iterable[TimeSlot]) -> list[TimeSlot]:
    return sorted(slots, key=lambda s: time_str_to_minutes(s.time_str))


def upcoming_slots(slots: Iterable[TimeSlot], now: datetime) -> list[TimeSlot]:
    """Drop slots whose pickup time is at or before `now`."""
    return [slot for slot in slots if not slot.has_started(now)]


class SlotGrid:
    """
    Loads grids for (location, date, period).

    Owned by one allocation request at a time; holds no mutable state
    besides its collaborators.
    """

    def __init__(
        self,
        store,
        directory,
        cache=None,
        config: SlotsConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.directory = directory
        self.cache = cache
        self.config = config or get_slots_config()
        self._clock = clock or datetime.now

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return self._clock().date()

    def validate_date(self, target_date: date, period: str) -> None:
        """Raise NotFoundError for an unknown period or a date outside the booking window."""
        period_window(period, self.config)

        if not is_bookable_date(target_date, self.today(), self.config):
            raise NotFoundError(f"Date {target_date.isoformat()} is outside the booking window")

    def validate(self, location_id: str, target_date: date, period: str) -> None:
        """Raise NotFoundError unless the request names a bookable grid."""
        self.validate_date(target_date, period)

        location = self.directory.get_location(location_id)
        if location is None or not location.is_active:
            raise NotFoundError(f"Location {location_id} not found or inactive")

    def load(self, location_id: str, target_date: date, period: str) -> list[TimeSlot]:
        """Ordered upcoming slots of one location for a date and period."""
        self.validate(location_id, target_date, period)
        return upcoming_slots(self._read(location_id, target_date, period), self.now())

    def load_many(
        self,
        location_ids: Iterable[str],
        target_date: date,
        period: str,
    ) -> dict[str, list[TimeSlot]]:
        """
        Grids for several locations.

        A bad date or period raises NotFoundError; unknown or inactive
        locations are skipped.
        """
        self.validate_date(target_date, period)
        now = self.now()

        grids: dict[str, list[TimeSlot]] = {}
        for location_id in location_ids:
            location = self.directory.get_location(location_id)
            if location is None or not location.is_active:
                logger.info(f"Skipping inactive location {location_id}")
                continue
            grids[location_id] = upcoming_slots(self._read(location_id, target_date, period), now)
        return grids

    def available_for_date(self, target_date: date, period: str | None = None) -> list[TimeSlot]:
        """
        Every upcoming slot with capacity left on a date, across all active
        locations, ordered by (start, location_id).

        Covers every period unless one is given.
        """
        periods = [period] if period is not None else list(self.config.periods)
        location_ids = [loc.id for loc in self.directory.list_active_locations()]

        available = []
        for name in periods:
            grids = self.load_many(location_ids, target_date, name)
            available.extend(slot for slots in grids.values() for slot in slots if slot.is_available)

        return sorted(available, key=lambda s: (time_str_to_minutes(s.time_str), s.location_id))

    def _read(self, location_id: str, target_date: date, period: str) -> list[TimeSlot]:
        if self.cache is not None:
            cached = self.cache.get_grid(location_id, target_date, period)
            if cached is not None:
                return sort_slots(cached)

        slots = sort_slots(self.store.get_slots(location_id, target_date, period))

        if self.cache is not None:
            self.cache.store_grid(location_id, target_date, period, slots)

        return slots

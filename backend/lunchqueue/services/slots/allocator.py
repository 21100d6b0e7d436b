# backend/lunchqueue/services/slots/allocator.py
"""
QuickQueue: pick the pickup slot with the lowest expected wait.

Cost policy (replaceable, see WaitCostPolicy):
  wait_cost = base_unit * (1 + occupancy)
  occupancy = 1 - remaining / capacity

Selection:
✓ only slots with remaining > 0
✓ minimal cost, then earliest start, then lowest location id
✓ preferred location is searched first, all locations on fallback

Returns None (NotAvailable) when nothing has capacity, a normal outcome.
"""

import logging
from datetime import date
from typing import Collection, Iterable, Mapping, Protocol, Sequence

from .config import SlotsConfig, get_slots_config, time_str_to_minutes
from .grid import SlotGrid, TimeSlot

logger = logging.getLogger(__name__)


class WaitCostPolicy(Protocol):
    def wait_cost(self, slot: TimeSlot) -> float:
        ...


class OccupancyWaitCost:
    """Emptier slots cost less; an empty slot costs exactly base_unit."""

    def __init__(self, base_unit: float = 5.0):
        self.base_unit = base_unit

    def wait_cost(self, slot: TimeSlot) -> float:
        return self.base_unit * (1 + slot.occupancy)


class SlotAllocator:
    def __init__(self, policy: WaitCostPolicy | None = None):
        self.policy = policy or OccupancyWaitCost()

    def find_optimal_slot(
        self,
        grids: Mapping[str, Sequence[TimeSlot]],
        preferred_location: str | None = None,
        exclude: Collection[int | str] = (),
    ) -> TimeSlot | None:
        """
        Best slot across the grids, or None when no slot has capacity.

        Args:
            grids: location_id → slots of that location
            preferred_location: searched first; ignored if it has no capacity
            exclude: slot ids to skip (e.g. ones that were just rejected as full)
        """
        if preferred_location is not None and preferred_location in grids:
            best = self._best(grids[preferred_location], exclude)
            if best is not None:
                return best
            logger.info(f"No capacity at preferred location {preferred_location}, searching all")

        return self._best(
            (slot for slots in grids.values() for slot in slots),
            exclude,
        )

    def _best(self, slots: Iterable[TimeSlot], exclude: Collection[int | str]) -> TimeSlot | None:
        candidates = [
            slot for slot in slots
            if slot.remaining > 0 and slot.id not in exclude
        ]
        if not candidates:
            return None
        return min(candidates, key=self._rank)

    def _rank(self, slot: TimeSlot) -> tuple[float, int, str]:
        return (
            self.policy.wait_cost(slot),
            time_str_to_minutes(slot.time_str),
            slot.location_id,
        )


class QuickQueue:
    """
    Caller-facing slot search: lists active locations, loads their grids
    and lets the allocator choose.
    """

    def __init__(
        self,
        grid: SlotGrid,
        directory,
        allocator: SlotAllocator | None = None,
        config: SlotsConfig | None = None,
    ):
        self.grid = grid
        self.directory = directory
        self.config = config or get_slots_config()
        self.allocator = allocator or SlotAllocator(OccupancyWaitCost(self.config.base_wait_minutes))

    def find_optimal_slot(
        self,
        target_date: date,
        period: str,
        preferred_location: str | None = None,
        locations: Iterable[str] | None = None,
        exclude: Collection[int | str] = (),
    ) -> TimeSlot | None:
        if locations is None:
            locations = [loc.id for loc in self.directory.list_active_locations()]

        grids = self.grid.load_many(locations, target_date, period)
        slot = self.allocator.find_optimal_slot(grids, preferred_location, exclude)

        if slot is None:
            logger.info(f"No slot available on {target_date.isoformat()} period {period}")
        return slot

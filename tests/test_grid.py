from datetime import datetime, timedelta

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from lunchqueue.services.slots.errors import NotFoundError
from lunchqueue.services.slots.grid import SlotGrid
from lunchqueue.services.slots.invalidator import get_affected_dates
from lunchqueue.services.slots.redis_store import SlotsRedisStore

from helpers import SATURDAY, TODAY, TOMORROW


class BrokenRedis:
    """Every call fails like an unreachable server."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise RedisConnectionError("connection refused")
        return fail


def test_load_returns_slots_earliest_first(grid, locations):
    slots = grid.load("A", TOMORROW, "B")

    assert len(slots) == 12
    assert slots[0].time_str == "12:00"
    assert [s.start for s in slots] == sorted(s.start for s in slots)


def test_today_is_bookable(grid, locations):
    assert grid.load("A", TODAY, "A")


@pytest.mark.parametrize("target_date", [
    TODAY - timedelta(days=1),
    SATURDAY,
    TODAY + timedelta(days=91),
])
def test_dates_outside_window_are_not_found(grid, locations, target_date):
    with pytest.raises(NotFoundError):
        grid.load("A", target_date, "A")


def test_last_day_of_horizon_is_bookable(grid, locations):
    # 2027-01-17 is a Sunday; the Friday before is inside the window
    assert grid.load("A", TODAY + timedelta(days=88), "A")


def test_unknown_period_is_not_found(grid, locations):
    with pytest.raises(NotFoundError):
        grid.load("A", TOMORROW, "Z")


def test_unknown_or_inactive_location_is_not_found(grid, locations, add_location):
    add_location("C", "Closed Kiosk", is_active=False)

    with pytest.raises(NotFoundError):
        grid.load("C", TOMORROW, "A")
    with pytest.raises(NotFoundError):
        grid.load("nowhere", TOMORROW, "A")


def test_load_many_skips_inactive_locations(grid, locations, add_location):
    add_location("C", "Closed Kiosk", is_active=False)

    grids = grid.load_many(["A", "B", "C"], TOMORROW, "A")

    assert sorted(grids) == ["A", "B"]


def test_load_many_rejects_bad_date(grid, locations):
    with pytest.raises(NotFoundError):
        grid.load_many(["A", "B"], SATURDAY, "A")


def test_grid_is_served_from_cache(services, locations, redis, clock):
    first = services.grid.load("A", TOMORROW, "A")
    assert redis.exists(f"slots:grid:A:{TOMORROW.isoformat()}:A")

    # Change the store behind the cache's back: no listener fires
    class CountingStore:
        calls = 0

        def get_slots(self, *args):
            CountingStore.calls += 1
            return []

    grid = SlotGrid(
        CountingStore(),
        services.directory,
        cache=SlotsRedisStore(redis, services.config),
        config=services.config,
        clock=clock,
    )

    assert grid.load("A", TOMORROW, "A") == first
    assert CountingStore.calls == 0


def test_capacity_change_invalidates_cached_grid(services, locations, redis):
    slot = services.grid.load("A", TOMORROW, "A")[0]

    services.coordinator.reserve("user1", slot)

    assert not redis.exists(f"slots:grid:A:{TOMORROW.isoformat()}:A")
    assert services.grid.load("A", TOMORROW, "A")[0].remaining == slot.remaining - 1


def test_invalidation_only_touches_changed_location(services, locations, redis):
    slot = services.grid.load("A", TOMORROW, "A")[0]
    services.grid.load("B", TOMORROW, "A")

    services.coordinator.reserve("user1", slot)

    assert redis.exists(f"slots:grid:B:{TOMORROW.isoformat()}:A")


def test_corrupt_cache_entry_reads_as_miss(services, locations, redis):
    key = f"slots:grid:A:{TOMORROW.isoformat()}:A"
    redis.set(key, "not json")

    slots = services.grid.load("A", TOMORROW, "A")

    assert len(slots) == 12
    # Refilled from the store
    assert redis.get(key) != b"not json"


def test_broken_redis_falls_back_to_store(store, directory, config, locations, clock):
    grid = SlotGrid(
        store,
        directory,
        cache=SlotsRedisStore(BrokenRedis(), config),
        config=config,
        clock=clock,
    )

    assert len(grid.load("A", TOMORROW, "A")) == 12


def test_affected_dates_include_both_ends():
    assert get_affected_dates(TOMORROW, TODAY) == [TODAY, TOMORROW]
    assert get_affected_dates(TODAY, TODAY) == [TODAY]


def test_started_slots_of_today_are_hidden(grid, locations, clock):
    clock.now = datetime(2026, 10, 19, 11, 32)

    slots = grid.load("A", TODAY, "A")

    assert [s.time_str for s in slots] == ["11:35", "11:40", "11:45", "11:50", "11:55"]
    assert len(grid.load("A", TOMORROW, "A")) == 12


def test_slot_starting_now_is_hidden(grid, locations, clock):
    clock.now = datetime(2026, 10, 19, 11, 0)

    assert grid.load("A", TODAY, "A")[0].time_str == "11:05"


def test_after_lunch_today_has_no_slots(grid, locations, clock):
    clock.now = datetime(2026, 10, 19, 14, 0)

    assert grid.load_many(["A", "B"], TODAY, "A") == {"A": [], "B": []}
    assert grid.available_for_date(TODAY) == []


def test_available_for_date_lists_open_slots_across_locations(grid, store, locations, add_location):
    add_location("C", "Closed Kiosk", is_active=False)
    full = store.get_slots("A", TOMORROW, "A")[0]
    for _ in range(full.capacity):
        assert store.try_decrement(full.id)

    slots = grid.available_for_date(TOMORROW, "A")

    assert full.id not in {s.id for s in slots}
    assert len(slots) == 23
    assert [(s.location_id, s.time_str) for s in slots[:3]] == [
        ("B", "11:00"), ("A", "11:05"), ("B", "11:05"),
    ]
    assert {s.location_id for s in slots} == {"A", "B"}


def test_available_for_date_covers_every_period(grid, locations):
    slots = grid.available_for_date(TOMORROW)

    assert len(slots) == 48
    assert slots[0].time_str == "11:00"
    assert slots[-1].time_str == "12:55"


def test_available_for_date_rejects_weekend(grid, locations):
    with pytest.raises(NotFoundError):
        grid.available_for_date(SATURDAY)

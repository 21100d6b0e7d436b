import pytest

from lunchqueue.services.slots.allocator import OccupancyWaitCost, SlotAllocator

from helpers import make_slot


def test_wait_cost_grows_with_occupancy():
    policy = OccupancyWaitCost(base_unit=5)

    assert policy.wait_cost(make_slot("A", "11:00", remaining=10)) == 5
    assert policy.wait_cost(make_slot("A", "11:00", remaining=5)) == pytest.approx(7.5)
    assert policy.wait_cost(make_slot("A", "11:00", remaining=1)) == pytest.approx(9.5)


def test_empty_grids_pick_earliest_slot():
    grids = {"A": [make_slot("A", t, remaining=10) for t in ("11:00", "11:05", "11:10")]}

    slot = SlotAllocator().find_optimal_slot(grids)

    assert slot.time_str == "11:00"


def test_equal_cost_prefers_earliest_start():
    # Same occupancy (0) → same cost; 11:00 wins despite having 1 place
    grids = {"A": [
        make_slot("A", "11:15", remaining=10, capacity=10),
        make_slot("A", "11:00", remaining=1, capacity=1),
    ]}

    slot = SlotAllocator().find_optimal_slot(grids)

    assert slot.time_str == "11:00"


def test_equal_cost_and_time_prefers_lowest_location_id():
    grids = {
        "B": [make_slot("B", "11:00", remaining=10)],
        "A": [make_slot("A", "11:00", remaining=10)],
    }

    assert SlotAllocator().find_optimal_slot(grids).location_id == "A"


def test_emptier_slot_beats_earlier_busier_slot():
    grids = {"A": [
        make_slot("A", "11:00", remaining=2),
        make_slot("A", "11:05", remaining=10),
    ]}

    assert SlotAllocator().find_optimal_slot(grids).time_str == "11:05"


def test_full_slots_are_never_candidates():
    grids = {"A": [
        make_slot("A", "11:00", remaining=0),
        make_slot("A", "11:05", remaining=3),
    ]}

    assert SlotAllocator().find_optimal_slot(grids).time_str == "11:05"


def test_nothing_available_returns_none():
    grids = {
        "A": [make_slot("A", "11:00", remaining=0)],
        "B": [make_slot("B", "11:00", remaining=0)],
    }

    assert SlotAllocator().find_optimal_slot(grids) is None
    assert SlotAllocator().find_optimal_slot({}) is None


def test_exhausted_preferred_location_falls_back_to_others():
    grids = {
        "MAIN 1": [make_slot("MAIN 1", t, remaining=0) for t in ("11:00", "11:05")],
        "MAIN 2": [make_slot("MAIN 2", t, remaining=4) for t in ("11:00", "11:05")],
    }

    slot = SlotAllocator().find_optimal_slot(grids, preferred_location="MAIN 1")

    assert slot is not None
    assert slot.location_id == "MAIN 2"


def test_preferred_location_wins_while_it_has_capacity():
    grids = {
        "A": [make_slot("A", "11:00", remaining=10)],
        "B": [make_slot("B", "11:30", remaining=1)],
    }

    slot = SlotAllocator().find_optimal_slot(grids, preferred_location="B")

    assert slot.location_id == "B"


def test_unknown_preferred_location_searches_all():
    grids = {"A": [make_slot("A", "11:00", remaining=10)]}

    assert SlotAllocator().find_optimal_slot(grids, preferred_location="Z").location_id == "A"


def test_excluded_slots_are_skipped():
    grids = {"A": [make_slot("A", "11:00", remaining=10), make_slot("A", "11:05", remaining=10)]}

    slot = SlotAllocator().find_optimal_slot(grids, exclude={"A@11:00"})

    assert slot.time_str == "11:05"


def test_cost_policy_is_replaceable():
    class LatestFirst:
        def wait_cost(self, slot):
            return -slot.start.hour * 60 - slot.start.minute

    grids = {"A": [make_slot("A", "11:00", remaining=10), make_slot("A", "11:55", remaining=10)]}

    assert SlotAllocator(LatestFirst()).find_optimal_slot(grids).time_str == "11:55"

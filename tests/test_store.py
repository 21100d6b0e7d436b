from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from lunchqueue.database import build_engine
from lunchqueue.services.slots.config import SlotsConfig
from lunchqueue.services.slots.errors import DuplicateReservationError, StoreUnavailableError
from lunchqueue.services.slots.store import SqlSlotStore

from helpers import TODAY, TOMORROW

HELD_UNTIL = datetime(2026, 10, 19, 9, 5)


def test_get_slots_materializes_template_on_first_read(store, locations):
    slots = store.get_slots("A", TOMORROW, "A")

    assert [s.time_str for s in slots] == [f"11:{m:02d}" for m in range(0, 60, 5)]
    assert all(s.capacity == 10 and s.remaining == 10 for s in slots)
    assert all(s.location_id == "A" and s.date == TOMORROW for s in slots)

    # Second read returns the same rows, not a new batch
    assert [s.id for s in store.get_slots("A", TOMORROW, "A")] == [s.id for s in slots]


def test_periods_are_separate_grids(store, locations):
    period_a = store.get_slots("A", TOMORROW, "A")
    period_b = store.get_slots("A", TOMORROW, "B")

    assert period_b[0].time_str == "12:00"
    assert not {s.id for s in period_a} & {s.id for s in period_b}


def test_try_decrement_stops_at_zero(session_factory, locations):
    store = SqlSlotStore(session_factory, SlotsConfig(slot_capacity=2))
    slot = store.get_slots("A", TOMORROW, "A")[0]

    assert store.try_decrement(slot.id) is True
    assert store.try_decrement(slot.id) is True
    assert store.try_decrement(slot.id) is False
    assert store.get_slot(slot.id).remaining == 0


def test_increment_never_exceeds_capacity(store, locations):
    slot = store.get_slots("A", TOMORROW, "A")[0]

    store.increment(slot.id)

    assert store.get_slot(slot.id).remaining == slot.capacity


def test_try_decrement_unknown_slot(store):
    assert store.try_decrement(999) is False
    assert store.get_slot(999) is None


def test_capacity_changes_notify_listeners(store, locations):
    events = []
    store.add_listener(lambda location_id, dt: events.append((location_id, dt)))
    slot = store.get_slots("B", TOMORROW, "A")[0]

    store.try_decrement(slot.id)
    store.increment(slot.id)

    assert events == [("B", TOMORROW), ("B", TOMORROW)]


def test_failing_listener_does_not_break_decrement(store, locations):
    def broken(location_id, dt):
        raise RuntimeError("cache down")

    store.add_listener(broken)
    slot = store.get_slots("A", TOMORROW, "A")[0]

    assert store.try_decrement(slot.id) is True
    assert store.get_slot(slot.id).remaining == 9


def test_second_active_reservation_same_day_is_rejected_by_store(store, locations):
    first, second = store.get_slots("A", TOMORROW, "A")[:2]
    store.record_reservation("user1", first.id, TOMORROW, HELD_UNTIL)

    with pytest.raises(DuplicateReservationError):
        store.record_reservation("user1", second.id, TOMORROW, HELD_UNTIL)

    assert store.has_active_reservation("user1", TOMORROW)
    assert not store.has_active_reservation("user1", TODAY)
    assert not store.has_active_reservation("user2", TOMORROW)


def test_voided_reservation_frees_the_day(store, locations):
    slot = store.get_slots("A", TOMORROW, "A")[0]
    reservation_id = store.record_reservation("user1", slot.id, TOMORROW, HELD_UNTIL)

    assert store.void_reservation(reservation_id) is True
    assert store.void_reservation(reservation_id) is False
    assert store.get_reservation(reservation_id).status == "released"
    assert not store.has_active_reservation("user1", TOMORROW)

    # The partial index only covers held/confirmed rows
    store.record_reservation("user1", slot.id, TOMORROW, HELD_UNTIL)


def test_confirm_only_from_held(store, locations):
    slot = store.get_slots("A", TOMORROW, "A")[0]
    reservation_id = store.record_reservation("user1", slot.id, TOMORROW, HELD_UNTIL)

    assert store.confirm_reservation(reservation_id, "order-1") is True
    assert store.confirm_reservation(reservation_id, "order-1") is False

    record = store.get_reservation(reservation_id)
    assert record.status == "confirmed"
    assert record.order_id == "order-1"

    # Confirmed rows need include_confirmed
    assert store.void_reservation(reservation_id) is False
    assert store.void_reservation(reservation_id, new_status="cancelled", include_confirmed=True) is True
    assert store.get_reservation(reservation_id).status == "cancelled"


def test_expired_holds_filters(store, locations):
    slot = store.get_slots("A", TOMORROW, "A")[0]
    old = store.record_reservation("user1", slot.id, TOMORROW, HELD_UNTIL)
    store.record_reservation("user2", slot.id, TOMORROW, HELD_UNTIL + timedelta(minutes=10))

    now = HELD_UNTIL + timedelta(seconds=1)
    assert [r.id for r in store.expired_holds(now)] == [old]
    assert store.expired_holds(now, user_id="user2") == []
    assert store.expired_holds(now, target_date=TODAY) == []
    assert store.expired_holds(HELD_UNTIL - timedelta(seconds=1)) == []


def test_materialize_window_creates_every_bookable_grid(session_factory, locations):
    config = SlotsConfig(horizon_days=6)
    store = SqlSlotStore(session_factory, config)

    # 5 weekdays x 2 periods x 2 locations
    assert store.materialize_window(["A", "B"], TODAY) == 20
    assert store.materialize_window(["A", "B"], TODAY) == 0


def test_unreachable_database_raises_store_unavailable(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'missing' / 'dir' / 'slots.db'}")
    store = SqlSlotStore(sessionmaker(bind=engine))

    with pytest.raises(StoreUnavailableError):
        store.try_decrement(1)

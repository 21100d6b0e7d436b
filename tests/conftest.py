from datetime import datetime

import fakeredis
import pytest
from sqlalchemy.orm import sessionmaker

from lunchqueue.database import build_engine, init_db
from lunchqueue.models.tables import Locations
from lunchqueue.services.slots.allocator import QuickQueue
from lunchqueue.services.slots.config import SlotsConfig
from lunchqueue.services.slots.directory import SqlLocationDirectory
from lunchqueue.services.slots.grid import SlotGrid
from lunchqueue.services.slots.invalidator import cache_invalidation_listener
from lunchqueue.services.slots.redis_store import SlotsRedisStore
from lunchqueue.services.slots.reservations import ReservationCoordinator
from lunchqueue.services.slots.store import SqlSlotStore
from lunchqueue.services.slots.wiring import SlotServices

from helpers import FakeClock


@pytest.fixture
def config():
    return SlotsConfig()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 19, 9, 0, 0))


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'slots.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def add_location(session_factory):
    def _add(location_id: str, name: str | None = None, is_active: bool = True) -> None:
        with session_factory() as db, db.begin():
            db.add(Locations(id=location_id, name=name or location_id, is_active=int(is_active)))
    return _add


@pytest.fixture
def locations(add_location):
    """Two active pickup locations, A and B."""
    add_location("A", "Main Cafeteria")
    add_location("B", "Student Center")
    return ["A", "B"]


@pytest.fixture
def store(session_factory, config):
    return SqlSlotStore(session_factory, config)


@pytest.fixture
def directory(session_factory):
    return SqlLocationDirectory(session_factory)


@pytest.fixture
def redis():
    return fakeredis.FakeRedis()


@pytest.fixture
def grid(store, directory, config, clock):
    return SlotGrid(store, directory, config=config, clock=clock)


@pytest.fixture
def quick_queue(grid, directory, config):
    return QuickQueue(grid, directory, config=config)


@pytest.fixture
def coordinator(store, config, clock):
    return ReservationCoordinator(store, config, clock=clock)


@pytest.fixture
def services(store, directory, config, clock, redis):
    store.add_listener(cache_invalidation_listener(redis))
    grid = SlotGrid(
        store,
        directory,
        cache=SlotsRedisStore(redis, config),
        config=config,
        clock=clock,
    )
    return SlotServices(
        config=config,
        store=store,
        directory=directory,
        grid=grid,
        quick_queue=QuickQueue(grid, directory, config=config),
        coordinator=ReservationCoordinator(store, config, clock=clock),
        redis=redis,
    )

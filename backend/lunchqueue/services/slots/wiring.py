# backend/lunchqueue/services/slots/wiring.py
"""
Builds the slot services once at startup.

Callers receive these objects explicitly (app.state / FastAPI
dependencies); there are no module-level manager singletons.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from redis import Redis
from sqlalchemy.orm import sessionmaker

from .allocator import OccupancyWaitCost, QuickQueue, SlotAllocator
from .config import SlotsConfig, get_slots_config
from .directory import LocationDirectory, SqlLocationDirectory, StaticLocationDirectory
from .grid import SlotGrid
from .invalidator import cache_invalidation_listener
from .redis_store import SlotsRedisStore
from .reservations import ReservationCoordinator
from .sandbox import SANDBOX_LOCATIONS, SandboxSlotStore
from .store import SlotStore, SqlSlotStore

logger = logging.getLogger(__name__)


@dataclass
class SlotServices:
    config: SlotsConfig
    store: SlotStore
    directory: LocationDirectory
    grid: SlotGrid
    quick_queue: QuickQueue
    coordinator: ReservationCoordinator
    redis: Redis | None = None


def build_slot_services(
    session_factory: sessionmaker | None,
    redis: Redis | None,
    config: SlotsConfig | None = None,
    sandbox: bool = False,
    clock: Callable[[], datetime] | None = None,
) -> SlotServices:
    config = config or get_slots_config()

    if sandbox:
        logger.warning("SANDBOX MODE: slot availability is simulated, do not use in production")
        store = SandboxSlotStore(config)
        directory = StaticLocationDirectory(SANDBOX_LOCATIONS)
    else:
        store = SqlSlotStore(session_factory, config)
        directory = SqlLocationDirectory(session_factory)
        if redis is not None:
            store.add_listener(cache_invalidation_listener(redis))

    cache = SlotsRedisStore(redis, config) if redis is not None else None
    grid = SlotGrid(store, directory, cache=cache, config=config, clock=clock)
    allocator = SlotAllocator(OccupancyWaitCost(config.base_wait_minutes))

    return SlotServices(
        config=config,
        store=store,
        directory=directory,
        grid=grid,
        quick_queue=QuickQueue(grid, directory, allocator=allocator, config=config),
        coordinator=ReservationCoordinator(store, config, clock=clock),
        redis=redis,
    )

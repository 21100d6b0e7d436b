# backend/lunchqueue/services/slots/invalidator.py
"""
Drops cached grids when pickup capacity moves.

Sources:
✓ store change listener: reserve, release, cancel, expiry (one location/date)
✓ POST /slots/invalidate: a date range or the whole location

Location activation is not a trigger: SlotGrid asks the directory on every load.
"""

import logging
from datetime import date, timedelta
from redis import Redis

from .redis_store import SlotsRedisStore

logger = logging.getLogger(__name__)


def invalidate_location_cache(
    redis: Redis,
    location_id: str,
    dates: list[date] | None = None,
) -> int:
    """Delete the location's cached grids (only `dates` if given). Returns keys deleted."""
    deleted = SlotsRedisStore(redis).delete_grids(location_id, dates)
    if deleted:
        logger.info(f"Dropped {deleted} cached grid(s) of {location_id}")
    return deleted


def cache_invalidation_listener(redis: Redis):
    """Listener for SqlSlotStore.add_listener."""

    def on_capacity_change(location_id: str, dt: date) -> None:
        invalidate_location_cache(redis, location_id, [dt])

    return on_capacity_change


def get_affected_dates(date_start: date, date_end: date) -> list[date]:
    """Every date from date_start to date_end, both ends included, in either order."""
    first, last = sorted((date_start, date_end))
    return [first + timedelta(days=n) for n in range((last - first).days + 1)]

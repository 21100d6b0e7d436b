# backend/lunchqueue/services/slots/redis_store.py
"""
Redis cache for slot grids.

Key format: slots:grid:{location_id}:{date}:{period}
Value: JSON list of slot snapshots, TTL = grid_cache_ttl_seconds.

The TTL bounds how stale a grid can get; the store's change listener
deletes keys as soon as capacity moves. Redis errors never fail a
request: a broken cache reads as a miss.
"""

import json
import logging
from datetime import date
from redis import Redis
from redis.exceptions import RedisError

from .config import SlotsConfig, get_slots_config
from .grid import TimeSlot

logger = logging.getLogger(__name__)


class SlotsRedisStore:
    """Redis storage wrapper for cached slot grids."""

    KEY_PREFIX = "slots:grid"

    def __init__(self, redis: Redis, config: SlotsConfig | None = None):
        self.redis = redis
        self.config = config or get_slots_config()

    def _key(self, location_id: str, dt: date, period: str) -> str:
        return f"{self.KEY_PREFIX}:{location_id}:{dt.isoformat()}:{period}"

    # ── Write ────────────────────────────────────────────────────────────

    def store_grid(
        self,
        location_id: str,
        dt: date,
        period: str,
        slots: list[TimeSlot],
    ) -> None:
        """Cache a grid snapshot until the TTL runs out."""
        key = self._key(location_id, dt, period)
        payload = json.dumps([slot.to_dict() for slot in slots])
        try:
            self.redis.setex(key, self.config.grid_cache_ttl_seconds, payload)
        except RedisError as e:
            logger.warning(f"Cache write error: {e}")

    # ── Read ─────────────────────────────────────────────────────────────

    def get_grid(
        self,
        location_id: str,
        dt: date,
        period: str,
    ) -> list[TimeSlot] | None:
        """
        Get a cached grid.

        Returns:
            List of slots, or None on cache miss.
        """
        key = self._key(location_id, dt, period)
        try:
            raw = self.redis.get(key)
        except RedisError as e:
            logger.warning(f"Cache read error: {e}")
            return None

        if raw is None:
            return None

        try:
            return [TimeSlot.from_dict(item) for item in json.loads(raw)]
        except (ValueError, KeyError, TypeError):
            logger.warning(f"Invalid cached grid, dropping: {key}")
            self._delete([key])
            return None

    # ── Delete ───────────────────────────────────────────────────────────

    def delete_grids(
        self,
        location_id: str,
        dates: list[date] | None = None,
    ) -> int:
        """Delete the grids of a location, limited to `dates` when given. Returns keys deleted."""
        if dates:
            patterns = [f"{self.KEY_PREFIX}:{location_id}:{dt.isoformat()}:*" for dt in dates]
        else:
            patterns = [f"{self.KEY_PREFIX}:{location_id}:*"]

        try:
            keys = [key for pattern in patterns for key in self.redis.scan_iter(pattern)]
        except RedisError as e:
            logger.warning(f"Cache scan error: {e}")
            return 0

        return self._delete(keys)

    def _delete(self, keys: list) -> int:
        if not keys:
            return 0
        try:
            return self.redis.delete(*keys)
        except RedisError as e:
            logger.warning(f"Cache delete error: {e}")
            return 0

# backend/lunchqueue/services/slots/config.py
"""
Slots configuration for lunch pickup periods.
"""

from dataclasses import dataclass, field
from datetime import time
from functools import lru_cache

from ...config import settings


ALLOWED_STEPS = (5, 15, 30)


def time_str_to_minutes(value: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    hour, minute = value.split(":")
    return int(hour) * 60 + int(minute)


def minutes_to_time_str(minutes: int) -> str:
    """Convert minutes since midnight to "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_time_str(value: str) -> time:
    minutes = time_str_to_minutes(value)
    return time(minutes // 60, minutes % 60)


@dataclass(frozen=True)
class SlotsConfig:
    """
    Configuration for the pickup slot system.

    Attributes:
        periods: Lunch period name → start time "HH:MM"
        slot_step_minutes: Slot granularity in minutes (5/15/30)
        period_duration_minutes: Length of every period window
        slot_capacity: Orders accepted per generated slot
        horizon_days: How many days ahead slots can be booked
        skip_weekends: No slots on Saturday and Sunday
        base_wait_minutes: Per-slot service time used by the wait-cost policy
        hold_ttl_seconds: How long a provisional hold lives unconfirmed
        grid_cache_ttl_seconds: Redis TTL for cached grids
        sweep_interval_seconds: Pause between expired-hold sweeps
    """
    periods: dict[str, str] = field(default_factory=lambda: {"A": "11:00", "B": "12:00"})
    slot_step_minutes: int = 5  # 5 / 15 / 30
    period_duration_minutes: int = 60
    slot_capacity: int = 10
    horizon_days: int = 90
    skip_weekends: bool = True
    base_wait_minutes: float = 5.0
    hold_ttl_seconds: int = 300  # 5 minutes
    grid_cache_ttl_seconds: int = 30
    sweep_interval_seconds: int = 30

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_step_minutes not in ALLOWED_STEPS:
            raise ValueError(f"slot_step_minutes must be 5, 15, or 30, got {self.slot_step_minutes}")
        if self.period_duration_minutes <= 0 or self.period_duration_minutes % self.slot_step_minutes:
            raise ValueError(
                f"period_duration_minutes must be a positive multiple of {self.slot_step_minutes}, "
                f"got {self.period_duration_minutes}"
            )
        if self.slot_capacity <= 0:
            raise ValueError(f"slot_capacity must be positive, got {self.slot_capacity}")
        if self.horizon_days < 0:
            raise ValueError(f"horizon_days must not be negative, got {self.horizon_days}")
        for name, start in self.periods.items():
            end = time_str_to_minutes(start) + self.period_duration_minutes
            if end > 24 * 60:
                raise ValueError(f"Period {name} crosses midnight")

    @property
    def slots_per_period(self) -> int:
        """
        Number of slots in one period window.

        - 60 min / 5 min → 12 slots
        - 60 min / 15 min → 4 slots
        """
        return self.period_duration_minutes // self.slot_step_minutes


@lru_cache
def get_slots_config() -> SlotsConfig:
    """Get slots configuration (singleton), built from settings."""
    return SlotsConfig(
        slot_step_minutes=settings.slots_step_minutes,
        period_duration_minutes=settings.slots_period_duration_minutes,
        slot_capacity=settings.slots_capacity,
        horizon_days=settings.slots_horizon_days,
        skip_weekends=settings.slots_skip_weekends,
        base_wait_minutes=settings.slots_base_wait_minutes,
        hold_ttl_seconds=settings.slots_hold_ttl_seconds,
        grid_cache_ttl_seconds=settings.slots_grid_cache_ttl_seconds,
        sweep_interval_seconds=settings.slots_sweep_interval_seconds,
    )

"""
Pydantic schemas for slots API.
"""

from datetime import date, time
from pydantic import BaseModel, Field


class PeriodWindowResponse(BaseModel):
    """Time window of a lunch period."""
    period: str
    period_start_time: time
    slot_granularity_minutes: int = Field(description="Slot step in minutes (5/15/30)")
    period_duration_minutes: int

    model_config = {"from_attributes": True}


class SlotInfo(BaseModel):
    """Information about a single slot."""
    id: int | str
    location_id: str
    date: date
    time: str  # "HH:MM"
    capacity: int
    remaining: int
    is_available: bool

    model_config = {"from_attributes": True}


class SlotGridResponse(BaseModel):
    """Ordered slots of one location for a date and period."""
    location_id: str
    date: date
    period: str
    slots: list[SlotInfo]

    model_config = {"from_attributes": True}


class OptimalSlotResponse(BaseModel):
    """QuickQueue pick. slot is null when nothing is available."""
    date: date
    period: str
    slot: SlotInfo | None = None
    wait_cost: float | None = None

    model_config = {"from_attributes": True}


class InvalidateResponse(BaseModel):
    location_id: str
    deleted_keys: int
    dates: list[date] | str  # "all" when no dates given


class AvailableSlotsResponse(BaseModel):
    """Bookable slots of a date across all active locations, earliest first."""
    date: date
    period: str | None = None
    slots: list[SlotInfo]

# backend/lunchqueue/routers/slots.py
"""
Slots API endpoints.

GET  /slots/periods/{period} - Time window of a lunch period
GET  /slots/grid             - Ordered slots of a location for a day
GET  /slots/available        - Slots with capacity left, all locations
GET  /slots/optimal          - QuickQueue: lowest-wait slot across locations
POST /slots/invalidate       - Drop cached grids (admin endpoint)
"""

from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query

from ..schemas.slots import (
    AvailableSlotsResponse,
    InvalidateResponse,
    OptimalSlotResponse,
    PeriodWindowResponse,
    SlotGridResponse,
    SlotInfo,
)
from ..services.slots import (
    NotFoundError,
    StoreUnavailableError,
    TimeSlot,
    invalidate_location_cache,
    period_window,
)
from ..services.slots.invalidator import get_affected_dates
from ..services.slots.wiring import SlotServices
from .deps import get_slot_services, store_unavailable


router = APIRouter(prefix="/slots", tags=["slots"])


def _slot_info(slot: TimeSlot) -> SlotInfo:
    return SlotInfo(
        id=slot.id,
        location_id=slot.location_id,
        date=slot.date,
        time=slot.time_str,
        capacity=slot.capacity,
        remaining=slot.remaining,
        is_available=slot.is_available,
    )


@router.get("/periods/{period}", response_model=PeriodWindowResponse)
def get_period_window(
    period: str,
    services: SlotServices = Depends(get_slot_services),
):
    """Start time, granularity and length of a lunch period."""
    try:
        window = period_window(period, services.config)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return PeriodWindowResponse(
        period=period,
        period_start_time=window.start_time,
        slot_granularity_minutes=window.slot_granularity_minutes,
        period_duration_minutes=window.period_duration_minutes,
    )


@router.get("/grid", response_model=SlotGridResponse)
def get_slot_grid(
    location_id: str,
    period: str,
    target_date: date = Query(..., alias="date"),
    services: SlotServices = Depends(get_slot_services),
):
    """Slots of one location for a day and period, earliest first."""
    try:
        slots = services.grid.load(location_id, target_date, period)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreUnavailableError:
        raise store_unavailable()

    return SlotGridResponse(
        location_id=location_id,
        date=target_date,
        period=period,
        slots=[_slot_info(slot) for slot in slots],
    )


@router.get("/available", response_model=AvailableSlotsResponse)
def get_available_slots(
    target_date: date = Query(..., alias="date"),
    period: str | None = None,
    services: SlotServices = Depends(get_slot_services),
):
    """Manual pick list: every slot with places left, all periods unless one is given."""
    try:
        slots = services.grid.available_for_date(target_date, period)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreUnavailableError:
        raise store_unavailable()

    return AvailableSlotsResponse(
        date=target_date,
        period=period,
        slots=[_slot_info(slot) for slot in slots],
    )


@router.get("/optimal", response_model=OptimalSlotResponse)
def get_optimal_slot(
    period: str,
    target_date: date = Query(..., alias="date"),
    preferred_location: str | None = None,
    services: SlotServices = Depends(get_slot_services),
):
    """QuickQueue pick. A null slot means nothing is available, not an error."""
    try:
        slot = services.quick_queue.find_optimal_slot(
            target_date, period, preferred_location=preferred_location,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreUnavailableError:
        raise store_unavailable()

    if slot is None:
        return OptimalSlotResponse(date=target_date, period=period)

    return OptimalSlotResponse(
        date=target_date,
        period=period,
        slot=_slot_info(slot),
        wait_cost=services.quick_queue.allocator.policy.wait_cost(slot),
    )


@router.post("/invalidate", response_model=InvalidateResponse)
def invalidate_slots_cache(
    location_id: str,
    date_start: date | None = None,
    date_end: date | None = None,
    services: SlotServices = Depends(get_slot_services),
):
    """Manually invalidate cached grids for location (admin endpoint)."""
    dates = get_affected_dates(date_start, date_end or date_start) if date_start else None

    deleted = 0
    if services.redis is not None:
        deleted = invalidate_location_cache(services.redis, location_id, dates)

    return InvalidateResponse(
        location_id=location_id,
        deleted_keys=deleted,
        dates=dates if dates else "all",
    )

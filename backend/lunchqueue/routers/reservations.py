# backend/lunchqueue/routers/reservations.py
"""
Reservation API endpoints.

POST   /reservations                - Hold one unit of a slot
GET    /reservations/{id}           - Reservation status
POST   /reservations/{id}/confirm   - Attach the created order
DELETE /reservations/{id}           - Release a hold (cancel=true for confirmed)
"""

import logging
from fastapi import APIRouter, Depends, HTTPException

from ..schemas.reservations import (
    ConfirmRequest,
    ReleaseResponse,
    ReservationResponse,
    ReserveRequest,
)
from ..services.slots import (
    CannotReleaseConfirmedError,
    DuplicateReservationError,
    HoldReleasedError,
    NotFoundError,
    Rejected,
    RejectReason,
    StoreUnavailableError,
)
from ..services.slots.checkout import DUPLICATE_MESSAGE, SLOT_FULL_MESSAGE, SLOT_STARTED_MESSAGE
from ..services.slots.grid import is_bookable_date
from ..services.slots.wiring import SlotServices
from .deps import get_slot_services, store_unavailable

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reservations", tags=["reservations"])


def _reservation_response(services: SlotServices, reservation_id: str) -> ReservationResponse:
    record = services.store.get_reservation(reservation_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Reservation not found")

    return ReservationResponse(
        reservation_id=record.id,
        user_id=record.user_id,
        slot_id=record.slot_id,
        date=record.date,
        status=record.status,
        held_until=record.held_until,
        order_id=record.order_id,
    )


@router.post("", response_model=ReservationResponse, status_code=201)
def create_reservation(
    data: ReserveRequest,
    services: SlotServices = Depends(get_slot_services),
):
    """
    Hold a slot for the user until confirmed or hold_ttl_seconds pass.

    409 when the slot filled up meanwhile, its pickup time passed,
    or the user already ordered that day.
    """
    try:
        slot = services.store.get_slot(data.slot_id)
        if slot is None:
            raise HTTPException(status_code=404, detail="Slot not found")
        if not is_bookable_date(slot.date, services.grid.today(), services.config):
            raise HTTPException(status_code=404, detail="Slot is outside the booking window")

        result = services.coordinator.reserve(data.user_id, slot)
    except DuplicateReservationError:
        raise HTTPException(status_code=409, detail=DUPLICATE_MESSAGE)
    except StoreUnavailableError:
        raise store_unavailable()

    if isinstance(result, Rejected):
        if result.reason == RejectReason.SLOT_STARTED:
            raise HTTPException(status_code=409, detail=SLOT_STARTED_MESSAGE)
        raise HTTPException(status_code=409, detail=SLOT_FULL_MESSAGE)

    return ReservationResponse(
        reservation_id=result.reservation_id,
        user_id=result.user_id,
        slot_id=result.slot_id,
        date=result.date,
        status="held",
        held_until=result.held_until,
    )


@router.get("/{reservation_id}", response_model=ReservationResponse)
def get_reservation(
    reservation_id: str,
    services: SlotServices = Depends(get_slot_services),
):
    try:
        return _reservation_response(services, reservation_id)
    except StoreUnavailableError:
        raise store_unavailable()


@router.post("/{reservation_id}/confirm", response_model=ReservationResponse)
def confirm_reservation(
    reservation_id: str,
    data: ConfirmRequest,
    services: SlotServices = Depends(get_slot_services),
):
    """Make a hold permanent for the created order. Repeating is harmless."""
    try:
        handle = services.coordinator.handle_for(reservation_id)
        services.coordinator.confirm(handle, data.order_id)
        return _reservation_response(services, reservation_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except HoldReleasedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StoreUnavailableError:
        raise store_unavailable()


@router.delete("/{reservation_id}", response_model=ReleaseResponse)
def release_reservation(
    reservation_id: str,
    cancel: bool = False,
    services: SlotServices = Depends(get_slot_services),
):
    """Release a hold. Confirmed reservations need cancel=true."""
    try:
        handle = services.coordinator.handle_for(reservation_id)
        services.coordinator.release(handle, cancel=cancel)
        record = services.store.get_reservation(reservation_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CannotReleaseConfirmedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StoreUnavailableError:
        raise store_unavailable()

    logger.info(f"Reservation {reservation_id} released via API (cancel={cancel})")

    return ReleaseResponse(reservation_id=reservation_id, status=record.status)

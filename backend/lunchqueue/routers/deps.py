from fastapi import HTTPException, Request

from ..services.slots.checkout import RETRY_MESSAGE
from ..services.slots.wiring import SlotServices


def get_slot_services(request: Request) -> SlotServices:
    """Slot services built at startup (see main.lifespan)."""
    return request.app.state.slot_services


def store_unavailable() -> HTTPException:
    return HTTPException(status_code=503, detail=RETRY_MESSAGE)

"""
Pydantic schemas for reservations API.
"""

from datetime import date, datetime
from pydantic import BaseModel, Field


class ReserveRequest(BaseModel):
    """Hold one unit of a slot for a user."""
    user_id: str = Field(min_length=1)
    slot_id: int | str


class ReservationResponse(BaseModel):
    """A held or confirmed reservation."""
    reservation_id: str
    user_id: str
    slot_id: int | str
    date: date
    status: str
    held_until: datetime
    order_id: str | None = None

    model_config = {"from_attributes": True}


class ConfirmRequest(BaseModel):
    order_id: str = Field(min_length=1)


class ReleaseResponse(BaseModel):
    reservation_id: str
    status: str

# backend/lunchqueue/services/slots/errors.py
"""
Errors raised by the slots subsystem.

A full slot is not an error: reserve() returns Rejected(SLOT_FULL),
and "no slot anywhere" is find_optimal_slot() returning None.
"""


class SlotsError(Exception):
    """Base class for slot allocation errors."""


class NotFoundError(SlotsError):
    """Unknown or inactive location, unknown period, or date outside the booking window."""


class DuplicateReservationError(SlotsError):
    """The user already holds a reservation for that date."""

    def __init__(self, user_id: str, date_str: str):
        super().__init__(f"User {user_id} already has a reservation on {date_str}")
        self.user_id = user_id
        self.date = date_str


class CannotReleaseConfirmedError(SlotsError):
    """release() on a confirmed reservation without an explicit cancellation."""


class HoldReleasedError(SlotsError):
    """confirm() on a hold that was already released or expired."""


class StoreUnavailableError(SlotsError):
    """The slot store could not be reached. Safe for the caller to retry later."""

# backend/lunchqueue/services/slots/sweeper.py
"""
Hold sweeper loop.

Releases provisional holds that were never confirmed (crashed or
abandoned clients), so their capacity goes back on sale.

Started as asyncio task in the app lifespan. reserve() and confirm()
also expire the user's own overdue holds lazily, so the sweep interval
only bounds how long other users see the capacity as taken.
"""

import asyncio
import logging

from .reservations import ReservationCoordinator

logger = logging.getLogger(__name__)


def sweep_expired_holds(coordinator: ReservationCoordinator) -> int:
    """One sweep pass. Returns number of holds expired."""
    expired = coordinator.expire_holds()
    if expired:
        logger.info(f"Expired {expired} hold(s)")
    return expired


async def hold_sweeper_loop(coordinator: ReservationCoordinator, interval: float) -> None:
    """Run sweep_expired_holds every `interval` seconds until cancelled."""
    logger.info("hold_sweeper_loop started")

    while True:
        try:
            # Store calls are blocking: keep them off the event loop
            await asyncio.to_thread(sweep_expired_holds, coordinator)
            await asyncio.sleep(interval)

        except asyncio.CancelledError:
            logger.info("hold_sweeper_loop cancelled")
            raise
        except Exception:
            logger.exception(f"hold_sweeper_loop error, retrying in {interval}s")
            await asyncio.sleep(interval)

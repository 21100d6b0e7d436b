import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from redis.exceptions import RedisError

from .config import settings
from .routers import reservations, slots
from .services.slots.sweeper import hold_sweeper_loop
from .services.slots.wiring import SlotServices, build_slot_services

logger = logging.getLogger(__name__)


def _default_services() -> SlotServices:
    from .database import SessionLocal, init_db
    from .redis_client import redis_client

    if settings.sandbox_mode:
        return build_slot_services(None, redis_client, sandbox=True)

    init_db()
    return build_slot_services(SessionLocal, redis_client)


def create_app(services: SlotServices | None = None, run_sweeper: bool = True) -> FastAPI:
    """
    Build the API app.

    Services are built once at startup unless given (tests pass their own).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.slot_services = services or _default_services()

        sweeper = None
        if run_sweeper:
            sweeper = asyncio.create_task(hold_sweeper_loop(
                app.state.slot_services.coordinator,
                app.state.slot_services.config.sweep_interval_seconds,
            ))
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
                with suppress(asyncio.CancelledError):
                    await sweeper

    app = FastAPI(title="Lunch Pickup Slots API", lifespan=lifespan)
    app.include_router(slots.router)
    app.include_router(reservations.router)

    @app.get("/health")
    def health():
        redis = app.state.slot_services.redis
        if redis is None:
            return {"redis": False}
        try:
            return {"redis": bool(redis.ping())}
        except RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return {"redis": False}

    return app


app = create_app()

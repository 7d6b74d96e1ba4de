"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fleetdesk.config import get_settings
from fleetdesk.database import close_pool, close_postgrest
from fleetdesk.events import notify_dashboard_stats
from fleetdesk.realtime.hub import BroadcastHub
from fleetdesk.realtime.messages import DASHBOARD_GROUP
from fleetdesk.realtime.registry import HubRef
from fleetdesk.services.dashboard import fetch_dashboard_stats

logger = logging.getLogger("fleetdesk.live")


# ── Background task: pushes dashboard stats to the room every N seconds ──


async def _broadcast_dashboard_stats(hub_ref: HubRef, interval: int, recent_limit: int):
    """Infinite loop that refreshes the stats of everyone watching the dashboard."""
    while True:
        await asyncio.sleep(interval)
        hub = hub_ref.get()
        if hub is None or not hub.members(DASHBOARD_GROUP):
            continue
        try:
            stats = await fetch_dashboard_stats(recent_limit)
            task = notify_dashboard_stats(hub_ref, stats)
            delivered = await task if task else 0
            logger.info("Live: pushed dashboard stats to %d clients", delivered)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Periodic dashboard stats push failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    settings = get_settings()
    hub_ref: HubRef = app.state.hub_ref

    # Startup: one hub for the whole process, shared by listener and handlers
    hub_ref.install(BroadcastHub())
    stats_task: asyncio.Task | None = None
    if settings.STATS_BROADCAST_INTERVAL > 0:
        stats_task = asyncio.create_task(
            _broadcast_dashboard_stats(
                hub_ref, settings.STATS_BROADCAST_INTERVAL, settings.RECENT_LIMIT
            )
        )
        logger.info("Dashboard stats push started (every %ds)", settings.STATS_BROADCAST_INTERVAL)
    yield
    # Shutdown: stop the push, drop the hub, close data clients
    if stats_task:
        stats_task.cancel()
        try:
            await stats_task
        except asyncio.CancelledError:
            pass
    await hub_ref.shutdown()
    await close_postgrest()
    await close_pool()


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version="0.1.0",
        lifespan=lifespan,
    )
    # Set before startup so early reads see "no hub yet" rather than nothing
    app.state.hub_ref = HubRef()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ())[1:])
        message = first.get("msg", "Invalid request")
        return JSONResponse(
            status_code=400,
            content={"detail": f"{field}: {message}" if field else message, "errors": jsonable_encoder(errors)},
        )

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "hub": app.state.hub_ref.state.value}

    # ── API routers ──
    from fleetdesk.api.dashboard import health_router
    from fleetdesk.api.dashboard import router as dashboard_router
    from fleetdesk.api.maintenance import router as maintenance_router
    from fleetdesk.api.realtime import build_realtime_router
    from fleetdesk.api.trash import router as trash_router
    from fleetdesk.api.trucks import router as trucks_router

    app.include_router(dashboard_router, prefix="/api")
    app.include_router(health_router, prefix="/api")
    app.include_router(trucks_router, prefix="/api")
    app.include_router(maintenance_router, prefix="/api")
    app.include_router(trash_router, prefix="/api")
    app.include_router(build_realtime_router(settings.SOCKET_PATH))

    return app


app = create_app()

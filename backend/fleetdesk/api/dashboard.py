"""API routes for the dashboard."""

import logging

from fastapi import APIRouter, HTTPException

from fleetdesk.config import get_settings
from fleetdesk.schemas.dashboard import DashboardStatsResponse
from fleetdesk.services.dashboard import fetch_dashboard_stats, ping_database

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])
health_router = APIRouter(prefix="/health", tags=["Health"])


# ── GET /dashboard/stats ───────────────────────────


@router.get(
    "/stats",
    response_model=DashboardStatsResponse,
    summary="Aggregate fleet statistics",
)
async def get_dashboard_stats():
    """
    Return truck counts, upcoming / overdue maintenance, the six-month
    maintenance spend and the most recent trucks and maintenance records.
    """
    try:
        stats = await fetch_dashboard_stats(get_settings().RECENT_LIMIT)
        return DashboardStatsResponse(**stats)
    except Exception:
        logger.exception("Dashboard stats endpoint failed")
        raise HTTPException(status_code=500, detail="Failed to fetch dashboard stats")


# ── GET /health/db ─────────────────────────────────


@health_router.get("/db", summary="Database connectivity check")
async def database_health():
    try:
        result = await ping_database()
    except Exception as exc:
        logger.warning("Database health check failed: %s", exc)
        raise HTTPException(status_code=503, detail="Database unreachable")
    return {"status": "ok", "result": result}

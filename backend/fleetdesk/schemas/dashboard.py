"""Pydantic schemas for the dashboard endpoints."""

from pydantic import BaseModel, Field


class DashboardStatsResponse(BaseModel):
    """Response for GET /dashboard/stats."""
    total_trucks: int
    active_trucks: int
    upcoming_maintenance: int = Field(
        description="Scheduled within the next 30 days, or in progress"
    )
    overdue_repairs: int = Field(description="Scheduled and already past due")
    total_maintenance_cost: float = Field(description="Sum over the last six months")
    recent_trucks: list[dict]
    recent_maintenance: list[dict]

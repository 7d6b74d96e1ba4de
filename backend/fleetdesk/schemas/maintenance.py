"""Pydantic schemas for the maintenance endpoints."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class MaintenanceStatus(str, Enum):
    scheduled = "SCHEDULED"
    in_progress = "IN_PROGRESS"
    completed = "COMPLETED"
    cancelled = "CANCELLED"


class MaintenanceCreate(BaseModel):
    """Body for POST /maintenance."""
    truck_id: UUID
    mechanic_id: UUID | None = None
    service_type: str = Field(min_length=1)
    description: str | None = None
    date_performed: datetime
    next_service_due: datetime | None = None
    parts_cost: float = Field(default=0, ge=0)
    labor_cost: float = Field(default=0, ge=0)
    total_cost: float | None = Field(default=None, ge=0, description="Defaults to parts + labor")
    status: MaintenanceStatus = MaintenanceStatus.scheduled

    @model_validator(mode="after")
    def _fill_total(self):
        if self.total_cost is None:
            self.total_cost = round(self.parts_cost + self.labor_cost, 2)
        return self


class MaintenanceUpdate(BaseModel):
    """Body for PUT /maintenance/{id}. Only the fields sent are changed."""
    mechanic_id: UUID | None = None
    service_type: str | None = Field(default=None, min_length=1)
    description: str | None = None
    date_performed: datetime | None = None
    next_service_due: datetime | None = None
    parts_cost: float | None = Field(default=None, ge=0)
    labor_cost: float | None = Field(default=None, ge=0)
    total_cost: float | None = Field(default=None, ge=0)
    status: MaintenanceStatus | None = None


class MaintenanceItem(BaseModel):
    id: UUID
    truck_id: UUID
    mechanic_id: UUID | None = None
    service_type: str
    description: str | None = None
    date_performed: datetime
    next_service_due: datetime | None = None
    parts_cost: float
    labor_cost: float
    total_cost: float
    status: str
    created_at: datetime
    updated_at: datetime


class MaintenanceMutationResponse(BaseModel):
    message: str
    data: MaintenanceItem | None = None

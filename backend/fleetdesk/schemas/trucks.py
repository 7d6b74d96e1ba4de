"""Pydantic schemas for the truck endpoints."""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, Field


class TruckStatus(str, Enum):
    active = "ACTIVE"
    inactive = "INACTIVE"
    maintenance = "MAINTENANCE"


def _check_year(value: int) -> int:
    max_year = datetime.now(timezone.utc).year + 1
    if value < 1900 or value > max_year:
        raise ValueError(f"Year must be between 1900 and {max_year}")
    return value


ModelYear = Annotated[int, AfterValidator(_check_year)]


class TruckCreate(BaseModel):
    """Body for POST /trucks."""
    vin: str = Field(min_length=1, max_length=17)
    make: str = Field(min_length=1)
    model: str = Field(min_length=1)
    year: ModelYear
    license_plate: str = Field(min_length=1, max_length=20)
    current_mileage: int = Field(ge=0, description="Mileage cannot be negative")
    status: TruckStatus = TruckStatus.active


class TruckUpdate(BaseModel):
    """Body for PUT /trucks/{id}. Only the fields sent are changed."""
    vin: str | None = Field(default=None, min_length=1, max_length=17)
    make: str | None = Field(default=None, min_length=1)
    model: str | None = Field(default=None, min_length=1)
    year: ModelYear | None = None
    license_plate: str | None = Field(default=None, min_length=1, max_length=20)
    current_mileage: int | None = Field(default=None, ge=0)
    status: TruckStatus | None = None


class TruckItem(BaseModel):
    id: UUID
    vin: str
    make: str
    model: str
    year: int
    license_plate: str
    current_mileage: int
    status: str
    created_at: datetime
    updated_at: datetime


class TruckMutationResponse(BaseModel):
    message: str
    data: TruckItem | None = None

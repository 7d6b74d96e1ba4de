"""Pydantic schemas for the trash (soft-delete) endpoints."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class TrashType(str, Enum):
    truck = "truck"
    maintenance = "maintenance"
    mechanic = "mechanic"


class RestoreRequest(BaseModel):
    type: TrashType
    id: UUID


class RestoreResponse(BaseModel):
    message: str
    item: dict


class TrashListResponse(BaseModel):
    trucks: list[dict]
    maintenance: list[dict]
    mechanics: list[dict]

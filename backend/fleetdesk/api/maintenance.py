"""API routes for maintenance records."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from fleetdesk.events import notify_maintenance_change
from fleetdesk.realtime.messages import Action
from fleetdesk.realtime.registry import HubRef, get_hub_ref
from fleetdesk.schemas.maintenance import (
    MaintenanceCreate,
    MaintenanceItem,
    MaintenanceMutationResponse,
    MaintenanceUpdate,
)
from fleetdesk.services import maintenance as maintenance_service
from fleetdesk.services import trucks as truck_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/maintenance", tags=["Maintenance"])


@router.get("", response_model=list[MaintenanceItem], summary="List maintenance records")
async def list_maintenance(
    truck_id: UUID | None = Query(default=None),
    status: str | None = Query(default=None, description="Record status, or 'all'"),
    limit: int | None = Query(default=None, ge=1, le=500),
):
    try:
        return await maintenance_service.list_maintenance(truck_id, status, limit)
    except Exception:
        logger.exception("Listing maintenance records failed")
        raise HTTPException(status_code=500, detail="Failed to fetch maintenance records")


@router.post(
    "",
    response_model=MaintenanceMutationResponse,
    status_code=201,
    summary="Create a maintenance record",
)
async def create_maintenance(body: MaintenanceCreate, hub_ref: HubRef = Depends(get_hub_ref)):
    try:
        if not await truck_service.get_truck(body.truck_id):
            raise HTTPException(status_code=400, detail="Truck does not exist")
        record = await maintenance_service.create_maintenance(body.model_dump(mode="json"))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Creating maintenance record failed")
        raise HTTPException(status_code=500, detail="Failed to create maintenance record")

    notify_maintenance_change(hub_ref, Action.CREATED, record)
    return MaintenanceMutationResponse(message="Maintenance record created successfully", data=record)


@router.get("/{record_id}", response_model=MaintenanceItem, summary="Get a maintenance record")
async def get_maintenance(record_id: UUID):
    try:
        record = await maintenance_service.get_maintenance(record_id)
    except Exception:
        logger.exception("Fetching maintenance record %s failed", record_id)
        raise HTTPException(status_code=500, detail="Failed to fetch maintenance record")
    if not record:
        raise HTTPException(status_code=404, detail="Maintenance record not found")
    return record


@router.put(
    "/{record_id}",
    response_model=MaintenanceMutationResponse,
    summary="Update a maintenance record",
)
async def update_maintenance(
    record_id: UUID,
    body: MaintenanceUpdate,
    hub_ref: HubRef = Depends(get_hub_ref),
):
    try:
        if not await maintenance_service.get_maintenance(record_id):
            raise HTTPException(status_code=404, detail="Maintenance record not found")
        changes = body.model_dump(mode="json", exclude_unset=True)
        record = await maintenance_service.update_maintenance(record_id, changes)
        if not record:
            raise HTTPException(status_code=404, detail="Maintenance record not found")
    except HTTPException:
        raise
    except Exception:
        logger.exception("Updating maintenance record %s failed", record_id)
        raise HTTPException(status_code=500, detail="Failed to update maintenance record")

    notify_maintenance_change(hub_ref, Action.UPDATED, record)
    return MaintenanceMutationResponse(message="Maintenance record updated successfully", data=record)


@router.delete(
    "/{record_id}",
    response_model=MaintenanceMutationResponse,
    summary="Move a maintenance record to the trash",
)
async def delete_maintenance(
    record_id: UUID,
    hub_ref: HubRef = Depends(get_hub_ref),
    x_user_id: str | None = Header(default=None),
):
    try:
        existing = await maintenance_service.get_maintenance(record_id)
        if not existing:
            raise HTTPException(status_code=404, detail="Maintenance record not found")
        record = await maintenance_service.soft_delete_maintenance(record_id, deleted_by=x_user_id)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Deleting maintenance record %s failed", record_id)
        raise HTTPException(status_code=500, detail="Failed to delete maintenance record")

    notify_maintenance_change(hub_ref, Action.DELETED, record or existing)
    return MaintenanceMutationResponse(message="Maintenance record moved to trash successfully")

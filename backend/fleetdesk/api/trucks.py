"""API routes for trucks."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from fleetdesk.events import notify_truck_change
from fleetdesk.realtime.messages import Action
from fleetdesk.realtime.registry import HubRef, get_hub_ref
from fleetdesk.schemas.trucks import (
    TruckCreate,
    TruckItem,
    TruckMutationResponse,
    TruckUpdate,
)
from fleetdesk.services import trucks as truck_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trucks", tags=["Trucks"])


# ── GET /trucks ─────────────────────────────────────


@router.get("", response_model=list[TruckItem], summary="List trucks")
async def list_trucks(
    search: str | None = Query(default=None, description="Matches VIN, make, model or plate"),
    status: str | None = Query(default=None, description="Truck status, or 'all'"),
    limit: int | None = Query(default=None, ge=1, le=500),
):
    try:
        return await truck_service.list_trucks(search, status, limit)
    except Exception:
        logger.exception("Listing trucks failed")
        raise HTTPException(status_code=500, detail="Failed to fetch trucks")


# ── POST /trucks ────────────────────────────────────


@router.post(
    "",
    response_model=TruckMutationResponse,
    status_code=201,
    summary="Create a truck",
)
async def create_truck(body: TruckCreate, hub_ref: HubRef = Depends(get_hub_ref)):
    try:
        if await truck_service.find_by_vin(body.vin):
            raise HTTPException(status_code=400, detail=f"Truck with VIN {body.vin} already exists")
        if await truck_service.find_active_by_plate(body.license_plate):
            raise HTTPException(
                status_code=400,
                detail=f"Truck with license plate {body.license_plate} already exists",
            )

        truck = await truck_service.create_truck(body.model_dump(mode="json"))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Creating truck failed")
        raise HTTPException(status_code=500, detail="Failed to create truck")

    notify_truck_change(hub_ref, Action.CREATED, truck)
    return TruckMutationResponse(message="Truck created successfully", data=truck)


# ── GET /trucks/{truck_id} ──────────────────────────


@router.get("/{truck_id}", response_model=TruckItem, summary="Get a truck")
async def get_truck(truck_id: UUID):
    try:
        truck = await truck_service.get_truck(truck_id)
    except Exception:
        logger.exception("Fetching truck %s failed", truck_id)
        raise HTTPException(status_code=500, detail="Failed to fetch truck")
    if not truck:
        raise HTTPException(status_code=404, detail="Truck not found")
    return truck


# ── PUT /trucks/{truck_id} ──────────────────────────


@router.put("/{truck_id}", response_model=TruckMutationResponse, summary="Update a truck")
async def update_truck(
    truck_id: UUID,
    body: TruckUpdate,
    hub_ref: HubRef = Depends(get_hub_ref),
):
    try:
        existing = await truck_service.get_truck(truck_id)
        if not existing:
            raise HTTPException(status_code=404, detail="Truck not found")

        changes = body.model_dump(mode="json", exclude_unset=True)
        if "vin" in changes and changes["vin"] != existing["vin"]:
            if await truck_service.find_by_vin(changes["vin"]):
                raise HTTPException(status_code=400, detail="Truck with this VIN already exists")
        if "license_plate" in changes and changes["license_plate"] != existing["license_plate"]:
            if await truck_service.find_active_by_plate(changes["license_plate"]):
                raise HTTPException(
                    status_code=400, detail="Truck with this license plate already exists"
                )

        truck = await truck_service.update_truck(truck_id, changes)
        if not truck:
            raise HTTPException(status_code=404, detail="Truck not found")
    except HTTPException:
        raise
    except Exception:
        logger.exception("Updating truck %s failed", truck_id)
        raise HTTPException(status_code=500, detail="Failed to update truck")

    notify_truck_change(hub_ref, Action.UPDATED, truck)
    return TruckMutationResponse(message="Truck updated successfully", data=truck)


# ── DELETE /trucks/{truck_id} ───────────────────────


@router.delete("/{truck_id}", response_model=TruckMutationResponse, summary="Move a truck to the trash")
async def delete_truck(
    truck_id: UUID,
    hub_ref: HubRef = Depends(get_hub_ref),
    x_user_id: str | None = Header(default=None),
):
    try:
        existing = await truck_service.get_truck(truck_id)
        if not existing:
            raise HTTPException(status_code=404, detail="Truck not found")
        truck = await truck_service.soft_delete_truck(truck_id, deleted_by=x_user_id)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Deleting truck %s failed", truck_id)
        raise HTTPException(status_code=500, detail="Failed to delete truck")

    notify_truck_change(hub_ref, Action.DELETED, truck or existing)
    return TruckMutationResponse(message="Truck moved to trash successfully")

"""API routes for the trash (soft-deleted trucks, maintenance, mechanics)."""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException

from fleetdesk.events import notify_maintenance_change, notify_truck_change
from fleetdesk.realtime.messages import Action
from fleetdesk.realtime.registry import HubRef, get_hub_ref
from fleetdesk.schemas.trash import (
    RestoreRequest,
    RestoreResponse,
    TrashListResponse,
    TrashType,
)
from fleetdesk.services import trash as trash_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/trash", tags=["Trash"])


@router.get("", response_model=TrashListResponse, summary="List soft-deleted items")
async def list_trash():
    try:
        trucks, maintenance, mechanics = await asyncio.gather(
            trash_service.list_deleted("truck"),
            trash_service.list_deleted("maintenance"),
            trash_service.list_deleted("mechanic"),
        )
    except Exception:
        logger.exception("Listing trash failed")
        raise HTTPException(status_code=500, detail="Failed to fetch trash")
    return TrashListResponse(trucks=trucks, maintenance=maintenance, mechanics=mechanics)


@router.post("/restore", response_model=RestoreResponse, summary="Restore a soft-deleted item")
async def restore_item(body: RestoreRequest, hub_ref: HubRef = Depends(get_hub_ref)):
    try:
        item = await trash_service.restore(body.type.value, body.id)
    except Exception:
        logger.exception("Restoring %s %s failed", body.type.value, body.id)
        raise HTTPException(status_code=500, detail="Failed to restore item")
    if not item:
        raise HTTPException(status_code=404, detail=f"No deleted {body.type.value} with that id")

    if body.type is TrashType.truck:
        notify_truck_change(hub_ref, Action.UPDATED, item)
    elif body.type is TrashType.maintenance:
        notify_maintenance_change(hub_ref, Action.UPDATED, item)
    return RestoreResponse(message=f"{body.type.value} restored successfully", item=item)

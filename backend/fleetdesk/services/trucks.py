"""Service layer: truck CRUD through the Supabase PostgREST API.

Plain row reads and writes go through PostgREST; soft delete flips
``is_deleted`` instead of removing the row so the trash can restore it.
"""

from datetime import datetime, timezone
from uuid import UUID

from fleetdesk.database import get_postgrest

TABLE = "trucks"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def list_trucks(
    search: str | None = None,
    status: str | None = None,
    limit: int | None = None,
) -> list[dict]:
    """Non-deleted trucks, newest first."""
    query = (
        get_postgrest()
        .from_(TABLE)
        .select("*")
        .eq("is_deleted", "false")
    )
    if search:
        pattern = f"*{search}*"
        query = query.or_(
            f"vin.ilike.{pattern},make.ilike.{pattern},"
            f"model.ilike.{pattern},license_plate.ilike.{pattern}"
        )
    if status and status != "all":
        query = query.eq("status", status)
    query = query.order("created_at", desc=True)
    if limit:
        query = query.limit(limit)
    response = await query.execute()
    return response.data


async def get_truck(truck_id: UUID, include_deleted: bool = False) -> dict | None:
    query = get_postgrest().from_(TABLE).select("*").eq("id", str(truck_id))
    if not include_deleted:
        query = query.eq("is_deleted", "false")
    response = await query.limit(1).execute()
    return response.data[0] if response.data else None


async def find_by_vin(vin: str) -> dict | None:
    """Any truck with this VIN, deleted or not (VINs are globally unique)."""
    response = await (
        get_postgrest().from_(TABLE).select("id").eq("vin", vin).limit(1).execute()
    )
    return response.data[0] if response.data else None


async def find_active_by_plate(license_plate: str) -> dict | None:
    response = await (
        get_postgrest()
        .from_(TABLE)
        .select("id")
        .eq("license_plate", license_plate)
        .eq("is_deleted", "false")
        .limit(1)
        .execute()
    )
    return response.data[0] if response.data else None


async def create_truck(data: dict) -> dict:
    response = await get_postgrest().from_(TABLE).insert(data).execute()
    return response.data[0]


async def update_truck(truck_id: UUID, changes: dict) -> dict | None:
    changes = {**changes, "updated_at": _now()}
    response = await (
        get_postgrest().from_(TABLE).update(changes).eq("id", str(truck_id)).execute()
    )
    return response.data[0] if response.data else None


async def soft_delete_truck(truck_id: UUID, deleted_by: str | None = None) -> dict | None:
    """Move a truck and all of its maintenance records to the trash."""
    marker = {"is_deleted": True, "deleted_at": _now(), "deleted_by": deleted_by}
    client = get_postgrest()
    await (
        client.from_("maintenance_records")
        .update(marker)
        .eq("truck_id", str(truck_id))
        .execute()
    )
    response = await client.from_(TABLE).update(marker).eq("id", str(truck_id)).execute()
    return response.data[0] if response.data else None

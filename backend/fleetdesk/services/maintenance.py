"""Service layer: maintenance record CRUD through the Supabase PostgREST API."""

from datetime import datetime, timezone
from uuid import UUID

from fleetdesk.database import get_postgrest

TABLE = "maintenance_records"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def list_maintenance(
    truck_id: UUID | None = None,
    status: str | None = None,
    limit: int | None = None,
) -> list[dict]:
    """Non-deleted records, newest first."""
    query = get_postgrest().from_(TABLE).select("*").eq("is_deleted", "false")
    if truck_id:
        query = query.eq("truck_id", str(truck_id))
    if status and status != "all":
        query = query.eq("status", status)
    query = query.order("created_at", desc=True)
    if limit:
        query = query.limit(limit)
    response = await query.execute()
    return response.data


async def get_maintenance(record_id: UUID) -> dict | None:
    response = await (
        get_postgrest()
        .from_(TABLE)
        .select("*")
        .eq("id", str(record_id))
        .eq("is_deleted", "false")
        .limit(1)
        .execute()
    )
    return response.data[0] if response.data else None


async def create_maintenance(data: dict) -> dict:
    response = await get_postgrest().from_(TABLE).insert(data).execute()
    return response.data[0]


async def update_maintenance(record_id: UUID, changes: dict) -> dict | None:
    changes = {**changes, "updated_at": _now()}
    response = await (
        get_postgrest().from_(TABLE).update(changes).eq("id", str(record_id)).execute()
    )
    return response.data[0] if response.data else None


async def soft_delete_maintenance(record_id: UUID, deleted_by: str | None = None) -> dict | None:
    marker = {"is_deleted": True, "deleted_at": _now(), "deleted_by": deleted_by}
    response = await (
        get_postgrest().from_(TABLE).update(marker).eq("id", str(record_id)).execute()
    )
    return response.data[0] if response.data else None

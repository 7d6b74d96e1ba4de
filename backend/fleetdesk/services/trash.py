"""Service layer: listing and restoring soft-deleted rows."""

from uuid import UUID

from fleetdesk.database import get_postgrest

TABLES = {
    "truck": "trucks",
    "maintenance": "maintenance_records",
    "mechanic": "mechanics",
}


async def list_deleted(kind: str) -> list[dict]:
    response = await (
        get_postgrest()
        .from_(TABLES[kind])
        .select("*")
        .eq("is_deleted", "true")
        .order("deleted_at", desc=True)
        .execute()
    )
    return response.data


async def restore(kind: str, item_id: UUID) -> dict | None:
    """Clear the soft-delete markers. Returns the restored row or None."""
    response = await (
        get_postgrest()
        .from_(TABLES[kind])
        .update({"is_deleted": False, "deleted_at": None, "deleted_by": None})
        .eq("id", str(item_id))
        .eq("is_deleted", "true")
        .execute()
    )
    return response.data[0] if response.data else None

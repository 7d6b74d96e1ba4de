"""Service layer: aggregate SQL for the dashboard.

Uses asyncpg directly (pool) for counts and sums.
Supabase PostgREST does not support GROUP BY / aggregates,
so we use raw SQL here.
"""

from datetime import datetime, timedelta, timezone

from fleetdesk.database import get_pool

UPCOMING_WINDOW = timedelta(days=30)
COST_WINDOW = timedelta(days=6 * 30)


async def fetch_dashboard_stats(recent_limit: int = 5) -> dict:
    """Counts, six-month cost and the most recent trucks / maintenance."""
    pool = await get_pool()
    now = datetime.now(timezone.utc)

    counts = await pool.fetchrow("""
        SELECT
            (SELECT COUNT(*) FROM trucks WHERE NOT is_deleted)::int AS total_trucks,
            (SELECT COUNT(*) FROM trucks
              WHERE NOT is_deleted AND status = 'ACTIVE')::int AS active_trucks,
            (SELECT COUNT(*) FROM maintenance_records
              WHERE NOT is_deleted
                AND (
                    (status = 'SCHEDULED' AND next_service_due BETWEEN $1 AND $2)
                    OR status = 'IN_PROGRESS'
                ))::int AS upcoming_maintenance,
            (SELECT COUNT(*) FROM maintenance_records
              WHERE NOT is_deleted
                AND status = 'SCHEDULED'
                AND next_service_due < $1)::int AS overdue_repairs,
            (SELECT COALESCE(SUM(total_cost), 0) FROM maintenance_records
              WHERE NOT is_deleted AND date_performed >= $3) AS total_maintenance_cost
    """, now, now + UPCOMING_WINDOW, now - COST_WINDOW)

    recent_trucks = await fetch_recent_trucks(recent_limit)
    recent_maintenance = await fetch_recent_maintenance(recent_limit)

    return {
        "total_trucks": counts["total_trucks"],
        "active_trucks": counts["active_trucks"],
        "upcoming_maintenance": counts["upcoming_maintenance"],
        "overdue_repairs": counts["overdue_repairs"],
        "total_maintenance_cost": float(counts["total_maintenance_cost"]),
        "recent_trucks": recent_trucks,
        "recent_maintenance": recent_maintenance,
    }


async def fetch_recent_trucks(limit: int = 5) -> list[dict]:
    pool = await get_pool()
    rows = await pool.fetch("""
        SELECT id, vin, make, model, year, license_plate, current_mileage,
               status, created_at, updated_at
        FROM trucks
        WHERE NOT is_deleted
        ORDER BY created_at DESC
        LIMIT $1
    """, limit)
    return [dict(r) for r in rows]


async def fetch_recent_maintenance(limit: int = 5) -> list[dict]:
    """Latest maintenance records with a short summary of their truck."""
    pool = await get_pool()
    rows = await pool.fetch("""
        SELECT
            m.id,
            m.truck_id,
            m.service_type,
            m.date_performed,
            m.next_service_due,
            m.total_cost::float AS total_cost,
            m.status,
            m.created_at,
            t.vin           AS truck_vin,
            t.make          AS truck_make,
            t.model         AS truck_model,
            t.year          AS truck_year,
            t.license_plate AS truck_license_plate
        FROM maintenance_records m
        JOIN trucks t ON t.id = m.truck_id
        WHERE NOT m.is_deleted
        ORDER BY m.created_at DESC
        LIMIT $1
    """, limit)

    records = []
    for r in rows:
        record = dict(r)
        record["truck"] = {
            "id": record["truck_id"],
            "vin": record.pop("truck_vin"),
            "make": record.pop("truck_make"),
            "model": record.pop("truck_model"),
            "year": record.pop("truck_year"),
            "license_plate": record.pop("truck_license_plate"),
        }
        records.append(record)
    return records


async def ping_database() -> int:
    """Round-trip a trivial query; used by the health check."""
    pool = await get_pool()
    return await pool.fetchval("SELECT 1")

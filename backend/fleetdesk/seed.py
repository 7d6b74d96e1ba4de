"""
Seed script: populates the database with a small demo fleet.

~12 trucks, 4 mechanics and a year of maintenance history per truck.
Uses asyncpg with COPY protocol for the maintenance bulk insert.

Usage:
    cd backend
    python -m fleetdesk.bootstrap
    python -m fleetdesk.seed
"""

import asyncio
import random
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from fleetdesk.database import close_pool, get_pool

# ──────────────────────────────────────────────
# Fixed fleet definitions
# ──────────────────────────────────────────────

TRUCKS = [
    ("Freightliner", "Cascadia", 2021),
    ("Freightliner", "M2 106", 2019),
    ("Volvo", "VNL 860", 2022),
    ("Volvo", "VNR 640", 2020),
    ("Kenworth", "T680", 2023),
    ("Kenworth", "W990", 2018),
    ("Peterbilt", "579", 2021),
    ("Peterbilt", "389", 2017),
    ("Mack", "Anthem", 2022),
    ("Mack", "Granite", 2016),
    ("International", "LT", 2020),
    ("International", "HV", 2019),
]

MECHANICS = [
    ("Dana Ruiz", "engine"),
    ("Sam Okafor", "brakes"),
    ("Lee Novak", "electrical"),
    ("Kim Haddad", "general"),
]

# (service type, parts cost range, labor cost range, interval in days)
SERVICES = [
    ("Oil Change", (80, 160), (60, 120), 90),
    ("Brake Inspection", (0, 40), (90, 150), 180),
    ("Brake Pad Replacement", (250, 600), (200, 400), 365),
    ("Tire Rotation", (0, 20), (80, 140), 120),
    ("Transmission Service", (300, 900), (250, 500), 365),
    ("DOT Inspection", (0, 0), (120, 200), 365),
]

HISTORY_DAYS = 365


def _vin() -> str:
    alphabet = "ABCDEFGHJKLMNPRSTUVWXYZ0123456789"  # no I, O, Q
    return "".join(random.choice(alphabet) for _ in range(17))


def _plate() -> str:
    letters = "".join(random.choice("ABCDEFGHJKLMNPRSTUVWXYZ") for _ in range(3))
    return f"{letters}-{random.randint(1000, 9999)}"


def _cost(bounds: tuple[int, int]) -> Decimal:
    return Decimal(str(round(random.uniform(*bounds), 2)))


# ──────────────────────────────────────────────
# Main seed routine
# ──────────────────────────────────────────────

async def seed():
    pool = await get_pool()
    now = datetime.now(timezone.utc)

    async with pool.acquire() as conn:
        # Clear existing data (reverse FK order)
        print("Clearing existing data...")
        await conn.execute("DELETE FROM maintenance_records")
        await conn.execute("DELETE FROM mechanics")
        await conn.execute("DELETE FROM trucks")

        # ── Insert mechanics ──
        print("\nInserting mechanics...")
        mechanic_ids = []
        for name, specialty in MECHANICS:
            mechanic_id = uuid.uuid4()
            email = name.lower().replace(" ", ".") + "@fleet.example"
            await conn.execute(
                "INSERT INTO mechanics (id, name, email, specialty, is_active, is_deleted, created_at, updated_at)"
                " VALUES ($1, $2, $3, $4, true, false, $5, $5)",
                mechanic_id, name, email, specialty, now,
            )
            mechanic_ids.append(mechanic_id)
            print(f"  [OK] {name} ({specialty})")

        # ── Insert trucks ──
        print("\nInserting trucks...")
        truck_ids = []
        for make, model, year in TRUCKS:
            truck_id = uuid.uuid4()
            # Roughly 1 in 8 trucks sitting in the shop
            status = "MAINTENANCE" if random.random() < 0.12 else "ACTIVE"
            mileage = random.randint(20_000, 120_000) * (now.year - year + 1)
            created = now - timedelta(days=random.randint(HISTORY_DAYS, HISTORY_DAYS + 200))
            await conn.execute(
                "INSERT INTO trucks (id, vin, make, model, year, license_plate, current_mileage,"
                " status, is_deleted, created_at, updated_at)"
                " VALUES ($1, $2, $3, $4, $5, $6, $7, $8, false, $9, $9)",
                truck_id, _vin(), make, model, year, _plate(), mileage, status, created,
            )
            truck_ids.append(truck_id)
            print(f"  [OK] {year} {make} {model} - {status}")

        # ── Generate maintenance history ──
        print(f"\nGenerating {HISTORY_DAYS} days of maintenance history...")
        records = []
        for truck_id in truck_ids:
            for service, parts_bounds, labor_bounds, interval in SERVICES:
                performed = now - timedelta(days=HISTORY_DAYS)
                while True:
                    performed += timedelta(days=interval + random.randint(-10, 10))
                    due = performed + timedelta(days=interval)
                    if performed > now:
                        # Next visit is still ahead of us: schedule it
                        records.append(
                            _record(truck_id, mechanic_ids, service, now, due, parts_bounds,
                                    labor_bounds, "SCHEDULED")
                        )
                        break
                    status = "COMPLETED" if due > now else random.choice(["COMPLETED", "SCHEDULED"])
                    records.append(
                        _record(truck_id, mechanic_ids, service, performed, due, parts_bounds,
                                labor_bounds, status)
                    )

        # Bulk insert via COPY protocol
        await conn.copy_records_to_table(
            "maintenance_records",
            records=records,
            columns=[
                "id", "truck_id", "mechanic_id", "service_type", "date_performed",
                "next_service_due", "parts_cost", "labor_cost", "total_cost", "status",
                "is_deleted", "created_at", "updated_at",
            ],
        )

        print(f"\n{'='*50}")
        print("Seed complete!")
        print(f"  Mechanics:           {len(mechanic_ids)}")
        print(f"  Trucks:              {len(truck_ids)}")
        print(f"  Maintenance records: {len(records):,}")
        print(f"{'='*50}")

    await close_pool()


def _record(truck_id, mechanic_ids, service, performed, due, parts_bounds, labor_bounds, status):
    parts = _cost(parts_bounds)
    labor = _cost(labor_bounds)
    return (
        uuid.uuid4(), truck_id, random.choice(mechanic_ids), service, performed,
        due, parts, labor, parts + labor, status, False, performed, performed,
    )


async def main():
    print("=" * 50)
    print("SEED SCRIPT - Fleet Maintenance Dashboard")
    print("=" * 50)
    await seed()


if __name__ == "__main__":
    asyncio.run(main())

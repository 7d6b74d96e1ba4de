"""
Create the fleet tables from the SQLAlchemy models.

Usage:
    cd backend
    python -m fleetdesk.bootstrap
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import create_async_engine

from fleetdesk.database import db_url
from fleetdesk.models.maintenance_record import MaintenanceRecord
from fleetdesk.models.mechanic import Mechanic
from fleetdesk.models.truck import Base, Truck

logger = logging.getLogger(__name__)

TABLES = [Truck.__table__, Mechanic.__table__, MaintenanceRecord.__table__]


async def create_tables() -> None:
    engine = create_async_engine(db_url(sqlalchemy=True))
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, tables=TABLES)
        logger.info("Created tables: %s", ", ".join(t.name for t in TABLES))
    finally:
        await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(create_tables())

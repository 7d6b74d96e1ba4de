"""Data access clients: PostgREST for row CRUD, an asyncpg pool for aggregates.

Both are created on first use and closed by the app lifespan.
"""

import asyncpg
from postgrest import AsyncPostgrestClient

from fleetdesk.config import get_settings

_ASYNCPG_DRIVER = "postgresql+asyncpg://"
_PLAIN = "postgresql://"


def db_url(sqlalchemy: bool = False) -> str:
    """SUPABASE_DB_URL spelled for asyncpg (plain) or for SQLAlchemy (+asyncpg)."""
    url = get_settings().SUPABASE_DB_URL
    if sqlalchemy:
        return _ASYNCPG_DRIVER + url[len(_PLAIN):] if url.startswith(_PLAIN) else url
    return url.replace(_ASYNCPG_DRIVER, _PLAIN, 1)


# ---------- Supabase PostgREST client (trucks, maintenance, trash) ----------

_postgrest_client: AsyncPostgrestClient | None = None


def get_postgrest() -> AsyncPostgrestClient:
    global _postgrest_client
    if _postgrest_client is None:
        settings = get_settings()
        key = settings.SUPABASE_SERVICE_KEY
        _postgrest_client = AsyncPostgrestClient(
            f"{settings.SUPABASE_URL.rstrip('/')}/rest/v1",
            headers={"apikey": key, "Authorization": f"Bearer {key}"},
        )
    return _postgrest_client


async def close_postgrest() -> None:
    global _postgrest_client
    client, _postgrest_client = _postgrest_client, None
    if client is not None:
        await client.aclose()


# ---------- asyncpg pool (dashboard stats, health, seeding) ----------

_pool: asyncpg.Pool | None = None


async def get_pool() -> asyncpg.Pool:
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = await asyncpg.create_pool(
            db_url(),
            min_size=settings.DB_POOL_MIN_SIZE,
            max_size=settings.DB_POOL_MAX_SIZE,
            # PgBouncer in transaction mode cannot hold prepared statements
            statement_cache_size=0,
        )
    return _pool


async def close_pool() -> None:
    global _pool
    pool, _pool = _pool, None
    if pool is not None:
        await pool.close()

"""PostgreSQL connection pool backing the shared rate-limit window."""

import asyncpg

_pool: asyncpg.Pool | None = None

RATE_LIMIT_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS rate_limit_events (
        id BIGSERIAL PRIMARY KEY,
        limiter_name TEXT NOT NULL,
        admitted_at_ms BIGINT NOT NULL
    )
"""

RATE_LIMIT_INDEX_SQL = """
    CREATE INDEX IF NOT EXISTS idx_rate_limit_events_name_time
    ON rate_limit_events(limiter_name, admitted_at_ms)
"""


async def init_db(database_url: str | None) -> asyncpg.Pool | None:
    """Create the asyncpg pool and ensure the rate-limit table exists.

    Returns None (and leaves the limiter process-local) when no URL is set or
    the database cannot be reached at startup.
    """
    global _pool

    if not database_url:
        print("[DB] RATE_LIMIT_DATABASE_URL not set — using in-process rate limiting")
        return None

    try:
        _pool = await asyncpg.create_pool(database_url, min_size=1, max_size=5)
        async with _pool.acquire() as conn:
            await conn.execute(RATE_LIMIT_TABLE_SQL)
            await conn.execute(RATE_LIMIT_INDEX_SQL)
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        print(f"[DB] Could not connect ({e}) — using in-process rate limiting")
        if _pool is not None:
            _pool.terminate()
        _pool = None
        return None

    print("[DB] Connected and rate-limit table ready")
    return _pool


async def close_db():
    """Close the connection pool on shutdown."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
        print("[DB] Connection pool closed")

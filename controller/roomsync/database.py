import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any

import asyncpg

from .schemas import STATE_ID_FIELD, TIMESTAMP_FIELD

logger = logging.getLogger(__name__)

# Failures a store call may surface; callers log these and give up on the attempt.
STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, RuntimeError, ValueError)


def _decode_item(value: Any) -> dict[str, Any]:
    if isinstance(value, str):
        value = json.loads(value)
    if not isinstance(value, dict):
        raise ValueError(f"Stored state item is not an object: {value!r}")
    return value


class Database:
    """Durable snapshot store keyed by (state_id, timestamps)."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._pool: asyncpg.Pool | None = None
        self._connect_lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        # Concurrent first callers must share a single pool.
        async with self._connect_lock:
            if self._pool is not None:
                return
            pool = await asyncpg.create_pool(self._dsn, min_size=1, max_size=5)
            try:
                await self._create_schema(pool)
            except BaseException:
                await pool.close()
                raise
            self._pool = pool
            logger.info("Connected to state store")

    async def disconnect(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def _create_schema(self, pool: asyncpg.Pool) -> None:
        async with pool.acquire() as conn:
            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS device_state (
                    state_id INTEGER NOT NULL,
                    timestamps BIGINT NOT NULL,
                    item JSONB NOT NULL,
                    PRIMARY KEY (state_id, timestamps)
                );
                """
            )

    async def _get_pool(self) -> asyncpg.Pool:
        # A store that was down at startup gets one connection attempt per call.
        if self._pool is None:
            await self.connect()
        if self._pool is None:
            raise RuntimeError("Database pool not initialized")
        return self._pool

    async def put_record(self, record: Mapping[str, Any]) -> None:
        item_json = json.dumps(dict(record))
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO device_state (state_id, timestamps, item)
                VALUES ($1, $2, $3)
                ON CONFLICT (state_id, timestamps) DO UPDATE SET item = EXCLUDED.item
                """,
                int(record[STATE_ID_FIELD]),
                int(record[TIMESTAMP_FIELD]),
                item_json,
            )

    async def fetch_latest(self, state_id: int) -> dict[str, Any] | None:
        query = """
            SELECT item
            FROM device_state
            WHERE state_id = $1
            ORDER BY timestamps DESC
            LIMIT 1
        """
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(query, state_id)
        if row is None:
            return None
        return _decode_item(row["item"])

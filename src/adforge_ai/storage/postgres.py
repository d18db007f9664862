"""PostgreSQL-backed durable store.

Uses a shared ``asyncpg.Pool``. Every public method acquires a connection
and releases it automatically; driver errors are re-raised as
:class:`~adforge_ai.storage.base.StorageError`.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import asyncpg  # type: ignore[import-untyped,import-not-found]

from adforge_ai.logging import get_logger
from adforge_ai.storage.base import DurableStore, StorageError
from adforge_ai.storage.models import CacheEntry, UsageRecord
from adforge_ai.types import ProviderType

log = get_logger("adforge_ai.storage.postgres")

# ---------------------------------------------------------------------------
# SQL schema
# ---------------------------------------------------------------------------
_SCHEMA_SQL = """\
-- Known providers; ids are referenced by cache entries and usage logs
CREATE TABLE IF NOT EXISTS ai_providers (
    id           UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
    name         TEXT         NOT NULL UNIQUE,
    is_active    BOOLEAN      NOT NULL DEFAULT TRUE,
    created_at   TIMESTAMPTZ  NOT NULL DEFAULT now()
);

-- Per-user provider priority per task type
CREATE TABLE IF NOT EXISTS ai_task_config (
    id                 UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id            TEXT         NOT NULL,
    task_type          TEXT         NOT NULL,
    provider_priority  JSONB        NOT NULL DEFAULT '[]'::jsonb,
    updated_at         TIMESTAMPTZ  NOT NULL DEFAULT now(),
    UNIQUE(user_id, task_type)
);

-- Response cache
CREATE TABLE IF NOT EXISTS ai_cache (
    id           UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id      TEXT         NOT NULL,
    provider_id  TEXT         NOT NULL,
    task_type    TEXT         NOT NULL,
    input_hash   TEXT         NOT NULL,
    output_data  JSONB        NOT NULL,
    metadata     JSONB        NOT NULL DEFAULT '{}'::jsonb,
    hit_count    INTEGER      NOT NULL DEFAULT 0,
    created_at   TIMESTAMPTZ  NOT NULL DEFAULT now(),
    expires_at   TIMESTAMPTZ  NOT NULL,
    UNIQUE(user_id, provider_id, task_type, input_hash)
);

CREATE INDEX IF NOT EXISTS idx_ai_cache_expires
    ON ai_cache (expires_at);

-- Append-only usage ledger
CREATE TABLE IF NOT EXISTS ai_usage_logs (
    id                UUID              PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id           TEXT              NOT NULL,
    provider_id       TEXT              NOT NULL,
    task_type         TEXT              NOT NULL,
    model             TEXT              NOT NULL,
    input_tokens      INTEGER           NOT NULL DEFAULT 0,
    output_tokens     INTEGER           NOT NULL DEFAULT 0,
    total_tokens      INTEGER           NOT NULL DEFAULT 0,
    cost_usd          DOUBLE PRECISION  NOT NULL DEFAULT 0,
    response_time_ms  DOUBLE PRECISION  NOT NULL DEFAULT 0,
    status            TEXT              NOT NULL,
    error_message     TEXT,
    campaign_id       TEXT,
    metadata          JSONB             NOT NULL DEFAULT '{}'::jsonb,
    created_at        TIMESTAMPTZ       NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_ai_usage_user_created
    ON ai_usage_logs (user_id, created_at DESC);
"""

_SEED_PROVIDER_SQL = """\
INSERT INTO ai_providers (name) VALUES ($1)
ON CONFLICT (name) DO NOTHING
"""


def _json_load(value: Any) -> Any:
    return json.loads(value) if isinstance(value, str) else value


def _row_to_cache_entry(row: asyncpg.Record) -> CacheEntry:
    """Convert an ``asyncpg.Record`` to a :class:`CacheEntry`."""
    return CacheEntry(
        id=str(row["id"]),
        user_id=row["user_id"],
        provider_id=row["provider_id"],
        task_type=row["task_type"],
        input_hash=row["input_hash"],
        payload=_json_load(row["output_data"]),
        metadata=_json_load(row["metadata"]) or {},
        hit_count=row["hit_count"],
        created_at=row["created_at"],
        expires_at=row["expires_at"],
    )


def _row_to_usage_record(row: asyncpg.Record) -> UsageRecord:
    """Convert an ``asyncpg.Record`` to a :class:`UsageRecord`."""
    return UsageRecord(
        id=str(row["id"]),
        user_id=row["user_id"],
        provider_id=row["provider_id"],
        task_type=row["task_type"],
        model=row["model"],
        input_tokens=row["input_tokens"],
        output_tokens=row["output_tokens"],
        total_tokens=row["total_tokens"],
        cost_usd=float(row["cost_usd"]),
        response_time_ms=float(row["response_time_ms"]),
        status=row["status"],
        error_message=row["error_message"],
        campaign_id=row["campaign_id"],
        metadata=_json_load(row["metadata"]) or {},
        created_at=row["created_at"],
    )


class PostgresStore(DurableStore):
    """PostgreSQL implementation of :class:`DurableStore`.

    Args:
        dsn: Connection string, used when no pool is supplied.
        pool: An existing pool (shared with the rest of the application).
        min_size: Minimum pool size when the store creates its own pool.
        max_size: Maximum pool size when the store creates its own pool.
    """

    def __init__(
        self,
        dsn: str | None = None,
        pool: asyncpg.Pool | None = None,
        min_size: int = 1,
        max_size: int = 10,
    ) -> None:
        if dsn is None and pool is None:
            raise ValueError("Either dsn or pool must be provided")
        self._dsn = dsn
        self._pool: asyncpg.Pool | None = pool
        self._owns_pool = pool is None
        self._min_size = min_size
        self._max_size = max_size

    @property
    def _db(self) -> asyncpg.Pool:
        if self._pool is None:
            raise StorageError("Store not initialized, call initialize() first")
        return self._pool

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[Any]:
        try:
            async with self._db.acquire() as conn:
                yield conn
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            raise StorageError(str(e)) from e

    async def initialize(self) -> None:
        """Create the pool (if needed), the tables, and the provider rows."""
        if self._pool is None:
            try:
                self._pool = await asyncpg.create_pool(
                    dsn=self._dsn, min_size=self._min_size, max_size=self._max_size
                )
            except (asyncpg.PostgresError, OSError) as e:
                raise StorageError(f"Could not connect to PostgreSQL: {e}") from e
            log.info("postgres_pool_created")

        async with self._connection() as conn:
            await conn.execute(_SCHEMA_SQL)
            for ptype in ProviderType:
                await conn.execute(_SEED_PROVIDER_SQL, ptype.value)
        log.info("postgres_store_initialized")

    async def close(self) -> None:
        if self._pool is not None and self._owns_pool:
            await self._pool.close()
            self._pool = None
            log.info("postgres_pool_closed")

    # ------------------------------------------------------------------
    # Cache entries
    # ------------------------------------------------------------------

    async def get_cache_entry(
        self, user_id: str, provider_id: str, task_type: str, input_hash: str
    ) -> CacheEntry | None:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                """SELECT * FROM ai_cache
                   WHERE user_id = $1 AND provider_id = $2
                     AND task_type = $3 AND input_hash = $4""",
                user_id,
                provider_id,
                task_type,
                input_hash,
            )
        return _row_to_cache_entry(row) if row else None

    async def upsert_cache_entry(self, entry: CacheEntry) -> CacheEntry:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                """INSERT INTO ai_cache
                       (user_id, provider_id, task_type, input_hash,
                        output_data, metadata, expires_at)
                   VALUES ($1, $2, $3, $4, $5::jsonb, $6::jsonb, $7)
                   ON CONFLICT (user_id, provider_id, task_type, input_hash)
                   DO UPDATE SET output_data = EXCLUDED.output_data,
                                 metadata    = EXCLUDED.metadata,
                                 expires_at  = EXCLUDED.expires_at,
                                 created_at  = now()
                   RETURNING *""",
                entry.user_id,
                entry.provider_id,
                entry.task_type,
                entry.input_hash,
                json.dumps(entry.payload),
                json.dumps(entry.metadata),
                entry.expires_at,
            )
        if row is None:
            raise StorageError("Cache upsert returned no row")
        return _row_to_cache_entry(row)

    async def increment_hit_count(self, entry_id: str) -> None:
        async with self._connection() as conn:
            await conn.execute(
                "UPDATE ai_cache SET hit_count = hit_count + 1 WHERE id = $1::uuid",
                entry_id,
            )

    async def delete_cache_entry(self, entry_id: str) -> bool:
        async with self._connection() as conn:
            result: str = await conn.execute(
                "DELETE FROM ai_cache WHERE id = $1::uuid", entry_id
            )
        # asyncpg returns e.g. "DELETE 1"
        return int(result.split()[-1]) > 0

    async def delete_expired_cache_entries(self, now: datetime) -> int:
        async with self._connection() as conn:
            result: str = await conn.execute(
                "DELETE FROM ai_cache WHERE expires_at <= $1", now
            )
        count = int(result.split()[-1])
        if count > 0:
            log.info("postgres_expired_cache_deleted", count=count)
        return count

    # ------------------------------------------------------------------
    # Usage records
    # ------------------------------------------------------------------

    async def insert_usage_record(self, record: UsageRecord) -> UsageRecord:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                """INSERT INTO ai_usage_logs
                       (user_id, provider_id, task_type, model,
                        input_tokens, output_tokens, total_tokens,
                        cost_usd, response_time_ms, status, error_message,
                        campaign_id, metadata, created_at)
                   VALUES ($1, $2, $3, $4,
                           $5, $6, $7,
                           $8, $9, $10, $11,
                           $12, $13::jsonb, $14)
                   RETURNING *""",
                record.user_id,
                record.provider_id,
                record.task_type,
                record.model,
                record.input_tokens,
                record.output_tokens,
                record.total_tokens,
                record.cost_usd,
                record.response_time_ms,
                record.status,
                record.error_message,
                record.campaign_id,
                json.dumps(record.metadata),
                record.created_at,
            )
        return _row_to_usage_record(row) if row else record

    async def query_usage_records(
        self,
        user_id: str,
        since: datetime,
        provider_id: str | None = None,
        task_type: str | None = None,
    ) -> list[UsageRecord]:
        query = "SELECT * FROM ai_usage_logs WHERE user_id = $1 AND created_at >= $2"
        args: list[Any] = [user_id, since]
        if provider_id is not None:
            args.append(provider_id)
            query += f" AND provider_id = ${len(args)}"
        if task_type is not None:
            args.append(task_type)
            query += f" AND task_type = ${len(args)}"
        query += " ORDER BY created_at DESC"

        async with self._connection() as conn:
            rows = await conn.fetch(query, *args)
        return [_row_to_usage_record(row) for row in rows]

    # ------------------------------------------------------------------
    # Provider configuration
    # ------------------------------------------------------------------

    async def get_provider_priority(self, user_id: str, task_type: str) -> list[str]:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                """SELECT provider_priority FROM ai_task_config
                   WHERE user_id = $1 AND task_type = $2""",
                user_id,
                task_type,
            )
        if row is None:
            return []
        priority = _json_load(row["provider_priority"])
        return [str(name) for name in priority] if isinstance(priority, list) else []

    async def set_provider_priority(
        self, user_id: str, task_type: str, priority: list[str]
    ) -> None:
        async with self._connection() as conn:
            await conn.execute(
                """INSERT INTO ai_task_config (user_id, task_type, provider_priority)
                   VALUES ($1, $2, $3::jsonb)
                   ON CONFLICT (user_id, task_type)
                   DO UPDATE SET provider_priority = EXCLUDED.provider_priority,
                                 updated_at = now()""",
                user_id,
                task_type,
                json.dumps(priority),
            )

    async def resolve_provider_id(self, provider_name: str) -> str | None:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                "SELECT id FROM ai_providers WHERE name = $1 AND is_active",
                provider_name,
            )
        return str(row["id"]) if row else None

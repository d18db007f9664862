"""Two-tier response cache.

A bounded in-process tier (``cachetools.FIFOCache``, oldest insertion evicted
first) sits in front of the durable store. Reads check the fast tier, then
the durable tier, promoting durable hits. Writes go to the durable tier via
an idempotent upsert and are mirrored into the fast tier.

Every store failure degrades to a miss (reads) or a no-op (writes) with a
warning; the cache never fails a request.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any

from cachetools import FIFOCache  # type: ignore[import-untyped]

from adforge_ai.cache.hashing import hash_input
from adforge_ai.logging import get_logger
from adforge_ai.providers.capabilities import get_default_ttl_hours
from adforge_ai.storage.base import DurableStore
from adforge_ai.storage.models import CacheEntry
from adforge_ai.types import TaskType

log = get_logger("adforge_ai.cache.manager")

CacheKey = tuple[str, str, str, str]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ResponseCache:
    """Content-addressed cache of provider results.

    Args:
        store: Durable tier.
        max_memory_entries: Size bound of the fast tier.
        default_ttl_hours: TTL used for tasks without their own default.
        clock: Returns the current UTC time. Injectable for tests.
    """

    def __init__(
        self,
        store: DurableStore,
        max_memory_entries: int = 100,
        default_ttl_hours: float = 24.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._memory: FIFOCache[CacheKey, CacheEntry] = FIFOCache(maxsize=max_memory_entries)
        self._default_ttl_hours = default_ttl_hours
        self._clock = clock or _utcnow

    @property
    def memory_size(self) -> int:
        """Number of entries currently in the fast tier."""
        return len(self._memory)

    async def get(
        self,
        user_id: str,
        provider_id: str,
        task_type: TaskType,
        input_data: Any,
    ) -> CacheEntry | None:
        """Look up a cached result.

        Args:
            user_id: Owner of the entry.
            provider_id: Storage identifier of the provider.
            task_type: Task type.
            input_data: Exact task input (string or structured value).

        Returns:
            The live entry, or None on miss, expiry, or store failure.
        """
        key: CacheKey = (user_id, provider_id, task_type.value, hash_input(input_data))
        now = self._clock()

        entry = self._memory.get(key)
        if entry is not None:
            if not entry.is_expired(now):
                await self._record_hit(entry)
                log.debug("cache_hit", tier="memory", task_type=task_type.value)
                return replace(entry)
            self._memory.pop(key, None)

        try:
            entry = await self._store.get_cache_entry(*key)
        except Exception as e:
            log.warning("cache_read_failed", task_type=task_type.value, error=str(e))
            return None

        if entry is None:
            log.debug("cache_miss", task_type=task_type.value)
            return None

        if entry.is_expired(now):
            log.debug("cache_entry_expired", entry_id=entry.id, task_type=task_type.value)
            await self._delete_quietly(entry.id)
            return None

        self._memory[key] = entry
        await self._record_hit(entry)
        log.debug("cache_hit", tier="durable", task_type=task_type.value)
        return replace(entry)

    async def set(
        self,
        user_id: str,
        provider_id: str,
        task_type: TaskType,
        input_data: Any,
        payload: Any,
        ttl_hours: float | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> CacheEntry:
        """Store a result under its natural key.

        Args:
            user_id: Owner of the entry.
            provider_id: Storage identifier of the provider.
            task_type: Task type.
            input_data: Exact task input.
            payload: JSON-compatible result.
            ttl_hours: Time to live; the task default when omitted.
            metadata: Extra data stored alongside the payload.

        Returns:
            The entry as written (or as mirrored, if the durable write failed).
        """
        if ttl_hours is None:
            ttl_hours = get_default_ttl_hours(task_type, fallback=self._default_ttl_hours)

        now = self._clock()
        entry = CacheEntry(
            user_id=user_id,
            provider_id=provider_id,
            task_type=task_type.value,
            input_hash=hash_input(input_data),
            payload=payload,
            metadata=dict(metadata or {}),
            created_at=now,
            expires_at=now + timedelta(hours=ttl_hours),
        )

        try:
            entry = await self._store.upsert_cache_entry(entry)
        except Exception as e:
            log.warning("cache_write_failed", task_type=task_type.value, error=str(e))

        self._memory[entry.key] = entry
        log.debug(
            "cache_set",
            task_type=task_type.value,
            ttl_hours=ttl_hours,
            memory_size=len(self._memory),
        )
        return replace(entry)

    async def delete(self, entry_id: str) -> bool:
        """Delete an entry from both tiers by id."""
        for key, entry in list(self._memory.items()):
            if entry.id == entry_id:
                self._memory.pop(key, None)
        try:
            return await self._store.delete_cache_entry(entry_id)
        except Exception as e:
            log.warning("cache_delete_failed", entry_id=entry_id, error=str(e))
            return False

    async def clear_expired(self) -> int:
        """Sweep expired entries from both tiers.

        Returns:
            Number of durable rows removed.
        """
        now = self._clock()
        for key, entry in list(self._memory.items()):
            if entry.is_expired(now):
                self._memory.pop(key, None)

        try:
            removed = await self._store.delete_expired_cache_entries(now)
        except Exception as e:
            log.warning("cache_clear_expired_failed", error=str(e))
            return 0

        log.info("cache_expired_cleared", removed=removed)
        return removed

    def clear_memory(self) -> None:
        """Drop every fast-tier entry."""
        self._memory.clear()

    async def _record_hit(self, entry: CacheEntry) -> None:
        # Non-atomic, best-effort telemetry
        entry.hit_count += 1
        try:
            await self._store.increment_hit_count(entry.id)
        except Exception as e:
            log.warning("cache_hit_count_failed", entry_id=entry.id, error=str(e))

    async def _delete_quietly(self, entry_id: str) -> None:
        try:
            await self._store.delete_cache_entry(entry_id)
        except Exception as e:
            log.warning("cache_delete_failed", entry_id=entry_id, error=str(e))

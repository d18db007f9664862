"""In-process durable store for tests and local development."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime

from adforge_ai.logging import get_logger
from adforge_ai.storage.base import DurableStore
from adforge_ai.storage.models import CacheEntry, UsageRecord
from adforge_ai.types import ProviderType

log = get_logger("adforge_ai.storage.memory")


class InMemoryStore(DurableStore):
    """Dict-backed store. Nothing survives the process.

    Provider identifiers are the provider names themselves.

    Args:
        provider_names: Names :meth:`resolve_provider_id` recognises.
            Defaults to every :class:`ProviderType`.
    """

    def __init__(self, provider_names: Iterable[str] | None = None) -> None:
        if provider_names is None:
            provider_names = [ptype.value for ptype in ProviderType]
        self._provider_names = set(provider_names)
        self._cache: dict[tuple[str, str, str, str], CacheEntry] = {}
        self._usage: list[UsageRecord] = []
        self._priorities: dict[tuple[str, str], list[str]] = {}

    async def get_cache_entry(
        self, user_id: str, provider_id: str, task_type: str, input_hash: str
    ) -> CacheEntry | None:
        entry = self._cache.get((user_id, provider_id, task_type, input_hash))
        return replace(entry) if entry else None

    async def upsert_cache_entry(self, entry: CacheEntry) -> CacheEntry:
        existing = self._cache.get(entry.key)
        if existing is not None:
            entry = replace(entry, id=existing.id)
        self._cache[entry.key] = replace(entry)
        return entry

    async def increment_hit_count(self, entry_id: str) -> None:
        for entry in self._cache.values():
            if entry.id == entry_id:
                entry.hit_count += 1
                return

    async def delete_cache_entry(self, entry_id: str) -> bool:
        for key, entry in list(self._cache.items()):
            if entry.id == entry_id:
                del self._cache[key]
                return True
        return False

    async def delete_expired_cache_entries(self, now: datetime) -> int:
        expired = [key for key, entry in self._cache.items() if entry.is_expired(now)]
        for key in expired:
            del self._cache[key]
        if expired:
            log.debug("memory_store_expired_deleted", count=len(expired))
        return len(expired)

    async def insert_usage_record(self, record: UsageRecord) -> UsageRecord:
        self._usage.append(record)
        return record

    async def query_usage_records(
        self,
        user_id: str,
        since: datetime,
        provider_id: str | None = None,
        task_type: str | None = None,
    ) -> list[UsageRecord]:
        return [
            r
            for r in self._usage
            if r.user_id == user_id
            and r.created_at >= since
            and (provider_id is None or r.provider_id == provider_id)
            and (task_type is None or r.task_type == task_type)
        ]

    async def get_provider_priority(self, user_id: str, task_type: str) -> list[str]:
        return list(self._priorities.get((user_id, task_type), []))

    async def set_provider_priority(
        self, user_id: str, task_type: str, priority: list[str]
    ) -> None:
        self._priorities[(user_id, task_type)] = list(priority)

    async def resolve_provider_id(self, provider_name: str) -> str | None:
        return provider_name if provider_name in self._provider_names else None

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    @property
    def usage_records(self) -> list[UsageRecord]:
        return list(self._usage)

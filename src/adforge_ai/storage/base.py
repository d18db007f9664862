"""Durable store contract used by the cache, the ledger and the selector."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from adforge_ai.storage.models import CacheEntry, UsageRecord


class StorageError(Exception):
    """Raised by a store when the backing database call fails."""

    pass


class DurableStore(ABC):
    """Abstract keyed store.

    Implementations raise :class:`StorageError` on backend failures. Callers
    (cache, ledger, selector) catch it and degrade.
    """

    # ------------------------------------------------------------------
    # Cache entries
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_cache_entry(
        self, user_id: str, provider_id: str, task_type: str, input_hash: str
    ) -> CacheEntry | None:
        """Look up an entry by natural key. Expired entries are returned as-is."""

    @abstractmethod
    async def upsert_cache_entry(self, entry: CacheEntry) -> CacheEntry:
        """Insert or replace the entry with the same natural key.

        Returns:
            The stored entry (its id is the one already stored on conflict).
        """

    @abstractmethod
    async def increment_hit_count(self, entry_id: str) -> None:
        """Add one to an entry's hit counter."""

    @abstractmethod
    async def delete_cache_entry(self, entry_id: str) -> bool:
        """Delete an entry by id. Returns True if something was deleted."""

    @abstractmethod
    async def delete_expired_cache_entries(self, now: datetime) -> int:
        """Delete every entry with ``expires_at <= now``. Returns the count."""

    # ------------------------------------------------------------------
    # Usage records
    # ------------------------------------------------------------------

    @abstractmethod
    async def insert_usage_record(self, record: UsageRecord) -> UsageRecord:
        """Append a usage record."""

    @abstractmethod
    async def query_usage_records(
        self,
        user_id: str,
        since: datetime,
        provider_id: str | None = None,
        task_type: str | None = None,
    ) -> list[UsageRecord]:
        """Return a user's records created at or after ``since``."""

    # ------------------------------------------------------------------
    # Provider configuration
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_provider_priority(self, user_id: str, task_type: str) -> list[str]:
        """Stored provider-name priority for (user, task); empty when none."""

    @abstractmethod
    async def set_provider_priority(
        self, user_id: str, task_type: str, priority: list[str]
    ) -> None:
        """Replace the stored provider priority for (user, task)."""

    @abstractmethod
    async def resolve_provider_id(self, provider_name: str) -> str | None:
        """Map a provider name to its storage identifier, or None if unknown."""

    async def initialize(self) -> None:
        """Prepare the backend (connect, create schema). No-op by default."""
        return None

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
        return None

"""Durable storage for cache entries, usage records and provider configuration."""

from adforge_ai.storage.base import DurableStore, StorageError
from adforge_ai.storage.memory import InMemoryStore
from adforge_ai.storage.models import CacheEntry, UsageRecord, UsageStatus
from adforge_ai.storage.postgres import PostgresStore

__all__ = [
    "CacheEntry",
    "DurableStore",
    "InMemoryStore",
    "PostgresStore",
    "StorageError",
    "UsageRecord",
    "UsageStatus",
]

"""Exact-input response cache."""

from adforge_ai.cache.hashing import canonicalize, hash_input
from adforge_ai.cache.manager import ResponseCache
from adforge_ai.cache.sweeper import CacheSweeper

__all__ = ["CacheSweeper", "ResponseCache", "canonicalize", "hash_input"]

"""Deterministic input hashing for cache keys."""

import hashlib
import json
from typing import Any

from pydantic import BaseModel


def canonicalize(value: Any) -> str:
    """Return the canonical string form of a task input.

    Strings are used as-is. Pydantic models are dumped to their JSON shape
    first. Everything else is serialized as compact JSON with sorted keys, so
    dict ordering never changes the result.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", by_alias=True)
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def hash_input(value: Any) -> str:
    """SHA-256 hex digest of the canonical form of ``value``."""
    return hashlib.sha256(canonicalize(value).encode("utf-8")).hexdigest()

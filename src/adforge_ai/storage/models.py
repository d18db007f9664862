"""Persistent record types: cache entries and usage records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


class UsageStatus(str, Enum):
    """Outcome of a provider attempt."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class CacheEntry:
    """A cached provider result.

    Attributes:
        user_id: Owner of the cached result.
        provider_id: Storage identifier of the provider that produced it.
        task_type: Task type value (e.g. ``"product-analysis"``).
        input_hash: Hex digest of the canonical request input.
        payload: JSON-compatible result data.
        expires_at: Absolute UTC expiry.
        id: Unique entry identifier.
        metadata: Free-form metadata (model, tokens of the original call).
        created_at: When the entry was first written.
        hit_count: Number of reads served from this entry.
    """

    user_id: str
    provider_id: str
    task_type: str
    input_hash: str
    payload: Any
    expires_at: datetime
    id: str = field(default_factory=_new_id)
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utcnow)
    hit_count: int = 0

    @property
    def key(self) -> tuple[str, str, str, str]:
        """Natural key (user, provider, task, input hash)."""
        return (self.user_id, self.provider_id, self.task_type, self.input_hash)

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at <= (now or _utcnow())


@dataclass
class UsageRecord:
    """One append-only row of the usage ledger."""

    user_id: str
    provider_id: str
    task_type: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost_usd: float = 0.0
    response_time_ms: float = 0.0
    status: str = UsageStatus.SUCCESS.value
    error_message: str | None = None
    campaign_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def succeeded(self) -> bool:
        return self.status == UsageStatus.SUCCESS.value

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialisation."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "provider_id": self.provider_id,
            "task_type": self.task_type,
            "model": self.model,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "cost_usd": self.cost_usd,
            "response_time_ms": self.response_time_ms,
            "status": self.status,
            "error_message": self.error_message,
            "campaign_id": self.campaign_id,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
        }

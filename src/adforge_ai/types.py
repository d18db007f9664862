"""Core types shared across providers, cache, ledger and task services."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ProviderType(Enum):
    """Backend model services the dispatcher can route to."""

    OPENAI = "openai"
    CLAUDE = "claude"
    GOOGLE = "google"


class TaskType(Enum):
    """Closed set of request kinds handled by the dispatcher.

    Each task type has its own default provider priority and cache TTL,
    see :mod:`adforge_ai.providers.capabilities`.
    """

    PRODUCT_ANALYSIS = "product-analysis"
    SCRIPT_GENERATION = "script-generation"
    RECOMMENDATIONS = "recommendations"
    CHAT_ASSISTANT = "chat-assistant"
    EMBEDDINGS = "embeddings"


@dataclass
class ProviderDescriptor:
    """Identity of a backend model service.

    ``available`` is derived from configuration (missing credentials means
    unavailable) and may be toggled at runtime by operators.
    """

    name: ProviderType
    default_model: str
    available: bool = True


@dataclass
class ProviderHealthStatus:
    """Result of a provider liveness probe."""

    provider: str
    healthy: bool
    last_check: datetime = field(default_factory=lambda: datetime.now(UTC))
    error: str | None = None
    available_quota: int | None = None


@dataclass
class CallEnvelope(Generic[T]):
    """Uniform result of every provider call and every task service call.

    Invariants enforced on construction:
    - a failed envelope carries no data and no tokens or cost
    - a cached envelope carries no tokens or cost
    """

    success: bool
    provider: str
    model: str
    data: T | None = None
    error: str | None = None
    tokens_used: int = 0
    cost_usd: float = 0.0
    response_time_ms: float = 0.0
    cached: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.success:
            self.data = None
            self.tokens_used = 0
            self.cost_usd = 0.0
            if not self.error:
                self.error = "Unknown error"
        if self.cached:
            self.tokens_used = 0
            self.cost_usd = 0.0

    @classmethod
    def ok(
        cls,
        data: T,
        provider: str,
        model: str,
        tokens_used: int = 0,
        cost_usd: float = 0.0,
        response_time_ms: float = 0.0,
        cached: bool = False,
        metadata: dict[str, Any] | None = None,
    ) -> CallEnvelope[T]:
        """Build a successful envelope."""
        return cls(
            success=True,
            data=data,
            provider=provider,
            model=model,
            tokens_used=tokens_used,
            cost_usd=cost_usd,
            response_time_ms=response_time_ms,
            cached=cached,
            metadata=metadata or {},
        )

    @classmethod
    def fail(
        cls,
        error: str,
        provider: str = "none",
        model: str = "none",
        response_time_ms: float = 0.0,
        metadata: dict[str, Any] | None = None,
    ) -> CallEnvelope[T]:
        """Build a failure envelope."""
        return cls(
            success=False,
            error=error,
            provider=provider,
            model=model,
            response_time_ms=response_time_ms,
            metadata=metadata or {},
        )

    def as_cached(self, response_time_ms: float | None = None) -> CallEnvelope[T]:
        """Return a copy marked as served from cache (zero tokens and cost)."""
        return replace(
            self,
            cached=True,
            tokens_used=0,
            cost_usd=0.0,
            response_time_ms=(
                self.response_time_ms if response_time_ms is None else response_time_ms
            ),
            metadata=dict(self.metadata),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the presentation layer."""
        data: Any = self.data
        if hasattr(data, "model_dump"):
            data = data.model_dump(mode="json", by_alias=True)
        elif isinstance(data, list):
            data = [
                item.model_dump(mode="json", by_alias=True) if hasattr(item, "model_dump") else item
                for item in data
            ]
        return {
            "success": self.success,
            "data": data,
            "error": self.error,
            "provider": self.provider,
            "model": self.model,
            "tokens_used": self.tokens_used,
            "cost_usd": self.cost_usd,
            "response_time_ms": self.response_time_ms,
            "cached": self.cached,
            "metadata": self.metadata,
        }

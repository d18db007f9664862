"""Usage ledger.

Appends one record per non-cached provider attempt and derives metrics by
scanning records in a trailing window. Recording and querying never fail the
caller: store errors are logged and swallowed.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

from adforge_ai.costs.aggregator import UsageMetrics, aggregate_records, compute_metrics
from adforge_ai.logging import get_logger
from adforge_ai.providers.pricing import split_tokens
from adforge_ai.storage.base import DurableStore
from adforge_ai.storage.models import UsageRecord, UsageStatus
from adforge_ai.types import CallEnvelope, ProviderType, TaskType

log = get_logger("adforge_ai.costs.ledger")

BreakdownDimension = Literal["provider", "task_type", "model"]

_BREAKDOWN_KEYS: dict[str, Callable[[UsageRecord], str]] = {
    "provider": lambda r: r.provider_id,
    "task_type": lambda r: r.task_type or "unknown",
    "model": lambda r: r.model or "unknown",
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


class UsageLedger:
    """Records provider usage and aggregates it per user and provider.

    Args:
        store: Durable store holding usage records.
        window_days: Default trailing window for metrics.
        clock: Returns the current UTC time. Injectable for tests.
        timer: Monotonic timer matching the ``start_time`` callers pass.
    """

    def __init__(
        self,
        store: DurableStore,
        window_days: int = 30,
        clock: Callable[[], datetime] | None = None,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._store = store
        self._window_days = window_days
        self._clock = clock or _utcnow
        self._timer = timer

    async def log_usage(
        self,
        user_id: str,
        provider_id: str,
        task_type: TaskType,
        model: str,
        envelope: CallEnvelope[Any],
        start_time: float,
        campaign_id: str | None = None,
    ) -> UsageRecord | None:
        """Append a usage record for one provider attempt.

        Args:
            user_id: The requesting user.
            provider_id: Storage identifier of the provider.
            task_type: Task type.
            model: Model that served (or failed) the call.
            envelope: Result of the attempt.
            start_time: Timer value taken just before the attempt.
            campaign_id: Optional associated campaign.

        Returns:
            The stored record, or None if recording failed.
        """
        total_tokens = envelope.tokens_used
        input_tokens = envelope.metadata.get("input_tokens")
        output_tokens = envelope.metadata.get("output_tokens")
        if input_tokens is None or output_tokens is None or not envelope.success:
            input_tokens, output_tokens = split_tokens(total_tokens)

        record = UsageRecord(
            user_id=user_id,
            provider_id=provider_id,
            task_type=task_type.value,
            model=model,
            input_tokens=int(input_tokens),
            output_tokens=int(output_tokens),
            total_tokens=total_tokens,
            cost_usd=envelope.cost_usd,
            response_time_ms=max(0.0, (self._timer() - start_time) * 1000),
            status=(UsageStatus.SUCCESS if envelope.success else UsageStatus.FAILURE).value,
            error_message=envelope.error,
            campaign_id=campaign_id,
            metadata={"provider": envelope.provider},
            created_at=self._clock(),
        )

        try:
            stored = await self._store.insert_usage_record(record)
        except Exception as e:
            log.warning(
                "usage_log_failed",
                user_id=user_id,
                task_type=task_type.value,
                error=str(e),
            )
            return None

        log.debug(
            "usage_logged",
            user_id=user_id,
            provider_id=provider_id,
            task_type=task_type.value,
            status=record.status,
            tokens=total_tokens,
            cost_usd=round(record.cost_usd, 6),
        )
        return stored

    async def get_user_metrics(
        self,
        user_id: str,
        task_type: TaskType | None = None,
        days: int | None = None,
    ) -> UsageMetrics:
        """Metrics for a user over the trailing window."""
        records = await self._query(user_id, days, task_type=task_type)
        return compute_metrics(records)

    async def get_provider_metrics(
        self,
        user_id: str,
        provider: ProviderType | str,
        task_type: TaskType | None = None,
        days: int | None = None,
    ) -> UsageMetrics:
        """Metrics for one provider of a user over the trailing window.

        Args:
            user_id: The user.
            provider: Provider type (resolved to its storage id) or a raw
                storage id.
            task_type: Optional task filter.
            days: Window length; the ledger default when omitted.
        """
        if isinstance(provider, ProviderType):
            try:
                provider_id = await self._store.resolve_provider_id(provider.value)
            except Exception as e:
                log.warning("provider_id_lookup_failed", provider=provider.value, error=str(e))
                return UsageMetrics()
            if provider_id is None:
                return UsageMetrics()
        else:
            provider_id = provider

        records = await self._query(user_id, days, task_type=task_type, provider_id=provider_id)
        return compute_metrics(records)

    async def get_breakdown(
        self,
        user_id: str,
        days: int | None = None,
        by: BreakdownDimension = "provider",
    ) -> dict[str, UsageMetrics]:
        """Per-dimension metrics for a user over the trailing window."""
        key_fn = _BREAKDOWN_KEYS.get(by)
        if key_fn is None:
            raise ValueError(f"Unknown breakdown dimension: {by}")
        records = await self._query(user_id, days)
        return aggregate_records(records, key_fn=key_fn)

    async def _query(
        self,
        user_id: str,
        days: int | None,
        task_type: TaskType | None = None,
        provider_id: str | None = None,
    ) -> list[UsageRecord]:
        since = self._clock() - timedelta(days=days if days is not None else self._window_days)
        try:
            return await self._store.query_usage_records(
                user_id,
                since,
                provider_id=provider_id,
                task_type=task_type.value if task_type else None,
            )
        except Exception as e:
            log.warning("usage_query_failed", user_id=user_id, error=str(e))
            return []

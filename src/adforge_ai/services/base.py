"""Shared control flow for the task services.

Every task service runs the same steps, strictly in order:

1. select a provider (no provider ends the request with a failure envelope,
   touching neither cache nor ledger);
2. resolve the provider's storage identifier;
3. read the cache (a hit returns immediately with ``cached=True`` and zero
   cost);
4. call the provider;
5. on success write the result to the cache, then record usage; on failure
   record usage only.

Concurrent identical misses within this process are coalesced: the first
request calls the provider and later ones wait for its result, which they
receive marked as cached.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import ValidationError

from adforge_ai.cache.hashing import hash_input
from adforge_ai.cache.manager import ResponseCache
from adforge_ai.costs.ledger import UsageLedger
from adforge_ai.logging import get_logger
from adforge_ai.providers.base import Provider
from adforge_ai.providers.selector import ProviderSelector
from adforge_ai.storage.base import DurableStore
from adforge_ai.types import CallEnvelope, ProviderType, TaskType

log = get_logger("adforge_ai.services.base")

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")


@dataclass
class TaskOptions:
    """Per-request overrides.

    Attributes:
        preferred_provider: Tried before the user's stored priority.
        cache_ttl_hours: TTL of the cached result; the task default when None.
        fallback_chain: Explicit candidate order; replaces every other source.
        campaign_id: Campaign the usage record is attributed to.
    """

    preferred_provider: ProviderType | str | None = None
    cache_ttl_hours: float | None = None
    fallback_chain: Sequence[ProviderType | str] | None = None
    campaign_id: str | None = None


class TaskService(ABC, Generic[InputT, OutputT]):
    """Selector -> cache -> provider -> ledger orchestration for one task type."""

    task_type: ClassVar[TaskType]

    def __init__(
        self,
        selector: ProviderSelector,
        cache: ResponseCache,
        ledger: UsageLedger,
        store: DurableStore,
    ) -> None:
        self._selector = selector
        self._cache = cache
        self._ledger = ledger
        self._store = store
        self._inflight: dict[tuple[str, str, str], asyncio.Future[CallEnvelope[OutputT]]] = {}

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _invoke(self, provider: Provider, data: InputT) -> CallEnvelope[OutputT]:
        """Call the provider operation for this task."""

    @abstractmethod
    def _encode(self, result: OutputT) -> Any:
        """Convert a result into a JSON-compatible cache payload."""

    @abstractmethod
    def _decode(self, payload: Any) -> OutputT:
        """Rebuild a result from a cache payload."""

    def _coerce_input(self, data: Any) -> InputT:
        """Accept raw input (e.g. a dict from the presentation layer)."""
        return data  # type: ignore[no-any-return]

    # ------------------------------------------------------------------
    # Template
    # ------------------------------------------------------------------

    async def execute(
        self,
        data: InputT,
        user_id: str,
        options: TaskOptions | None = None,
    ) -> CallEnvelope[OutputT]:
        """Run one request through selection, cache, provider and ledger.

        Args:
            data: Task input.
            user_id: The requesting user.
            options: Per-request overrides.

        Returns:
            The provider's envelope, a cached envelope, or a failure envelope.
            Never raises for provider or storage problems.
        """
        options = options or TaskOptions()
        try:
            data = self._coerce_input(data)
        except (ValidationError, TypeError) as e:
            return CallEnvelope.fail(f"Invalid {self.task_type.value} input: {e}")

        provider = await self._selector.select(
            self.task_type,
            user_id,
            preferred_provider=options.preferred_provider,
            fallback_chain=options.fallback_chain,
        )
        if provider is None:
            return CallEnvelope.fail(f"No AI provider available for {self.task_type.value}")

        provider_name = provider.name.value
        provider_id = await self._resolve_provider_id(provider_name)
        if provider_id is None:
            return CallEnvelope.fail(
                f"Provider {provider_name} is not configured in storage",
                provider=provider_name,
                model=provider.model,
            )

        started = time.perf_counter()
        cached = await self._read_cache(user_id, provider_id, provider, data, started)
        if cached is not None:
            return cached

        key = (user_id, provider_id, hash_input(data))
        pending = self._inflight.get(key)
        if pending is not None:
            log.debug("joined_inflight_request", task_type=self.task_type.value, user_id=user_id)
            envelope = await asyncio.shield(pending)
            return envelope.as_cached(_elapsed_ms(started)) if envelope.success else envelope

        future: asyncio.Future[CallEnvelope[OutputT]] = (
            asyncio.get_running_loop().create_future()
        )
        self._inflight[key] = future
        try:
            envelope = await self._call_provider(provider, provider_id, data, user_id, options)
            future.set_result(envelope)
            return envelope
        finally:
            self._inflight.pop(key, None)
            if not future.done():
                future.set_result(
                    CallEnvelope.fail(
                        "Request was cancelled before completing",
                        provider=provider_name,
                        model=provider.model,
                    )
                )

    async def _resolve_provider_id(self, provider_name: str) -> str | None:
        try:
            return await self._store.resolve_provider_id(provider_name)
        except Exception as e:
            log.warning("provider_id_lookup_failed", provider=provider_name, error=str(e))
            return None

    async def _read_cache(
        self,
        user_id: str,
        provider_id: str,
        provider: Provider,
        data: InputT,
        started: float,
    ) -> CallEnvelope[OutputT] | None:
        entry = await self._cache.get(user_id, provider_id, self.task_type, data)
        if entry is None:
            return None
        try:
            result = self._decode(entry.payload)
        except (ValidationError, TypeError, ValueError) as e:
            log.warning("cached_payload_invalid", entry_id=entry.id, error=str(e))
            return None

        return CallEnvelope.ok(
            data=result,
            provider=provider.name.value,
            model=entry.metadata.get("model", provider.model),
            cached=True,
            response_time_ms=_elapsed_ms(started),
            metadata={"cache_entry_id": entry.id, "hit_count": entry.hit_count},
        )

    async def _call_provider(
        self,
        provider: Provider,
        provider_id: str,
        data: InputT,
        user_id: str,
        options: TaskOptions,
    ) -> CallEnvelope[OutputT]:
        start_time = time.perf_counter()
        try:
            envelope = await self._invoke(provider, data)
        except Exception as e:
            log.error(
                "provider_raised",
                provider=provider.name.value,
                task_type=self.task_type.value,
                error=str(e),
            )
            envelope = CallEnvelope.fail(
                f"{self.task_type.value} failed: {e}",
                provider=provider.name.value,
                model=provider.model,
                response_time_ms=_elapsed_ms(start_time),
            )

        if envelope.success and envelope.data is not None:
            await self._cache.set(
                user_id,
                provider_id,
                self.task_type,
                data,
                self._encode(envelope.data),
                ttl_hours=options.cache_ttl_hours,
                metadata={
                    "model": envelope.model,
                    "tokens_used": envelope.tokens_used,
                    "cost_usd": envelope.cost_usd,
                },
            )

        await self._ledger.log_usage(
            user_id,
            provider_id,
            self.task_type,
            envelope.model,
            envelope,
            start_time,
            campaign_id=options.campaign_id,
        )
        return envelope


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000

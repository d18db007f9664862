"""Provider selection with health-check memoization.

Candidate order for a request:

1. an explicit fallback chain, if given, wins outright;
2. otherwise the preferred provider followed by the user's stored priority
   for the task;
3. if both are empty, the task's default priority.

The first candidate that is registered, available and healthy is chosen.
Health results are memoized per provider and trusted for
``health_check_interval`` seconds.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta

from adforge_ai.logging import get_logger
from adforge_ai.providers.base import Provider
from adforge_ai.providers.capabilities import get_default_priority
from adforge_ai.providers.registry import ProviderRegistry
from adforge_ai.storage.base import DurableStore
from adforge_ai.types import ProviderHealthStatus, ProviderType, TaskType

log = get_logger("adforge_ai.providers.selector")

ProviderRef = ProviderType | str


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _parse_provider(ref: ProviderRef) -> ProviderType | None:
    if isinstance(ref, ProviderType):
        return ref
    try:
        return ProviderType(ref)
    except ValueError:
        log.warning("unknown_provider_name", provider=ref)
        return None


class ProviderSelector:
    """Chooses which provider serves a request.

    Args:
        registry: Registered providers.
        store: Durable store holding per-user priorities. Optional.
        health_check_interval: Seconds a memoized health result is trusted.
        clock: Returns the current UTC time. Injectable for tests.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        store: DurableStore | None = None,
        health_check_interval: float = 300,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._interval = timedelta(seconds=health_check_interval)
        self._clock = clock or _utcnow
        self._health: dict[ProviderType, ProviderHealthStatus] = {}
        self._locks: dict[ProviderType, asyncio.Lock] = {}

    async def resolve_candidates(
        self,
        task_type: TaskType,
        user_id: str,
        preferred_provider: ProviderRef | None = None,
        fallback_chain: Sequence[ProviderRef] | None = None,
    ) -> list[ProviderType]:
        """Resolve the ordered candidate list for a request.

        Unknown provider names are dropped. Duplicates are kept; the walk in
        :meth:`select` simply re-uses the memoized health result.
        """
        if fallback_chain:
            refs: list[ProviderRef] = list(fallback_chain)
        else:
            refs = []
            if preferred_provider:
                refs.append(preferred_provider)
            refs.extend(await self._stored_priority(user_id, task_type))
            if not refs:
                refs = list(get_default_priority(task_type))

        candidates: list[ProviderType] = []
        for ref in refs:
            ptype = _parse_provider(ref)
            if ptype is not None:
                candidates.append(ptype)
        return candidates

    async def select(
        self,
        task_type: TaskType,
        user_id: str,
        preferred_provider: ProviderRef | None = None,
        fallback_chain: Sequence[ProviderRef] | None = None,
    ) -> Provider | None:
        """Pick the first registered, available and healthy candidate.

        Returns:
            The chosen provider, or None when no candidate qualifies.
        """
        candidates = await self.resolve_candidates(
            task_type, user_id, preferred_provider, fallback_chain
        )

        for ptype in candidates:
            provider = self._registry.get(ptype)
            if provider is None:
                log.debug("candidate_skipped", provider=ptype.value, reason="unregistered")
                continue
            if not provider.available:
                log.debug("candidate_skipped", provider=ptype.value, reason="unavailable")
                continue
            status = await self._health_of(ptype, provider)
            if not status.healthy:
                log.info(
                    "candidate_skipped",
                    provider=ptype.value,
                    reason="unhealthy",
                    error=status.error,
                )
                continue
            log.debug(
                "provider_selected",
                provider=ptype.value,
                task_type=task_type.value,
                user_id=user_id,
            )
            return provider

        log.warning(
            "no_provider_available",
            task_type=task_type.value,
            user_id=user_id,
            candidates=[c.value for c in candidates],
        )
        return None

    async def get_health_status(
        self, provider_type: ProviderType, refresh: bool = False
    ) -> ProviderHealthStatus | None:
        """Health of one registered provider, probing when stale or asked to.

        Returns:
            The status, or None if the provider is not registered.
        """
        provider = self._registry.get(provider_type)
        if provider is None:
            return None
        if refresh:
            self.invalidate(provider_type)
        return await self._health_of(provider_type, provider)

    async def all_health_statuses(
        self, refresh: bool = False
    ) -> dict[ProviderType, ProviderHealthStatus]:
        """Health of every registered provider."""
        statuses: dict[ProviderType, ProviderHealthStatus] = {}
        for ptype in self._registry.all():
            status = await self.get_health_status(ptype, refresh=refresh)
            if status is not None:
                statuses[ptype] = status
        return statuses

    def invalidate(self, provider_type: ProviderType | None = None) -> None:
        """Forget memoized health for one provider, or for all of them."""
        if provider_type is None:
            self._health.clear()
        else:
            self._health.pop(provider_type, None)

    def _is_fresh(self, status: ProviderHealthStatus) -> bool:
        return self._clock() - status.last_check < self._interval

    async def _health_of(self, ptype: ProviderType, provider: Provider) -> ProviderHealthStatus:
        cached = self._health.get(ptype)
        if cached is not None and self._is_fresh(cached):
            return cached

        # One probe per provider at a time; waiters reuse its result
        lock = self._locks.setdefault(ptype, asyncio.Lock())
        async with lock:
            cached = self._health.get(ptype)
            if cached is not None and self._is_fresh(cached):
                return cached

            try:
                status = await provider.health_check()
            except Exception as e:
                log.warning("health_probe_raised", provider=ptype.value, error=str(e))
                status = ProviderHealthStatus(
                    provider=ptype.value, healthy=False, error=f"Health check error: {e}"
                )
            status.last_check = self._clock()
            self._health[ptype] = status
            log.debug("health_checked", provider=ptype.value, healthy=status.healthy)
            return status

    async def _stored_priority(self, user_id: str, task_type: TaskType) -> list[str]:
        if self._store is None:
            return []
        try:
            return await self._store.get_provider_priority(user_id, task_type.value)
        except Exception as e:
            log.warning(
                "stored_priority_lookup_failed",
                user_id=user_id,
                task_type=task_type.value,
                error=str(e),
            )
            return []

"""Composition root.

Builds the registry, selector, cache, ledger and task services once and
hands them out by reference. There is no module-level state: callers own the
:class:`Dispatcher` they build.
"""

from __future__ import annotations

from dataclasses import dataclass

from adforge_ai.cache.manager import ResponseCache
from adforge_ai.cache.sweeper import CacheSweeper
from adforge_ai.config import Settings
from adforge_ai.costs.ledger import UsageLedger
from adforge_ai.logging import get_logger
from adforge_ai.providers.registry import ProviderRegistry, build_registry
from adforge_ai.providers.selector import ProviderSelector
from adforge_ai.services.chat_assistant import ChatAssistantService
from adforge_ai.services.embeddings import EmbeddingsService
from adforge_ai.services.product_analysis import ProductAnalysisService
from adforge_ai.services.recommendations import RecommendationsService
from adforge_ai.services.script_generation import ScriptGenerationService
from adforge_ai.storage.base import DurableStore
from adforge_ai.storage.memory import InMemoryStore
from adforge_ai.storage.postgres import PostgresStore
from adforge_ai.types import ProviderType, TaskType

log = get_logger("adforge_ai.dispatcher")


@dataclass
class Dispatcher:
    """Every long-lived collaborator of the dispatch layer."""

    registry: ProviderRegistry
    store: DurableStore
    selector: ProviderSelector
    cache: ResponseCache
    ledger: UsageLedger
    product_analysis: ProductAnalysisService
    script_generation: ScriptGenerationService
    recommendations: RecommendationsService
    chat_assistant: ChatAssistantService
    embeddings: EmbeddingsService
    sweeper: CacheSweeper | None = None

    async def set_provider_priority(
        self, user_id: str, task_type: TaskType, priority: list[ProviderType]
    ) -> None:
        """Store a user's provider priority for a task."""
        await self.store.set_provider_priority(
            user_id, task_type.value, [ptype.value for ptype in priority]
        )
        log.info(
            "provider_priority_set",
            user_id=user_id,
            task_type=task_type.value,
            priority=[ptype.value for ptype in priority],
        )

    async def start(self) -> None:
        """Start background work (the cache sweep, when configured)."""
        if self.sweeper is not None:
            await self.sweeper.start()

    async def close(self) -> None:
        """Stop background work and release provider and store resources."""
        if self.sweeper is not None:
            await self.sweeper.stop()
        await self.registry.close()
        await self.store.close()
        log.info("dispatcher_closed")


def build_store(settings: Settings) -> DurableStore:
    """Create the durable store selected by ``storage_backend``."""
    if settings.storage_backend == "postgres":
        return PostgresStore(
            dsn=settings.postgres_dsn,
            min_size=settings.postgres_pool_min_size,
            max_size=settings.postgres_pool_max_size,
        )
    return InMemoryStore()


def build_dispatcher(
    settings: Settings,
    store: DurableStore | None = None,
    registry: ProviderRegistry | None = None,
) -> Dispatcher:
    """Wire every component from settings.

    Args:
        settings: Application settings.
        store: Durable store; built from settings when omitted. The caller is
            responsible for ``await store.initialize()``.
        registry: Provider registry; built from configured API keys when
            omitted.

    Returns:
        The assembled dispatcher.
    """
    store = store or build_store(settings)
    registry = registry or build_registry(settings)

    selector = ProviderSelector(
        registry,
        store=store,
        health_check_interval=settings.health_check_interval_seconds,
    )
    cache = ResponseCache(
        store,
        max_memory_entries=settings.cache_max_memory_entries,
        default_ttl_hours=settings.cache_default_ttl_hours,
    )
    ledger = UsageLedger(store, window_days=settings.metrics_window_days)
    sweeper = (
        CacheSweeper(cache, interval_seconds=settings.cache_sweep_interval_seconds)
        if settings.cache_sweep_enabled
        else None
    )

    dispatcher = Dispatcher(
        registry=registry,
        store=store,
        selector=selector,
        cache=cache,
        ledger=ledger,
        product_analysis=ProductAnalysisService(selector, cache, ledger, store),
        script_generation=ScriptGenerationService(selector, cache, ledger, store),
        recommendations=RecommendationsService(selector, cache, ledger, store),
        chat_assistant=ChatAssistantService(selector, cache, ledger, store),
        embeddings=EmbeddingsService(selector, cache, ledger, store),
        sweeper=sweeper,
    )
    log.info(
        "dispatcher_built",
        storage_backend=settings.storage_backend,
        providers=[ptype.value for ptype in registry.list_available()],
        cache_sweep=settings.cache_sweep_enabled,
    )
    return dispatcher

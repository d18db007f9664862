"""Unit tests for the task services' shared control flow."""

import asyncio
from dataclasses import dataclass
from unittest.mock import AsyncMock

import pytest

from adforge_ai.cache.manager import ResponseCache
from adforge_ai.costs.ledger import UsageLedger
from adforge_ai.providers.registry import ProviderRegistry
from adforge_ai.providers.selector import ProviderSelector
from adforge_ai.schemas import ChatInput, ProductAnalysis, RecommendationOutput, ScriptOutput
from adforge_ai.services import (
    ChatAssistantService,
    EmbeddingsService,
    ProductAnalysisService,
    RecommendationsService,
    ScriptGenerationService,
    TaskOptions,
)
from adforge_ai.storage.memory import InMemoryStore
from adforge_ai.types import CallEnvelope, ProviderType, TaskType

USER = "user-1"

PRODUCT = {
    "title": "Ergonomic Widget",
    "price": "$49.99",
    "description": "A widget that fits your hand.",
    "url": "https://shop.example.com/widget",
}


@dataclass
class Harness:
    store: InMemoryStore
    registry: ProviderRegistry
    selector: ProviderSelector
    cache: ResponseCache
    ledger: UsageLedger

    def service(self, cls):
        return cls(self.selector, self.cache, self.ledger, self.store)


@pytest.fixture
def harness(clock):
    store = InMemoryStore()
    registry = ProviderRegistry()
    return Harness(
        store=store,
        registry=registry,
        selector=ProviderSelector(registry, store=store, clock=clock),
        cache=ResponseCache(store, clock=clock),
        ledger=UsageLedger(store, clock=clock),
    )


@pytest.fixture
def openai(harness, fake_provider_factory):
    provider = fake_provider_factory(ProviderType.OPENAI, model="gpt-4-turbo")
    harness.registry.register(ProviderType.OPENAI, provider)
    return provider


@pytest.fixture
def claude(harness, fake_provider_factory):
    provider = fake_provider_factory(ProviderType.CLAUDE, model="claude-3-5-sonnet")
    harness.registry.register(ProviderType.CLAUDE, provider)
    return provider


class TestCacheFlow:
    """Miss, hit and failure handling."""

    @pytest.mark.asyncio
    async def test_miss_then_hit(self, harness, claude, openai):
        """Second identical request is served from cache at zero cost."""
        service = harness.service(ProductAnalysisService)

        first = await service.analyze(PRODUCT, USER)
        second = await service.analyze(PRODUCT, USER)

        assert first.success and not first.cached
        assert first.provider == "claude"
        assert first.tokens_used == 500
        assert first.cost_usd == 0.01
        assert isinstance(first.data, ProductAnalysis)

        assert second.success and second.cached
        assert second.tokens_used == 0
        assert second.cost_usd == 0.0
        assert second.model == "claude-3-5-sonnet"
        assert second.data == first.data
        assert second.metadata["hit_count"] == 1

        assert len(claude.calls) == 1
        assert len(harness.store.usage_records) == 1

    @pytest.mark.asyncio
    async def test_failure_logged_not_cached(self, harness, claude):
        claude.respond_with(
            CallEnvelope.fail("Recommendations error: overloaded", provider="claude")
        )
        service = harness.service(RecommendationsService)
        data = {"campaign_metrics": {"roas": 2.4, "spend": 500}}

        result = await service.generate_recommendations(data, USER)

        assert not result.success
        assert result.error == "Recommendations error: overloaded"
        assert harness.store.cache_size == 0
        records = harness.store.usage_records
        assert len(records) == 1
        assert records[0].status == "failure"
        assert records[0].error_message == "Recommendations error: overloaded"

        # Next identical request goes back to the provider
        retry = await service.generate_recommendations(data, USER)
        assert retry.success and not retry.cached
        assert isinstance(retry.data[0], RecommendationOutput)
        assert len(claude.calls) == 2

    @pytest.mark.asyncio
    async def test_provider_exception_becomes_failure(self, harness, openai):
        async def boom(data):
            raise RuntimeError("socket closed")

        openai.chat = boom
        service = harness.service(ChatAssistantService)

        result = await service.chat("hello", USER)

        assert not result.success
        assert "socket closed" in result.error
        assert harness.store.usage_records[0].status == "failure"

    @pytest.mark.asyncio
    async def test_cache_scoped_per_user(self, harness, openai):
        service = harness.service(ChatAssistantService)

        await service.chat("hello", USER)
        other = await service.chat("hello", "user-2")

        assert not other.cached
        assert len(openai.calls) == 2

    @pytest.mark.asyncio
    async def test_ttl_override(self, harness, openai, clock):
        service = harness.service(ChatAssistantService)

        await service.chat("hello", USER, TaskOptions(cache_ttl_hours=48))
        clock.advance(hours=24)
        again = await service.chat("hello", USER)

        assert again.cached

    @pytest.mark.asyncio
    async def test_default_chat_ttl_expires(self, harness, openai, clock):
        service = harness.service(ChatAssistantService)

        await service.chat("hello", USER)
        clock.advance(hours=1)
        again = await service.chat("hello", USER)

        assert not again.cached
        assert len(openai.calls) == 2

    @pytest.mark.asyncio
    async def test_invalid_cached_payload_is_a_miss(self, harness, openai):
        service = harness.service(EmbeddingsService)
        await harness.cache.set(USER, "openai", TaskType.EMBEDDINGS, "text", {"not": "a list"})

        result = await service.embed("text", USER)

        assert result.success and not result.cached
        assert result.data == [0.1, 0.2, 0.3]


class TestShortCircuits:
    """Requests that end before reaching the provider."""

    @pytest.mark.asyncio
    async def test_no_provider_available(self, harness, fake_provider_factory):
        claude = fake_provider_factory(ProviderType.CLAUDE, healthy=False)
        harness.registry.register(ProviderType.CLAUDE, claude)
        service = harness.service(RecommendationsService)

        result = await service.generate_recommendations({"campaign_metrics": {}}, USER)

        assert not result.success
        assert result.error == "No AI provider available for recommendations"
        assert result.provider == "none"
        assert harness.store.usage_records == []
        assert harness.store.cache_size == 0

    @pytest.mark.asyncio
    async def test_unresolved_provider_id(self, clock, fake_provider_factory):
        store = InMemoryStore(provider_names=[])
        registry = ProviderRegistry()
        openai = fake_provider_factory(ProviderType.OPENAI)
        registry.register(ProviderType.OPENAI, openai)
        selector = ProviderSelector(registry, store=store, clock=clock)
        service = ChatAssistantService(
            selector, ResponseCache(store, clock=clock), UsageLedger(store, clock=clock), store
        )

        result = await service.chat("hi", USER)

        assert not result.success
        assert "not configured in storage" in result.error
        assert openai.calls == []

    @pytest.mark.asyncio
    async def test_invalid_input(self, harness, openai):
        service = harness.service(ProductAnalysisService)

        result = await service.analyze({"title": "No price"}, USER)

        assert not result.success
        assert result.error.startswith("Invalid product-analysis input")
        assert openai.calls == []

    @pytest.mark.asyncio
    async def test_embeddings_rejects_non_string(self, harness, openai):
        service = harness.service(EmbeddingsService)
        result = await service.embed(42, USER)  # type: ignore[arg-type]
        assert not result.success
        assert "must be a string" in result.error


class TestSelectionOptions:
    """Per-request provider options."""

    @pytest.mark.asyncio
    async def test_preferred_provider(self, harness, openai, claude):
        service = harness.service(ProductAnalysisService)

        result = await service.analyze(
            PRODUCT, USER, TaskOptions(preferred_provider=ProviderType.OPENAI)
        )

        assert result.provider == "openai"
        assert claude.calls == []

    @pytest.mark.asyncio
    async def test_stored_priority_with_unavailable_first(
        self, harness, openai, fake_provider_factory
    ):
        claude = fake_provider_factory(ProviderType.CLAUDE, available=False)
        harness.registry.register(ProviderType.CLAUDE, claude)
        await harness.store.set_provider_priority(USER, "recommendations", ["claude", "openai"])
        service = harness.service(RecommendationsService)

        result = await service.generate_recommendations({"campaign_metrics": {"roas": 1}}, USER)

        assert result.provider == "openai"

    @pytest.mark.asyncio
    async def test_script_generation_with_campaign(self, harness, openai):
        service = harness.service(ScriptGenerationService)
        data = {"product": {"title": "Widget"}, "style": "bold"}

        result = await service.generate_script(data, USER, TaskOptions(campaign_id="camp-9"))

        assert isinstance(result.data, ScriptOutput)
        assert result.data.style == "bold"
        assert harness.store.usage_records[0].campaign_id == "camp-9"

    @pytest.mark.asyncio
    async def test_chat_accepts_model_input(self, harness, openai):
        service = harness.service(ChatAssistantService)
        data = ChatInput(
            message="And the budget?",
            conversation_history=[{"role": "user", "content": "Hi"}],
        )

        result = await service.chat(data, USER)

        assert result.data.message == "echo: And the budget?"


class TestSingleFlight:
    """Concurrent identical misses share one provider call."""

    @pytest.mark.asyncio
    async def test_concurrent_identical_requests(self, harness, openai):
        openai.gate = asyncio.Event()
        service = harness.service(EmbeddingsService)

        leader = asyncio.create_task(service.embed("same text", USER))
        while not openai.calls:
            await asyncio.sleep(0)
        follower = asyncio.create_task(service.embed("same text", USER))
        for _ in range(5):
            await asyncio.sleep(0)

        openai.gate.set()
        first, second = await asyncio.gather(leader, follower)

        assert len(openai.calls) == 1
        assert not first.cached
        assert second.cached
        assert second.data == first.data
        assert second.cost_usd == 0.0
        assert len(harness.store.usage_records) == 1

    @pytest.mark.asyncio
    async def test_follower_receives_failure(self, harness, openai):
        openai.gate = asyncio.Event()
        openai.respond_with(CallEnvelope.fail("Embedding error: quota", provider="openai"))
        service = harness.service(EmbeddingsService)

        leader = asyncio.create_task(service.embed("text", USER))
        while not openai.calls:
            await asyncio.sleep(0)
        follower = asyncio.create_task(service.embed("text", USER))
        for _ in range(5):
            await asyncio.sleep(0)

        openai.gate.set()
        first, second = await asyncio.gather(leader, follower)

        assert not first.success
        assert not second.success
        assert second.error == "Embedding error: quota"
        assert len(openai.calls) == 1

    @pytest.mark.asyncio
    async def test_cancelled_leader_releases_followers(self, harness, openai):
        openai.gate = asyncio.Event()
        service = harness.service(EmbeddingsService)

        leader = asyncio.create_task(service.embed("text", USER))
        while not openai.calls:
            await asyncio.sleep(0)
        follower = asyncio.create_task(service.embed("text", USER))
        for _ in range(5):
            await asyncio.sleep(0)

        leader.cancel()
        result = await follower

        assert not result.success
        assert "cancelled" in result.error


class TestDegradedStorage:
    """Storage problems never fail a request."""

    @pytest.mark.asyncio
    async def test_ledger_failure_does_not_fail_request(self, harness, openai):
        harness.store.insert_usage_record = AsyncMock(side_effect=RuntimeError("db down"))
        service = harness.service(ChatAssistantService)

        result = await service.chat("hello", USER)

        assert result.success

    @pytest.mark.asyncio
    async def test_provider_id_lookup_failure(self, harness, openai):
        harness.store.resolve_provider_id = AsyncMock(side_effect=RuntimeError("db down"))
        service = harness.service(ChatAssistantService)

        result = await service.chat("hello", USER)

        assert not result.success
        assert "not configured in storage" in result.error

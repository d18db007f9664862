"""Unit tests for the composition root, the cache sweeper and the entry point."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from adforge_ai.cache.manager import ResponseCache
from adforge_ai.cache.sweeper import CacheSweeper
from adforge_ai.dispatcher import build_dispatcher, build_store
from adforge_ai.providers.registry import ProviderRegistry
from adforge_ai.storage.base import StorageError
from adforge_ai.storage.memory import InMemoryStore
from adforge_ai.storage.postgres import PostgresStore
from adforge_ai.types import ProviderType, TaskType


def _registry(*providers) -> ProviderRegistry:
    registry = ProviderRegistry()
    for provider in providers:
        registry.register(provider.name, provider)
    return registry


class TestBuildDispatcher:
    """Tests for build_store/build_dispatcher."""

    def test_memory_backend(self, mock_settings):
        assert isinstance(build_store(mock_settings), InMemoryStore)

    def test_postgres_backend(self, mock_settings):
        settings = mock_settings.model_copy(update={"storage_backend": "postgres"})
        store = build_store(settings)
        assert isinstance(store, PostgresStore)

    def test_wires_every_service(self, mock_settings, fake_provider_factory):
        registry = _registry(fake_provider_factory(ProviderType.OPENAI))
        dispatcher = build_dispatcher(mock_settings, registry=registry)

        assert dispatcher.registry is registry
        assert dispatcher.product_analysis.task_type is TaskType.PRODUCT_ANALYSIS
        assert dispatcher.script_generation.task_type is TaskType.SCRIPT_GENERATION
        assert dispatcher.recommendations.task_type is TaskType.RECOMMENDATIONS
        assert dispatcher.chat_assistant.task_type is TaskType.CHAT_ASSISTANT
        assert dispatcher.embeddings.task_type is TaskType.EMBEDDINGS
        assert dispatcher.sweeper is None

    def test_sweeper_when_enabled(self, mock_settings):
        settings = mock_settings.model_copy(update={"cache_sweep_enabled": True})
        dispatcher = build_dispatcher(settings, registry=ProviderRegistry())
        assert isinstance(dispatcher.sweeper, CacheSweeper)

    @pytest.mark.asyncio
    async def test_end_to_end_with_stored_priority(self, mock_settings, fake_provider_factory):
        openai = fake_provider_factory(ProviderType.OPENAI)
        claude = fake_provider_factory(ProviderType.CLAUDE)
        dispatcher = build_dispatcher(mock_settings, registry=_registry(openai, claude))

        await dispatcher.set_provider_priority(
            "user-1", TaskType.CHAT_ASSISTANT, [ProviderType.CLAUDE, ProviderType.OPENAI]
        )
        first = await dispatcher.chat_assistant.chat("hi", "user-1")
        second = await dispatcher.chat_assistant.chat("hi", "user-1")
        metrics = await dispatcher.ledger.get_user_metrics("user-1")

        assert first.provider == "claude"
        assert second.cached
        assert metrics.total_requests == 1
        assert metrics.total_cost_usd == pytest.approx(0.01)

        await dispatcher.close()

    @pytest.mark.asyncio
    async def test_close_releases_resources(self, mock_settings):
        store = InMemoryStore()
        store.close = AsyncMock()
        registry = ProviderRegistry()
        registry.close = AsyncMock()
        dispatcher = build_dispatcher(mock_settings, store=store, registry=registry)

        await dispatcher.close()

        registry.close.assert_awaited_once()
        store.close.assert_awaited_once()


class TestCacheSweeper:
    """Tests for CacheSweeper."""

    @pytest.mark.asyncio
    async def test_sweep_once_updates_stats(self, clock):
        store = InMemoryStore()
        cache = ResponseCache(store, clock=clock)
        await cache.set("u", "openai", TaskType.CHAT_ASSISTANT, "x", {"m": 1})
        clock.advance(hours=2)
        sweeper = CacheSweeper(cache, interval_seconds=60)

        removed = await sweeper.sweep_once()

        assert removed == 1
        assert sweeper.stats.total_sweeps == 1
        assert sweeper.stats.total_removed == 1
        assert sweeper.stats.last_sweep is not None

    @pytest.mark.asyncio
    async def test_loop_runs_and_stops(self):
        cache = MagicMock()
        cache.clear_expired = AsyncMock(return_value=0)
        sweeper = CacheSweeper(cache, interval_seconds=0.01)

        await sweeper.start()
        assert sweeper.is_running
        await asyncio.sleep(0.05)
        await sweeper.stop()

        assert not sweeper.is_running
        assert cache.clear_expired.await_count >= 1

    @pytest.mark.asyncio
    async def test_loop_survives_failures(self):
        cache = MagicMock()
        cache.clear_expired = AsyncMock(side_effect=RuntimeError("db down"))
        sweeper = CacheSweeper(cache, interval_seconds=0.01)

        await sweeper.start()
        await asyncio.sleep(0.05)
        await sweeper.stop()

        assert sweeper.stats.failed_sweeps >= 1
        assert sweeper.stats.total_sweeps == 0

    @pytest.mark.asyncio
    async def test_double_start_is_ignored(self):
        cache = MagicMock()
        cache.clear_expired = AsyncMock(return_value=0)
        sweeper = CacheSweeper(cache, interval_seconds=60)

        await sweeper.start()
        first_task = sweeper._task
        await sweeper.start()

        assert sweeper._task is first_task
        await sweeper.stop()


class TestMain:
    """Tests for the main() entry point."""

    @pytest.mark.asyncio
    @patch("adforge_ai.main.setup_logging")
    @patch("adforge_ai.main.get_settings")
    async def test_healthy_provider_exits_zero(
        self, mock_get_settings, _mock_setup_logging, mock_settings, fake_provider_factory
    ):
        from adforge_ai import main as main_module

        mock_get_settings.return_value = mock_settings
        registry = _registry(
            fake_provider_factory(ProviderType.OPENAI),
            fake_provider_factory(ProviderType.CLAUDE, healthy=False),
        )
        real_build = main_module.build_dispatcher

        with patch(
            "adforge_ai.main.build_dispatcher",
            side_effect=lambda settings, store: real_build(
                settings, store=store, registry=registry
            ),
        ):
            code = await main_module.main(sweep=True)

        assert code == 0

    @pytest.mark.asyncio
    @patch("adforge_ai.main.setup_logging")
    @patch("adforge_ai.main.get_settings")
    async def test_no_healthy_provider_exits_one(
        self, mock_get_settings, _mock_setup_logging, mock_settings
    ):
        from adforge_ai import main as main_module

        mock_get_settings.return_value = mock_settings
        real_build = main_module.build_dispatcher

        with patch(
            "adforge_ai.main.build_dispatcher",
            side_effect=lambda settings, store: real_build(
                settings, store=store, registry=ProviderRegistry()
            ),
        ):
            code = await main_module.main()

        assert code == 1

    @pytest.mark.asyncio
    @patch("adforge_ai.main.setup_logging")
    @patch("adforge_ai.main.get_settings")
    @patch("adforge_ai.main.build_store")
    async def test_store_failure_exits_one(
        self, mock_build_store, mock_get_settings, _mock_setup_logging, mock_settings
    ):
        from adforge_ai.main import main

        mock_get_settings.return_value = mock_settings
        store = MagicMock()
        store.initialize = AsyncMock(side_effect=StorageError("connection refused"))
        mock_build_store.return_value = store

        assert await main() == 1

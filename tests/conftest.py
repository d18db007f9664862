"""Pytest fixtures for AdForge AI tests."""

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest

from adforge_ai.providers.base import Provider
from adforge_ai.schemas import (
    ChatOutput,
    ProductAnalysis,
    RecommendationOutput,
    ScriptOutput,
)
from adforge_ai.types import CallEnvelope, ProviderHealthStatus, ProviderType


class FakeProvider(Provider):
    """Scriptable provider that records every call.

    Successful results are built from the defaults below unless a specific
    envelope is queued with :meth:`respond_with`.
    """

    def __init__(
        self,
        provider_type: ProviderType = ProviderType.OPENAI,
        model: str = "fake-model",
        available: bool = True,
        healthy: bool = True,
        tokens: int = 500,
        cost: float = 0.01,
    ) -> None:
        self.provider_type = provider_type
        super().__init__(model=model, available=available)
        self.healthy = healthy
        self.tokens = tokens
        self.cost = cost
        self.calls: list[tuple[str, Any]] = []
        self.health_checks = 0
        self.health_error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self._queued: list[CallEnvelope[Any]] = []

    def respond_with(self, envelope: CallEnvelope[Any]) -> None:
        self._queued.append(envelope)

    async def _respond(self, op: str, data: Any, result: Any) -> CallEnvelope[Any]:
        self.calls.append((op, data))
        if self.gate is not None:
            await self.gate.wait()
        if self._queued:
            return self._queued.pop(0)
        return CallEnvelope.ok(
            data=result,
            provider=self.name.value,
            model=self.model,
            tokens_used=self.tokens,
            cost_usd=self.cost,
            response_time_ms=12.0,
            metadata={"input_tokens": 300, "output_tokens": self.tokens - 300},
        )

    async def analyze_product(self, data):
        return await self._respond(
            "analyze_product", data, ProductAnalysis(title=data.title, category="Widgets")
        )

    async def generate_script(self, data):
        script = ScriptOutput(
            primary_text="Meet the widget.",
            headline="Widgets, reimagined",
            call_to_action="Shop Now",
            style=data.style,
            provider_used=self.name.value,
            model=self.model,
        )
        return await self._respond("generate_script", data, script)

    async def generate_recommendations(self, data):
        recs = [
            RecommendationOutput(
                type="budget",
                priority="high",
                title="Increase budget",
                reasoning="ROAS is above target",
                confidence_score=85,
                current_value=50,
                recommended_value=75,
            )
        ]
        return await self._respond("generate_recommendations", data, recs)

    async def chat(self, data):
        return await self._respond("chat", data, ChatOutput(message=f"echo: {data.message}"))

    async def embed(self, text):
        return await self._respond("embed", text, [0.1, 0.2, 0.3])

    async def health_check(self):
        self.health_checks += 1
        if self.health_error is not None:
            raise self.health_error
        return ProviderHealthStatus(
            provider=self.name.value,
            healthy=self.healthy,
            error=None if self.healthy else "probe failed",
            available_quota=9999,
        )

    async def remaining_quota(self):
        return 9999


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Make sure real credentials from the environment never reach tests."""
    from adforge_ai.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Clear settings cache before each test."""
    from adforge_ai.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def mock_settings():
    """Settings with every provider configured and an in-memory store."""
    from adforge_ai.config import Settings

    return Settings(
        _env_file=None,
        openai_api_key="test-openai-key",
        anthropic_api_key="test-anthropic-key",
        gemini_api_key="test-gemini-key",
        storage_backend="memory",
        environment="test",
        log_level="DEBUG",
    )


@pytest.fixture
def fake_provider_factory():
    """Build FakeProvider instances."""
    return FakeProvider


@pytest.fixture
def clock():
    """A controllable clock."""
    return FakeClock()


@pytest.fixture
def mock_openai_client():
    """Mock AsyncOpenAI client."""
    client = MagicMock()

    response = Mock()
    response.choices = [Mock(message=Mock(content="Test response from OpenAI"))]
    response.usage = Mock(prompt_tokens=120, completion_tokens=80, total_tokens=200)
    client.chat.completions.create = AsyncMock(return_value=response)

    embedding = Mock()
    embedding.data = [Mock(embedding=[0.1, 0.2, 0.3])]
    embedding.usage = Mock(total_tokens=8)
    client.embeddings.create = AsyncMock(return_value=embedding)

    client.models.list = AsyncMock(return_value=[])
    client.close = AsyncMock()
    return client


@pytest.fixture
def mock_claude_client():
    """Mock AsyncAnthropic client."""
    client = MagicMock()

    response = Mock()
    response.content = [Mock(type="text", text="Test response from Claude")]
    response.usage = Mock(input_tokens=100, output_tokens=50)
    client.messages.create = AsyncMock(return_value=response)
    client.close = AsyncMock()
    return client


@pytest.fixture
def mock_gemini_client():
    """Mock google-genai client (synchronous API)."""
    client = Mock()
    client.models.generate_content = Mock(
        return_value=Mock(
            text="Test response from Gemini",
            usage_metadata=Mock(prompt_token_count=40, candidates_token_count=20),
        )
    )
    client.models.embed_content = Mock(
        return_value=Mock(embeddings=[Mock(values=[0.5] * 768)])
    )
    client.models.list = Mock(return_value=iter([Mock(name="models/gemini-1.5-pro")]))
    return client


def make_pool() -> tuple[MagicMock, AsyncMock]:
    """Build a mock asyncpg.Pool and return ``(pool, conn)``.

    ``pool.acquire()`` returns an async context manager (not a coroutine),
    matching asyncpg behaviour.
    """
    pool = MagicMock()
    conn = AsyncMock()

    ctx = AsyncMock()
    ctx.__aenter__ = AsyncMock(return_value=conn)
    ctx.__aexit__ = AsyncMock(return_value=False)
    pool.acquire.return_value = ctx
    pool.close = AsyncMock()

    conn.fetch.return_value = []
    conn.fetchrow.return_value = None
    conn.execute.return_value = "DELETE 0"
    return pool, conn


@pytest.fixture
def pg_pool():
    """Mock asyncpg pool and its connection."""
    return make_pool()

"""Unit tests for CallEnvelope and the core types."""

from adforge_ai.schemas import ChatOutput, ProjectedImpact, RecommendationOutput
from adforge_ai.types import CallEnvelope, ProviderDescriptor, ProviderType, TaskType


class TestEnums:
    """Tests for ProviderType and TaskType."""

    def test_provider_values(self):
        """Provider values are the names used in storage."""
        assert [p.value for p in ProviderType] == ["openai", "claude", "google"]

    def test_task_values(self):
        """Task types use kebab-case values."""
        assert TaskType.PRODUCT_ANALYSIS.value == "product-analysis"
        assert TaskType.SCRIPT_GENERATION.value == "script-generation"
        assert TaskType.RECOMMENDATIONS.value == "recommendations"
        assert TaskType.CHAT_ASSISTANT.value == "chat-assistant"
        assert TaskType.EMBEDDINGS.value == "embeddings"

    def test_descriptor_availability_is_mutable(self):
        """Availability can be toggled at runtime."""
        descriptor = ProviderDescriptor(name=ProviderType.CLAUDE, default_model="m")
        descriptor.available = False
        assert descriptor.available is False


class TestCallEnvelope:
    """Tests for envelope invariants."""

    def test_ok(self):
        """Successful envelope keeps data, tokens and cost."""
        env = CallEnvelope.ok(data="x", provider="openai", model="m", tokens_used=10, cost_usd=0.5)
        assert env.success is True
        assert env.data == "x"
        assert env.tokens_used == 10
        assert env.cost_usd == 0.5
        assert env.cached is False
        assert env.error is None

    def test_failure_drops_data_and_cost(self):
        """A failed envelope never carries data, tokens or cost."""
        env = CallEnvelope(
            success=False, provider="openai", model="m", data="x", tokens_used=5, cost_usd=1.0
        )
        assert env.data is None
        assert env.tokens_used == 0
        assert env.cost_usd == 0.0
        assert env.error == "Unknown error"

    def test_fail_defaults(self):
        """fail() defaults provider and model to 'none'."""
        env = CallEnvelope.fail("No AI provider available")
        assert env.success is False
        assert env.provider == "none"
        assert env.model == "none"
        assert env.error == "No AI provider available"

    def test_cached_envelope_is_free(self):
        """A cached envelope has zero tokens and cost."""
        env = CallEnvelope(
            success=True, provider="openai", model="m", data=1, tokens_used=5, cost_usd=1.0,
            cached=True,
        )
        assert env.tokens_used == 0
        assert env.cost_usd == 0.0

    def test_as_cached_copies(self):
        """as_cached returns a zero-cost copy and leaves the original untouched."""
        env = CallEnvelope.ok(data=[1.0], provider="openai", model="m", tokens_used=9, cost_usd=0.2)
        cached = env.as_cached(response_time_ms=1.5)
        assert cached.cached is True
        assert cached.tokens_used == 0
        assert cached.cost_usd == 0.0
        assert cached.response_time_ms == 1.5
        assert cached.data == [1.0]
        assert env.tokens_used == 9
        assert env.cached is False

    def test_to_dict_dumps_models_by_alias(self):
        """Pydantic payloads are serialized with camelCase keys."""
        rec = RecommendationOutput(
            type="budget",
            priority="high",
            title="t",
            reasoning="r",
            confidence_score=90,
            projected_impact=[ProjectedImpact(label="ROAS", value="+10%")],
        )
        env = CallEnvelope.ok(data=[rec], provider="claude", model="m")
        out = env.to_dict()
        assert out["data"][0]["confidenceScore"] == 90
        assert out["data"][0]["projectedImpact"] == [{"label": "ROAS", "value": "+10%"}]

    def test_to_dict_single_model(self):
        """A single model payload is dumped as a dict."""
        env = CallEnvelope.ok(data=ChatOutput(message="hi"), provider="openai", model="m")
        assert env.to_dict()["data"]["message"] == "hi"

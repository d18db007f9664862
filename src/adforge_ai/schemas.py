"""Pydantic models for task inputs and provider outputs.

Field names are snake_case in Python and camelCase on the wire, matching the
JSON shape the frontend and the model prompts use.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    """Base model accepting either snake_case or camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump as JSON-compatible camelCase dict."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Product analysis
# ---------------------------------------------------------------------------


class ProductAnalysisInput(_WireModel):
    """Product page data submitted for analysis."""

    title: str
    price: str
    description: str
    url: str = ""
    images: list[str] = Field(default_factory=list)


class MarketPosition(_WireModel):
    positioning: str = ""
    price_point: str = ""
    value_proposition: str = ""


class TargetAudience(_WireModel):
    primary: str = ""
    demographics: str = ""
    interests: list[str] = Field(default_factory=list)


class CompetitiveInsight(_WireModel):
    differentiator: str = ""
    brand_strength: str = ""
    market_opportunity: str = ""


class ProductAnalysis(_WireModel):
    """Structured product insight returned by a provider."""

    title: str
    description: str = ""
    price: str = ""
    images: list[str] = Field(default_factory=list)
    sku: str = ""
    category: str = ""
    market_position: MarketPosition = Field(default_factory=MarketPosition)
    target_audience: TargetAudience = Field(default_factory=TargetAudience)
    competitive_insight: CompetitiveInsight = Field(default_factory=CompetitiveInsight)
    recommendations: list[str] = Field(default_factory=list)
    key_highlights: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Script generation
# ---------------------------------------------------------------------------


class ScriptGenerationInput(_WireModel):
    """Request for an advertising script."""

    product: ProductAnalysis
    style: str
    duration: str | None = None
    tone: str | None = None


class ScriptOutput(_WireModel):
    """Advertising script returned by a provider."""

    primary_text: str
    headline: str
    call_to_action: str
    description: str = ""
    style: str = ""
    duration: str = ""
    variations: list["ScriptOutput"] = Field(default_factory=list)
    provider_used: str = ""
    model: str = ""


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------


class RecommendationInput(_WireModel):
    """Campaign data submitted for optimization advice."""

    campaign_metrics: dict[str, Any]
    campaign_history: dict[str, Any] | None = None
    performance_data: dict[str, Any] | None = None


class ProjectedImpact(_WireModel):
    label: str
    value: str


class RecommendationOutput(_WireModel):
    """A single optimization recommendation."""

    type: str
    priority: Literal["high", "medium", "suggestion"]
    title: str
    reasoning: str
    confidence_score: float = Field(ge=0.0, le=100.0)
    current_value: float | None = None
    recommended_value: float | None = None
    projected_impact: list[ProjectedImpact] | None = None


# ---------------------------------------------------------------------------
# Chat assistant
# ---------------------------------------------------------------------------


class ChatMessage(_WireModel):
    role: Literal["user", "assistant"]
    content: str


class ChatInput(_WireModel):
    """A chat turn with optional prior conversation."""

    message: str
    conversation_history: list[ChatMessage] = Field(default_factory=list)
    context: dict[str, Any] | None = None


class ChatOutput(_WireModel):
    """Assistant reply."""

    message: str
    suggestions: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None

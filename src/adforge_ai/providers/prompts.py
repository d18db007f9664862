"""LLM prompt templates shared by every provider.

Organised by task:
  - Product analysis
  - Ad script generation
  - Campaign recommendations
  - Chat assistant
"""

import json
import re

from adforge_ai.schemas import (
    ProductAnalysisInput,
    RecommendationInput,
    ScriptGenerationInput,
)

# ---------------------------------------------------------------------------
# Product analysis
# ---------------------------------------------------------------------------

PRODUCT_ANALYSIS_SYSTEM = """\
You are an e-commerce market analyst. Return ONLY valid JSON. No markdown, no explanation."""

PRODUCT_ANALYSIS_USER = """\
Analyze this product and provide comprehensive insights:
Title: {title}
Price: {price}
Description: {description}

Return a JSON object with these keys:
  title, price, description, category, sku,
  marketPosition: {{positioning, pricePoint, valueProposition}},
  targetAudience: {{primary, demographics, interests: [string]}},
  competitiveInsight: {{differentiator, brandStrength, marketOpportunity}},
  recommendations: [string],
  keyHighlights: [string]"""

# ---------------------------------------------------------------------------
# Script generation
# ---------------------------------------------------------------------------

SCRIPT_SYSTEM = """\
You are a direct-response advertising copywriter. Return ONLY valid JSON. No markdown."""

SCRIPT_USER = """\
Create an engaging advertising script for this product:
Product: {title}
Description: {description}
Style: {style}
Duration: {duration}
Tone: {tone}

Return a JSON object with primaryText, headline, description, and callToAction fields."""

DEFAULT_SCRIPT_DURATION = "15-30 seconds"
DEFAULT_SCRIPT_TONE = "professional"

# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------

RECOMMENDATIONS_SYSTEM = """\
You are a paid-social campaign optimization expert. Return ONLY a valid JSON array."""

RECOMMENDATIONS_USER = """\
Based on these campaign metrics, provide optimization recommendations:
{metrics}

Return a JSON array of recommendations. Each element has:
  type, priority ("high" | "medium" | "suggestion"), title, reasoning,
  confidenceScore (0-100), and optionally currentValue and recommendedValue."""

# ---------------------------------------------------------------------------
# Chat assistant
# ---------------------------------------------------------------------------

CHAT_SYSTEM = """\
You are the campaign assistant of an ad creation platform. Help the user set up,
launch and optimize their ad campaigns. Be concise and practical."""

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def product_analysis_prompt(data: ProductAnalysisInput) -> str:
    return PRODUCT_ANALYSIS_USER.format(
        title=data.title, price=data.price, description=data.description
    )


def script_prompt(data: ScriptGenerationInput) -> str:
    return SCRIPT_USER.format(
        title=data.product.title,
        description=data.product.description,
        style=data.style,
        duration=data.duration or DEFAULT_SCRIPT_DURATION,
        tone=data.tone or DEFAULT_SCRIPT_TONE,
    )


def recommendations_prompt(data: RecommendationInput) -> str:
    return RECOMMENDATIONS_USER.format(metrics=json.dumps(data.campaign_metrics, indent=2))


def strip_code_fences(text: str) -> str:
    """Remove a surrounding Markdown code fence if the model added one."""
    stripped = text.strip()
    match = _FENCE_RE.match(stripped)
    return match.group(1) if match else stripped

"""Model pricing data and cost calculation.

Provider APIs do NOT return pricing information, so we maintain a manual
pricing table here. This should be updated when pricing changes.

Costs are approximations for usage analysis, not a billing reconciliation
mechanism. When a vendor only reports a total token count, a fixed 60/40
input/output split is assumed.
"""

import re
from dataclasses import dataclass

from adforge_ai.constants import INPUT_TOKEN_SHARE
from adforge_ai.logging import get_logger
from adforge_ai.types import ProviderType

log = get_logger("adforge_ai.providers.pricing")


@dataclass
class CostResult:
    """Result of a cost calculation."""

    cost_usd: float
    estimated: bool = False  # True if pricing was unknown and fallback was used
    model_id: str | None = None


# Pricing table - costs per 1 million tokens
PRICING: dict[str, dict[str, float]] = {
    # OpenAI models
    "gpt-4-turbo": {"input": 10.00, "output": 30.00},
    "gpt-4-turbo-preview": {"input": 10.00, "output": 30.00},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4.1": {"input": 2.00, "output": 8.00},
    "gpt-3.5-turbo": {"input": 0.50, "output": 1.50},
    "text-embedding-3-small": {"input": 0.02, "output": 0.0},
    "text-embedding-3-large": {"input": 0.13, "output": 0.0},
    # Anthropic Claude models
    "claude-3-opus": {"input": 15.00, "output": 75.00},
    "claude-3-sonnet": {"input": 3.00, "output": 15.00},
    "claude-3-haiku": {"input": 0.25, "output": 1.25},
    "claude-3-5-sonnet": {"input": 3.00, "output": 15.00},
    "claude-sonnet-4-5": {"input": 3.00, "output": 15.00},
    # Google Gemini models
    "gemini-1.5-pro": {"input": 1.25, "output": 5.00},
    "gemini-1.5-flash": {"input": 0.075, "output": 0.30},
    "gemini-2.0-flash": {"input": 0.075, "output": 0.30},
    "text-embedding-004": {"input": 0.0, "output": 0.0},
}

# Fallback pricing per provider, used when a model is missing from the table
PROVIDER_FALLBACK_PRICING: dict[ProviderType, dict[str, float]] = {
    ProviderType.OPENAI: {"input": 10.00, "output": 30.00},
    ProviderType.CLAUDE: {"input": 3.00, "output": 15.00},
    ProviderType.GOOGLE: {"input": 1.25, "output": 5.00},
}


def _normalize_model_id(model_id: str) -> str:
    """Normalize a model ID by removing date suffixes.

    Examples:
        "claude-3-opus-20240229" -> "claude-3-opus"
        "gpt-4o-2024-11-20" -> "gpt-4o"
    """
    normalized = re.sub(r"-\d{8}$", "", model_id)
    normalized = re.sub(r"-\d{4}-\d{2}-\d{2}$", "", normalized)
    return normalized


def split_tokens(total_tokens: int) -> tuple[int, int]:
    """Split a total token count into (input, output) using the assumed ratio."""
    input_tokens = round(total_tokens * INPUT_TOKEN_SHARE)
    return input_tokens, total_tokens - input_tokens


def get_cost(
    model_id: str,
    tokens_input: int,
    tokens_output: int,
    provider: ProviderType | None = None,
) -> CostResult:
    """Calculate the cost of an API call.

    Args:
        model_id: The model identifier.
        tokens_input: Number of input tokens.
        tokens_output: Number of output tokens.
        provider: Provider whose fallback rates apply to unknown models.

    Returns:
        CostResult with the calculated cost and estimation flag.
    """
    pricing = PRICING.get(model_id) or PRICING.get(_normalize_model_id(model_id))
    if pricing is not None:
        cost = (tokens_input * pricing["input"] + tokens_output * pricing["output"]) / 1_000_000
        return CostResult(cost_usd=cost, estimated=False, model_id=model_id)

    fallback = PROVIDER_FALLBACK_PRICING.get(
        provider or ProviderType.OPENAI, PROVIDER_FALLBACK_PRICING[ProviderType.OPENAI]
    )
    cost = (tokens_input * fallback["input"] + tokens_output * fallback["output"]) / 1_000_000

    log.warning(
        "unknown_pricing",
        model=model_id,
        provider=provider.value if provider else None,
        estimated_cost=cost,
    )
    return CostResult(cost_usd=cost, estimated=True, model_id=model_id)


def estimate_cost_from_total(
    model_id: str,
    total_tokens: int,
    provider: ProviderType | None = None,
) -> CostResult:
    """Calculate cost when only the total token count is known."""
    tokens_input, tokens_output = split_tokens(total_tokens)
    result = get_cost(model_id, tokens_input, tokens_output, provider=provider)
    result.estimated = True
    return result


def has_pricing(model_id: str) -> bool:
    """Check if we have pricing data for a model."""
    return model_id in PRICING or _normalize_model_id(model_id) in PRICING

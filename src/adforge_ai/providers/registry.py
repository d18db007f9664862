"""Provider registry.

Maps each ProviderType to its concrete provider instance. The registry is
built once by the composition root; a provider is only registered when its
credentials are configured.
"""

import httpx

from adforge_ai.config import Settings
from adforge_ai.logging import get_logger
from adforge_ai.providers.base import Provider
from adforge_ai.providers.claude_provider import ClaudeProvider
from adforge_ai.providers.gemini_provider import GeminiProvider
from adforge_ai.providers.openai_provider import OpenAIProvider
from adforge_ai.types import ProviderType

log = get_logger("adforge_ai.providers.registry")


class ProviderRegistry:
    """Registry of provider instances keyed by provider type."""

    def __init__(self) -> None:
        self._providers: dict[ProviderType, Provider] = {}

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, provider_type: object) -> bool:
        return provider_type in self._providers

    def register(self, provider_type: ProviderType, provider: Provider) -> None:
        """Register a provider, replacing any previous one of the same type.

        Args:
            provider_type: The provider type key.
            provider: The provider instance.
        """
        if provider_type in self._providers:
            log.info("provider_replaced", provider=provider_type.value)
        self._providers[provider_type] = provider
        log.info(
            "provider_registered",
            provider=provider_type.value,
            model=provider.model,
            available=provider.available,
        )

    def unregister(self, provider_type: ProviderType) -> Provider | None:
        """Remove a provider. Returns the removed instance, if any."""
        provider = self._providers.pop(provider_type, None)
        if provider is not None:
            log.info("provider_unregistered", provider=provider_type.value)
        return provider

    def get(self, provider_type: ProviderType) -> Provider | None:
        """Get a provider by type, or None if unregistered."""
        return self._providers.get(provider_type)

    def has(self, provider_type: ProviderType) -> bool:
        return provider_type in self._providers

    def list_available(self) -> list[ProviderType]:
        """List providers whose availability flag is set.

        This reflects configuration only. Health is tracked by the selector.
        """
        return [ptype for ptype, provider in self._providers.items() if provider.available]

    def all(self) -> dict[ProviderType, Provider]:
        """Snapshot of every registered provider."""
        return dict(self._providers)

    async def close(self) -> None:
        """Close every provider's network resources."""
        for ptype, provider in self._providers.items():
            try:
                await provider.close()
            except Exception as e:
                log.warning("provider_close_failed", provider=ptype.value, error=str(e))


def build_registry(settings: Settings) -> ProviderRegistry:
    """Build a registry with one provider per configured API key.

    Args:
        settings: Application settings.

    Returns:
        Registry containing every provider whose credentials are present.
    """
    registry = ProviderRegistry()

    # OpenAI and Anthropic share one connection pool
    http_client: httpx.AsyncClient | None = None
    if settings.openai_api_key or settings.anthropic_api_key:
        http_client = httpx.AsyncClient(timeout=settings.provider_timeout_seconds)

    if settings.openai_api_key:
        registry.register(
            ProviderType.OPENAI,
            OpenAIProvider(
                api_key=settings.openai_api_key.get_secret_value(),
                model=settings.openai_model,
                embedding_model=settings.openai_embedding_model,
                temperature=settings.default_temperature,
                timeout=settings.provider_timeout_seconds,
                max_retries=settings.provider_max_retries,
                http_client=http_client,
            ),
        )

    if settings.anthropic_api_key:
        registry.register(
            ProviderType.CLAUDE,
            ClaudeProvider(
                api_key=settings.anthropic_api_key.get_secret_value(),
                model=settings.claude_model,
                temperature=settings.default_temperature,
                timeout=settings.provider_timeout_seconds,
                max_retries=settings.provider_max_retries,
                http_client=http_client,
            ),
        )

    if settings.gemini_api_key:
        registry.register(
            ProviderType.GOOGLE,
            GeminiProvider(
                api_key=settings.gemini_api_key.get_secret_value(),
                model=settings.gemini_model,
                embedding_model=settings.gemini_embedding_model,
                temperature=settings.default_temperature,
            ),
        )

    if not len(registry):
        log.warning("no_providers_configured")
    else:
        log.info(
            "provider_registry_built",
            providers=[ptype.value for ptype in registry.all()],
        )
    return registry

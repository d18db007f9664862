"""Provider capability abstraction, concrete backends, registry and selection."""

from adforge_ai.providers.base import ChatCompletionProvider, Completion, Provider
from adforge_ai.providers.claude_provider import ClaudeProvider
from adforge_ai.providers.gemini_provider import GeminiProvider
from adforge_ai.providers.openai_provider import OpenAIProvider
from adforge_ai.providers.registry import ProviderRegistry, build_registry
from adforge_ai.providers.selector import ProviderSelector

__all__ = [
    "ChatCompletionProvider",
    "ClaudeProvider",
    "Completion",
    "GeminiProvider",
    "OpenAIProvider",
    "Provider",
    "ProviderRegistry",
    "ProviderSelector",
    "build_registry",
]

"""Google Gemini provider.

The google-genai client is synchronous, so every call is wrapped in
``asyncio.to_thread`` to avoid blocking the event loop.
"""

from __future__ import annotations

import asyncio
from typing import Any

from google import genai

from adforge_ai.logging import get_logger
from adforge_ai.providers.base import ChatCompletionProvider, Completion
from adforge_ai.types import ProviderType

log = get_logger("adforge_ai.providers.gemini")

# Gemini names the assistant role "model"
_ROLE_MAP = {"user": "user", "assistant": "model"}


def _approx_tokens(text: str) -> int:
    return len(text.split()) * 2


class GeminiProvider(ChatCompletionProvider):
    """Provider backed by Google Gemini."""

    provider_type = ProviderType.GOOGLE

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gemini-1.5-pro",
        embedding_model: str = "text-embedding-004",
        temperature: float = 0.7,
        client: genai.Client | None = None,
    ) -> None:
        if client is None and api_key:
            client = genai.Client(api_key=api_key)
        super().__init__(model=model, available=client is not None, temperature=temperature)
        self._client = client
        self.embedding_model = embedding_model
        log.debug("gemini_provider_initialized", model=model, available=self.available)

    def _require_client(self) -> genai.Client:
        if self._client is None:
            raise RuntimeError("Gemini client not initialized")
        return self._client

    async def _complete(
        self,
        messages: list[dict[str, str]],
        system: str | None,
        max_tokens: int,
    ) -> Completion:
        client = self._require_client()

        contents = [
            {"role": _ROLE_MAP.get(m["role"], "user"), "parts": [{"text": m["content"]}]}
            for m in messages
        ]
        config: dict[str, Any] = {
            "temperature": self._temperature,
            "max_output_tokens": max_tokens,
        }
        if system:
            config["system_instruction"] = system

        def _sync_generate() -> Any:
            return client.models.generate_content(
                model=self.model,
                contents=contents,  # type: ignore[arg-type]
                config=config,  # type: ignore[arg-type]
            )

        response = await asyncio.to_thread(_sync_generate)
        text = response.text or ""

        usage = getattr(response, "usage_metadata", None)
        input_tokens = getattr(usage, "prompt_token_count", 0) if usage else 0
        output_tokens = getattr(usage, "candidates_token_count", 0) if usage else 0
        # Fall back to a word-count heuristic if metadata is missing
        if not input_tokens:
            input_tokens = sum(_approx_tokens(m["content"]) for m in messages)
        if not output_tokens:
            output_tokens = _approx_tokens(text)

        return Completion(content=text, input_tokens=input_tokens, output_tokens=output_tokens)

    async def _embed(self, text: str) -> tuple[list[float], int]:
        client = self._require_client()

        def _sync_embed() -> Any:
            return client.models.embed_content(model=self.embedding_model, contents=text)

        result = await asyncio.to_thread(_sync_embed)
        return list(result.embeddings[0].values), _approx_tokens(text)

    async def _probe(self) -> None:
        client = self._require_client()

        def _sync_list() -> None:
            list(client.models.list())

        await asyncio.to_thread(_sync_list)

"""OpenAI provider (chat completions and embeddings)."""

from __future__ import annotations

from typing import Any

import httpx
import openai

from adforge_ai.logging import get_logger
from adforge_ai.providers.base import ChatCompletionProvider, Completion
from adforge_ai.types import ProviderType

log = get_logger("adforge_ai.providers.openai")


class OpenAIProvider(ChatCompletionProvider):
    """Provider backed by the OpenAI API.

    Args:
        api_key: OpenAI API key. When neither a key nor a client is given the
            provider is registered as unavailable.
        model: Chat model used for text operations.
        embedding_model: Model used by ``embed``.
        temperature: Sampling temperature.
        timeout: Per-request network timeout in seconds.
        max_retries: SDK-level retries on transient errors.
        http_client: Shared connection pool, reused across vendors.
        client: Pre-built client, mainly for tests.
    """

    provider_type = ProviderType.OPENAI

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4-turbo",
        embedding_model: str = "text-embedding-3-small",
        temperature: float = 0.7,
        timeout: float = 60.0,
        max_retries: int = 2,
        http_client: httpx.AsyncClient | None = None,
        client: openai.AsyncOpenAI | None = None,
    ) -> None:
        if client is None and api_key:
            client = openai.AsyncOpenAI(
                api_key=api_key,
                timeout=timeout,
                max_retries=max_retries,
                http_client=http_client,
            )
        super().__init__(model=model, available=client is not None, temperature=temperature)
        self._client = client
        self.embedding_model = embedding_model
        log.debug("openai_provider_initialized", model=model, available=self.available)

    def _require_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            raise RuntimeError("OpenAI client not initialized")
        return self._client

    async def _complete(
        self,
        messages: list[dict[str, str]],
        system: str | None,
        max_tokens: int,
    ) -> Completion:
        client = self._require_client()

        api_messages: list[dict[str, Any]] = []
        if system:
            api_messages.append({"role": "system", "content": system})
        api_messages.extend({"role": m["role"], "content": m["content"]} for m in messages)

        response = await client.chat.completions.create(
            model=self.model,
            messages=api_messages,  # type: ignore[arg-type]
            max_tokens=max_tokens,
            temperature=self._temperature,
        )

        usage = response.usage
        return Completion(
            content=(response.choices[0].message.content or "") if response.choices else "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            total_tokens=usage.total_tokens if usage else None,
        )

    async def _embed(self, text: str) -> tuple[list[float], int]:
        client = self._require_client()
        response = await client.embeddings.create(model=self.embedding_model, input=text)
        vector = list(response.data[0].embedding)
        tokens = response.usage.total_tokens if response.usage else 0
        return vector, tokens

    async def _probe(self) -> None:
        await self._require_client().models.list()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

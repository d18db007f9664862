"""Anthropic Claude provider.

Claude has no embeddings endpoint, so ``embed`` always returns a failure
envelope and the selector should never pick Claude for embeddings.
"""

from __future__ import annotations

from typing import Any

import anthropic
import httpx

from adforge_ai.constants import HEALTH_CHECK_MAX_TOKENS
from adforge_ai.logging import get_logger
from adforge_ai.providers.base import ChatCompletionProvider, Completion
from adforge_ai.types import ProviderType

log = get_logger("adforge_ai.providers.claude")


class ClaudeProvider(ChatCompletionProvider):
    """Provider backed by the Anthropic Messages API."""

    provider_type = ProviderType.CLAUDE

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-3-opus-20240229",
        temperature: float = 0.7,
        timeout: float = 60.0,
        max_retries: int = 2,
        http_client: httpx.AsyncClient | None = None,
        client: anthropic.AsyncAnthropic | None = None,
    ) -> None:
        if client is None and api_key:
            client = anthropic.AsyncAnthropic(
                api_key=api_key,
                timeout=timeout,
                max_retries=max_retries,
                http_client=http_client,
            )
        super().__init__(model=model, available=client is not None, temperature=temperature)
        self._client = client
        log.debug("claude_provider_initialized", model=model, available=self.available)

    def _require_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            raise RuntimeError("Claude client not initialized")
        return self._client

    async def _complete(
        self,
        messages: list[dict[str, str]],
        system: str | None,
        max_tokens: int,
    ) -> Completion:
        client = self._require_client()

        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": self._temperature,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
        }
        if system:
            kwargs["system"] = system

        response = await client.messages.create(**kwargs)

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        return Completion(
            content=text,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )

    async def _probe(self) -> None:
        client = self._require_client()
        try:
            await client.messages.create(
                model=self.model,
                max_tokens=HEALTH_CHECK_MAX_TOKENS,
                messages=[{"role": "user", "content": "ping"}],
            )
        except anthropic.BadRequestError:
            # A 400 still proves the API is reachable and the key is accepted
            log.debug("claude_probe_bad_request_treated_as_healthy")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

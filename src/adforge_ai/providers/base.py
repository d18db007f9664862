"""Provider capability contract.

Every backend model service implements :class:`Provider`. All operations are
async and return a :class:`~adforge_ai.types.CallEnvelope`; they never raise.
Transport errors, non-success HTTP statuses and malformed model output all
become failure envelopes with a human-readable message, so any provider can
stand in for any other.

Most vendors expose a chat-completion style endpoint, so
:class:`ChatCompletionProvider` implements the four text operations on top
of a single ``_complete`` primitive.
"""

from __future__ import annotations

import asyncio
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from pydantic import TypeAdapter, ValidationError

from adforge_ai.constants import (
    ANALYSIS_MAX_TOKENS,
    CHAT_MAX_TOKENS,
    HEALTH_CHECK_TIMEOUT,
    QUOTA_UNLIMITED,
    RECOMMENDATIONS_MAX_TOKENS,
    SCRIPT_MAX_TOKENS,
)
from adforge_ai.logging import get_logger
from adforge_ai.providers import prompts
from adforge_ai.providers.pricing import estimate_cost_from_total, get_cost
from adforge_ai.schemas import (
    ChatInput,
    ChatOutput,
    ProductAnalysis,
    ProductAnalysisInput,
    RecommendationInput,
    RecommendationOutput,
    ScriptGenerationInput,
    ScriptOutput,
)
from adforge_ai.types import CallEnvelope, ProviderDescriptor, ProviderHealthStatus, ProviderType

log = get_logger("adforge_ai.providers.base")

_RECOMMENDATIONS_ADAPTER = TypeAdapter(list[RecommendationOutput])


class UnsupportedOperationError(Exception):
    """Raised internally when a backend has no endpoint for an operation."""


@dataclass
class Completion:
    """Raw text completion plus vendor-reported usage."""

    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int | None = None

    @property
    def tokens_used(self) -> int:
        reported = self.input_tokens + self.output_tokens
        return reported or (self.total_tokens or 0)


class Provider(ABC):
    """Uniform capability contract implemented once per backend."""

    provider_type: ProviderType

    def __init__(self, model: str, available: bool = True) -> None:
        self.descriptor = ProviderDescriptor(
            name=self.provider_type, default_model=model, available=available
        )

    @property
    def name(self) -> ProviderType:
        return self.descriptor.name

    @property
    def model(self) -> str:
        return self.descriptor.default_model

    @property
    def available(self) -> bool:
        return self.descriptor.available

    @available.setter
    def available(self, value: bool) -> None:
        self.descriptor.available = value

    @abstractmethod
    async def analyze_product(self, data: ProductAnalysisInput) -> CallEnvelope[ProductAnalysis]:
        """Produce structured market insight for a product."""

    @abstractmethod
    async def generate_script(self, data: ScriptGenerationInput) -> CallEnvelope[ScriptOutput]:
        """Write an advertising script for a product."""

    @abstractmethod
    async def generate_recommendations(
        self, data: RecommendationInput
    ) -> CallEnvelope[list[RecommendationOutput]]:
        """Suggest campaign optimizations from metrics."""

    @abstractmethod
    async def chat(self, data: ChatInput) -> CallEnvelope[ChatOutput]:
        """Reply to a chat message."""

    @abstractmethod
    async def embed(self, text: str) -> CallEnvelope[list[float]]:
        """Embed text into a fixed-length float vector."""

    @abstractmethod
    async def health_check(self) -> ProviderHealthStatus:
        """Cheap liveness probe. Must not raise."""

    @abstractmethod
    async def remaining_quota(self) -> int:
        """Best-effort remaining quota; QUOTA_UNLIMITED when not applicable."""

    async def close(self) -> None:
        """Release network resources held by the vendor client."""
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} model={self.model!r} available={self.available}>"


class ChatCompletionProvider(Provider):
    """Provider built on a chat-completion primitive.

    Subclasses implement ``_complete`` and ``_probe`` (and ``_embed`` when
    the vendor has an embeddings endpoint). Exceptions raised by those hooks
    are turned into failure envelopes here.
    """

    embedding_model: str | None = None

    def __init__(self, model: str, available: bool = True, temperature: float = 0.7) -> None:
        super().__init__(model=model, available=available)
        self._temperature = temperature

    @abstractmethod
    async def _complete(
        self,
        messages: list[dict[str, str]],
        system: str | None,
        max_tokens: int,
    ) -> Completion:
        """Call the vendor completion endpoint. May raise."""

    @abstractmethod
    async def _probe(self) -> None:
        """Minimal request proving the backend is reachable. Raises when it is not."""

    async def _embed(self, text: str) -> tuple[list[float], int]:
        """Return (vector, tokens). Default: not supported."""
        raise UnsupportedOperationError(
            f"{self.name.value} does not support embeddings"
        )

    # ------------------------------------------------------------------
    # Text operations
    # ------------------------------------------------------------------

    async def analyze_product(self, data: ProductAnalysisInput) -> CallEnvelope[ProductAnalysis]:
        return await self._structured_call(
            label="Product analysis",
            prompt=prompts.product_analysis_prompt(data),
            system=prompts.PRODUCT_ANALYSIS_SYSTEM,
            max_tokens=ANALYSIS_MAX_TOKENS,
            parse=lambda raw: ProductAnalysis.model_validate(raw),
        )

    async def generate_script(self, data: ScriptGenerationInput) -> CallEnvelope[ScriptOutput]:
        def _parse(raw: Any) -> ScriptOutput:
            script = ScriptOutput.model_validate(raw)
            script.style = script.style or data.style
            script.duration = script.duration or data.duration or prompts.DEFAULT_SCRIPT_DURATION
            script.provider_used = self.name.value
            script.model = self.model
            return script

        return await self._structured_call(
            label="Script generation",
            prompt=prompts.script_prompt(data),
            system=prompts.SCRIPT_SYSTEM,
            max_tokens=SCRIPT_MAX_TOKENS,
            parse=_parse,
        )

    async def generate_recommendations(
        self, data: RecommendationInput
    ) -> CallEnvelope[list[RecommendationOutput]]:
        def _parse(raw: Any) -> list[RecommendationOutput]:
            # Some models wrap the array in an object
            if isinstance(raw, dict) and isinstance(raw.get("recommendations"), list):
                raw = raw["recommendations"]
            return _RECOMMENDATIONS_ADAPTER.validate_python(raw)

        return await self._structured_call(
            label="Recommendations",
            prompt=prompts.recommendations_prompt(data),
            system=prompts.RECOMMENDATIONS_SYSTEM,
            max_tokens=RECOMMENDATIONS_MAX_TOKENS,
            parse=_parse,
        )

    async def chat(self, data: ChatInput) -> CallEnvelope[ChatOutput]:
        start_time = time.perf_counter()
        messages = [{"role": m.role, "content": m.content} for m in data.conversation_history]
        messages.append({"role": "user", "content": data.message})

        try:
            completion = await self._complete(messages, prompts.CHAT_SYSTEM, CHAT_MAX_TOKENS)
        except Exception as e:
            log.warning("provider_call_failed", provider=self.name.value, op="chat", error=str(e))
            return self._failure(f"Chat error: {e}", start_time)

        if not completion.content:
            return self._failure("Chat error: empty response from model", start_time)

        return self._success(ChatOutput(message=completion.content), completion, start_time)

    async def embed(self, text: str) -> CallEnvelope[list[float]]:
        start_time = time.perf_counter()
        try:
            vector, tokens = await self._embed(text)
        except UnsupportedOperationError as e:
            return self._failure(str(e), start_time, model=self.embedding_model or self.model)
        except Exception as e:
            log.warning("provider_call_failed", provider=self.name.value, op="embed", error=str(e))
            return self._failure(
                f"Embedding error: {e}", start_time, model=self.embedding_model or self.model
            )

        model = self.embedding_model or self.model
        cost = get_cost(model, tokens, 0, provider=self.name)
        return CallEnvelope.ok(
            data=vector,
            provider=self.name.value,
            model=model,
            tokens_used=tokens,
            cost_usd=cost.cost_usd,
            response_time_ms=_elapsed_ms(start_time),
            metadata={
                "input_tokens": tokens,
                "output_tokens": 0,
                "cost_estimated": cost.estimated,
                "dimensions": len(vector),
            },
        )

    # ------------------------------------------------------------------
    # Health and quota
    # ------------------------------------------------------------------

    async def health_check(self) -> ProviderHealthStatus:
        try:
            await asyncio.wait_for(self._probe(), timeout=HEALTH_CHECK_TIMEOUT)
        except Exception as e:
            log.warning("health_check_failed", provider=self.name.value, error=str(e))
            return ProviderHealthStatus(
                provider=self.name.value,
                healthy=False,
                error=f"Health check error: {e}" if str(e) else "Health check timed out",
            )
        return ProviderHealthStatus(
            provider=self.name.value,
            healthy=True,
            available_quota=await self.remaining_quota(),
        )

    async def remaining_quota(self) -> int:
        return QUOTA_UNLIMITED

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _structured_call(
        self,
        label: str,
        prompt: str,
        system: str,
        max_tokens: int,
        parse: Any,
    ) -> CallEnvelope[Any]:
        """Run a JSON-producing completion and validate the result."""
        start_time = time.perf_counter()
        try:
            completion = await self._complete(
                [{"role": "user", "content": prompt}], system, max_tokens
            )
        except Exception as e:
            log.warning("provider_call_failed", provider=self.name.value, op=label, error=str(e))
            return self._failure(f"{label} error: {e}", start_time)

        try:
            raw = json.loads(prompts.strip_code_fences(completion.content))
            parsed = parse(raw)
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            log.warning(
                "malformed_model_output",
                provider=self.name.value,
                op=label,
                error=str(e),
                tokens=completion.tokens_used,
            )
            return self._failure(f"{label} returned malformed output: {e}", start_time)

        return self._success(parsed, completion, start_time)

    def _success(self, data: Any, completion: Completion, start_time: float) -> CallEnvelope[Any]:
        metadata: dict[str, Any] = {}
        if completion.input_tokens or completion.output_tokens:
            cost = get_cost(
                self.model, completion.input_tokens, completion.output_tokens, provider=self.name
            )
            metadata["input_tokens"] = completion.input_tokens
            metadata["output_tokens"] = completion.output_tokens
        else:
            # Total only; the ledger applies the assumed split
            cost = estimate_cost_from_total(
                self.model, completion.total_tokens or 0, provider=self.name
            )
        metadata["cost_estimated"] = cost.estimated
        return CallEnvelope.ok(
            data=data,
            provider=self.name.value,
            model=self.model,
            tokens_used=completion.tokens_used,
            cost_usd=cost.cost_usd,
            response_time_ms=_elapsed_ms(start_time),
            metadata=metadata,
        )

    def _failure(
        self, error: str, start_time: float, model: str | None = None
    ) -> CallEnvelope[Any]:
        return CallEnvelope.fail(
            error=error,
            provider=self.name.value,
            model=model or self.model,
            response_time_ms=_elapsed_ms(start_time),
        )


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * 1000

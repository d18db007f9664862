"""Text embeddings task service."""

from typing import Any

from adforge_ai.providers.base import Provider
from adforge_ai.services.base import TaskOptions, TaskService
from adforge_ai.types import CallEnvelope, TaskType


class EmbeddingsService(TaskService[str, list[float]]):
    task_type = TaskType.EMBEDDINGS

    async def embed(
        self,
        text: str,
        user_id: str,
        options: TaskOptions | None = None,
    ) -> CallEnvelope[list[float]]:
        return await self.execute(text, user_id, options)

    def _coerce_input(self, data: Any) -> str:
        if not isinstance(data, str):
            raise TypeError("Embeddings input must be a string")
        return data

    async def _invoke(self, provider: Provider, data: str) -> CallEnvelope[list[float]]:
        return await provider.embed(data)

    def _encode(self, result: list[float]) -> Any:
        return list(result)

    def _decode(self, payload: Any) -> list[float]:
        if not isinstance(payload, list):
            raise TypeError("Cached embedding is not a list")
        return [float(x) for x in payload]

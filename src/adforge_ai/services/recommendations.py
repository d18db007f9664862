"""Campaign recommendations task service."""

from typing import Any

from pydantic import TypeAdapter

from adforge_ai.providers.base import Provider
from adforge_ai.schemas import RecommendationInput, RecommendationOutput
from adforge_ai.services.base import TaskOptions, TaskService
from adforge_ai.types import CallEnvelope, TaskType

_ADAPTER = TypeAdapter(list[RecommendationOutput])


class RecommendationsService(TaskService[RecommendationInput, list[RecommendationOutput]]):
    """Suggests campaign optimizations from performance metrics."""

    task_type = TaskType.RECOMMENDATIONS

    async def generate_recommendations(
        self,
        data: RecommendationInput | dict[str, Any],
        user_id: str,
        options: TaskOptions | None = None,
    ) -> CallEnvelope[list[RecommendationOutput]]:
        return await self.execute(data, user_id, options)  # type: ignore[arg-type]

    def _coerce_input(self, data: Any) -> RecommendationInput:
        return RecommendationInput.model_validate(data)

    async def _invoke(
        self, provider: Provider, data: RecommendationInput
    ) -> CallEnvelope[list[RecommendationOutput]]:
        return await provider.generate_recommendations(data)

    def _encode(self, result: list[RecommendationOutput]) -> Any:
        return [rec.to_wire() for rec in result]

    def _decode(self, payload: Any) -> list[RecommendationOutput]:
        return _ADAPTER.validate_python(payload)

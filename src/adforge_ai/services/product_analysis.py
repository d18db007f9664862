"""Product analysis task service."""

from typing import Any

from adforge_ai.providers.base import Provider
from adforge_ai.schemas import ProductAnalysis, ProductAnalysisInput
from adforge_ai.services.base import TaskOptions, TaskService
from adforge_ai.types import CallEnvelope, TaskType


class ProductAnalysisService(TaskService[ProductAnalysisInput, ProductAnalysis]):
    """Turns scraped product page data into structured market insight."""

    task_type = TaskType.PRODUCT_ANALYSIS

    async def analyze(
        self,
        data: ProductAnalysisInput | dict[str, Any],
        user_id: str,
        options: TaskOptions | None = None,
    ) -> CallEnvelope[ProductAnalysis]:
        return await self.execute(data, user_id, options)  # type: ignore[arg-type]

    def _coerce_input(self, data: Any) -> ProductAnalysisInput:
        return ProductAnalysisInput.model_validate(data)

    async def _invoke(
        self, provider: Provider, data: ProductAnalysisInput
    ) -> CallEnvelope[ProductAnalysis]:
        return await provider.analyze_product(data)

    def _encode(self, result: ProductAnalysis) -> Any:
        return result.to_wire()

    def _decode(self, payload: Any) -> ProductAnalysis:
        return ProductAnalysis.model_validate(payload)

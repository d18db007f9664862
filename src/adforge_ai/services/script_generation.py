"""Ad script generation task service."""

from typing import Any

from adforge_ai.providers.base import Provider
from adforge_ai.schemas import ScriptGenerationInput, ScriptOutput
from adforge_ai.services.base import TaskOptions, TaskService
from adforge_ai.types import CallEnvelope, TaskType


class ScriptGenerationService(TaskService[ScriptGenerationInput, ScriptOutput]):
    """Writes advertising copy for an analyzed product."""

    task_type = TaskType.SCRIPT_GENERATION

    async def generate_script(
        self,
        data: ScriptGenerationInput | dict[str, Any],
        user_id: str,
        options: TaskOptions | None = None,
    ) -> CallEnvelope[ScriptOutput]:
        return await self.execute(data, user_id, options)  # type: ignore[arg-type]

    def _coerce_input(self, data: Any) -> ScriptGenerationInput:
        return ScriptGenerationInput.model_validate(data)

    async def _invoke(
        self, provider: Provider, data: ScriptGenerationInput
    ) -> CallEnvelope[ScriptOutput]:
        return await provider.generate_script(data)

    def _encode(self, result: ScriptOutput) -> Any:
        return result.to_wire()

    def _decode(self, payload: Any) -> ScriptOutput:
        return ScriptOutput.model_validate(payload)

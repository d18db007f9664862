"""Chat assistant task service.

The cache key covers the message and the whole conversation history, so
only exact repeats of a conversation are served from cache.
"""

from typing import Any

from adforge_ai.providers.base import Provider
from adforge_ai.schemas import ChatInput, ChatOutput
from adforge_ai.services.base import TaskOptions, TaskService
from adforge_ai.types import CallEnvelope, TaskType


class ChatAssistantService(TaskService[ChatInput, ChatOutput]):
    task_type = TaskType.CHAT_ASSISTANT

    async def chat(
        self,
        data: ChatInput | dict[str, Any] | str,
        user_id: str,
        options: TaskOptions | None = None,
    ) -> CallEnvelope[ChatOutput]:
        return await self.execute(data, user_id, options)  # type: ignore[arg-type]

    def _coerce_input(self, data: Any) -> ChatInput:
        if isinstance(data, str):
            return ChatInput(message=data)
        return ChatInput.model_validate(data)

    async def _invoke(self, provider: Provider, data: ChatInput) -> CallEnvelope[ChatOutput]:
        return await provider.chat(data)

    def _encode(self, result: ChatOutput) -> Any:
        return result.to_wire()

    def _decode(self, payload: Any) -> ChatOutput:
        return ChatOutput.model_validate(payload)

"""Task services, one per task type, sharing one control-flow template."""

from adforge_ai.services.base import TaskOptions, TaskService
from adforge_ai.services.chat_assistant import ChatAssistantService
from adforge_ai.services.embeddings import EmbeddingsService
from adforge_ai.services.product_analysis import ProductAnalysisService
from adforge_ai.services.recommendations import RecommendationsService
from adforge_ai.services.script_generation import ScriptGenerationService

__all__ = [
    "ChatAssistantService",
    "EmbeddingsService",
    "ProductAnalysisService",
    "RecommendationsService",
    "ScriptGenerationService",
    "TaskOptions",
    "TaskService",
]

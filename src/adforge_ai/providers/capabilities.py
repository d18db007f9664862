"""Task capability matrix.

Maps each task type to its default provider priority (best first) and the
default time-to-live of cached results. The priorities reflect known
per-task quality differences between the providers.
"""

from dataclasses import dataclass

from adforge_ai.logging import get_logger
from adforge_ai.types import ProviderType, TaskType

log = get_logger("adforge_ai.providers.capabilities")


@dataclass(frozen=True)
class TaskProfile:
    """Defaults applied to a task type."""

    priority: tuple[ProviderType, ...]
    cache_ttl_hours: float
    rationale: str


TASK_MATRIX: dict[TaskType, TaskProfile] = {
    TaskType.PRODUCT_ANALYSIS: TaskProfile(
        priority=(ProviderType.CLAUDE, ProviderType.OPENAI),
        cache_ttl_hours=24,
        rationale="Long structured extraction, Claude follows the schema most reliably",
    ),
    TaskType.SCRIPT_GENERATION: TaskProfile(
        priority=(ProviderType.OPENAI, ProviderType.CLAUDE),
        cache_ttl_hours=24,
        rationale="Strongest short-form copywriting and style flexibility",
    ),
    TaskType.RECOMMENDATIONS: TaskProfile(
        priority=(ProviderType.CLAUDE, ProviderType.OPENAI),
        cache_ttl_hours=12,
        rationale="Best reasoning over tabular campaign metrics; metrics go stale quickly",
    ),
    TaskType.CHAT_ASSISTANT: TaskProfile(
        priority=(ProviderType.OPENAI, ProviderType.CLAUDE),
        cache_ttl_hours=1,
        rationale="Lowest latency conversational replies; exact repeats are rare",
    ),
    TaskType.EMBEDDINGS: TaskProfile(
        priority=(ProviderType.OPENAI, ProviderType.GOOGLE),
        cache_ttl_hours=168,
        rationale="Claude has no embeddings endpoint; vectors are deterministic per model",
    ),
}


def get_default_priority(task_type: TaskType) -> list[ProviderType]:
    """Get the default provider order for a task type.

    Args:
        task_type: The task being dispatched.

    Returns:
        Providers ordered best first.
    """
    profile = TASK_MATRIX.get(task_type)
    if profile is None:
        log.warning("unknown_task_type", task_type=str(task_type))
        return [ProviderType.OPENAI, ProviderType.CLAUDE]
    return list(profile.priority)


def get_default_ttl_hours(task_type: TaskType, fallback: float = 24.0) -> float:
    """Get the default cache TTL in hours for a task type."""
    profile = TASK_MATRIX.get(task_type)
    return profile.cache_ttl_hours if profile else fallback

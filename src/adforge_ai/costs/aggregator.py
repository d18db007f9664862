"""Usage aggregation utilities.

Metrics are derived by scanning usage records; no running counters are kept.
"""

from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass
from typing import Any

from adforge_ai.storage.models import UsageRecord


@dataclass
class UsageMetrics:
    """Aggregated usage over a set of records.

    ``success_rate`` is a fraction in [0, 1]; every field is zero when there
    are no records.
    """

    total_requests: int = 0
    successful_requests: int = 0
    total_cost_usd: float = 0.0
    total_tokens: int = 0
    success_rate: float = 0.0
    avg_response_time_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def compute_metrics(records: Iterable[UsageRecord]) -> UsageMetrics:
    """Compute aggregate stats for a group of records."""
    records = list(records)
    if not records:
        return UsageMetrics()

    total = len(records)
    successful = sum(1 for r in records if r.succeeded)
    return UsageMetrics(
        total_requests=total,
        successful_requests=successful,
        total_cost_usd=sum(r.cost_usd for r in records),
        total_tokens=sum(r.total_tokens for r in records),
        success_rate=successful / total,
        avg_response_time_ms=sum(r.response_time_ms for r in records) / total,
    )


def aggregate_records(
    records: Iterable[UsageRecord],
    key_fn: Callable[[UsageRecord], str],
) -> dict[str, UsageMetrics]:
    """Group records by a key function and compute metrics per group.

    Args:
        records: Usage records to aggregate.
        key_fn: Function extracting the grouping key from a record.

    Returns:
        Dict mapping keys to UsageMetrics.
    """
    groups: dict[str, list[UsageRecord]] = defaultdict(list)
    for record in records:
        groups[key_fn(record)].append(record)
    return {key: compute_metrics(group) for key, group in groups.items()}

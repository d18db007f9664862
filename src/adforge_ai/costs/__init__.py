"""Usage accounting: the append-only ledger and its aggregates."""

from adforge_ai.costs.aggregator import UsageMetrics, aggregate_records, compute_metrics
from adforge_ai.costs.ledger import UsageLedger

__all__ = ["UsageLedger", "UsageMetrics", "aggregate_records", "compute_metrics"]

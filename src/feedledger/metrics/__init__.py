"""Cycle, area and feed-component KPIs plus data-quality checks."""

from feedledger.metrics.allocation import allocate_proportionally, safe_ratio
from feedledger.metrics.area import (
    AreaMetrics,
    AreaMetricsCalculator,
    FeedTypeBreakdown,
)
from feedledger.metrics.batch import (
    CycleBatch,
    CycleReport,
    evaluate_cycles,
    report_items,
)
from feedledger.metrics.cycle import CycleMetrics, CycleMetricsCalculator
from feedledger.metrics.feed_components import (
    FeedComponentSummarizer,
    FeedComponentSummary,
)
from feedledger.metrics.quality import (
    DataQualityAuditor,
    DataQualityReport,
    MissingFeedDays,
    MissingPrice,
    UnattributedConsumption,
)

__all__ = [
    "AreaMetrics",
    "AreaMetricsCalculator",
    "CycleBatch",
    "CycleMetrics",
    "CycleMetricsCalculator",
    "CycleReport",
    "DataQualityAuditor",
    "DataQualityReport",
    "FeedComponentSummarizer",
    "FeedComponentSummary",
    "FeedTypeBreakdown",
    "MissingFeedDays",
    "MissingPrice",
    "UnattributedConsumption",
    "allocate_proportionally",
    "evaluate_cycles",
    "report_items",
    "safe_ratio",
]

"""Cycles, occupancy details and animal-presence timeframes."""

from feedledger.livestock.core import LivestockCycle, OccupancyDetail, ScopeType
from feedledger.livestock.timeframe import (
    ActiveIntervalIndex,
    ScopeIndex,
    TimeframeFilter,
    cycle_duration_days,
    interval_days,
    max_animals_at_any_time,
)

__all__ = [
    "ActiveIntervalIndex",
    "LivestockCycle",
    "OccupancyDetail",
    "ScopeIndex",
    "ScopeType",
    "TimeframeFilter",
    "cycle_duration_days",
    "interval_days",
    "max_animals_at_any_time",
]

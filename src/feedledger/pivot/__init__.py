"""Pivot tables over priced consumption."""

from feedledger.pivot.accumulator import Accumulator
from feedledger.pivot.config import (
    PivotConfig,
    PivotConfigError,
    PivotValue,
    load_pivot_config,
)
from feedledger.pivot.dimensions import (
    PivotAggregation,
    PivotDimension,
    PivotValueField,
)
from feedledger.pivot.engine import (
    ColumnHeader,
    PivotCell,
    PivotEngine,
    PivotRow,
    PivotTableData,
)

__all__ = [
    "Accumulator",
    "ColumnHeader",
    "PivotAggregation",
    "PivotCell",
    "PivotConfig",
    "PivotConfigError",
    "PivotDimension",
    "PivotEngine",
    "PivotRow",
    "PivotTableData",
    "PivotValue",
    "PivotValueField",
    "load_pivot_config",
]

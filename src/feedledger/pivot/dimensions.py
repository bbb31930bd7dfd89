"""
Pivot dimensions, value fields and aggregations.

Dimensions map each consumption row to a bucket key. Time buckets use
zero-padded ISO-style keys (``2024-W05``, ``2024-03``, ``2024-Q1``) so plain
string order is chronological; categorical buckets are display names.
"""

import enum
from datetime import date

from feedledger.feed.core import ConsumptionItem


class PivotDimension(enum.Enum):
    DATE = "date"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    FEED_TYPE = "feed_type"
    AREA = "area"
    AREA_GROUP = "area_group"
    SUPPLIER = "supplier"

    @property
    def is_time(self) -> bool:
        return self in _TIME_DIMENSIONS


_TIME_DIMENSIONS = frozenset(
    {
        PivotDimension.DATE,
        PivotDimension.WEEK,
        PivotDimension.MONTH,
        PivotDimension.QUARTER,
        PivotDimension.YEAR,
    }
)


class PivotValueField(enum.Enum):
    QUANTITY = "quantity"
    COST = "cost"
    AVG_PRICE = "avg_price"
    COUNT = "count"
    MIN_PRICE = "min_price"
    MAX_PRICE = "max_price"


class PivotAggregation(enum.Enum):
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"
    COUNT = "count"
    WEIGHTED_AVG = "weighted_avg"


def time_bucket(day: date, dimension: PivotDimension) -> str:
    if dimension is PivotDimension.DATE:
        return day.isoformat()
    if dimension is PivotDimension.WEEK:
        iso_year, week, _ = day.isocalendar()
        return f"{iso_year:04d}-W{week:02d}"
    if dimension is PivotDimension.MONTH:
        return f"{day.year:04d}-{day.month:02d}"
    if dimension is PivotDimension.QUARTER:
        return f"{day.year:04d}-Q{(day.month - 1) // 3 + 1}"
    if dimension is PivotDimension.YEAR:
        return f"{day.year:04d}"
    raise ValueError(f"{dimension} is not a time dimension")


def bucket(
    item: ConsumptionItem, dimension: PivotDimension, labels: dict[str, str]
) -> str:
    """Bucket key of ``item`` along ``dimension``."""
    if dimension.is_time:
        return time_bucket(item.date, dimension)
    if dimension is PivotDimension.FEED_TYPE:
        return item.feed_type_name or labels.get("unknown_feed_type", "Unbekannt")
    if dimension is PivotDimension.AREA:
        return item.area_name or labels.get("no_area", "Ohne Bereich")
    if dimension is PivotDimension.AREA_GROUP:
        return item.area_group_name or labels.get("no_group", "Ohne Gruppe")
    return item.supplier_name or labels.get("no_supplier", "Ohne Lieferant")


def sort_key(dimension: PivotDimension, key: str) -> tuple[str, str]:
    """Time keys sort as-is; names sort case-insensitively, then exactly."""
    if dimension.is_time:
        return (key, key)
    return (key.casefold(), key)


def display_label(
    key: str, dimension: PivotDimension, month_names: list[str] | None = None
) -> str:
    """Human-readable bucket label ("KW 05, 2024", "März 2024", ...)."""
    if dimension is PivotDimension.DATE:
        day = date.fromisoformat(key)
        return f"{day.day:02d}.{day.month:02d}.{day.year:04d}"
    if dimension is PivotDimension.WEEK:
        year, week = key.split("-W")
        return f"KW {week}, {year}"
    if dimension is PivotDimension.MONTH:
        year, month = key.split("-")
        if month_names and len(month_names) == 12:
            return f"{month_names[int(month) - 1]} {year}"
        return key
    if dimension is PivotDimension.QUARTER:
        return key.replace("-Q", " Q")
    return key


def field_value(item: ConsumptionItem, value_field: PivotValueField) -> float:
    if value_field is PivotValueField.QUANTITY:
        return item.quantity
    if value_field is PivotValueField.COST:
        return item.total_cost
    if value_field is PivotValueField.COUNT:
        return 1.0
    # Price fields: resolved price, else effective cost per unit
    if item.price_per_unit is not None:
        return item.price_per_unit
    if item.quantity > 0:
        return item.total_cost / item.quantity
    return 0.0

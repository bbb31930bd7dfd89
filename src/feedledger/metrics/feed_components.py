"""Per-feed-type consumption summary for a cycle."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any

from feedledger.config.loader import resolve_config
from feedledger.feed.core import ConsumptionItem
from feedledger.livestock.core import LivestockCycle
from feedledger.livestock.timeframe import ScopeIndex, animal_days, cycle_duration_days
from feedledger.metrics.allocation import safe_ratio


@dataclass(frozen=True)
class FeedComponentSummary:
    feed_type_id: str
    feed_type_name: str
    unit: str
    total_quantity: float
    total_cost: float
    weighted_avg_price: float
    percentage_of_total: float
    daily_consumption: float
    quantity_per_animal_per_day: float
    quantity_per_animal: float


class FeedComponentSummarizer:
    """
    Groups a cycle's attributed consumption by feed type.

    The result is sorted by total cost (descending); index 0 is the primary
    feed component.
    """

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        self.config = resolve_config(config)
        self.unknown_label: str = self.config.get("labels", {}).get(
            "unknown_feed_type", "Unbekannt"
        )
        self.default_unit: str = self.config.get("default_unit", "kg")

    def calculate(
        self,
        cycle: LivestockCycle,
        items: Sequence[ConsumptionItem],
        as_of: date | None = None,
    ) -> list[FeedComponentSummary]:
        scopes = ScopeIndex(cycle.details, items, cycle.end_date, as_of)
        by_scope, _ = scopes.partition(items)

        # feed_type_id -> [name, unit, quantity, cost]
        totals: dict[str, list] = {}
        for scope_items in by_scope.values():
            for item in scope_items:
                entry = totals.setdefault(
                    item.feed_type_id,
                    [
                        item.feed_type_name or self.unknown_label,
                        item.unit or self.default_unit,
                        0.0,
                        0.0,
                    ],
                )
                entry[2] += item.quantity
                entry[3] += item.total_cost

        duration = cycle_duration_days(cycle.start_date, cycle.end_date, as_of)
        total_animal_days = animal_days(cycle.details, cycle.end_date, as_of)
        total_cost = sum(e[3] for e in totals.values())

        summaries = []
        for feed_type_id, (name, unit, quantity, cost) in totals.items():
            per_animal_per_day = safe_ratio(quantity, total_animal_days)
            summaries.append(
                FeedComponentSummary(
                    feed_type_id=feed_type_id,
                    feed_type_name=name,
                    unit=unit,
                    total_quantity=quantity,
                    total_cost=cost,
                    weighted_avg_price=safe_ratio(cost, quantity),
                    percentage_of_total=safe_ratio(cost, total_cost) * 100,
                    daily_consumption=safe_ratio(quantity, duration),
                    quantity_per_animal_per_day=per_animal_per_day,
                    quantity_per_animal=per_animal_per_day * duration,
                )
            )

        summaries.sort(
            key=lambda s: (-s.total_cost, s.feed_type_name.casefold(), s.feed_type_id)
        )
        return summaries

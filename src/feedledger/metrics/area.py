"""
Per-area (and per-area-group) feed cost and profitability.

Each active scope of a cycle gets one AreaMetrics. Consumption is attributed
through ScopeIndex so every row lands in at most one scope; cost
transactions are spread over all scopes by animal-days.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Sequence
from dataclasses import dataclass, replace
from datetime import date
from typing import Any

from feedledger.config.loader import resolve_config
from feedledger.feed.core import ConsumptionItem
from feedledger.finance.core import CostTransaction, split_cost_transactions
from feedledger.livestock.core import LivestockCycle, OccupancyDetail, ScopeType
from feedledger.livestock.timeframe import (
    Scope,
    ScopeIndex,
    animal_days,
    cycle_duration_days,
    max_animals_at_any_time,
)
from feedledger.livestock.weights import (
    effective_buy_price,
    effective_end_weight,
    effective_sell_price,
    effective_start_weight,
    weight_source,
)
from feedledger.metrics.allocation import allocate_proportionally, safe_ratio

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeedTypeBreakdown:
    feed_type_id: str
    feed_type_name: str
    quantity: float
    cost: float
    percentage: float


@dataclass(frozen=True)
class AreaMetrics:
    scope_id: str
    scope_type: ScopeType
    scope_name: str
    animal_type: str

    animal_count: int
    animal_days: int

    # Feed
    total_feed_quantity: float
    total_feed_cost: float
    consumption_feed_cost: float
    allocated_feed_transaction_cost: float
    feed_cost_per_animal: float
    feed_cost_per_day: float
    feed_cost_per_kg: float
    percentage_of_total: float

    # Shared costs and profitability
    shared_cost_allocation: float
    shared_cost_per_animal: float
    total_cost_per_animal: float
    profit_loss_direct_per_animal: float
    profit_loss_full_per_animal: float

    feed_breakdown: tuple[FeedTypeBreakdown, ...] = ()

    # Weights (kg per animal)
    start_weight: float | None = None
    end_weight: float | None = None
    weight_gain: float | None = None
    weight_source: str | None = None


def _scope_name(
    scope: Scope,
    details: Sequence[OccupancyDetail],
    items: Sequence[ConsumptionItem],
    fallback: str,
) -> str:
    scope_type, _ = scope
    for d in details:
        name = d.area_name if scope_type is ScopeType.AREA else d.area_group_name
        if name:
            return name
    for item in items:
        name = item.area_name if scope_type is ScopeType.AREA else item.area_group_name
        if name:
            return name
    return fallback


def _weighted_weights(
    details: Sequence[OccupancyDetail], cycle: LivestockCycle
) -> tuple[float | None, float | None, float]:
    """Count-weighted (start, end) per animal and the total gain in kg."""
    start_sum = end_sum = gain_kg = 0.0
    start_n = end_n = 0
    for d in details:
        start = effective_start_weight(d, cycle.details, cycle)
        end = effective_end_weight(d, cycle)
        if start is not None:
            start_sum += start * d.count
            start_n += d.count
        if end is not None:
            end_sum += end * d.count
            end_n += d.count
        if start is not None and end is not None:
            gain_kg += (end - start) * d.count

    start_weight = start_sum / start_n if start_n else None
    end_weight = end_sum / end_n if end_n else None
    return start_weight, end_weight, gain_kg


def feed_breakdown(
    items: Sequence[ConsumptionItem], unknown_label: str
) -> tuple[FeedTypeBreakdown, ...]:
    """Quantity and cost per feed type, most expensive first."""
    totals: dict[str, list] = {}
    for item in items:
        entry = totals.setdefault(
            item.feed_type_id, [item.feed_type_name or unknown_label, 0.0, 0.0]
        )
        entry[1] += item.quantity
        entry[2] += item.total_cost

    total_cost = sum(e[2] for e in totals.values())
    rows = [
        FeedTypeBreakdown(
            feed_type_id=ft_id,
            feed_type_name=name,
            quantity=qty,
            cost=cost,
            percentage=safe_ratio(cost, total_cost) * 100,
        )
        for ft_id, (name, qty, cost) in totals.items()
    ]
    rows.sort(key=lambda r: (-r.cost, r.feed_type_name.casefold(), r.feed_type_id))
    return tuple(rows)


class AreaMetricsCalculator:
    """
    Breaks a cycle down by area and area group.

    Cost transactions are allocated over every scope before ``scope_filter``
    is applied, so a scope's figures do not change with the selection.
    Only ``percentage_of_total`` is relative to the visible scopes.
    """

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        self.config = resolve_config(config)
        self.feed_categories: list[str] = self.config.get(
            "feed_cost_categories", ["futterkosten"]
        )
        self.labels: dict[str, str] = self.config.get("labels", {})

    def _unassigned(
        self, feed_tx_cost: float, shared_cost: float, duration: int
    ) -> AreaMetrics:
        """Catch-all entry carrying cost transactions of a cycle without scopes."""
        return AreaMetrics(
            scope_id="",
            scope_type=ScopeType.AREA,
            scope_name=self.labels.get("no_area", "Ohne Bereich"),
            animal_type=self.labels.get(
                "unspecified_animal_type", "Nicht spezifiziert"
            ),
            animal_count=0,
            animal_days=0,
            total_feed_quantity=0.0,
            total_feed_cost=feed_tx_cost,
            consumption_feed_cost=0.0,
            allocated_feed_transaction_cost=feed_tx_cost,
            feed_cost_per_animal=0.0,
            feed_cost_per_day=safe_ratio(feed_tx_cost, duration),
            feed_cost_per_kg=0.0,
            percentage_of_total=safe_ratio(feed_tx_cost, feed_tx_cost) * 100,
            shared_cost_allocation=shared_cost,
            shared_cost_per_animal=0.0,
            total_cost_per_animal=0.0,
            profit_loss_direct_per_animal=0.0,
            profit_loss_full_per_animal=0.0,
        )

    def calculate(
        self,
        cycle: LivestockCycle,
        items: Sequence[ConsumptionItem],
        cost_transactions: Sequence[CostTransaction] = (),
        scope_filter: Collection[str] | None = None,
        as_of: date | None = None,
    ) -> list[AreaMetrics]:
        scopes = ScopeIndex(cycle.details, items, cycle.end_date, as_of)
        duration = cycle_duration_days(cycle.start_date, cycle.end_date, as_of)
        feed_tx, other_tx = split_cost_transactions(
            list(cost_transactions), self.feed_categories
        )

        if not scopes.order:
            if scope_filter is not None or not (feed_tx or other_tx):
                return []
            return [
                self._unassigned(
                    sum(t.amount for t in feed_tx),
                    sum(t.amount for t in other_tx),
                    duration,
                )
            ]

        by_scope, _ = scopes.partition(items)

        # Allocation weights over ALL scopes
        days_per_scope = [
            animal_days(scopes.details_for(s), cycle.end_date, as_of)
            for s in scopes.order
        ]
        feed_tx_shares = allocate_proportionally(
            sum(t.amount for t in feed_tx), days_per_scope
        )
        shared_shares = allocate_proportionally(
            sum(t.amount for t in other_tx), days_per_scope
        )

        unknown_scope = self.labels.get("unknown_scope", "Unbekannt")
        unknown_group = self.labels.get("unknown_group", "Unbekannte Gruppe")
        unknown_feed = self.labels.get("unknown_feed_type", "Unbekannt")
        unspecified = self.labels.get("unspecified_animal_type", "Nicht spezifiziert")

        results: list[AreaMetrics] = []
        for i, scope in enumerate(scopes.order):
            scope_type, scope_id = scope
            if scope_filter is not None and scope_id not in scope_filter:
                continue

            details = scopes.details_for(scope)
            scope_items = by_scope.get(scope, [])
            first = details[0]

            animals = max_animals_at_any_time(details, cycle.start_date, cycle.end_date)
            consumption_cost = sum(item.total_cost for item in scope_items)
            quantity = sum(item.quantity for item in scope_items)
            allocated_feed = float(feed_tx_shares[i])
            total_feed_cost = consumption_cost + allocated_feed
            shared = float(shared_shares[i])

            feed_per_animal = safe_ratio(total_feed_cost, animals)
            shared_per_animal = safe_ratio(shared, animals)
            buy = effective_buy_price(first, cycle) or 0.0
            sell = effective_sell_price(first, cycle) or 0.0
            total_per_animal = buy + feed_per_animal + shared_per_animal

            start_weight, end_weight, gain_kg = _weighted_weights(details, cycle)
            gain = (
                end_weight - start_weight
                if start_weight is not None and end_weight is not None
                else None
            )

            results.append(
                AreaMetrics(
                    scope_id=scope_id,
                    scope_type=scope_type,
                    scope_name=_scope_name(
                        scope,
                        details,
                        scope_items,
                        unknown_group
                        if scope_type is ScopeType.GROUP
                        else unknown_scope,
                    ),
                    animal_type=first.animal_type or unspecified,
                    animal_count=animals,
                    animal_days=days_per_scope[i],
                    total_feed_quantity=quantity,
                    total_feed_cost=total_feed_cost,
                    consumption_feed_cost=consumption_cost,
                    allocated_feed_transaction_cost=allocated_feed,
                    feed_cost_per_animal=feed_per_animal,
                    feed_cost_per_day=safe_ratio(total_feed_cost, duration),
                    feed_cost_per_kg=(
                        safe_ratio(total_feed_cost, gain_kg) if gain_kg > 0 else 0.0
                    ),
                    # Filled in once the visible total is known
                    percentage_of_total=0.0,
                    shared_cost_allocation=shared,
                    shared_cost_per_animal=shared_per_animal,
                    total_cost_per_animal=total_per_animal,
                    profit_loss_direct_per_animal=sell - buy - feed_per_animal,
                    profit_loss_full_per_animal=sell - total_per_animal,
                    feed_breakdown=feed_breakdown(scope_items, unknown_feed),
                    start_weight=start_weight,
                    end_weight=end_weight,
                    weight_gain=gain,
                    weight_source=weight_source(first, cycle.details, cycle),
                )
            )

        visible_total = sum(r.total_feed_cost for r in results)
        results = [
            replace(
                r,
                percentage_of_total=safe_ratio(r.total_feed_cost, visible_total) * 100,
            )
            for r in results
        ]

        logger.debug(
            "Cycle %s: %d of %d scopes reported",
            cycle.id,
            len(results),
            len(scopes.order),
        )
        return results

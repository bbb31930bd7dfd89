"""
Cycle-level KPIs: feed cost, FCR, revenue, profit/loss.

Formulas:
- Total animals: sum of counts on start groups (peak concurrent animals
  when no detail is flagged as a start group)
- Total feed cost: consumption cost + feed-category cost transactions
- Additional costs: all other cost transactions
- Total costs: feed cost + animal purchase cost + additional costs
- Total revenue: animal sales (end groups) + income transactions
- FCR: total feed quantity / total live-weight gain (kg)
- Feed efficiency: total feed quantity / total feed cost
- Daily feed cost: total feed cost / cycle duration (days, inclusive)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any

from feedledger.config.loader import resolve_config
from feedledger.feed.core import ConsumptionItem
from feedledger.finance.core import (
    CostTransaction,
    IncomeTransaction,
    split_cost_transactions,
)
from feedledger.livestock.core import LivestockCycle, OccupancyDetail
from feedledger.livestock.timeframe import (
    ScopeIndex,
    cycle_duration_days,
    max_animals_at_any_time,
)
from feedledger.livestock.weights import (
    effective_buy_price,
    effective_end_weight,
    effective_sell_price,
    effective_start_weight,
)
from feedledger.metrics.allocation import safe_ratio

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CycleMetrics:
    cycle_id: str
    total_animals: int
    cycle_duration_days: int

    # Weights
    average_weight: float
    weight_gain: float
    total_weight_gain_kg: float

    # Feed
    total_feed_quantity: float
    total_feed_cost: float
    consumption_feed_cost: float
    feed_category_transaction_costs: float
    feed_cost_per_animal: float
    feed_cost_per_kg: float
    daily_feed_cost: float
    feed_efficiency: float
    feed_conversion_ratio: float

    # Economics
    animal_purchase_cost: float
    additional_costs: float
    total_costs: float
    animal_sales_revenue: float
    additional_income: float
    total_revenue: float
    profit_loss: float
    profit_margin: float

    # Reserved until death tracking exists
    mortality_rate: float = 0.0

    daily_gain_grams: float | None = None
    net_daily_gain_grams: float | None = None


def _uses_flag(details: Sequence[OccupancyDetail], flag: str) -> bool:
    return any(getattr(d, flag) for d in details)


def total_animals(cycle: LivestockCycle) -> int:
    """Animals stocked into the cycle."""
    if _uses_flag(cycle.details, "is_start_group"):
        return sum(d.count for d in cycle.details if d.is_start_group)
    return max_animals_at_any_time(cycle.details, cycle.start_date, cycle.end_date)


def weight_totals(cycle: LivestockCycle) -> tuple[float, float, int]:
    """
    Count-weighted (total start weight, total end weight, animals weighed).

    Only details with both weights contribute. Chained details (calf pen ->
    fattening pen) add up stage by stage, so the total gain stays correct
    even though the same animals appear in several details.
    """
    start_total = end_total = 0.0
    weighed = 0
    for detail in cycle.details:
        start = effective_start_weight(detail, cycle.details, cycle)
        end = effective_end_weight(detail, cycle)
        if start is None or end is None:
            continue
        start_total += start * detail.count
        end_total += end * detail.count
        weighed += detail.count
    return start_total, end_total, weighed


def animal_trade(cycle: LivestockCycle) -> tuple[float, float]:
    """
    (purchase cost, sales revenue) from per-animal prices.

    Purchases count on start groups and sales on end groups so moved animals
    are not bought or sold twice. Legacy cycles without these flags count
    every detail that carries a price.
    """
    start_flags = _uses_flag(cycle.details, "is_start_group")
    end_flags = _uses_flag(cycle.details, "is_end_group")

    purchase = sales = 0.0
    for detail in cycle.details:
        buy = effective_buy_price(detail, cycle)
        sell = effective_sell_price(detail, cycle)
        if buy is not None and (detail.is_start_group or not start_flags):
            purchase += detail.count * buy
        if sell is not None and (detail.is_end_group or not end_flags):
            sales += detail.count * sell
    return purchase, sales


class CycleMetricsCalculator:
    """
    Computes CycleMetrics for one cycle from already-priced consumption.
    """

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        self.config = resolve_config(config)
        self.feed_categories: list[str] = self.config.get(
            "feed_cost_categories", ["futterkosten"]
        )

    def calculate(
        self,
        cycle: LivestockCycle,
        items: Sequence[ConsumptionItem],
        cost_transactions: Sequence[CostTransaction] = (),
        income_transactions: Sequence[IncomeTransaction] = (),
        as_of: date | None = None,
    ) -> CycleMetrics:
        # 1. Animals and duration
        animals = total_animals(cycle)
        duration = cycle_duration_days(cycle.start_date, cycle.end_date, as_of)

        # 2. Weights
        start_total, end_total, weighed = weight_totals(cycle)
        if weighed > 0:
            start_weight = start_total / weighed
            end_weight = end_total / weighed
        else:
            start_weight = cycle.expected_weight_per_animal or 0.0
            end_weight = cycle.actual_weight_per_animal or 0.0
        weight_gain = end_weight - start_weight
        total_gain_kg = weight_gain * weighed if weighed > 0 else 0.0

        # 3. Feed from consumption attributed to an active scope
        scopes = ScopeIndex(cycle.details, items, cycle.end_date, as_of)
        by_scope, _ = scopes.partition(items)
        counted = [item for scope_items in by_scope.values() for item in scope_items]
        consumption_cost = sum(item.total_cost for item in counted)
        feed_quantity = sum(item.quantity for item in counted)

        # 4. Cost transactions: feed category vs. everything else
        feed_tx, other_tx = split_cost_transactions(
            list(cost_transactions), self.feed_categories
        )
        feed_tx_cost = sum(t.amount for t in feed_tx)
        additional_costs = sum(t.amount for t in other_tx)
        total_feed_cost = consumption_cost + feed_tx_cost

        # 5. Revenue and profit
        purchase_cost, sales_revenue = animal_trade(cycle)
        additional_income = sum(t.amount for t in income_transactions)
        total_revenue = sales_revenue + additional_income
        total_costs = total_feed_cost + purchase_cost + additional_costs
        profit_loss = total_revenue - total_costs

        gain_positive = total_gain_kg > 0
        daily_gain_grams = (
            weight_gain / duration * 1000 if duration > 0 and weight_gain > 0 else None
        )
        net_daily_gain_grams = (
            cycle.slaughter_weight_kg / cycle.total_lifetime_days * 1000
            if cycle.slaughter_weight_kg and cycle.total_lifetime_days
            else None
        )

        logger.debug(
            "Cycle %s: %d animals, %.1f feed units, feed cost %.2f",
            cycle.id,
            animals,
            feed_quantity,
            total_feed_cost,
        )

        return CycleMetrics(
            cycle_id=cycle.id,
            total_animals=animals,
            cycle_duration_days=duration,
            average_weight=end_weight,
            weight_gain=weight_gain,
            total_weight_gain_kg=total_gain_kg,
            total_feed_quantity=feed_quantity,
            total_feed_cost=total_feed_cost,
            consumption_feed_cost=consumption_cost,
            feed_category_transaction_costs=feed_tx_cost,
            feed_cost_per_animal=safe_ratio(total_feed_cost, animals),
            feed_cost_per_kg=(
                safe_ratio(total_feed_cost, total_gain_kg) if gain_positive else 0.0
            ),
            daily_feed_cost=safe_ratio(total_feed_cost, duration),
            feed_efficiency=safe_ratio(feed_quantity, total_feed_cost),
            feed_conversion_ratio=(
                safe_ratio(feed_quantity, total_gain_kg) if gain_positive else 0.0
            ),
            animal_purchase_cost=purchase_cost,
            additional_costs=additional_costs,
            total_costs=total_costs,
            animal_sales_revenue=sales_revenue,
            additional_income=additional_income,
            total_revenue=total_revenue,
            profit_loss=profit_loss,
            profit_margin=safe_ratio(profit_loss, total_revenue) * 100,
            mortality_rate=0.0,
            daily_gain_grams=daily_gain_grams,
            net_daily_gain_grams=net_daily_gain_grams,
        )

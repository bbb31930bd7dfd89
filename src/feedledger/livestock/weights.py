"""
Effective per-detail weights and prices with cycle-level fallbacks.

Details often leave weights or prices blank and inherit them: from a linked
source detail (animals moved from the calf pen carry their end weight into
the fattening pen), from the start groups, or from the cycle itself.
"""

from collections.abc import Sequence

from feedledger.livestock.core import LivestockCycle, OccupancyDetail


def effective_start_weight(
    detail: OccupancyDetail,
    all_details: Sequence[OccupancyDetail],
    cycle: LivestockCycle,
) -> float | None:
    """
    Start weight per animal for a detail.

    Priority:
    1. Detail's own expected_weight_per_animal
    2. End weight of the linked source detail (start_weight_source_detail_id)
    3. End-only groups: count-weighted average start weight of start groups
    4. Cycle expected_weight_per_animal
    """
    if detail.expected_weight_per_animal is not None:
        return detail.expected_weight_per_animal

    if detail.start_weight_source_detail_id:
        source = next(
            (d for d in all_details if d.id == detail.start_weight_source_detail_id),
            None,
        )
        # Only the source's END weight counts; an incomplete chain falls through
        if source is not None and source.actual_weight_per_animal is not None:
            return source.actual_weight_per_animal

    if detail.is_end_group and not detail.is_start_group:
        start_groups = [
            d
            for d in all_details
            if d.is_start_group and d.expected_weight_per_animal is not None
        ]
        total_count = sum(d.count for d in start_groups)
        if total_count > 0:
            weighted = sum(d.expected_weight_per_animal * d.count for d in start_groups)
            return weighted / total_count

    return cycle.expected_weight_per_animal


def effective_end_weight(
    detail: OccupancyDetail, cycle: LivestockCycle
) -> float | None:
    """End weight per animal: detail value, else cycle value."""
    if detail.actual_weight_per_animal is not None:
        return detail.actual_weight_per_animal
    return cycle.actual_weight_per_animal


def effective_buy_price(
    detail: OccupancyDetail, cycle: LivestockCycle
) -> float | None:
    if detail.buy_price_per_animal is not None:
        return detail.buy_price_per_animal
    return cycle.buy_price_per_animal


def effective_sell_price(
    detail: OccupancyDetail, cycle: LivestockCycle
) -> float | None:
    if detail.sell_price_per_animal is not None:
        return detail.sell_price_per_animal
    return cycle.sell_price_per_animal


def weight_source(
    detail: OccupancyDetail,
    all_details: Sequence[OccupancyDetail],
    cycle: LivestockCycle,
) -> str | None:
    """Which rung of the start-weight chain applies, for display."""
    if detail.expected_weight_per_animal is not None:
        return "direct"
    if detail.start_weight_source_detail_id:
        source = next(
            (d for d in all_details if d.id == detail.start_weight_source_detail_id),
            None,
        )
        if source is not None and source.actual_weight_per_animal is not None:
            return f"linked:{source.area_name or source.area_group_name or source.id}"
    if detail.is_end_group and not detail.is_start_group:
        if any(
            d.is_start_group
            and d.expected_weight_per_animal is not None
            and d.count > 0
            for d in all_details
        ):
            return "start_groups"
    if cycle.expected_weight_per_animal is not None:
        return "cycle"
    return None

from datetime import date

import numpy as np
import pytest

from feedledger.config import load_engine_config
from feedledger.feed.core import ConsumptionItem
from feedledger.finance.core import CostTransaction
from feedledger.livestock.core import LivestockCycle, OccupancyDetail, ScopeType
from feedledger.metrics.allocation import allocate_proportionally, safe_ratio
from feedledger.metrics.area import AreaMetricsCalculator
from feedledger.metrics.cycle import CycleMetricsCalculator

START = date(2024, 1, 1)
END = date(2024, 1, 10)


def make_item(
    day: date,
    quantity: float,
    price: float = 1.0,
    area_id: str | None = "A",
    group_id: str | None = None,
    feed_type_id: str = "F",
    feed_type_name: str | None = "Kraftfutter",
) -> ConsumptionItem:
    return ConsumptionItem(
        date=day,
        feed_type_id=feed_type_id,
        quantity=quantity,
        total_cost=quantity * price,
        price_per_unit=price,
        area_id=area_id,
        area_group_id=group_id,
        feed_type_name=feed_type_name,
    )


@pytest.fixture
def two_area_cycle() -> LivestockCycle:
    """Areas A (10 animals) and B (30 animals), both for 10 days."""
    return LivestockCycle(
        id="C1",
        start_date=START,
        end_date=END,
        buy_price_per_animal=100.0,
        sell_price_per_animal=200.0,
        details=[
            OccupancyDetail(10, START, END, area_id="A", area_name="Stall 1"),
            OccupancyDetail(30, START, END, area_id="B", area_name="Stall 2"),
        ],
    )


@pytest.fixture
def calculator() -> AreaMetricsCalculator:
    return AreaMetricsCalculator()


def test_shared_costs_follow_animal_days(two_area_cycle, calculator):
    """Equal feed cost, 100 vs. 300 animal-days: 40 EUR splits 10 / 30."""
    items = [make_item(START, 20.0, area_id="A"), make_item(START, 20.0, area_id="B")]
    costs = [CostTransaction("t1", 40.0, START, "C1", category="Tierarzt")]

    a, b = calculator.calculate(two_area_cycle, items, costs)

    assert (a.scope_id, b.scope_id) == ("A", "B")
    assert a.animal_days == 100
    assert b.animal_days == 300
    assert a.shared_cost_allocation == pytest.approx(10.0)
    assert b.shared_cost_allocation == pytest.approx(30.0)
    assert a.total_feed_cost == pytest.approx(b.total_feed_cost)


def test_per_animal_profitability(two_area_cycle, calculator):
    items = [make_item(START, 20.0, area_id="A"), make_item(START, 20.0, area_id="B")]
    costs = [CostTransaction("t1", 40.0, START, "C1", category="Tierarzt")]

    a, _ = calculator.calculate(two_area_cycle, items, costs)

    assert a.animal_count == 10
    assert a.feed_cost_per_animal == pytest.approx(2.0)
    assert a.shared_cost_per_animal == pytest.approx(1.0)
    assert a.total_cost_per_animal == pytest.approx(103.0)
    assert a.profit_loss_direct_per_animal == pytest.approx(98.0)
    assert a.profit_loss_full_per_animal == pytest.approx(97.0)
    assert a.feed_cost_per_day == pytest.approx(2.0)
    assert a.scope_name == "Stall 1"


def test_area_totals_sum_to_cycle_total():
    cycle = LivestockCycle(
        id="C1",
        start_date=START,
        end_date=END,
        details=[
            OccupancyDetail(10, START, END, area_id="A", area_group_id="G"),
            OccupancyDetail(30, START, END, area_id="B"),
            OccupancyDetail(5, START, END, area_group_id="G"),
        ],
    )
    items = [
        make_item(date(2024, 1, 1), 10.0, area_id="A", group_id="G"),
        make_item(date(2024, 1, 2), 20.0, area_id="B"),
        make_item(date(2024, 1, 3), 5.0, area_id=None, group_id="G"),
        # Member of G without its own presence: G tracks directly, so unattributed
        make_item(date(2024, 1, 4), 7.0, area_id="Z", group_id="G"),
    ]
    costs = [
        CostTransaction("t1", 30.0, START, "C1", category="futterkosten"),
        CostTransaction("t2", 12.0, START, "C1", category="Strom"),
    ]

    areas = AreaMetricsCalculator().calculate(cycle, items, costs)
    metrics = CycleMetricsCalculator().calculate(cycle, items, costs)

    assert [(a.scope_type, a.scope_id) for a in areas] == [
        (ScopeType.AREA, "A"),
        (ScopeType.AREA, "B"),
        (ScopeType.GROUP, "G"),
    ]
    assert metrics.total_feed_cost == pytest.approx(65.0)
    assert sum(a.total_feed_cost for a in areas) == pytest.approx(
        metrics.total_feed_cost
    )
    assert sum(a.shared_cost_allocation for a in areas) == pytest.approx(12.0)
    assert sum(a.allocated_feed_transaction_cost for a in areas) == pytest.approx(30.0)


def test_scope_filter_keeps_allocations_stable(two_area_cycle, calculator):
    items = [make_item(START, 20.0, area_id="A"), make_item(START, 60.0, area_id="B")]
    costs = [CostTransaction("t1", 40.0, START, "C1", category="Tierarzt")]

    full = calculator.calculate(two_area_cycle, items, costs)
    [only_a] = calculator.calculate(two_area_cycle, items, costs, scope_filter={"A"})

    assert only_a.shared_cost_allocation == pytest.approx(
        full[0].shared_cost_allocation
    )
    assert only_a.total_cost_per_animal == pytest.approx(full[0].total_cost_per_animal)
    assert full[0].percentage_of_total == pytest.approx(25.0)
    assert only_a.percentage_of_total == pytest.approx(100.0)


def test_feed_breakdown_and_weights(calculator):
    cycle = LivestockCycle(
        id="C1",
        start_date=START,
        end_date=END,
        details=[
            OccupancyDetail(
                10,
                START,
                END,
                area_id="A",
                expected_weight_per_animal=25.0,
                actual_weight_per_animal=100.0,
            )
        ],
    )
    items = [
        make_item(START, 10.0, price=2.0),
        make_item(START, 40.0, price=0.25, feed_type_id="H", feed_type_name="Heu"),
    ]
    [area] = calculator.calculate(cycle, items)

    assert [b.feed_type_name for b in area.feed_breakdown] == ["Kraftfutter", "Heu"]
    assert area.feed_breakdown[0].percentage == pytest.approx(20.0 / 30.0 * 100)
    assert area.start_weight == pytest.approx(25.0)
    assert area.weight_gain == pytest.approx(75.0)
    assert area.weight_source == "direct"
    assert area.feed_cost_per_kg == pytest.approx(30.0 / 750.0)
    assert area.animal_type == "Nicht spezifiziert"


def test_cycle_without_active_scopes_has_no_areas(calculator):
    cycle = LivestockCycle(id="C1", start_date=START, end_date=END)
    assert calculator.calculate(cycle, [make_item(START, 1.0)]) == []


def test_allocation_helpers():
    shares = allocate_proportionally(40.0, [100, 300])
    np.testing.assert_allclose(shares, [10.0, 30.0])

    equal = allocate_proportionally(9.0, [0, 0, 0])
    np.testing.assert_allclose(equal, [3.0, 3.0, 3.0])
    assert allocate_proportionally(5.0, []).size == 0

    assert safe_ratio(1.0, 0) == 0.0
    assert safe_ratio(float("inf"), 1.0) == 0.0
    assert safe_ratio(3.0, 2.0) == pytest.approx(1.5)


def _group_with_member_areas():
    cycle = LivestockCycle(
        id="C1",
        start_date=START,
        end_date=END,
        details=[
            OccupancyDetail(10, START, END, area_id="A", area_group_id="G"),
            OccupancyDetail(5, START, END, area_group_id="G"),
        ],
    )
    items = [
        make_item(date(2024, 1, 2), 10.0, area_id="A", group_id="G"),
        make_item(date(2024, 1, 3), 4.0, area_id=None, group_id="G"),
    ]
    costs = [CostTransaction("t1", 9.0, START, "C1", category="Futterkosten")]
    return cycle, items, costs


def _no_active_scope():
    cycle = LivestockCycle(
        id="C1",
        start_date=START,
        end_date=END,
        details=[OccupancyDetail(0, START, END, area_id="A")],
    )
    items = [make_item(date(2024, 1, 2), 10.0, area_id="A")]
    costs = [
        CostTransaction("t1", 30.0, START, "C1", category="Futterkosten"),
        CostTransaction("t2", 5.0, START, "C1", category="Strom"),
    ]
    return cycle, items, costs


def _cycle_without_details():
    cycle = LivestockCycle(id="C1", start_date=START, end_date=END)
    costs = [CostTransaction("t1", 12.0, START, "C1", category="Futterkosten")]
    return cycle, [], costs


def _member_of_directly_fed_group():
    cycle = LivestockCycle(
        id="C1",
        start_date=START,
        end_date=END,
        details=[OccupancyDetail(20, START, END, area_group_id="G")],
    )
    items = [
        make_item(date(2024, 1, 2), 10.0, area_id=None, group_id="G"),
        # Area Z has no presence of its own and G is fed directly
        make_item(date(2024, 1, 2), 7.0, area_id="Z", group_id="G"),
    ]
    costs = [
        CostTransaction("t1", 6.0, START, "C1", category="Futterkosten"),
        CostTransaction("t2", 3.0, START, "C1", category="Tierarzt"),
    ]
    return cycle, items, costs


@pytest.mark.parametrize(
    "build",
    [
        _group_with_member_areas,
        _no_active_scope,
        _cycle_without_details,
        _member_of_directly_fed_group,
    ],
)
def test_area_costs_add_up_to_cycle(build):
    cycle, items, costs = build()
    eps = load_engine_config()["epsilon"]

    areas = AreaMetricsCalculator().calculate(cycle, items, costs)
    metrics = CycleMetricsCalculator().calculate(cycle, items, costs)

    assert sum(a.total_feed_cost for a in areas) == pytest.approx(
        metrics.total_feed_cost, abs=eps
    )
    assert sum(a.total_feed_quantity for a in areas) == pytest.approx(
        metrics.total_feed_quantity, abs=eps
    )
    assert sum(a.shared_cost_allocation for a in areas) == pytest.approx(
        metrics.additional_costs, abs=eps
    )


def test_costs_without_active_scope_go_to_catch_all(calculator):
    cycle, items, costs = _no_active_scope()

    [entry] = calculator.calculate(cycle, items, costs)

    assert entry.scope_name == "Ohne Bereich"
    assert entry.animal_count == 0
    assert entry.consumption_feed_cost == 0.0
    assert entry.allocated_feed_transaction_cost == pytest.approx(30.0)
    assert entry.shared_cost_allocation == pytest.approx(5.0)
    assert entry.percentage_of_total == pytest.approx(100.0)
    # A scope selection never matches the catch-all
    assert calculator.calculate(cycle, items, costs, scope_filter={"A"}) == []


def test_unnamed_group_gets_group_label(calculator):
    cycle, items, costs = _member_of_directly_fed_group()
    [group] = calculator.calculate(cycle, items, costs)
    assert group.scope_type is ScopeType.GROUP
    assert group.scope_name == "Unbekannte Gruppe"
    assert group.total_feed_cost == pytest.approx(16.0)

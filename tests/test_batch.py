from datetime import date, timedelta

import pytest

from feedledger.feed.core import ConsumptionRecord, FeedType, PriceTier
from feedledger.finance.core import CostTransaction, IncomeTransaction
from feedledger.livestock.core import LivestockCycle, OccupancyDetail
from feedledger.metrics.batch import CycleBatch, evaluate_cycles, report_items
from feedledger.pivot import PivotConfig, PivotEngine


def daily_records(area_id: str, start: date, days: int, quantity: float = 5.0):
    return [
        ConsumptionRecord(start + timedelta(days=d), "F", quantity, area_id=area_id)
        for d in range(days)
    ]


@pytest.fixture
def batch() -> CycleBatch:
    """Two back-to-back cycles in different pens, one price change."""
    jan = LivestockCycle(
        id="JAN",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 10),
        details=[
            OccupancyDetail(100, date(2024, 1, 1), date(2024, 1, 10), area_id="A")
        ],
    )
    feb = LivestockCycle(
        id="FEB",
        start_date=date(2024, 2, 1),
        end_date=date(2024, 2, 5),
        details=[
            OccupancyDetail(50, date(2024, 2, 1), date(2024, 2, 5), area_id="B"),
            OccupancyDetail(50, date(2024, 2, 1), date(2024, 2, 5), area_id="C"),
        ],
    )
    consumption = (
        # Feb rows first: the batch must not depend on input order
        daily_records("B", date(2024, 2, 1), 5)
        + daily_records("A", date(2024, 1, 1), 12)
        + daily_records("C", date(2024, 2, 3), 1)
    )
    return CycleBatch(
        cycles=[jan, feb],
        consumption=consumption,
        price_tiers=[
            PriceTier("F", 1.0, date(2024, 1, 1), date(2024, 1, 31)),
            PriceTier("F", 2.0, date(2024, 2, 1)),
        ],
        feed_types=[FeedType("F", "Kraftfutter")],
        cost_transactions=[
            CostTransaction("t1", 40.0, date(2024, 2, 2), "FEB", category="Tierarzt"),
            CostTransaction("t2", 99.0, date(2024, 1, 2), None, category="Tierarzt"),
        ],
        income_transactions=[IncomeTransaction("i1", 10.0, date(2024, 1, 9), "JAN")],
    )


def test_each_cycle_sees_only_its_window(batch):
    reports = evaluate_cycles(batch)

    assert list(reports) == ["JAN", "FEB"]
    jan, feb = reports["JAN"], reports["FEB"]

    # A consumed 12 days but was present for 10
    assert jan.metrics.total_feed_cost == pytest.approx(50.0)
    assert len(jan.items) == 10
    assert jan.metrics.additional_income == pytest.approx(10.0)
    assert jan.metrics.additional_costs == 0.0

    assert feb.metrics.total_feed_cost == pytest.approx(60.0)
    assert feb.metrics.additional_costs == pytest.approx(40.0)
    assert [a.scope_id for a in feb.areas] == ["B", "C"]
    assert feb.feed_components[0].feed_type_name == "Kraftfutter"
    assert feb.data_quality.missing_prices == ()


def test_scope_filter_applies_to_area_metrics_only(batch):
    reports = evaluate_cycles(batch, scope_filter=["B"])
    feb = reports["FEB"]
    assert [a.scope_id for a in feb.areas] == ["B"]
    assert feb.areas[0].shared_cost_allocation == pytest.approx(20.0)
    assert feb.metrics.total_feed_cost == pytest.approx(60.0)


def test_unpriced_rows_surface_in_data_quality(batch):
    batch.price_tiers = [PriceTier("F", 2.0, date(2024, 2, 1))]
    jan = evaluate_cycles(batch)["JAN"]
    assert jan.metrics.total_feed_cost == 0.0
    [missing] = jan.data_quality.missing_prices
    assert missing.rows == 10


def test_ongoing_cycle_uses_as_of(batch):
    batch.cycles[0].end_date = None
    batch.cycles[0].details[0].end_date = None
    jan = evaluate_cycles(batch, as_of=date(2024, 1, 12))["JAN"]
    assert jan.metrics.cycle_duration_days == 12
    assert jan.metrics.total_feed_cost == pytest.approx(60.0)


def test_unattributed_rows_reported_not_carried():
    cycle = LivestockCycle(
        id="G1",
        start_date=date(2024, 3, 1),
        end_date=date(2024, 3, 5),
        details=[
            OccupancyDetail(
                20, date(2024, 3, 1), date(2024, 3, 5), area_group_id="G"
            )
        ],
    )
    batch = CycleBatch(
        cycles=[cycle],
        consumption=[
            ConsumptionRecord(date(2024, 3, 2), "F", 10.0, area_group_id="G"),
            # Member area of a directly fed group
            ConsumptionRecord(
                date(2024, 3, 2), "F", 7.0, area_id="Z", area_group_id="G"
            ),
        ],
        price_tiers=[PriceTier("F", 1.0, date(2024, 1, 1))],
    )
    report = evaluate_cycles(batch)["G1"]

    assert report.metrics.total_feed_cost == pytest.approx(10.0)
    assert sum(item.total_cost for item in report.items) == pytest.approx(10.0)
    stray = report.data_quality.unattributed
    assert stray.rows == 1
    assert stray.cost == pytest.approx(7.0)


def test_overlapping_cycles_pivot_each_row_once():
    first = LivestockCycle(
        id="X",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 10),
        details=[
            OccupancyDetail(10, date(2024, 1, 1), date(2024, 1, 10), area_id="A")
        ],
    )
    second = LivestockCycle(
        id="Y",
        start_date=date(2024, 1, 5),
        end_date=date(2024, 1, 10),
        details=[
            OccupancyDetail(10, date(2024, 1, 5), date(2024, 1, 10), area_id="A")
        ],
    )
    batch = CycleBatch(
        cycles=[first, second],
        consumption=daily_records("A", date(2024, 1, 1), 10),
        price_tiers=[PriceTier("F", 1.0, date(2024, 1, 1))],
    )
    reports = evaluate_cycles(batch)
    assert len(reports["Y"].items) == 6

    items = report_items(reports)
    assert len(items) == 10
    pivot = PivotEngine().generate(
        items,
        PivotConfig.from_dict(
            {"rows": ["area"], "values": [{"field": "quantity", "aggregation": "sum"}]}
        ),
    )
    assert pivot.grand_totals["value_0"].value == pytest.approx(50.0)

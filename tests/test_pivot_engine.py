import json
from datetime import date

import pytest

from feedledger.feed.core import ConsumptionItem
from feedledger.pivot import (
    Accumulator,
    PivotAggregation,
    PivotConfig,
    PivotConfigError,
    PivotDimension,
    PivotEngine,
    PivotValue,
    PivotValueField,
    load_pivot_config,
)
from feedledger.pivot.dimensions import display_label, time_bucket
from feedledger.pivot.engine import header_key


def make_item(
    feed: str,
    quantity: float,
    day: date = date(2024, 1, 15),
    price: float | None = 1.0,
    area_name: str | None = "Stall 1",
) -> ConsumptionItem:
    return ConsumptionItem(
        date=day,
        feed_type_id=feed,
        quantity=quantity,
        total_cost=quantity * (price or 0.0),
        price_per_unit=price,
        price_missing=price is None,
        area_id="A",
        area_name=area_name,
        feed_type_name=feed,
    )


def config(rows, columns=(), values=None, **flags) -> PivotConfig:
    return PivotConfig(
        rows=tuple(rows),
        columns=tuple(columns),
        values=tuple(
            values
            or [PivotValue(PivotValueField.QUANTITY, PivotAggregation.SUM)]
        ),
        **flags,
    )


@pytest.fixture
def engine() -> PivotEngine:
    return PivotEngine()


def test_quantity_sum_by_feed_type(engine):
    rows = [make_item("A", 10.0), make_item("A", 5.0), make_item("B", 7.0)]
    table = engine.generate(rows, config([PivotDimension.FEED_TYPE]))

    assert [r.keys for r in table.rows] == [("A",), ("B",)]
    assert [r.cells["value_0"].value for r in table.rows] == [15.0, 7.0]
    assert [r.cells["value_0"].count for r in table.rows] == [2, 1]
    assert table.grand_totals["value_0"].value == pytest.approx(22.0)
    assert table.row_count == 3


def test_grand_total_equals_sum_of_rows(engine):
    rows = [make_item(f, q) for f, q in [("A", 1.5), ("B", 2.5), ("C", 4.0)]]
    table = engine.generate(rows, config([PivotDimension.FEED_TYPE]))
    total = sum(r.cells["value_0"].value for r in table.rows)
    assert table.grand_totals["value_0"].value == pytest.approx(total)


def test_output_is_deterministic(engine):
    rows = [make_item(f, q) for f, q in [("b", 1.0), ("A", 2.0), ("a", 3.0)]]
    cfg = config([PivotDimension.FEED_TYPE])
    first = engine.generate(rows, cfg)
    second = engine.generate(list(reversed(rows)), cfg)

    assert first == second
    # Case-insensitive order, exact label breaks ties
    assert [r.keys[0] for r in first.rows] == ["A", "a", "b"]


def test_price_aggregations(engine):
    rows = [make_item("A", 10.0, price=1.0), make_item("A", 30.0, price=2.0)]
    values = [
        PivotValue(PivotValueField.AVG_PRICE, PivotAggregation.WEIGHTED_AVG),
        PivotValue(PivotValueField.AVG_PRICE, PivotAggregation.AVG),
        PivotValue(PivotValueField.MIN_PRICE, PivotAggregation.MIN),
        PivotValue(PivotValueField.MAX_PRICE, PivotAggregation.MAX),
        PivotValue(PivotValueField.COUNT, PivotAggregation.COUNT),
    ]
    table = engine.generate(rows, config([PivotDimension.FEED_TYPE], values=values))
    [row] = table.rows

    assert row.cells["value_0"].value == pytest.approx(70.0 / 40.0)
    assert row.cells["value_1"].value == pytest.approx(1.5)
    assert row.cells["value_2"].value == pytest.approx(1.0)
    assert row.cells["value_3"].value == pytest.approx(2.0)
    assert row.cells["value_4"].value == pytest.approx(2.0)


def test_column_dimensions_fill_every_cell(engine):
    rows = [
        make_item("A", 10.0, area_name="Stall 1"),
        make_item("B", 4.0, area_name=None),
    ]
    values = [
        PivotValue(PivotValueField.QUANTITY, PivotAggregation.SUM),
        PivotValue(PivotValueField.QUANTITY, PivotAggregation.MIN, label="Min"),
    ]
    table = engine.generate(
        rows, config([PivotDimension.FEED_TYPE], [PivotDimension.AREA], values)
    )

    keys = [h.key for h in table.column_headers]
    assert keys == [
        "Ohne Bereich|v0",
        "Ohne Bereich|v1",
        "Stall 1|v0",
        "Stall 1|v1",
    ]
    row_a = table.rows[0]
    assert set(row_a.cells) == set(keys)
    assert row_a.cells["Ohne Bereich|v0"].value == 0.0
    assert row_a.cells["Ohne Bereich|v0"].count == 0
    assert row_a.cells["Ohne Bereich|v1"].value is None
    assert row_a.cells["Stall 1|v1"].value == pytest.approx(10.0)


def test_subtotals_follow_each_prefix_group(engine):
    rows = [
        make_item("A", 1.0, day=date(2024, 1, 3)),
        make_item("B", 2.0, day=date(2024, 1, 20)),
        make_item("A", 4.0, day=date(2024, 2, 1)),
    ]
    table = engine.generate(
        rows,
        config(
            [PivotDimension.MONTH, PivotDimension.FEED_TYPE], show_subtotals=True
        ),
    )

    shape = [(r.keys, r.is_subtotal, r.level) for r in table.rows]
    assert shape == [
        (("2024-01", "A"), False, 0),
        (("2024-01", "B"), False, 0),
        (("2024-01",), True, 1),
        (("2024-02", "A"), False, 0),
        (("2024-02",), True, 1),
    ]
    assert table.rows[2].cells["value_0"].value == pytest.approx(3.0)
    assert table.rows[2].labels == ("Januar 2024",)
    assert table.rows[4].cells["value_0"].value == pytest.approx(4.0)


def test_grand_totals_can_be_disabled(engine):
    table = engine.generate(
        [make_item("A", 1.0)],
        config([PivotDimension.FEED_TYPE], show_grand_totals=False),
    )
    assert table.grand_totals is None


def test_time_buckets_and_labels():
    assert time_bucket(date(2024, 1, 3), PivotDimension.WEEK) == "2024-W01"
    assert time_bucket(date(2021, 1, 1), PivotDimension.WEEK) == "2020-W53"
    assert time_bucket(date(2024, 8, 31), PivotDimension.QUARTER) == "2024-Q3"
    assert time_bucket(date(2024, 8, 31), PivotDimension.YEAR) == "2024"

    assert display_label("2024-01-03", PivotDimension.DATE) == "03.01.2024"
    assert display_label("2024-W01", PivotDimension.WEEK) == "KW 01, 2024"
    assert display_label("2024-Q3", PivotDimension.QUARTER) == "2024 Q3"
    months = PivotEngine().month_names
    assert display_label("2025-10", PivotDimension.MONTH, months) == "Oktober 2025"


def test_accumulator_merge_matches_single_pass():
    values = [(1.0, 2.0), (5.0, 1.0), (3.0, 4.0)]
    whole = Accumulator()
    left, right = Accumulator(), Accumulator()
    for i, (v, w) in enumerate(values):
        whole.update(v, w)
        (left if i < 1 else right).update(v, w)
    left.merge(right)

    assert left == whole
    assert Accumulator().read(PivotAggregation.MIN) is None
    assert Accumulator().read(PivotAggregation.WEIGHTED_AVG) == 0.0


def test_config_parsing_and_errors(tmp_path):
    cfg = PivotConfig.from_dict(
        {
            "rows": ["month", "feed_type"],
            "columns": ["area"],
            "values": [{"field": "cost", "aggregation": "sum", "label": "Kosten"}],
            "showSubtotals": True,
        }
    )
    assert cfg.rows == (PivotDimension.MONTH, PivotDimension.FEED_TYPE)
    assert cfg.values[0].display_label == "Kosten"
    assert cfg.show_subtotals is True
    assert PivotConfig.from_dict(cfg.to_dict()) == cfg

    with pytest.raises(PivotConfigError) as excinfo:
        PivotConfig.from_dict({"rows": ["feed"], "values": []})
    assert excinfo.value.field_name == "rows[0]"

    with pytest.raises(ValueError, match=r"values\[0\]\.aggregation"):
        PivotConfig.from_dict(
            {"rows": [], "values": [{"field": "cost", "aggregation": "median"}]}
        )

    saved = tmp_path / "saved.json"
    saved.write_text(
        json.dumps(
            {
                "name": "Monatlich",
                "config": {
                    "rows": ["feed_type"],
                    "columns": [],
                    "values": [{"field": "quantity", "aggregation": "sum"}],
                    "showGrandTotals": False,
                },
            }
        ),
        encoding="utf-8",
    )
    loaded = load_pivot_config(saved)
    assert loaded.rows == (PivotDimension.FEED_TYPE,)
    assert loaded.show_grand_totals is False


def test_header_keys_stay_distinct_with_separator_in_labels(engine):
    assert header_key(("a|b", "c"), 0) != header_key(("a", "b|c"), 0)
    assert header_key(("Stall 1",), 1) == "Stall 1|v1"

    rows = [
        make_item("A", 1.0, area_name="x|y"),
        make_item("A", 2.0, area_name="x"),
    ]
    table = engine.generate(
        rows, config([PivotDimension.FEED_TYPE], [PivotDimension.AREA])
    )
    assert len({h.key for h in table.column_headers}) == 2
    cells = table.rows[0].cells
    assert sorted(c.value for c in cells.values()) == [1.0, 2.0]

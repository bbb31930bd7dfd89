"""
Report export: JSON-compatible serialization plus CSV/Parquet tables.

Tables written per run:
    cycle_metrics    one row per cycle
    area_metrics     one row per (cycle, scope)
    feed_components  one row per (cycle, feed type)
    data_quality     one row per reported issue
    pivot            flattened pivot table, if one was generated
and ``reports.json`` holding the full nested results.
"""

from __future__ import annotations

import enum
import json
import logging
from collections.abc import Mapping
from dataclasses import fields, is_dataclass
from datetime import date
from pathlib import Path
from typing import Any

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from feedledger.metrics.batch import CycleReport
from feedledger.pivot.engine import PivotTableData
from feedledger.writers.base import BaseWriter

logger = logging.getLogger(__name__)

FORMATS = ("csv", "parquet")


def serialize(obj: Any) -> Any:
    """
    Convert results into JSON-compatible values.

    Dataclasses become dicts, dates ISO strings, enums their values and
    tuples lists.
    """
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: serialize(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Mapping):
        return {str(serialize(k)): serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [serialize(v) for v in obj]
    return obj


def pivot_records(pivot: PivotTableData) -> list[dict[str, Any]]:
    """
    Flatten a pivot table to one record per output row.

    Dimension columns hold display labels; value columns are named by the
    value label, prefixed with the column labels when there are column
    dimensions. The grand-total row comes last.
    """
    names: dict[str, str] = {}
    for h in pivot.column_headers:
        name = " / ".join((*h.column_labels, h.label))
        if name in names.values():
            name = f"{name} [{h.key}]"
        names[h.key] = name

    dim_names = [d.value for d in pivot.row_dimensions]

    def record(labels, cells, level, is_subtotal, is_grand_total) -> dict[str, Any]:
        out: dict[str, Any] = {
            dim: (labels[i] if i < len(labels) else "")
            for i, dim in enumerate(dim_names)
        }
        out["level"] = level
        out["is_subtotal"] = is_subtotal
        out["is_grand_total"] = is_grand_total
        for key, name in names.items():
            out[name] = cells[key].value
        return out

    records = [
        record(row.labels, row.cells, row.level, row.is_subtotal, False)
        for row in pivot.rows
    ]
    if pivot.grand_totals is not None:
        records.append(record((), pivot.grand_totals, 0, False, True))
    return records


class ReportWriter(BaseWriter):
    """Writes evaluation results as CSV or Parquet tables plus a JSON dump."""

    def __init__(self, output_dir: str | Path, fmt: str = "csv") -> None:
        if fmt not in FORMATS:
            raise ValueError(
                f"Unknown output format {fmt!r} (expected one of {FORMATS})"
            )
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.fmt = fmt
        self.written: list[Path] = []

    def write(self, data: Any, destination: str) -> None:
        """Write a list of records (dicts or dataclasses) as table ``destination``."""
        rows = [r if isinstance(r, dict) else serialize(r) for r in data]
        df = pd.DataFrame(rows)

        filepath = self.output_dir / f"{destination}.{self.fmt}"
        if self.fmt == "parquet":
            pq.write_table(pa.Table.from_pandas(df, preserve_index=False), filepath)
        else:
            df.to_csv(filepath, index=False)

        self.written.append(filepath)
        logger.info("Wrote %d rows to %s", len(df), filepath)

    def write_json(self, data: Any, filename: str) -> None:
        filepath = self.output_dir / filename
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(serialize(data), f, indent=2, ensure_ascii=False)
        self.written.append(filepath)

    def write_reports(self, reports: Mapping[str, CycleReport]) -> None:
        cycle_rows: list[dict[str, Any]] = []
        area_rows: list[dict[str, Any]] = []
        component_rows: list[dict[str, Any]] = []
        quality_rows: list[dict[str, Any]] = []

        for cycle_id, report in reports.items():
            cycle_rows.append(
                {"cycle_name": report.cycle.name, **serialize(report.metrics)}
            )
            for area in report.areas:
                row = serialize(area)
                # Nested breakdown goes to the JSON dump only
                breakdown = row.pop("feed_breakdown")
                row["primary_feed_type"] = (
                    breakdown[0]["feed_type_name"] if breakdown else None
                )
                area_rows.append({"cycle_id": cycle_id, **row})
            for component in report.feed_components:
                component_rows.append({"cycle_id": cycle_id, **serialize(component)})

            quality = report.data_quality
            for missing in quality.missing_prices:
                quality_rows.append(
                    {
                        "cycle_id": cycle_id,
                        "issue": "missing_price",
                        "subject": missing.feed_type_name,
                        "start": missing.first_date.isoformat(),
                        "end": missing.last_date.isoformat(),
                        "rows": missing.rows,
                        "quantity": missing.quantity,
                        "days": None,
                    }
                )
            for gap in quality.missing_feed_days:
                quality_rows.append(
                    {
                        "cycle_id": cycle_id,
                        "issue": "missing_feed_days",
                        "subject": f"{gap.scope_type.value}:{gap.scope_id}",
                        "start": gap.start.isoformat(),
                        "end": gap.end.isoformat(),
                        "rows": None,
                        "quantity": None,
                        "days": gap.days,
                    }
                )
            if quality.unattributed is not None:
                stray = quality.unattributed
                quality_rows.append(
                    {
                        "cycle_id": cycle_id,
                        "issue": "unattributed",
                        "subject": None,
                        "start": stray.first_date.isoformat(),
                        "end": stray.last_date.isoformat(),
                        "rows": stray.rows,
                        "quantity": stray.quantity,
                        "days": None,
                    }
                )

        self.write_tables(
            {
                "cycle_metrics": cycle_rows,
                "area_metrics": area_rows,
                "feed_components": component_rows,
                "data_quality": quality_rows,
            }
        )
        self.write_json(
            {
                cycle_id: {
                    "metrics": report.metrics,
                    "areas": report.areas,
                    "feed_components": report.feed_components,
                    "data_quality": report.data_quality,
                }
                for cycle_id, report in reports.items()
            },
            "reports.json",
        )

    def write_pivot(self, pivot: PivotTableData) -> None:
        self.write(pivot_records(pivot), "pivot")
        self.write_json(pivot, "pivot.json")

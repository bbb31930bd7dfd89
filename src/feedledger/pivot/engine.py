"""
Pivot table generation over priced consumption rows.

One pass over the rows updates an Accumulator per (row key, column key,
value); subtotal and grand-total accumulators are updated in the same pass,
so no output row rescans the input.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from feedledger.config.loader import resolve_config
from feedledger.feed.core import ConsumptionItem
from feedledger.pivot.accumulator import Accumulator
from feedledger.pivot.config import PivotConfig
from feedledger.pivot.dimensions import (
    PivotAggregation,
    PivotDimension,
    PivotValueField,
    bucket,
    display_label,
    field_value,
    sort_key,
)

logger = logging.getLogger(__name__)

Key = tuple[str, ...]


@dataclass(frozen=True)
class PivotCell:
    value: float | None
    count: int


@dataclass(frozen=True)
class ColumnHeader:
    key: str
    column: Key
    column_labels: tuple[str, ...]
    value_index: int
    field: PivotValueField
    aggregation: PivotAggregation
    label: str


@dataclass(frozen=True)
class PivotRow:
    keys: Key
    labels: tuple[str, ...]
    cells: dict[str, PivotCell]
    level: int = 0
    is_subtotal: bool = False


@dataclass(frozen=True)
class PivotTableData:
    row_dimensions: tuple[PivotDimension, ...]
    column_dimensions: tuple[PivotDimension, ...]
    column_headers: tuple[ColumnHeader, ...]
    rows: tuple[PivotRow, ...]
    grand_totals: dict[str, PivotCell] | None = None
    row_count: int = 0


def _escape(part: str) -> str:
    return part.replace("\\", "\\\\").replace("|", "\\|")


def header_key(column: Key, value_index: int) -> str:
    """
    Stable cell key: ``value_<i>`` without column dimensions, else ``a|b|v<i>``.

    A ``|`` or backslash inside a column value is backslash-escaped, so distinct
    columns never share a key.
    """
    if not column:
        return f"value_{value_index}"
    return "|".join((*(_escape(p) for p in column), f"v{value_index}"))


class PivotEngine:
    def __init__(self, config: dict[str, Any] | None = None) -> None:
        self.config = resolve_config(config)
        self.labels: dict[str, str] = self.config.get("labels", {})
        self.month_names: list[str] = self.config.get("month_names", [])

    def _key(self, item: ConsumptionItem, dims: tuple[PivotDimension, ...]) -> Key:
        return tuple(bucket(item, d, self.labels) for d in dims)

    def _sorted(
        self, keys: Iterable[Key], dims: tuple[PivotDimension, ...]
    ) -> list[Key]:
        return sorted(keys, key=lambda k: [sort_key(d, v) for d, v in zip(dims, k)])

    def _labels(self, key: Key, dims: tuple[PivotDimension, ...]) -> tuple[str, ...]:
        return tuple(display_label(v, d, self.month_names) for d, v in zip(dims, key))

    def generate(
        self, rows: Iterable[ConsumptionItem], pivot_config: PivotConfig
    ) -> PivotTableData:
        row_dims = pivot_config.rows
        col_dims = pivot_config.columns
        values = pivot_config.values
        n_values = len(values)
        with_subtotals = pivot_config.show_subtotals and len(row_dims) > 1

        def fresh() -> list[Accumulator]:
            return [Accumulator() for _ in range(n_values)]

        cells: dict[tuple[Key, Key], list[Accumulator]] = {}
        subtotals: dict[tuple[Key, Key], list[Accumulator]] = {}
        grand: dict[Key, list[Accumulator]] = {}
        row_keys: set[Key] = set()
        col_keys: set[Key] = set()
        n_rows = 0

        for item in rows:
            n_rows += 1
            row_key = self._key(item, row_dims)
            col_key = self._key(item, col_dims)
            row_keys.add(row_key)
            col_keys.add(col_key)

            targets = [
                cells.setdefault((row_key, col_key), fresh()),
                grand.setdefault(col_key, fresh()),
            ]
            if with_subtotals:
                for depth in range(1, len(row_dims)):
                    targets.append(
                        subtotals.setdefault((row_key[:depth], col_key), fresh())
                    )

            for i, value in enumerate(values):
                v = field_value(item, value.field)
                for accs in targets:
                    accs[i].update(v, item.quantity)

        # Without column dimensions there is one implicit column
        if not col_dims:
            col_keys = {()}

        headers = tuple(
            ColumnHeader(
                key=header_key(col, i),
                column=col,
                column_labels=self._labels(col, col_dims),
                value_index=i,
                field=value.field,
                aggregation=value.aggregation,
                label=value.display_label,
            )
            for col in self._sorted(col_keys, col_dims)
            for i, value in enumerate(values)
        )

        def render(
            lookup: Callable[[Key], list[Accumulator] | None],
        ) -> dict[str, PivotCell]:
            out: dict[str, PivotCell] = {}
            for h in headers:
                accs = lookup(h.column)
                acc = accs[h.value_index] if accs is not None else Accumulator()
                out[h.key] = PivotCell(value=acc.read(h.aggregation), count=acc.count)
            return out

        ordered = self._sorted(row_keys, row_dims)
        pivot_rows: list[PivotRow] = []
        for pos, row_key in enumerate(ordered):
            pivot_rows.append(
                PivotRow(
                    keys=row_key,
                    labels=self._labels(row_key, row_dims),
                    cells=render(lambda col: cells.get((row_key, col))),
                )
            )
            if not with_subtotals:
                continue

            # Close every prefix group that ends here, deepest first
            following = ordered[pos + 1] if pos + 1 < len(ordered) else None
            for depth in range(len(row_dims) - 1, 0, -1):
                prefix = row_key[:depth]
                if following is not None and following[:depth] == prefix:
                    continue
                pivot_rows.append(
                    PivotRow(
                        keys=prefix,
                        labels=self._labels(prefix, row_dims[:depth]),
                        cells=render(lambda col: subtotals.get((prefix, col))),
                        level=depth,
                        is_subtotal=True,
                    )
                )

        grand_totals = render(grand.get) if pivot_config.show_grand_totals else None

        logger.debug(
            "Pivot: %d input rows -> %d output rows x %d columns",
            n_rows,
            len(pivot_rows),
            len(headers),
        )
        return PivotTableData(
            row_dimensions=row_dims,
            column_dimensions=col_dims,
            column_headers=headers,
            rows=tuple(pivot_rows),
            grand_totals=grand_totals,
            row_count=n_rows,
        )

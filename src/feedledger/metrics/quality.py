"""
Data-quality checks for a cycle's consumption.

Problems are reported, never raised: a missing price still yields a cost of
0 in the metrics, and the report tells the user where the numbers are thin.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from feedledger.config.loader import resolve_config
from feedledger.feed.core import ConsumptionItem
from feedledger.livestock.core import LivestockCycle, ScopeType
from feedledger.livestock.timeframe import ScopeIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MissingPrice:
    feed_type_id: str
    feed_type_name: str
    first_date: date
    last_date: date
    rows: int
    quantity: float


@dataclass(frozen=True)
class MissingFeedDays:
    scope_id: str
    scope_type: ScopeType
    start: date
    end: date
    days: int


@dataclass(frozen=True)
class UnattributedConsumption:
    """Rows inside the cycle window that no active scope takes."""

    rows: int
    quantity: float
    cost: float
    first_date: date
    last_date: date


@dataclass(frozen=True)
class DataQualityReport:
    cycle_id: str
    missing_prices: tuple[MissingPrice, ...] = field(default_factory=tuple)
    missing_feed_days: tuple[MissingFeedDays, ...] = field(default_factory=tuple)
    unattributed: UnattributedConsumption | None = None

    @property
    def is_clean(self) -> bool:
        return (
            not self.missing_prices
            and not self.missing_feed_days
            and self.unattributed is None
        )


def _collapse(ordinals: list[int]) -> list[tuple[int, int]]:
    """Sorted day ordinals -> inclusive runs of consecutive days."""
    runs: list[tuple[int, int]] = []
    for o in ordinals:
        if runs and o == runs[-1][1] + 1:
            runs[-1] = (runs[-1][0], o)
        else:
            runs.append((o, o))
    return runs


class DataQualityAuditor:
    def __init__(self, config: dict[str, Any] | None = None) -> None:
        self.config = resolve_config(config)
        self.unknown_label: str = self.config.get("labels", {}).get(
            "unknown_feed_type", "Unbekannt"
        )

    def missing_prices(self, items: Sequence[ConsumptionItem]) -> list[MissingPrice]:
        """One entry per feed type with unpriced rows, ordered by feed type id."""
        grouped: dict[str, list[ConsumptionItem]] = {}
        for item in items:
            if item.price_missing:
                grouped.setdefault(item.feed_type_id, []).append(item)

        return [
            MissingPrice(
                feed_type_id=feed_type_id,
                feed_type_name=rows[0].feed_type_name or self.unknown_label,
                first_date=min(r.date for r in rows),
                last_date=max(r.date for r in rows),
                rows=len(rows),
                quantity=sum(r.quantity for r in rows),
            )
            for feed_type_id, rows in sorted(grouped.items())
        ]

    def missing_feed_days(
        self,
        cycle: LivestockCycle,
        items: Sequence[ConsumptionItem],
        as_of: date | None = None,
    ) -> list[MissingFeedDays]:
        """
        Days with animals present in a scope but no consumption booked on it.

        A group also counts as fed on days when one of its member areas was
        fed, since those rows go to the area scope instead.
        """
        scopes = ScopeIndex(cycle.details, items, cycle.end_date, as_of)
        by_scope, _ = scopes.partition(items)

        cap = cycle.end_date or as_of or date.today()
        if as_of is not None:
            cap = min(cap, as_of)
        cap_ordinal = cap.toordinal()

        member_fed: dict[str, set[int]] = {}
        for (scope_type, _), scope_items in by_scope.items():
            if scope_type is not ScopeType.AREA:
                continue
            for item in scope_items:
                if item.area_group_id is not None:
                    member_fed.setdefault(item.area_group_id, set()).add(
                        item.date.toordinal()
                    )

        gaps: list[MissingFeedDays] = []
        for scope in scopes.order:
            intervals = scopes.index.intervals(scope)
            if not intervals:
                continue
            scope_type, scope_id = scope
            fed = {item.date.toordinal() for item in by_scope.get(scope, [])}
            if scope_type is ScopeType.GROUP:
                fed |= member_fed.get(scope_id, set())
            unfed = [
                o
                for start, end in intervals.intervals
                for o in range(start, min(end, cap_ordinal) + 1)
                if o not in fed
            ]
            for start, end in _collapse(unfed):
                gaps.append(
                    MissingFeedDays(
                        scope_id=scope_id,
                        scope_type=scope_type,
                        start=date.fromordinal(start),
                        end=date.fromordinal(end),
                        days=end - start + 1,
                    )
                )
        return gaps

    def unattributed(
        self,
        cycle: LivestockCycle,
        items: Sequence[ConsumptionItem],
        as_of: date | None = None,
    ) -> UnattributedConsumption | None:
        """Summary of rows no scope takes; they are left out of every total."""
        scopes = ScopeIndex(cycle.details, items, cycle.end_date, as_of)
        _, rows = scopes.partition(items)
        if not rows:
            return None
        return UnattributedConsumption(
            rows=len(rows),
            quantity=sum(r.quantity for r in rows),
            cost=sum(r.total_cost for r in rows),
            first_date=min(r.date for r in rows),
            last_date=max(r.date for r in rows),
        )

    def audit(
        self,
        cycle: LivestockCycle,
        items: Sequence[ConsumptionItem],
        as_of: date | None = None,
    ) -> DataQualityReport:
        report = DataQualityReport(
            cycle_id=cycle.id,
            missing_prices=tuple(self.missing_prices(items)),
            missing_feed_days=tuple(self.missing_feed_days(cycle, items, as_of)),
            unattributed=self.unattributed(cycle, items, as_of),
        )
        if not report.is_clean:
            logger.info(
                "Cycle %s: %d feed types without price, %d days without feed data, "
                "%d rows without scope",
                cycle.id,
                len(report.missing_prices),
                sum(gap.days for gap in report.missing_feed_days),
                report.unattributed.rows if report.unattributed else 0,
            )
        return report

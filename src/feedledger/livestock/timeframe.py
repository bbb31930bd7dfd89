"""
Animal-presence intervals and consumption filtering.

Consumption only counts while animals were actually present. Presence comes
from occupancy details (one per area or group and interval); this module
indexes them once per call so each consumption row is checked with a bisect
instead of a scan over all details.
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from collections.abc import Iterable, Sequence
from datetime import date

from feedledger.feed.core import ConsumptionItem
from feedledger.livestock.core import OccupancyDetail, ScopeType

logger = logging.getLogger(__name__)

Scope = tuple[ScopeType, str]
Interval = tuple[int, int]  # inclusive (start, end) date ordinals


def effective_end(
    detail_end: date | None, cycle_end: date | None, as_of: date | None = None
) -> date:
    """Resolve an open end: detail end, else cycle end, else as_of/today."""
    if detail_end is not None:
        return detail_end
    if cycle_end is not None:
        return cycle_end
    return as_of or date.today()


def cycle_duration_days(
    start: date, end: date | None, as_of: date | None = None
) -> int:
    """Inclusive number of days in a cycle; ongoing cycles run to as_of/today."""
    last = end if end is not None else (as_of or date.today())
    return (last - start).days + 1


def interval_days(
    detail: OccupancyDetail, cycle_end: date | None, as_of: date | None = None
) -> int:
    """Inclusive occupied days of one detail, never negative."""
    end = effective_end(detail.end_date, cycle_end, as_of)
    return max(0, (end - detail.start_date).days + 1)


def animal_days(
    details: Iterable[OccupancyDetail],
    cycle_end: date | None,
    as_of: date | None = None,
) -> int:
    """Sum of count x occupied days over the given details."""
    return sum(d.count * interval_days(d, cycle_end, as_of) for d in details)


def max_animals_at_any_time(
    details: Sequence[OccupancyDetail],
    cycle_start: date,
    cycle_end: date | None = None,
) -> int:
    """
    Peak number of animals present simultaneously.

    Animals moving between areas would be double counted by a plain sum:
    100 animals in a rearing pen later split into two pens of 50 is still
    100 animals. Presence is evaluated at every transition date.
    """
    # Sweep: animals arrive on start, leave the day after end (ends inclusive)
    events: list[tuple[int, int]] = []
    for d in details:
        if d.count <= 0:
            continue
        start = d.start_date or cycle_start
        end = d.end_date or cycle_end
        events.append((start.toordinal(), d.count))
        if end is not None:
            events.append((end.toordinal() + 1, -d.count))

    # Departures sort before arrivals on the same day
    events.sort()
    peak = present = 0
    for _, delta in events:
        present += delta
        peak = max(peak, present)
    return peak


def _merge(intervals: list[Interval]) -> list[Interval]:
    """Sort and merge overlapping or adjacent inclusive intervals."""
    if not intervals:
        return []
    intervals = sorted(intervals)
    merged = [intervals[0]]
    for start, end in intervals[1:]:
        last_start, last_end = merged[-1]
        if start <= last_end + 1:
            merged[-1] = (last_start, max(last_end, end))
        else:
            merged.append((start, end))
    return merged


class IntervalSet:
    """Merged, sorted inclusive day intervals with O(log n) membership."""

    def __init__(self, intervals: list[Interval]) -> None:
        self.intervals = _merge(intervals)
        self._starts = [s for s, _ in self.intervals]

    def contains(self, day: date) -> bool:
        ordinal = day.toordinal()
        pos = bisect_right(self._starts, ordinal) - 1
        return pos >= 0 and ordinal <= self.intervals[pos][1]

    def __bool__(self) -> bool:
        return bool(self.intervals)


class ActiveIntervalIndex:
    """
    Per-area and per-group active intervals built from occupancy details.

    Only details with animals (count > 0) contribute. An area or group with
    several disjoint intervals (animals moved out and back in) keeps all of
    them.
    """

    def __init__(
        self,
        details: Iterable[OccupancyDetail],
        cycle_end: date | None = None,
        as_of: date | None = None,
    ) -> None:
        raw: dict[Scope, list[Interval]] = {}
        for d in details:
            scope = d.scope
            if d.count <= 0 or scope is None:
                continue
            end = effective_end(d.end_date, cycle_end, as_of)
            if end < d.start_date:
                continue
            raw.setdefault(scope, []).append(
                (d.start_date.toordinal(), end.toordinal())
            )
        self._sets: dict[Scope, IntervalSet] = {
            scope: IntervalSet(intervals) for scope, intervals in raw.items()
        }

    def intervals(self, scope: Scope) -> IntervalSet | None:
        return self._sets.get(scope)

    def is_active(self, scope: Scope, day: date) -> bool:
        interval_set = self._sets.get(scope)
        return interval_set is not None and interval_set.contains(day)

    def area_active(self, area_id: str | None, day: date) -> bool:
        return area_id is not None and self.is_active((ScopeType.AREA, area_id), day)

    def group_active(self, group_id: str | None, day: date) -> bool:
        return group_id is not None and self.is_active(
            (ScopeType.GROUP, group_id), day
        )


class TimeframeFilter:
    """
    Restricts consumption to days on which animals were present.

    An item is kept when its date falls inside any active interval of its own
    area, or of the group its area belongs to. Filtering is idempotent.
    """

    def __init__(
        self,
        details: Iterable[OccupancyDetail],
        cycle_end_date: date | None = None,
        as_of: date | None = None,
    ) -> None:
        self.index = ActiveIntervalIndex(details, cycle_end_date, as_of)

    def keeps(self, item: ConsumptionItem) -> bool:
        return self.index.area_active(
            item.area_id, item.date
        ) or self.index.group_active(item.area_group_id, item.date)

    def filter(self, items: Iterable[ConsumptionItem]) -> list[ConsumptionItem]:
        kept: list[ConsumptionItem] = []
        dropped = 0
        for item in items:
            if self.keeps(item):
                kept.append(item)
            else:
                dropped += 1
        if dropped:
            logger.debug(
                "Dropped %d consumption rows outside active timeframes", dropped
            )
        return kept


class ScopeIndex:
    """
    Assigns each consumption item to exactly one scope (area or group).

    A group with items booked directly on it ("group-level tracking") takes
    only those direct items; its member areas' rows are not summed into it
    as well. Items that fit no scope stay unattributed and are left out of
    every total, so cycle totals and the sum over scopes agree; the
    data-quality report lists them.
    """

    def __init__(
        self,
        details: Sequence[OccupancyDetail],
        items: Iterable[ConsumptionItem],
        cycle_end: date | None = None,
        as_of: date | None = None,
    ) -> None:
        self.index = ActiveIntervalIndex(details, cycle_end, as_of)

        # First-appearance order of active scopes
        self.order: list[Scope] = []
        self._details: dict[Scope, list[OccupancyDetail]] = {}
        for d in details:
            scope = d.scope
            if d.count <= 0 or scope is None:
                continue
            if scope not in self._details:
                self.order.append(scope)
                self._details[scope] = []
            self._details[scope].append(d)

        self.group_level_tracked: set[str] = {
            item.area_group_id
            for item in items
            if item.is_group_entry and item.area_group_id is not None
        }

    def details_for(self, scope: Scope) -> list[OccupancyDetail]:
        """Active details of a scope, in input order."""
        return self._details.get(scope, [])

    def attribute(self, item: ConsumptionItem) -> Scope | None:
        if item.is_group_entry:
            if self.index.group_active(item.area_group_id, item.date):
                return (ScopeType.GROUP, item.area_group_id)
            return None

        if self.index.area_active(item.area_id, item.date):
            return (ScopeType.AREA, item.area_id)

        group_id = item.area_group_id
        if (
            group_id is not None
            and group_id not in self.group_level_tracked
            and self.index.group_active(group_id, item.date)
        ):
            return (ScopeType.GROUP, group_id)
        return None

    def partition(
        self, items: Iterable[ConsumptionItem]
    ) -> tuple[dict[Scope, list[ConsumptionItem]], list[ConsumptionItem]]:
        """Split items into per-scope lists and the unattributed remainder."""
        by_scope: dict[Scope, list[ConsumptionItem]] = {s: [] for s in self.order}
        unattributed: list[ConsumptionItem] = []
        for item in items:
            scope = self.attribute(item)
            if scope is None:
                unattributed.append(item)
            else:
                by_scope.setdefault(scope, []).append(item)
        if unattributed:
            logger.debug(
                "%d consumption rows could not be attributed to an active scope",
                len(unattributed),
            )
        return by_scope, unattributed

"""
Price resolution and cost joining for raw consumption.

Prices are looked up per feed type through a bisect over tiers sorted by
``valid_from``; a lookup touches only the tiers that started on or before the
requested date.
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from collections.abc import Iterable
from datetime import date

from feedledger.feed.core import ConsumptionItem, ConsumptionRecord, FeedType, PriceTier

logger = logging.getLogger(__name__)


def _tier_rank(tier: PriceTier, order: int) -> tuple:
    """
    Sort key among tiers sharing a valid_from (higher wins).

    Supplier-specific beats generic, then the later valid_to (open-ended is
    latest), then the earlier position in the input.
    """
    valid_to = tier.valid_to.toordinal() if tier.valid_to else float("inf")
    return (tier.supplier_id is not None, valid_to, -order)


class PriceResolver:
    """
    Resolves the effective price tier for a feed type, date and supplier.
    """

    def __init__(self, tiers: Iterable[PriceTier]) -> None:
        # feed_type_id -> [(valid_from ordinal, rank, tier)] ascending
        self._index: dict[str, list[tuple[int, tuple, PriceTier]]] = {}
        for order, tier in enumerate(tiers):
            self._index.setdefault(tier.feed_type_id, []).append(
                (tier.valid_from.toordinal(), _tier_rank(tier, order), tier)
            )
        for entries in self._index.values():
            entries.sort(key=lambda e: (e[0], e[1]))

        self._starts: dict[str, list[int]] = {
            ft: [e[0] for e in entries] for ft, entries in self._index.items()
        }

    def resolve(
        self, feed_type_id: str, on: date, supplier_id: str | None = None
    ) -> PriceTier | None:
        """
        Return the tier valid on ``on``, or None.

        Both ends of a tier are inclusive. When several tiers match, the one
        with the latest valid_from wins, so on a shared boundary date the
        later tier applies.
        """
        entries = self._index.get(feed_type_id)
        if not entries:
            return None

        day = on.toordinal()
        # Candidates are every tier with valid_from <= day; walk newest first
        pos = bisect_right(self._starts[feed_type_id], day)
        for i in range(pos - 1, -1, -1):
            tier = entries[i][2]
            if tier.valid_to is not None and tier.valid_to < on:
                continue
            if (
                supplier_id is not None
                and tier.supplier_id is not None
                and tier.supplier_id != supplier_id
            ):
                continue
            return tier
        return None

    def __len__(self) -> int:
        return sum(len(v) for v in self._index.values())


class ConsumptionCostJoiner:
    """
    Attaches resolved price, total cost and supplier to raw consumption rows.
    """

    def __init__(
        self,
        tiers: Iterable[PriceTier],
        feed_types: Iterable[FeedType] = (),
        default_unit: str = "kg",
    ) -> None:
        self.resolver = PriceResolver(tiers)
        self.feed_types: dict[str, FeedType] = {ft.id: ft for ft in feed_types}
        self.default_unit = default_unit

    def join_one(self, record: ConsumptionRecord) -> ConsumptionItem:
        tier = self.resolver.resolve(
            record.feed_type_id, record.date, record.supplier_id
        )
        feed_type = self.feed_types.get(record.feed_type_id)

        if tier is None:
            logger.debug(
                "No price tier for feed type %s on %s",
                record.feed_type_id,
                record.date,
            )
            price = None
            total_cost = 0.0
        else:
            price = tier.price_per_unit
            total_cost = record.quantity * price

        supplier_id = record.supplier_id
        supplier_name = None
        if tier is not None and tier.supplier_id is not None:
            supplier_id = supplier_id or tier.supplier_id
            supplier_name = tier.supplier_name

        return ConsumptionItem(
            date=record.date,
            feed_type_id=record.feed_type_id,
            quantity=record.quantity,
            total_cost=total_cost,
            price_per_unit=price,
            price_missing=tier is None,
            area_id=record.area_id,
            area_name=record.area_name,
            area_group_id=record.area_group_id,
            area_group_name=record.area_group_name,
            supplier_id=supplier_id,
            supplier_name=supplier_name,
            feed_type_name=(
                feed_type.name if feed_type is not None else record.feed_type_name
            ),
            unit=feed_type.unit if feed_type is not None else self.default_unit,
        )

    def join(self, records: Iterable[ConsumptionRecord]) -> list[ConsumptionItem]:
        """
        Price every record. Output order follows input order.

        Rows without a matching tier get a cost of 0 and ``price_missing``;
        they are summarized in one warning rather than raised.
        """
        items = [self.join_one(r) for r in records]

        missing = sum(1 for item in items if item.price_missing)
        if missing:
            logger.warning(
                "%d of %d consumption rows have no applicable price tier",
                missing,
                len(items),
            )
        return items

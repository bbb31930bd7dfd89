"""Feed types, price tiers and priced consumption."""

from feedledger.feed.core import ConsumptionItem, ConsumptionRecord, FeedType, PriceTier
from feedledger.feed.pricing import ConsumptionCostJoiner, PriceResolver

__all__ = [
    "ConsumptionCostJoiner",
    "ConsumptionItem",
    "ConsumptionRecord",
    "FeedType",
    "PriceResolver",
    "PriceTier",
]

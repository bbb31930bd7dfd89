from dataclasses import dataclass
from datetime import date


@dataclass
class CostTransaction:
    """
    A booked cost against a cycle (vet, energy, litter, milk replacer, ...).

    ``category`` decides whether the cost counts as feed cost or as shared
    overhead; see ``is_feed_cost``.
    """

    id: str
    amount: float
    transaction_date: date
    cycle_id: str | None = None
    cost_type: str | None = None
    category: str | None = None


@dataclass
class IncomeTransaction:
    """Additional income against a cycle (premiums, bonuses, subsidies)."""

    id: str
    amount: float
    transaction_date: date
    cycle_id: str | None = None
    income_type: str | None = None


def is_feed_cost(transaction: CostTransaction, feed_categories: list[str]) -> bool:
    """True when the transaction's category is one of the feed categories."""
    if not transaction.category:
        return False
    return transaction.category.strip().casefold() in {
        c.casefold() for c in feed_categories
    }


def split_cost_transactions(
    transactions: list[CostTransaction], feed_categories: list[str]
) -> tuple[list[CostTransaction], list[CostTransaction]]:
    """Partition into (feed-category, other) transactions."""
    categories = {c.casefold() for c in feed_categories}
    feed: list[CostTransaction] = []
    other: list[CostTransaction] = []
    for t in transactions:
        if t.category and t.category.strip().casefold() in categories:
            feed.append(t)
        else:
            other.append(t)
    return feed, other

from feedledger.finance.core import (
    CostTransaction,
    IncomeTransaction,
    is_feed_cost,
    split_cost_transactions,
)

__all__ = [
    "CostTransaction",
    "IncomeTransaction",
    "is_feed_cost",
    "split_cost_transactions",
]

from dataclasses import dataclass

from feedledger.pivot.dimensions import PivotAggregation


@dataclass
class Accumulator:
    """
    Running aggregate for one pivot cell, updated in a single pass (O(1)).

    Every aggregation can be read from the same state, and two accumulators
    merge exactly, which is how subtotals and grand totals are built.
    """

    count: int = 0
    total: float = 0.0
    minimum: float | None = None
    maximum: float | None = None
    weighted_sum: float = 0.0  # sum of value * weight
    weight: float = 0.0

    def update(self, value: float, weight: float = 0.0) -> None:
        self.count += 1
        self.total += value
        self.minimum = value if self.minimum is None else min(self.minimum, value)
        self.maximum = value if self.maximum is None else max(self.maximum, value)
        self.weighted_sum += value * weight
        self.weight += weight

    def merge(self, other: "Accumulator") -> None:
        if other.count == 0:
            return
        self.count += other.count
        self.total += other.total
        if other.minimum is not None:
            self.minimum = (
                other.minimum
                if self.minimum is None
                else min(self.minimum, other.minimum)
            )
        if other.maximum is not None:
            self.maximum = (
                other.maximum
                if self.maximum is None
                else max(self.maximum, other.maximum)
            )
        self.weighted_sum += other.weighted_sum
        self.weight += other.weight

    def read(self, aggregation: PivotAggregation) -> float | None:
        """Aggregated value; None only for min/max of an empty cell."""
        if aggregation is PivotAggregation.SUM:
            return self.total
        if aggregation is PivotAggregation.COUNT:
            return float(self.count)
        if aggregation is PivotAggregation.AVG:
            return self.total / self.count if self.count else 0.0
        if aggregation is PivotAggregation.MIN:
            return self.minimum
        if aggregation is PivotAggregation.MAX:
            return self.maximum
        return self.weighted_sum / self.weight if self.weight > 0 else 0.0

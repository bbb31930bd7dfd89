"""Feed-cost allocation and aggregation for livestock cycles."""

__version__ = "0.4.0"

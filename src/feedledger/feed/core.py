from dataclasses import dataclass
from datetime import date


@dataclass
class FeedType:
    """
    A feed component as recorded by the feeding system (e.g. "Kraftfutter").
    """

    id: str
    name: str
    unit: str = "kg"

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("FeedType ID cannot be empty")


@dataclass
class PriceTier:
    """
    A time-bounded price for one feed type.

    ``valid_to`` of None means the tier is open-ended. A tier without a
    supplier applies to any supplier.
    """

    feed_type_id: str
    price_per_unit: float
    valid_from: date
    valid_to: date | None = None
    supplier_id: str | None = None
    supplier_name: str | None = None

    def __post_init__(self) -> None:
        if not self.feed_type_id:
            raise ValueError("PriceTier feed_type_id cannot be empty")
        if self.valid_to is not None and self.valid_to < self.valid_from:
            raise ValueError(
                f"PriceTier for {self.feed_type_id} ends ({self.valid_to}) "
                f"before it starts ({self.valid_from})"
            )


@dataclass
class ConsumptionRecord:
    """
    One raw consumption row as delivered by the data-access layer.

    The optional name fields carry whatever the collaborator already joined
    (feed type name, area name, the area's group).
    """

    date: date
    feed_type_id: str
    quantity: float
    area_id: str | None = None
    supplier_id: str | None = None

    # Joined names
    feed_type_name: str | None = None
    area_name: str | None = None
    area_group_id: str | None = None
    area_group_name: str | None = None

    def __post_init__(self) -> None:
        if not self.feed_type_id:
            raise ValueError("ConsumptionRecord feed_type_id cannot be empty")
        if self.quantity < 0:
            raise ValueError(
                f"ConsumptionRecord quantity must be >= 0, got {self.quantity} "
                f"({self.feed_type_id} on {self.date})"
            )


@dataclass(frozen=True)
class ConsumptionItem:
    """
    A consumption record with its resolved price attached.

    Derived and ephemeral: rebuilt from records and price tiers on every
    evaluation. ``total_cost`` is 0 when no price tier matched, in which case
    ``price_missing`` is set.
    """

    date: date
    feed_type_id: str
    quantity: float
    total_cost: float
    price_per_unit: float | None = None
    price_missing: bool = False

    area_id: str | None = None
    area_name: str | None = None
    area_group_id: str | None = None
    area_group_name: str | None = None

    supplier_id: str | None = None
    supplier_name: str | None = None

    feed_type_name: str | None = None
    unit: str = "kg"

    @property
    def is_group_entry(self) -> bool:
        """Booked directly on an area group rather than on an area."""
        return self.area_id is None and self.area_group_id is not None

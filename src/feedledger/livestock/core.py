import enum
from dataclasses import dataclass, field
from datetime import date


class ScopeType(enum.Enum):
    AREA = "area"
    GROUP = "group"


@dataclass
class OccupancyDetail:
    """
    One presence interval of animals in an area or an area group.

    A cycle holds several details per area when animals move in and out.
    ``count`` of 0 marks an inactive placeholder; ``end_date`` of None keeps
    the interval open through the cycle end (or today for ongoing cycles).
    """

    count: int
    start_date: date
    end_date: date | None = None
    area_id: str | None = None
    area_group_id: str | None = None
    id: str | None = None

    # Display
    area_name: str | None = None
    area_group_name: str | None = None
    animal_type: str | None = None

    # Weights (kg per animal)
    expected_weight_per_animal: float | None = None  # start weight
    actual_weight_per_animal: float | None = None  # end weight
    start_weight_source_detail_id: str | None = None

    # Prices per animal
    buy_price_per_animal: float | None = None
    sell_price_per_animal: float | None = None

    # Stocking / clearing markers
    is_start_group: bool = False
    is_end_group: bool = False

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError(f"OccupancyDetail count must be >= 0, got {self.count}")

    @property
    def scope(self) -> tuple[ScopeType, str] | None:
        """The (type, id) this detail belongs to; areas take precedence."""
        if self.area_id:
            return (ScopeType.AREA, self.area_id)
        if self.area_group_id:
            return (ScopeType.GROUP, self.area_group_id)
        return None


@dataclass
class LivestockCycle:
    """
    A batch of animals from stocking to clearing (a "Durchgang").
    """

    id: str
    start_date: date
    end_date: date | None = None
    name: str | None = None
    details: list[OccupancyDetail] = field(default_factory=list)

    # Cycle-level fallbacks for detail values
    expected_weight_per_animal: float | None = None
    actual_weight_per_animal: float | None = None
    buy_price_per_animal: float | None = None
    sell_price_per_animal: float | None = None

    # Cattle fattening: lifetime figures for net daily gain
    slaughter_weight_kg: float | None = None
    total_lifetime_days: int | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("LivestockCycle ID cannot be empty")

"""
Pivot table configuration: the externally editable input contract.

Saved configurations are plain JSON. Both snake_case and the camelCase keys
used by saved report configs (``showGrandTotals``) are accepted.
"""

import enum
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from feedledger.pivot.dimensions import (
    PivotAggregation,
    PivotDimension,
    PivotValueField,
)


class PivotConfigError(ValueError):
    """A pivot configuration names an unknown dimension, field or aggregation."""

    def __init__(self, field_name: str, message: str) -> None:
        self.field_name = field_name
        super().__init__(f"{field_name}: {message}")


def _parse_enum(enum_cls: type[enum.Enum], raw: Any, field_name: str) -> Any:
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw).strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise PivotConfigError(
            field_name, f"unknown value {raw!r} (expected one of: {allowed})"
        ) from None


@dataclass(frozen=True)
class PivotValue:
    field: PivotValueField
    aggregation: PivotAggregation
    label: str | None = None

    @property
    def display_label(self) -> str:
        return self.label or self.field.value


@dataclass(frozen=True)
class PivotConfig:
    rows: tuple[PivotDimension, ...] = ()
    columns: tuple[PivotDimension, ...] = ()
    values: tuple[PivotValue, ...] = ()
    show_subtotals: bool = False
    show_grand_totals: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PivotConfig":
        if not isinstance(data, dict):
            raise PivotConfigError("config", f"expected an object, got {type(data)}")

        def dimensions(key: str) -> tuple[PivotDimension, ...]:
            raw = data.get(key) or []
            if not isinstance(raw, list):
                raise PivotConfigError(key, "expected a list of dimensions")
            return tuple(
                _parse_enum(PivotDimension, d, f"{key}[{i}]") for i, d in enumerate(raw)
            )

        raw_values = data.get("values") or []
        if not isinstance(raw_values, list):
            raise PivotConfigError("values", "expected a list of value definitions")

        values = []
        for i, v in enumerate(raw_values):
            if not isinstance(v, dict):
                raise PivotConfigError(f"values[{i}]", "expected an object")
            values.append(
                PivotValue(
                    field=_parse_enum(
                        PivotValueField, v.get("field"), f"values[{i}].field"
                    ),
                    aggregation=_parse_enum(
                        PivotAggregation,
                        v.get("aggregation", "sum"),
                        f"values[{i}].aggregation",
                    ),
                    label=v.get("label") or None,
                )
            )

        return cls(
            rows=dimensions("rows"),
            columns=dimensions("columns"),
            values=tuple(values),
            show_subtotals=bool(
                data.get("show_subtotals", data.get("showSubtotals", False))
            ),
            show_grand_totals=bool(
                data.get("show_grand_totals", data.get("showGrandTotals", True))
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows": [d.value for d in self.rows],
            "columns": [d.value for d in self.columns],
            "values": [
                {
                    "field": v.field.value,
                    "aggregation": v.aggregation.value,
                    "label": v.label,
                }
                for v in self.values
            ],
            "show_subtotals": self.show_subtotals,
            "show_grand_totals": self.show_grand_totals,
        }


def load_pivot_config(config_path: str | Path) -> PivotConfig:
    """
    Loads a pivot configuration from JSON.
    A saved config wrapper (``{"name": ..., "config": {...}}``) is unwrapped.
    """
    final_path = Path(config_path)
    with open(final_path, encoding="utf-8") as f:
        data = json.load(f)
        if not isinstance(data, dict):
            raise TypeError(f"Expected dict from {final_path}, got {type(data)}")

    if isinstance(data.get("config"), dict):
        data = data["config"]
    return PivotConfig.from_dict(data)

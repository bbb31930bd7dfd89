"""
Load a complete dataset directory into a CycleBatch.

Layout::

    data_dir/
        cycles.json              (required) cycles with nested details
        consumption.csv          (required)
        feed_types.csv
        price_tiers.csv
        cost_transactions.csv
        income_transactions.csv

Optional files that are missing load as empty collections. Dates are ISO
strings (``YYYY-MM-DD``).
"""

from __future__ import annotations

import json
import logging
from dataclasses import fields
from datetime import date
from pathlib import Path
from typing import Any

import pandas as pd

from feedledger.feed.core import ConsumptionRecord, FeedType, PriceTier
from feedledger.finance.core import CostTransaction, IncomeTransaction
from feedledger.livestock.core import LivestockCycle, OccupancyDetail
from feedledger.metrics.batch import CycleBatch

logger = logging.getLogger(__name__)

_DETAIL_FIELDS = {f.name for f in fields(OccupancyDetail)}
_CYCLE_FIELDS = {f.name for f in fields(LivestockCycle)} - {"details"}


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------

def _text(value: Any) -> str | None:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    text = str(value).strip()
    return text or None


def _float(value: Any) -> float | None:
    text = _text(value)
    return float(text) if text is not None else None


def _date(value: Any) -> date | None:
    text = _text(value)
    return date.fromisoformat(text[:10]) if text is not None else None


def _bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = _text(value)
    return text is not None and text.lower() in {"1", "true", "yes", "ja"}


def _read_csv(path: Path, required: bool = False) -> pd.DataFrame:
    if not path.exists():
        if required:
            raise FileNotFoundError(f"Required dataset file missing: {path}")
        logger.debug("Optional file %s not found, using empty table", path.name)
        return pd.DataFrame()
    return pd.read_csv(path, dtype=str, keep_default_na=False)


def _records(df: pd.DataFrame) -> list[dict[str, Any]]:
    return df.to_dict("records") if not df.empty else []


# ---------------------------------------------------------------------------
# Table loaders
# ---------------------------------------------------------------------------

def load_feed_types(path: Path) -> list[FeedType]:
    return [
        FeedType(
            id=r["id"],
            name=_text(r.get("name")) or r["id"],
            unit=_text(r.get("unit")) or "kg",
        )
        for r in _records(_read_csv(path))
    ]


def load_price_tiers(path: Path) -> list[PriceTier]:
    return [
        PriceTier(
            feed_type_id=r["feed_type_id"],
            price_per_unit=float(r["price_per_unit"]),
            valid_from=_date(r["valid_from"]),
            valid_to=_date(r.get("valid_to")),
            supplier_id=_text(r.get("supplier_id")),
            supplier_name=_text(r.get("supplier_name")),
        )
        for r in _records(_read_csv(path))
    ]


def load_consumption(path: Path) -> list[ConsumptionRecord]:
    return [
        ConsumptionRecord(
            date=_date(r["date"]),
            feed_type_id=r["feed_type_id"],
            quantity=float(r["quantity"]),
            area_id=_text(r.get("area_id")),
            supplier_id=_text(r.get("supplier_id")),
            feed_type_name=_text(r.get("feed_type_name")),
            area_name=_text(r.get("area_name")),
            area_group_id=_text(r.get("area_group_id")),
            area_group_name=_text(r.get("area_group_name")),
        )
        for r in _records(_read_csv(path, required=True))
    ]


def load_cost_transactions(path: Path) -> list[CostTransaction]:
    return [
        CostTransaction(
            id=r["id"],
            amount=float(r["amount"]),
            transaction_date=_date(r["transaction_date"]),
            cycle_id=_text(r.get("cycle_id")),
            cost_type=_text(r.get("cost_type")),
            category=_text(r.get("category")),
        )
        for r in _records(_read_csv(path))
    ]


def load_income_transactions(path: Path) -> list[IncomeTransaction]:
    return [
        IncomeTransaction(
            id=r["id"],
            amount=float(r["amount"]),
            transaction_date=_date(r["transaction_date"]),
            cycle_id=_text(r.get("cycle_id")),
            income_type=_text(r.get("income_type")),
        )
        for r in _records(_read_csv(path))
    ]


def _detail_from_dict(raw: dict[str, Any]) -> OccupancyDetail:
    data = {k: v for k, v in raw.items() if k in _DETAIL_FIELDS}
    data["start_date"] = _date(data.get("start_date"))
    data["end_date"] = _date(data.get("end_date"))
    data["count"] = int(data.get("count") or 0)
    for flag in ("is_start_group", "is_end_group"):
        data[flag] = _bool(data.get(flag))
    return OccupancyDetail(**data)


def _cycle_from_dict(raw: dict[str, Any]) -> LivestockCycle:
    data = {k: v for k, v in raw.items() if k in _CYCLE_FIELDS}
    data["start_date"] = _date(data.get("start_date"))
    data["end_date"] = _date(data.get("end_date"))
    return LivestockCycle(
        **data, details=[_detail_from_dict(d) for d in raw.get("details") or []]
    )


def load_cycles(path: Path) -> list[LivestockCycle]:
    if not path.exists():
        raise FileNotFoundError(f"Required dataset file missing: {path}")
    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get("cycles", [])
    if not isinstance(data, list):
        raise TypeError(f"Expected list of cycles from {path}, got {type(data)}")
    return [_cycle_from_dict(c) for c in data]


def load_dataset(data_dir: str | Path) -> CycleBatch:
    """Load every table of a dataset directory into one CycleBatch."""
    root = Path(data_dir)
    batch = CycleBatch(
        cycles=load_cycles(root / "cycles.json"),
        consumption=load_consumption(root / "consumption.csv"),
        price_tiers=load_price_tiers(root / "price_tiers.csv"),
        feed_types=load_feed_types(root / "feed_types.csv"),
        cost_transactions=load_cost_transactions(root / "cost_transactions.csv"),
        income_transactions=load_income_transactions(root / "income_transactions.csv"),
    )
    logger.info(
        "Loaded %d cycles, %d consumption rows, %d price tiers from %s",
        len(batch.cycles),
        len(batch.consumption),
        len(batch.price_tiers),
        root,
    )
    return batch

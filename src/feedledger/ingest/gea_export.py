"""
Parser for GEA feeding-system exports.

The export has one row per pen group and day. The first three columns are
the pen group ("Stallgruppe"), the feeding system and the date
(``DD.MM.YYYY``); every ``<feed> abgegebene Menge (kg)`` column holds the
quantity dispensed of one feed component, with a German decimal comma.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import IO

import pandas as pd

from feedledger.feed.core import ConsumptionRecord

logger = logging.getLogger(__name__)

FEED_COLUMN_SUFFIX = "abgegebene Menge (kg)"
EXCLUDED_FEEDS = frozenset({"Wasser"})


class GeaImportError(ValueError):
    """The export is empty or contains no usable rows."""


@dataclass(frozen=True)
class GeaExport:
    records: tuple[ConsumptionRecord, ...]
    feed_types: tuple[str, ...]
    start: date
    end: date


def _read_text(source: str | Path | IO[str]) -> str:
    if hasattr(source, "read"):
        return source.read()
    with open(source, encoding="utf-8-sig") as f:
        return f.read()


def _feed_columns(header: list[str]) -> dict[str, str]:
    """Feed name -> column, skipping totals and water."""
    columns: dict[str, str] = {}
    for col in header:
        if FEED_COLUMN_SUFFIX not in col or col.startswith("Insgesamt"):
            continue
        name = col.replace(FEED_COLUMN_SUFFIX, "").strip()
        if name and name not in EXCLUDED_FEEDS:
            columns[name] = col
    return columns


def _german_number(series: pd.Series) -> pd.Series:
    cleaned = series.str.replace('"', "", regex=False)
    cleaned = cleaned.str.replace(",", ".", regex=False)
    return pd.to_numeric(cleaned, errors="coerce").fillna(0.0)


def parse_gea_export(
    source: str | Path | IO[str],
    feed_type_ids: dict[str, str] | None = None,
    area_ids: dict[str, str] | None = None,
) -> GeaExport:
    """
    Parse a GEA export into consumption records.

    ``feed_type_ids`` and ``area_ids`` map the names in the export to ids;
    unmapped names are used as ids directly. Only positive quantities are
    kept.
    """
    text = _read_text(source).strip()
    lines = text.splitlines()
    if len(lines) < 2:
        raise GeaImportError("Export is empty or has no data rows")

    sep = "\t" if "\t" in lines[0] else ","
    df = pd.read_csv(
        io.StringIO(text),
        sep=sep,
        dtype=str,
        keep_default_na=False,
        skipinitialspace=True,
    )
    df.columns = [str(c).strip() for c in df.columns]
    if len(df.columns) < 3:
        raise GeaImportError(f"Expected at least 3 columns, got {len(df.columns)}")

    feed_columns = _feed_columns(list(df.columns))
    area_col, date_col = df.columns[0], df.columns[2]

    df["_date"] = pd.to_datetime(
        df[date_col].str.strip(), format="%d.%m.%Y", errors="coerce"
    )
    df = df[df["_date"].notna()]

    feed_type_ids = feed_type_ids or {}
    area_ids = area_ids or {}
    records: list[ConsumptionRecord] = []
    for name, col in feed_columns.items():
        quantities = _german_number(df[col].astype(str))
        positive = df[quantities > 0]
        for area, day, quantity in zip(
            positive[area_col].str.strip(),
            positive["_date"],
            quantities[quantities > 0],
        ):
            records.append(
                ConsumptionRecord(
                    date=day.date(),
                    feed_type_id=feed_type_ids.get(name, name),
                    quantity=float(quantity),
                    area_id=area_ids.get(area, area) or None,
                    feed_type_name=name,
                    area_name=area or None,
                )
            )

    if not records:
        raise GeaImportError("No valid data rows found")

    records.sort(key=lambda r: (r.date, r.area_name or "", r.feed_type_name or ""))
    days = [r.date for r in records]
    logger.info(
        "Parsed GEA export: %d records, %d feed types, %s to %s",
        len(records),
        len({r.feed_type_name for r in records}),
        min(days),
        max(days),
    )
    return GeaExport(
        records=tuple(records),
        feed_types=tuple(sorted({r.feed_type_name for r in records})),
        start=min(days),
        end=max(days),
    )

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.partition import Partition

"""Partition roster reader (CompanyCodeList.xlsx).

The first sheet of the workbook holds one row per company code; the first
row is the header. Every cell is read as text so codes like ``0100`` keep
their leading zeros, and the literal ``NA`` survives instead of becoming NaN.
"""

__all__ = [
    "RosterError",
    "read_roster",
    "normalize_roster",
    "parse_flag",
]

logger = logging.getLogger(__name__)

CODE_COLUMN = "CompanyCode"
INVOICE_TYPE_COLUMN = "InvoiceType"
SCENARIO_COLUMN = "Scenario"
EXCLUDE_NA_COLUMN = "ExcludeNA"

TRUTHY = {"Y", "YES", "TRUE", "1", "X"}


class RosterError(Exception):
    """Raised when the roster workbook cannot be read or lacks the code column."""


def parse_flag(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return str(value).strip().upper() in TRUTHY


def read_roster(path: Path) -> list[Partition]:
    """Read the roster workbook and return partitions in sheet order."""
    if not path.exists():
        raise RosterError(f"roster workbook not found: {path}")
    try:
        # 空セルのみ NaN 扱い ('NA' などの既定 NA 文字列は文字列のまま保持)
        df = pd.read_excel(
            path,
            sheet_name=0,
            dtype=str,
            keep_default_na=False,
            na_values=[""],
        )
    except Exception as e:
        raise RosterError(f"failed to read roster {path}: {e}") from e
    return normalize_roster(df)


def normalize_roster(df: pd.DataFrame) -> list[Partition]:
    columns = [str(c).strip() for c in df.columns]
    if CODE_COLUMN not in columns:
        raise RosterError(f"roster missing column: {CODE_COLUMN}")
    df = df.set_axis(columns, axis=1)

    partitions: list[Partition] = []
    for _, raw in df.iterrows():
        if raw.isna().all():
            continue
        row: dict[str, Any] = {}
        for col, val in raw.items():
            if pd.isna(val):
                row[str(col)] = None
            else:
                row[str(col)] = str(val).strip() or None
        code = row.get(CODE_COLUMN)
        if not code:
            logger.warning("Empty CompanyCode row in roster, skipping")
            continue
        partitions.append(
            Partition(
                code=code,
                invoice_type=row.get(INVOICE_TYPE_COLUMN),
                scenario=row.get(SCENARIO_COLUMN),
                exclude_na=parse_flag(row.get(EXCLUDE_NA_COLUMN)),
            )
        )
    return partitions

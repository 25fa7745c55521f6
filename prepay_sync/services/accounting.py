from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from ..remote.odata import KeyPredicateError, parse_key_predicates

"""Accounting-document selection for the Scenario-A join.

Each (sales order, line) is expected to match exactly two accounting rows: the
charge and its offset. The offsetting entry (negative transaction-currency
amount) is the authoritative reference. Row-count and balance anomalies are
logged as warnings only.
"""

__all__ = [
    "BALANCE_EPSILON",
    "AccountingSelection",
    "to_amount",
    "resolve_fiscal_year",
    "select_offset_entry",
]

logger = logging.getLogger(__name__)

BALANCE_EPSILON = Decimal("0.01")
EXPECTED_ROWS = 2


@dataclass(frozen=True)
class AccountingSelection:
    accounting_document: str | None
    fiscal_year: str | None


def to_amount(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal(0)
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        logger.warning(f"Unparseable amount {value!r}, treated as 0")
        return Decimal(0)


def resolve_fiscal_year(row: Mapping[str, Any]) -> str | None:
    """Fiscal year from the row, falling back to the entity identifier.

    The remote service does not always return ``FiscalYear`` as a field; it is
    then recovered from the ``FiscalYear='....'`` key predicate of
    ``__metadata.id``. Absent or malformed identifiers yield ``None``.
    """
    direct = row.get("FiscalYear")
    if direct not in (None, ""):
        return str(direct).strip()
    meta = row.get("__metadata")
    identifier = meta.get("id") if isinstance(meta, Mapping) else None
    if not identifier:
        return None
    try:
        keys = parse_key_predicates(str(identifier))
    except KeyPredicateError as e:
        logger.debug(f"fiscal year unresolved: {e}")
        return None
    return keys.get("FiscalYear") or None


def select_offset_entry(
    rows: Sequence[Mapping[str, Any]], sales_order: str, item: str
) -> AccountingSelection:
    if len(rows) != EXPECTED_ROWS:
        logger.warning(
            f"Expected {EXPECTED_ROWS} items but got {len(rows)} for SalesOrder: {sales_order}, Item: {item}"
        )

    total = sum((to_amount(r.get("AmountInTransactionCurrency")) for r in rows), Decimal(0))
    if abs(total) > BALANCE_EPSILON:
        logger.warning(f"Sum is not zero: {total} for SalesOrder: {sales_order}, Item: {item}")

    offset = next((r for r in rows if to_amount(r.get("AmountInTransactionCurrency")) < 0), None)
    if offset is None:
        return AccountingSelection(accounting_document=None, fiscal_year=None)
    doc = offset.get("AccountingDocument")
    return AccountingSelection(
        accounting_document=str(doc).strip() if doc not in (None, "") else None,
        fiscal_year=resolve_fiscal_year(offset),
    )

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

"""OData helpers: $filter rendering, paged envelopes, entity key predicates."""

__all__ = [
    "Clause",
    "KeyPredicateError",
    "build_filter",
    "eq",
    "quote",
    "page_records",
    "parse_key_predicates",
    "text_field",
]

Clause = tuple[str, str, Any]


class KeyPredicateError(ValueError):
    """Entity identifier has no parseable ``(key='value',...)`` segment."""


def quote(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    return "'" + str(value).replace("'", "''") + "'"


def eq(field: str, value: Any) -> Clause:
    return (field, "eq", value)


def build_filter(clauses: Iterable[Clause]) -> str:
    """Render ``field op value`` clauses as an ``and`` conjunction.

    >>> build_filter([eq("SalesOrganization", "1000"), eq("InvoiceClearingStatus", "C")])
    "SalesOrganization eq '1000' and InvoiceClearingStatus eq 'C'"
    """
    parts = [f"{field} {op} {quote(value)}" for field, op, value in clauses]
    if not parts:
        raise ValueError("filter needs at least one clause")
    return " and ".join(parts)


def page_records(data: Any) -> tuple[list[dict[str, Any]], str | None]:
    """Split one page into ``(records, next_link)``.

    Two envelopes are understood:
    - V4: ``{"value": [...], "@odata.nextLink": "..."}``
    - V2: ``{"d": {"results": [...], "__next": "..."}}``

    Anything else is treated as an empty final page.
    """
    if not isinstance(data, Mapping):
        return [], None
    if isinstance(data.get("value"), list):
        return list(data["value"]), data.get("@odata.nextLink") or None
    d = data.get("d")
    if isinstance(d, Mapping) and isinstance(d.get("results"), list):
        return list(d["results"]), d.get("__next") or None
    return [], None


# Grammar:
#   identifier := anything "(" predicate ("," predicate)* ")"
#   predicate  := key "=" value
#   value      := [typename] "'" chars "'" | '"' chars '"' | bare
_PREDICATE_RE = re.compile(
    r"""\s*([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(?:[A-Za-z]*'([^']*)'|"([^"]*)"|([^'",\s)]+))\s*(,|$)"""
)


def _last_segment(identifier: str) -> str | None:
    # parentheses inside quoted values do not open a segment
    text = identifier.rstrip()
    if not text.endswith(")"):
        return None
    start = None
    quote = None
    for i, ch in enumerate(text):
        if quote:
            if ch == quote:
                quote = None
        elif ch in "'\"":
            quote = ch
        elif ch == "(":
            start = i
    if start is None or quote:
        return None
    return text[start + 1:-1]


def parse_key_predicates(identifier: str) -> dict[str, str]:
    """Parse the trailing key segment of an entity identifier.

    >>> parse_key_predicates("https://h/Items(CompanyCode='1000',FiscalYear='2024')")
    {'CompanyCode': '1000', 'FiscalYear': '2024'}

    Raises:
        KeyPredicateError: no trailing parenthesised segment, or a predicate
            that is not ``key=value``
    """
    segment = _last_segment(identifier or "")
    if segment is None:
        raise KeyPredicateError(f"no key segment in identifier: {identifier!r}")
    result: dict[str, str] = {}
    pos = 0
    sep = ""
    while pos < len(segment):
        pm = _PREDICATE_RE.match(segment, pos)
        if pm is None or pm.end() == pos:
            raise KeyPredicateError(f"malformed key predicate at {segment[pos:]!r} in {identifier!r}")
        key, single, double, bare, sep = pm.groups()
        result[key] = next(v for v in (single, double, bare) if v is not None)
        pos = pm.end()
        if not sep:
            break
    if not result or pos < len(segment) or sep:
        raise KeyPredicateError(f"malformed key segment in {identifier!r}")
    return result


def text_field(record: Mapping[str, Any], name: str) -> str | None:
    """Field value as stripped text; ``None`` for missing or blank values."""
    value = record.get(name)
    if value is None:
        return None
    text = str(value).strip()
    return text or None

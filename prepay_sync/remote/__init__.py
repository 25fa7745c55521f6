"""Remote OData access: client, filter rendering, pagination and retries."""

from .client import RemoteClient
from .fetcher import fetch_all_records
from .odata import KeyPredicateError, build_filter, eq, parse_key_predicates

__all__ = [
    "RemoteClient",
    "fetch_all_records",
    "KeyPredicateError",
    "build_filter",
    "eq",
    "parse_key_predicates",
]

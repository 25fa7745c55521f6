from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol
from urllib.parse import urljoin

from .odata import page_records

"""Paginated fetcher.

Returns the complete, ordered result set of a paged collection by following
the server's continuation reference (``@odata.nextLink`` or ``d.__next``)
until none remains. Pages are fetched strictly one after another. Errors are
not swallowed: the first failing page (after retries) aborts the fetch.
"""

__all__ = [
    "JsonGetter",
    "fetch_all_records",
]

logger = logging.getLogger(__name__)


class JsonGetter(Protocol):
    async def get_json(self, url: str, params: dict[str, str] | None = None) -> Any: ...


async def fetch_all_records(
    client: JsonGetter,
    url: str,
    *,
    filter: str | None = None,
    select: Sequence[str] | None = None,
) -> list[dict[str, Any]]:
    params: dict[str, str] = {}
    if filter:
        params["$filter"] = filter
    if select:
        params["$select"] = ",".join(select)

    data = await client.get_json(url, params=params or None)
    records, next_link = page_records(data)
    pages = 1

    # 継続リンクには元のクエリが含まれるため params は初回のみ送信
    while next_link:
        page_url = urljoin(url, next_link)
        data = await client.get_json(page_url)
        page, next_link = page_records(data)
        records.extend(page)
        pages += 1

    logger.debug(f"fetched {len(records)} records in {pages} page(s) from {url}")
    return records

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from ..models.candidate import CandidateRecord
from ..models.partition import Partition
from ..remote.fetcher import JsonGetter, fetch_all_records
from ..remote.odata import build_filter, eq
from .pool import BoundedPool

"""Flag filter: remote status gate applied after accounting resolution.

A candidate is excluded when
- its status code is one of Paid / Sent / Error, or
- ``FlagSFUpdated`` or ``FlagInvoiceSent`` is ``Yes``, or
- the partition opted in (``exclude_na``) and either flag is ``NA``.

Candidates without an accounting document are excluded without a remote
call. Lookup failures exclude the candidate (fail-closed).
"""

__all__ = [
    "DISALLOWED_STATUSES",
    "FLAG_FIELDS",
    "FlagFilter",
    "exclusion_reason",
]

logger = logging.getLogger(__name__)

DISALLOWED_STATUSES = frozenset({"Paid", "Sent", "Error"})
FLAG_FIELDS = ("FlagSFUpdated", "FlagInvoiceSent")
YES = "Yes"
NOT_APPLICABLE = "NA"


def exclusion_reason(flag_row: Mapping[str, Any], exclude_na: bool = False) -> str | None:
    """Why the flag record disqualifies a candidate, or ``None`` to keep it."""
    status = flag_row.get("Statuscode")
    if status in DISALLOWED_STATUSES:
        return f"status {status}"
    for f in FLAG_FIELDS:
        if flag_row.get(f) == YES:
            return f"{f}={YES}"
    if exclude_na:
        for f in FLAG_FIELDS:
            if flag_row.get(f) == NOT_APPLICABLE:
                return f"{f}={NOT_APPLICABLE}"
    return None


class FlagFilter:
    def __init__(
        self,
        client: JsonGetter,
        flag_url: str,
        pool: BoundedPool,
        partitions: Mapping[str, Partition],
    ) -> None:
        self.client = client
        self.flag_url = flag_url
        self.pool = pool
        self.partitions = partitions

    async def _check(self, cand: CandidateRecord) -> str | None:
        rows = await fetch_all_records(
            self.client,
            self.flag_url,
            filter=build_filter([
                eq("AccountingDocument", cand.accounting_document),
                eq("CompanyCode", cand.partition_code),
            ]),
        )
        # 該当レコード無し = 除外条件なし
        flag_row = rows[0] if rows else {}
        partition = self.partitions.get(cand.partition_code)
        return exclusion_reason(flag_row, exclude_na=partition.exclude_na if partition else False)

    async def apply(self, candidates: Sequence[CandidateRecord]) -> list[CandidateRecord]:
        checkable = [c for c in candidates if c.accounting_document]
        skipped = len(candidates) - len(checkable)
        if skipped:
            logger.info(f"Flag filter: {skipped} candidates without accounting document excluded")

        kept: list[CandidateRecord] = []
        for r in await self.pool.map(self._check, checkable):
            c = r.item
            if not r.ok:
                logger.error(
                    f"Flag lookup failed for AccountingDocument {c.accounting_document} "
                    f"({c.partition_code}), excluding: {r.error}"
                )
                continue
            if r.value is not None:
                logger.debug(f"excluded {c.accounting_document}/{c.partition_code}: {r.value}")
                continue
            kept.append(c)
        logger.info(f"Flag filter kept {len(kept)}/{len(candidates)} candidates")
        return kept

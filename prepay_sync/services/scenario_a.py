from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace
from typing import Any

from ..models.candidate import CandidateRecord
from ..models.config_models import Endpoints
from ..models.partition import Partition
from ..models.processing_result import ScenarioResult, StageFailure
from ..remote.fetcher import JsonGetter, fetch_all_records
from ..remote.odata import build_filter, eq, text_field
from .accounting import select_offset_entry
from .pool import Pools

"""Stage executor for the normal (Scenario-A) path.

Per partition, strictly one partition after another:

1. headers     sales-order headers of the partition; keep those with a
               scenario tag and a sales order not on the exclusion list
2. items       line items per header (sales-order-item pool); keep lines
               whose down-payment status is ``D``
3. accounting  accounting rows per (sales order, line) (accounting pool);
               pick the offsetting entry, resolve the fiscal year
4. complete    candidates lacking document or fiscal year are dropped

A failure in step 1 aborts the partition; a failing unit in steps 2-3 drops
only that unit. Both are logged and reported as ``StageFailure``.
"""

__all__ = [
    "DOWN_PAYMENT_OPEN",
    "ScenarioAExecutor",
    "filter_headers",
    "open_down_payment_lines",
]

logger = logging.getLogger(__name__)

DOWN_PAYMENT_OPEN = "D"
HEADER_SCENARIO_FIELD = "YY1_PrepaymentScenario_SDH"
ACCOUNTING_SELECT = (
    "AccountingDocument",
    "AccountingDocumentItem",
    "AmountInTransactionCurrency",
)


def filter_headers(headers: Iterable[dict[str, Any]], excluded: frozenset[str]) -> list[dict[str, Any]]:
    return [
        h for h in headers
        if text_field(h, HEADER_SCENARIO_FIELD)
        and text_field(h, "SalesOrder")
        and text_field(h, "SalesOrder") not in excluded
    ]


def open_down_payment_lines(items: Iterable[dict[str, Any]]) -> list[tuple[str, str | None]]:
    """``(line id, correlation id)`` for lines whose down payment is still open."""
    lines = []
    for it in items:
        if it.get("SlsOrderItemDownPaymentStatus") != DOWN_PAYMENT_OPEN:
            continue
        line = text_field(it, "SalesOrderItem")
        if line:
            lines.append((line, text_field(it, "YY1_SALESFORCEID_I_SDI")))
    return lines


class ScenarioAExecutor:
    def __init__(
        self,
        client: JsonGetter,
        endpoints: Endpoints,
        pools: Pools,
        exclude_sales_orders: frozenset[str] = frozenset(),
    ) -> None:
        self.client = client
        self.endpoints = endpoints
        self.pools = pools
        self.exclude_sales_orders = exclude_sales_orders

    async def run(self, partitions: Sequence[Partition]) -> ScenarioResult:
        candidates: list[CandidateRecord] = []
        completed: list[str] = []
        failures: list[StageFailure] = []
        for partition in partitions:
            logger.info(f"Processing Normal Scenario for CompanyCode: {partition.code}")
            try:
                found, unit_failures = await self.process_partition(partition)
            except Exception as e:
                logger.error(f"Normal Scenario failed for CompanyCode {partition.code}: {e}")
                failures.append(StageFailure(partition.code, "headers", str(e)))
                continue
            failures.extend(unit_failures)
            candidates.extend(found)
            completed.append(partition.code)
            logger.info(f"Resolved {len(found)} candidates for CompanyCode: {partition.code}")
        return ScenarioResult(candidates=candidates, completed_partitions=completed, failures=failures)

    async def fetch_headers(self, partition: Partition) -> list[dict[str, Any]]:
        headers = await fetch_all_records(
            self.client,
            self.endpoints.sales_order_header,
            filter=build_filter([eq("SalesOrganization", partition.code)]),
        )
        valid = filter_headers(headers, self.exclude_sales_orders)
        logger.info(f"{len(valid)}/{len(headers)} sales order headers retained for {partition.code}")
        return valid

    async def _candidates_for_header(self, work: tuple[str, dict[str, Any]]) -> list[CandidateRecord]:
        code, header = work
        so = text_field(header, "SalesOrder") or ""
        items = await fetch_all_records(
            self.client,
            self.endpoints.sales_order_item,
            filter=build_filter([eq("SalesOrder", so)]),
        )
        return [
            CandidateRecord(
                partition_code=code,
                sales_order=so,
                sales_order_item=line,
                salesforce_id=sfid,
                customer=text_field(header, "SoldToParty"),
            )
            for line, sfid in open_down_payment_lines(items)
        ]

    async def _resolve_accounting(self, cand: CandidateRecord) -> CandidateRecord:
        rows = await fetch_all_records(
            self.client,
            self.endpoints.accounting_document,
            filter=build_filter([
                eq("SalesDocument", cand.sales_order),
                eq("SalesDocumentItem", cand.sales_order_item),
            ]),
            select=ACCOUNTING_SELECT,
        )
        sel = select_offset_entry(rows, cand.sales_order, cand.sales_order_item)
        return replace(cand, accounting_document=sel.accounting_document, fiscal_year=sel.fiscal_year)

    async def process_partition(
        self, partition: Partition
    ) -> tuple[list[CandidateRecord], list[StageFailure]]:
        failures: list[StageFailure] = []
        headers = await self.fetch_headers(partition)

        pending: list[CandidateRecord] = []
        for r in await self.pools.sales_order_items.map(
            self._candidates_for_header, [(partition.code, h) for h in headers]
        ):
            if r.ok:
                pending.extend(r.value or [])
                continue
            so = text_field(r.item[1], "SalesOrder")
            logger.error(f"Error getting items for SalesOrder {so}: {r.error}")
            failures.append(StageFailure(partition.code, "items", f"SalesOrder {so}: {r.error}"))

        resolved: list[CandidateRecord] = []
        for r in await self.pools.accounting_documents.map(self._resolve_accounting, pending):
            if not r.ok:
                c = r.item
                logger.error(
                    f"Error getting accounting document for SalesOrder {c.sales_order}, "
                    f"Item {c.sales_order_item}: {r.error}"
                )
                failures.append(StageFailure(
                    partition.code, "accounting", f"SalesOrder {c.sales_order}/{c.sales_order_item}: {r.error}"
                ))
                continue
            if r.value is not None and r.value.is_complete:
                resolved.append(r.value)
            else:
                logger.debug(f"dropping incomplete candidate {r.item.dedup_key}")
        return resolved, failures

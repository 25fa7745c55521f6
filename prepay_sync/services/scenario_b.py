from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace
from typing import Any

from ..models.candidate import CandidateRecord
from ..models.config_models import Endpoints
from ..models.partition import SCENARIO_B, Partition
from ..models.processing_result import ScenarioResult, StageFailure
from ..remote.fetcher import JsonGetter, fetch_all_records
from ..remote.odata import build_filter, eq, text_field
from .pool import Pools

"""Stage executor for Scenario-B partitions.

Here the accounting document is discovered through cleared billing
documents instead of line-item down-payment status:

1. billing      cleared scenario-B billing documents of the partition
2. cross-ref    accounting / sales-order cross-reference per billing
                document (accounting pool); document, fiscal year, sales
                order and line are resolved directly
3. items        correlation ids per distinct sales order (sales-order-item
                pool), joined back by (sales order, line)

The customer stays unresolved on this path. The originating billing
document is kept on each candidate for traceability.
"""

__all__ = [
    "CLEARED",
    "ScenarioBExecutor",
    "skeletons_from_cross_reference",
    "salesforce_ids_by_line",
]

logger = logging.getLogger(__name__)

CLEARED = "C"
BILLING_SELECT = ("InvoiceClearingStatus", "BillingDocument", "YY1_PrepaymentScenario_BDH")
CROSS_REF_SELECT = (
    "AccountingDocument",
    "FiscalYear",
    "SalesDocument",
    "SalesDocumentItem",
    "AmountInCompanyCodeCurrency",
)
ITEM_SELECT = ("SalesOrderItem", "YY1_SALESFORCEID_I_SDI")


def skeletons_from_cross_reference(
    code: str, billing_document: str, rows: Iterable[dict[str, Any]]
) -> list[CandidateRecord]:
    return [
        CandidateRecord(
            partition_code=code,
            sales_order=text_field(r, "SalesDocument") or "",
            sales_order_item=text_field(r, "SalesDocumentItem") or "",
            accounting_document=text_field(r, "AccountingDocument"),
            fiscal_year=text_field(r, "FiscalYear"),
            billing_document=billing_document,
        )
        for r in rows
        if text_field(r, "SalesDocument")
    ]


def salesforce_ids_by_line(items: Iterable[dict[str, Any]]) -> dict[str, str]:
    result: dict[str, str] = {}
    for it in items:
        line = text_field(it, "SalesOrderItem")
        sfid = text_field(it, "YY1_SALESFORCEID_I_SDI")
        if line and sfid:
            result[line] = sfid
    return result


class ScenarioBExecutor:
    def __init__(self, client: JsonGetter, endpoints: Endpoints, pools: Pools) -> None:
        self.client = client
        self.endpoints = endpoints
        self.pools = pools

    async def run(self, partitions: Sequence[Partition]) -> ScenarioResult:
        logger.info(f"Processing {len(partitions)} company codes with Scenario B")
        candidates: list[CandidateRecord] = []
        completed: list[str] = []
        failures: list[StageFailure] = []
        for partition in partitions:
            logger.info(f"Processing Scenario B for CompanyCode: {partition.code}")
            try:
                found, unit_failures = await self.process_partition(partition)
            except Exception as e:
                logger.error(f"Error processing Scenario B for CompanyCode {partition.code}: {e}")
                failures.append(StageFailure(partition.code, "billing", str(e)))
                continue
            failures.extend(unit_failures)
            candidates.extend(found)
            completed.append(partition.code)
            logger.info(f"Processed {len(found)} records for CompanyCode: {partition.code}")
        logger.info(f"Total Scenario B results: {len(candidates)}")
        return ScenarioResult(candidates=candidates, completed_partitions=completed, failures=failures)

    async def fetch_billing_documents(self, partition: Partition) -> list[str]:
        rows = await fetch_all_records(
            self.client,
            self.endpoints.billing_document,
            filter=build_filter([
                eq("SalesOrganization", partition.code),
                eq("YY1_PrepaymentScenario_BDH", SCENARIO_B),
                eq("InvoiceClearingStatus", CLEARED),
            ]),
            select=BILLING_SELECT,
        )
        docs = [d for d in (text_field(r, "BillingDocument") for r in rows) if d]
        logger.info(f"Found {len(docs)} billing documents for CompanyCode: {partition.code}")
        return docs

    async def _cross_reference(self, work: tuple[str, str]) -> list[CandidateRecord]:
        code, billing_document = work
        rows = await fetch_all_records(
            self.client,
            self.endpoints.billing_sales_order,
            filter=build_filter([eq("ReferenceDocument", billing_document)]),
            select=CROSS_REF_SELECT,
        )
        return skeletons_from_cross_reference(code, billing_document, rows)

    async def _items(self, sales_order: str) -> dict[str, str]:
        items = await fetch_all_records(
            self.client,
            self.endpoints.sales_order_item,
            filter=build_filter([eq("SalesOrder", sales_order)]),
            select=ITEM_SELECT,
        )
        return salesforce_ids_by_line(items)

    async def process_partition(
        self, partition: Partition
    ) -> tuple[list[CandidateRecord], list[StageFailure]]:
        failures: list[StageFailure] = []
        docs = await self.fetch_billing_documents(partition)

        skeletons: list[CandidateRecord] = []
        for r in await self.pools.accounting_documents.map(
            self._cross_reference, [(partition.code, d) for d in docs]
        ):
            if r.ok:
                skeletons.extend(r.value or [])
                continue
            logger.error(
                f"Error processing BillingDocument {r.item[1]} for CompanyCode {partition.code}: {r.error}"
            )
            failures.append(StageFailure(partition.code, "cross-ref", f"BillingDocument {r.item[1]}: {r.error}"))

        sales_orders = list(dict.fromkeys(s.sales_order for s in skeletons))
        sfids: dict[str, dict[str, str]] = {}
        for r in await self.pools.sales_order_items.map(self._items, sales_orders):
            if r.ok:
                sfids[r.item] = r.value or {}
                continue
            logger.error(f"Error getting items for SalesOrder {r.item}: {r.error}")
            failures.append(StageFailure(partition.code, "items", f"SalesOrder {r.item}: {r.error}"))

        joined = [
            replace(s, salesforce_id=sfids.get(s.sales_order, {}).get(s.sales_order_item))
            for s in skeletons
        ]
        complete = [c for c in joined if c.is_complete]
        if len(complete) != len(joined):
            logger.debug(f"dropped {len(joined) - len(complete)} incomplete Scenario B candidates")
        return complete, failures

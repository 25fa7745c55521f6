from __future__ import annotations

import json
import logging
import traceback
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from ..logging.error_log import ErrorLogBuffer
from ..models.candidate import ExtractRow
from ..models.error_record import ErrorRecord

"""Submission dispatcher.

Replays extract rows to the automation endpoint one after another, in file
order. Each POST carries its own retry policy (see ``remote.retry``); a row
that still fails is logged with full diagnostics and recorded in the JSON
Lines error log, and the next row is attempted.
"""

__all__ = [
    "DispatchResult",
    "SubmissionDispatcher",
    "build_payload",
    "describe_error",
]

logger = logging.getLogger(__name__)

BODY_EXCERPT = 2000


class JsonPoster(Protocol):
    async def post_json(self, url: str, payload: dict[str, Any]) -> httpx.Response: ...


@dataclass(frozen=True)
class DispatchResult:
    total: int
    succeeded: int

    @property
    def failed(self) -> int:
        return self.total - self.succeeded


def build_payload(row: ExtractRow) -> dict[str, Any]:
    return {
        "Accountingdocument": row.accounting_document,
        "SFID_I": row.salesforce_id,
        "Customer": row.customer,
        "SalesDocument": row.sales_order,
        "SalesDocumentItem": row.sales_order_item,
        "Companycode": row.company_code,
        "Fiscalyear": row.fiscal_year,
    }


def describe_error(err: BaseException, url: str, payload: dict[str, Any]) -> dict[str, Any]:
    """Diagnostic snapshot of a failed submission (request, response, stack)."""
    info: dict[str, Any] = {
        "url": url,
        "requestBody": payload,
        "name": type(err).__name__,
        "message": str(err),
        "stack": "".join(traceback.format_exception(type(err), err, err.__traceback__)),
    }
    if isinstance(err, httpx.HTTPStatusError):
        response = err.response
        info["response"] = {
            "status": response.status_code,
            "statusText": response.reason_phrase,
            "data": response.text[:BODY_EXCERPT],
            "headers": dict(response.headers),
        }
    return info


class SubmissionDispatcher:
    def __init__(self, client: JsonPoster, url: str, error_log: ErrorLogBuffer | None = None) -> None:
        self.client = client
        self.url = url
        self.error_log = error_log

    async def dispatch(self, rows: Iterable[ExtractRow], *, file_name: str = "") -> DispatchResult:
        total = 0
        succeeded = 0
        for row in rows:
            total += 1
            payload = build_payload(row)
            try:
                resp = await self.client.post_json(self.url, payload)
            except Exception as err:
                info = describe_error(err, self.url, payload)
                logger.error(
                    f"Error Posting {row.accounting_document}/{row.company_code} "
                    f"{json.dumps(info, ensure_ascii=False, default=str)}"
                )
                self._record(row, file_name, err)
                continue
            succeeded += 1
            logger.info(f"Posted {row.accounting_document} for {row.company_code}: {resp.status_code}")
        return DispatchResult(total=total, succeeded=succeeded)

    def _record(self, row: ExtractRow, file_name: str, err: Exception) -> None:
        if self.error_log is None:
            return
        status = err.response.status_code if isinstance(err, httpx.HTTPStatusError) else None
        if status is not None:
            error_type = "HTTP_STATUS"
        elif isinstance(err, httpx.TransportError):
            error_type = "TRANSPORT_ERROR"
        else:
            error_type = "UNEXPECTED_ERROR"
        self.error_log.append(ErrorRecord.create(
            partition=row.company_code or "",
            file=file_name,
            accounting_document=row.accounting_document,
            error_type=error_type,
            message=str(err),
            status=status,
        ))

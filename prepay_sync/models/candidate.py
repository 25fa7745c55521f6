from __future__ import annotations

from dataclasses import asdict, dataclass, fields

"""CandidateRecord and ExtractRow models.

CandidateRecord is the in-flight reconciliation unit produced by the stage
executors. Once the accounting document and fiscal year are known it is
flattened into an ExtractRow, the seven-field shape used both on disk and on
the wire.
"""

__all__ = [
    "CandidateRecord",
    "ExtractRow",
    "EXTRACT_HEADER",
]

# 列順は固定 (CSV ヘッダ / 解析位置の両方で使用)
EXTRACT_HEADER: tuple[str, ...] = (
    "SalesOrder",
    "SalesOrderItem",
    "YY1_SALESFORCEID_I_SDI",
    "Customer",
    "AccountingDocument",
    "CompanyCode",
    "FiscalYear",
)


@dataclass(frozen=True)
class ExtractRow:
    """Flattened, order-stable projection of a complete CandidateRecord."""
    sales_order: str | None
    sales_order_item: str | None
    salesforce_id: str | None
    customer: str | None
    accounting_document: str | None
    company_code: str | None
    fiscal_year: str | None

    def values(self) -> list[str | None]:
        return [getattr(self, f.name) for f in fields(self)]

    def to_line(self) -> str:
        # NOTE: 区切り文字のエスケープは行わない (下流の既存フォーマット互換)
        return ",".join("" if v is None else str(v) for v in self.values())

    @classmethod
    def from_line(cls, line: str) -> ExtractRow:
        """Split one data line positionally; missing trailing fields become None."""
        parts: list[str | None] = list(line.split(","))
        width = len(EXTRACT_HEADER)
        parts = (parts + [None] * width)[:width]
        return cls(*parts)


@dataclass(frozen=True)
class CandidateRecord:
    """Reconciliation unit moving through the stage executors.

    ``billing_document`` is only set on the Scenario-B path and is kept for
    traceability; it is not part of the extract.
    """
    partition_code: str
    sales_order: str
    sales_order_item: str
    salesforce_id: str | None = None
    customer: str | None = None
    accounting_document: str | None = None
    fiscal_year: str | None = None
    billing_document: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.accounting_document) and bool(self.fiscal_year)

    @property
    def dedup_key(self) -> tuple[str, str, str]:
        return (self.partition_code, self.sales_order, self.sales_order_item)

    def to_extract_row(self) -> ExtractRow:
        return ExtractRow(
            sales_order=self.sales_order,
            sales_order_item=self.sales_order_item,
            salesforce_id=self.salesforce_id,
            customer=self.customer,
            accounting_document=self.accounting_document,
            company_code=self.partition_code,
            fiscal_year=self.fiscal_year,
        )

    def to_dict(self) -> dict[str, str | None]:
        return asdict(self)

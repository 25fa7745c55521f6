# Shared pytest fixtures
from __future__ import annotations

import json
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pandas as pd
import pytest

from prepay_sync.logging.init import reset_logging

HOST = "https://erp.example.com"
SUBMIT_URL = "https://automation.example.com/submit"

PATHS = {
    "sales_order_header": "/odata/SalesOrderHeader",
    "sales_order_item": "/odata/SalesOrderItem",
    "accounting_document": "/odata/AccountingDocument",
    "flag": "/odata/Flag",
    "billing_document": "/odata/BillingDocument",
    "billing_sales_order": "/odata/BillingSalesOrder",
}


@pytest.fixture(autouse=True)
def _clean_state(monkeypatch):
    for var in ("PREPAY_HOSTNAME", "PREPAY_USERNAME", "PREPAY_PASSWORD", "LOG_DIR"):
        monkeypatch.delenv(var, raising=False)
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "output").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return f"""env: test
credentials:
  test:
    hostname: {HOST}
    username: svc_user
    password: secret
endpoints:
  sales_order_header: {PATHS["sales_order_header"]}
  sales_order_item: {PATHS["sales_order_item"]}
  accounting_document: {PATHS["accounting_document"]}
  flag: {PATHS["flag"]}
  billing_document: {PATHS["billing_document"]}
  billing_sales_order: {PATHS["billing_sales_order"]}
  submission: {SUBMIT_URL}
output_folder: ./output
roster_path: ./CompanyCodeList.xlsx
exclude_sales_orders: ["999"]
retry:
  retries: 2
  backoff_seconds: 0
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config.yaml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def write_roster(path: Path, rows: list[dict[str, str]]) -> Path:
    """Roster workbook (first sheet, header row) built with pandas/openpyxl."""
    columns = ["CompanyCode", "InvoiceType", "Scenario", "ExcludeNA"]
    df = pd.DataFrame(rows, columns=columns).fillna("")
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="CompanyCodes")
    return path


@pytest.fixture()
def roster_factory(temp_workdir: Path) -> Callable[[list[dict[str, str]]], Path]:
    def _make(rows: list[dict[str, str]]) -> Path:
        return write_roster(temp_workdir / "CompanyCodeList.xlsx", rows)
    return _make


Route = list[dict[str, Any]] | dict[str, Any] | int | Callable[[httpx.Request], httpx.Response]


class FakeODataService:
    """In-memory stand-in for the remote services, served via httpx.MockTransport.

    Routes are keyed by ``(path, $filter)``; a route registered without a
    filter answers every filter on that path. A route value may be a record
    list (V4 envelope), a raw JSON document, a status code, or a callable.
    Unrouted GETs answer an empty page, unrouted POSTs answer 201.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str | None], Route] = {}
        self.requests: list[httpx.Request] = []

    def add(self, url: str, value: Route, *, filter: str | None = None) -> None:
        self.routes[(httpx.URL(url).path, filter)] = value

    def posted(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.method == "POST"]

    def gets(self, url: str) -> list[httpx.Request]:
        path = httpx.URL(url).path
        return [r for r in self.requests if r.method == "GET" and r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.url.path, request.url.params.get("$filter"))
        value = self.routes.get(key, self.routes.get((request.url.path, None)))
        if value is None:
            if request.method == "POST":
                return httpx.Response(201, json={})
            return httpx.Response(200, json={"value": []})
        if callable(value):
            return value(request)
        if isinstance(value, int):
            return httpx.Response(value, json={"error": {"message": f"status {value}"}})
        if isinstance(value, list):
            return httpx.Response(200, json={"value": value})
        return httpx.Response(200, json=value)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture()
def odata() -> FakeODataService:
    return FakeODataService()


@pytest.fixture()
def app_config(write_config: Path):
    from prepay_sync.config.loader import load_config
    return load_config(write_config)

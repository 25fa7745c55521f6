from __future__ import annotations

import os
from pathlib import Path

import httpx
import pytest

from prepay_sync.models.config_models import ReplaySettings
from prepay_sync.models.extract_file import ReplayStatus
from prepay_sync.models.partition import Partition
from prepay_sync.services.archive import parse_extract
from prepay_sync.services.dispatcher import SubmissionDispatcher
from prepay_sync.services.replay import ReplayManager

HEADER = "SalesOrder,SalesOrderItem,YY1_SALESFORCEID_I_SDI,Customer,AccountingDocument,CompanyCode,FiscalYear"
EINVOICE = Partition("1000", invoice_type="EInvoice")


class FakePoster:
    def __init__(self, fail_docs: set[str] | None = None) -> None:
        self.fail_docs = fail_docs or set()
        self.posted: list[dict] = []

    async def post_json(self, url: str, payload: dict) -> httpx.Response:
        self.posted.append(payload)
        if payload["Accountingdocument"] in self.fail_docs:
            request = httpx.Request("POST", url)
            response = httpx.Response(500, request=request)
            raise httpx.HTTPStatusError("500 Internal Server Error", request=request, response=response)
        return httpx.Response(201)


def _extract(output: Path, code: str, name: str, docs: list[str], mtime: float = 1_700_000_000.0) -> Path:
    d = output / code
    d.mkdir(parents=True, exist_ok=True)
    p = d / name
    rows = [f"5{i:02d},10,SF,C100,{doc},{code},2024" for i, doc in enumerate(docs)]
    p.write_text("\n".join([HEADER, *rows]), encoding="utf-8")
    os.utime(p, (mtime, mtime))
    return p


def _manager(output: Path, poster: FakePoster, settings: ReplaySettings | None = None) -> ReplayManager:
    return ReplayManager(output, SubmissionDispatcher(poster, "https://automation.example.com/submit"), settings)


def _archived(output: Path, code: str) -> list[Path]:
    d = output / code / "archive"
    return sorted(d.iterdir()) if d.exists() else []


@pytest.mark.asyncio()
async def test_partial_success_archives_whole_file_once(tmp_path: Path):
    _extract(tmp_path, "1000", "run1.csv", ["A1", "A2", "A3"])
    poster = FakePoster(fail_docs={"A2", "A3"})
    manager = _manager(tmp_path, poster)

    result = await manager.run([EINVOICE])
    outcome = result.outcomes[0]
    assert outcome.status is ReplayStatus.ARCHIVED
    assert (outcome.rows, outcome.succeeded, outcome.failed) == (3, 1, 2)
    archived = _archived(tmp_path, "1000")
    assert len(archived) == 1
    assert archived[0].name.startswith("run1.") and archived[0].suffix == ".csv"
    assert len(parse_extract(archived[0])) == 3

    # 再実行: 最新ファイル無し -> no-op
    again = await manager.run([EINVOICE])
    assert again.outcomes[0].status is ReplayStatus.NO_FILE
    assert len(poster.posted) == 3
    assert len(_archived(tmp_path, "1000")) == 1


@pytest.mark.asyncio()
async def test_all_rows_failing_retains_file(tmp_path: Path):
    active = _extract(tmp_path, "1000", "run1.csv", ["A1", "A2"])
    manager = _manager(tmp_path, FakePoster(fail_docs={"A1", "A2"}))
    result = await manager.run([EINVOICE])
    assert result.outcomes[0].status is ReplayStatus.RETAINED
    assert result.failed_rows == 2
    assert active.exists()
    assert _archived(tmp_path, "1000") == []


@pytest.mark.asyncio()
async def test_empty_file_retained_until_superseded(tmp_path: Path):
    empty = _extract(tmp_path, "1000", "empty.csv", [], mtime=1_700_000_000.0)
    poster = FakePoster()
    manager = _manager(tmp_path, poster)

    for _ in range(2):
        result = await manager.run([EINVOICE])
        assert result.outcomes[0].status is ReplayStatus.EMPTY
        assert empty.exists()
    assert poster.posted == []

    _extract(tmp_path, "1000", "newer.csv", ["A1"], mtime=1_700_000_600.0)
    result = await manager.run([EINVOICE])
    assert result.outcomes[0].status is ReplayStatus.ARCHIVED
    names = [p.name for p in _archived(tmp_path, "1000")]
    assert "empty.1700000000000.csv" in names
    assert len(names) == 2


@pytest.mark.asyncio()
async def test_newest_file_is_active_and_older_archived_with_own_mtime(tmp_path: Path):
    _extract(tmp_path, "1000", "t1.csv", ["OLD1"], mtime=1_700_000_001.0)
    _extract(tmp_path, "1000", "t2.csv", ["OLD2"], mtime=1_700_000_002.0)
    _extract(tmp_path, "1000", "t3.csv", ["NEW"], mtime=1_700_000_003.0)
    poster = FakePoster()

    result = await _manager(tmp_path, poster).run([EINVOICE])
    assert result.outcomes[0].file_name == "t3.csv"
    assert [p["Accountingdocument"] for p in poster.posted] == ["NEW"]
    names = [p.name for p in _archived(tmp_path, "1000")]
    assert "t1.1700000001000.csv" in names
    assert "t2.1700000002000.csv" in names
    assert list((tmp_path / "1000").glob("*.csv")) == []


@pytest.mark.asyncio()
async def test_unreadable_file_archived_as_poison(tmp_path: Path):
    d = tmp_path / "1000"
    d.mkdir()
    (d / "bad.csv").write_bytes(b"\xff\xfe\x00\x01")
    poster = FakePoster()
    result = await _manager(tmp_path, poster).run([EINVOICE, Partition("2000", invoice_type="EInvoice")])
    assert [o.status for o in result.outcomes] == [ReplayStatus.POISON, ReplayStatus.NO_FILE]
    assert len(_archived(tmp_path, "1000")) == 1
    assert poster.posted == []


@pytest.mark.asyncio()
async def test_ineligible_partitions_skipped(tmp_path: Path):
    paper = _extract(tmp_path, "3000", "a.csv", ["P1"])
    scen_b = _extract(tmp_path, "4000", "b.csv", ["B1"])
    poster = FakePoster()
    result = await _manager(tmp_path, poster).run([
        Partition("3000", invoice_type="Paper"),
        Partition("4000", invoice_type="EInvoice", scenario="B"),
    ])
    assert result.count(ReplayStatus.SKIPPED) == 2
    assert poster.posted == []
    assert paper.exists() and scen_b.exists()


@pytest.mark.asyncio()
async def test_replay_settings_override_eligibility(tmp_path: Path):
    _extract(tmp_path, "3000", "a.csv", ["P1"])
    settings = ReplaySettings(invoice_types=frozenset({"Paper"}), skip_scenarios=frozenset())
    poster = FakePoster()
    result = await _manager(tmp_path, poster, settings).run([Partition("3000", invoice_type="Paper")])
    assert result.outcomes[0].status is ReplayStatus.ARCHIVED
    assert len(poster.posted) == 1


@pytest.mark.asyncio()
async def test_unexpected_error_is_isolated(tmp_path: Path, monkeypatch):
    _extract(tmp_path, "1000", "a.csv", ["A1"])
    _extract(tmp_path, "2000", "b.csv", ["B1"])
    manager = _manager(tmp_path, FakePoster())
    original = manager.dispatcher.dispatch

    async def flaky_dispatch(rows, *, file_name=""):
        if file_name == "a.csv":
            raise RuntimeError("disk on fire")
        return await original(rows, file_name=file_name)

    monkeypatch.setattr(manager.dispatcher, "dispatch", flaky_dispatch)
    result = await manager.run([EINVOICE, Partition("2000", invoice_type="EInvoice")])
    assert [o.status for o in result.outcomes] == [ReplayStatus.FAILED, ReplayStatus.ARCHIVED]
    assert result.outcomes[0].error == "disk on fire"

from __future__ import annotations

from pathlib import Path

import pytest

from prepay_sync.config.loader import ConfigError, load_config
from prepay_sync.models.config_models import PoolLimits, RetryPolicy


def test_load_config_resolves_endpoints_and_paths(write_config: Path, temp_workdir: Path):
    cfg = load_config(write_config)
    assert cfg.env == "test"
    assert cfg.credentials.username == "svc_user"
    assert cfg.endpoints.flag == "https://erp.example.com/odata/Flag"
    # 絶対 URL はそのまま
    assert cfg.endpoints.submission == "https://automation.example.com/submit"
    assert Path(cfg.output_folder) == (temp_workdir / "output").resolve()
    assert Path(cfg.roster_path) == (temp_workdir / "CompanyCodeList.xlsx").resolve()
    assert cfg.exclude_sales_orders == frozenset({"999"})


def test_load_config_defaults(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.concurrency == PoolLimits(12, 12, 12)
    assert cfg.retry == RetryPolicy(retries=2, backoff_seconds=0)
    assert cfg.retry.max_attempts == 3
    assert cfg.http.timeout_seconds == 30.0
    assert cfg.replay.invoice_types == frozenset({"EInvoice"})
    assert cfg.replay.skip_scenarios == frozenset({"B"})


def test_env_overrides_credentials(write_config: Path, monkeypatch):
    monkeypatch.setenv("PREPAY_HOSTNAME", "https://other.example.com")
    monkeypatch.setenv("PREPAY_PASSWORD", "from-env")
    cfg = load_config(write_config)
    assert cfg.credentials.password == "from-env"
    assert cfg.endpoints.sales_order_header == "https://other.example.com/odata/SalesOrderHeader"


def test_missing_file_raises(temp_workdir: Path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(temp_workdir / "nope.yaml")


def test_invalid_yaml_raises(temp_workdir: Path):
    p = temp_workdir / "bad.yaml"
    p.write_text("env: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(p)


def test_schema_rejects_unknown_key(write_config: Path):
    write_config.write_text(write_config.read_text(encoding="utf-8") + "unexpected: 1\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="validation failed"):
        load_config(write_config)


def test_schema_requires_all_endpoints(write_config: Path):
    text = write_config.read_text(encoding="utf-8")
    text = "\n".join(line for line in text.splitlines() if "billing_sales_order" not in line) + "\n"
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError, match="billing_sales_order"):
        load_config(write_config)


def test_missing_credentials_for_env(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace("env: test", "env: prod")
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError, match="missing credentials for env 'prod'"):
        load_config(write_config)


def test_concurrency_below_one_rejected(write_config: Path):
    text = write_config.read_text(encoding="utf-8") + "concurrency:\n  flags: 0\n"
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(write_config)

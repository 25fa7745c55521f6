from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    AppConfig,
    Credentials,
    Endpoints,
    HttpSettings,
    PoolLimits,
    ReplaySettings,
    RetryPolicy,
)

"""Config loader.

Responsibilities:
- Load the YAML config file (default ``config.yaml``)
- Validate it against the bundled ``config_schema.json``
- Select credentials for ``env`` and apply environment overrides
- Resolve endpoint paths against the hostname and relative paths against
  the config file's directory
"""

__all__ = [
    "ConfigError",
    "load_config",
    "SCHEMA_PATH",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")

# 環境変数での上書き (.env は CLI 側で先に読み込み済み)
ENV_OVERRIDES = {
    "hostname": "PREPAY_HOSTNAME",
    "username": "PREPAY_USERNAME",
    "password": "PREPAY_PASSWORD",
}


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: If the schema file is missing or invalid, or the config
            data fails validation (missing required keys, wrong types,
            unknown keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _resolve_credentials(env: str, raw: dict[str, Any]) -> Credentials:
    creds = dict(raw.get(env.lower()) or raw.get(env) or {})
    for key, var in ENV_OVERRIDES.items():
        if os.getenv(var):
            creds[key] = os.environ[var]
    missing = [k for k in ("hostname", "username", "password") if not creds.get(k)]
    if missing:
        raise ConfigError(f"missing credentials for env '{env}': {', '.join(missing)}")
    return Credentials(
        hostname=str(creds["hostname"]),
        username=str(creds["username"]),
        password=str(creds["password"]),
    )


def _join_url(hostname: str, path: str) -> str:
    if path.startswith(("http://", "https://")):
        return path
    return hostname + path


def _resolve_path(base: Path, value: str | None, default: str) -> str:
    p = Path(value) if value else Path(default)
    if not p.is_absolute():
        p = base / p
    return str(p)


def load_config(path: Path) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    env = str(data["env"])
    creds = _resolve_credentials(env, data["credentials"])
    ep = data["endpoints"]
    endpoints = Endpoints(**{k: _join_url(creds.hostname, v) for k, v in ep.items()})

    base = path.resolve().parent
    conc = data.get("concurrency", {})
    http = data.get("http", {})
    retry = data.get("retry", {})
    replay = data.get("replay", {})
    defaults = ReplaySettings()
    return AppConfig(
        env=env,
        credentials=creds,
        endpoints=endpoints,
        output_folder=_resolve_path(base, data.get("output_folder"), "output"),
        roster_path=_resolve_path(base, data.get("roster_path"), "CompanyCodeList.xlsx"),
        exclude_sales_orders=frozenset(str(so) for so in data.get("exclude_sales_orders", [])),
        concurrency=PoolLimits(**conc),
        http=HttpSettings(**http),
        retry=RetryPolicy(**retry),
        replay=ReplaySettings(
            invoice_types=frozenset(replay.get("invoice_types", defaults.invoice_types)),
            skip_scenarios=frozenset(replay.get("skip_scenarios", defaults.skip_scenarios)),
        ),
    )

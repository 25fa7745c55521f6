from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the prepayment reconciliation tool.

These are the immutable settings handed to the pipeline after
``prepay_sync.config.loader.load_config`` has validated the YAML file.
Everything here is resolved once at startup and never mutated during a run.
"""

__all__ = [
    "Credentials",
    "Endpoints",
    "PoolLimits",
    "HttpSettings",
    "RetryPolicy",
    "ReplaySettings",
    "AppConfig",
]


@dataclass(frozen=True)
class Credentials:
    """Basic-auth credentials for the selected environment."""
    hostname: str
    username: str
    password: str


@dataclass(frozen=True)
class Endpoints:
    """Fully resolved endpoint URLs (hostname + configured path)."""
    sales_order_header: str
    sales_order_item: str
    accounting_document: str
    flag: str
    billing_document: str
    billing_sales_order: str
    submission: str


@dataclass(frozen=True)
class PoolLimits:
    """Concurrency ceiling per bounded pool."""
    sales_order_items: int = 12
    accounting_documents: int = 12
    flags: int = 12


@dataclass(frozen=True)
class HttpSettings:
    timeout_seconds: float = 30.0
    page_size: int = 500
    max_connections: int = 40


@dataclass(frozen=True)
class RetryPolicy:
    """Linear retry policy shared by fetches and submissions.

    ``retries`` counts additional attempts after the first one; the wait before
    attempt ``n + 1`` is ``backoff_seconds * n``.
    """
    retries: int = 2
    backoff_seconds: float = 1.5

    @property
    def max_attempts(self) -> int:
        return self.retries + 1


@dataclass(frozen=True)
class ReplaySettings:
    """Which partitions take part in the replay (submission) phase."""
    invoice_types: frozenset[str] = frozenset({"EInvoice"})
    skip_scenarios: frozenset[str] = frozenset({"B"})


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object for one run."""
    env: str
    credentials: Credentials
    endpoints: Endpoints
    output_folder: str
    roster_path: str
    exclude_sales_orders: frozenset[str] = frozenset()
    concurrency: PoolLimits = field(default_factory=PoolLimits)
    http: HttpSettings = field(default_factory=HttpSettings)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    replay: ReplaySettings = field(default_factory=ReplaySettings)

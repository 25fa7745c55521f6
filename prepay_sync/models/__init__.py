"""Domain models for the prepayment reconciliation tool.

This package contains the configuration, partition, candidate/extract and
result dataclasses shared by the services.
"""

from .candidate import EXTRACT_HEADER, CandidateRecord, ExtractRow
from .config_models import (
    AppConfig,
    Credentials,
    Endpoints,
    HttpSettings,
    PoolLimits,
    ReplaySettings,
    RetryPolicy,
)
from .extract_file import ExtractFile, ReplayStatus
from .partition import Partition

__all__ = [
    # Configuration models
    "AppConfig",
    "Credentials",
    "Endpoints",
    "HttpSettings",
    "PoolLimits",
    "ReplaySettings",
    "RetryPolicy",
    # Processing models
    "CandidateRecord",
    "ExtractRow",
    "EXTRACT_HEADER",
    "ExtractFile",
    "ReplayStatus",
    "Partition",
]

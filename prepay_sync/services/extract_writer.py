from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from ..models.candidate import EXTRACT_HEADER, CandidateRecord, ExtractRow
from .merge import dedupe_candidates

"""Extract writer: one delimited file per partition.

``<output>/<code>/PrePayment_Collection_Invoice_A_<code>_<YYYYMMDD_HHMM>.csv``

The header names the seven canonical fields; data lines are plain
comma-joined values with no quoting. A file with zero data rows is written
on purpose: it says "nothing qualified this run".
"""

__all__ = [
    "FILE_PREFIX",
    "extract_file_name",
    "render_extract",
    "write_extract",
    "write_extracts",
]

logger = logging.getLogger(__name__)

FILE_PREFIX = "PrePayment_Collection_Invoice_A_"
RUN_STAMP_FMT = "%Y%m%d_%H%M"


def extract_file_name(code: str, now: datetime) -> str:
    return f"{FILE_PREFIX}{code}_{now.strftime(RUN_STAMP_FMT)}.csv"


def render_extract(rows: Iterable[ExtractRow]) -> str:
    return "\n".join([",".join(EXTRACT_HEADER), *(r.to_line() for r in rows)])


def write_extract(output_folder: Path, code: str, rows: list[ExtractRow], now: datetime) -> Path:
    directory = output_folder / code
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / extract_file_name(code, now)
    path.write_text(render_extract(rows), encoding="utf-8")
    logger.info(f"Created {path} with {len(rows)} records")
    return path


def write_extracts(
    output_folder: Path,
    candidates: Iterable[CandidateRecord],
    partition_codes: Iterable[str],
    now: datetime | None = None,
) -> dict[str, Path]:
    """Write one extract per partition code (empty ones included).

    Candidates are deduplicated by (partition, sales order, line) first.
    Returns ``{code: written path}``.
    """
    now = now or datetime.now()
    grouped: dict[str, list[ExtractRow]] = {code: [] for code in partition_codes}
    for c in dedupe_candidates(candidates):
        grouped.setdefault(c.partition_code, []).append(c.to_extract_row())
    return {code: write_extract(output_folder, code, rows, now) for code, rows in grouped.items()}

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

from ..logging.error_log import ErrorLogBuffer
from ..models.candidate import CandidateRecord
from ..models.config_models import AppConfig
from ..models.partition import Partition
from ..models.processing_result import ExtractResult, ReplayResult
from ..remote.client import RemoteClient
from .dispatcher import SubmissionDispatcher
from .extract_writer import write_extracts
from .flag_filter import FlagFilter
from .merge import merge_candidates
from .pool import Pools
from .replay import ReplayManager
from .scenario_a import ScenarioAExecutor
from .scenario_b import ScenarioBExecutor

"""Service orchestration for the two phases of a run.

- ``run_extract``: stage executors -> merger -> flag filter -> extract writer
- ``run_replay``: pre-sweep -> newest extract per partition -> dispatcher ->
  archive gate

Scenario-A and Scenario-B partitions are processed as two concurrent
sequences sharing the same pools; inside each sequence partitions run one
after another.
"""

__all__ = [
    "DUMP_FILES",
    "dump_results",
    "run_extract",
    "run_replay",
]

logger = logging.getLogger(__name__)

DUMP_FILES = {
    "scenario_a": "normalScenarioResults.json",
    "scenario_b": "scenarioBResults.json",
    "combined": "combinedFlagResults.json",
}


def _write_json(path: Path, candidates: Sequence[CandidateRecord]) -> None:
    path.write_text(
        json.dumps([c.to_dict() for c in candidates], indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    logger.info(f"Saved {path.name} with {len(candidates)} records")


def dump_results(
    dump_dir: Path,
    scenario_a: Sequence[CandidateRecord],
    scenario_b: Sequence[CandidateRecord],
    combined: Sequence[CandidateRecord],
) -> None:
    """Write debug snapshots of each candidate set as JSON."""
    dump_dir.mkdir(parents=True, exist_ok=True)
    _write_json(dump_dir / DUMP_FILES["scenario_a"], scenario_a)
    _write_json(dump_dir / DUMP_FILES["scenario_b"], scenario_b)
    _write_json(dump_dir / DUMP_FILES["combined"], combined)


async def run_extract(
    config: AppConfig,
    partitions: Sequence[Partition],
    client: RemoteClient,
    pools: Pools | None = None,
    *,
    now: datetime | None = None,
    dump_dir: Path | None = None,
) -> ExtractResult:
    start = datetime.now(UTC)
    pools = pools or Pools.from_limits(config.concurrency)

    normal = [p for p in partitions if not p.is_scenario_b]
    scenario_b = [p for p in partitions if p.is_scenario_b]
    logger.info(f"Found {len(scenario_b)} company codes with Scenario B")
    logger.info(f"Found {len(normal)} company codes with normal scenarios")

    a_exec = ScenarioAExecutor(client, config.endpoints, pools, config.exclude_sales_orders)
    b_exec = ScenarioBExecutor(client, config.endpoints, pools)
    a_result, b_result = await asyncio.gather(a_exec.run(normal), b_exec.run(scenario_b))

    merged = merge_candidates(a_result.candidates, b_result.candidates)
    flag_filter = FlagFilter(client, config.endpoints.flag, pools.flags, {p.code: p for p in partitions})
    survivors = await flag_filter.apply(merged)

    if dump_dir is not None:
        dump_results(dump_dir, a_result.candidates, b_result.candidates, survivors)

    completed = [*a_result.completed_partitions, *b_result.completed_partitions]
    written = write_extracts(Path(config.output_folder), survivors, completed, now=now)

    return ExtractResult(
        scenario_a=a_result,
        scenario_b=b_result,
        merged_count=len(merged),
        survivor_count=len(survivors),
        written_files=written,
        start_time=start,
        end_time=datetime.now(UTC),
    )


async def run_replay(
    config: AppConfig,
    partitions: Sequence[Partition],
    client: RemoteClient,
    error_log: ErrorLogBuffer | None = None,
) -> ReplayResult:
    dispatcher = SubmissionDispatcher(client, config.endpoints.submission, error_log)
    manager = ReplayManager(Path(config.output_folder), dispatcher, config.replay)
    logger.info(f"Output folder: {config.output_folder}")
    return await manager.run(partitions)

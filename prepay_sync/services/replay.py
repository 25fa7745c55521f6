from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path

from ..models.config_models import ReplaySettings
from ..models.extract_file import ReplayStatus
from ..models.partition import Partition
from ..models.processing_result import PartitionOutcome, ReplayResult
from .archive import (
    ExtractParseError,
    archive_all_but_newest,
    archive_file,
    newest_extract,
    parse_extract,
    sweep_archive_all,
)
from .dispatcher import SubmissionDispatcher
from .progress import ProgressTracker

"""Archive / retry manager.

Once per run:

1. pre-sweep   every partition folder keeps only its newest extract
2. per partition, strictly sequential:
   select   newest extract (none -> skip with warning)
   parse    unreadable -> archive as poison, next partition
   empty    zero rows -> keep in place for inspection
   dispatch rows submitted in file order
   archive  only if at least one row was submitted, else keep for retry

Archiving the active file is the only state change; re-running after a
successful archive finds no extract and is a no-op.
"""

__all__ = [
    "ReplayManager",
]

logger = logging.getLogger(__name__)


class ReplayManager:
    def __init__(
        self,
        output_folder: Path,
        dispatcher: SubmissionDispatcher,
        settings: ReplaySettings | None = None,
    ) -> None:
        self.output_folder = output_folder
        self.dispatcher = dispatcher
        self.settings = settings or ReplaySettings()

    async def replay_partition(self, partition: Partition) -> PartitionOutcome:
        code = partition.code
        if not partition.is_replay_eligible(self.settings.invoice_types, self.settings.skip_scenarios):
            logger.info(
                f"Skipping {code} due to InvoiceType/Scenario -> "
                f"InvoiceType={partition.invoice_type}, Scenario={partition.scenario}"
            )
            return PartitionOutcome(code, ReplayStatus.SKIPPED)

        logger.info(f"Processing CompanyCode: {code}")
        directory = self.output_folder / code
        active = newest_extract(directory)
        if active is None:
            logger.warning(f"No CSV found for {code} in {directory}")
            return PartitionOutcome(code, ReplayStatus.NO_FILE)

        # 最新以外は事前スイープ後に増えていても退避
        try:
            archive_all_but_newest(directory, keep=active.name)
        except OSError as e:
            logger.error(f"Archive older CSVs failed for {code}: {e}")

        try:
            rows = parse_extract(active.path)
        except ExtractParseError as e:
            logger.error(f"Parse failed for {active.path}: {e}")
            try:
                archive_file(active.path)
                logger.info(f"Archived unreadable CSV for {code}: {active.name}")
            except OSError as ae:
                logger.error(f"Failed to archive unreadable CSV for {code}: {ae}")
            return PartitionOutcome(code, ReplayStatus.POISON, active.name, error=str(e))
        logger.info(f"Parsed {len(rows)} records from {active.name}")

        if not rows:
            logger.warning(f"CSV for {code} has no items. Keeping it (no archive) for inspection.")
            return PartitionOutcome(code, ReplayStatus.EMPTY, active.name)

        result = await self.dispatcher.dispatch(rows, file_name=active.name)
        outcome = PartitionOutcome(
            code, ReplayStatus.RETAINED, active.name,
            rows=result.total, succeeded=result.succeeded, failed=result.failed,
        )
        if result.succeeded == 0:
            logger.warning(f"No successful posts for {code}. Keeping CSV (no archive) for investigation.")
            return outcome

        try:
            dest = archive_file(active.path)
        except OSError as e:
            logger.error(f"Failed to handle post-process archive for {code}: {e}")
            return replace(outcome, error=str(e))
        logger.info(f"Archived processed CSV for {code} (posted {result.succeeded} records) -> {dest.parent}")
        return replace(outcome, status=ReplayStatus.ARCHIVED)

    async def run(self, partitions: Sequence[Partition]) -> ReplayResult:
        start = datetime.now(UTC)
        sweep_archive_all(self.output_folder)

        outcomes: list[PartitionOutcome] = []
        with ProgressTracker(len(partitions)) as progress:
            for partition in partitions:
                progress.start(partition.code)
                try:
                    outcome = await self.replay_partition(partition)
                except Exception as e:
                    logger.exception(f"Replay failed for {partition.code}: {e}")
                    outcome = PartitionOutcome(partition.code, ReplayStatus.FAILED, error=str(e))
                outcomes.append(outcome)
                progress.finish(status=outcome.status.value)
        logger.info("All companies processed.")
        return ReplayResult(outcomes=outcomes, start_time=start, end_time=datetime.now(UTC))

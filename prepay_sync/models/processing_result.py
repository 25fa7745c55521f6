from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .candidate import CandidateRecord
from .extract_file import ReplayStatus

"""Processing result models for the extract and replay phases.

These aggregate per-partition outcomes into the numbers rendered on the
SUMMARY line and used for the CLI exit code.
"""


@dataclass(frozen=True)
class StageFailure:
    """A stage-level failure caught at the partition boundary."""
    partition_code: str
    stage: str
    message: str


@dataclass(frozen=True)
class ScenarioResult:
    """Candidates produced by one stage executor across its partitions."""
    candidates: list[CandidateRecord]
    completed_partitions: list[str]
    failures: list[StageFailure] = field(default_factory=list)


@dataclass(frozen=True)
class ExtractResult:
    """Aggregated result of the extract phase (fetch, merge, filter, write)."""
    scenario_a: ScenarioResult
    scenario_b: ScenarioResult
    merged_count: int
    survivor_count: int
    written_files: dict[str, Path]
    start_time: datetime
    end_time: datetime

    @property
    def failures(self) -> list[StageFailure]:
        return [*self.scenario_a.failures, *self.scenario_b.failures]

    @property
    def elapsed_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()


@dataclass(frozen=True)
class PartitionOutcome:
    """Replay outcome for one partition."""
    partition_code: str
    status: ReplayStatus
    file_name: str | None = None
    rows: int = 0
    succeeded: int = 0
    failed: int = 0
    error: str | None = None


@dataclass(frozen=True)
class ReplayResult:
    """Aggregated result of the replay phase (sweep, select, dispatch, archive)."""
    outcomes: list[PartitionOutcome]
    start_time: datetime
    end_time: datetime

    def count(self, status: ReplayStatus) -> int:
        return sum(1 for o in self.outcomes if o.status is status)

    @property
    def posted_rows(self) -> int:
        return sum(o.succeeded for o in self.outcomes)

    @property
    def failed_rows(self) -> int:
        return sum(o.failed for o in self.outcomes)

    @property
    def elapsed_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

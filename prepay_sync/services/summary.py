from __future__ import annotations

from ..models.extract_file import ReplayStatus
from ..models.processing_result import ExtractResult, ReplayResult

"""SUMMARY line rendering for both phases.

The returned strings carry no ``SUMMARY`` prefix; ``log_summary`` adds the
label. Formats::

    phase=extract partitions=3 failed_partitions=0 candidates=12 survivors=9 files=3 elapsed_sec=4.2
    phase=replay partitions=3 archived=2 retained=0 empty=1 poison=0 no_file=0 skipped=0 failed=0 posted=9 post_failed=0 elapsed_sec=1.5
"""


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.2f}".rstrip("0").rstrip(".")


def render_extract_summary(result: ExtractResult) -> str:
    failed_partitions = {
        f.partition_code for f in result.failures
    } - set(result.written_files)
    total = len(result.written_files) + len(failed_partitions)
    return (
        f"phase=extract partitions={total} "
        f"failed_partitions={len(failed_partitions)} "
        f"candidates={result.merged_count} "
        f"survivors={result.survivor_count} "
        f"files={len(result.written_files)} "
        f"elapsed_sec={_format_seconds(result.elapsed_seconds)}"
    )


def render_replay_summary(result: ReplayResult) -> str:
    counts = " ".join(f"{s.value}={result.count(s)}" for s in (
        ReplayStatus.ARCHIVED,
        ReplayStatus.RETAINED,
        ReplayStatus.EMPTY,
        ReplayStatus.POISON,
        ReplayStatus.NO_FILE,
        ReplayStatus.SKIPPED,
        ReplayStatus.FAILED,
    ))
    return (
        f"phase=replay partitions={len(result.outcomes)} {counts} "
        f"posted={result.posted_rows} "
        f"post_failed={result.failed_rows} "
        f"elapsed_sec={_format_seconds(result.elapsed_seconds)}"
    )

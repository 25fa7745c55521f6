from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

"""ExtractFile domain model and ReplayStatus enum.

An ExtractFile is one persisted CSV for one partition. At most one file per
partition folder is "current" (newest by modification time); everything that
has been superseded or fully processed lives in the ``archive`` subfolder.
"""

__all__ = [
    "ExtractFile",
    "ReplayStatus",
]


class ReplayStatus(Enum):
    """Outcome of the replay phase for one partition.

    - SKIPPED: partition not eligible for replay (invoice type / scenario)
    - NO_FILE: no extract file present in the partition folder
    - POISON: file could not be read, archived without dispatch
    - EMPTY: file had no data rows, kept in place for inspection
    - ARCHIVED: at least one row was submitted, file archived
    - RETAINED: no row was submitted, file kept for the next run
    - FAILED: unexpected error while handling the partition
    """
    SKIPPED = "skipped"
    NO_FILE = "no_file"
    POISON = "poison"
    EMPTY = "empty"
    ARCHIVED = "archived"
    RETAINED = "retained"
    FAILED = "failed"


@dataclass(frozen=True)
class ExtractFile:
    """A CSV extract on disk with its modification timestamp."""
    path: Path
    mtime: float  # seconds since epoch (os.stat st_mtime)

    @classmethod
    def from_path(cls, path: Path) -> ExtractFile:
        return cls(path=path, mtime=path.stat().st_mtime)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def mtime_ms(self) -> int:
        return int(self.mtime * 1000)

    @property
    def modified_at(self) -> datetime:
        return datetime.fromtimestamp(self.mtime, UTC)

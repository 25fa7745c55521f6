from __future__ import annotations

import logging
import os
import shutil
import time
from pathlib import Path

from ..models.candidate import ExtractRow
from ..models.extract_file import ExtractFile

"""Extract file lifecycle on disk.

Layout::

    <output>/<code>/                       current extract files
    <output>/<code>/archive/               retired files, <stem>.<epoch ms>.csv

The file system is the only record of what was produced and consumed;
nothing is kept in memory across runs. Files are moved, never deleted.
"""

__all__ = [
    "ARCHIVE_DIR_NAME",
    "ExtractParseError",
    "archive_all_but_newest",
    "archive_file",
    "archived_name",
    "is_extract_file",
    "list_extract_files",
    "move_file_safe",
    "newest_extract",
    "parse_extract",
    "sweep_archive_all",
]

logger = logging.getLogger(__name__)

ARCHIVE_DIR_NAME = "archive"
LOCK_FILE_PREFIX = "~$"


class ExtractParseError(Exception):
    """The extract file could not be read at all."""


def is_extract_file(path: Path) -> bool:
    return (
        path.is_file()
        and path.suffix.lower() == ".csv"
        and not path.name.startswith(LOCK_FILE_PREFIX)
    )


def list_extract_files(directory: Path) -> list[ExtractFile]:
    """Extract files directly inside ``directory``, newest first."""
    if not directory.is_dir():
        return []
    files = [ExtractFile.from_path(p) for p in directory.iterdir() if is_extract_file(p)]
    return sorted(files, key=lambda f: f.mtime, reverse=True)


def newest_extract(directory: Path) -> ExtractFile | None:
    files = list_extract_files(directory)
    return files[0] if files else None


def move_file_safe(src: Path, dest: Path) -> Path:
    """Atomic rename, falling back to copy + delete (other volume, locked file)."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        os.rename(src, dest)
    except OSError as e:
        logger.debug(f"rename {src} -> {dest} failed ({e}), copying instead")
        shutil.copyfile(src, dest)
        os.unlink(src)
    return dest


def archived_name(path: Path, stamp_ms: int) -> str:
    return f"{path.stem}.{stamp_ms}.csv"


def archive_file(path: Path, stamp_ms: int | None = None) -> Path:
    """Move ``path`` into the sibling ``archive`` folder (stamp defaults to now)."""
    stamp = stamp_ms if stamp_ms is not None else int(time.time() * 1000)
    dest = path.parent / ARCHIVE_DIR_NAME / archived_name(path, stamp)
    return move_file_safe(path, dest)


def archive_all_but_newest(directory: Path, keep: str | None = None) -> list[Path]:
    """Archive every extract except ``keep`` (newest by mtime when not given).

    Each archived file is stamped with its own modification time.
    """
    files = list_extract_files(directory)
    if not files:
        logger.info(f"No CSVs found to archive in {directory}")
        return []
    keep = keep or files[0].name
    moved = []
    for f in files:
        if f.name == keep:
            continue
        moved.append(archive_file(f.path, f.mtime_ms))
    return moved


def sweep_archive_all(output_root: Path) -> dict[str, list[Path]]:
    """Pre-sweep: in every partition folder, archive all but the newest extract.

    A failing folder is logged and does not stop the sweep.
    """
    if not output_root.is_dir():
        logger.warning(f"Output folder does not exist for sweep: {output_root}")
        return {}
    subdirs = sorted(p for p in output_root.iterdir() if p.is_dir())
    if not subdirs:
        logger.info(f"No company subfolders found for sweep in {output_root}")
        return {}
    logger.info(f"Pre-sweep: found {len(subdirs)} company folders")
    result: dict[str, list[Path]] = {}
    for d in subdirs:
        try:
            result[d.name] = archive_all_but_newest(d)
        except OSError as e:
            logger.error(f"Pre-sweep failed for {d}: {e}")
            continue
        if result[d.name]:
            logger.info(f"Pre-sweep archived {len(result[d.name])} older CSVs in {d}")
    return result


def parse_extract(path: Path) -> list[ExtractRow]:
    """Data rows of an extract file (header and blank lines skipped).

    Field positions are fixed by the file format; rows are not validated.
    """
    try:
        content = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise ExtractParseError(f"cannot read {path}: {e}") from e
    # only \n and \r\n end a row; other line breaks are field content
    lines = [line.rstrip("\r") for line in content.split("\n") if line.strip()]
    return [ExtractRow.from_line(line) for line in lines[1:]]

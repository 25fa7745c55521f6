from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path

import httpx
from dotenv import load_dotenv

from prepay_sync.config.loader import ConfigError, load_config
from prepay_sync.excel.reader import RosterError, read_roster
from prepay_sync.logging.error_log import ErrorLogBuffer
from prepay_sync.logging.init import log_summary, set_debug, setup_logging
from prepay_sync.models.config_models import AppConfig
from prepay_sync.models.extract_file import ReplayStatus
from prepay_sync.models.partition import Partition
from prepay_sync.remote.client import RemoteClient
from prepay_sync.services.orchestrator import run_extract, run_replay
from prepay_sync.services.pool import Pools
from prepay_sync.services.summary import render_extract_summary, render_replay_summary

"""CLI entrypoint.

Flow:
- Load ``.env`` (overrides process environment) and configure logging
- Load config and the partition roster (either failing is fatal)
- ``extract``: fetch, merge, flag-filter and write per-partition CSVs
- ``replay``: submit the newest CSV per eligible partition, archive on success
- ``run`` (default): extract then replay in one invocation

Exit codes: 0 all good, 2 partial failure, 1 fatal.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

COMMANDS = ("extract", "replay", "run")


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv (values in the file win over the process env)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="prepay-sync",
        description="Prepayment collection invoice extract & replay",
    )
    p.add_argument("--config", default="config.yaml", help="Path to the YAML config (default: config.yaml)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--dump-results", metavar="DIR", default=None, help="Write JSON snapshots of candidate sets to DIR")
    p.add_argument("command", nargs="?", choices=COMMANDS, default="run", help="Phase to execute (default: run)")
    return p.parse_args(argv)


async def _run(
    command: str,
    cfg: AppConfig,
    partitions: list[Partition],
    error_log: ErrorLogBuffer,
    *,
    dump_dir: Path | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """Execute the requested phases. Returns True when any partial failure occurred."""
    partial = False
    async with RemoteClient.from_config(cfg, transport=transport) as client:
        if command in ("extract", "run"):
            extract = await run_extract(
                cfg, partitions, client, Pools.from_limits(cfg.concurrency), dump_dir=dump_dir
            )
            log_summary(render_extract_summary(extract))
            partial = partial or bool(extract.failures)
        if command in ("replay", "run"):
            replay = await run_replay(cfg, partitions, client, error_log)
            log_summary(render_replay_summary(replay))
            partial = partial or (
                replay.failed_rows > 0
                or replay.count(ReplayStatus.FAILED) > 0
                or replay.count(ReplayStatus.POISON) > 0
            )
    return partial


def main(argv: list[str] | None = None, *, transport: httpx.AsyncBaseTransport | None = None) -> int:
    # None のときのみ sys.argv を読む (テストで main([]) を呼ぶため)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    logger = setup_logging(log_dir)
    if args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(Path(args.config))
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    logger.info(f"Environment: {cfg.env}")
    try:
        partitions = read_roster(Path(cfg.roster_path))
    except RosterError as e:
        logger.error(f"roster: {e}")
        return EXIT_FATAL
    logger.info(f"Loaded {len(partitions)} company codes from {cfg.roster_path}")

    error_log = ErrorLogBuffer(log_dir)
    dump_dir = Path(args.dump_results) if args.dump_results else None
    try:
        partial = asyncio.run(
            _run(args.command, cfg, partitions, error_log, dump_dir=dump_dir, transport=transport)
        )
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return EXIT_FATAL
    finally:
        path = error_log.flush()
        if path is not None:
            logger.info(f"Submission errors written to {path}")

    return EXIT_PARTIAL_FAILURE if partial else EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

from .orchestrator import run_extract, run_replay
from .summary import render_extract_summary, render_replay_summary

__all__ = [
    "render_extract_summary",
    "render_replay_summary",
    "run_extract",
    "run_replay",
]

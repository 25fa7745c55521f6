from __future__ import annotations

from collections.abc import Iterable

from ..models.candidate import CandidateRecord

"""Reconciliation merger and per-key dedup.

A partition belongs to exactly one scenario, so Scenario-A and Scenario-B
sets are simply concatenated. Duplicates by (partition, sales order, line)
are collapsed later, right before rows are written.
"""


def merge_candidates(*groups: Iterable[CandidateRecord]) -> list[CandidateRecord]:
    merged: list[CandidateRecord] = []
    for group in groups:
        merged.extend(group)
    return merged


def dedupe_candidates(candidates: Iterable[CandidateRecord]) -> list[CandidateRecord]:
    """Keep the first candidate per (partition, sales order, line), order preserved."""
    seen: dict[tuple[str, str, str], CandidateRecord] = {}
    for c in candidates:
        seen.setdefault(c.dedup_key, c)
    return list(seen.values())

from __future__ import annotations

from dataclasses import dataclass

"""Partition model (one company code from the roster workbook)."""

__all__ = [
    "Partition",
    "SCENARIO_B",
]

SCENARIO_B = "B"


@dataclass(frozen=True)
class Partition:
    """A business unit routing every fetch / filter / submit call.

    ``exclude_na`` is the per-partition opt-in that makes the tri-state flag
    value ``NA`` disqualifying in the flag filter.
    """
    code: str
    invoice_type: str | None = None
    scenario: str | None = None
    exclude_na: bool = False

    @property
    def is_scenario_b(self) -> bool:
        return (self.scenario or "").strip().upper() == SCENARIO_B

    def is_replay_eligible(self, invoice_types: frozenset[str], skip_scenarios: frozenset[str]) -> bool:
        if self.invoice_type not in invoice_types:
            return False
        return (self.scenario or "").strip() not in skip_scenarios

"""Pure forecasting helpers for the aggregate score."""
from __future__ import annotations

import math
from dataclasses import dataclass

from trust_guard.reports.report import GRADE_BOUNDARIES, Grade
from trust_guard.sovereignty.calculator import (
    DEFAULT_DRIFT_RATE,
    MAX_DEBT_UNITS,
    drift_decay,
    raw_score,
)

NEAR_ZERO_SCORE: float = 0.01


@dataclass(frozen=True)
class RecoveryMilestone:
    """Debt reduction needed to reach a better grade, and what it buys."""

    target_grade: Grade
    units_needed: float
    score_gain: float

    def to_dict(self) -> dict[str, object]:
        return {
            "target_grade": self.target_grade.value,
            "units_needed": self.units_needed,
            "score_gain": self.score_gain,
        }


def denials_until_near_zero(
    score: float,
    rate: float = DEFAULT_DRIFT_RATE,
    floor: float = NEAR_ZERO_SCORE,
) -> int:
    """Return how many more denials drive *score* down to *floor*.

    Solves ``score * (1 - rate) ** n = floor`` for ``n``, rounded up.
    Returns 0 when *score* is already at or below *floor*.
    """
    if score <= floor or rate <= 0.0:
        return 0
    return math.ceil(math.log(floor / score) / math.log(1.0 - rate))


def recovery_path(
    units: float,
    drift_events: int = 0,
    rate: float = DEFAULT_DRIFT_RATE,
    max_units: float = MAX_DEBT_UNITS,
) -> list[RecoveryMilestone]:
    """Return the grade milestones reachable by paying down debt.

    For each of grades C, B and A that *units* currently sits above, the
    milestone gives the reduction needed to reach the bottom of that grade's
    range and the resulting aggregate gain, with the same drift applied.
    """
    current = drift_decay(raw_score(units, max_units), drift_events, rate)
    milestones: list[RecoveryMilestone] = []
    for grade in (Grade.C, Grade.B, Grade.A):
        target_units, grade_max = GRADE_BOUNDARIES[grade]
        if target_units < units and units > grade_max:
            target = drift_decay(raw_score(target_units, max_units), drift_events, rate)
            milestones.append(
                RecoveryMilestone(
                    target_grade=grade,
                    units_needed=units - target_units,
                    score_gain=target - current,
                )
            )
    return milestones

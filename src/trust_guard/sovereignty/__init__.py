"""Aggregate trust ("sovereignty") from debt reports, with denial decay."""
from __future__ import annotations

from trust_guard.reports.report import GRADE_BOUNDARIES, Grade, units_to_grade
from trust_guard.sovereignty.calculator import (
    DEFAULT_DRIFT_RATE,
    MAX_DEBT_UNITS,
    SovereigntyCalculation,
    SovereigntyCalculator,
    decay_identity,
    dimension_scores,
    drift_decay,
    grade_to_score,
    raw_score,
)
from trust_guard.sovereignty.forecast import (
    NEAR_ZERO_SCORE,
    RecoveryMilestone,
    denials_until_near_zero,
    recovery_path,
)

__all__ = [
    "DEFAULT_DRIFT_RATE",
    "GRADE_BOUNDARIES",
    "Grade",
    "MAX_DEBT_UNITS",
    "NEAR_ZERO_SCORE",
    "RecoveryMilestone",
    "SovereigntyCalculation",
    "SovereigntyCalculator",
    "decay_identity",
    "denials_until_near_zero",
    "dimension_scores",
    "drift_decay",
    "grade_to_score",
    "raw_score",
    "recovery_path",
    "units_to_grade",
]

"""SovereigntyCalculator — aggregate trust from trust-debt reports.

The aggregate ("sovereignty") score falls linearly with debt units and is
then eroded multiplicatively by enforcement denials:

    raw   = clamp(1 - units / max_units, 0, 1)
    score = raw * (1 - k) ** denials

Per-dimension scores come from the report's category breakdown. Each
category's grade and units are placed on a piecewise-linear curve inside
that grade's unit range; a dimension reached by several categories takes
their mean, and a dimension reached by none takes a neutral score.
"""
from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field

from trust_guard.policy import DEFAULT_POLICY, GovernancePolicy
from trust_guard.reports.categories import dimensions_for_category
from trust_guard.reports.report import (
    GRADE_BOUNDARIES,
    Grade,
    TrustReport,
    units_to_grade,
)
from trust_guard.space.dimensions import DIMENSIONS, Dimension
from trust_guard.space.permission import IdentityVector

logger = logging.getLogger(__name__)

DEFAULT_DRIFT_RATE: float = 0.003
MAX_DEBT_UNITS: float = 3000.0


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


# ------------------------------------------------------------------
# Scalar formulas
# ------------------------------------------------------------------


def raw_score(units: float, max_units: float = MAX_DEBT_UNITS) -> float:
    """Return the undecayed aggregate score for *units* of debt.

    Monotonic non-increasing and saturating: 0 units gives 1.0, *max_units*
    or more gives 0.0.
    """
    return _clamp(1.0 - units / max_units)


def drift_decay(score: float, denials: int, rate: float = DEFAULT_DRIFT_RATE) -> float:
    """Apply ``denials`` rounds of multiplicative erosion at *rate*.

    Zero denials returns *score* unchanged.
    """
    if denials <= 0:
        return score
    return score * (1.0 - rate) ** denials


def grade_to_score(grade: Grade, units: float) -> float:
    """Place *units* on the score curve of *grade*.

    ====== ============ ===========
    grade  units        score
    ====== ============ ===========
    A      0 - 500      1.0 - 0.9
    B      501 - 1500   0.9 - 0.7
    C      1501 - 3000  0.7 - 0.5
    D      3001 - 6001  0.5 - 0.0
    ====== ============ ===========

    The result is clamped to [0, 1].
    """
    if grade is Grade.A:
        score = 1.0 - (units / GRADE_BOUNDARIES[Grade.A][1]) * 0.1
    elif grade is Grade.B:
        low, high = GRADE_BOUNDARIES[Grade.B]
        score = 0.9 - ((units - low) / (high - low)) * 0.2
    elif grade is Grade.C:
        low, high = GRADE_BOUNDARIES[Grade.C]
        score = 0.7 - ((units - low) / (high - low)) * 0.2
    else:
        excess = units - GRADE_BOUNDARIES[Grade.D][0]
        score = 0.5 - min(1.0, excess / MAX_DEBT_UNITS) * 0.5
    return _clamp(score)


def dimension_scores(
    report: TrustReport, neutral_score: float = 0.5
) -> dict[Dimension, float]:
    """Derive a score for every dimension from the report's categories.

    Categories that reach no dimension are ignored.
    """
    contributions: dict[Dimension, list[float]] = {}
    for name, category in report.categories.items():
        dims = dimensions_for_category(name)
        if not dims:
            logger.debug("Report category %r maps to no dimension; ignored", name)
            continue
        score = grade_to_score(category.grade or units_to_grade(category.units), category.units)
        for dim in dims:
            contributions.setdefault(dim, []).append(score)

    return {
        dim: (sum(contributions[dim]) / len(contributions[dim]))
        if dim in contributions
        else neutral_score
        for dim in DIMENSIONS
    }


def decay_identity(
    identity: IdentityVector, drift_events: int, rate: float = DEFAULT_DRIFT_RATE
) -> IdentityVector:
    """Return a copy of *identity* with its aggregate eroded by *drift_events* denials."""
    if drift_events <= 0:
        return identity
    return identity.with_aggregate(drift_decay(identity.aggregate_score, drift_events, rate))


# ------------------------------------------------------------------
# Calculator
# ------------------------------------------------------------------


@dataclass(frozen=True)
class SovereigntyCalculation:
    """Full result of scoring one report.

    Parameters
    ----------
    score:
        Aggregate score after drift decay.
    raw_score:
        Aggregate score before drift decay.
    grade:
        Letter grade of the report's total units.
    debt_units:
        Total debt units in the report.
    drift_events:
        Denials applied as decay.
    drift_reduction_pct:
        Percentage of the raw score removed by decay.
    dimension_scores:
        Score of every dimension.
    observed_at:
        Timestamp of the underlying report, if known.
    """

    score: float
    raw_score: float
    grade: Grade
    debt_units: float
    drift_events: int
    drift_reduction_pct: float
    dimension_scores: dict[Dimension, float]
    observed_at: datetime.datetime | None = None
    calculated_at: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {
            "score": self.score,
            "raw_score": self.raw_score,
            "grade": self.grade.value,
            "debt_units": self.debt_units,
            "drift_events": self.drift_events,
            "drift_reduction_pct": self.drift_reduction_pct,
            "dimension_scores": {d.value: s for d, s in self.dimension_scores.items()},
            "observed_at": self.observed_at.isoformat() if self.observed_at else None,
            "calculated_at": self.calculated_at.isoformat(),
        }


class SovereigntyCalculator:
    """Score trust reports under a :class:`~trust_guard.policy.GovernancePolicy`.

    Parameters
    ----------
    policy:
        Source of the drift rate, the debt saturation point, and the
        neutral dimension score. Defaults to :data:`DEFAULT_POLICY`.

    Examples
    --------
    >>> calc = SovereigntyCalculator()
    >>> report = TrustReport(total_units=1500)
    >>> round(calc.calculate(report).score, 3)
    0.5
    """

    def __init__(self, policy: GovernancePolicy | None = None) -> None:
        self._policy = policy or DEFAULT_POLICY

    @property
    def policy(self) -> GovernancePolicy:
        return self._policy

    def calculate(self, report: TrustReport, drift_events: int = 0) -> SovereigntyCalculation:
        """Score *report*, eroding the aggregate by *drift_events* denials."""
        raw = raw_score(report.total_units, self._policy.max_debt_units)
        final = drift_decay(raw, drift_events, self._policy.drift_rate)
        reduction = ((raw - final) / raw) * 100.0 if drift_events > 0 and raw > 0 else 0.0
        return SovereigntyCalculation(
            score=final,
            raw_score=raw,
            grade=report.grade or units_to_grade(report.total_units),
            debt_units=report.total_units,
            drift_events=drift_events,
            drift_reduction_pct=reduction,
            dimension_scores=dimension_scores(report, self._policy.neutral_dimension_score),
            observed_at=report.observed_at,
        )

    def to_identity(
        self, report: TrustReport, subject_id: str, drift_events: int = 0
    ) -> IdentityVector:
        """Build the identity vector described by *report*."""
        calculation = self.calculate(report, drift_events)
        kwargs: dict[str, object] = {}
        if report.observed_at is not None:
            kwargs["observed_at"] = report.observed_at
        return IdentityVector(
            subject_id=subject_id,
            scores=calculation.dimension_scores,
            aggregate_score=calculation.score,
            **kwargs,  # type: ignore[arg-type]
        )

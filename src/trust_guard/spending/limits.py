"""Spending authority derived from the aggregate trust score.

The daily limit rises quadratically with the aggregate score:

    limit = floor + (ceiling - floor) * score ** 2

With the default floor of 5 and ceiling of 100, a score of 0.5 buys 28.75
per day and 0.9 buys 81.95. The floor is always positive so operation is
never fully revoked. Scores are clamped to [0, 1] first; NaN counts as 0.

Budget status is a pure classification. Blocking spend is the caller's job.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from trust_guard.policy import DEFAULT_POLICY, GovernancePolicy


class SpendingLevel(str, Enum):
    """Ordinal spending bands, lowest first."""

    CRITICAL = "CRITICAL"
    RESTRICTED = "RESTRICTED"
    BASIC = "BASIC"
    TRUSTED = "TRUSTED"
    EXCELLENT = "EXCELLENT"
    PERFECT = "PERFECT"


# Minimum aggregate score of each band.
LEVEL_THRESHOLDS: dict[SpendingLevel, float] = {
    SpendingLevel.CRITICAL: 0.0,
    SpendingLevel.RESTRICTED: 0.3,
    SpendingLevel.BASIC: 0.5,
    SpendingLevel.TRUSTED: 0.7,
    SpendingLevel.EXCELLENT: 0.9,
    SpendingLevel.PERFECT: 1.0,
}

_LEVELS: tuple[SpendingLevel, ...] = tuple(SpendingLevel)


def _clamp_score(score: float) -> float:
    if math.isnan(score):
        return 0.0
    return max(0.0, min(1.0, score))


def daily_limit(score: float, policy: GovernancePolicy | None = None) -> float:
    """Return the daily spending limit for *score*."""
    policy = policy or DEFAULT_POLICY
    s = _clamp_score(score)
    return policy.spending_floor + (policy.spending_ceiling - policy.spending_floor) * s * s


def level_limits(policy: GovernancePolicy | None = None) -> dict[SpendingLevel, float]:
    """Return the daily limit at the threshold of every band."""
    return {level: daily_limit(threshold, policy) for level, threshold in LEVEL_THRESHOLDS.items()}


def level_for(score: float) -> SpendingLevel:
    """Return the band containing *score*."""
    s = _clamp_score(score)
    current = SpendingLevel.CRITICAL
    for level in _LEVELS:
        if s >= LEVEL_THRESHOLDS[level]:
            current = level
    return current


def next_level(level: SpendingLevel) -> SpendingLevel | None:
    """Return the band above *level*, or None at the top."""
    index = _LEVELS.index(level)
    return _LEVELS[index + 1] if index + 1 < len(_LEVELS) else None


# ------------------------------------------------------------------
# Authority
# ------------------------------------------------------------------


@dataclass(frozen=True)
class SpendingAuthority:
    """Spending authority for one aggregate score. Derived, never persisted.

    ``margin_to_next_level`` is the extra daily limit gained by reaching the
    next band's threshold; it and the ``next_*`` fields are None at the top.
    """

    score: float
    daily_limit: float
    level: SpendingLevel
    percent_of_max: float
    next_level: Optional[SpendingLevel]
    next_level_score: Optional[float]
    margin_to_next_level: Optional[float]

    def to_dict(self) -> dict[str, object]:
        return {
            "score": self.score,
            "daily_limit": self.daily_limit,
            "level": self.level.value,
            "percent_of_max": self.percent_of_max,
            "next_level": self.next_level.value if self.next_level else None,
            "next_level_score": self.next_level_score,
            "margin_to_next_level": self.margin_to_next_level,
        }


def spending_authority(score: float, policy: GovernancePolicy | None = None) -> SpendingAuthority:
    """Return the full :class:`SpendingAuthority` for *score*."""
    policy = policy or DEFAULT_POLICY
    limit = daily_limit(score, policy)
    level = level_for(score)
    upcoming = next_level(level)
    next_score = LEVEL_THRESHOLDS[upcoming] if upcoming is not None else None
    return SpendingAuthority(
        score=score,
        daily_limit=limit,
        level=level,
        percent_of_max=limit / policy.spending_ceiling * 100.0,
        next_level=upcoming,
        next_level_score=next_score,
        margin_to_next_level=(
            daily_limit(next_score, policy) - limit if next_score is not None else None
        ),
    )


# ------------------------------------------------------------------
# Budget status
# ------------------------------------------------------------------


class BudgetAlert(str, Enum):
    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"
    EXCEEDED = "exceeded"


@dataclass(frozen=True)
class BudgetStatus:
    """Classification of today's spend against the daily limit."""

    spent: float
    limit: float
    remaining: float
    percent_used: float
    alert: bool
    alert_level: BudgetAlert
    message: str

    def to_dict(self) -> dict[str, object]:
        return {
            "spent": self.spent,
            "limit": self.limit,
            "remaining": self.remaining,
            "percent_used": self.percent_used,
            "alert": self.alert,
            "alert_level": self.alert_level.value,
            "message": self.message,
        }


def budget_status(spent: float, limit: float) -> BudgetStatus:
    """Classify *spent* against *limit*.

    ok below 70% used, warning from 70%, critical from 90%, exceeded from
    100%. Remaining budget never goes below zero.
    """
    remaining = max(0.0, limit - spent)
    percent = (spent / limit) * 100.0 if limit > 0 else 0.0
    summary = f"spent ${spent:.2f} of ${limit:.2f} limit ({percent:.1f}% used"
    if percent >= 100.0:
        alert_level = BudgetAlert.EXCEEDED
        message = f"Budget exceeded: {summary})"
    elif percent >= 90.0:
        alert_level = BudgetAlert.CRITICAL
        message = f"Budget critical: {summary}, ${remaining:.2f} remaining)"
    elif percent >= 70.0:
        alert_level = BudgetAlert.WARNING
        message = f"Budget warning: {summary}, ${remaining:.2f} remaining)"
    else:
        alert_level = BudgetAlert.OK
        message = f"Budget healthy: {summary}, ${remaining:.2f} remaining)"
    return BudgetStatus(
        spent=spent,
        limit=limit,
        remaining=remaining,
        percent_used=percent,
        alert=alert_level is not BudgetAlert.OK,
        alert_level=alert_level,
        message=message,
    )


# ------------------------------------------------------------------
# Forecasting
# ------------------------------------------------------------------


def score_needed_for_limit(
    current_score: float, target_limit: float, policy: GovernancePolicy | None = None
) -> float | None:
    """Return the score increase needed to reach *target_limit*.

    Targets above the ceiling are treated as the ceiling. Returns None when
    the current limit already meets the target.
    """
    policy = policy or DEFAULT_POLICY
    target = min(target_limit, policy.spending_ceiling)
    if daily_limit(current_score, policy) >= target:
        return None
    span = policy.spending_ceiling - policy.spending_floor
    target_score = math.sqrt((target - policy.spending_floor) / span)
    return target_score - _clamp_score(current_score)


@dataclass(frozen=True)
class SpendingRecoveryStep:
    """Limit gain from raising the score to one band's threshold."""

    level: SpendingLevel
    score_needed: float
    limit_gain: float
    percent_increase: float

    def to_dict(self) -> dict[str, object]:
        return {
            "level": self.level.value,
            "score_needed": self.score_needed,
            "limit_gain": self.limit_gain,
            "percent_increase": self.percent_increase,
        }


def recovery_path(
    current_score: float, policy: GovernancePolicy | None = None
) -> list[SpendingRecoveryStep]:
    """Return one step for every band whose threshold is above *current_score*."""
    current = _clamp_score(current_score)
    current_limit = daily_limit(current, policy)
    steps: list[SpendingRecoveryStep] = []
    for level in _LEVELS[1:]:
        threshold = LEVEL_THRESHOLDS[level]
        if threshold <= current:
            continue
        gain = daily_limit(threshold, policy) - current_limit
        steps.append(
            SpendingRecoveryStep(
                level=level,
                score_needed=threshold - current,
                limit_gain=gain,
                percent_increase=gain / current_limit * 100.0,
            )
        )
    return steps


def format_authority_report(authority: SpendingAuthority) -> str:
    """Render *authority* as a short multi-line report."""
    lines = [
        f"Spending level: {authority.level.value}",
        f"Daily spending limit: ${authority.daily_limit:.2f}",
        f"Aggregate score: {authority.score:.3f} ({authority.percent_of_max:.1f}% of max)",
        "",
    ]
    if authority.next_level is not None and authority.margin_to_next_level is not None:
        lines.append(
            f"Next level: {authority.next_level.value} "
            f"(score {authority.next_level_score:.3f})"
        )
        lines.append(f"Limit increase: +${authority.margin_to_next_level:.2f}/day")
    else:
        lines.append("Maximum spending level reached.")
    return "\n".join(lines)

"""GovernancePolicy — configurable thresholds, rates, and business constants.

Policies let operators tune enforcement, decay, budget, and stability
behaviour for their deployment. The decay rate and the spending curve are
business constants rather than derived law, so they live here as
configuration. Sensible defaults are provided for every parameter.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class GovernancePolicy(BaseModel):
    """Configurable trust-governance policy.

    Parameters
    ----------
    overlap_threshold:
        Minimum fraction of required dimensions an identity must meet (θ).
    drift_rate:
        Multiplicative erosion per enforcement denial (k). The aggregate
        score is scaled by ``(1 - k) ** denials``.
    max_debt_units:
        Debt units at which the raw aggregate score saturates at 0.0.
    neutral_dimension_score:
        Score given to dimensions no report category reaches.
    default_identity_score:
        Per-dimension and aggregate score of the permissive identity used
        when no readable report exists.
    identity_cache_ttl_seconds:
        Lifetime of a cached identity vector.
    denial_threshold:
        Consecutive denials that trigger drift correction.
    heat_promotion_allows:
        Allows needed to promote a usage-heat cell from S to B.
    heat_premium_allows:
        Allows needed to promote a usage-heat cell from B to P.
    heat_demotion_denials:
        Denials that demote a usage-heat cell to S.
    heat_hold_denials:
        Denials that put a usage-heat cell on hold (H).
    spending_floor:
        Daily spending limit at aggregate score 0.0. Always positive.
    spending_ceiling:
        Daily spending limit at aggregate score 1.0.
    stability_window:
        Number of trailing measurements that must agree for stability.
    stability_band:
        Maximum deviation from the window mean for a stable measurement.
    trend_window:
        Number of most-recent measurements used for the trend.
    min_milestone_score:
        Artifact generation is skipped for milestones scored below this.
    callback_timeout_seconds:
        Upper bound on any extension callback. None runs callbacks inline
        without a bound.
    """

    overlap_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    drift_rate: float = Field(default=0.003, ge=0.0, lt=1.0)
    max_debt_units: float = Field(default=3000.0, gt=0.0)
    neutral_dimension_score: float = Field(default=0.5, ge=0.0, le=1.0)
    default_identity_score: float = Field(default=0.7, ge=0.0, le=1.0)
    identity_cache_ttl_seconds: float = Field(default=300.0, ge=0.0)
    denial_threshold: int = Field(default=3, ge=1)
    heat_promotion_allows: int = Field(default=3, ge=1)
    heat_premium_allows: int = Field(default=10, ge=1)
    heat_demotion_denials: int = Field(default=3, ge=1)
    heat_hold_denials: int = Field(default=5, ge=1)
    spending_floor: float = Field(default=5.0, gt=0.0)
    spending_ceiling: float = Field(default=100.0, gt=0.0)
    stability_window: int = Field(default=30, ge=2)
    stability_band: float = Field(default=0.05, ge=0.0, le=1.0)
    trend_window: int = Field(default=7, ge=2)
    min_milestone_score: float = Field(default=0.0, ge=0.0, le=1.0)
    callback_timeout_seconds: Optional[float] = Field(default=10.0, gt=0.0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_ranges(self) -> "GovernancePolicy":
        if self.spending_ceiling <= self.spending_floor:
            raise ValueError(
                f"spending_ceiling ({self.spending_ceiling}) must exceed "
                f"spending_floor ({self.spending_floor})"
            )
        if self.heat_hold_denials < self.heat_demotion_denials:
            raise ValueError("heat_hold_denials must be >= heat_demotion_denials")
        return self

    @classmethod
    def from_file(cls, path: Path | str) -> "GovernancePolicy":
        """Load a policy from a JSON document. Missing fields take defaults.

        Raises
        ------
        pydantic.ValidationError
            If the document is malformed or a value is out of range.
        """
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))


DEFAULT_POLICY = GovernancePolicy()

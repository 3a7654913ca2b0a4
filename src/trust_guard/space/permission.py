"""Identity vectors, action requirements, and the permission predicate.

The predicate is a dimensional pass/fail ratio rather than a single angle:

    overlap = |{d in required : identity[d] >= required[d]}| / |required|
    allowed = overlap >= θ  and  identity.aggregate >= requirement.min_aggregate

Every evaluation also lists the individually failing dimensions, whichever
threshold caused a denial, so each DENY can be explained without access to
the registry source.
"""
from __future__ import annotations

import datetime
from collections.abc import Mapping
from dataclasses import dataclass, field

from trust_guard.space.dimensions import Dimension, parse_dimension
from trust_guard.space.vector import cosine_similarity, to_vector

DEFAULT_OVERLAP_THRESHOLD: float = 0.8


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _normalize_scores(scores: Mapping[Dimension | str, float]) -> dict[Dimension, float]:
    normalized: dict[Dimension, float] = {}
    for key, value in scores.items():
        dim = parse_dimension(key)
        if dim is None:
            raise ValueError(f"Unknown trust dimension {key!r}")
        normalized[dim] = float(value)
    return normalized


@dataclass(frozen=True)
class IdentityVector:
    """A subject's per-dimension trust scores plus one aggregate score.

    Instances are never mutated; a new report produces a new instance.

    Parameters
    ----------
    subject_id:
        The agent or user the scores describe.
    scores:
        Sparse mapping of dimension to score in [0, 1]. Missing dimensions
        count as 0.0. String keys are resolved to :class:`Dimension`.
    aggregate_score:
        Single [0, 1] summary of trust.
    observed_at:
        UTC datetime of the report the scores were derived from.
    """

    subject_id: str
    scores: dict[Dimension, float]
    aggregate_score: float
    observed_at: datetime.datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        object.__setattr__(self, "scores", _normalize_scores(self.scores))
        object.__setattr__(self, "aggregate_score", float(self.aggregate_score))

    def score(self, dimension: Dimension) -> float:
        """Return the score for *dimension*, 0.0 when absent."""
        return self.scores.get(dimension, 0.0)

    def with_aggregate(self, aggregate_score: float) -> "IdentityVector":
        """Return a copy of this identity with a different aggregate score."""
        return IdentityVector(
            subject_id=self.subject_id,
            scores=dict(self.scores),
            aggregate_score=aggregate_score,
            observed_at=self.observed_at,
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {
            "subject_id": self.subject_id,
            "scores": {dim.value: score for dim, score in self.scores.items()},
            "aggregate_score": self.aggregate_score,
            "observed_at": self.observed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "IdentityVector":
        """Reconstruct an IdentityVector from :meth:`to_dict` output."""
        observed = data.get("observed_at")
        return cls(
            subject_id=str(data["subject_id"]),
            scores=dict(data.get("scores") or {}),  # type: ignore[arg-type]
            aggregate_score=float(data["aggregate_score"]),  # type: ignore[arg-type]
            observed_at=(
                datetime.datetime.fromisoformat(str(observed)) if observed else _utcnow()
            ),
        )


@dataclass(frozen=True)
class ActionRequirement:
    """Minimum scores needed to authorize a named action.

    Parameters
    ----------
    action_name:
        Registry key of the action.
    required_scores:
        Sparse mapping of dimension to minimum score.
    min_aggregate:
        Minimum aggregate score.
    description:
        Human-readable description of the action.
    irreversible:
        True for destructive actions that cannot be undone.
    """

    action_name: str
    required_scores: dict[Dimension, float]
    min_aggregate: float
    description: str = ""
    irreversible: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "required_scores", _normalize_scores(self.required_scores))

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {
            "action_name": self.action_name,
            "required_scores": {dim.value: v for dim, v in self.required_scores.items()},
            "min_aggregate": self.min_aggregate,
            "description": self.description,
            "irreversible": self.irreversible,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "ActionRequirement":
        """Reconstruct an ActionRequirement from :meth:`to_dict` output."""
        return cls(
            action_name=str(data["action_name"]),
            required_scores=dict(data.get("required_scores") or {}),  # type: ignore[arg-type]
            min_aggregate=float(data.get("min_aggregate", 0.0)),  # type: ignore[arg-type]
            description=str(data.get("description", "")),
            irreversible=bool(data.get("irreversible", False)),
        )


@dataclass(frozen=True)
class FailedDimension:
    """One required dimension the identity did not meet."""

    dimension: Dimension
    actual: float
    required: float

    def __str__(self) -> str:
        return f"{self.dimension.value}: {self.actual:.2f} < {self.required}"

    def to_dict(self) -> dict[str, object]:
        return {
            "dimension": self.dimension.value,
            "actual": self.actual,
            "required": self.required,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "FailedDimension":
        return cls(
            dimension=Dimension(str(data["dimension"])),
            actual=float(data["actual"]),  # type: ignore[arg-type]
            required=float(data["required"]),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class PermissionDecision:
    """Outcome of a single permission evaluation.

    Parameters
    ----------
    allowed:
        True when both the overlap and the aggregate threshold were met.
    overlap_ratio:
        Fraction of required dimensions met, in [0, 1].
    aggregate_score:
        The identity's aggregate score at evaluation time.
    overlap_threshold:
        θ used for the evaluation.
    min_aggregate:
        The requirement's aggregate minimum.
    failed_dimensions:
        Every required dimension the identity did not meet.
    decided_at:
        UTC datetime of the evaluation.
    """

    allowed: bool
    overlap_ratio: float
    aggregate_score: float
    overlap_threshold: float
    min_aggregate: float
    failed_dimensions: tuple[FailedDimension, ...] = ()
    decided_at: datetime.datetime = field(default_factory=_utcnow)

    def explain(self) -> str:
        """Return a reproducible, human-readable explanation of the decision."""
        verdict = "ALLOW" if self.allowed else "DENY"
        parts = [
            f"{verdict}: overlap {self.overlap_ratio:.2f} "
            f"({'>=' if self.overlap_ratio >= self.overlap_threshold else '<'} "
            f"{self.overlap_threshold})",
            f"aggregate {self.aggregate_score:.3f} "
            f"({'>=' if self.aggregate_score >= self.min_aggregate else '<'} "
            f"{self.min_aggregate})",
        ]
        if self.failed_dimensions:
            parts.append("failed: " + ", ".join(str(f) for f in self.failed_dimensions))
        return "; ".join(parts)

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {
            "allowed": self.allowed,
            "overlap_ratio": self.overlap_ratio,
            "aggregate_score": self.aggregate_score,
            "overlap_threshold": self.overlap_threshold,
            "min_aggregate": self.min_aggregate,
            "failed_dimensions": [f.to_dict() for f in self.failed_dimensions],
            "decided_at": self.decided_at.isoformat(),
        }


# ------------------------------------------------------------------
# Predicate
# ------------------------------------------------------------------


def compute_overlap(identity: IdentityVector, requirement: ActionRequirement) -> float:
    """Return the fraction of required dimensions the identity meets.

    An empty requirement is unconstrained and yields 1.0.
    """
    required = requirement.required_scores
    if not required:
        return 1.0
    met = sum(1 for dim, minimum in required.items() if identity.score(dim) >= minimum)
    return met / len(required)


def failed_dimensions(
    identity: IdentityVector, requirement: ActionRequirement
) -> tuple[FailedDimension, ...]:
    """Return every required dimension the identity scores below, in requirement order."""
    return tuple(
        FailedDimension(dimension=dim, actual=identity.score(dim), required=minimum)
        for dim, minimum in requirement.required_scores.items()
        if identity.score(dim) < minimum
    )


def check_permission(
    identity: IdentityVector,
    requirement: ActionRequirement,
    threshold: float = DEFAULT_OVERLAP_THRESHOLD,
) -> PermissionDecision:
    """Evaluate whether *identity* may perform the action described by *requirement*.

    Total function: never raises for well-formed inputs.

    Parameters
    ----------
    identity:
        The subject's current identity vector.
    requirement:
        The action's requirement.
    threshold:
        Minimum overlap ratio θ (default 0.8).

    Returns
    -------
    PermissionDecision
    """
    overlap = compute_overlap(identity, requirement)
    allowed = (
        overlap >= threshold and identity.aggregate_score >= requirement.min_aggregate
    )
    return PermissionDecision(
        allowed=allowed,
        overlap_ratio=overlap,
        aggregate_score=identity.aggregate_score,
        overlap_threshold=threshold,
        min_aggregate=requirement.min_aggregate,
        failed_dimensions=failed_dimensions(identity, requirement),
    )


# ------------------------------------------------------------------
# Geometric view (not used by the predicate)
# ------------------------------------------------------------------


def identity_vector(identity: IdentityVector) -> list[float]:
    """Return the dense vector of an identity's dimension scores."""
    return to_vector(identity.scores)


def requirement_vector(requirement: ActionRequirement) -> list[float]:
    """Return the dense vector of a requirement's minimum scores."""
    return to_vector(requirement.required_scores)


def cosine_alignment(identity: IdentityVector, requirement: ActionRequirement) -> float:
    """Return the cosine similarity between identity and requirement vectors.

    Informational only. The permission predicate uses :func:`compute_overlap`,
    whose accept/reject boundary differs materially from this angle.
    """
    return cosine_similarity(identity_vector(identity), requirement_vector(requirement))

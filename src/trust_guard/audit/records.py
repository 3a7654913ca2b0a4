"""Record types written to the audit ledgers.

Each record is immutable and serializes to one JSON object per ledger line.
"""
from __future__ import annotations

import datetime
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from trust_guard.space.permission import FailedDimension, PermissionDecision


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _parse_ts(value: object) -> datetime.datetime:
    ts = datetime.datetime.fromisoformat(str(value))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=datetime.timezone.utc)
    return ts


class Decision(str, Enum):
    """Verdict recorded in the decision ledger."""

    ALLOW = "ALLOW"
    DENY = "DENY"


class FailOpenReason(str, Enum):
    """Why an action was allowed without evaluation."""

    UNKNOWN_CALLER = "unknown_caller"
    UNREGISTERED_ACTION = "unregistered_action"


@dataclass(frozen=True)
class AuditRecord:
    """One evaluated permission decision.

    Parameters
    ----------
    decision:
        ALLOW or DENY.
    action_name:
        Registry key of the evaluated action.
    caller_name:
        Tool or function name that requested the action.
    overlap_ratio:
        Fraction of required dimensions met.
    aggregate_score:
        Identity aggregate at evaluation time.
    overlap_threshold:
        θ used for the evaluation.
    min_aggregate:
        The action's aggregate minimum.
    failed_dimensions:
        Required dimensions the identity did not meet.
    subject_id:
        Identity the decision was made for.
    session_id:
        Optional host session identifier.
    decided_at:
        UTC datetime of the decision.
    """

    decision: Decision
    action_name: str
    caller_name: str
    overlap_ratio: float
    aggregate_score: float
    overlap_threshold: float
    min_aggregate: float
    failed_dimensions: tuple[FailedDimension, ...] = ()
    subject_id: str = "system"
    session_id: Optional[str] = None
    decided_at: datetime.datetime = field(default_factory=_utcnow)

    @classmethod
    def from_decision(
        cls,
        decision: PermissionDecision,
        action_name: str,
        caller_name: str,
        subject_id: str,
        session_id: str | None = None,
    ) -> "AuditRecord":
        """Build the ledger record for a :class:`PermissionDecision`."""
        return cls(
            decision=Decision.ALLOW if decision.allowed else Decision.DENY,
            action_name=action_name,
            caller_name=caller_name,
            overlap_ratio=decision.overlap_ratio,
            aggregate_score=decision.aggregate_score,
            overlap_threshold=decision.overlap_threshold,
            min_aggregate=decision.min_aggregate,
            failed_dimensions=decision.failed_dimensions,
            subject_id=subject_id,
            session_id=session_id,
            decided_at=decision.decided_at,
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary suitable for JSON encoding."""
        return {
            "decided_at": self.decided_at.isoformat(),
            "decision": self.decision.value,
            "action_name": self.action_name,
            "caller_name": self.caller_name,
            "overlap_ratio": self.overlap_ratio,
            "aggregate_score": self.aggregate_score,
            "overlap_threshold": self.overlap_threshold,
            "min_aggregate": self.min_aggregate,
            "failed_dimensions": [f.to_dict() for f in self.failed_dimensions],
            "subject_id": self.subject_id,
            "session_id": self.session_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "AuditRecord":
        """Reconstruct an AuditRecord from :meth:`to_dict` output."""
        failed = data.get("failed_dimensions") or []
        return cls(
            decision=Decision(str(data["decision"])),
            action_name=str(data["action_name"]),
            caller_name=str(data["caller_name"]),
            overlap_ratio=float(data["overlap_ratio"]),  # type: ignore[arg-type]
            aggregate_score=float(data["aggregate_score"]),  # type: ignore[arg-type]
            overlap_threshold=float(data["overlap_threshold"]),  # type: ignore[arg-type]
            min_aggregate=float(data["min_aggregate"]),  # type: ignore[arg-type]
            failed_dimensions=tuple(
                FailedDimension.from_dict(f) for f in failed  # type: ignore[union-attr]
            ),
            subject_id=str(data.get("subject_id", "system")),
            session_id=data.get("session_id"),  # type: ignore[arg-type]
            decided_at=_parse_ts(data["decided_at"]),
        )


@dataclass(frozen=True)
class FailOpenRecord:
    """An action allowed only because no requirement applied to it."""

    caller_name: str
    reason: FailOpenReason
    action_name: Optional[str] = None
    subject_id: str = "system"
    session_id: Optional[str] = None
    occurred_at: datetime.datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, object]:
        return {
            "occurred_at": self.occurred_at.isoformat(),
            "caller_name": self.caller_name,
            "action_name": self.action_name,
            "reason": self.reason.value,
            "subject_id": self.subject_id,
            "session_id": self.session_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "FailOpenRecord":
        action = data.get("action_name")
        return cls(
            caller_name=str(data["caller_name"]),
            reason=FailOpenReason(str(data["reason"])),
            action_name=str(action) if action is not None else None,
            subject_id=str(data.get("subject_id", "system")),
            session_id=data.get("session_id"),  # type: ignore[arg-type]
            occurred_at=_parse_ts(data["occurred_at"]),
        )


@dataclass(frozen=True)
class DenialEvent:
    """Payload describing one enforcement denial.

    Passed to the denial callback and persisted to the denial ledger, where
    it later feeds drift decay on identity reload.
    """

    action_name: str
    caller_name: str
    subject_id: str
    consecutive_denials: int
    total_denials: int
    explanation: str
    failed_dimensions: tuple[FailedDimension, ...] = ()
    session_id: Optional[str] = None
    occurred_at: datetime.datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, object]:
        return {
            "occurred_at": self.occurred_at.isoformat(),
            "action_name": self.action_name,
            "caller_name": self.caller_name,
            "subject_id": self.subject_id,
            "session_id": self.session_id,
            "consecutive_denials": self.consecutive_denials,
            "total_denials": self.total_denials,
            "explanation": self.explanation,
            "failed_dimensions": [f.to_dict() for f in self.failed_dimensions],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "DenialEvent":
        failed = data.get("failed_dimensions") or []
        return cls(
            action_name=str(data["action_name"]),
            caller_name=str(data["caller_name"]),
            subject_id=str(data.get("subject_id", "system")),
            consecutive_denials=int(data.get("consecutive_denials", 0)),  # type: ignore[arg-type]
            total_denials=int(data.get("total_denials", 0)),  # type: ignore[arg-type]
            explanation=str(data.get("explanation", "")),
            failed_dimensions=tuple(
                FailedDimension.from_dict(f) for f in failed  # type: ignore[union-attr]
            ),
            session_id=data.get("session_id"),  # type: ignore[arg-type]
            occurred_at=_parse_ts(data["occurred_at"]),
        )

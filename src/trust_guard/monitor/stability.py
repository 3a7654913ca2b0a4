"""StabilityMonitor — longitudinal analysis of the aggregate score.

One measurement is appended per observation cycle. Over the trailing
window the monitor asks two questions:

* Stability: does every measurement, counted back from the newest, sit
  within a fixed band of the window mean for the whole window?
* Trend: across the last few measurements, did the score move by more than
  0.01, and which way?

The first time a stable window is seen, the monitor runs the artifact
callback, records a milestone, then runs the notification callback. A
recency guard (one stability window, in days) stops the milestone from
firing again on every following cycle. Each callback is optional and its
failure is isolated from the milestone record and from the other callback.
"""
from __future__ import annotations

import csv
import datetime
import io
import json
import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

from trust_guard._callbacks import invoke_callback
from trust_guard.audit.ledger import JsonlLedger
from trust_guard.policy import DEFAULT_POLICY, GovernancePolicy
from trust_guard.sovereignty.calculator import SovereigntyCalculation

logger = logging.getLogger(__name__)

# Minimum score movement counted as a trend, and the movement that counts
# as full strength.
TREND_EPSILON: float = 0.01
TREND_FULL_SCALE: float = 0.1

CSV_COLUMNS: tuple[str, ...] = (
    "observed_at",
    "aggregate_score",
    "grade",
    "debt_units",
    "drift_events",
    "source",
)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _parse_ts(value: object) -> datetime.datetime:
    ts = datetime.datetime.fromisoformat(str(value))
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=datetime.timezone.utc)


# ------------------------------------------------------------------
# Records
# ------------------------------------------------------------------


@dataclass(frozen=True)
class StabilityMeasurement:
    """One observation of the aggregate score."""

    aggregate_score: float
    grade: str = ""
    debt_units: float = 0.0
    drift_events: int = 0
    source: str = "manual"
    observed_at: datetime.datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, object]:
        return {
            "observed_at": self.observed_at.isoformat(),
            "aggregate_score": self.aggregate_score,
            "grade": self.grade,
            "debt_units": self.debt_units,
            "drift_events": self.drift_events,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StabilityMeasurement":
        return cls(
            aggregate_score=float(data["aggregate_score"]),
            grade=str(data.get("grade", "")),
            debt_units=float(data.get("debt_units", 0.0)),
            drift_events=int(data.get("drift_events", 0)),
            source=str(data.get("source", "manual")),
            observed_at=_parse_ts(data["observed_at"]),
        )


@dataclass(frozen=True)
class StabilityMilestone:
    """A recorded stable window."""

    achieved_at: datetime.datetime
    aggregate_score: float
    stable_count: int
    artifact_generated: bool = False
    artifact_ref: Optional[str] = None
    notification_sent: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "achieved_at": self.achieved_at.isoformat(),
            "aggregate_score": self.aggregate_score,
            "stable_count": self.stable_count,
            "artifact_generated": self.artifact_generated,
            "artifact_ref": self.artifact_ref,
            "notification_sent": self.notification_sent,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StabilityMilestone":
        ref = data.get("artifact_ref")
        return cls(
            achieved_at=_parse_ts(data["achieved_at"]),
            aggregate_score=float(data["aggregate_score"]),
            stable_count=int(data.get("stable_count", 0)),
            artifact_generated=bool(data.get("artifact_generated", False)),
            artifact_ref=str(ref) if ref is not None else None,
            notification_sent=bool(data.get("notification_sent", False)),
        )


class MeasurementLog(JsonlLedger[StabilityMeasurement]):
    """Append-only history of stability measurements."""

    record_type = StabilityMeasurement


# ------------------------------------------------------------------
# Analysis
# ------------------------------------------------------------------


@dataclass(frozen=True)
class StabilityAnalysis:
    """Result of one stability analysis.

    Parameters
    ----------
    is_stable:
        True when the whole trailing window sits inside the band.
    stable_count:
        Length of the in-band run counted back from the newest measurement.
    required_count:
        Run length needed for stability (the window size).
    current_score:
        Newest aggregate score, 0.0 without history.
    mean_score:
        Mean of the trailing window.
    score_range:
        Max minus min across the in-band run.
    trend_direction:
        ``"up"``, ``"down"`` or ``"stable"``.
    trend_strength:
        Magnitude of the trend in [0, 1].
    message:
        Human-readable summary.
    """

    is_stable: bool
    stable_count: int
    required_count: int
    current_score: float
    mean_score: float
    score_range: float
    trend_direction: str
    trend_strength: float
    message: str

    def to_dict(self) -> dict[str, object]:
        return {
            "is_stable": self.is_stable,
            "stable_count": self.stable_count,
            "required_count": self.required_count,
            "current_score": self.current_score,
            "mean_score": self.mean_score,
            "score_range": self.score_range,
            "trend_direction": self.trend_direction,
            "trend_strength": self.trend_strength,
            "message": self.message,
        }


def _trend(scores: Sequence[float], trend_window: int) -> tuple[str, float]:
    recent = list(scores[-trend_window:])
    if len(recent) < 3:
        return "stable", 0.0
    delta = recent[-1] - recent[0]
    if abs(delta) <= TREND_EPSILON:
        return "stable", 0.0
    return ("up" if delta > 0 else "down"), min(1.0, abs(delta) / TREND_FULL_SCALE)


def analyze_stability(
    measurements: Sequence[StabilityMeasurement],
    window: int = 30,
    band: float = 0.05,
    trend_window: int = 7,
) -> StabilityAnalysis:
    """Analyze *measurements*, ordered oldest first.

    Parameters
    ----------
    measurements:
        Full history, oldest first.
    window:
        Trailing window size; also the run length required for stability.
    band:
        Maximum distance from the window mean for an in-band measurement.
    trend_window:
        Number of newest measurements compared for the trend.
    """
    if not measurements:
        return StabilityAnalysis(
            is_stable=False,
            stable_count=0,
            required_count=window,
            current_score=0.0,
            mean_score=0.0,
            score_range=0.0,
            trend_direction="stable",
            trend_strength=0.0,
            message="No stability history available",
        )

    scores = [m.aggregate_score for m in measurements]
    trailing = scores[-window:]
    mean = sum(trailing) / len(trailing)

    run: list[float] = []
    for score in reversed(trailing):
        if abs(score - mean) > band:
            break
        run.append(score)

    stable_count = len(run)
    is_stable = stable_count >= window
    score_range = (max(run) - min(run)) if run else 0.0
    direction, strength = _trend(scores, trend_window)
    current = scores[-1]

    if is_stable:
        message = (
            f"Stable for {stable_count} measurements at {current:.3f} "
            f"(range {score_range * 100:.1f}%)"
        )
    else:
        message = (
            f"Stability progress: {stable_count}/{window} "
            f"({window - stable_count} remaining)"
        )
    return StabilityAnalysis(
        is_stable=is_stable,
        stable_count=stable_count,
        required_count=window,
        current_score=current,
        mean_score=mean,
        score_range=score_range,
        trend_direction=direction,
        trend_strength=strength,
        message=message,
    )


# ------------------------------------------------------------------
# Monitor
# ------------------------------------------------------------------


@dataclass(frozen=True)
class StabilityCheck:
    """Outcome of :meth:`StabilityMonitor.check`; ``milestone`` is set only when one was recorded."""

    analysis: StabilityAnalysis
    milestone: Optional[StabilityMilestone] = None


class StabilityMonitor:
    """Record measurements and fire one-time stability milestones.

    Parameters
    ----------
    history_path:
        JSONL measurement history. If None, history is kept in memory.
    milestones_path:
        JSON milestone list. If None, milestones are kept in memory.
    policy:
        Window, band, trend window, minimum milestone score and callback
        timeout. Defaults to :data:`DEFAULT_POLICY`.
    clock:
        Returns the current UTC datetime.
    on_artifact:
        ``(score, stable_count) -> artifact reference or None``.
    on_notify:
        ``(message) -> None``.
    """

    def __init__(
        self,
        history_path: Path | str | None = None,
        milestones_path: Path | str | None = None,
        policy: GovernancePolicy | None = None,
        clock: Callable[[], datetime.datetime] = _utcnow,
        on_artifact: Callable[[float, int], Optional[str]] | None = None,
        on_notify: Callable[[str], Any] | None = None,
    ) -> None:
        self._history = MeasurementLog(history_path)
        self._milestones_path = Path(milestones_path) if milestones_path is not None else None
        self._memory_milestones: list[dict[str, object]] = []
        self._policy = policy or DEFAULT_POLICY
        self._clock = clock
        self.on_artifact = on_artifact
        self.on_notify = on_notify
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def record(
        self,
        aggregate_score: float,
        grade: str = "",
        debt_units: float = 0.0,
        drift_events: int = 0,
        source: str = "manual",
        observed_at: datetime.datetime | None = None,
    ) -> StabilityMeasurement:
        """Append one measurement to the history."""
        measurement = StabilityMeasurement(
            aggregate_score=aggregate_score,
            grade=grade,
            debt_units=debt_units,
            drift_events=drift_events,
            source=source,
            observed_at=observed_at or self._clock(),
        )
        self._history.append(measurement)
        logger.info("Recorded stability measurement %.3f (%s)", aggregate_score, source)
        return measurement

    def record_calculation(
        self, calculation: SovereigntyCalculation, source: str = "calculator"
    ) -> StabilityMeasurement:
        """Append the result of a sovereignty calculation."""
        return self.record(
            aggregate_score=calculation.score,
            grade=calculation.grade.value,
            debt_units=calculation.debt_units,
            drift_events=calculation.drift_events,
            source=source,
            observed_at=calculation.calculated_at,
        )

    def measurements(self) -> list[StabilityMeasurement]:
        """Return the history, oldest first."""
        return sorted(self._history.records(), key=lambda m: m.observed_at)

    def analyze(self) -> StabilityAnalysis:
        return analyze_stability(
            self.measurements(),
            window=self._policy.stability_window,
            band=self._policy.stability_band,
            trend_window=self._policy.trend_window,
        )

    # ------------------------------------------------------------------
    # Milestones
    # ------------------------------------------------------------------

    def _load_milestone_dicts(self) -> list[dict[str, object]]:
        if self._milestones_path is None:
            return list(self._memory_milestones)
        if not self._milestones_path.exists():
            return []
        try:
            data = json.loads(self._milestones_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.exception("Unreadable milestone file %s", self._milestones_path)
            return []
        return data if isinstance(data, list) else []

    def _save_milestone_dicts(self, items: list[dict[str, object]]) -> None:
        if self._milestones_path is None:
            self._memory_milestones = list(items)
            return
        try:
            self._milestones_path.parent.mkdir(parents=True, exist_ok=True)
            self._milestones_path.write_text(json.dumps(items, indent=2), encoding="utf-8")
        except OSError:
            logger.exception("Failed to write milestone file %s", self._milestones_path)

    def milestones(self) -> list[StabilityMilestone]:
        """Return recorded milestones, oldest first."""
        return [StabilityMilestone.from_dict(item) for item in self._load_milestone_dicts()]

    def has_recent_milestone(self, within_days: int | None = None) -> bool:
        """Return True if a milestone was achieved within *within_days* days.

        Defaults to the stability window.
        """
        days = self._policy.stability_window if within_days is None else within_days
        cutoff = self._clock() - datetime.timedelta(days=days)
        return any(m.achieved_at >= cutoff for m in self.milestones())

    def _milestone_message(self, analysis: StabilityAnalysis, artifact_ref: str | None) -> str:
        lines = [
            "Stability milestone achieved",
            "",
            f"Aggregate score: {analysis.current_score:.3f}",
            f"Stable measurements: {analysis.stable_count}",
            f"Window mean: {analysis.mean_score:.3f}",
            f"Score range: {analysis.score_range * 100:.2f}%",
            f"Trend: {analysis.trend_direction} ({analysis.trend_strength * 100:.0f}% strength)",
        ]
        if artifact_ref:
            lines.extend(["", f"Artifact: {artifact_ref}"])
        return "\n".join(lines)

    def check(self) -> StabilityCheck:
        """Analyze the history and record a milestone on a new stable window."""
        with self._lock:
            analysis = self.analyze()
            logger.info("Stability check: %s", analysis.message)
            if not analysis.is_stable or self.has_recent_milestone():
                return StabilityCheck(analysis=analysis)

            logger.info("Stability milestone reached at %.3f", analysis.current_score)
            timeout = self._policy.callback_timeout_seconds
            artifact_ref: str | None = None
            if analysis.current_score >= self._policy.min_milestone_score:
                succeeded, result = invoke_callback(
                    "artifact",
                    self.on_artifact,
                    analysis.current_score,
                    analysis.stable_count,
                    timeout=timeout,
                )
                if succeeded and result is not None:
                    artifact_ref = str(result)
            else:
                logger.info(
                    "Score %.3f below %.3f; artifact skipped",
                    analysis.current_score,
                    self._policy.min_milestone_score,
                )

            milestone = StabilityMilestone(
                achieved_at=self._clock(),
                aggregate_score=analysis.current_score,
                stable_count=analysis.stable_count,
                artifact_generated=artifact_ref is not None,
                artifact_ref=artifact_ref,
            )
            items = self._load_milestone_dicts()
            items.append(milestone.to_dict())
            self._save_milestone_dicts(items)

            if self.on_notify is not None:
                succeeded, _ = invoke_callback(
                    "notification",
                    self.on_notify,
                    self._milestone_message(analysis, artifact_ref),
                    timeout=timeout,
                )
                if succeeded:
                    milestone = replace(milestone, notification_sent=True)
                    items[-1] = milestone.to_dict()
                    self._save_milestone_dicts(items)
            return StabilityCheck(analysis=analysis, milestone=milestone)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def status(self) -> dict[str, object]:
        """Return a summary of history, stability and milestones."""
        history = self.measurements()
        analysis = self.analyze()
        milestones = self.milestones()
        return {
            "latest_score": history[-1].aggregate_score if history else None,
            "measurements": len(history),
            "stable_count": analysis.stable_count,
            "required_count": analysis.required_count,
            "is_stable": analysis.is_stable,
            "trend_direction": analysis.trend_direction,
            "milestones": len(milestones),
            "last_milestone": milestones[-1].achieved_at.isoformat() if milestones else None,
        }

    def export_csv(self) -> str:
        """Return the history as CSV, oldest first."""
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=list(CSV_COLUMNS), lineterminator="\n")
        writer.writeheader()
        for measurement in self.measurements():
            writer.writerow(measurement.to_dict())
        return buffer.getvalue()

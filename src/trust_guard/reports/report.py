"""TrustReport — the periodic trust-debt report consumed by the engine.

A report carries total debt units, an overall letter grade, and a
per-category ``{units, grade}`` breakdown. Two layouts are accepted:

Flat::

    {"subject_id": "agent-1", "total_units": 820, "grade": "B",
     "observed_at": "2026-10-01T12:00:00+00:00",
     "categories": {"core_engine": {"units": 300, "grade": "A"}}}

Pipeline (nested)::

    {"metadata": {"timestamp": "..."},
     "trust_debt_calculation": {"total_units": 820, "grade": "B"},
     "category_performance": {"A🚀_CoreEngine": {"units": 300, "grade": "A"}}}

A missing grade is derived from units.
"""
from __future__ import annotations

import datetime
import json
import math
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator


class Grade(str, Enum):
    """Letter grade of a trust-debt total."""

    A = "A"
    B = "B"
    C = "C"
    D = "D"


# Inclusive unit range of each grade. Grade D is open-ended.
GRADE_BOUNDARIES: dict[Grade, tuple[float, float]] = {
    Grade.A: (0.0, 500.0),
    Grade.B: (501.0, 1500.0),
    Grade.C: (1501.0, 3000.0),
    Grade.D: (3001.0, math.inf),
}

GRADE_DESCRIPTIONS: dict[Grade, str] = {
    Grade.A: "EXCELLENT",
    Grade.B: "GOOD",
    Grade.C: "NEEDS ATTENTION",
    Grade.D: "REQUIRES WORK",
}


def units_to_grade(units: float) -> Grade:
    """Return the letter grade for a debt-unit total."""
    if units <= GRADE_BOUNDARIES[Grade.A][1]:
        return Grade.A
    if units <= GRADE_BOUNDARIES[Grade.B][1]:
        return Grade.B
    if units <= GRADE_BOUNDARIES[Grade.C][1]:
        return Grade.C
    return Grade.D


class ReportError(ValueError):
    """Raised when a trust report is missing, unreadable, or malformed."""

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Invalid trust report {self.path!r}: {reason}")


class CategoryGrade(BaseModel):
    """Debt units and grade of one coarse report category."""

    units: float = Field(ge=0.0)
    grade: Optional[Grade] = None

    @model_validator(mode="after")
    def _fill_grade(self) -> "CategoryGrade":
        if self.grade is None:
            self.grade = units_to_grade(self.units)
        return self


class TrustReport(BaseModel):
    """A parsed periodic trust-debt report."""

    total_units: float = Field(ge=0.0)
    grade: Optional[Grade] = None
    categories: dict[str, CategoryGrade] = Field(default_factory=dict)
    observed_at: Optional[datetime.datetime] = None
    subject_id: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_pipeline_layout(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "trust_debt_calculation" not in data:
            return data
        calculation = data.get("trust_debt_calculation")
        metadata = data.get("metadata")
        if not isinstance(calculation, dict):
            calculation = {}
        if not isinstance(metadata, dict):
            metadata = {}
        return {
            "total_units": calculation.get("total_units"),
            "grade": calculation.get("grade"),
            "categories": data.get("category_performance") or {},
            "observed_at": metadata.get("timestamp") or data.get("observed_at"),
            "subject_id": data.get("subject_id"),
        }

    @model_validator(mode="after")
    def _fill_defaults(self) -> "TrustReport":
        if self.grade is None:
            self.grade = units_to_grade(self.total_units)
        if self.observed_at is not None and self.observed_at.tzinfo is None:
            self.observed_at = self.observed_at.replace(tzinfo=datetime.timezone.utc)
        return self


def read_trust_report(path: Path | str) -> TrustReport:
    """Read and validate the report at *path*.

    When the document carries no timestamp, the file's modification time is
    used as ``observed_at``.

    Raises
    ------
    ReportError
        If the file is missing, unreadable, not JSON, or fails validation.
    """
    report_path = Path(path)
    try:
        raw = report_path.read_text(encoding="utf-8")
        stat = report_path.stat()
    except (OSError, UnicodeDecodeError) as exc:
        raise ReportError(report_path, str(exc)) from exc
    try:
        report = TrustReport.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ReportError(report_path, str(exc)) from exc
    if report.observed_at is None:
        mtime = datetime.datetime.fromtimestamp(stat.st_mtime, tz=datetime.timezone.utc)
        report = report.model_copy(update={"observed_at": mtime})
    return report

"""Periodic trust-debt reports and their category-to-dimension mapping."""
from __future__ import annotations

from trust_guard.reports.categories import (
    CATEGORY_DIMENSION_MAP,
    CATEGORY_MAP_VERSION,
    categories_for_dimension,
    dimensions_for_category,
    normalize_category,
    unreachable_dimensions,
)
from trust_guard.reports.report import (
    GRADE_BOUNDARIES,
    GRADE_DESCRIPTIONS,
    CategoryGrade,
    Grade,
    ReportError,
    TrustReport,
    read_trust_report,
    units_to_grade,
)

__all__ = [
    "CATEGORY_DIMENSION_MAP",
    "CATEGORY_MAP_VERSION",
    "CategoryGrade",
    "GRADE_BOUNDARIES",
    "GRADE_DESCRIPTIONS",
    "Grade",
    "ReportError",
    "TrustReport",
    "categories_for_dimension",
    "dimensions_for_category",
    "normalize_category",
    "read_trust_report",
    "unreachable_dimensions",
]

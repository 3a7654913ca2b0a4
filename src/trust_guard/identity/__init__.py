"""Identity loading: trust reports to cached identity vectors."""
from __future__ import annotations

from trust_guard.identity.loader import (
    REPORT_FILENAMES,
    IdentityLoader,
    default_identity,
    identity_from_array,
    identity_to_array,
    resolve_report_path,
)
from trust_guard.reports import (
    CATEGORY_DIMENSION_MAP,
    CATEGORY_MAP_VERSION,
    ReportError,
    TrustReport,
    dimensions_for_category,
    normalize_category,
    read_trust_report,
    unreachable_dimensions,
)

__all__ = [
    "CATEGORY_DIMENSION_MAP",
    "CATEGORY_MAP_VERSION",
    "IdentityLoader",
    "REPORT_FILENAMES",
    "ReportError",
    "TrustReport",
    "default_identity",
    "dimensions_for_category",
    "identity_from_array",
    "identity_to_array",
    "normalize_category",
    "read_trust_report",
    "resolve_report_path",
    "unreachable_dimensions",
]

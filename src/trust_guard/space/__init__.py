"""Fixed-dimension trust vector space and the permission predicate.

Identities and action requirements are sparse maps over twenty named
dimensions. Permission is granted when enough required dimensions are met
(the overlap ratio) and the identity's aggregate score clears the action's
minimum.
"""
from __future__ import annotations

from trust_guard.space.dimensions import (
    DIMENSION_COUNT,
    DIMENSIONS,
    INTEGRITY_DIMENSIONS,
    Dimension,
    dimension_index,
    parse_dimension,
)
from trust_guard.space.permission import (
    DEFAULT_OVERLAP_THRESHOLD,
    ActionRequirement,
    FailedDimension,
    IdentityVector,
    PermissionDecision,
    check_permission,
    compute_overlap,
    cosine_alignment,
    failed_dimensions,
    identity_vector,
    requirement_vector,
)
from trust_guard.space.vector import (
    DimensionMismatchError,
    cosine_similarity,
    dot,
    magnitude,
    to_vector,
)

__all__ = [
    "ActionRequirement",
    "DEFAULT_OVERLAP_THRESHOLD",
    "DIMENSIONS",
    "DIMENSION_COUNT",
    "Dimension",
    "DimensionMismatchError",
    "FailedDimension",
    "INTEGRITY_DIMENSIONS",
    "IdentityVector",
    "PermissionDecision",
    "check_permission",
    "compute_overlap",
    "cosine_alignment",
    "cosine_similarity",
    "dimension_index",
    "dot",
    "failed_dimensions",
    "identity_vector",
    "magnitude",
    "parse_dimension",
    "requirement_vector",
    "to_vector",
]

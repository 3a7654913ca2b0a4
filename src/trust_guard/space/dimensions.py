"""Dimension enum and the fixed ordering of the trust vector space.

Twenty orthogonal behavioural dimensions form the identity vector space.
The declaration order below is the vector-index order: index 0 is
``security``, index 19 is ``ethical_alignment``. It must never change at
runtime; every dense vector in the package is laid out in this order.
"""
from __future__ import annotations

import re
from enum import Enum


class Dimension(str, Enum):
    """The twenty axes of the trust vector space."""

    SECURITY = "security"
    RELIABILITY = "reliability"
    DATA_INTEGRITY = "data_integrity"
    PROCESS_ADHERENCE = "process_adherence"
    CODE_QUALITY = "code_quality"
    TESTING = "testing"
    DOCUMENTATION = "documentation"
    COMMUNICATION = "communication"
    TIME_MANAGEMENT = "time_management"
    RESOURCE_EFFICIENCY = "resource_efficiency"
    RISK_ASSESSMENT = "risk_assessment"
    COMPLIANCE = "compliance"
    INNOVATION = "innovation"
    COLLABORATION = "collaboration"
    ACCOUNTABILITY = "accountability"
    TRANSPARENCY = "transparency"
    ADAPTABILITY = "adaptability"
    DOMAIN_EXPERTISE = "domain_expertise"
    USER_FOCUS = "user_focus"
    ETHICAL_ALIGNMENT = "ethical_alignment"


DIMENSIONS: tuple[Dimension, ...] = tuple(Dimension)

DIMENSION_COUNT: int = len(DIMENSIONS)

# Dimensions tied to integrity of the system or its data. Every irreversible
# action must require at least one of these.
INTEGRITY_DIMENSIONS: frozenset[Dimension] = frozenset(
    {
        Dimension.SECURITY,
        Dimension.DATA_INTEGRITY,
        Dimension.ACCOUNTABILITY,
        Dimension.COMPLIANCE,
    }
)

_SEPARATORS = re.compile(r"[-\s]+")


def parse_dimension(name: str | Dimension) -> Dimension | None:
    """Resolve *name* to a Dimension, or return None when it is not one.

    Matching ignores case and treats hyphens and spaces as underscores, so
    ``"Data Integrity"`` and ``"data-integrity"`` both resolve.
    """
    if isinstance(name, Dimension):
        return name
    normalized = _SEPARATORS.sub("_", str(name).strip()).lower()
    try:
        return Dimension(normalized)
    except ValueError:
        return None


def dimension_index(dimension: Dimension) -> int:
    """Return the vector index of *dimension*."""
    return DIMENSIONS.index(dimension)

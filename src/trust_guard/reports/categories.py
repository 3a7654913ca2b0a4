"""Versioned mapping from external report categories to trust dimensions.

Report producers group their findings into six coarse categories. Each one
reaches four of the twenty internal dimensions; the table below is the only
place that relationship is defined. Category names are normalised before
lookup, so pipeline labels such as ``"A🚀_CoreEngine"`` resolve to
``core_engine``. A category that is not in the table but names a dimension
directly (``"security"``) maps to that dimension alone.

Bump :data:`CATEGORY_MAP_VERSION` whenever the table changes.
"""
from __future__ import annotations

import re

from trust_guard.space.dimensions import DIMENSIONS, Dimension, parse_dimension

CATEGORY_MAP_VERSION: str = "2"

D = Dimension

CATEGORY_DIMENSION_MAP: dict[str, tuple[Dimension, ...]] = {
    "core_engine": (D.CODE_QUALITY, D.TESTING, D.INNOVATION, D.DOMAIN_EXPERTISE),
    "documentation": (D.DOCUMENTATION, D.COMMUNICATION, D.TRANSPARENCY, D.USER_FOCUS),
    "visualization": (D.USER_FOCUS, D.COLLABORATION, D.ADAPTABILITY, D.INNOVATION),
    "integration": (D.RELIABILITY, D.DATA_INTEGRITY, D.PROCESS_ADHERENCE, D.RISK_ASSESSMENT),
    "business_layer": (
        D.ACCOUNTABILITY,
        D.TIME_MANAGEMENT,
        D.RESOURCE_EFFICIENCY,
        D.ETHICAL_ALIGNMENT,
    ),
    "agents": (D.SECURITY, D.COMPLIANCE, D.PROCESS_ADHERENCE, D.RISK_ASSESSMENT),
}

# Leading "<letter><symbols>_" prefix used by pipeline category labels.
_PREFIX = re.compile(r"^[A-Z][^\w]*_")
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")
_SEPARATORS = re.compile(r"[-\s]+")


def normalize_category(name: str) -> str:
    """Return the snake_case lookup key for a report category label.

    >>> normalize_category("A🚀_CoreEngine")
    'core_engine'
    >>> normalize_category("Business Layer")
    'business_layer'
    """
    key = _PREFIX.sub("", name.strip())
    key = _SEPARATORS.sub("_", key)
    if not key.islower() and not key.isupper():
        key = _CAMEL_BOUNDARY.sub("_", key)
    key = key.lower()
    return re.sub(r"_+", "_", key).strip("_")


def dimensions_for_category(name: str) -> tuple[Dimension, ...]:
    """Return the dimensions a report category reaches; empty when unknown."""
    key = normalize_category(name)
    if key in CATEGORY_DIMENSION_MAP:
        return CATEGORY_DIMENSION_MAP[key]
    dimension = parse_dimension(key)
    return (dimension,) if dimension is not None else ()


def categories_for_dimension(dimension: Dimension) -> list[str]:
    """Return the table categories that reach *dimension*, in table order."""
    return [cat for cat, dims in CATEGORY_DIMENSION_MAP.items() if dimension in dims]


def unreachable_dimensions() -> list[Dimension]:
    """Return dimensions no table category reaches; empty for a complete table."""
    reached = {dim for dims in CATEGORY_DIMENSION_MAP.values() for dim in dims}
    return [dim for dim in DIMENSIONS if dim not in reached]

"""Action requirement registry — what each governed action needs."""
from __future__ import annotations

from trust_guard.registry.actions import (
    DEFAULT_REQUIREMENTS,
    ActionAlreadyRegisteredError,
    ActionRegistry,
    RiskLevel,
    risk_level,
    validate_registry,
)

__all__ = [
    "ActionAlreadyRegisteredError",
    "ActionRegistry",
    "DEFAULT_REQUIREMENTS",
    "RiskLevel",
    "risk_level",
    "validate_registry",
]

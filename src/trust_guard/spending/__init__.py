"""Spending authority as a function of the aggregate trust score."""
from __future__ import annotations

from trust_guard.spending.limits import (
    LEVEL_THRESHOLDS,
    BudgetAlert,
    BudgetStatus,
    SpendingAuthority,
    SpendingLevel,
    SpendingRecoveryStep,
    budget_status,
    daily_limit,
    format_authority_report,
    level_for,
    level_limits,
    next_level,
    recovery_path,
    score_needed_for_limit,
    spending_authority,
)

__all__ = [
    "BudgetAlert",
    "BudgetStatus",
    "LEVEL_THRESHOLDS",
    "SpendingAuthority",
    "SpendingLevel",
    "SpendingRecoveryStep",
    "budget_status",
    "daily_limit",
    "format_authority_report",
    "level_for",
    "level_limits",
    "next_level",
    "recovery_path",
    "score_needed_for_limit",
    "spending_authority",
]

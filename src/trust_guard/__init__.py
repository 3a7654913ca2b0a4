"""trust-guard — trust-vector permission checks and trust governance for agents.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import trust_guard
>>> trust_guard.__version__
'0.1.0'

Quick start
-----------
::

    from trust_guard import (
        # Vector space
        Dimension, IdentityVector, ActionRequirement, check_permission,
        # Registry
        ActionRegistry,
        # Aggregate trust
        SovereigntyCalculator, IdentityLoader,
        # Enforcement & audit
        EnforcementInterceptor, DecisionLedger, FailOpenLedger, DenialLedger,
        # Governance
        spending_authority, StabilityMonitor, build_hook,
    )
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ------------------------------------------------------------------
# Configuration
# ------------------------------------------------------------------
from trust_guard.policy import DEFAULT_POLICY, GovernancePolicy

# ------------------------------------------------------------------
# Vector space
# ------------------------------------------------------------------
from trust_guard.space import (
    DIMENSIONS,
    ActionRequirement,
    Dimension,
    DimensionMismatchError,
    FailedDimension,
    IdentityVector,
    PermissionDecision,
    check_permission,
    compute_overlap,
    cosine_similarity,
)

# ------------------------------------------------------------------
# Registry
# ------------------------------------------------------------------
from trust_guard.registry import ActionRegistry, RiskLevel, risk_level, validate_registry

# ------------------------------------------------------------------
# Reports, aggregate trust, identity
# ------------------------------------------------------------------
from trust_guard.reports import Grade, ReportError, TrustReport, read_trust_report
from trust_guard.sovereignty import (
    SovereigntyCalculation,
    SovereigntyCalculator,
    denials_until_near_zero,
    drift_decay,
    raw_score,
)
from trust_guard.identity import IdentityLoader, default_identity

# ------------------------------------------------------------------
# Audit & enforcement
# ------------------------------------------------------------------
from trust_guard.audit import (
    AuditQuery,
    AuditRecord,
    Decision,
    DecisionLedger,
    DenialEvent,
    DenialLedger,
    FailOpenLedger,
)
from trust_guard.enforcement import (
    ActionDeniedError,
    EnforcementInterceptor,
    InterceptOutcome,
    InterceptResult,
    UsageHeatMap,
)

# ------------------------------------------------------------------
# Governance
# ------------------------------------------------------------------
from trust_guard.spending import SpendingAuthority, budget_status, daily_limit, spending_authority
from trust_guard.monitor import StabilityMonitor, analyze_stability
from trust_guard.plugins import BeforeActionHook, build_hook, install_hook, load_hook

__all__ = [
    "__version__",
    # Configuration
    "DEFAULT_POLICY",
    "GovernancePolicy",
    # Vector space
    "ActionRequirement",
    "DIMENSIONS",
    "Dimension",
    "DimensionMismatchError",
    "FailedDimension",
    "IdentityVector",
    "PermissionDecision",
    "check_permission",
    "compute_overlap",
    "cosine_similarity",
    # Registry
    "ActionRegistry",
    "RiskLevel",
    "risk_level",
    "validate_registry",
    # Reports, aggregate trust, identity
    "Grade",
    "IdentityLoader",
    "ReportError",
    "SovereigntyCalculation",
    "SovereigntyCalculator",
    "TrustReport",
    "default_identity",
    "denials_until_near_zero",
    "drift_decay",
    "raw_score",
    "read_trust_report",
    # Audit & enforcement
    "ActionDeniedError",
    "AuditQuery",
    "AuditRecord",
    "Decision",
    "DecisionLedger",
    "DenialEvent",
    "DenialLedger",
    "EnforcementInterceptor",
    "FailOpenLedger",
    "InterceptOutcome",
    "InterceptResult",
    "UsageHeatMap",
    # Governance
    "BeforeActionHook",
    "SpendingAuthority",
    "StabilityMonitor",
    "analyze_stability",
    "budget_status",
    "build_hook",
    "daily_limit",
    "install_hook",
    "load_hook",
    "spending_authority",
]

"""ActionRegistry — static map of action names to their requirements.

Each action specifies which trust dimensions it needs, the minimum score on
each, and a minimum aggregate score. Minimums are set by blast radius and
reversibility:

    0.1 - 0.3   low risk, reversible (reads, basic queries)
    0.4 - 0.6   medium risk (writes, non-critical updates)
    0.7 - 0.8   high risk (pushes, deployments, destructive data changes)
    0.9+        critical (force pushes, payments)

Lookups are pure reads; an unknown action is reported as absence (None /
False), never as an error. The risk label is derived from ``min_aggregate``
and used for display only.
"""
from __future__ import annotations

import threading
from collections.abc import Iterable
from enum import Enum

from trust_guard.space.dimensions import INTEGRITY_DIMENSIONS, Dimension
from trust_guard.space.permission import ActionRequirement

D = Dimension


class RiskLevel(str, Enum):
    """Display label derived from an action's aggregate minimum."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def risk_level(min_aggregate: float) -> RiskLevel:
    """Map an aggregate minimum to its risk band.

    Bands: < 0.4 low, < 0.7 medium, < 0.9 high, otherwise critical.
    """
    if min_aggregate >= 0.9:
        return RiskLevel.CRITICAL
    if min_aggregate >= 0.7:
        return RiskLevel.HIGH
    if min_aggregate >= 0.4:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _req(
    name: str,
    scores: dict[Dimension, float],
    min_aggregate: float,
    description: str,
    irreversible: bool = False,
) -> ActionRequirement:
    return ActionRequirement(
        action_name=name,
        required_scores=scores,
        min_aggregate=min_aggregate,
        description=description,
        irreversible=irreversible,
    )


DEFAULT_REQUIREMENTS: tuple[ActionRequirement, ...] = (
    # Shell & system
    _req("shell_execute", {D.SECURITY: 0.7, D.RELIABILITY: 0.5}, 0.6,
         "Execute arbitrary shell commands"),
    # File system
    _req("file_read", {D.SECURITY: 0.3}, 0.1, "Read files from disk"),
    _req("file_write", {D.RELIABILITY: 0.4, D.DATA_INTEGRITY: 0.3}, 0.2,
         "Write files to disk"),
    _req("file_delete", {D.SECURITY: 0.6, D.RELIABILITY: 0.6}, 0.5,
         "Delete files from disk", irreversible=True),
    # Git
    _req("git_commit", {D.CODE_QUALITY: 0.5, D.DOCUMENTATION: 0.4}, 0.4,
         "Create local git commit"),
    _req("git_push", {D.CODE_QUALITY: 0.7, D.TESTING: 0.6, D.SECURITY: 0.5}, 0.7,
         "Push commits to git remote"),
    _req("git_force_push",
         {D.CODE_QUALITY: 0.9, D.TESTING: 0.8, D.SECURITY: 0.8, D.RELIABILITY: 0.7}, 0.9,
         "Force push to git remote (rewrites history)", irreversible=True),
    _req("git_branch_delete",
         {D.RELIABILITY: 0.6, D.CODE_QUALITY: 0.5, D.ACCOUNTABILITY: 0.5}, 0.6,
         "Delete git branch", irreversible=True),
    # CRM & data
    _req("crm_create_lead", {D.DATA_INTEGRITY: 0.4, D.PROCESS_ADHERENCE: 0.3}, 0.2,
         "Create new CRM lead"),
    _req("crm_update_lead", {D.DATA_INTEGRITY: 0.5, D.PROCESS_ADHERENCE: 0.4}, 0.3,
         "Update CRM lead data"),
    _req("crm_delete_lead",
         {D.DATA_INTEGRITY: 0.7, D.SECURITY: 0.5, D.ACCOUNTABILITY: 0.6}, 0.6,
         "Delete CRM lead", irreversible=True),
    _req("database_write",
         {D.DATA_INTEGRITY: 0.7, D.SECURITY: 0.6, D.RELIABILITY: 0.5}, 0.6,
         "Write to database (INSERT/UPDATE)"),
    _req("database_delete",
         {D.DATA_INTEGRITY: 0.8, D.SECURITY: 0.7, D.ACCOUNTABILITY: 0.7}, 0.7,
         "Delete from database", irreversible=True),
    # Communication
    _req("send_message", {D.COMMUNICATION: 0.5, D.ACCOUNTABILITY: 0.4}, 0.3,
         "Send message to an external channel"),
    _req("send_email",
         {D.COMMUNICATION: 0.6, D.ACCOUNTABILITY: 0.5, D.TRANSPARENCY: 0.4}, 0.5,
         "Send outbound email", irreversible=True),
    _req("send_sms", {D.COMMUNICATION: 0.6, D.ACCOUNTABILITY: 0.5}, 0.5,
         "Send SMS message", irreversible=True),
    _req("post_public",
         {D.COMMUNICATION: 0.7, D.ACCOUNTABILITY: 0.6, D.TRANSPARENCY: 0.5}, 0.6,
         "Publish a post to a public social channel", irreversible=True),
    # Deployment & infrastructure
    _req("deploy_staging", {D.CODE_QUALITY: 0.6, D.TESTING: 0.5, D.SECURITY: 0.5}, 0.5,
         "Deploy to staging environment"),
    _req("deploy",
         {D.CODE_QUALITY: 0.8, D.TESTING: 0.7, D.SECURITY: 0.6, D.RELIABILITY: 0.7}, 0.8,
         "Deploy to production"),
    _req("restart_service", {D.RELIABILITY: 0.7, D.SECURITY: 0.5}, 0.6,
         "Restart production service"),
    _req("modify_config",
         {D.SECURITY: 0.7, D.RELIABILITY: 0.6, D.PROCESS_ADHERENCE: 0.5}, 0.6,
         "Modify production configuration"),
    # API & external systems
    _req("api_call_readonly", {D.SECURITY: 0.3}, 0.2, "Make read-only API call (GET)"),
    _req("api_call_mutating",
         {D.DATA_INTEGRITY: 0.5, D.SECURITY: 0.5, D.RELIABILITY: 0.4}, 0.4,
         "Make mutating API call (POST/PUT/DELETE)"),
    _req("webhook_trigger", {D.RELIABILITY: 0.5, D.ACCOUNTABILITY: 0.5}, 0.4,
         "Trigger external webhook"),
    # Payment & financial
    _req("payment_initiate",
         {D.DATA_INTEGRITY: 0.9, D.SECURITY: 0.9, D.ACCOUNTABILITY: 0.8, D.COMPLIANCE: 0.8},
         0.9, "Initiate payment transaction", irreversible=True),
    _req("payment_refund",
         {D.DATA_INTEGRITY: 0.8, D.SECURITY: 0.7, D.ACCOUNTABILITY: 0.7, D.COMPLIANCE: 0.7},
         0.8, "Process payment refund", irreversible=True),
    _req("wallet_transfer",
         {D.DATA_INTEGRITY: 0.8, D.SECURITY: 0.8, D.ACCOUNTABILITY: 0.7}, 0.7,
         "Transfer funds between wallets", irreversible=True),
    # User management
    _req("user_create",
         {D.SECURITY: 0.5, D.DATA_INTEGRITY: 0.4, D.COMPLIANCE: 0.4}, 0.4,
         "Create new user account"),
    _req("user_delete",
         {D.SECURITY: 0.8, D.DATA_INTEGRITY: 0.7, D.ACCOUNTABILITY: 0.7, D.COMPLIANCE: 0.7},
         0.8, "Delete user account", irreversible=True),
    _req("permission_grant",
         {D.SECURITY: 0.8, D.ACCOUNTABILITY: 0.7, D.COMPLIANCE: 0.6}, 0.7,
         "Grant permissions to user"),
    _req("permission_revoke", {D.SECURITY: 0.7, D.ACCOUNTABILITY: 0.6}, 0.6,
         "Revoke permissions from user"),
)


class ActionAlreadyRegisteredError(ValueError):
    """Raised when registering an action name that already exists."""

    def __init__(self, action_name: str) -> None:
        super().__init__(f"Action {action_name!r} is already registered.")


class ActionRegistry:
    """Keyed lookup of action requirements.

    Thread-safe. The default instance holds :data:`DEFAULT_REQUIREMENTS`;
    deployments that govern additional tools build their own registry and
    :meth:`register` the extra requirements once at start-up.

    Parameters
    ----------
    requirements:
        Initial requirements. Defaults to :data:`DEFAULT_REQUIREMENTS`.
    """

    def __init__(self, requirements: Iterable[ActionRequirement] | None = None) -> None:
        self._requirements: dict[str, ActionRequirement] = {}
        self._lock = threading.Lock()
        for requirement in DEFAULT_REQUIREMENTS if requirements is None else requirements:
            self.register(requirement)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, requirement: ActionRequirement) -> None:
        """Add *requirement* to the registry.

        Raises
        ------
        ActionAlreadyRegisteredError
            If an action with the same name already exists.
        """
        with self._lock:
            if requirement.action_name in self._requirements:
                raise ActionAlreadyRegisteredError(requirement.action_name)
            self._requirements[requirement.action_name] = requirement

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, action_name: str) -> ActionRequirement | None:
        """Return the requirement for *action_name*, or None if unregistered."""
        with self._lock:
            return self._requirements.get(action_name)

    def has(self, action_name: str) -> bool:
        """Return True if *action_name* is registered."""
        with self._lock:
            return action_name in self._requirements

    def names(self) -> list[str]:
        """Return registered action names in registration order."""
        with self._lock:
            return list(self._requirements)

    def list(self) -> list[ActionRequirement]:
        """Return every registered requirement in registration order."""
        with self._lock:
            return list(self._requirements.values())

    def filter_by_min_aggregate(self, aggregate_score: float) -> list[ActionRequirement]:
        """Return actions whose aggregate minimum is at most *aggregate_score*."""
        return [r for r in self.list() if r.min_aggregate <= aggregate_score]

    def filter_by_dimension(self, dimension: Dimension) -> list[ActionRequirement]:
        """Return actions that require *dimension*."""
        return [r for r in self.list() if dimension in r.required_scores]

    def __len__(self) -> int:
        with self._lock:
            return len(self._requirements)

    def __contains__(self, action_name: object) -> bool:
        with self._lock:
            return action_name in self._requirements


def validate_registry(registry: ActionRegistry) -> list[str]:
    """Return authoring violations in *registry*; an empty list means clean.

    Every irreversible action must register ``min_aggregate >= 0.5`` and
    require at least one integrity-tied dimension (security, data
    integrity, accountability, or compliance).
    """
    violations: list[str] = []
    for requirement in registry.list():
        if not requirement.irreversible:
            continue
        if requirement.min_aggregate < 0.5:
            violations.append(
                f"{requirement.action_name}: irreversible action has "
                f"min_aggregate {requirement.min_aggregate} < 0.5"
            )
        if not INTEGRITY_DIMENSIONS.intersection(requirement.required_scores):
            violations.append(
                f"{requirement.action_name}: irreversible action requires no "
                "integrity-tied dimension"
            )
    return violations

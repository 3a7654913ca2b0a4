"""EnforcementInterceptor — trust-gated wrapper around action execution.

One long-lived interceptor guards one subject. For every call it:

1. lets exempt callers straight through;
2. fails open (allows and logs the gap to the fail-open ledger) when the
   caller maps to no action or the action has no registered requirement;
3. otherwise evaluates the permission predicate against the current
   identity, records the decision, and on DENY counts consecutive denials.
   When the count reaches the policy threshold the drift-correction callback
   fires and the count resets, whether or not the callback succeeds.

Denials are persisted to the denial ledger. On :meth:`reload_identity` the
fresh report's aggregate score is decayed by the denials recorded since that
report was produced, so enforcement history erodes future trust.
"""
from __future__ import annotations

import functools
import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, TypeVar

from trust_guard._callbacks import invoke_callback
from trust_guard.audit.ledger import DecisionLedger, DenialLedger, FailOpenLedger
from trust_guard.audit.records import AuditRecord, DenialEvent, FailOpenReason, FailOpenRecord
from trust_guard.enforcement.heat import UsageHeatMap
from trust_guard.identity.loader import IdentityLoader, default_identity
from trust_guard.policy import DEFAULT_POLICY, GovernancePolicy
from trust_guard.registry.actions import ActionRegistry
from trust_guard.sovereignty.calculator import decay_identity
from trust_guard.space.permission import IdentityVector, PermissionDecision, check_permission

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

DEFAULT_CALLER_ACTIONS: dict[str, str] = {
    "shell-bridge": "shell_execute",
    "system-control": "shell_execute",
    "email-outbound": "send_email",
    "artifact-generator": "file_write",
    "wallet-ledger": "file_write",
}

# Internal-only callers with no external side effects.
DEFAULT_EXEMPT_CALLERS: frozenset[str] = frozenset(
    {"categorizer", "model-trainer", "llm-controller", "cost-reporter"}
)


class ActionDeniedError(Exception):
    """Raised when a governed action is denied.

    Parameters
    ----------
    action_name:
        The denied action.
    caller_name:
        The caller that requested it.
    decision:
        The full permission decision, including failed dimensions.
    """

    def __init__(self, action_name: str, caller_name: str, decision: PermissionDecision) -> None:
        self.action_name = action_name
        self.caller_name = caller_name
        self.decision = decision
        super().__init__(
            f"Action {action_name!r} denied for caller {caller_name!r}: {decision.explain()}"
        )


class InterceptOutcome(str, Enum):
    EXEMPT = "exempt"
    FAIL_OPEN = "fail_open"
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class InterceptResult:
    """What the interceptor decided for one call.

    ``decision`` is set only for evaluated (ALLOW or DENY) calls.
    """

    proceed: bool
    outcome: InterceptOutcome
    caller_name: str
    action_name: Optional[str] = None
    decision: Optional[PermissionDecision] = None
    message: str = ""


class EnforcementInterceptor:
    """Stateful permission gate for one subject.

    Parameters
    ----------
    loader:
        Source of identity vectors. If None, *identity* (or the default
        identity) is used and never reloaded.
    registry:
        Action requirements. Defaults to the built-in registry.
    decision_ledger:
        Receives one record per evaluated decision.
    fail_open_ledger:
        Receives one record per fail-open call.
    denial_ledger:
        Receives one :class:`DenialEvent` per denial; also the source of
        drift events on reload.
    heat_map:
        Optional usage-heat side channel.
    policy:
        Thresholds and rates. Defaults to :data:`DEFAULT_POLICY`.
    subject_id:
        Subject whose identity gates the calls.
    session_id:
        Optional host session identifier recorded with every event.
    caller_actions:
        Caller name to action name. Defaults to :data:`DEFAULT_CALLER_ACTIONS`.
    exempt_callers:
        Callers that bypass evaluation. Defaults to :data:`DEFAULT_EXEMPT_CALLERS`.
    on_denial:
        Called with each :class:`DenialEvent`.
    on_drift_threshold:
        Called with no arguments when consecutive denials reach the threshold.
    identity:
        Initial identity, used instead of loading one.
    """

    def __init__(
        self,
        loader: IdentityLoader | None = None,
        registry: ActionRegistry | None = None,
        decision_ledger: DecisionLedger | None = None,
        fail_open_ledger: FailOpenLedger | None = None,
        denial_ledger: DenialLedger | None = None,
        heat_map: UsageHeatMap | None = None,
        policy: GovernancePolicy | None = None,
        subject_id: str = "system",
        session_id: str | None = None,
        caller_actions: Mapping[str, str] | None = None,
        exempt_callers: Iterable[str] | None = None,
        on_denial: Callable[[DenialEvent], Any] | None = None,
        on_drift_threshold: Callable[[], Any] | None = None,
        identity: IdentityVector | None = None,
    ) -> None:
        self._loader = loader
        self._registry = registry or ActionRegistry()
        self._decision_ledger = decision_ledger or DecisionLedger()
        self._fail_open_ledger = fail_open_ledger or FailOpenLedger()
        self._denial_ledger = denial_ledger or DenialLedger()
        self._heat_map = heat_map
        self._policy = policy or DEFAULT_POLICY
        self._subject_id = subject_id
        self._session_id = session_id
        self._caller_actions = dict(
            DEFAULT_CALLER_ACTIONS if caller_actions is None else caller_actions
        )
        self._exempt = frozenset(DEFAULT_EXEMPT_CALLERS if exempt_callers is None else exempt_callers)
        self.on_denial = on_denial
        self.on_drift_threshold = on_drift_threshold

        self._lock = threading.Lock()
        self._consecutive_denials = 0
        self._total_denials = 0
        if identity is not None:
            self._identity = identity
        else:
            self._identity = default_identity(subject_id, self._policy.default_identity_score)
            if loader is not None:
                self.reload_identity()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def identity(self) -> IdentityVector:
        with self._lock:
            return self._identity

    @property
    def consecutive_denials(self) -> int:
        with self._lock:
            return self._consecutive_denials

    @property
    def total_denials(self) -> int:
        with self._lock:
            return self._total_denials

    def reload_identity(self) -> IdentityVector:
        """Re-read the latest report and reset the consecutive-denial count.

        The report's aggregate is decayed by the denials recorded since the
        report was produced.
        """
        if self._loader is not None:
            self._loader.invalidate(self._subject_id)
            loaded = self._loader.load(self._subject_id)
            drift_events = self._denial_ledger.count_since(loaded.observed_at, self._subject_id)
            identity = decay_identity(loaded, drift_events, self._policy.drift_rate)
            logger.info(
                "Identity for %r reloaded: aggregate %.3f (%d drift events applied)",
                self._subject_id,
                identity.aggregate_score,
                drift_events,
            )
        else:
            identity = self.identity
        with self._lock:
            self._identity = identity
            self._consecutive_denials = 0
        return identity

    def stats(self) -> dict[str, object]:
        """Return denial counters and the current aggregate score."""
        with self._lock:
            return {
                "subject_id": self._subject_id,
                "total_denials": self._total_denials,
                "consecutive_denials": self._consecutive_denials,
                "aggregate_score": self._identity.aggregate_score,
            }

    # ------------------------------------------------------------------
    # Interception
    # ------------------------------------------------------------------

    def _fail_open(
        self, caller_name: str, action_name: str | None, reason: FailOpenReason
    ) -> InterceptResult:
        logger.warning(
            "Fail-open for caller %r (action %r): %s", caller_name, action_name, reason.value
        )
        self._fail_open_ledger.record(
            FailOpenRecord(
                caller_name=caller_name,
                reason=reason,
                action_name=action_name,
                subject_id=self._subject_id,
                session_id=self._session_id,
            )
        )
        return InterceptResult(
            proceed=True,
            outcome=InterceptOutcome.FAIL_OPEN,
            caller_name=caller_name,
            action_name=action_name,
            message=f"No requirement applies ({reason.value}); allowed",
        )

    def _update_heat(self, action_name: str, allowed: bool, aggregate: float) -> None:
        if self._heat_map is None:
            return
        try:
            self._heat_map.update(action_name, allowed, aggregate)
        except Exception:
            logger.exception("Usage heat update failed for %r", action_name)

    def intercept(
        self,
        caller_name: str,
        action_name: str | None = None,
        parameters: Mapping[str, Any] | None = None,
    ) -> InterceptResult:
        """Decide whether the call from *caller_name* may proceed.

        Parameters
        ----------
        caller_name:
            Tool or function name requesting the action.
        action_name:
            Explicit action; when None it is looked up from the caller map.
        parameters:
            Call parameters, logged at debug level only.

        Returns
        -------
        InterceptResult
        """
        if caller_name in self._exempt:
            logger.debug("Caller %r is exempt from enforcement", caller_name)
            return InterceptResult(
                proceed=True, outcome=InterceptOutcome.EXEMPT, caller_name=caller_name
            )

        resolved = action_name or self._caller_actions.get(caller_name)
        if resolved is None:
            return self._fail_open(caller_name, None, FailOpenReason.UNKNOWN_CALLER)
        requirement = self._registry.get(resolved)
        if requirement is None:
            return self._fail_open(caller_name, resolved, FailOpenReason.UNREGISTERED_ACTION)

        identity = self.identity
        decision = check_permission(identity, requirement, self._policy.overlap_threshold)
        if parameters:
            logger.debug("Evaluated %r with parameters %r", resolved, dict(parameters))
        self._decision_ledger.record(
            AuditRecord.from_decision(
                decision,
                action_name=resolved,
                caller_name=caller_name,
                subject_id=self._subject_id,
                session_id=self._session_id,
            )
        )

        if decision.allowed:
            with self._lock:
                self._consecutive_denials = 0
            self._update_heat(resolved, True, identity.aggregate_score)
            return InterceptResult(
                proceed=True,
                outcome=InterceptOutcome.ALLOW,
                caller_name=caller_name,
                action_name=resolved,
                decision=decision,
                message=decision.explain(),
            )

        with self._lock:
            self._consecutive_denials += 1
            self._total_denials += 1
            consecutive = self._consecutive_denials
            total = self._total_denials
            drift = consecutive >= self._policy.denial_threshold
            if drift:
                self._consecutive_denials = 0

        explanation = decision.explain()
        logger.warning(
            "Denied %r (action %r): %s (%d consecutive denials)",
            caller_name,
            resolved,
            explanation,
            consecutive,
        )
        event = DenialEvent(
            action_name=resolved,
            caller_name=caller_name,
            subject_id=self._subject_id,
            consecutive_denials=consecutive,
            total_denials=total,
            explanation=explanation,
            failed_dimensions=decision.failed_dimensions,
            session_id=self._session_id,
        )
        self._denial_ledger.record(event)
        timeout = self._policy.callback_timeout_seconds
        invoke_callback("denial", self.on_denial, event, timeout=timeout)

        if drift:
            logger.warning(
                "%d consecutive denials for %r; triggering drift correction",
                consecutive,
                self._subject_id,
            )
            invoke_callback("drift-threshold", self.on_drift_threshold, timeout=timeout)

        self._update_heat(resolved, False, identity.aggregate_score)
        return InterceptResult(
            proceed=False,
            outcome=InterceptOutcome.DENY,
            caller_name=caller_name,
            action_name=resolved,
            decision=decision,
            message=f"Denied {caller_name!r} (action {resolved!r}): {explanation}",
        )

    def enforce(
        self,
        caller_name: str,
        action_name: str | None = None,
        parameters: Mapping[str, Any] | None = None,
    ) -> InterceptResult:
        """Like :meth:`intercept`, but raise on denial.

        Raises
        ------
        ActionDeniedError
            If the call is denied.
        """
        result = self.intercept(caller_name, action_name, parameters)
        if not result.proceed:
            assert result.decision is not None and result.action_name is not None
            raise ActionDeniedError(result.action_name, caller_name, result.decision)
        return result

    def execute(
        self,
        caller_name: str,
        fn: Callable[..., Any],
        *args: Any,
        action_name: str | None = None,
        **kwargs: Any,
    ) -> Any:
        """Run ``fn(*args, **kwargs)`` only if the call is permitted.

        Raises
        ------
        ActionDeniedError
            If the call is denied; *fn* is not invoked.
        """
        self.enforce(caller_name, action_name, kwargs or None)
        return fn(*args, **kwargs)

    def guarded(self, caller_name: str, action_name: str | None = None) -> Callable[[F], F]:
        """Decorator form of :meth:`execute`."""

        def decorator(fn: F) -> F:
            @functools.wraps(fn)
            def wrapper(*args: Any, **kwargs: Any) -> Any:
                return self.execute(caller_name, fn, *args, action_name=action_name, **kwargs)

            return wrapper  # type: ignore[return-value]

        return decorator

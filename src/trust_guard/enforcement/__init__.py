"""Enforcement: the stateful permission gate and its usage-heat side channel."""
from __future__ import annotations

from trust_guard.audit.records import DenialEvent
from trust_guard.enforcement.heat import HeatCell, HeatState, UsageHeatMap
from trust_guard.enforcement.interceptor import (
    DEFAULT_CALLER_ACTIONS,
    DEFAULT_EXEMPT_CALLERS,
    ActionDeniedError,
    EnforcementInterceptor,
    InterceptOutcome,
    InterceptResult,
)

__all__ = [
    "ActionDeniedError",
    "DEFAULT_CALLER_ACTIONS",
    "DEFAULT_EXEMPT_CALLERS",
    "DenialEvent",
    "EnforcementInterceptor",
    "HeatCell",
    "HeatState",
    "InterceptOutcome",
    "InterceptResult",
    "UsageHeatMap",
]

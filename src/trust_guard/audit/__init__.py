"""Durable append-only audit trail of enforcement decisions."""
from __future__ import annotations

from trust_guard.audit.ledger import (
    AuditQuery,
    AuditStats,
    DecisionLedger,
    DenialLedger,
    FailOpenLedger,
    JsonlLedger,
)
from trust_guard.audit.records import (
    AuditRecord,
    Decision,
    DenialEvent,
    FailOpenReason,
    FailOpenRecord,
)

__all__ = [
    "AuditQuery",
    "AuditRecord",
    "AuditStats",
    "Decision",
    "DecisionLedger",
    "DenialEvent",
    "DenialLedger",
    "FailOpenLedger",
    "FailOpenReason",
    "FailOpenRecord",
    "JsonlLedger",
]

"""Tests for trust_guard.audit — records, JSONL ledgers, query and statistics."""
from __future__ import annotations

import datetime
import json
import logging
import threading
from pathlib import Path

import pytest

from trust_guard.audit import (
    AuditQuery,
    AuditRecord,
    Decision,
    DecisionLedger,
    DenialEvent,
    DenialLedger,
    FailOpenLedger,
    FailOpenReason,
    FailOpenRecord,
)
from trust_guard.space import (
    ActionRequirement,
    Dimension,
    FailedDimension,
    IdentityVector,
    check_permission,
)

UTC = datetime.timezone.utc
T0 = datetime.datetime(2026, 10, 1, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _record(
    decision: Decision = Decision.ALLOW,
    action: str = "file_read",
    caller: str = "reader",
    minutes: int = 0,
    subject: str = "system",
    session: str | None = None,
    overlap: float = 1.0,
    aggregate: float = 0.8,
) -> AuditRecord:
    return AuditRecord(
        decision=decision,
        action_name=action,
        caller_name=caller,
        overlap_ratio=overlap,
        aggregate_score=aggregate,
        overlap_threshold=0.8,
        min_aggregate=0.5,
        subject_id=subject,
        session_id=session,
        decided_at=T0 + datetime.timedelta(minutes=minutes),
    )


def _denial(subject: str = "system", minutes: int = 0) -> DenialEvent:
    return DenialEvent(
        action_name="shell_execute",
        caller_name="shell-bridge",
        subject_id=subject,
        consecutive_denials=1,
        total_denials=1,
        explanation="DENY",
        occurred_at=T0 + datetime.timedelta(minutes=minutes),
    )


@pytest.fixture()
def ledger_path(tmp_path: Path) -> Path:
    return tmp_path / "audit" / "decisions.jsonl"


@pytest.fixture()
def populated() -> DecisionLedger:
    ledger = DecisionLedger()
    ledger.record(_record(Decision.ALLOW, "file_read", "reader", 0, overlap=1.0, aggregate=0.9))
    ledger.record(_record(Decision.DENY, "shell_execute", "shell-bridge", 1, overlap=0.5, aggregate=0.4))
    ledger.record(_record(Decision.DENY, "git_push", "git-tool", 2, overlap=0.0, aggregate=0.4))
    ledger.record(_record(Decision.DENY, "shell_execute", "shell-bridge", 3, session="s1", overlap=0.5))
    ledger.record(_record(Decision.ALLOW, "file_write", "writer", 4, subject="agent-2"))
    return ledger


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class TestAuditRecord:
    def test_from_decision(self) -> None:
        identity = IdentityVector("agent-1", {Dimension.SECURITY: 0.2}, 0.9)
        requirement = ActionRequirement("shell_execute", {Dimension.SECURITY: 0.7}, 0.6)
        decision = check_permission(identity, requirement)
        record = AuditRecord.from_decision(decision, "shell_execute", "shell-bridge", "agent-1", "s1")
        assert record.decision is Decision.DENY
        assert record.overlap_ratio == 0.0
        assert record.failed_dimensions == decision.failed_dimensions
        assert record.decided_at == decision.decided_at
        assert record.session_id == "s1"

    def test_dict_round_trip(self) -> None:
        record = AuditRecord(
            decision=Decision.DENY,
            action_name="git_push",
            caller_name="git-tool",
            overlap_ratio=0.33,
            aggregate_score=0.61,
            overlap_threshold=0.8,
            min_aggregate=0.7,
            failed_dimensions=(FailedDimension(Dimension.TESTING, 0.2, 0.6),),
            subject_id="agent-1",
            session_id="s-9",
            decided_at=T0,
        )
        assert AuditRecord.from_dict(json.loads(json.dumps(record.to_dict()))) == record

    def test_fail_open_record_without_action(self) -> None:
        record = FailOpenRecord("mystery-tool", FailOpenReason.UNKNOWN_CALLER, occurred_at=T0)
        restored = FailOpenRecord.from_dict(record.to_dict())
        assert restored == record
        assert restored.action_name is None


# ---------------------------------------------------------------------------
# JSONL storage
# ---------------------------------------------------------------------------


class TestJsonlStorage:
    def test_appends_one_line_per_record(self, ledger_path: Path) -> None:
        ledger = DecisionLedger(ledger_path)
        assert ledger.record(_record()) is True
        assert ledger.record(_record(Decision.DENY)) is True
        lines = ledger_path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert json.loads(lines[1])["decision"] == "DENY"

    def test_records_in_append_order(self, ledger_path: Path) -> None:
        ledger = DecisionLedger(ledger_path)
        for minute in (5, 1, 3):
            ledger.record(_record(minutes=minute))
        assert [r.decided_at.minute for r in ledger.records()] == [5, 1, 3]

    def test_reopened_ledger_sees_history(self, ledger_path: Path) -> None:
        DecisionLedger(ledger_path).record(_record())
        assert len(DecisionLedger(ledger_path)) == 1

    def test_missing_file_is_empty(self, ledger_path: Path) -> None:
        assert DecisionLedger(ledger_path).records() == []

    def test_malformed_lines_skipped(self, ledger_path: Path) -> None:
        ledger = DecisionLedger(ledger_path)
        ledger.record(_record())
        with ledger_path.open("a", encoding="utf-8") as fh:
            fh.write("{not json\n\n[1, 2]\n")
            fh.write(json.dumps({"decision": "MAYBE"}) + "\n")
        ledger.record(_record(Decision.DENY))
        assert len(ledger.read_entries()) == 3
        assert [r.decision for r in ledger.records()] == [Decision.ALLOW, Decision.DENY]

    def test_undecodable_lines_skipped(self, tmp_path: Path) -> None:
        path = tmp_path / "denials.jsonl"
        ledger = DenialLedger(path)
        ledger.record(_denial())
        with path.open("ab") as fh:
            fh.write(b"\xff\xfe\n")
        ledger.record(_denial(minutes=1))
        assert ledger.count_since(None) == 2

    def test_unreadable_path_reads_empty(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        directory = tmp_path / "decisions.jsonl"
        directory.mkdir()
        with caplog.at_level(logging.ERROR, logger="trust_guard.audit.ledger"):
            assert DecisionLedger(directory).records() == []
        assert "Failed to read ledger" in caplog.text

    def test_memory_buffer(self) -> None:
        ledger = DecisionLedger()
        ledger.record(_record())
        assert len(ledger) == 1
        drained = ledger.drain_buffer()
        assert len(drained) == 1
        assert len(ledger) == 0

    def test_file_lock_append(self, ledger_path: Path) -> None:
        ledger = DecisionLedger(ledger_path, use_file_lock=True)
        assert ledger.record(_record()) is True
        assert len(ledger) == 1

    def test_write_failure_is_logged_not_raised(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("x", encoding="utf-8")
        ledger = DecisionLedger(blocker / "decisions.jsonl")
        with caplog.at_level(logging.ERROR, logger="trust_guard.audit.ledger"):
            assert ledger.record(_record()) is False
        assert "Failed to append AuditRecord" in caplog.text

    def test_concurrent_appends(self, ledger_path: Path) -> None:
        ledger = DecisionLedger(ledger_path)

        def write_batch() -> None:
            for _ in range(25):
                ledger.record(_record())

        threads = [threading.Thread(target=write_batch) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len(ledger.records()) == 100


# ---------------------------------------------------------------------------
# Query and statistics
# ---------------------------------------------------------------------------


class TestAuditQuery:
    def test_empty_query_matches_all(self, populated: DecisionLedger) -> None:
        assert len(populated.query()) == 5

    def test_filter_by_decision(self, populated: DecisionLedger) -> None:
        assert len(populated.query(AuditQuery(decision=Decision.DENY))) == 3

    def test_conjunctive_filters(self, populated: DecisionLedger) -> None:
        query = AuditQuery(decision=Decision.DENY, caller_name="shell-bridge", session_id="s1")
        results = populated.query(query)
        assert len(results) == 1
        assert results[0].decided_at == T0 + datetime.timedelta(minutes=3)

    def test_subject_filter(self, populated: DecisionLedger) -> None:
        assert [r.action_name for r in populated.query(AuditQuery(subject_id="agent-2"))] == [
            "file_write"
        ]

    def test_time_range_is_half_open(self, populated: DecisionLedger) -> None:
        query = AuditQuery(
            start=T0 + datetime.timedelta(minutes=1),
            end=T0 + datetime.timedelta(minutes=3),
        )
        assert [r.decided_at.minute for r in populated.query(query)] == [1, 2]

    def test_naive_bounds_are_utc(self, populated: DecisionLedger) -> None:
        query = AuditQuery(
            start=datetime.datetime(2026, 10, 1, 12, 1),
            end=datetime.datetime(2026, 10, 1, 12, 3),
        )
        assert query.start is not None and query.start.tzinfo is UTC
        assert [r.decided_at.minute for r in populated.query(query)] == [1, 2]
        assert len(populated.query(AuditQuery(start=datetime.datetime(2000, 1, 1)))) == 5


class TestAuditStats:
    def test_totals(self, populated: DecisionLedger) -> None:
        stats = populated.stats()
        assert stats.total == 5
        assert stats.allowed == 2
        assert stats.denied == 3
        assert stats.allow_rate == pytest.approx(0.4)
        assert stats.mean_overlap == pytest.approx((1.0 + 0.5 + 0.0 + 0.5 + 1.0) / 5)

    def test_top_denied(self, populated: DecisionLedger) -> None:
        stats = populated.stats()
        assert stats.top_denied_actions == [("shell_execute", 2), ("git_push", 1)]
        assert stats.top_denied_callers[0] == ("shell-bridge", 2)

    def test_ties_keep_discovery_order(self) -> None:
        ledger = DecisionLedger()
        for action in ("b_action", "a_action", "c_action"):
            ledger.record(_record(Decision.DENY, action))
        assert [name for name, _ in ledger.stats(top_n=2).top_denied_actions] == [
            "b_action",
            "a_action",
        ]

    def test_empty_ledger(self) -> None:
        stats = DecisionLedger().stats()
        assert stats.total == 0
        assert stats.allow_rate == 0.0
        assert stats.top_denied_actions == []

    def test_to_dict(self, populated: DecisionLedger) -> None:
        data = populated.stats(AuditQuery(decision=Decision.DENY)).to_dict()
        assert data["allow_rate"] == 0.0
        assert data["top_denied_actions"] == [["shell_execute", 2], ["git_push", 1]]


# ---------------------------------------------------------------------------
# Fail-open and denial ledgers
# ---------------------------------------------------------------------------


class TestFailOpenLedger:
    def test_gaps_grouped_by_action_or_caller(self) -> None:
        ledger = FailOpenLedger()
        ledger.record(FailOpenRecord("mystery", FailOpenReason.UNKNOWN_CALLER))
        ledger.record(FailOpenRecord("mystery", FailOpenReason.UNKNOWN_CALLER))
        ledger.record(FailOpenRecord("x", FailOpenReason.UNREGISTERED_ACTION, "launch_rocket"))
        assert ledger.gaps() == {"mystery": 2, "launch_rocket": 1}


class TestDenialLedger:
    def test_count_since(self, tmp_path: Path) -> None:
        ledger = DenialLedger(tmp_path / "denials.jsonl")
        for minute in (0, 5, 10):
            ledger.record(_denial(minutes=minute))
        assert ledger.count_since(None) == 3
        assert ledger.count_since(T0 + datetime.timedelta(minutes=5)) == 2
        assert ledger.count_since(T0 + datetime.timedelta(hours=1)) == 0

    def test_count_since_per_subject(self) -> None:
        ledger = DenialLedger()
        ledger.record(_denial("a"))
        ledger.record(_denial("b"))
        ledger.record(_denial("a", 1))
        assert ledger.count_since(T0, subject_id="a") == 2

    def test_count_since_naive_timestamp(self) -> None:
        ledger = DenialLedger()
        ledger.record(_denial(minutes=10))
        assert ledger.count_since(datetime.datetime(2026, 10, 1, 12, 5)) == 1

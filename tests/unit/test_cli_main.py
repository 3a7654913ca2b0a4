"""Tests for trust_guard.cli.main — CLI commands via Click test runner."""
from __future__ import annotations

import datetime
import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from trust_guard.audit import AuditRecord, Decision, DecisionLedger
from trust_guard.cli.main import cli
from trust_guard.monitor import StabilityMonitor

T0 = datetime.datetime(2026, 10, 1, tzinfo=datetime.timezone.utc)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def report_file(tmp_path: Path) -> Path:
    path = tmp_path / "trust-report.json"
    path.write_text(
        json.dumps(
            {
                "total_units": 0,
                "observed_at": T0.isoformat(),
                "categories": {"agents": {"units": 0}},
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture()
def ledger_file(tmp_path: Path) -> Path:
    path = tmp_path / "decisions.jsonl"
    ledger = DecisionLedger(path)
    for minute, (decision, action) in enumerate(
        [
            (Decision.ALLOW, "file_read"),
            (Decision.DENY, "git_push"),
            (Decision.DENY, "git_push"),
            (Decision.DENY, "shell_execute"),
        ]
    ):
        ledger.record(
            AuditRecord(
                decision=decision,
                action_name=action,
                caller_name="tool",
                overlap_ratio=1.0 if decision is Decision.ALLOW else 0.0,
                aggregate_score=0.6,
                overlap_threshold=0.8,
                min_aggregate=0.5,
                decided_at=T0 + datetime.timedelta(minutes=minute),
            )
        )
    return path


# ---------------------------------------------------------------------------
# Root CLI
# ---------------------------------------------------------------------------


class TestRootCLI:
    def test_help_exits_zero(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "spending" in result.output

    def test_version_command(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert "trust-guard" in result.output.lower()
        assert "Category map version: 2" in result.output

    def test_invalid_policy_file(self, runner: CliRunner, tmp_path: Path) -> None:
        policy = tmp_path / "policy.json"
        policy.write_text(json.dumps({"overlap_threshold": 3}), encoding="utf-8")
        result = runner.invoke(cli, ["--policy-file", str(policy), "version"])
        assert result.exit_code == 2
        assert "invalid policy file" in result.output


# ---------------------------------------------------------------------------
# dimensions / actions
# ---------------------------------------------------------------------------


class TestListingCommands:
    def test_dimensions(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["dimensions"])
        assert result.exit_code == 0
        assert "security" in result.output
        assert "ethical_alignment" in result.output

    def test_actions(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["actions"])
        assert result.exit_code == 0
        assert "shell_execute" in result.output

    def test_actions_filtered_by_aggregate(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["actions", "--min-aggregate", "0.2"])
        assert result.exit_code == 0
        assert "file_read" in result.output
        assert "payment_initiate" not in result.output

    def test_actions_unknown_dimension(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["actions", "--dimension", "charisma"])
        assert result.exit_code == 1
        assert "unknown dimension" in result.output


# ---------------------------------------------------------------------------
# check / identity
# ---------------------------------------------------------------------------


class TestCheckCommand:
    def test_allow(self, runner: CliRunner, report_file: Path) -> None:
        result = runner.invoke(cli, ["check", "shell_execute", "--report", str(report_file)])
        assert result.exit_code == 0
        assert "ALLOW" in result.output

    def test_deny_exits_one(self, runner: CliRunner, report_file: Path) -> None:
        result = runner.invoke(cli, ["check", "payment_initiate", "--report", str(report_file)])
        assert result.exit_code == 1
        assert "DENY" in result.output
        assert "data_integrity" in result.output

    def test_unregistered_action(self, runner: CliRunner, report_file: Path) -> None:
        result = runner.invoke(cli, ["check", "launch_rocket", "--report", str(report_file)])
        assert result.exit_code == 0
        assert "fail open" in result.output

    def test_policy_threshold_applies(
        self, runner: CliRunner, report_file: Path, tmp_path: Path
    ) -> None:
        policy = tmp_path / "policy.json"
        policy.write_text(json.dumps({"overlap_threshold": 0.5}), encoding="utf-8")
        result = runner.invoke(
            cli,
            ["--policy-file", str(policy), "check", "payment_initiate", "--report", str(report_file)],
        )
        assert result.exit_code == 0
        assert "ALLOW" in result.output


class TestIdentityCommand:
    def test_from_report(self, runner: CliRunner, report_file: Path) -> None:
        result = runner.invoke(cli, ["identity", "--report", str(report_file.parent)])
        assert result.exit_code == 0
        assert "aggregate" in result.output
        assert "1.000" in result.output

    def test_default_identity(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["identity", "--report", str(tmp_path / "missing")])
        assert result.exit_code == 0
        assert "0.700" in result.output
        assert "default identity" in result.output


# ---------------------------------------------------------------------------
# spending / forecast
# ---------------------------------------------------------------------------


class TestSpendingCommand:
    def test_authority(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["spending", "0.5"])
        assert result.exit_code == 0
        assert "Spending level: BASIC" in result.output
        assert "$28.75" in result.output

    def test_budget_status(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["spending", "0.5", "--spent", "30"])
        assert result.exit_code == 0
        assert "Budget exceeded" in result.output

    def test_maximum_level(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["spending", "1.0"])
        assert result.exit_code == 0
        assert "Maximum spending level reached." in result.output


class TestForecastCommand:
    def test_grade_and_recovery(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["forecast", "2000", "--denials", "10"])
        assert result.exit_code == 0
        assert "Grade C" in result.output
        assert "Recovery Path" in result.output

    def test_grade_a(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["forecast", "100"])
        assert result.exit_code == 0
        assert "Already at grade A." in result.output

    def test_negative_units_rejected(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["forecast", "--", "-5"])
        assert result.exit_code == 2
        assert "Invalid value" in result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)


# ---------------------------------------------------------------------------
# audit stats
# ---------------------------------------------------------------------------


class TestAuditStatsCommand:
    def test_summary(self, runner: CliRunner, ledger_file: Path) -> None:
        result = runner.invoke(cli, ["audit", "stats", "--ledger", str(ledger_file)])
        assert result.exit_code == 0
        assert "Decisions: 4" in result.output
        assert "git_push" in result.output

    def test_filtered(self, runner: CliRunner, ledger_file: Path) -> None:
        result = runner.invoke(
            cli, ["audit", "stats", "--ledger", str(ledger_file), "--decision", "allow"]
        )
        assert result.exit_code == 0
        assert "Decisions: 1" in result.output
        assert "Most-Denied" not in result.output

    def test_invalid_start(self, runner: CliRunner, ledger_file: Path) -> None:
        result = runner.invoke(
            cli, ["audit", "stats", "--ledger", str(ledger_file), "--start", "yesterday"]
        )
        assert result.exit_code == 1

    def test_missing_ledger(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["audit", "stats", "--ledger", str(tmp_path / "nope.jsonl")])
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# stability
# ---------------------------------------------------------------------------


class TestStabilityCommand:
    @pytest.fixture()
    def history_file(self, tmp_path: Path) -> Path:
        path = tmp_path / "history.jsonl"
        monitor = StabilityMonitor(path)
        for day in range(5):
            monitor.record(0.8, grade="B", observed_at=T0 + datetime.timedelta(days=day))
        return path

    def test_progress(self, runner: CliRunner, history_file: Path) -> None:
        result = runner.invoke(cli, ["stability", "--history", str(history_file)])
        assert result.exit_code == 0
        assert "Stability progress: 5/30" in result.output

    def test_csv(self, runner: CliRunner, history_file: Path) -> None:
        result = runner.invoke(cli, ["stability", "--history", str(history_file), "--csv"])
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0] == "observed_at,aggregate_score,grade,debt_units,drift_events,source"
        assert len(lines) == 6

    def test_milestones_line(self, runner: CliRunner, history_file: Path, tmp_path: Path) -> None:
        result = runner.invoke(
            cli,
            [
                "stability",
                "--history",
                str(history_file),
                "--milestones",
                str(tmp_path / "milestones.json"),
            ],
        )
        assert result.exit_code == 0
        assert "Milestones:    0 (last: never)" in result.output

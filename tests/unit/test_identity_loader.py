"""Tests for trust_guard.identity — report resolution, caching, fallback identity."""
from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from trust_guard.identity import (
    IdentityLoader,
    default_identity,
    identity_from_array,
    identity_to_array,
    resolve_report_path,
)
from trust_guard.policy import GovernancePolicy
from trust_guard.space import DIMENSIONS, Dimension, DimensionMismatchError


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


def _write_report(path: Path, total_units: float) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(
            {
                "total_units": total_units,
                "observed_at": "2026-10-01T00:00:00+00:00",
                "categories": {"agents": {"units": 0}},
            }
        ),
        encoding="utf-8",
    )
    return path


# ---------------------------------------------------------------------------
# Dense arrays and default identity
# ---------------------------------------------------------------------------


class TestDefaultIdentity:
    def test_fully_populated(self) -> None:
        identity = default_identity("agent-1")
        assert identity.subject_id == "agent-1"
        assert identity.aggregate_score == 0.7
        assert set(identity.scores) == set(DIMENSIONS)
        assert all(score == 0.7 for score in identity.scores.values())

    def test_custom_score(self) -> None:
        assert default_identity(score=0.4).aggregate_score == 0.4


class TestArrayConversion:
    def test_round_trip(self) -> None:
        values = [i / 20 for i in range(20)]
        identity = identity_from_array(values, "agent-1", aggregate=0.6)
        assert identity_to_array(identity) == pytest.approx(values)
        assert identity.aggregate_score == 0.6

    def test_aggregate_defaults_to_mean(self) -> None:
        identity = identity_from_array([0.5] * 20)
        assert identity.aggregate_score == pytest.approx(0.5)

    def test_index_order(self) -> None:
        values = [0.0] * 20
        values[0] = 0.9
        assert identity_from_array(values).score(Dimension.SECURITY) == 0.9

    @pytest.mark.parametrize("length", [0, 19, 21])
    def test_wrong_length_raises(self, length: int) -> None:
        with pytest.raises(DimensionMismatchError):
            identity_from_array([0.5] * length)


# ---------------------------------------------------------------------------
# Report resolution
# ---------------------------------------------------------------------------


class TestResolveReportPath:
    def test_direct_file(self, tmp_path: Path) -> None:
        path = _write_report(tmp_path / "custom.json", 0)
        assert resolve_report_path(path) == path

    def test_directory_with_report(self, tmp_path: Path) -> None:
        path = _write_report(tmp_path / "trust-report.json", 0)
        assert resolve_report_path(tmp_path) == path

    def test_pipeline_file_name(self, tmp_path: Path) -> None:
        path = _write_report(tmp_path / "4-grades-statistics.json", 0)
        assert resolve_report_path(tmp_path) == path

    def test_latest_run_wins(self, tmp_path: Path) -> None:
        _write_report(tmp_path / "run-2026-09-01" / "trust-report.json", 100)
        newest = _write_report(tmp_path / "run-2026-10-01" / "trust-report.json", 200)
        (tmp_path / "run-2026-11-01").mkdir()
        assert resolve_report_path(tmp_path) == newest

    def test_missing_location(self, tmp_path: Path) -> None:
        assert resolve_report_path(tmp_path / "nowhere") is None

    def test_empty_directory(self, tmp_path: Path) -> None:
        assert resolve_report_path(tmp_path) is None


# ---------------------------------------------------------------------------
# IdentityLoader
# ---------------------------------------------------------------------------


class TestIdentityLoaderLoad:
    def test_loads_identity_from_report(self, tmp_path: Path, clock: FakeClock) -> None:
        _write_report(tmp_path / "trust-report.json", 1500)
        loader = IdentityLoader(tmp_path, clock=clock)
        identity = loader.load("agent-1")
        assert identity.subject_id == "agent-1"
        assert identity.aggregate_score == pytest.approx(0.5)
        assert identity.score(Dimension.SECURITY) == pytest.approx(1.0)
        assert identity.score(Dimension.TESTING) == pytest.approx(0.5)

    def test_missing_report_uses_default(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        loader = IdentityLoader(tmp_path / "absent")
        with caplog.at_level(logging.WARNING, logger="trust_guard.identity.loader"):
            identity = loader.load("agent-1")
        assert identity.subject_id == "agent-1"
        assert identity.aggregate_score == 0.7
        assert identity.scores == default_identity("agent-1").scores
        assert "No trust report found" in caplog.text

    def test_malformed_report_uses_default(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        (tmp_path / "trust-report.json").write_text("{broken", encoding="utf-8")
        loader = IdentityLoader(tmp_path)
        with caplog.at_level(logging.WARNING, logger="trust_guard.identity.loader"):
            identity = loader.load()
        assert identity.aggregate_score == 0.7
        assert "Invalid trust report" in caplog.text

    def test_undecodable_report_uses_default(self, tmp_path: Path) -> None:
        (tmp_path / "trust-report.json").write_bytes(b'{"total_units": 100}\xff')
        identity = IdentityLoader(tmp_path).load("agent")
        assert identity.aggregate_score == 0.7

    @pytest.mark.parametrize(
        "document",
        [
            {"trust_debt_calculation": "oops"},
            {"trust_debt_calculation": {"total_units": 10}, "metadata": ["not", "a", "dict"]},
            {"trust_debt_calculation": None},
        ],
    )
    def test_pipeline_sections_of_wrong_type(
        self, tmp_path: Path, document: dict[str, object]
    ) -> None:
        (tmp_path / "trust-report.json").write_text(json.dumps(document), encoding="utf-8")
        identity = IdentityLoader(tmp_path).load("agent")
        assert identity.subject_id == "agent"
        assert 0.0 <= identity.aggregate_score <= 1.0

    def test_default_score_from_policy(self, tmp_path: Path) -> None:
        loader = IdentityLoader(tmp_path, GovernancePolicy(default_identity_score=0.3))
        assert loader.load().aggregate_score == 0.3

    def test_default_identity_not_cached(self, tmp_path: Path, clock: FakeClock) -> None:
        loader = IdentityLoader(tmp_path, clock=clock)
        assert loader.load().aggregate_score == 0.7
        _write_report(tmp_path / "trust-report.json", 0)
        assert loader.load().aggregate_score == pytest.approx(1.0)


class TestIdentityLoaderCache:
    def test_cache_hit_within_ttl(self, tmp_path: Path, clock: FakeClock) -> None:
        path = _write_report(tmp_path / "trust-report.json", 0)
        loader = IdentityLoader(tmp_path, clock=clock)
        first = loader.load()
        _write_report(path, 3000)
        clock.now += 10
        assert loader.load() is first
        stats = loader.cache_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["size"] == 1

    def test_reload_after_ttl(self, tmp_path: Path, clock: FakeClock) -> None:
        path = _write_report(tmp_path / "trust-report.json", 0)
        loader = IdentityLoader(tmp_path, GovernancePolicy(identity_cache_ttl_seconds=60), clock)
        loader.load()
        _write_report(path, 3000)
        clock.now += 61
        assert loader.load().aggregate_score == 0.0

    def test_cache_keyed_by_subject(self, tmp_path: Path, clock: FakeClock) -> None:
        _write_report(tmp_path / "trust-report.json", 0)
        loader = IdentityLoader(tmp_path, clock=clock)
        assert loader.load("a").subject_id == "a"
        assert loader.load("b").subject_id == "b"
        assert loader.cache_stats()["size"] == 2

    def test_invalidate_one_subject(self, tmp_path: Path, clock: FakeClock) -> None:
        _write_report(tmp_path / "trust-report.json", 0)
        loader = IdentityLoader(tmp_path, clock=clock)
        loader.load("a")
        loader.load("b")
        loader.invalidate("a")
        entries = loader.cache_stats()["entries"]
        assert [e["subject_id"] for e in entries] == ["b"]  # type: ignore[union-attr]

    def test_invalidate_all(self, tmp_path: Path, clock: FakeClock) -> None:
        _write_report(tmp_path / "trust-report.json", 0)
        loader = IdentityLoader(tmp_path, clock=clock)
        loader.load("a")
        loader.invalidate()
        assert loader.cache_stats()["size"] == 0

    def test_stats_evict_expired(self, tmp_path: Path, clock: FakeClock) -> None:
        _write_report(tmp_path / "trust-report.json", 0)
        loader = IdentityLoader(tmp_path, clock=clock)
        loader.load()
        clock.now += 301
        assert loader.cache_stats()["size"] == 0

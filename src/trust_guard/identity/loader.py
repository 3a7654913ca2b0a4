"""IdentityLoader — build and cache identity vectors from trust reports.

The loader never fails its caller. When no readable report exists it hands
back a fixed, moderately permissive default identity and logs a warning, so
the engine stays operable before the first report is produced.

Loaded identities are cached per ``(subject, report location)`` for a short
TTL. The cache is never a source of truth: every entry can be re-derived
from the report on disk.
"""
from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from trust_guard.policy import DEFAULT_POLICY, GovernancePolicy
from trust_guard.reports.report import ReportError, read_trust_report
from trust_guard.sovereignty.calculator import SovereigntyCalculator
from trust_guard.space.dimensions import DIMENSION_COUNT, DIMENSIONS
from trust_guard.space.permission import IdentityVector
from trust_guard.space.vector import DimensionMismatchError, to_vector

logger = logging.getLogger(__name__)

# File names probed, in order, when the report location is a directory.
REPORT_FILENAMES: tuple[str, ...] = ("trust-report.json", "4-grades-statistics.json")

RUN_DIR_PREFIX = "run-"


# ------------------------------------------------------------------
# Dense array round-trip
# ------------------------------------------------------------------


def default_identity(subject_id: str = "system", score: float = 0.7) -> IdentityVector:
    """Return the fully populated fallback identity used when no report exists."""
    return IdentityVector(
        subject_id=subject_id,
        scores={dim: score for dim in DIMENSIONS},
        aggregate_score=score,
    )


def identity_to_array(identity: IdentityVector) -> list[float]:
    """Return the identity's scores as a dense list in dimension order."""
    return to_vector(identity.scores)


def identity_from_array(
    values: Sequence[float],
    subject_id: str = "system",
    aggregate: float | None = None,
) -> IdentityVector:
    """Build an identity from a dense list in dimension order.

    The aggregate defaults to the mean of *values*.

    Raises
    ------
    DimensionMismatchError
        If *values* does not have exactly one entry per dimension.
    """
    if len(values) != DIMENSION_COUNT:
        raise DimensionMismatchError(DIMENSION_COUNT, len(values))
    scores = {dim: float(value) for dim, value in zip(DIMENSIONS, values)}
    if aggregate is None:
        aggregate = sum(scores.values()) / DIMENSION_COUNT
    return IdentityVector(subject_id=subject_id, scores=scores, aggregate_score=aggregate)


# ------------------------------------------------------------------
# Report location
# ------------------------------------------------------------------


def resolve_report_path(location: Path | str) -> Path | None:
    """Find the report file at *location*.

    *location* may be the report file itself, a directory holding one of
    :data:`REPORT_FILENAMES`, or a directory of ``run-*`` subdirectories,
    in which case the newest run (by name) holding a report wins.
    Returns None when nothing is found.
    """
    path = Path(location)
    if path.is_file():
        return path
    if not path.is_dir():
        return None

    for name in REPORT_FILENAMES:
        candidate = path / name
        if candidate.is_file():
            return candidate

    runs = sorted(
        (p for p in path.iterdir() if p.is_dir() and p.name.startswith(RUN_DIR_PREFIX)),
        key=lambda p: p.name,
        reverse=True,
    )
    for run in runs:
        for name in REPORT_FILENAMES:
            candidate = run / name
            if candidate.is_file():
                return candidate
    return None


# ------------------------------------------------------------------
# Loader
# ------------------------------------------------------------------


@dataclass
class _CacheEntry:
    identity: IdentityVector
    source: str
    loaded_at: float


class IdentityLoader:
    """Load identity vectors from the latest trust report.

    Parameters
    ----------
    report_location:
        Report file, directory holding a report, or directory of run
        subdirectories. See :func:`resolve_report_path`.
    policy:
        Supplies the cache TTL, default identity score, and scoring
        constants. Defaults to :data:`DEFAULT_POLICY`.
    clock:
        Monotonic clock in seconds, used for cache expiry.
    """

    def __init__(
        self,
        report_location: Path | str,
        policy: GovernancePolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._location = Path(report_location)
        self._policy = policy or DEFAULT_POLICY
        self._calculator = SovereigntyCalculator(self._policy)
        self._clock = clock
        self._cache: dict[tuple[str, str], _CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @property
    def report_location(self) -> Path:
        return self._location

    def resolve_report_path(self) -> Path | None:
        """Return the report file this loader currently reads, if any."""
        return resolve_report_path(self._location)

    def load(self, subject_id: str = "system") -> IdentityVector:
        """Return the identity for *subject_id*.

        Served from cache while the entry is younger than the TTL. A missing
        or malformed report yields :func:`default_identity`, which is not
        cached so a newly written report is picked up immediately.
        """
        key = (subject_id, str(self._location))
        now = self._clock()
        with self._lock:
            entry = self._cache.get(key)
            if entry is not None and now - entry.loaded_at < self._policy.identity_cache_ttl_seconds:
                self._hits += 1
                logger.debug("Identity cache hit for %r", subject_id)
                return entry.identity
            self._misses += 1

        report_path = self.resolve_report_path()
        if report_path is None:
            logger.warning(
                "No trust report found at %s; using default identity for %r",
                self._location,
                subject_id,
            )
            return default_identity(subject_id, self._policy.default_identity_score)

        try:
            report = read_trust_report(report_path)
        except ReportError as exc:
            logger.warning("%s; using default identity for %r", exc, subject_id)
            return default_identity(subject_id, self._policy.default_identity_score)

        identity = self._calculator.to_identity(report, subject_id)
        logger.info(
            "Loaded identity for %r from %s (aggregate %.3f)",
            subject_id,
            report_path,
            identity.aggregate_score,
        )
        with self._lock:
            self._cache[key] = _CacheEntry(
                identity=identity, source=str(report_path), loaded_at=self._clock()
            )
        return identity

    def invalidate(self, subject_id: str | None = None) -> None:
        """Drop cached identities, for one subject or for all."""
        with self._lock:
            if subject_id is None:
                self._cache.clear()
                return
            for key in [k for k in self._cache if k[0] == subject_id]:
                del self._cache[key]

    def cache_stats(self) -> dict[str, object]:
        """Return cache size, hit and miss counts, and the live entries.

        Expired entries are evicted first.
        """
        now = self._clock()
        ttl = self._policy.identity_cache_ttl_seconds
        with self._lock:
            for key in [k for k, e in self._cache.items() if now - e.loaded_at >= ttl]:
                del self._cache[key]
            return {
                "size": len(self._cache),
                "hits": self._hits,
                "misses": self._misses,
                "entries": [
                    {
                        "subject_id": key[0],
                        "location": key[1],
                        "source": entry.source,
                        "age_seconds": now - entry.loaded_at,
                    }
                    for key, entry in self._cache.items()
                ],
            }

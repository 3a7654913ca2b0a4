"""Append-only JSONL ledgers for decisions, fail-open events, and denials.

Every ledger appends one JSON line per record to its configured file, or to
an in-memory buffer when no path is set. Records are never edited or
removed; ordering is append order within one file.

Writes are serialized per process with a thread lock. When several
processes may append to the same file, pass ``use_file_lock=True`` to take
an advisory exclusive lock around each append.

A failed write is logged and swallowed: recording a decision must never
break the governed action. Malformed lines are skipped on read.
"""
from __future__ import annotations

import datetime
import json
import logging
import os
import threading
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Generic, Optional, TypeVar

from trust_guard.audit.records import AuditRecord, Decision, DenialEvent, FailOpenRecord

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT")


@contextmanager
def _advisory_lock(fh: IO[str]) -> Iterator[None]:
    """Hold an exclusive advisory lock on *fh* for the duration of the block."""
    if os.name == "nt":
        import msvcrt

        fh.seek(0)
        msvcrt.locking(fh.fileno(), msvcrt.LK_LOCK, 1)
        try:
            yield
        finally:
            fh.seek(0)
            msvcrt.locking(fh.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl

        fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)


class JsonlLedger(Generic[RecordT]):
    """Append-only JSONL ledger of one record type.

    Thread-safe. Subclasses set :attr:`record_type`, whose ``to_dict`` and
    ``from_dict`` define the line format.

    Parameters
    ----------
    path:
        Ledger file. Created on first append; parent directories are
        created automatically. If None, lines are buffered in memory.
    use_file_lock:
        Take an advisory exclusive file lock around each append.
    """

    record_type: type[RecordT]

    def __init__(self, path: Path | str | None = None, use_file_lock: bool = False) -> None:
        self._path = Path(path) if path is not None else None
        self._use_file_lock = use_file_lock
        self._buffer: list[str] = []
        self._lock = threading.Lock()

    @property
    def path(self) -> Path | None:
        return self._path

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def append(self, record: RecordT) -> bool:
        """Append *record*. Returns False if the write failed.

        Failures are logged with their traceback and never raised.
        """
        try:
            line = json.dumps(record.to_dict(), separators=(",", ":"))  # type: ignore[attr-defined]
            with self._lock:
                if self._path is None:
                    self._buffer.append(line)
                    return True
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("a", encoding="utf-8") as fh:
                    if self._use_file_lock:
                        with _advisory_lock(fh):
                            fh.write(line + "\n")
                    else:
                        fh.write(line + "\n")
            return True
        except (OSError, TypeError, ValueError):
            logger.exception(
                "Failed to append %s to ledger %s",
                type(record).__name__,
                self._path or "<memory>",
            )
            return False

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def _lines(self) -> list[str]:
        with self._lock:
            if self._path is None:
                return list(self._buffer)
            if not self._path.exists():
                return []
            try:
                raw_lines = self._path.read_bytes().splitlines()
            except OSError:
                logger.exception("Failed to read ledger %s", self._path)
                return []
        lines: list[str] = []
        for raw in raw_lines:
            try:
                lines.append(raw.decode("utf-8"))
            except UnicodeDecodeError:
                logger.debug("Skipping undecodable ledger line in %s", self._path)
        return lines

    def read_entries(self) -> list[dict[str, object]]:
        """Return every well-formed line as a dictionary, oldest first."""
        entries: list[dict[str, object]] = []
        for line in self._lines():
            stripped = line.strip()
            if not stripped:
                continue
            try:
                entry = json.loads(stripped)
            except json.JSONDecodeError:
                logger.debug("Skipping malformed ledger line: %.80s", stripped)
                continue
            if isinstance(entry, dict):
                entries.append(entry)
        return entries

    def records(self) -> list[RecordT]:
        """Return every parseable record, oldest first."""
        parsed: list[RecordT] = []
        for entry in self.read_entries():
            try:
                parsed.append(self.record_type.from_dict(entry))  # type: ignore[attr-defined]
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping unparseable %s entry", self.record_type.__name__)
        return parsed

    def drain_buffer(self) -> list[str]:
        """Return and clear the in-memory buffer. Meaningful only without a path."""
        with self._lock:
            lines = list(self._buffer)
            self._buffer.clear()
        return lines

    def __len__(self) -> int:
        return len(self.read_entries())


# ------------------------------------------------------------------
# Query & statistics
# ------------------------------------------------------------------


@dataclass(frozen=True)
class AuditQuery:
    """Conjunctive filter over decision records.

    Every field left as None matches anything. The time range is half-open:
    ``start <= decided_at < end``.
    """

    decision: Optional[Decision] = None
    action_name: Optional[str] = None
    caller_name: Optional[str] = None
    subject_id: Optional[str] = None
    session_id: Optional[str] = None
    start: Optional[datetime.datetime] = None
    end: Optional[datetime.datetime] = None

    def __post_init__(self) -> None:
        for name in ("start", "end"):
            bound = getattr(self, name)
            if bound is not None and bound.tzinfo is None:
                object.__setattr__(self, name, bound.replace(tzinfo=datetime.timezone.utc))

    def matches(self, record: AuditRecord) -> bool:
        if self.decision is not None and record.decision is not self.decision:
            return False
        if self.action_name is not None and record.action_name != self.action_name:
            return False
        if self.caller_name is not None and record.caller_name != self.caller_name:
            return False
        if self.subject_id is not None and record.subject_id != self.subject_id:
            return False
        if self.session_id is not None and record.session_id != self.session_id:
            return False
        if self.start is not None and record.decided_at < self.start:
            return False
        if self.end is not None and record.decided_at >= self.end:
            return False
        return True


@dataclass(frozen=True)
class AuditStats:
    """Summary of a filtered set of decision records."""

    total: int
    allowed: int
    denied: int
    allow_rate: float
    mean_overlap: float
    mean_aggregate: float
    top_denied_actions: list[tuple[str, int]]
    top_denied_callers: list[tuple[str, int]]

    def to_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "allowed": self.allowed,
            "denied": self.denied,
            "allow_rate": self.allow_rate,
            "mean_overlap": self.mean_overlap,
            "mean_aggregate": self.mean_aggregate,
            "top_denied_actions": [list(item) for item in self.top_denied_actions],
            "top_denied_callers": [list(item) for item in self.top_denied_callers],
        }


def _top(counter: Counter[str], n: int) -> list[tuple[str, int]]:
    # Counter keeps first-seen order and sorted() is stable, so ties keep
    # discovery order.
    return sorted(counter.items(), key=lambda item: -item[1])[:n]


# ------------------------------------------------------------------
# Concrete ledgers
# ------------------------------------------------------------------


class DecisionLedger(JsonlLedger[AuditRecord]):
    """One record per evaluated ALLOW or DENY decision."""

    record_type = AuditRecord

    def record(self, record: AuditRecord) -> bool:
        """Append a decision record. See :meth:`JsonlLedger.append`."""
        return self.append(record)

    def query(self, query: AuditQuery | None = None) -> list[AuditRecord]:
        """Return records matching *query*, in append order."""
        query = query or AuditQuery()
        return [r for r in self.records() if query.matches(r)]

    def stats(self, query: AuditQuery | None = None, top_n: int = 5) -> AuditStats:
        """Summarize the records matching *query*.

        Parameters
        ----------
        query:
            Filter applied before summarizing. None summarizes everything.
        top_n:
            Length of the most-denied action and caller lists.
        """
        selected = self.query(query)
        total = len(selected)
        denied_records = [r for r in selected if r.decision is Decision.DENY]
        allowed = total - len(denied_records)
        return AuditStats(
            total=total,
            allowed=allowed,
            denied=len(denied_records),
            allow_rate=allowed / total if total else 0.0,
            mean_overlap=sum(r.overlap_ratio for r in selected) / total if total else 0.0,
            mean_aggregate=sum(r.aggregate_score for r in selected) / total if total else 0.0,
            top_denied_actions=_top(Counter(r.action_name for r in denied_records), top_n),
            top_denied_callers=_top(Counter(r.caller_name for r in denied_records), top_n),
        )


class FailOpenLedger(JsonlLedger[FailOpenRecord]):
    """Actions allowed only because no requirement applied to them.

    Kept apart from the decision ledger so deliberate allows and registry
    gaps are never conflated.
    """

    record_type = FailOpenRecord

    def record(self, record: FailOpenRecord) -> bool:
        return self.append(record)

    def gaps(self) -> dict[str, int]:
        """Return fail-open counts keyed by action name (or caller when unknown)."""
        counts: Counter[str] = Counter()
        for rec in self.records():
            counts[rec.action_name or rec.caller_name] += 1
        return dict(counts)


class DenialLedger(JsonlLedger[DenialEvent]):
    """Persistent log of enforcement denials."""

    record_type = DenialEvent

    def record(self, event: DenialEvent) -> bool:
        return self.append(event)

    def count_since(
        self, since: datetime.datetime | None, subject_id: str | None = None
    ) -> int:
        """Count denials at or after *since*; None counts every denial."""
        if since is not None and since.tzinfo is None:
            since = since.replace(tzinfo=datetime.timezone.utc)
        count = 0
        for event in self.records():
            if subject_id is not None and event.subject_id != subject_id:
                continue
            if since is not None and event.occurred_at < since:
                continue
            count += 1
        return count


"""UsageHeatMap — per-cell activity counters for visualization.

Each governed action is a cell with a coarse state:

    S  seen      initial state, and the state a cell drops back to on denials
    B  building  promoted from S after enough allows
    P  proven    promoted from B after more allows
    H  held      enough denials to freeze the cell

The map is a small JSON document rewritten on every update. It is
observability only: updates happen after a decision is made and a failure
to update never reaches the caller.
"""
from __future__ import annotations

import datetime
import json
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from trust_guard.policy import DEFAULT_POLICY, GovernancePolicy

logger = logging.getLogger(__name__)


class HeatState(str, Enum):
    SEEN = "S"
    BUILDING = "B"
    PROVEN = "P"
    HELD = "H"


@dataclass
class HeatCell:
    """Counters for one cell."""

    state: HeatState = HeatState.SEEN
    task_count: int = 0
    denials: int = 0
    last_update: str = ""

    def to_dict(self) -> dict[str, object]:
        return {
            "state": self.state.value,
            "task_count": self.task_count,
            "denials": self.denials,
            "last_update": self.last_update,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HeatCell":
        return cls(
            state=HeatState(data.get("state", "S")),
            task_count=int(data.get("task_count", 0)),
            denials=int(data.get("denials", 0)),
            last_update=str(data.get("last_update", "")),
        )


class UsageHeatMap:
    """Read-modify-write store of :class:`HeatCell` counters.

    Parameters
    ----------
    path:
        JSON file holding the map. If None, the map lives in memory.
    policy:
        Supplies the promotion and demotion thresholds.
    """

    def __init__(self, path: Path | str | None = None, policy: GovernancePolicy | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._policy = policy or DEFAULT_POLICY
        self._memory: dict[str, Any] = {}
        self._lock = threading.Lock()

    def _read(self) -> dict[str, Any]:
        if self._path is None:
            return self._memory
        if not self._path.exists():
            return {}
        data = json.loads(self._path.read_text(encoding="utf-8"))
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        if self._path is None:
            self._memory = data
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def _advance(self, cell: HeatCell, allowed: bool) -> None:
        policy = self._policy
        if allowed:
            cell.task_count += 1
            # Checked before the S -> B promotion so one update moves one step.
            if cell.task_count >= policy.heat_premium_allows and cell.state is HeatState.BUILDING:
                cell.state = HeatState.PROVEN
            if cell.task_count >= policy.heat_promotion_allows and cell.state is HeatState.SEEN:
                cell.state = HeatState.BUILDING
        else:
            cell.denials += 1
            if cell.denials >= policy.heat_hold_denials:
                cell.state = HeatState.HELD
            elif cell.denials >= policy.heat_demotion_denials and cell.state is not HeatState.HELD:
                cell.state = HeatState.SEEN

    def update(self, cell_name: str, allowed: bool, aggregate_score: float | None = None) -> HeatCell | None:
        """Record one decision for *cell_name*.

        Returns the updated cell, or None if the map could not be updated.
        """
        now = datetime.datetime.now(datetime.timezone.utc).isoformat()
        with self._lock:
            try:
                data = self._read()
                cells = data.get("cells") or {}
                cell = HeatCell.from_dict(cells.get(cell_name) or {})
                self._advance(cell, allowed)
                cell.last_update = now
                cells[cell_name] = cell.to_dict()
                data["cells"] = cells
                if aggregate_score is not None:
                    data["aggregate_score"] = aggregate_score
                data["last_update"] = now
                self._write(data)
            except (OSError, ValueError, TypeError, AttributeError):
                logger.exception("Usage heat map update failed for %r", cell_name)
                return None
        return cell

    def cells(self) -> dict[str, HeatCell]:
        """Return every cell. An unreadable map yields an empty result."""
        with self._lock:
            try:
                raw = self._read().get("cells") or {}
                return {name: HeatCell.from_dict(value) for name, value in raw.items()}
            except (OSError, ValueError, TypeError, AttributeError):
                logger.exception("Usage heat map read failed")
                return {}

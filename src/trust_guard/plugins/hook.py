"""BeforeActionHook — snapshotted permission check for third-party hosts.

Agent-execution hosts call a before-action hook with ``(action_name,
parameters)`` and expect back either the (possibly unchanged) parameters or
a refusal reason. The hook carries a frozen copy of the identity and the
requirements it was built from; it is not live-bound. When the identity
changes materially, build and install a new hook. :meth:`is_current`
compares identity fingerprints to tell when that is needed.

Hooks serialize to a JSON document so they can be installed where the host
looks for them and read back by :func:`load_hook`.
"""
from __future__ import annotations

import datetime
import hashlib
import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from trust_guard.registry.actions import ActionRegistry
from trust_guard.space.permission import (
    DEFAULT_OVERLAP_THRESHOLD,
    ActionRequirement,
    IdentityVector,
    check_permission,
)

logger = logging.getLogger(__name__)

HOOK_NAME = "trust-guard-before-action"
HOOK_FORMAT_VERSION = 1


def identity_fingerprint(identity: IdentityVector) -> str:
    """Return a stable digest of the identity's scores and aggregate."""
    payload = {
        "subject_id": identity.subject_id,
        "scores": {dim.value: round(score, 6) for dim, score in sorted(identity.scores.items())},
        "aggregate_score": round(identity.aggregate_score, 6),
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class HookVerdict:
    """Host-facing answer: ``params`` when allowed, ``reason`` when not."""

    allowed: bool
    params: Optional[dict[str, Any]] = None
    reason: Optional[str] = None

    def to_dict(self) -> dict[str, object]:
        if self.allowed:
            return {"allowed": True, "params": self.params or {}}
        return {"allowed": False, "reason": self.reason}


@dataclass(frozen=True)
class BeforeActionHook:
    """Immutable permission snapshot installable into a host.

    Parameters
    ----------
    identity:
        Identity the snapshot evaluates against.
    requirements:
        Action name to requirement.
    threshold:
        Overlap threshold θ.
    generated_at:
        When the snapshot was built.
    """

    identity: IdentityVector
    requirements: Mapping[str, ActionRequirement]
    threshold: float = DEFAULT_OVERLAP_THRESHOLD
    generated_at: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )

    @property
    def identity_fingerprint(self) -> str:
        return identity_fingerprint(self.identity)

    def is_current(self, identity: IdentityVector) -> bool:
        """Return True if *identity* matches the snapshot's identity."""
        return identity_fingerprint(identity) == self.identity_fingerprint

    def __call__(
        self, action_name: str, parameters: Mapping[str, Any] | None = None
    ) -> HookVerdict:
        params = dict(parameters or {})
        requirement = self.requirements.get(action_name)
        if requirement is None:
            logger.debug("Hook: no requirement for %r; allowing", action_name)
            return HookVerdict(allowed=True, params=params)
        decision = check_permission(self.identity, requirement, self.threshold)
        if decision.allowed:
            return HookVerdict(allowed=True, params=params)
        return HookVerdict(
            allowed=False,
            reason=f"Permission denied for {action_name!r}: {decision.explain()}",
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "name": HOOK_NAME,
            "format_version": HOOK_FORMAT_VERSION,
            "generated_at": self.generated_at.isoformat(),
            "threshold": self.threshold,
            "identity": self.identity.to_dict(),
            "identity_fingerprint": self.identity_fingerprint,
            "requirements": [r.to_dict() for r in self.requirements.values()],
        }


def build_hook(
    identity: IdentityVector,
    requirements: Iterable[ActionRequirement] | ActionRegistry | None = None,
    threshold: float = DEFAULT_OVERLAP_THRESHOLD,
) -> BeforeActionHook:
    """Snapshot *identity* and *requirements* into a hook.

    *requirements* defaults to the built-in registry.
    """
    if requirements is None:
        requirements = ActionRegistry()
    items = requirements.list() if isinstance(requirements, ActionRegistry) else list(requirements)
    return BeforeActionHook(
        identity=identity,
        requirements={r.action_name: r for r in items},
        threshold=threshold,
    )


def install_hook(hook: BeforeActionHook, path: Path | str) -> Path:
    """Write *hook* as JSON to *path*, creating parent directories."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(hook.to_dict(), indent=2), encoding="utf-8")
    logger.info(
        "Installed before-action hook at %s (fingerprint %s)",
        target,
        hook.identity_fingerprint[:12],
    )
    return target


def load_hook(path: Path | str) -> BeforeActionHook:
    """Read a hook written by :func:`install_hook`.

    Raises
    ------
    ValueError
        If the document is not a hook, has an unsupported format version,
        or its stored fingerprint does not match its identity.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict) or data.get("name") != HOOK_NAME:
        raise ValueError(f"{path} is not a {HOOK_NAME} document")
    if data.get("format_version") != HOOK_FORMAT_VERSION:
        raise ValueError(f"Unsupported hook format version {data.get('format_version')!r}")
    hook = BeforeActionHook(
        identity=IdentityVector.from_dict(data["identity"]),
        requirements={
            r.action_name: r
            for r in (ActionRequirement.from_dict(item) for item in data.get("requirements", []))
        },
        threshold=float(data.get("threshold", DEFAULT_OVERLAP_THRESHOLD)),
        generated_at=datetime.datetime.fromisoformat(data["generated_at"]),
    )
    if hook.identity_fingerprint != data.get("identity_fingerprint"):
        raise ValueError(f"Identity fingerprint mismatch in {path}")
    return hook

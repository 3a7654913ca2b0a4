"""Tests for trust_guard.plugins — before-action hook snapshots."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from trust_guard.plugins import (
    HOOK_NAME,
    BeforeActionHook,
    build_hook,
    identity_fingerprint,
    install_hook,
    load_hook,
)
from trust_guard.registry import ActionRegistry
from trust_guard.space import ActionRequirement, Dimension, IdentityVector

D = Dimension


@pytest.fixture()
def identity() -> IdentityVector:
    return IdentityVector(
        "agent-1",
        {D.SECURITY: 0.9, D.RELIABILITY: 0.8, D.CODE_QUALITY: 0.3},
        aggregate_score=0.75,
    )


@pytest.fixture()
def hook(identity: IdentityVector) -> BeforeActionHook:
    return build_hook(identity)


class TestVerdicts:
    def test_allowed_returns_params(self, hook: BeforeActionHook) -> None:
        verdict = hook("shell_execute", {"command": "ls"})
        assert verdict.allowed is True
        assert verdict.params == {"command": "ls"}
        assert verdict.to_dict() == {"allowed": True, "params": {"command": "ls"}}

    def test_denied_returns_reason(self, hook: BeforeActionHook) -> None:
        verdict = hook("git_push", {"branch": "main"})
        assert verdict.allowed is False
        assert verdict.params is None
        assert verdict.reason is not None
        assert verdict.reason.startswith("Permission denied for 'git_push': DENY")
        assert "aggregate" in verdict.reason

    def test_unknown_action_allowed(self, hook: BeforeActionHook) -> None:
        assert hook("launch_rocket").allowed is True

    def test_params_copied(self, hook: BeforeActionHook) -> None:
        params = {"command": "ls"}
        verdict = hook("shell_execute", params)
        assert verdict.params is not params


class TestBuildHook:
    def test_default_registry(self, hook: BeforeActionHook) -> None:
        assert len(hook.requirements) == len(ActionRegistry())

    def test_explicit_requirements(self, identity: IdentityVector) -> None:
        requirement = ActionRequirement("custom", {D.INNOVATION: 0.9}, 0.1)
        hook = build_hook(identity, [requirement], threshold=0.5)
        assert list(hook.requirements) == ["custom"]
        assert hook.threshold == 0.5
        assert hook("custom").allowed is False

    def test_snapshot_not_live_bound(self, identity: IdentityVector) -> None:
        registry = ActionRegistry([])
        hook = build_hook(identity, registry)
        registry.register(ActionRequirement("late", {D.INNOVATION: 0.9}, 0.9))
        assert "late" not in hook.requirements
        assert hook("late").allowed is True


class TestFingerprint:
    def test_stable(self, identity: IdentityVector) -> None:
        assert identity_fingerprint(identity) == identity_fingerprint(identity.with_aggregate(0.75))

    def test_changes_with_aggregate(self, hook: BeforeActionHook, identity: IdentityVector) -> None:
        assert hook.is_current(identity) is True
        assert hook.is_current(identity.with_aggregate(0.5)) is False


class TestInstallAndLoad:
    def test_round_trip(self, hook: BeforeActionHook, tmp_path: Path) -> None:
        path = install_hook(hook, tmp_path / "hooks" / "before-action.json")
        loaded = load_hook(path)
        assert loaded.identity_fingerprint == hook.identity_fingerprint
        assert set(loaded.requirements) == set(hook.requirements)
        assert loaded("git_push").allowed is False
        assert loaded("shell_execute").allowed is True

    def test_document_layout(self, hook: BeforeActionHook, tmp_path: Path) -> None:
        data = json.loads(install_hook(hook, tmp_path / "hook.json").read_text(encoding="utf-8"))
        assert data["name"] == HOOK_NAME
        assert data["format_version"] == 1
        assert data["identity"]["subject_id"] == "agent-1"

    def test_wrong_name_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "hook.json"
        path.write_text(json.dumps({"name": "other"}), encoding="utf-8")
        with pytest.raises(ValueError, match="is not a"):
            load_hook(path)

    def test_wrong_version_rejected(self, hook: BeforeActionHook, tmp_path: Path) -> None:
        path = install_hook(hook, tmp_path / "hook.json")
        data = json.loads(path.read_text(encoding="utf-8"))
        data["format_version"] = 99
        path.write_text(json.dumps(data), encoding="utf-8")
        with pytest.raises(ValueError, match="Unsupported hook format"):
            load_hook(path)

    def test_tampered_identity_rejected(self, hook: BeforeActionHook, tmp_path: Path) -> None:
        path = install_hook(hook, tmp_path / "hook.json")
        data = json.loads(path.read_text(encoding="utf-8"))
        data["identity"]["aggregate_score"] = 1.0
        path.write_text(json.dumps(data), encoding="utf-8")
        with pytest.raises(ValueError, match="fingerprint mismatch"):
            load_hook(path)

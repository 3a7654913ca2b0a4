"""Host plugin boundary: snapshotted before-action hooks."""
from __future__ import annotations

from trust_guard.plugins.hook import (
    HOOK_FORMAT_VERSION,
    HOOK_NAME,
    BeforeActionHook,
    HookVerdict,
    build_hook,
    identity_fingerprint,
    install_hook,
    load_hook,
)

__all__ = [
    "BeforeActionHook",
    "HOOK_FORMAT_VERSION",
    "HOOK_NAME",
    "HookVerdict",
    "build_hook",
    "identity_fingerprint",
    "install_hook",
    "load_hook",
]

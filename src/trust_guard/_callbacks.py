"""Isolated invocation of host-supplied extension callbacks.

Denial, drift-threshold, artifact, and notification callbacks are all run
through :func:`invoke_callback`. A callback that raises is logged and
reported as failed; a callback that outlives its timeout is abandoned to
its worker thread so the caller is never stalled.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="trust-guard-callback")


def invoke_callback(
    name: str,
    callback: Callable[..., Any] | None,
    *args: Any,
    timeout: float | None = None,
) -> tuple[bool, Any]:
    """Run *callback* with *args* and report whether it succeeded.

    Parameters
    ----------
    name:
        Label used in log messages.
    callback:
        The callable to run. None is a no-op and counts as failure-free.
    timeout:
        Seconds to wait for the callback. None runs it inline, unbounded.

    Returns
    -------
    tuple[bool, Any]
        ``(succeeded, return_value)``. ``return_value`` is None on failure.
    """
    if callback is None:
        return True, None
    try:
        if timeout is None:
            return True, callback(*args)
        future = _executor.submit(callback, *args)
        return True, future.result(timeout=timeout)
    except FutureTimeoutError:
        logger.warning("%s callback exceeded %.1fs; continuing without it", name, timeout)
        return False, None
    except Exception:
        logger.exception("%s callback failed", name)
        return False, None

"""Concurrency runners sharing one ``go``/``wait`` contract."""

from __future__ import annotations

from typing import TYPE_CHECKING

from extractplan.runners.activities import InlineActivityHost, ThreadActivityHost
from extractplan.runners.bridge import run_sync
from extractplan.runners.coroutine import CoroutineRunner
from extractplan.runners.threaded import ThreadRunner
from extractplan.typing.enums import RunnerBackend

if TYPE_CHECKING:
    from extractplan.settings import Settings
    from extractplan.typing.protocol import ActivityHost, Runner


def create_runner(settings: Settings) -> Runner:
    """Create a fresh runner session for the configured backend.

    Args:
        settings: Runtime settings.

    Returns:
        Runner: New, idle runner.
    """
    if settings.runner_backend == RunnerBackend.COROUTINE:
        return CoroutineRunner(timeout=settings.timeout)
    return ThreadRunner(max_workers=settings.max_concurrency, timeout=settings.timeout)


def default_activity_host(settings: Settings) -> ActivityHost:
    """Return the activity host matching the configured backend.

    Returns:
        ActivityHost: Inline for threads, thread-offloading for coroutines.
    """
    if settings.runner_backend == RunnerBackend.COROUTINE:
        return ThreadActivityHost()
    return InlineActivityHost()


__all__ = [
    "CoroutineRunner",
    "InlineActivityHost",
    "ThreadActivityHost",
    "ThreadRunner",
    "create_runner",
    "default_activity_host",
    "run_sync",
]

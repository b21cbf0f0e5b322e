"""Helpers to run async operations from sync or async contexts."""

from __future__ import annotations

import asyncio
import threading
from queue import Queue
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Coroutine


def _run_in_background_thread[T](coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine in a dedicated thread with its own event loop.

    Args:
        coro: The coroutine to run.

    Raises:
        Exception: Whatever the coroutine raised, unchanged.

    Returns:
        The result of the coroutine.
    """
    output: Queue[tuple[bool, Any]] = Queue(maxsize=1)

    def _runner() -> None:
        try:
            output.put((True, asyncio.run(coro)))
        except BaseException as exc:  # noqa: BLE001
            output.put((False, exc))

    thread = threading.Thread(target=_runner, name="extractplan-bridge", daemon=True)
    thread.start()
    thread.join()

    ok, value = output.get()
    if not ok:
        raise value
    return value


def run_sync[T](coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine to completion from synchronous code.

    Without a running loop the coroutine runs on a fresh loop. When called
    from inside a running loop it runs on a dedicated thread so the caller's
    loop is not re-entered. Errors are re-raised as the original exception
    object so callers can still tell them apart.

    Args:
        coro: The coroutine to run.

    Returns:
        The result of the coroutine.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    return _run_in_background_thread(coro)

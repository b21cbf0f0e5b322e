"""Activity hosts: where an operation's external I/O actually runs."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable


class InlineActivityHost:
    """Call the activity directly.

    Suited to the thread backend, where each operation already owns a thread.
    """

    async def execute[T](self, fn: Callable[..., T], /, *args: Any) -> T:
        """Run ``fn(*args)`` in place.

        Returns:
            T: Result of the call.
        """
        return fn(*args)


class ThreadActivityHost:
    """Offload the activity to a worker thread.

    Keeps blocking calls off the event loop when the coroutine backend runs
    on a plain asyncio loop. A workflow engine supplies its own host instead.
    """

    async def execute[T](self, fn: Callable[..., T], /, *args: Any) -> T:
        """Run ``fn(*args)`` through :func:`asyncio.to_thread`.

        Returns:
            T: Result of the call.
        """
        return await asyncio.to_thread(fn, *args)

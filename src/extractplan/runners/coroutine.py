"""Deterministic-replay runner built on cooperative coroutines."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from extractplan.exceptions import RunnerClosedError, RunnerTimeoutError
from extractplan.logging import get_logger
from extractplan.typing.enums import RunnerState

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = get_logger(__name__)

_BACKEND = "coroutine"

type _Signal = tuple[int, BaseException | None]


class CoroutineRunner:
    """Run operations as tasks on the host event loop.

    All state lives on the loop's single logical thread and changes only
    between suspension points. Completion and failure are reported through
    one unbounded signal queue, so no lock is involved and a host that
    replays the loop reproduces the same interleaving. The timeout follows
    the loop's own clock.

    Operations must not perform I/O themselves; they delegate it to an
    activity host owned by the hosting engine.
    """

    def __init__(self, *, timeout: float | None = None) -> None:
        """Initialize runner.

        Args:
            timeout: Session timeout in seconds, measured from the start of ``wait``.
        """
        self._timeout = timeout
        self._signals: asyncio.Queue[_Signal] = asyncio.Queue()
        self._tasks: dict[int, asyncio.Task[None]] = {}
        self._scheduled = 0
        self._pending = 0
        self._state = RunnerState.IDLE
        self._closed = False
        self._aborted = False

    @property
    def state(self) -> RunnerState:
        """Return the current session state."""
        return self._state

    @property
    def pending(self) -> int:
        """Return the number of operations not yet settled."""
        return self._pending

    def go(self, operation: Callable[[], Awaitable[None]]) -> None:
        """Schedule one operation on the running loop.

        Args:
            operation: Zero-argument callable returning an awaitable.

        Raises:
            RunnerClosedError: If ``wait`` has already returned.
        """
        if self._closed:
            raise RunnerClosedError
        loop = asyncio.get_running_loop()
        self._scheduled += 1
        op_id = self._scheduled
        self._pending += 1
        self._state = RunnerState.DISPATCHING
        self._tasks[op_id] = loop.create_task(self._run(op_id, operation), name=f"extractplan-op-{op_id}")
        logger.debug("Operation scheduled", extra={"op_id": op_id, "backend": _BACKEND})

    async def _run(self, op_id: int, operation: Callable[[], Awaitable[None]]) -> None:
        logger.debug("Operation started", extra={"op_id": op_id, "backend": _BACKEND})
        try:
            await operation()
        except BaseException as exc:
            if self._aborted:
                raise
            logger.warning(
                "Operation failed",
                extra={"op_id": op_id, "backend": _BACKEND, "error": repr(exc)},
            )
            self._signals.put_nowait((op_id, exc))
            # interpreter exits still unwind the loop once the waiter is told
            if isinstance(exc, KeyboardInterrupt | SystemExit):
                raise
            return
        logger.debug("Operation succeeded", extra={"op_id": op_id, "backend": _BACKEND})
        self._signals.put_nowait((op_id, None))

    async def _drain(self) -> BaseException | None:
        while self._pending > 0:
            op_id, error = await self._signals.get()
            self._pending -= 1
            self._tasks.pop(op_id, None)
            if error is not None:
                return error
            if self._pending:
                self._state = RunnerState.DRAINING
        return None

    def _abort(self) -> None:
        self._aborted = True
        for task in self._tasks.values():
            task.cancel()
        self._tasks.clear()
        self._pending = 0

    async def wait(self) -> None:
        """Wait for every operation, raising the first error signalled.

        Raises:
            RunnerTimeoutError: If the session timeout elapses first.
        """
        self._closed = True
        try:
            async with asyncio.timeout(self._timeout):
                first_error = await self._drain()
        except TimeoutError as exc:
            self._state = RunnerState.FAILED
            pending = self._pending
            self._abort()
            logger.warning("Runner session timed out", extra={"backend": _BACKEND, "pending": pending})
            raise RunnerTimeoutError(timeout=self._timeout or 0.0, pending=pending) from exc

        if first_error is not None:
            self._state = RunnerState.FAILED
            self._abort()
            raise first_error
        self._state = RunnerState.DONE
        logger.debug("Runner session done", extra={"backend": _BACKEND, "operations": self._scheduled})

"""Free-threaded runner backed by a thread pool."""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING

from extractplan.exceptions import RunnerClosedError, RunnerTimeoutError
from extractplan.logging import get_logger
from extractplan.typing.enums import RunnerState

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = get_logger(__name__)

_BACKEND = "thread"


async def _await_operation(operation: Callable[[], Awaitable[None]]) -> None:
    await operation()


class ThreadRunner:
    """Run each operation on a worker thread with its own event loop.

    Counters and the first-error slot are shared between worker threads and
    the waiter. They are only touched while holding ``_lock``, and the lock
    is never held while an operation runs.

    Threads cannot be interrupted. On failure or timeout, operations that
    have not started yet are cancelled and ``cancelled`` is set so running
    operations can stop cooperatively.
    """

    def __init__(self, *, max_workers: int = 8, timeout: float | None = None) -> None:
        """Initialize runner.

        Args:
            max_workers: Maximum number of operations running at once.
            timeout: Session timeout in seconds, measured from the start of ``wait``.
        """
        self._timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="extractplan-op")
        self._lock = threading.Lock()
        self._settled = threading.Condition(self._lock)
        self._futures: list[Future[None]] = []
        self._scheduled = 0
        self._pending = 0
        self._first_error: BaseException | None = None
        self._state = RunnerState.IDLE
        self._closed = False
        self._aborted = False
        self.cancelled = threading.Event()

    @property
    def state(self) -> RunnerState:
        """Return the current session state."""
        with self._lock:
            return self._state

    @property
    def pending(self) -> int:
        """Return the number of operations not yet settled."""
        with self._lock:
            return self._pending

    def go(self, operation: Callable[[], Awaitable[None]]) -> None:
        """Schedule one operation without blocking.

        Operations scheduled after the session has already failed are dropped,
        since ``wait`` will surface the first error anyway.

        Args:
            operation: Zero-argument callable returning an awaitable.

        Raises:
            RunnerClosedError: If ``wait`` has already returned.
        """
        with self._lock:
            if self._closed:
                raise RunnerClosedError
            self._scheduled += 1
            op_id = self._scheduled
            if self._state == RunnerState.FAILED:
                logger.debug("Session failed; operation dropped", extra={"op_id": op_id, "backend": _BACKEND})
                return
            self._pending += 1
            self._state = RunnerState.DISPATCHING
            # submit only enqueues; the operation itself runs outside the lock
            self._futures.append(self._executor.submit(self._run, op_id, operation))

        logger.debug("Operation scheduled", extra={"op_id": op_id, "backend": _BACKEND})

    def _run(self, op_id: int, operation: Callable[[], Awaitable[None]]) -> None:
        logger.debug("Operation started", extra={"op_id": op_id, "backend": _BACKEND})
        try:
            asyncio.run(_await_operation(operation))
        except BaseException as exc:
            logger.warning(
                "Operation failed",
                extra={"op_id": op_id, "backend": _BACKEND, "error": repr(exc)},
            )
            self._settle(exc)
            if isinstance(exc, KeyboardInterrupt | SystemExit):
                raise
            return
        logger.debug("Operation succeeded", extra={"op_id": op_id, "backend": _BACKEND})
        self._settle(None)

    def _settle(self, error: BaseException | None) -> None:
        with self._settled:
            if self._aborted:
                return
            self._pending -= 1
            if error is not None:
                if self._first_error is None:
                    self._first_error = error
                    self._state = RunnerState.FAILED
            elif self._state != RunnerState.FAILED:
                self._state = RunnerState.DRAINING if self._pending else RunnerState.DONE
            self._settled.notify_all()

    def _abort(self) -> None:
        with self._lock:
            self._aborted = True
            self._pending = 0
        self.cancelled.set()
        for future in self._futures:
            future.cancel()
        self._executor.shutdown(wait=False, cancel_futures=True)

    def join(self) -> None:
        """Block until every operation settles or the first one fails.

        Raises:
            RunnerTimeoutError: If the session timeout elapses first.
        """
        with self._settled:
            finished = self._settled.wait_for(
                lambda: self._pending == 0 or self._first_error is not None,
                timeout=self._timeout,
            )
            self._closed = True
            first_error = self._first_error
            pending = self._pending
            if not finished:
                self._state = RunnerState.FAILED
            elif first_error is None:
                self._state = RunnerState.DONE

        if not finished:
            self._abort()
            logger.warning("Runner session timed out", extra={"backend": _BACKEND, "pending": pending})
            raise RunnerTimeoutError(timeout=self._timeout or 0.0, pending=pending)
        if first_error is not None:
            self._abort()
            raise first_error
        self._executor.shutdown(wait=False)
        logger.debug("Runner session done", extra={"backend": _BACKEND, "operations": self._scheduled})

    async def wait(self) -> None:
        """Await :meth:`join` without blocking the caller's event loop."""
        await asyncio.to_thread(self.join)

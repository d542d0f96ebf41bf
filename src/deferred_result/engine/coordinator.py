"""Reference coordinator that drives DeferredResult cells through a request lifecycle.

In a real deployment the request-processing container decides when a
deferred request has timed out, failed, or ended. This module plays that
role in-process so cells can be exercised end to end: it arms a timer,
registers the dispatch handler, and invokes the interceptor hooks in the
order the container would.

Architecture:
    caller → AsyncRequestCoordinator.start(cell, dispatch)
                    ↓
             AsyncRequest (one per cell)
                ├── threading.Timer  → _on_timeout → interceptors.handle_timeout
                ├── cell handler     → dispatch(resolution) → _complete
                ├── fail(error)      → interceptors.handle_error
                └── abandon()        → _complete
                    ↓
             interceptors.after_completion (reverse order, exactly once)

Interceptor order:
    The cell's own hooks come first, then any extra interceptors. Timeout
    and error handling stop at the first interceptor that returns False.
    Completion runs every interceptor, last to first.

Thread Safety:
    - start() may be called from any thread
    - the timer thread, the producer thread and callers of fail()/abandon()
      may race; _complete() is guarded so completion happens once
    - dispatch runs on whichever thread resolved the cell
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable, Iterable
from typing import Any

from deferred_result.contracts.errors import AsyncRequestTimeoutError, CoordinatorStateError
from deferred_result.contracts.protocols import DeferredResultInterceptor
from deferred_result.contracts.results import Resolution
from deferred_result.core.cell import DeferredResult
from deferred_result.core.config import CoordinatorSettings
from deferred_result.core.logging import HOOK_COMPLETION, HOOK_ERROR, HOOK_TIMEOUT, get_logger, hook_logger

logger = get_logger(__name__)

Dispatch = Callable[[Resolution], None]


class AsyncRequest:
    """A single deferred request in flight.

    Created by AsyncRequestCoordinator.start(). Callers use it to report
    failure or abandonment, and to wait for completion.
    """

    def __init__(
        self,
        cell: DeferredResult[Any],
        dispatch: Dispatch,
        interceptors: list[DeferredResultInterceptor],
        timeout_ms: int,
        *,
        timer_name: str,
        on_finished: Callable[[AsyncRequest], None],
    ) -> None:
        self._cell = cell
        self._dispatch = dispatch
        self._interceptors = interceptors
        self._timeout_ms = timeout_ms
        self._timer_name = timer_name
        self._on_finished = on_finished

        self._lock = threading.Lock()
        self._completed = False
        self._timed_out = False
        self._resolution: Resolution | None = None
        self._done = threading.Event()
        self._timer: threading.Timer | None = None

    @property
    def cell(self) -> DeferredResult[Any]:
        return self._cell

    @property
    def timeout_ms(self) -> int:
        """Effective timeout for this request (0 means no timer)."""
        return self._timeout_ms

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def timed_out(self) -> bool:
        """True if the timeout fired before the request completed."""
        return self._timed_out

    @property
    def resolution(self) -> Resolution | None:
        """The result handed to dispatch, or None if nothing was dispatched."""
        return self._resolution

    def _begin(self) -> None:
        if self._timeout_ms > 0:
            self._timer = threading.Timer(self._timeout_ms / 1000.0, self._on_timeout)
            self._timer.name = self._timer_name
            self._timer.daemon = True
            self._timer.start()
        # Dispatches immediately if the producer already answered
        self._cell.set_result_handler(self._on_result)

    def _on_result(self, resolution: Resolution) -> None:
        with self._lock:
            if self._resolution is None:
                self._resolution = resolution
        try:
            self._dispatch(resolution)
        finally:
            self._complete()

    def _on_timeout(self) -> None:
        if self._completed:
            return
        self._timed_out = True
        logger.debug("Deferred request timed out", cell=repr(self._cell), timeout_ms=self._timeout_ms)

        for interceptor in self._interceptors:
            try:
                if not interceptor.handle_timeout(self._cell):
                    break
            except Exception:
                hook_logger(logger, HOOK_TIMEOUT, self._cell).warning("Interceptor failed during timeout handling", exc_info=True)
                break
        else:
            # Every interceptor deferred to us and nothing resolved the cell
            if not self._cell.has_result():
                self._cell.set_error(AsyncRequestTimeoutError(self._timeout_ms))

        self._complete_if_undelivered()

    def fail(self, error: BaseException) -> None:
        """Report that the surrounding request failed.

        The cell's error callback runs, then the cell is resolved with
        ``error`` unless it already holds a result.
        """
        if self._completed:
            return
        logger.debug("Deferred request failed", cell=repr(self._cell), error=str(error))

        for interceptor in self._interceptors:
            try:
                if not interceptor.handle_error(self._cell, error):
                    break
            except Exception:
                hook_logger(logger, HOOK_ERROR, self._cell).warning("Interceptor failed during error handling", exc_info=True)
                break
        else:
            if not self._cell.has_result():
                self._cell.set_error(error)

        self._complete_if_undelivered()

    def abandon(self) -> None:
        """Report that the client went away before a result was delivered.

        The cell expires immediately: later set_result() calls return False.
        """
        if self._completed:
            return
        logger.debug("Deferred request abandoned", cell=repr(self._cell))
        self._complete()

    def wait(self, timeout: float | None = None) -> Resolution | None:
        """Block until the request completes.

        Blocks the calling thread only; the cell itself never blocks.

        Args:
            timeout: Maximum seconds to wait, or None to wait indefinitely

        Returns:
            The dispatched resolution, or None if the request completed
            without one (abandoned, or settled by an interceptor)

        Raises:
            TimeoutError: If the request has not completed within timeout
        """
        if not self._done.wait(timeout=timeout):
            raise TimeoutError(f"Deferred request did not complete within {timeout}s")
        return self._resolution

    def _complete_if_undelivered(self) -> None:
        # With a result present the handler path owns completion
        if not self._cell.has_result():
            self._complete()

    def _complete(self) -> None:
        with self._lock:
            if self._completed:
                return
            self._completed = True

        if self._timer is not None:
            self._timer.cancel()

        for interceptor in reversed(self._interceptors):
            try:
                interceptor.after_completion(self._cell)
            except Exception:
                hook_logger(logger, HOOK_COMPLETION, self._cell).warning("Interceptor failed during completion", exc_info=True)

        self._on_finished(self)
        self._done.set()


class AsyncRequestCoordinator:
    """Starts deferred requests and tracks the ones still in flight.

    Usage:
        coordinator = AsyncRequestCoordinator(CoordinatorSettings(default_timeout_ms=5000))
        cell = DeferredResult[str]()
        request = coordinator.start(cell, dispatch=send_response)

        # elsewhere, any thread
        cell.set_result("ready")

        request.wait(timeout=10)

    Args:
        settings: Coordinator settings (default timeout, timer naming)
    """

    def __init__(self, settings: CoordinatorSettings | None = None) -> None:
        self._settings = settings if settings is not None else CoordinatorSettings()
        self._lock = threading.Lock()
        self._active: dict[int, AsyncRequest] = {}
        self._counter = itertools.count(1)

    @property
    def settings(self) -> CoordinatorSettings:
        return self._settings

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._active)

    def start(
        self,
        cell: DeferredResult[Any],
        dispatch: Dispatch,
        *,
        interceptors: Iterable[DeferredResultInterceptor] = (),
    ) -> AsyncRequest:
        """Begin deferred processing for a cell.

        Args:
            cell: The cell returned by the request handler
            dispatch: Called once with the terminal result, on the thread
                that resolves the cell
            interceptors: Extra hooks, run after the cell's own

        Returns:
            The in-flight request

        Raises:
            CoordinatorStateError: If the cell has expired or is already
                being processed
        """
        if cell.is_expired():
            raise CoordinatorStateError(f"Cannot start processing for an expired cell: {cell!r}")

        timeout_ms = cell.timeout_ms if cell.timeout_ms is not None else self._settings.default_timeout_ms
        number = next(self._counter)
        request = AsyncRequest(
            cell,
            dispatch,
            [cell.interceptor(), *interceptors],
            timeout_ms,
            timer_name=f"{self._settings.timer_thread_prefix}-{number}",
            on_finished=self._finished,
        )

        with self._lock:
            if id(cell) in self._active:
                raise CoordinatorStateError(f"Cell is already being processed: {cell!r}")
            self._active[id(cell)] = request

        logger.debug("Deferred request started", cell=repr(cell), timeout_ms=timeout_ms)
        request._begin()
        return request

    def abandon_all(self) -> int:
        """Abandon every request still in flight.

        Returns:
            Number of requests abandoned
        """
        with self._lock:
            pending = list(self._active.values())
        for request in pending:
            request.abandon()
        return len(pending)

    def _finished(self, request: AsyncRequest) -> None:
        with self._lock:
            if self._active.get(id(request.cell)) is request:
                del self._active[id(request.cell)]

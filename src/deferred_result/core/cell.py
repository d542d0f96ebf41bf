"""DeferredResult: a single-assignment cell for asynchronous request processing.

A request handler returns a DeferredResult instead of a value. The value is
supplied later by whichever thread produces it, and is delivered to the
result handler the coordinator registered, whichever of the two arrives first.

Participants:
    producer     calls set_result() / set_error() from any thread
    consumer     calls set_result_handler() once (the coordinator's dispatch)
    coordinator  drives the three lifecycle hooks through interceptor()

Delivery rules:
    - The result slot moves from NO_RESULT to a terminal variant at most once.
      The first setter wins, later setters get False.
    - The handler is invoked exactly once with the terminal result, by
      whichever of set_result()/set_result_handler() observes the other side
      already present.
    - The handler and all user callbacks run OUTSIDE the cell's lock. The
      handler typically re-enters dispatch machinery holding its own locks;
      calling it under ours could deadlock against them.
    - Once the coordinator reports completion, the cell is expired. Setters
      return False and handler registration is silently ignored.

A True return from set_result() means the cell accepted the value. It does
not mean the value reached a remote client: if the client disconnected
before the coordinator noticed, the cell cannot know. Do not treat the
return value as a delivery receipt.

Thread Safety:
    _result, _expired and _result_handler are written only under _lock.
    _result and _expired are also read WITHOUT the lock as a fast path
    (double-checked locking). Attribute reads and writes are atomic under
    the interpreter, and the lock release that publishes a write happens
    before any later read, so a fast-path read never sees "pending" after a
    terminal write has completed.

    The timeout/error/completion callbacks are not guarded. Register them
    before the cell is handed to other threads.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from deferred_result.contracts.protocols import ResultHandler
from deferred_result.contracts.results import NO_RESULT, ErrorResult, Pending, Resolution, ValueResult
from deferred_result.core.logging import HOOK_COMPLETION, HOOK_ERROR, HOOK_HANDLER, HOOK_TIMEOUT, get_logger, hook_logger

logger = get_logger(__name__)

T = TypeVar("T")


class DeferredResult(Generic[T]):
    """Single-assignment result cell with timeout, error and completion hooks.

    Subclasses may carry extra data alongside the result (the user a request
    belongs to, a priority for ordering in a queue). The transition methods
    are not meant to be overridden.

    Usage:
        cell = DeferredResult[str](timeout_ms=5000, timeout_result="TIMEOUT")
        cell.on_completion(lambda: pending.discard(cell))

        # producer thread, some time later
        accepted = cell.set_result("done")

    Args:
        timeout_ms: Timeout in milliseconds, or None to use the coordinator's
            default. Read by the coordinator; the cell keeps no timer.
        timeout_result: Value to resolve with if the timeout fires while the
            cell is pending. NO_RESULT (default) means no fallback. An
            exception instance resolves the cell with an error instead.
        timeout_result_factory: Zero-argument callable evaluated lazily when
            the timeout fires, in place of timeout_result. May return
            NO_RESULT to decline.

    Raises:
        ValueError: If timeout_ms is negative, or both fallback forms are given
    """

    def __init__(
        self,
        timeout_ms: int | None = None,
        timeout_result: Any = NO_RESULT,
        *,
        timeout_result_factory: Callable[[], Any] | None = None,
    ) -> None:
        if timeout_ms is not None and timeout_ms < 0:
            raise ValueError(f"timeout_ms must be >= 0, got {timeout_ms}")
        if timeout_result_factory is not None and timeout_result is not NO_RESULT:
            raise ValueError("Pass either timeout_result or timeout_result_factory, not both")

        self._timeout_ms = timeout_ms
        if timeout_result_factory is None:
            fixed = timeout_result
            self._timeout_result_factory: Callable[[], Any] = lambda: fixed
        else:
            self._timeout_result_factory = timeout_result_factory

        self._timeout_callback: Callable[[], None] | None = None
        self._error_callback: Callable[[BaseException], None] | None = None
        self._completion_callback: Callable[[], None] | None = None

        self._lock = threading.Lock()
        self._result: Resolution | Pending = NO_RESULT
        self._expired = False
        self._result_handler: ResultHandler | None = None

    def __repr__(self) -> str:
        result = self._result
        if result is NO_RESULT:
            state = "pending"
        elif result.is_error:
            state = "error"
        else:
            state = "value"
        if self._expired:
            state += ",expired"
        return f"{type(self).__name__}(state={state}, timeout_ms={self._timeout_ms})"

    # -- state queries -----------------------------------------------------

    @property
    def timeout_ms(self) -> int | None:
        """Configured timeout in milliseconds, or None if not set."""
        return self._timeout_ms

    def is_set_or_expired(self) -> bool:
        """True if the cell can no longer accept a result.

        Either a result (value or error) was set, or the coordinator reported
        the request complete.
        """
        return self._result is not NO_RESULT or self._expired

    def has_result(self) -> bool:
        """True if a value or error has been set."""
        return self._result is not NO_RESULT

    def is_expired(self) -> bool:
        """True once the coordinator has reported the request complete."""
        return self._expired

    def get_result(self) -> Any:
        """Return the raw value or error, or None if nothing is set.

        A value can itself be None. Use has_result() first, or read
        ``resolution`` to tell values and errors apart.
        """
        result = self._result
        if result is NO_RESULT:
            return None
        return result.payload()

    @property
    def resolution(self) -> Resolution | None:
        """The terminal result variant, or None while pending."""
        result = self._result
        if result is NO_RESULT:
            return None
        return result

    # -- user callbacks ----------------------------------------------------

    def on_timeout(self, callback: Callable[[], None]) -> None:
        """Register code to run when the request times out.

        Runs on the coordinator's timer thread while the cell may still be
        pending. It may call set_result()/set_error() to resolve the request.
        """
        self._timeout_callback = callback

    def on_error(self, callback: Callable[[BaseException], None]) -> None:
        """Register code to run when the surrounding request fails.

        Receives the triggering exception. It may call set_result() to
        resolve the request with something other than the error.
        """
        self._error_callback = callback

    def on_completion(self, callback: Callable[[], None]) -> None:
        """Register code to run when the request completes for any reason.

        Useful for dropping references to a cell that is no longer usable.
        """
        self._completion_callback = callback

    # -- consumer side -----------------------------------------------------

    def set_result_handler(self, handler: ResultHandler) -> None:
        """Register the handler that receives the terminal result.

        If a result is already present the handler is invoked immediately,
        on this thread. Otherwise it is stored and invoked by whichever
        setter resolves the cell. Ignored once the cell has expired.

        Intended to be called once per cell, by the coordinator.

        Raises:
            TypeError: If handler is None
        """
        if handler is None:
            raise TypeError("A result handler is required")
        if self._expired:
            return
        with self._lock:
            if self._expired:
                return
            resolution = self._result
            if resolution is NO_RESULT:
                self._result_handler = handler
                return
        # Decided under the lock, delivered outside it
        self._invoke_handler(handler, resolution)

    # -- producer side -----------------------------------------------------

    def set_result(self, value: T) -> bool:
        """Resolve the cell with a value.

        Returns:
            True if the value was accepted (and handed to the handler, if
            one is registered). False if the cell was already resolved or
            has expired.
        """
        return self._set_resolution(ValueResult(value))

    def set_error(self, error: Any) -> bool:
        """Resolve the cell with an error.

        ``error`` is normally an exception; any other object is delivered
        unchanged as an error body.

        Returns:
            True if the error was accepted, False if the cell was already
            resolved or has expired.
        """
        return self._set_resolution(ErrorResult(error))

    def _set_resolution(self, resolution: Resolution) -> bool:
        if self.is_set_or_expired():
            return False
        with self._lock:
            if self.is_set_or_expired():
                return False
            self._result = resolution
            handler = self._result_handler
            if handler is None:
                # set_result_handler() will pick it up
                return True
            self._result_handler = None
        self._invoke_handler(handler, resolution)
        return True

    def _invoke_handler(self, handler: ResultHandler, resolution: Resolution) -> None:
        # A failing consumer must not fail the producer that resolved the cell
        try:
            handler(resolution)
        except Exception:
            hook_logger(logger, HOOK_HANDLER, self).warning("Result handler failed", exc_info=True)

    # -- coordinator hooks -------------------------------------------------

    def interceptor(self) -> DeferredResultHooks:
        """Return the lifecycle hooks the coordinator drives for this cell."""
        return DeferredResultHooks(self)

    def _handle_timeout(self) -> bool:
        continue_processing = True
        if self._timeout_callback is not None:
            try:
                self._timeout_callback()
            except Exception:
                hook_logger(logger, HOOK_TIMEOUT, self).warning("Timeout callback failed", exc_info=True)

        try:
            fallback = self._timeout_result_factory()
        except Exception:
            hook_logger(logger, HOOK_TIMEOUT, self).warning("Timeout result factory failed", exc_info=True)
            return continue_processing

        if fallback is not NO_RESULT:
            # A configured fallback settles the request even if a producer
            # got there first
            continue_processing = False
            if isinstance(fallback, BaseException):
                self._set_resolution(ErrorResult(fallback))
            else:
                self._set_resolution(ValueResult(fallback))
        return continue_processing

    def _handle_error(self, error: BaseException) -> bool:
        if self._error_callback is not None:
            try:
                self._error_callback(error)
            except Exception:
                hook_logger(logger, HOOK_ERROR, self).warning("Error callback failed", error=str(error), exc_info=True)
        self._set_resolution(ErrorResult(error))
        return False

    def _after_completion(self) -> None:
        with self._lock:
            if self._expired:
                return
            self._expired = True
            # Nobody will consume it now
            self._result_handler = None
        if self._completion_callback is not None:
            try:
                self._completion_callback()
            except Exception:
                hook_logger(logger, HOOK_COMPLETION, self).warning("Completion callback failed", exc_info=True)


class DeferredResultHooks:
    """DeferredResultInterceptor bound to a single cell.

    The coordinator calls these from its own threads. None of them raise:
    user callback failures are logged and the coordinator always gets its
    answer back.
    """

    def __init__(self, cell: DeferredResult[Any]) -> None:
        self._cell = cell

    @property
    def cell(self) -> DeferredResult[Any]:
        return self._cell

    def handle_timeout(self, cell: DeferredResult[Any]) -> bool:
        """Run the timeout callback, then apply the fallback if one is configured.

        Returns:
            True if no fallback was configured and the coordinator should
            decide what a timeout means. False if the fallback settled it.
        """
        return self._cell._handle_timeout()

    def handle_error(self, cell: DeferredResult[Any], error: BaseException) -> bool:
        """Run the error callback, then try to resolve the cell with the error.

        Returns:
            Always False: the error itself resolves the request.
        """
        return self._cell._handle_error(error)

    def after_completion(self, cell: DeferredResult[Any]) -> None:
        """Expire the cell and run the completion callback (first call only)."""
        self._cell._after_completion()

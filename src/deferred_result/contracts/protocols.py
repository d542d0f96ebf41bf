"""Protocols at the seams between a cell, its consumer and its coordinator."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from deferred_result.contracts.results import Resolution
    from deferred_result.core.cell import DeferredResult


@runtime_checkable
class ResultHandler(Protocol):
    """Consumer-side sink for a cell's terminal result.

    Invoked exactly once, synchronously, on whichever thread resolves the
    cell (or registers the handler after resolution). Never invoked while
    the cell's internal lock is held.
    """

    def __call__(self, resolution: Resolution) -> None: ...


@runtime_checkable
class DeferredResultInterceptor(Protocol):
    """Lifecycle hooks the coordinator invokes on behalf of a request.

    handle_timeout:
        Called from the coordinator's timer thread when the request times
        out. Return True to let the coordinator carry on with its own timeout
        handling, False if the request is now considered resolved.

    handle_error:
        Called when the surrounding request fails. Return True to let later
        interceptors and the coordinator handle the error, False to stop.

    after_completion:
        Called exactly once when the request is over, for any reason.
    """

    def handle_timeout(self, cell: DeferredResult[Any]) -> bool: ...

    def handle_error(self, cell: DeferredResult[Any], error: BaseException) -> bool: ...

    def after_completion(self, cell: DeferredResult[Any]) -> None: ...

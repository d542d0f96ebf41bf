"""Exceptions raised around deferred result processing.

Routine races (setting a result on a cell that is already resolved or
expired) are NOT exceptions. They are reported by a False return from the
setter. The classes here cover the coordinator's own outcomes and misuse.
"""

from __future__ import annotations


class AsyncRequestTimeoutError(TimeoutError):
    """A deferred request timed out and nothing resolved it.

    Set on the cell as an error result by the coordinator when the timeout
    fires, no timeout callback produced a result, and no fallback value was
    configured.

    Attributes:
        timeout_ms: The effective timeout that elapsed
    """

    def __init__(self, timeout_ms: int) -> None:
        super().__init__(f"Async request timed out after {timeout_ms}ms with no result and no fallback value")
        self.timeout_ms = timeout_ms


class CoordinatorStateError(RuntimeError):
    """Raised when the coordinator is asked to do something its lifecycle forbids.

    Examples: starting processing for a cell that has already expired, or
    starting a second request for the same cell.
    """

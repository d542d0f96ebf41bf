"""Request lifecycle coordination for deferred result cells."""

from deferred_result.engine.coordinator import AsyncRequest, AsyncRequestCoordinator

__all__ = [
    "AsyncRequest",
    "AsyncRequestCoordinator",
]

"""Shared types and protocols for deferred result processing."""

from deferred_result.contracts.errors import AsyncRequestTimeoutError, CoordinatorStateError
from deferred_result.contracts.protocols import DeferredResultInterceptor, ResultHandler
from deferred_result.contracts.results import (
    NO_RESULT,
    ErrorResult,
    Pending,
    Resolution,
    ValueResult,
)

__all__ = [
    "NO_RESULT",
    "AsyncRequestTimeoutError",
    "CoordinatorStateError",
    "DeferredResultInterceptor",
    "ErrorResult",
    "Pending",
    "Resolution",
    "ResultHandler",
    "ValueResult",
]

"""Terminal result variants for a deferred result cell.

A cell's result slot holds exactly one of:
    - NO_RESULT (pending, the only non-terminal state)
    - ValueResult (the producer supplied a value)
    - ErrorResult (the producer, or the coordinator, supplied an error)

ValueResult and ErrorResult are mutually exclusive terminal states. Wrapping
the payload means a legitimate ``None`` value is never mistaken for
"nothing set yet".
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeAlias, TypeVar

T = TypeVar("T")


class Pending(Enum):
    """Marker type for a cell that has not been resolved."""

    NO_RESULT = "no_result"

    def __repr__(self) -> str:
        return "NO_RESULT"


NO_RESULT = Pending.NO_RESULT


@dataclass(frozen=True)
class ValueResult(Generic[T]):
    """A cell resolved with a value."""

    value: T

    @property
    def is_error(self) -> bool:
        return False

    def payload(self) -> T:
        return self.value


@dataclass(frozen=True)
class ErrorResult:
    """A cell resolved with an error.

    ``error`` is usually an exception, but any object is accepted so callers
    can carry error bodies (status payloads, problem details) unchanged.
    """

    error: Any

    @property
    def is_error(self) -> bool:
        return True

    @property
    def exception(self) -> BaseException | None:
        """The error as an exception, or None if the payload is not one."""
        if isinstance(self.error, BaseException):
            return self.error
        return None

    def payload(self) -> Any:
        return self.error


Resolution: TypeAlias = ValueResult[Any] | ErrorResult

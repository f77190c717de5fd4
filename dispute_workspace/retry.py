"""
Bounded retry combinator.

Runs a probe function until it produces a value or the attempt budget is
spent. No sleeping, no backoff: callers that need those are not this module's
callers.
"""

from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class AttemptResult(Generic[T]):
    """Outcome of a bounded retry"""
    value: Optional[T]
    attempts: int

    @property
    def succeeded(self) -> bool:
        return self.value is not None


def attempt(fn: Callable[[int], Optional[T]], max_tries: int) -> AttemptResult[T]:
    """
    Call fn(attempt_number) up to max_tries times.

    fn returns a value to stop, or None to ask for another try. Exceptions
    raised by fn are not retried.
    """
    if max_tries < 1:
        raise ValueError("max_tries must be at least 1")

    for attempt_number in range(1, max_tries + 1):
        value = fn(attempt_number)
        if value is not None:
            return AttemptResult(value=value, attempts=attempt_number)

    return AttemptResult(value=None, attempts=max_tries)

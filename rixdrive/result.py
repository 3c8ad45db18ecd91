"""Result type returned by the decoding tier, and the exception bridge."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

from .errors import StructuredError
from .exceptions import ApiException

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Success(Generic[T]):
    """Successful outcome carrying the decoded value."""

    value: T

    is_success = True
    is_failure = False

    def map(self, func: Callable[[T], U]) -> Success[U]:
        return Success(func(self.value))


@dataclass(frozen=True)
class Failure:
    """Failed outcome carrying a structured error."""

    error: StructuredError

    is_success = False
    is_failure = True

    def map(self, func: Callable[[Any], Any]) -> Failure:
        return self


Result = Union[Success[T], Failure]


def unwrap(result: Result[T]) -> T:
    """Return the value of a successful result or raise its error.

    Args:
        result: Outcome of a ``*_result`` call

    Returns:
        The success value (``None`` for operations without a value)

    Raises:
        ApiException: If the result is a failure. The structured error is
            available as ``exc.error``.
    """
    if isinstance(result, Success):
        return result.value
    raise ApiException.create(result.error)


def unwrap_or(result: Result[T], default: T) -> T:
    """Return the value of a successful result, or ``default`` on failure."""
    if isinstance(result, Success):
        return result.value
    return default

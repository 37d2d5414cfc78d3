"""
Results - Tagged return values for domain-layer calls.

Model code returns ``Ok(value)`` or an ``Err`` subclass instead of raising
for expected outcomes, and handlers branch on the variant::

    result = await users.create(email, password)
    if isinstance(result, DuplicateEmail):
        return await response.send(status_code=StatusCode.Conflict,
                                   message=result.message)
    user = result.value

Applications declare their own variants by subclassing ``Err``::

    @dataclass(frozen=True)
    class DuplicateEmail(Err):
        message: str = "User with this email already exists."
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union


T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""
    value: T

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """
    Expected failure outcome.

    Subclasses are frozen dataclasses that override the ``message``
    default and may add fields.
    """
    message: str = "Operation failed"
    detail: Any = None

    def __bool__(self) -> bool:
        return False


Result = Union[Ok[T], Err]


def is_ok(result: Result) -> bool:
    """True for ``Ok`` results."""
    return isinstance(result, Ok)


def unwrap(result: Result[T]) -> T:
    """
    Return the value of an ``Ok``.

    Raises:
        ValueError: If ``result`` is an ``Err``
    """
    if isinstance(result, Ok):
        return result.value
    raise ValueError(f"Called unwrap on {type(result).__name__}: {result.message}")

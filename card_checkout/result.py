"""
Railway-oriented Result type.

Every step of the checkout flow returns a Result instead of raising, so a
failure at any step skips the rest of the chain:

    result = await (
        Result.ok(state)
        .flat_map_async(validate_product)
    )

Two variants:
- Ok(value): success carrying a value
- Err(error): failure carrying an error

Both are immutable and support structural pattern matching:

    match result:
        case Ok(transaction):
            ...
        case Err(error):
            ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Generic, Iterable, NoReturn, TypeVar

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E")
F = TypeVar("F")


class IllegalStateError(RuntimeError):
    """Raised when a Result is read from the wrong side."""

    pass


class Result(ABC, Generic[T, E]):
    """
    Success or failure container.

    Do not instantiate directly; use Result.ok() / Result.fail().
    """

    __slots__ = ()

    @staticmethod
    def ok(value: T) -> Result[T, E]:
        """Build a successful result."""
        return Ok(value)

    @staticmethod
    def fail(error: E) -> Result[T, E]:
        """Build a failed result."""
        return Err(error)

    def __setattr__(self, name: str, value: Any) -> NoReturn:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __delattr__(self, name: str) -> NoReturn:
        raise AttributeError(f"{type(self).__name__} is immutable")

    @property
    @abstractmethod
    def is_success(self) -> bool: ...

    @property
    def is_failure(self) -> bool:
        return not self.is_success

    @property
    @abstractmethod
    def value(self) -> T: ...

    @property
    @abstractmethod
    def error(self) -> E: ...

    @abstractmethod
    def map(self, fn: Callable[[T], U]) -> Result[U, E]: ...

    @abstractmethod
    def flat_map(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]: ...

    @abstractmethod
    async def flat_map_async(
        self, fn: Callable[[T], Awaitable[Result[U, E]]]
    ) -> Result[U, E]: ...

    @abstractmethod
    def map_error(self, fn: Callable[[E], F]) -> Result[T, F]: ...

    @abstractmethod
    def get_or_else(self, default: T) -> T: ...

    @abstractmethod
    def get_or_throw(self) -> T: ...

    @abstractmethod
    def match(self, on_success: Callable[[T], U], on_failure: Callable[[E], U]) -> U: ...


class Ok(Result[T, E]):
    """Successful result."""

    __slots__ = ("_value",)
    __match_args__ = ("value",)

    def __init__(self, value: T) -> None:
        object.__setattr__(self, "_value", value)

    @property
    def is_success(self) -> bool:
        return True

    @property
    def value(self) -> T:
        return self._value

    @property
    def error(self) -> E:
        raise IllegalStateError("Cannot get error from a successful result")

    def map(self, fn: Callable[[T], U]) -> Result[U, E]:
        return Ok(fn(self._value))

    def flat_map(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
        return fn(self._value)

    async def flat_map_async(
        self, fn: Callable[[T], Awaitable[Result[U, E]]]
    ) -> Result[U, E]:
        return await fn(self._value)

    def map_error(self, fn: Callable[[E], F]) -> Result[T, F]:
        return Ok(self._value)

    def get_or_else(self, default: T) -> T:
        return self._value

    def get_or_throw(self) -> T:
        return self._value

    def match(self, on_success: Callable[[T], U], on_failure: Callable[[E], U]) -> U:
        return on_success(self._value)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Ok) and self._value == other._value

    def __hash__(self) -> int:
        return hash(("ok", self._value))

    def __repr__(self) -> str:
        return f"Ok({self._value!r})"


class Err(Result[T, E]):
    """Failed result."""

    __slots__ = ("_error",)
    __match_args__ = ("error",)

    def __init__(self, error: E) -> None:
        object.__setattr__(self, "_error", error)

    @property
    def is_success(self) -> bool:
        return False

    @property
    def value(self) -> T:
        raise IllegalStateError("Cannot get value from a failed result")

    @property
    def error(self) -> E:
        return self._error

    def map(self, fn: Callable[[T], U]) -> Result[U, E]:
        return Err(self._error)

    def flat_map(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
        return Err(self._error)

    async def flat_map_async(
        self, fn: Callable[[T], Awaitable[Result[U, E]]]
    ) -> Result[U, E]:
        return Err(self._error)

    def map_error(self, fn: Callable[[E], F]) -> Result[T, F]:
        return Err(fn(self._error))

    def get_or_else(self, default: T) -> T:
        return default

    def get_or_throw(self) -> T:
        if isinstance(self._error, BaseException):
            raise self._error
        raise IllegalStateError(f"Result failed with non-exception error: {self._error!r}")

    def match(self, on_success: Callable[[T], U], on_failure: Callable[[E], U]) -> U:
        return on_failure(self._error)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Err) and self._error == other._error

    def __hash__(self) -> int:
        return hash(("err", repr(self._error)))

    def __repr__(self) -> str:
        return f"Err({self._error!r})"


ok = Result.ok
fail = Result.fail


def combine(results: Iterable[Result[T, E]]) -> Result[list[T], E]:
    """
    Collapse a sequence of results.

    Returns Ok with the values in order if every result succeeded,
    otherwise the first failure (left to right).
    """
    values: list[T] = []
    for result in list(results):
        if result.is_failure:
            return Err(result.error)
        values.append(result.value)
    return Ok(values)

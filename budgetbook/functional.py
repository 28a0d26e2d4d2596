from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Iterable, TypeVar

from budgetbook.errors import ValidationError

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E")


class Maybe(Generic[T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> "Maybe[U]":
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_some(self) -> bool:
        pass

    def is_none(self) -> bool:
        return not self.is_some()


class Some(Maybe[T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> "Maybe[U]":
        return Some(f(self._value))

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_some(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Some({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Some) and self._value == other._value


class Nothing(Maybe[T]):

    def map(self, f: Callable[[T], U]) -> "Maybe[U]":
        return Nothing()

    def get_or_else(self, default: T) -> T:
        return default

    def is_some(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Nothing()"

    def __eq__(self, other) -> bool:
        return isinstance(other, Nothing)


class Either(Generic[E, T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> "Either[E, U]":
        pass

    @abstractmethod
    def bind(self, f: Callable[[T], "Either[E, U]"]) -> "Either[E, U]":
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_right(self) -> bool:
        pass

    def is_left(self) -> bool:
        return not self.is_right()


class Right(Either[E, T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> "Either[E, U]":
        return Right(f(self._value))

    def bind(self, f: Callable[[T], "Either[E, U]"]) -> "Either[E, U]":
        return f(self._value)

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_right(self) -> bool:
        return True

    def get_error(self) -> E:
        raise ValueError("Right holds no error")

    def __repr__(self) -> str:
        return f"Right({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Right) and self._value == other._value


class Left(Either[E, T]):

    def __init__(self, error: E):
        self._error = error

    def map(self, f: Callable[[T], U]) -> "Either[E, U]":
        return self

    def bind(self, f: Callable[[T], "Either[E, U]"]) -> "Either[E, U]":
        return self

    def get_or_else(self, default: T) -> T:
        return default

    def is_right(self) -> bool:
        return False

    def get_error(self) -> E:
        return self._error

    def __repr__(self) -> str:
        return f"Left({self._error!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Left) and self._error == other._error


def failure(error: str, message: str, **details: Any) -> Left:
    return Left({"error": error, "message": message, **details})


def unwrap(result: Either[dict, T]) -> T:
    """Return the value of a Right, or raise ValidationError carrying the Left's details."""
    if result.is_left():
        err = result.get_error()
        raise ValidationError(err.get("message", "validation failed"), err)
    return result.get_or_else(None)


def find_first(items: Iterable[T], pred: Callable[[T], bool]) -> Maybe[T]:
    for item in items:
        if pred(item):
            return Some(item)
    return Nothing()


def chain(value: T, *checks: Callable[[T], Either[dict, T]]) -> Either[dict, T]:
    """Run Either-returning checks in order, stopping at the first Left."""
    result: Either[dict, T] = Right(value)
    for check in checks:
        result = result.bind(check)
    return result

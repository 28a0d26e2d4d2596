from datetime import datetime, timedelta
from typing import Callable, Protocol
from uuid import uuid4

IdGenerator = Callable[[], str]


class Clock(Protocol):
    def now(self) -> datetime:
        ...


def new_id() -> str:
    return str(uuid4())


class SystemClock:
    def now(self) -> datetime:
        return datetime.now()


class FixedClock:
    """Clock pinned to a given instant; tests move it with ``advance``."""

    def __init__(self, instant: datetime):
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def advance(self, **delta) -> None:
        self._instant = self._instant + timedelta(**delta)


def sequential_ids(prefix: str = "id") -> IdGenerator:
    counter = {"n": 0}

    def _next() -> str:
        counter["n"] += 1
        return f"{prefix}-{counter['n']}"

    return _next

from datetime import date
from typing import Callable, Iterable, Iterator, Optional

from budgetbook.domain import Transaction
from budgetbook.periods import as_date

Predicate = Callable[[Transaction], bool]


def iter_transactions(trans: Iterable[Transaction], pred: Predicate) -> Iterator[Transaction]:
    for t in trans:
        if pred(t):
            yield t


def not_deleted(t: Transaction) -> bool:
    return not t.is_deleted


def by_owner(owner_id: str) -> Predicate:
    def _filter(t: Transaction) -> bool:
        return t.owner_id == owner_id

    return _filter


def by_category(category: str) -> Predicate:
    def _filter(t: Transaction) -> bool:
        return t.category == category

    return _filter


def by_type(tx_type: str) -> Predicate:
    def _filter(t: Transaction) -> bool:
        return t.type == tx_type

    return _filter


def by_date_range(start: Optional[date], end: Optional[date]) -> Predicate:
    """Inclusive on both ends; a missing bound is open."""
    lo = as_date(start) if start is not None else None
    hi = as_date(end) if end is not None else None

    def _filter(t: Transaction) -> bool:
        d = as_date(t.date)
        if lo is not None and d < lo:
            return False
        if hi is not None and d > hi:
            return False
        return True

    return _filter


def all_of(*preds: Predicate) -> Predicate:
    def _filter(t: Transaction) -> bool:
        return all(p(t) for p in preds)

    return _filter


def transaction_filter(
    owner_id: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    category: Optional[str] = None,
    tx_type: Optional[str] = None,
    include_deleted: bool = False,
) -> Predicate:
    preds: list[Predicate] = []
    if not include_deleted:
        preds.append(not_deleted)
    if owner_id is not None:
        preds.append(by_owner(owner_id))
    if start is not None or end is not None:
        preds.append(by_date_range(start, end))
    if category is not None:
        preds.append(by_category(category))
    if tx_type is not None:
        preds.append(by_type(tx_type))
    return all_of(*preds)

import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar

from budgetbook.domain import (
    Attachment,
    AutoContribute,
    Bill,
    Budget,
    BudgetCategory,
    Contribution,
    Goal,
    Milestone,
    PaymentRecord,
    Recurrence,
    ReminderSettings,
    Transaction,
    Withdrawal,
)
from budgetbook.errors import ConflictError, InvalidOperation, NotFoundError
from budgetbook.filters import iter_transactions, transaction_filter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Storage(ABC):
    """Persistence collaborator used by the services.

    ``save`` must reject a record whose ``version`` no longer matches the
    stored one with ConflictError, reject a second Budget for the same
    (owner, month, year) with InvalidOperation, and return the stored record.
    """

    @abstractmethod
    def get(self, model: Type[T], entity_id: str) -> Optional[T]:
        ...

    @abstractmethod
    def find(self, model: Type[T], owner_id: str, predicate: Optional[Callable[[T], bool]] = None) -> List[T]:
        ...

    @abstractmethod
    def find_transactions(
        self,
        owner_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        category: Optional[str] = None,
        tx_type: Optional[str] = None,
        include_deleted: bool = False,
    ) -> List[Transaction]:
        ...

    @abstractmethod
    def save(self, entity: T) -> T:
        ...

    @abstractmethod
    def delete(self, entity: Any) -> None:
        ...


class InMemoryStorage(Storage):
    def __init__(self):
        self._records: Dict[Tuple[type, str], Any] = {}
        self._lock = threading.Lock()

    def get(self, model: Type[T], entity_id: str) -> Optional[T]:
        with self._lock:
            return self._records.get((model, entity_id))

    def find(self, model: Type[T], owner_id: str, predicate: Optional[Callable[[T], bool]] = None) -> List[T]:
        with self._lock:
            rows = [r for (m, _), r in self._records.items() if m is model and r.owner_id == owner_id]
        if predicate is not None:
            rows = [r for r in rows if predicate(r)]
        return rows

    def find_transactions(
        self,
        owner_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        category: Optional[str] = None,
        tx_type: Optional[str] = None,
        include_deleted: bool = False,
    ) -> List[Transaction]:
        pred = transaction_filter(
            owner_id=owner_id,
            start=start,
            end=end,
            category=category,
            tx_type=tx_type,
            include_deleted=include_deleted,
        )
        rows = list(iter_transactions(self.find(Transaction, owner_id), pred))
        return sorted(rows, key=lambda t: t.date, reverse=True)

    def save(self, entity: T) -> T:
        key = (type(entity), entity.id)
        with self._lock:
            stored = self._records.get(key)
            expected = stored.version if stored is not None else 0
            if entity.version != expected:
                raise ConflictError(
                    f"{type(entity).__name__} {entity.id} was modified concurrently",
                    {"error": "version_conflict", "expected": expected, "got": entity.version},
                )
            if isinstance(entity, Budget):
                self._ensure_budget_period_free(entity)
            saved = replace(entity, version=expected + 1)
            self._records[key] = saved
        logger.debug("saved %s %s at version %d", type(entity).__name__, entity.id, saved.version)
        return saved

    def _ensure_budget_period_free(self, budget: Budget) -> None:
        """One budget per (owner, month, year); caller holds the lock."""
        for (model, entity_id), other in self._records.items():
            if (
                model is Budget
                and entity_id != budget.id
                and other.owner_id == budget.owner_id
                and (other.month, other.year) == (budget.month, budget.year)
            ):
                raise InvalidOperation(
                    "Budget already exists for this month and year",
                    {"error": "duplicate_budget", "month": budget.month, "year": budget.year},
                )

    def delete(self, entity: Any) -> None:
        key = (type(entity), entity.id)
        with self._lock:
            if key not in self._records:
                raise NotFoundError(f"{type(entity).__name__} {entity.id} not found")
            del self._records[key]
        logger.debug("deleted %s %s", type(entity).__name__, entity.id)


def _date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _money(value: Any) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


def transaction_from_dict(d: dict) -> Transaction:
    rec = d.get("recurring")
    return Transaction(
        id=d["id"],
        owner_id=d["owner_id"],
        type=d["type"],
        amount=_money(d["amount"]),
        description=d["description"],
        category=d["category"],
        date=_date(d["date"]),
        payment_method=d.get("payment_method", "cash"),
        tags=tuple(d.get("tags", ())),
        notes=d.get("notes", ""),
        recurring=Recurrence(
            is_recurring=rec.get("is_recurring", False),
            frequency=rec.get("frequency"),
            end_date=_date(rec.get("end_date")),
            next_due_date=_date(rec.get("next_due_date")),
        ) if rec else None,
        is_deleted=bool(d.get("is_deleted", False)),
    )


def budget_from_dict(d: dict) -> Budget:
    categories = tuple(
        BudgetCategory(
            category=c["category"],
            budget_amount=_money(c["budget_amount"]),
            spent_amount=_money(c.get("spent_amount", 0)),
            rollover=c.get("rollover", False),
        )
        for c in d.get("categories", ())
    )
    return Budget(
        id=d["id"],
        owner_id=d["owner_id"],
        name=d["name"],
        month=int(d["month"]),
        year=int(d["year"]),
        categories=categories,
        total_budget=sum((c.budget_amount for c in categories), Decimal("0")),
        total_spent=sum((c.spent_amount for c in categories), Decimal("0")),
        is_active=d.get("is_active", True),
        notes=d.get("notes", ""),
    )


def bill_from_dict(d: dict) -> Bill:
    reminders = d.get("reminders", {})
    return Bill(
        id=d["id"],
        owner_id=d["owner_id"],
        name=d["name"],
        amount=_money(d["amount"]),
        category=d["category"],
        due_date=_date(d["due_date"]),
        frequency=d.get("frequency", "monthly"),
        next_due_date=_date(d.get("next_due_date")) or _date(d["due_date"]),
        end_date=_date(d.get("end_date")),
        payment_method=d.get("payment_method", "auto-pay"),
        is_active=d.get("is_active", True),
        is_paid=d.get("is_paid", False),
        paid_date=_datetime(d.get("paid_date")),
        paid_amount=_money(d.get("paid_amount")),
        description=d.get("description", ""),
        notes=d.get("notes", ""),
        reminders=ReminderSettings(
            enabled=reminders.get("enabled", True),
            days_before=reminders.get("days_before", 3),
        ),
        attachments=tuple(
            Attachment(
                id=a["id"],
                filename=a["filename"],
                url=a["url"],
                original_name=a.get("original_name", ""),
                mimetype=a.get("mimetype", ""),
                size=a.get("size", 0),
                upload_date=_datetime(a.get("upload_date")),
            )
            for a in d.get("attachments", ())
        ),
        tags=tuple(d.get("tags", ())),
        payment_history=tuple(
            PaymentRecord(
                id=p["id"],
                amount=_money(p["amount"]),
                paid_date=_datetime(p["paid_date"]),
                payment_method=p.get("payment_method", "other"),
                transaction_id=p.get("transaction_id"),
                notes=p.get("notes", ""),
            )
            for p in d.get("payment_history", ())
        ),
    )


def goal_from_dict(d: dict) -> Goal:
    auto = d.get("auto_contribute", {})
    return Goal(
        id=d["id"],
        owner_id=d["owner_id"],
        name=d["name"],
        target_amount=_money(d["target_amount"]),
        target_date=_date(d["target_date"]),
        start_date=_date(d["start_date"]),
        type=d.get("type", "savings"),
        current_amount=_money(d.get("current_amount", 0)),
        priority=d.get("priority", "medium"),
        status=d.get("status", "active"),
        category=d.get("category", "other"),
        description=d.get("description", ""),
        auto_contribute=AutoContribute(
            enabled=auto.get("enabled", False),
            amount=_money(auto.get("amount")),
            frequency=auto.get("frequency", "monthly"),
            next_contribution=_date(auto.get("next_contribution")),
        ),
        milestones=tuple(
            Milestone(
                name=m["name"],
                target_amount=_money(m["target_amount"]),
                is_achieved=m.get("is_achieved", False),
                achieved_date=_datetime(m.get("achieved_date")),
                reward=m.get("reward", ""),
            )
            for m in d.get("milestones", ())
        ),
        contributions=tuple(
            Contribution(
                id=c["id"],
                amount=_money(c["amount"]),
                date=_datetime(c["date"]),
                source=c.get("source", "manual"),
                transaction_id=c.get("transaction_id"),
                notes=c.get("notes", ""),
            )
            for c in d.get("contributions", ())
        ),
        withdrawals=tuple(
            Withdrawal(
                id=w["id"],
                amount=_money(w["amount"]),
                date=_datetime(w["date"]),
                reason=w["reason"],
                transaction_id=w.get("transaction_id"),
            )
            for w in d.get("withdrawals", ())
        ),
        tags=tuple(d.get("tags", ())),
        notes=d.get("notes", ""),
        is_archived=d.get("is_archived", False),
    )


def load_seed(
    path: str,
) -> Tuple[
    Tuple[Transaction, ...],
    Tuple[Budget, ...],
    Tuple[Bill, ...],
    Tuple[Goal, ...],
]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    transactions = tuple(transaction_from_dict(t) for t in data.get("transactions", ()))
    budgets = tuple(budget_from_dict(b) for b in data.get("budgets", ()))
    bills = tuple(bill_from_dict(b) for b in data.get("bills", ()))
    goals = tuple(goal_from_dict(g) for g in data.get("goals", ()))

    return transactions, budgets, bills, goals


def seed_storage(storage: Storage, path: str) -> Storage:
    groups = load_seed(path)
    for group in groups:
        for record in group:
            storage.save(record)
    logger.info("seeded storage from %s (%d records)", path, sum(len(g) for g in groups))
    return storage

"""Entity services: load a record, run a pure rule over it, save the result.

Services receive their collaborators explicitly (storage, clock, id
generator, optional event bus). Every call names the requesting owner, and
records owned by someone else are reported as missing.
"""
import logging
from contextlib import contextmanager
from dataclasses import fields, replace
from datetime import date, timedelta
from typing import Any, Iterable, List, NamedTuple, Optional, Type, TypeVar, Union

from budgetbook import derived, transforms
from budgetbook.aggregates import (
    bills_summary,
    budget_year_summary,
    goals_summary,
    monthly_summary,
    transaction_overview,
)
from budgetbook.clock import Clock, IdGenerator, SystemClock, new_id
from budgetbook.domain import (
    AutoContribute,
    Attachment,
    Bill,
    Budget,
    BudgetCategory,
    GOAL_PRIORITIES,
    Goal,
    MIN_BUDGET_YEAR,
    Milestone,
    Recurrence,
    ReminderSettings,
    Transaction,
)
from budgetbook.errors import BudgetbookError, InvalidOperation, NotFoundError, ValidationError
from budgetbook.events import (
    ALERT_STATUSES,
    BILL_PAID,
    BUDGET_ALERT,
    EventBus,
    GOAL_COMPLETED,
    MILESTONE_ACHIEVED,
    TRANSACTION_ADDED,
)
from budgetbook.functional import unwrap
from budgetbook.money import to_decimal
from budgetbook.periods import as_date, month_bounds
from budgetbook.storage import Storage
from budgetbook.validation import one_of, validate_bill, validate_budget, validate_goal, validate_transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

MONEY_FIELDS = {"amount", "target_amount", "current_amount", "budget_amount", "spent_amount"}


@contextmanager
def _rejections(action: str, entity_id: Optional[str] = None):
    try:
        yield
    except BudgetbookError as exc:
        logger.warning("%s rejected for %s: %s", action, entity_id or "new record", exc.message)
        raise


def _money_or_raw(value: Any) -> Any:
    converted = to_decimal(value)
    return converted if converted is not None else value


def _apply_changes(record: T, changes: dict, immutable: Iterable[str] = ()) -> T:
    known = {f.name for f in fields(record)}
    locked = {"id", "owner_id", "version", *immutable}
    unknown = sorted(k for k in changes if k not in known or k in locked)
    if unknown:
        raise ValidationError(
            f"Fields cannot be updated: {', '.join(unknown)}", {"error": "invalid_fields", "fields": unknown}
        )
    cleaned = {k: _money_or_raw(v) if k in MONEY_FIELDS else v for k, v in changes.items()}
    if "tags" in cleaned:
        cleaned["tags"] = transforms.normalize_tags(cleaned["tags"])
    return replace(record, **cleaned)


class _Service:
    def __init__(
        self,
        storage: Storage,
        clock: Optional[Clock] = None,
        ids: IdGenerator = new_id,
        bus: Optional[EventBus] = None,
    ):
        if storage is None:
            raise ValueError("storage cannot be None")
        self.storage = storage
        self.clock = clock or SystemClock()
        self.ids = ids
        self.bus = bus

    def _load(self, model: Type[T], owner_id: str, entity_id: str) -> T:
        entity = self.storage.get(model, entity_id)
        if entity is None or entity.owner_id != owner_id:
            raise NotFoundError(
                f"{model.__name__} not found", {"error": "not_found", "model": model.__name__, "id": entity_id}
            )
        return entity

    def _publish(self, name: str, payload: dict) -> List[dict]:
        if self.bus is None:
            return []
        return self.bus.publish(name, payload)

    def _today(self) -> date:
        return self.clock.now().date()


class BudgetService(_Service):

    def create(
        self,
        owner_id: str,
        name: str,
        month: int,
        year: int,
        categories: Iterable[Union[BudgetCategory, dict]] = (),
        notes: str = "",
    ) -> Budget:
        with _rejections("create budget"):
            budget = transforms.replace_budget_categories(
                Budget(id=self.ids(), owner_id=owner_id, name=name, month=month, year=year, notes=notes),
                [self._category(c) for c in categories],
            )
            unwrap(validate_budget(budget))
            self._ensure_period_free(owner_id, month, year)
            budget = self._with_spending(budget)
            saved = self.storage.save(budget)
        logger.info("created budget %s for %s/%s", saved.id, month, year)
        return saved

    def get(self, owner_id: str, budget_id: str) -> Budget:
        return self._load(Budget, owner_id, budget_id)

    def list(
        self,
        owner_id: str,
        year: Optional[int] = None,
        month: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> List[Budget]:
        def pred(b: Budget) -> bool:
            return (
                (year is None or b.year == year)
                and (month is None or b.month == month)
                and (is_active is None or b.is_active == is_active)
            )

        return sorted(self.storage.find(Budget, owner_id, pred), key=lambda b: (b.year, b.month), reverse=True)

    def current(self, owner_id: str) -> Optional[Budget]:
        today = self._today()
        matches = self.list(owner_id, year=today.year, month=today.month, is_active=True)
        if not matches:
            return None
        return self.refresh(owner_id, matches[0].id)

    def update(self, owner_id: str, budget_id: str, **changes) -> Budget:
        with _rejections("update budget", budget_id):
            budget = self._load(Budget, owner_id, budget_id)
            categories = changes.pop("categories", None)
            updated = _apply_changes(budget, changes, immutable=("total_budget", "total_spent"))
            if categories is not None:
                updated = transforms.replace_budget_categories(updated, [self._category(c) for c in categories])
            unwrap(validate_budget(updated))
            if (updated.month, updated.year) != (budget.month, budget.year):
                self._ensure_period_free(owner_id, updated.month, updated.year)
            saved = self.storage.save(self._with_spending(updated))
        logger.info("updated budget %s", budget_id)
        return saved

    def update_categories(
        self, owner_id: str, budget_id: str, categories: Iterable[Union[BudgetCategory, dict]]
    ) -> Budget:
        return self.update(owner_id, budget_id, categories=list(categories))

    def refresh(self, owner_id: str, budget_id: str) -> Budget:
        """Recompute spent amounts from the month's expenses and persist them."""
        budget = self._load(Budget, owner_id, budget_id)
        saved = self.storage.save(self._with_spending(budget))
        status = derived.budget_current_status(saved)
        logger.info("refreshed budget %s: spent %s of %s (%s)", saved.id, saved.total_spent, saved.total_budget, status)
        if status in ALERT_STATUSES:
            self._publish(BUDGET_ALERT, {
                "budget_id": saved.id,
                "name": saved.name,
                "total_spent": saved.total_spent,
                "total_budget": saved.total_budget,
            })
        return saved

    def refresh_period(self, owner_id: str, month: int, year: int) -> Optional[Budget]:
        matches = self.list(owner_id, year=year, month=month)
        if not matches:
            return None
        return self.refresh(owner_id, matches[0].id)

    def copy(
        self, owner_id: str, budget_id: str, month: int, year: int, name: Optional[str] = None
    ) -> Budget:
        with _rejections("copy budget", budget_id):
            source = self._load(Budget, owner_id, budget_id)
            budget = transforms.copy_budget(source, self.ids(), month, year, name)
            unwrap(validate_budget(budget))
            self._ensure_period_free(owner_id, month, year)
            saved = self.storage.save(budget)
        logger.info("copied budget %s to %s (%s/%s)", budget_id, saved.id, month, year)
        return saved

    def delete(self, owner_id: str, budget_id: str) -> None:
        budget = self._load(Budget, owner_id, budget_id)
        self.storage.delete(budget)
        logger.info("deleted budget %s", budget_id)

    def year_summary(self, owner_id: str, year: int) -> dict:
        if year < MIN_BUDGET_YEAR:
            raise ValidationError(f"Year must be {MIN_BUDGET_YEAR} or later", {"error": "invalid_year", "year": year})
        return budget_year_summary(self.storage.find(Budget, owner_id), year)

    def _with_spending(self, budget: Budget) -> Budget:
        start, end = month_bounds(budget.year, budget.month)
        expenses = self.storage.find_transactions(budget.owner_id, start=start, end=end, tx_type="expense")
        return transforms.refresh_spent_amounts(budget, expenses)

    def _ensure_period_free(self, owner_id: str, month: int, year: int) -> None:
        if self.storage.find(Budget, owner_id, lambda b: b.month == month and b.year == year):
            raise InvalidOperation(
                "Budget already exists for this month and year",
                {"error": "duplicate_budget", "month": month, "year": year},
            )

    @staticmethod
    def _category(c: Union[BudgetCategory, dict]) -> BudgetCategory:
        if isinstance(c, BudgetCategory):
            return replace(c, budget_amount=_money_or_raw(c.budget_amount))
        return BudgetCategory(
            category=c["category"],
            budget_amount=_money_or_raw(c["budget_amount"]),
            spent_amount=_money_or_raw(c.get("spent_amount", 0)),
            rollover=bool(c.get("rollover", False)),
        )


class TransactionService(_Service):

    def __init__(self, storage: Storage, clock: Optional[Clock] = None, ids: IdGenerator = new_id,
                 bus: Optional[EventBus] = None, budgets: Optional[BudgetService] = None):
        super().__init__(storage, clock, ids, bus)
        self.budgets = budgets

    def create(
        self,
        owner_id: str,
        type: str,
        amount,
        description: str,
        category: str,
        date: Optional[date] = None,
        payment_method: str = "cash",
        tags: Iterable[str] = (),
        notes: str = "",
        recurring: Optional[Recurrence] = None,
    ) -> Transaction:
        with _rejections("create transaction"):
            t = Transaction(
                id=self.ids(),
                owner_id=owner_id,
                type=type,
                amount=_money_or_raw(amount),
                description=(description or "").strip(),
                category=category,
                date=as_date(date) if date is not None else self._today(),
                payment_method=payment_method,
                tags=transforms.normalize_tags(tags),
                notes=notes,
                recurring=recurring,
            )
            unwrap(validate_transaction(t, self._today()))
            saved = self.storage.save(transforms.with_recurrence_schedule(t))
        logger.info("created %s transaction %s of %s", saved.type, saved.id, saved.amount)
        self._publish(TRANSACTION_ADDED, {
            "transaction_id": saved.id,
            "type": saved.type,
            "amount": saved.amount,
            "category": saved.category,
        })
        if saved.type == "expense":
            self._refresh_budget(saved)
        return saved

    def get(self, owner_id: str, transaction_id: str) -> Transaction:
        t = self._load(Transaction, owner_id, transaction_id)
        if t.is_deleted:
            raise NotFoundError("Transaction not found", {"error": "not_found", "id": transaction_id})
        return t

    def list(
        self,
        owner_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        category: Optional[str] = None,
        tx_type: Optional[str] = None,
    ) -> List[Transaction]:
        return self.storage.find_transactions(owner_id, start=start, end=end, category=category, tx_type=tx_type)

    def update(self, owner_id: str, transaction_id: str, **changes) -> Transaction:
        with _rejections("update transaction", transaction_id):
            before = self.get(owner_id, transaction_id)
            updated = _apply_changes(before, changes, immutable=("is_deleted",))
            unwrap(validate_transaction(updated, self._today()))
            saved = self.storage.save(transforms.with_recurrence_schedule(updated))
        logger.info("updated transaction %s", transaction_id)
        if "expense" in (before.type, saved.type):
            self._refresh_budget(saved)
            if (before.date.year, before.date.month) != (saved.date.year, saved.date.month):
                self._refresh_budget(before)
        return saved

    def soft_delete(self, owner_id: str, transaction_id: str) -> Transaction:
        t = self.get(owner_id, transaction_id)
        saved = self.storage.save(transforms.soft_delete(t))
        logger.info("soft-deleted transaction %s", transaction_id)
        if saved.type == "expense":
            self._refresh_budget(saved)
        return saved

    def _refresh_budget(self, t: Transaction) -> None:
        if self.budgets is None:
            return
        d = as_date(t.date)
        self.budgets.refresh_period(t.owner_id, d.month, d.year)


class BillService(_Service):

    def create(
        self,
        owner_id: str,
        name: str,
        amount,
        category: str,
        due_date: date,
        frequency: str = "monthly",
        end_date: Optional[date] = None,
        payment_method: str = "auto-pay",
        reminders: Optional[ReminderSettings] = None,
        attachments: Iterable[Attachment] = (),
        tags: Iterable[str] = (),
        description: str = "",
        notes: str = "",
    ) -> Bill:
        with _rejections("create bill"):
            bill = Bill(
                id=self.ids(),
                owner_id=owner_id,
                name=(name or "").strip(),
                amount=_money_or_raw(amount),
                category=category,
                due_date=as_date(due_date),
                frequency=frequency,
                next_due_date=as_date(due_date),
                end_date=as_date(end_date) if end_date is not None else None,
                payment_method=payment_method,
                reminders=reminders or ReminderSettings(),
                attachments=tuple(attachments),
                tags=transforms.normalize_tags(tags),
                description=description,
                notes=notes,
            )
            unwrap(validate_bill(bill))
            saved = self.storage.save(bill)
        logger.info("created bill %s due %s (%s)", saved.id, saved.next_due_date, saved.frequency)
        return saved

    def get(self, owner_id: str, bill_id: str) -> Bill:
        return self._load(Bill, owner_id, bill_id)

    def list(self, owner_id: str, is_active: Optional[bool] = None, category: Optional[str] = None) -> List[Bill]:
        def pred(b: Bill) -> bool:
            return (is_active is None or b.is_active == is_active) and (category is None or b.category == category)

        return sorted(self.storage.find(Bill, owner_id, pred), key=lambda b: b.next_due_date or b.due_date)

    def update(self, owner_id: str, bill_id: str, **changes) -> Bill:
        with _rejections("update bill", bill_id):
            bill = self._load(Bill, owner_id, bill_id)
            updated = _apply_changes(bill, changes, immutable=("payment_history",))
            unwrap(validate_bill(updated))
            saved = self.storage.save(updated)
        logger.info("updated bill %s", bill_id)
        return saved

    def mark_as_paid(
        self,
        owner_id: str,
        bill_id: str,
        amount=None,
        payment_method: Optional[str] = None,
        transaction_id: Optional[str] = None,
        notes: str = "",
    ) -> Bill:
        with _rejections("mark bill paid", bill_id):
            bill = self._load(Bill, owner_id, bill_id)
            paid = transforms.mark_bill_paid(
                bill,
                self.clock.now(),
                self.ids(),
                amount=amount,
                payment_method=payment_method,
                transaction_id=transaction_id,
                notes=notes,
            )
            saved = self.storage.save(paid)
        payment = saved.payment_history[-1]
        if saved.is_active:
            logger.info("bill %s paid %s, next due %s", bill_id, payment.amount, saved.next_due_date)
        else:
            logger.info("bill %s paid %s, series finished", bill_id, payment.amount)
        self._publish(BILL_PAID, {
            "bill_id": saved.id,
            "name": saved.name,
            "amount": payment.amount,
            "next_due_date": saved.next_due_date if saved.is_active else None,
        })
        return saved

    def upcoming(self, owner_id: str, days: int = 30) -> List[Bill]:
        horizon = self._today() + timedelta(days=days)
        return [b for b in self.list(owner_id, is_active=True) if not b.is_paid and b.next_due_date <= horizon]

    def overdue(self, owner_id: str) -> List[Bill]:
        now = self.clock.now()
        return [b for b in self.list(owner_id, is_active=True) if derived.is_bill_overdue(b, now)]

    def deactivate(self, owner_id: str, bill_id: str) -> Bill:
        bill = self._load(Bill, owner_id, bill_id)
        saved = self.storage.save(transforms.deactivate_bill(bill))
        logger.info("deactivated bill %s", bill_id)
        return saved

    def remove_attachment(self, owner_id: str, bill_id: str, attachment_id: str) -> Bill:
        with _rejections("remove attachment", bill_id):
            bill = self._load(Bill, owner_id, bill_id)
            saved = self.storage.save(transforms.remove_attachment(bill, attachment_id))
        logger.info("removed attachment %s from bill %s", attachment_id, bill_id)
        return saved

    def delete(self, owner_id: str, bill_id: str) -> None:
        bill = self._load(Bill, owner_id, bill_id)
        self.storage.delete(bill)
        logger.info("deleted bill %s", bill_id)

    def summary(self, owner_id: str) -> dict:
        return bills_summary(self.storage.find(Bill, owner_id), self.clock.now())


class GoalService(_Service):

    def create(
        self,
        owner_id: str,
        name: str,
        target_amount,
        target_date: date,
        type: str = "savings",
        priority: str = "medium",
        category: str = "other",
        start_date: Optional[date] = None,
        current_amount=0,
        milestones: Iterable[Union[Milestone, dict]] = (),
        auto_contribute: Optional[AutoContribute] = None,
        tags: Iterable[str] = (),
        description: str = "",
        notes: str = "",
    ) -> Goal:
        now = self.clock.now()
        with _rejections("create goal"):
            goal = Goal(
                id=self.ids(),
                owner_id=owner_id,
                name=(name or "").strip(),
                target_amount=_money_or_raw(target_amount),
                target_date=as_date(target_date),
                start_date=as_date(start_date) if start_date is not None else now.date(),
                type=type,
                current_amount=_money_or_raw(current_amount),
                priority=priority,
                category=category,
                description=description,
                auto_contribute=auto_contribute or AutoContribute(),
                milestones=tuple(self._milestone(m) for m in milestones),
                tags=transforms.normalize_tags(tags),
                notes=notes,
            )
            unwrap(validate_goal(goal, now))
            saved = self.storage.save(transforms.schedule_auto_contribution(goal, now))
        logger.info("created goal %s targeting %s by %s", saved.id, saved.target_amount, saved.target_date)
        return saved

    def get(self, owner_id: str, goal_id: str) -> Goal:
        return self._load(Goal, owner_id, goal_id)

    def list(self, owner_id: str, status: Optional[str] = None, include_archived: bool = False) -> List[Goal]:
        def pred(g: Goal) -> bool:
            return (include_archived or not g.is_archived) and (status is None or g.status == status)

        return sorted(self.storage.find(Goal, owner_id, pred), key=lambda g: g.target_date)

    def update(self, owner_id: str, goal_id: str, **changes) -> Goal:
        now = self.clock.now()
        with _rejections("update goal", goal_id):
            goal = self._load(Goal, owner_id, goal_id)
            if "milestones" in changes:
                changes["milestones"] = tuple(self._milestone(m) for m in changes["milestones"])
            updated = _apply_changes(
                goal, changes, immutable=("current_amount", "status", "contributions", "withdrawals", "is_archived")
            )
            unwrap(validate_goal(updated, now, is_new="target_date" in changes))
            saved = self.storage.save(transforms.schedule_auto_contribution(updated, now))
        logger.info("updated goal %s", goal_id)
        return saved

    def add_contribution(
        self,
        owner_id: str,
        goal_id: str,
        amount,
        source: str = "manual",
        transaction_id: Optional[str] = None,
        notes: str = "",
    ) -> Goal:
        with _rejections("contribution", goal_id):
            before = self._load(Goal, owner_id, goal_id)
            after = transforms.add_contribution(
                before, amount, self.clock.now(), self.ids(), source, transaction_id, notes
            )
            saved = self.storage.save(after)
        logger.info("goal %s received %s, now %s", goal_id, saved.contributions[-1].amount, saved.current_amount)
        if before.status != "completed" and saved.status == "completed":
            self._publish(GOAL_COMPLETED, {"goal_id": saved.id, "name": saved.name, "target_amount": saved.target_amount})
        for milestone in transforms.newly_achieved(before, saved):
            self._publish(MILESTONE_ACHIEVED, {"goal_id": saved.id, "goal": saved.name, "milestone": milestone.name})
        return saved

    def add_withdrawal(
        self,
        owner_id: str,
        goal_id: str,
        amount,
        reason: str,
        transaction_id: Optional[str] = None,
    ) -> Goal:
        with _rejections("withdrawal", goal_id):
            goal = self._load(Goal, owner_id, goal_id)
            after = transforms.add_withdrawal(goal, amount, reason, self.clock.now(), self.ids(), transaction_id)
            saved = self.storage.save(after)
        logger.info("goal %s withdrew %s, now %s", goal_id, saved.withdrawals[-1].amount, saved.current_amount)
        return saved

    def set_status(self, owner_id: str, goal_id: str, status: str) -> Goal:
        with _rejections("set goal status", goal_id):
            goal = self._load(Goal, owner_id, goal_id)
            saved = self.storage.save(transforms.set_goal_status(goal, status))
        logger.info("goal %s status %s -> %s", goal_id, goal.status, saved.status)
        return saved

    def archive(self, owner_id: str, goal_id: str) -> Goal:
        goal = self._load(Goal, owner_id, goal_id)
        saved = self.storage.save(transforms.archive_goal(goal))
        logger.info("archived goal %s", goal_id)
        return saved

    def progress(self, owner_id: str, goal_id: str) -> dict:
        return derived.goal_progress(self._load(Goal, owner_id, goal_id), self.clock.now())

    def overdue(self, owner_id: str) -> List[Goal]:
        now = self.clock.now()
        return [g for g in self.list(owner_id) if derived.is_goal_overdue(g, now)]

    def by_priority(self, owner_id: str, priority: str) -> List[Goal]:
        unwrap(one_of(priority, GOAL_PRIORITIES, "priority"))
        return [g for g in self.list(owner_id, status="active") if g.priority == priority]

    def summary(self, owner_id: str) -> dict:
        return goals_summary(self.storage.find(Goal, owner_id))

    @staticmethod
    def _milestone(m: Union[Milestone, dict]) -> Milestone:
        if isinstance(m, Milestone):
            return replace(m, target_amount=_money_or_raw(m.target_amount))
        return Milestone(
            name=m["name"],
            target_amount=_money_or_raw(m["target_amount"]),
            reward=m.get("reward", ""),
        )


class ReportService(_Service):

    def overview(self, owner_id: str, start: Optional[date] = None, end: Optional[date] = None) -> dict:
        today = self._today()
        start = as_date(start) if start is not None else date(today.year, 1, 1)
        end = as_date(end) if end is not None else today
        if end < start:
            raise ValidationError("End date must not be before start date", {"error": "invalid_range"})
        return transaction_overview(self.storage.find_transactions(owner_id, start=start, end=end), start, end)

    def monthly(self, owner_id: str, year: Optional[int] = None) -> dict:
        year = year if year is not None else self._today().year
        return monthly_summary(self.storage.find_transactions(owner_id), year)


class Services(NamedTuple):
    transactions: TransactionService
    budgets: BudgetService
    bills: BillService
    goals: GoalService
    reports: ReportService


def build_services(
    storage: Storage,
    clock: Optional[Clock] = None,
    ids: IdGenerator = new_id,
    bus: Optional[EventBus] = None,
) -> Services:
    clock = clock or SystemClock()
    budgets = BudgetService(storage, clock, ids, bus)
    return Services(
        transactions=TransactionService(storage, clock, ids, bus, budgets=budgets),
        budgets=budgets,
        bills=BillService(storage, clock, ids, bus),
        goals=GoalService(storage, clock, ids, bus),
        reports=ReportService(storage, clock, ids, bus),
    )

"""State transitions as pure functions: (old record, input) -> new record.

Every function either returns a complete new record or raises before
building one, so a failed rule never leaves a half-applied change behind.
Persisting the result is the caller's job.
"""
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from budgetbook.domain import (
    BILL_PAYMENT_METHODS,
    Bill,
    Budget,
    BudgetCategory,
    Contribution,
    GOAL_STATUSES,
    Goal,
    Milestone,
    PaymentRecord,
    Transaction,
    Withdrawal,
)
from budgetbook.errors import InvalidOperation, NotFoundError
from budgetbook.filters import iter_transactions, transaction_filter
from budgetbook.functional import find_first, unwrap
from budgetbook.money import ZERO, to_decimal, total
from budgetbook.periods import as_date, month_bounds
from budgetbook.recurrence import next_occurrence, within_end_date
from budgetbook.validation import one_of, positive_amount, required_text, validate_source


def normalize_tags(tags: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for tag in tags:
        cleaned = tag.strip()
        if cleaned:
            seen.setdefault(cleaned, None)
    return tuple(seen)


def with_recurrence_schedule(t: Transaction) -> Transaction:
    rec = t.recurring
    if rec is None or not rec.is_recurring or rec.next_due_date is not None:
        return t
    return replace(t, recurring=replace(rec, next_due_date=next_occurrence(t.date, rec.frequency)))


def soft_delete(t: Transaction) -> Transaction:
    return replace(t, is_deleted=True)


def with_budget_totals(budget: Budget) -> Budget:
    return replace(
        budget,
        total_budget=total(c.budget_amount for c in budget.categories),
        total_spent=total(c.spent_amount for c in budget.categories),
    )


def replace_budget_categories(budget: Budget, categories: Iterable[BudgetCategory]) -> Budget:
    return with_budget_totals(replace(budget, categories=tuple(categories)))


def refresh_spent_amounts(budget: Budget, trans: Iterable[Transaction]) -> Budget:
    """Overwrite each category's spent amount from the month's expenses.

    Expenses in categories the budget does not list are ignored, and a
    listed category with no expenses goes back to zero, so running this
    twice over the same transactions gives the same totals.
    """
    start, end = month_bounds(budget.year, budget.month)
    pred = transaction_filter(owner_id=budget.owner_id, start=start, end=end, tx_type="expense")

    spent: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for t in iter_transactions(trans, pred):
        spent[t.category] += to_decimal(t.amount)

    categories = tuple(replace(c, spent_amount=spent.get(c.category, ZERO)) for c in budget.categories)
    return replace_budget_categories(budget, categories)


def copy_budget(
    budget: Budget, new_id: str, month: int, year: int, name: Optional[str] = None
) -> Budget:
    categories = tuple(replace(c, spent_amount=ZERO) for c in budget.categories)
    return replace_budget_categories(
        Budget(
            id=new_id,
            owner_id=budget.owner_id,
            name=name or budget.name,
            month=month,
            year=year,
            notes=budget.notes,
        ),
        categories,
    )


def mark_bill_paid(
    bill: Bill,
    now: datetime,
    payment_id: str,
    amount=None,
    payment_method: Optional[str] = None,
    transaction_id: Optional[str] = None,
    notes: str = "",
) -> Bill:
    if not bill.is_active:
        raise InvalidOperation("Bill is inactive", {"error": "bill_inactive", "bill_id": bill.id})
    paid_amount = to_decimal(bill.amount) if amount is None else unwrap(positive_amount(amount))
    method = payment_method or bill.payment_method
    unwrap(one_of(method, BILL_PAYMENT_METHODS, "payment_method"))

    history = bill.payment_history + (
        PaymentRecord(
            id=payment_id,
            amount=paid_amount,
            paid_date=now,
            payment_method=method,
            transaction_id=transaction_id,
            notes=notes or "",
        ),
    )

    upcoming = next_occurrence(bill.next_due_date or bill.due_date, bill.frequency)
    if within_end_date(upcoming, bill.end_date):
        return replace(
            bill,
            next_due_date=upcoming,
            is_paid=False,
            paid_date=None,
            paid_amount=None,
            payment_history=history,
        )
    # one-time bill, or the series ran past its end date
    return replace(
        bill,
        is_paid=True,
        paid_date=now,
        paid_amount=paid_amount,
        is_active=False,
        payment_history=history,
    )


def deactivate_bill(bill: Bill) -> Bill:
    return replace(bill, is_active=False)


def remove_attachment(bill: Bill, attachment_id: str) -> Bill:
    found = find_first(bill.attachments, lambda a: a.id == attachment_id)
    if found.is_none():
        raise NotFoundError("Attachment not found", {"bill_id": bill.id, "attachment_id": attachment_id})
    return replace(bill, attachments=tuple(a for a in bill.attachments if a.id != attachment_id))


def _ensure_not_archived(goal: Goal) -> None:
    if goal.is_archived:
        raise InvalidOperation("Goal is archived", {"error": "goal_archived", "goal_id": goal.id})


def add_contribution(
    goal: Goal,
    amount,
    now: datetime,
    contribution_id: str,
    source: str = "manual",
    transaction_id: Optional[str] = None,
    notes: str = "",
) -> Goal:
    value = unwrap(positive_amount(amount))
    unwrap(validate_source(source))
    _ensure_not_archived(goal)

    current = to_decimal(goal.current_amount) + value
    status = goal.status
    if current >= to_decimal(goal.target_amount) and status == "active":
        status = "completed"

    # every milestone is checked on its own, in list order
    milestones = tuple(
        replace(m, is_achieved=True, achieved_date=now)
        if not m.is_achieved and current >= to_decimal(m.target_amount)
        else m
        for m in goal.milestones
    )

    contribution = Contribution(
        id=contribution_id,
        amount=value,
        date=now,
        source=source,
        transaction_id=transaction_id,
        notes=notes or "",
    )
    return replace(
        goal,
        current_amount=current,
        status=status,
        milestones=milestones,
        contributions=goal.contributions + (contribution,),
    )


def add_withdrawal(
    goal: Goal,
    amount,
    reason: str,
    now: datetime,
    withdrawal_id: str,
    transaction_id: Optional[str] = None,
) -> Goal:
    value = unwrap(positive_amount(amount))
    reason_text = unwrap(required_text(reason, "reason", 100))
    _ensure_not_archived(goal)

    balance = to_decimal(goal.current_amount)
    if value > balance:
        raise InvalidOperation(
            "Withdrawal amount cannot exceed current amount",
            {"error": "insufficient_funds", "goal_id": goal.id, "amount": value, "current_amount": balance},
        )

    current = balance - value
    status = goal.status
    if current < to_decimal(goal.target_amount) and status == "completed":
        status = "active"

    milestones = tuple(
        replace(m, is_achieved=False, achieved_date=None)
        if m.is_achieved and current < to_decimal(m.target_amount)
        else m
        for m in goal.milestones
    )

    withdrawal = Withdrawal(
        id=withdrawal_id, amount=value, date=now, reason=reason_text, transaction_id=transaction_id
    )
    return replace(
        goal,
        current_amount=current,
        status=status,
        milestones=milestones,
        withdrawals=goal.withdrawals + (withdrawal,),
    )


def newly_achieved(before: Goal, after: Goal) -> tuple[Milestone, ...]:
    return tuple(
        new for old, new in zip(before.milestones, after.milestones) if new.is_achieved and not old.is_achieved
    )


def set_goal_status(goal: Goal, status: str) -> Goal:
    unwrap(one_of(status, GOAL_STATUSES, "status"))
    _ensure_not_archived(goal)
    if status == "completed" and to_decimal(goal.current_amount) < to_decimal(goal.target_amount):
        raise InvalidOperation(
            "Goal has not reached its target amount", {"error": "goal_not_funded", "goal_id": goal.id}
        )
    if status == "active" and to_decimal(goal.current_amount) >= to_decimal(goal.target_amount):
        status = "completed"
    return replace(goal, status=status)


def archive_goal(goal: Goal) -> Goal:
    return replace(goal, is_archived=True)


def schedule_auto_contribution(goal: Goal, now: datetime) -> Goal:
    auto = goal.auto_contribute
    if not auto.enabled or auto.next_contribution is not None:
        return goal
    upcoming = next_occurrence(as_date(now), auto.frequency)
    return replace(goal, auto_contribute=replace(auto, next_contribution=upcoming))
